from __future__ import annotations

from uuid import UUID

from fastapi.encoders import jsonable_encoder

from app.models import BookingEvent, BookingEventType
from app.schemas import BookingEventResponse


class BookingEventLog:
    """Append-only audit trail of everything that happens to a booking."""

    async def record(
        self,
        booking_id: UUID,
        event_type: BookingEventType,
        data: dict | None = None,
    ) -> BookingEventResponse:
        # Runs on the caller's connection, so inside an open transaction the
        # event commits or rolls back together with the state change.
        inst = await BookingEvent.create(
            booking_id=booking_id,
            type=event_type,
            data=jsonable_encoder(data or {}),
        )
        return BookingEventResponse.model_validate(inst, from_attributes=True)

    async def list_for_booking(self, booking_id: UUID) -> list[BookingEventResponse]:
        events = await BookingEvent.filter(booking_id=booking_id).order_by(
            "created_at"
        )
        return [
            BookingEventResponse.model_validate(e, from_attributes=True) for e in events
        ]


booking_event_log = BookingEventLog()
