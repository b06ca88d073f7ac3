"""
Booking state machine.

The transition table is closed: any (from, to) pair not listed is refused.
Every state-dependent write is a conditional UPDATE ... WHERE status = <the
status we read>, so of two actors racing on the same booking only one wins
and the other gets a ConflictError instead of overwriting the winner.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from loguru import logger
from tortoise.transactions import in_transaction

from app.errors import (
    BookingValidationError,
    ConflictError,
    NotFoundError,
    store_errors,
)
from app.events import booking_event_log
from app.models import Booking, BookingEventType, BookingStatus
from app.schemas import BookingResponse

S = BookingStatus

TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    S.PENDING: frozenset(
        {S.AWAITING_MANAGER, S.AWAITING_BEAUTICIAN, S.CONFIRMED, S.CANCELLED}
    ),
    S.AWAITING_MANAGER: frozenset({S.AWAITING_VENDOR_RESPONSE, S.CANCELLED}),
    S.AWAITING_VENDOR_RESPONSE: frozenset(
        {S.AWAITING_MANAGER, S.AWAITING_BEAUTICIAN, S.CONFIRMED, S.CANCELLED}
    ),
    S.AWAITING_BEAUTICIAN: frozenset({S.AWAITING_MANAGER, S.CONFIRMED, S.CANCELLED}),
    S.CONFIRMED: frozenset(
        {S.AWAITING_MANAGER, S.IN_PROGRESS, S.COMPLETED, S.CANCELLED, S.REFUNDED}
    ),
    S.IN_PROGRESS: frozenset({S.COMPLETED, S.CANCELLED, S.REFUNDED}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
    S.REFUNDED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)
ACTIVE_STATUSES = frozenset(S) - TERMINAL_STATUSES

# the party a booking must already carry when it enters each status
REQUIRED_PARTIES: dict[BookingStatus, str] = {
    S.AWAITING_VENDOR_RESPONSE: "vendor_id",
    S.AWAITING_BEAUTICIAN: "vendor_id",
    S.CONFIRMED: "employee_id",
}


def parse_status(value: str | BookingStatus) -> BookingStatus:
    try:
        return BookingStatus(value)
    except ValueError:
        raise BookingValidationError(
            f"Unknown booking status '{value}'", code="invalid_status"
        ) from None


def sources_for(target: BookingStatus) -> frozenset[BookingStatus]:
    """Every status from which `target` may be entered."""
    return frozenset(s for s, targets in TRANSITIONS.items() if target in targets)


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def side_effects(booking: Booking, target: BookingStatus, now: datetime) -> dict:
    """Field changes that must accompany entering `target`."""
    changes: dict[str, Any] = {}
    if target == S.AWAITING_MANAGER:
        # full reset of the assignment chain
        changes.update(
            vendor_id=None,
            manager_assigned_at=None,
            vendor_responded_at=None,
            beautician_assigned_at=None,
        )
    elif target == S.AWAITING_VENDOR_RESPONSE:
        if booking.manager_assigned_at is None:
            changes["manager_assigned_at"] = now
    elif target == S.CONFIRMED:
        if booking.vendor_responded_at is None:
            changes["vendor_responded_at"] = now
    elif target == S.COMPLETED:
        changes["customer_notified_at"] = now
    return changes


class BookingLifecycle:
    async def transition(
        self,
        booking_id: UUID,
        target: str | BookingStatus,
        actor_id: UUID | None = None,
        *,
        allowed_from: Iterable[BookingStatus] | None = None,
        changes: dict | None = None,
        vendor_id: UUID | None = None,
        event_data: dict | None = None,
    ) -> BookingResponse:
        """
        Move a booking to `target`.

        `allowed_from` narrows the transition table for a specific action
        (e.g. vendor accept is only valid from PENDING/AWAITING_VENDOR_RESPONSE).
        `vendor_id` additionally requires the booking to belong to that vendor.
        `changes` are applied on top of the mandatory side effects.

        Raises NotFoundError if the booking does not exist (or is not the
        vendor's), ConflictError if its status does not permit the move or
        moved on between our read and our write.
        Entering an assignment status without its vendor, or CONFIRMED
        without a beautician, is a ConflictError too.
        """
        target = parse_status(target)
        booking = await Booking.get_or_none(id=booking_id)
        if booking is None:
            raise NotFoundError("Booking not found", code="booking_not_found")
        if vendor_id is not None and booking.vendor_id != vendor_id:
            raise NotFoundError(
                "Booking not found or not assigned to this vendor",
                code="booking_not_found",
            )

        sources = sources_for(target)
        if allowed_from is not None:
            sources = sources & frozenset(allowed_from)
        if booking.status not in sources:
            raise ConflictError(
                f"Cannot transition from '{booking.status}' to '{target}'. "
                f"Allowed from: {sorted(s.value for s in sources)}",
                code="invalid_transition",
            )

        now = datetime.now(UTC)
        fields = side_effects(booking, target, now)
        fields.update(changes or {})
        fields.update(status=target, updated_at=now)

        party = REQUIRED_PARTIES.get(target)
        if party and fields.get(party, getattr(booking, party)) is None:
            raise ConflictError(
                f"Cannot move booking to '{target}' without {party}",
                code="assignment_incomplete",
            )

        async with store_errors("update booking status"), in_transaction():
            updated = await Booking.filter(id=booking_id, status=booking.status).update(
                **fields
            )
            if not updated:
                raise ConflictError(
                    "Booking status changed concurrently, reload and retry",
                    code="status_changed",
                )
            await booking_event_log.record(
                booking_id,
                BookingEventType.STATUS_CHANGED,
                {
                    "from": booking.status,
                    "status": target,
                    "updatedBy": actor_id,
                    **(event_data or {}),
                },
            )

        logger.info(
            "Booking {} moved {} -> {} by {}",
            booking_id,
            booking.status,
            target,
            actor_id,
        )
        await booking.refresh_from_db()
        return BookingResponse.model_validate(booking, from_attributes=True)


booking_lifecycle = BookingLifecycle()
