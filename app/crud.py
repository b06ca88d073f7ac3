from __future__ import annotations

from collections import Counter
from uuid import UUID

from app.events import booking_event_log
from app.lifecycle import ACTIVE_STATUSES
from app.models import Booking, BookingStatus
from app.schemas import (
    BookingDetail,
    BookingFilters,
    BookingItemResponse,
    BookingProductResponse,
    BookingResponse,
    BookingStats,
)


class BookingCRUD:
    """Read side of bookings. All writes go through intake/lifecycle/assignment."""

    async def get_booking(
        self,
        booking_id: UUID,
        customer_id: UUID | None = None,
        vendor_id: UUID | None = None,
    ) -> BookingDetail | None:
        qs = Booking.filter(id=booking_id)
        if customer_id is not None:
            qs = qs.filter(customer_id=customer_id)
        if vendor_id is not None:
            qs = qs.filter(vendor_id=vendor_id)

        inst = await qs.prefetch_related("items", "products").first()
        if not inst:
            return None

        return BookingDetail(
            **BookingResponse.model_validate(inst, from_attributes=True).model_dump(),
            items=[
                BookingItemResponse.model_validate(i, from_attributes=True)
                for i in inst.items
            ],
            products=[
                BookingProductResponse.model_validate(p, from_attributes=True)
                for p in inst.products
            ],
            events=await booking_event_log.list_for_booking(inst.id),
        )

    async def list_bookings(
        self,
        filters: BookingFilters,
        customer_id: UUID | None = None,
        vendor_id: UUID | None = None,
    ) -> list[BookingResponse]:
        qs = Booking.all()

        if customer_id is not None:
            qs = qs.filter(customer_id=customer_id)
        if vendor_id is not None:
            qs = qs.filter(vendor_id=vendor_id)
        if filters.status is not None:
            qs = qs.filter(status=filters.status)
        if filters.booking_type is not None:
            qs = qs.filter(booking_type=filters.booking_type)

        offset = (filters.page - 1) * filters.page_size
        qs = qs.order_by("-created_at").offset(offset).limit(filters.page_size)

        bookings = await qs
        return [
            BookingResponse.model_validate(b, from_attributes=True) for b in bookings
        ]

    async def booking_stats(self, customer_id: UUID | None = None) -> BookingStats:
        qs = Booking.all()
        if customer_id is not None:
            qs = qs.filter(customer_id=customer_id)

        statuses = await qs.values_list("status", flat=True)
        counts = Counter(BookingStatus(s) for s in statuses)

        return BookingStats(
            total=sum(counts.values()),
            active=sum(n for s, n in counts.items() if s in ACTIVE_STATUSES),
            completed=counts.get(BookingStatus.COMPLETED, 0),
            cancelled=counts.get(BookingStatus.CANCELLED, 0),
            awaiting_manager=counts.get(BookingStatus.AWAITING_MANAGER, 0),
            awaiting_vendor=counts.get(BookingStatus.AWAITING_VENDOR_RESPONSE, 0),
            awaiting_beautician=counts.get(BookingStatus.AWAITING_BEAUTICIAN, 0),
            confirmed=counts.get(BookingStatus.CONFIRMED, 0),
            in_progress=counts.get(BookingStatus.IN_PROGRESS, 0),
        )


booking_crud = BookingCRUD()
