from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from loguru import logger

from app.assignment import assignment_coordinator
from app.cache import get_stats_cache, invalidate_stats_cache, set_stats_cache
from app.crud import booking_crud
from app.deps import (
    CurrentUser,
    NotificationsClient,
    booking_visibility,
    can_cancel_booking,
    can_read_booking,
    can_write_booking,
    get_current_user,
    get_notifications_client,
    get_visible_booking,
)
from app.intake import booking_intake
from app.lifecycle import booking_lifecycle, parse_status
from app.models import BookingStatus
from app.schemas import (
    BookingCancel,
    BookingCreate,
    BookingDetail,
    BookingEventResponse,
    BookingFilters,
    BookingResponse,
    BookingStats,
    BookingStatusUpdate,
)
from app.scopes import BookingScope

router = APIRouter(prefix="/bookings", tags=["bookings"])


# ---------------------------------------------------------------------------
# Transition guard helpers
# ---------------------------------------------------------------------------

# Targets a vendor may move its own bookings to, on top of the table check
_VENDOR_STATUSES = {BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED}
_CANCEL_STATUSES = {BookingStatus.CANCELLED}


async def _assert_transition_allowed(
    booking: BookingResponse,
    new_status: BookingStatus,
    current_user: CurrentUser,
) -> None:
    """
    Raise HTTP 403 if the caller may not move this booking to `new_status`.
    Whether the move itself is legal is decided by the lifecycle.

    Rules:
      any target          : MANAGE, OR admin
      in_progress/completed: VENDOR + booking assigned to the caller's shop
      cancelled           : CANCEL + booker
    """
    if current_user.can_write_all:
        return

    if new_status in _VENDOR_STATUSES and BookingScope.VENDOR in current_user.scopes:
        vendor = await assignment_coordinator.vendor_for_user(current_user.id)
        if booking.vendor_id == vendor.id:
            return

    if new_status in _CANCEL_STATUSES:
        is_booker = current_user.id == booking.customer_id
        if is_booker and BookingScope.CANCEL in current_user.scopes:
            return

    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=f"Not allowed to move this booking to '{new_status}'",
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/", response_model=BookingDetail, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    background_tasks: BackgroundTasks,
    current_user: CurrentUser = Depends(can_write_booking),
    notifications: NotificationsClient = Depends(get_notifications_client),
) -> BookingDetail:
    # Only managers/admins may book on someone else's behalf
    customer_id = current_user.id
    if payload.customer_id and current_user.can_write_all:
        customer_id = payload.customer_id

    booking = await booking_intake.create_booking(payload, customer_id)
    await invalidate_stats_cache(customer_id)
    background_tasks.add_task(notifications.notify_booking_confirmed, booking)
    return booking


@router.get("/", response_model=list[BookingResponse])
async def list_bookings(
    filters: BookingFilters = Depends(),
    current_user: CurrentUser = Depends(can_read_booking),
) -> list[BookingResponse]:
    return await booking_crud.list_bookings(
        filters=filters, **await booking_visibility(current_user)
    )


@router.get("/stats", response_model=BookingStats)
async def booking_stats(
    current_user: CurrentUser = Depends(can_read_booking),
) -> BookingStats:
    customer_id = None if current_user.can_read_all else current_user.id

    cached = await get_stats_cache(customer_id)
    if cached is not None:
        logger.debug("Cache hit for booking stats: customer_id={}", customer_id)
        return cached

    logger.debug("Cache miss for booking stats: customer_id={}", customer_id)
    stats = await booking_crud.booking_stats(customer_id)
    await set_stats_cache(customer_id, stats)
    return stats


@router.get("/{booking_id}", response_model=BookingDetail)
async def get_booking(
    booking_id: UUID,
    current_user: CurrentUser = Depends(can_read_booking),
) -> BookingDetail:
    return await get_visible_booking(booking_id, current_user)


@router.get("/{booking_id}/events", response_model=list[BookingEventResponse])
async def list_booking_events(
    booking_id: UUID,
    current_user: CurrentUser = Depends(can_read_booking),
) -> list[BookingEventResponse]:
    booking = await get_visible_booking(booking_id, current_user)
    return booking.events


@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: UUID,
    payload: BookingStatusUpdate,
    current_user: CurrentUser = Depends(get_current_user),
) -> BookingResponse:
    new_status = parse_status(payload.status)

    # Fetch without ownership filter, permissions are checked explicitly
    booking = await booking_crud.get_booking(booking_id)
    if not booking:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found"
        )

    await _assert_transition_allowed(booking, new_status, current_user)

    updated = await booking_lifecycle.transition(
        booking_id, new_status, current_user.id
    )
    await invalidate_stats_cache(booking.customer_id)
    return updated


@router.patch("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: UUID,
    payload: BookingCancel,
    current_user: CurrentUser = Depends(can_cancel_booking),
) -> BookingResponse:
    # Customers can only cancel their own bookings
    if current_user.can_write_all:
        booking = await booking_crud.get_booking(booking_id)
    else:
        booking = await booking_crud.get_booking(
            booking_id, customer_id=current_user.id
        )
    if not booking:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found"
        )

    updated = await assignment_coordinator.cancel(
        booking_id, payload.reason, current_user.id
    )
    await invalidate_stats_cache(booking.customer_id)
    return updated
