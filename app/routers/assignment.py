from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status

from app.assignment import assignment_coordinator
from app.cache import invalidate_stats_cache
from app.crud import booking_crud
from app.deps import (
    CurrentUser,
    NotificationsClient,
    can_act_as_vendor,
    can_manage_booking,
    can_staff_booking,
    get_notifications_client,
)
from app.schemas import (
    BeauticianAssignment,
    BookingResponse,
    EligibleBeautician,
    VendorAssignment,
    VendorResponse,
)

router = APIRouter(prefix="/bookings", tags=["assignment"])


async def _acting_vendor_id(current_user: CurrentUser) -> UUID | None:
    """None for managers/admins, otherwise the caller's own shop."""
    if current_user.can_write_all:
        return None
    vendor = await assignment_coordinator.vendor_for_user(current_user.id)
    return vendor.id


@router.put("/{booking_id}/assign-vendor", response_model=BookingResponse)
async def assign_vendor(
    booking_id: UUID,
    payload: VendorAssignment,
    current_user: CurrentUser = Depends(can_manage_booking),
) -> BookingResponse:
    booking = await assignment_coordinator.assign_vendor(
        booking_id, payload.vendor_id, current_user.id
    )
    await invalidate_stats_cache(booking.customer_id)
    return booking


@router.put("/{booking_id}/respond", response_model=BookingResponse)
async def respond_to_booking(
    booking_id: UUID,
    payload: VendorResponse,
    current_user: CurrentUser = Depends(can_act_as_vendor),
) -> BookingResponse:
    vendor = await assignment_coordinator.vendor_for_user(current_user.id)
    booking = await assignment_coordinator.vendor_respond(
        booking_id, payload.accept, payload.reason, vendor_id=vendor.id
    )
    await invalidate_stats_cache(booking.customer_id)
    return booking


@router.put("/{booking_id}/assign-beautician", response_model=BookingResponse)
async def assign_beautician(
    booking_id: UUID,
    payload: BeauticianAssignment,
    background_tasks: BackgroundTasks,
    current_user: CurrentUser = Depends(can_staff_booking),
    notifications: NotificationsClient = Depends(get_notifications_client),
) -> BookingResponse:
    booking = await assignment_coordinator.assign_beautician(
        booking_id,
        payload,
        actor_id=current_user.id,
        vendor_id=await _acting_vendor_id(current_user),
    )
    await invalidate_stats_cache(booking.customer_id)
    background_tasks.add_task(notifications.notify_beautician_assigned, booking)
    background_tasks.add_task(
        notifications.notify_customer_beautician_assigned, booking
    )
    return booking


@router.get(
    "/{booking_id}/eligible-beauticians", response_model=list[EligibleBeautician]
)
async def eligible_beauticians(
    booking_id: UUID,
    current_user: CurrentUser = Depends(can_staff_booking),
) -> list[EligibleBeautician]:
    vendor_id = await _acting_vendor_id(current_user)
    if vendor_id is not None:
        booking = await booking_crud.get_booking(booking_id, vendor_id=vendor_id)
        if not booking:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found"
            )
    return await assignment_coordinator.eligible_beauticians(booking_id)
