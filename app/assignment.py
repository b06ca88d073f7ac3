from __future__ import annotations

from datetime import UTC, datetime
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
from app.lifecycle import ACTIVE_STATUSES, booking_lifecycle
from app.models import (
    Booking,
    BookingEventType,
    BookingItem,
    BookingStatus,
    Employee,
    EmployeeStatus,
    Vendor,
    VendorStatus,
)
from app.schemas import BeauticianAssignment, BookingResponse, EligibleBeautician

S = BookingStatus

# Action-specific preconditions, narrower than the raw transition table.
VENDOR_RESPONSE_STATUSES = (S.PENDING, S.AWAITING_VENDOR_RESPONSE)
BEAUTICIAN_ASSIGNMENT_STATUSES = (S.AWAITING_BEAUTICIAN, S.AWAITING_VENDOR_RESPONSE)


class AssignmentCoordinator:
    """
    Drives the manager -> vendor -> beautician handoff.

    Each action is one conditional transition plus an action-specific event,
    committed together.
    """

    async def vendor_for_user(self, user_id: UUID) -> Vendor:
        vendor = await Vendor.get_or_none(user_id=user_id)
        if vendor is None:
            raise NotFoundError("Vendor not found", code="vendor_not_found")
        return vendor

    async def assign_vendor(
        self, booking_id: UUID, vendor_id: UUID, manager_id: UUID
    ) -> BookingResponse:
        vendor = await Vendor.get_or_none(id=vendor_id, status=VendorStatus.APPROVED)
        if vendor is None:
            raise NotFoundError(
                "Vendor not found or not approved", code="vendor_not_eligible"
            )

        async with store_errors("assign vendor"), in_transaction():
            booking = await booking_lifecycle.transition(
                booking_id,
                S.AWAITING_VENDOR_RESPONSE,
                manager_id,
                allowed_from=(S.AWAITING_MANAGER,),
                changes=dict(
                    vendor_id=vendor.id,
                    manager_id=manager_id,
                    vendor_responded_at=None,
                    beautician_assigned_at=None,
                ),
            )
            await booking_event_log.record(
                booking_id,
                BookingEventType.MANAGER_ASSIGNED_VENDOR,
                {"managerId": manager_id, "vendorId": vendor.id},
            )

        logger.info(
            "Manager {} assigned vendor {} to booking {}",
            manager_id,
            vendor.id,
            booking_id,
        )
        return booking

    async def vendor_respond(
        self,
        booking_id: UUID,
        accept: bool,
        reason: str | None = None,
        vendor_id: UUID | None = None,
    ) -> BookingResponse:
        """
        Accept: hand the booking on to beautician assignment.
        Reject: send it back to the manager with vendor and manager cleared.
        When `vendor_id` is given the booking must be assigned to that vendor.
        """
        now = datetime.now(UTC)
        async with store_errors("record vendor response"), in_transaction():
            if accept:
                booking = await booking_lifecycle.transition(
                    booking_id,
                    S.AWAITING_BEAUTICIAN,
                    vendor_id,
                    allowed_from=VENDOR_RESPONSE_STATUSES,
                    vendor_id=vendor_id,
                    changes=dict(
                        employee_id=None,
                        vendor_responded_at=now,
                        beautician_assigned_at=None,
                    ),
                )
                await booking_event_log.record(
                    booking_id,
                    BookingEventType.VENDOR_ACCEPTED,
                    {"vendorId": booking.vendor_id},
                )
            else:
                booking = await booking_lifecycle.transition(
                    booking_id,
                    S.AWAITING_MANAGER,
                    vendor_id,
                    allowed_from=VENDOR_RESPONSE_STATUSES,
                    vendor_id=vendor_id,
                    changes=dict(manager_id=None, employee_id=None),
                    event_data={"reason": reason},
                )
                await booking_event_log.record(
                    booking_id,
                    BookingEventType.VENDOR_REJECTED,
                    {"vendorId": vendor_id, "reason": reason},
                )

        logger.info(
            "Vendor {} {} booking {}",
            vendor_id,
            "accepted" if accept else "rejected",
            booking_id,
        )
        return booking

    async def _resolve_employee(
        self, ref: BeauticianAssignment, vendor_id: UUID | None, actor_id: UUID | None
    ) -> Employee:
        if ref.employee_id is not None:
            query = Employee.filter(id=ref.employee_id, status=EmployeeStatus.ACTIVE)
            if vendor_id is not None:
                query = query.filter(vendor_id=vendor_id)
            employee = await query.first()
            if employee is None:
                raise NotFoundError("Employee not found", code="employee_not_found")
            return employee

        if ref.beautician is not None:
            details = ref.beautician
            employee = await Employee.create(
                vendor_id=vendor_id,
                name=details.name,
                role=details.role,
                email=details.email,
                phone=details.phone,
                experience=details.experience,
                specialization=details.specialization,
                skills=details.specialization or "",
                status=EmployeeStatus.ACTIVE,
            )
            logger.info(
                "Created employee {} for vendor {} (by {})",
                employee.id,
                vendor_id,
                actor_id,
            )
            return employee

        raise BookingValidationError(
            "Provide either employeeId or beautician details",
            code="beautician_details_required",
        )

    async def assign_beautician(
        self,
        booking_id: UUID,
        ref: BeauticianAssignment,
        actor_id: UUID | None = None,
        vendor_id: UUID | None = None,
    ) -> BookingResponse:
        booking = await Booking.get_or_none(id=booking_id)
        if booking is None:
            raise NotFoundError("Booking not found", code="booking_not_found")
        if vendor_id is not None and booking.vendor_id != vendor_id:
            raise NotFoundError(
                "Booking not found or not assigned to this vendor",
                code="booking_not_found",
            )
        if booking.status not in BEAUTICIAN_ASSIGNMENT_STATUSES:
            raise ConflictError(
                f"Booking is '{booking.status}', not awaiting beautician assignment",
                code="invalid_transition",
            )

        async with store_errors("assign beautician"), in_transaction():
            employee = await self._resolve_employee(ref, booking.vendor_id, actor_id)
            updated = await booking_lifecycle.transition(
                booking_id,
                S.CONFIRMED,
                actor_id,
                allowed_from=BEAUTICIAN_ASSIGNMENT_STATUSES,
                vendor_id=vendor_id,
                changes=dict(
                    employee_id=employee.id,
                    beautician_assigned_at=datetime.now(UTC),
                ),
            )
            await booking_event_log.record(
                booking_id,
                BookingEventType.BEAUTICIAN_ASSIGNED,
                {"vendorId": updated.vendor_id, "employeeId": employee.id},
            )

        logger.info("Beautician {} assigned to booking {}", employee.id, booking_id)
        return updated

    async def cancel(
        self, booking_id: UUID, reason: str | None, actor_id: UUID | None = None
    ) -> BookingResponse:
        """Cancel from any non-terminal status. Party ids are kept for audit."""
        async with store_errors("cancel booking"), in_transaction():
            booking = await booking_lifecycle.transition(
                booking_id,
                S.CANCELLED,
                actor_id,
                allowed_from=ACTIVE_STATUSES,
                changes=dict(cancellation_reason=reason or "Cancelled by user"),
            )
            await booking_event_log.record(
                booking_id,
                BookingEventType.CANCELLED,
                {"reason": reason, "cancelledBy": actor_id},
            )

        logger.info("Booking {} cancelled by {}", booking_id, actor_id)
        return booking

    async def eligible_beauticians(self, booking_id: UUID) -> list[EligibleBeautician]:
        """
        Rank active beauticians for a booking by skill keywords.

        Keywords are the item names and categories. An employee scores one
        point per keyword found in its skills text. Zero scorers are dropped
        unless nobody scored, in which case everyone is offered as fallback.
        """
        booking = await Booking.get_or_none(id=booking_id)
        if booking is None:
            raise NotFoundError("Booking not found", code="booking_not_found")

        items = await BookingItem.filter(booking_id=booking_id)
        keywords: list[str] = []
        for item in items:
            for word in (item.name, item.category):
                if word and word.lower() not in keywords:
                    keywords.append(word.lower())

        qs = Employee.filter(status=EmployeeStatus.ACTIVE)
        if booking.vendor_id is not None:
            qs = qs.filter(vendor_id=booking.vendor_id)
        employees = await qs

        scored = []
        for emp in employees:
            skills = (emp.skills or "").lower()
            matched = [k for k in keywords if k in skills]
            scored.append((emp, matched))

        if keywords and any(matched for _, matched in scored):
            scored = [(emp, matched) for emp, matched in scored if matched]
        scored.sort(key=lambda pair: len(pair[1]), reverse=True)

        return [
            EligibleBeautician(
                id=emp.id,
                name=emp.name,
                skills=emp.skills,
                phone=emp.phone,
                specialization=emp.specialization,
                score=len(matched),
                matched_skills=matched,
                match_type="skills_match" if matched else "available",
            )
            for emp, matched in scored
        ]


assignment_coordinator = AssignmentCoordinator()
