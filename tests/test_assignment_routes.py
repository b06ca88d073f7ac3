"""
Endpoint tests for the assignment routes under /bookings.

The AssignmentCoordinator singleton is patched per-test (no DB).
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

from app.errors import ConflictError, NotFoundError
from app.schemas import BookingResponse

from .factories import (
    BOOKING_ID,
    EMPLOYEE_ID,
    MANAGER_ID,
    VENDOR_ID,
    VENDOR_USER_ID,
    booking_detail_response,
    booking_response,
    make_manager,
    make_vendor_user,
)

COORDINATOR_PATH = "app.routers.assignment.assignment_coordinator"
CRUD_PATH = "app.routers.assignment.booking_crud"


def _vendor():
    vendor = MagicMock()
    vendor.id = VENDOR_ID
    vendor.user_id = VENDOR_USER_ID
    return vendor


def _booking(**overrides) -> BookingResponse:
    return BookingResponse(**booking_response(**overrides))


class TestAssignVendor:
    def test_manager_assigns(self, manager_client):
        with patch(COORDINATOR_PATH) as mock_coord:
            mock_coord.assign_vendor = AsyncMock(
                return_value=_booking(
                    status="AWAITING_VENDOR_RESPONSE", vendor_id=str(VENDOR_ID)
                )
            )
            resp = manager_client.put(
                f"/bookings/{BOOKING_ID}/assign-vendor",
                json={"vendor_id": str(VENDOR_ID)},
            )
        assert resp.status_code == 200
        assert resp.json()["status"] == "AWAITING_VENDOR_RESPONSE"
        mock_coord.assign_vendor.assert_awaited_once_with(
            BOOKING_ID, VENDOR_ID, MANAGER_ID
        )

    def test_ineligible_vendor_returns_404(self, manager_client):
        with patch(COORDINATOR_PATH) as mock_coord:
            mock_coord.assign_vendor = AsyncMock(
                side_effect=NotFoundError(
                    "Vendor not found or not approved", code="vendor_not_eligible"
                )
            )
            resp = manager_client.put(
                f"/bookings/{BOOKING_ID}/assign-vendor",
                json={"vendor_id": str(uuid4())},
            )
        assert resp.status_code == 404

    def test_missing_vendor_id_returns_422(self, manager_client):
        resp = manager_client.put(f"/bookings/{BOOKING_ID}/assign-vendor", json={})
        assert resp.status_code == 422

    def test_vendor_scope_is_not_enough(self, anon_app):
        from fastapi.testclient import TestClient

        from app.deps import get_current_user

        async def _vendor_user():
            return make_vendor_user()

        anon_app.dependency_overrides[get_current_user] = _vendor_user
        with TestClient(anon_app) as c:
            resp = c.put(
                f"/bookings/{BOOKING_ID}/assign-vendor",
                json={"vendor_id": str(VENDOR_ID)},
            )
        assert resp.status_code == 403


class TestRespond:
    def test_vendor_accepts(self, vendor_client):
        with patch(COORDINATOR_PATH) as mock_coord:
            mock_coord.vendor_for_user = AsyncMock(return_value=_vendor())
            mock_coord.vendor_respond = AsyncMock(
                return_value=_booking(status="AWAITING_BEAUTICIAN")
            )
            resp = vendor_client.put(
                f"/bookings/{BOOKING_ID}/respond", json={"accept": True}
            )
        assert resp.status_code == 200
        mock_coord.vendor_respond.assert_awaited_once_with(
            BOOKING_ID, True, None, vendor_id=VENDOR_ID
        )

    def test_vendor_rejects_with_reason(self, vendor_client):
        with patch(COORDINATOR_PATH) as mock_coord:
            mock_coord.vendor_for_user = AsyncMock(return_value=_vendor())
            mock_coord.vendor_respond = AsyncMock(
                return_value=_booking(status="AWAITING_MANAGER")
            )
            resp = vendor_client.put(
                f"/bookings/{BOOKING_ID}/respond",
                json={"accept": False, "reason": "No staff that day"},
            )
        assert resp.status_code == 200
        args, _ = mock_coord.vendor_respond.call_args
        assert args[1] is False
        assert args[2] == "No staff that day"

    def test_user_without_shop_gets_404(self, vendor_client):
        with patch(COORDINATOR_PATH) as mock_coord:
            mock_coord.vendor_for_user = AsyncMock(
                side_effect=NotFoundError("Vendor not found", code="vendor_not_found")
            )
            resp = vendor_client.put(
                f"/bookings/{BOOKING_ID}/respond", json={"accept": True}
            )
        assert resp.status_code == 404

    def test_wrong_state_returns_409(self, vendor_client):
        with patch(COORDINATOR_PATH) as mock_coord:
            mock_coord.vendor_for_user = AsyncMock(return_value=_vendor())
            mock_coord.vendor_respond = AsyncMock(
                side_effect=ConflictError("nope", code="invalid_transition")
            )
            resp = vendor_client.put(
                f"/bookings/{BOOKING_ID}/respond", json={"accept": True}
            )
        assert resp.status_code == 409


class TestAssignBeautician:
    def test_vendor_assigns_own_employee(self, client_factory):
        notifications = MagicMock()
        notifications.notify_beautician_assigned = AsyncMock(return_value=True)
        notifications.notify_customer_beautician_assigned = AsyncMock(
            return_value=True
        )
        client = client_factory(make_vendor_user(), notifications_client=notifications)
        with patch(COORDINATOR_PATH) as mock_coord:
            mock_coord.vendor_for_user = AsyncMock(return_value=_vendor())
            mock_coord.assign_beautician = AsyncMock(
                return_value=_booking(
                    status="CONFIRMED", employee_id=str(EMPLOYEE_ID)
                )
            )
            resp = client.put(
                f"/bookings/{BOOKING_ID}/assign-beautician",
                json={"employee_id": str(EMPLOYEE_ID)},
            )
        assert resp.status_code == 200
        assert resp.json()["employee_id"] == str(EMPLOYEE_ID)
        _, kwargs = mock_coord.assign_beautician.call_args
        assert kwargs["vendor_id"] == VENDOR_ID
        notifications.notify_beautician_assigned.assert_awaited_once()
        notifications.notify_customer_beautician_assigned.assert_awaited_once()

    def test_manager_assigns_without_vendor_restriction(self, manager_client):
        with patch(COORDINATOR_PATH) as mock_coord:
            mock_coord.assign_beautician = AsyncMock(
                return_value=_booking(status="CONFIRMED")
            )
            resp = manager_client.put(
                f"/bookings/{BOOKING_ID}/assign-beautician",
                json={"beautician": {"name": "Njeri", "phone": "+254700000003"}},
            )
        assert resp.status_code == 200
        args, kwargs = mock_coord.assign_beautician.call_args
        assert kwargs["vendor_id"] is None
        assert args[1].beautician.name == "Njeri"

    def test_failed_assignment_sends_no_notification(self, client_factory):
        notifications = MagicMock()
        notifications.notify_beautician_assigned = AsyncMock()
        client = client_factory(make_manager(), notifications_client=notifications)
        with patch(COORDINATOR_PATH) as mock_coord:
            mock_coord.assign_beautician = AsyncMock(
                side_effect=ConflictError("pending", code="invalid_transition")
            )
            resp = client.put(
                f"/bookings/{BOOKING_ID}/assign-beautician",
                json={"employee_id": str(EMPLOYEE_ID)},
            )
        assert resp.status_code == 409
        notifications.notify_beautician_assigned.assert_not_awaited()


class TestEligibleBeauticians:
    def _result(self):
        return [
            dict(
                id=str(EMPLOYEE_ID),
                name="Wanjiru",
                skills="Braiding",
                phone=None,
                specialization=None,
                score=1,
                matched_skills=["braiding"],
                match_type="skills_match",
            )
        ]

    def test_manager_lists(self, manager_client):
        with patch(COORDINATOR_PATH) as mock_coord:
            mock_coord.eligible_beauticians = AsyncMock(return_value=self._result())
            resp = manager_client.get(f"/bookings/{BOOKING_ID}/eligible-beauticians")
        assert resp.status_code == 200
        assert resp.json()[0]["match_type"] == "skills_match"

    def test_vendor_limited_to_own_booking(self, vendor_client):
        with (
            patch(COORDINATOR_PATH) as mock_coord,
            patch(CRUD_PATH) as mock_crud,
        ):
            mock_coord.vendor_for_user = AsyncMock(return_value=_vendor())
            mock_crud.get_booking = AsyncMock(return_value=None)
            mock_coord.eligible_beauticians = AsyncMock()
            resp = vendor_client.get(f"/bookings/{BOOKING_ID}/eligible-beauticians")
        assert resp.status_code == 404
        mock_crud.get_booking.assert_awaited_once_with(BOOKING_ID, vendor_id=VENDOR_ID)
        mock_coord.eligible_beauticians.assert_not_awaited()

    def test_vendor_sees_own_booking(self, vendor_client):
        with (
            patch(COORDINATOR_PATH) as mock_coord,
            patch(CRUD_PATH) as mock_crud,
        ):
            mock_coord.vendor_for_user = AsyncMock(return_value=_vendor())
            mock_crud.get_booking = AsyncMock(return_value=booking_detail_response())
            mock_coord.eligible_beauticians = AsyncMock(return_value=self._result())
            resp = vendor_client.get(f"/bookings/{BOOKING_ID}/eligible-beauticians")
        assert resp.status_code == 200
