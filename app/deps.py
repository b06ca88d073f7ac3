from dataclasses import dataclass, field
from functools import lru_cache
from urllib.parse import unquote
from uuid import UUID

import httpx
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from loguru import logger

from app import settings
from app.assignment import assignment_coordinator
from app.crud import booking_crud
from app.schemas import BookingDetail, BookingResponse
from app.scopes import BOOKING_SCOPE_DESCRIPTIONS, BookingScope

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.users_ms_url}/auth/token",
    scopes=BOOKING_SCOPE_DESCRIPTIONS,
)


@dataclass
class CurrentUser:
    id: UUID
    username: str
    scopes: list[str] = field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return BookingScope.ADMIN in self.scopes

    @property
    def can_read_all(self) -> bool:
        """Managers and admins see every booking."""
        return (
            self.is_admin
            or BookingScope.ADMIN_READ in self.scopes
            or BookingScope.MANAGE in self.scopes
        )

    @property
    def can_write_all(self) -> bool:
        """Managers and admins may move any booking."""
        return (
            self.is_admin
            or BookingScope.ADMIN_WRITE in self.scopes
            or BookingScope.MANAGE in self.scopes
        )


def get_current_user(
    x_user_id: str = Header(...),
    x_username: str = Header(...),
    x_user_scopes: str = Header(default=""),
) -> CurrentUser:
    """
    Reads the headers injected by the gateway after forwardAuth validation.
    The JWT has already been verified, these headers are trusted as-is.
    """
    try:
        user_id = UUID(x_user_id)
    except (ValueError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user identity from gateway",
        ) from None

    scopes = x_user_scopes.split(" ") if x_user_scopes else []

    return CurrentUser(id=user_id, username=unquote(x_username), scopes=scopes)


def require_scopes(*required: str):
    """
    Factory that returns a dependency enforcing one or more scopes.

    Usage:
        @router.get("/protected")
        async def route(user = Depends(require_scopes("bookings:read"))):
            ...
    """

    async def _dep(
        current_user: CurrentUser = Depends(get_current_user),
    ) -> CurrentUser:
        missing = [s for s in required if s not in current_user.scopes]
        if missing:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing required scopes: {', '.join(missing)}",
            )
        return current_user

    return _dep


def require_any_scope(*accepted: str):
    """Like require_scopes, but one of the listed scopes is enough."""

    async def _dep(
        current_user: CurrentUser = Depends(get_current_user),
    ) -> CurrentUser:
        if not any(s in current_user.scopes for s in accepted):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires one of: {', '.join(accepted)}",
            )
        return current_user

    return _dep


# ---------------------------------------------------------------------------
# Pre-built scope dependencies
# ---------------------------------------------------------------------------

can_write_booking = require_scopes(BookingScope.WRITE)
can_act_as_vendor = require_scopes(BookingScope.VENDOR)
can_generate_invoice = require_scopes(BookingScope.INVOICE)
can_view_finance = require_scopes(BookingScope.ADMIN_FINANCE)

can_read_booking = require_any_scope(
    BookingScope.READ,
    BookingScope.MANAGE,
    BookingScope.VENDOR,
    BookingScope.ADMIN,
    BookingScope.ADMIN_READ,
)
can_manage_booking = require_any_scope(
    BookingScope.MANAGE, BookingScope.ADMIN, BookingScope.ADMIN_WRITE
)
can_cancel_booking = require_any_scope(
    BookingScope.CANCEL,
    BookingScope.MANAGE,
    BookingScope.ADMIN,
    BookingScope.ADMIN_WRITE,
)
can_staff_booking = require_any_scope(
    BookingScope.VENDOR,
    BookingScope.MANAGE,
    BookingScope.ADMIN,
    BookingScope.ADMIN_WRITE,
)


# ---------------------------------------------------------------------------
# NotificationsClient: thin async wrapper around notifications-ms
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def _get_notifications_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=settings.notifications_ms_url,
        timeout=httpx.Timeout(5.0),
        follow_redirects=True,
    )


class NotificationsClient:
    """
    Fire-and-forget notifications about booking milestones.
    Scheduled through BackgroundTasks once the state change is committed.
    Failures are logged and swallowed: a lost notification never undoes a
    booking transition.
    """

    @property
    def _client(self) -> httpx.AsyncClient:
        return _get_notifications_http_client()

    async def _send(self, path: str, booking: BookingResponse) -> bool:
        try:
            resp = await self._client.post(
                path, json={"booking": booking.model_dump(mode="json")}
            )
        except httpx.RequestError:
            logger.warning(
                "Notification {} for booking {} failed", path, booking.id, exc_info=True
            )
            return False
        if resp.status_code >= 400:
            logger.warning(
                "Notification {} for booking {} rejected with {}",
                path,
                booking.id,
                resp.status_code,
            )
            return False
        return True

    async def notify_booking_confirmed(self, booking: BookingResponse) -> bool:
        return await self._send("/notifications/booking-confirmed", booking)

    async def notify_beautician_assigned(self, booking: BookingResponse) -> bool:
        return await self._send("/notifications/beautician-assigned", booking)

    async def notify_customer_beautician_assigned(
        self, booking: BookingResponse
    ) -> bool:
        return await self._send("/notifications/customer-beautician-assigned", booking)


_notifications_client = NotificationsClient()


def get_notifications_client() -> NotificationsClient:
    return _notifications_client


# ---------------------------------------------------------------------------
# Booking visibility
# ---------------------------------------------------------------------------


async def booking_visibility(current_user: CurrentUser) -> dict[str, UUID]:
    """
    Ownership filters for read queries.
      - managers / admins  : no filter
      - vendors            : bookings assigned to their shop
      - customers          : their own bookings
    """
    if current_user.can_read_all:
        return {}
    if (
        BookingScope.VENDOR in current_user.scopes
        and BookingScope.READ not in current_user.scopes
    ):
        vendor = await assignment_coordinator.vendor_for_user(current_user.id)
        return {"vendor_id": vendor.id}
    return {"customer_id": current_user.id}


async def get_visible_booking(
    booking_id: UUID, current_user: CurrentUser
) -> BookingDetail:
    booking = await booking_crud.get_booking(
        booking_id, **await booking_visibility(current_user)
    )
    if not booking:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found"
        )
    return booking
