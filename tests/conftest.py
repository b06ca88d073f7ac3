"""
Shared pytest fixtures available to every test file automatically.
No imports needed in test files, pytest discovers this by convention.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from tortoise import Tortoise

from app.deps import (
    can_act_as_vendor,
    can_cancel_booking,
    can_generate_invoice,
    can_manage_booking,
    can_read_booking,
    can_staff_booking,
    can_view_finance,
    can_write_booking,
    get_current_user,
    get_notifications_client,
)
from app.routers import assignment, booking, invoice

from .factories import make_admin, make_customer, make_manager, make_vendor_user

# ---------------------------------------------------------------------------
# Default no-op collaborators: prevent real HTTP / redis calls in tests
# ---------------------------------------------------------------------------


def _noop_notifications_client():
    mock = MagicMock()
    mock.notify_booking_confirmed = AsyncMock(return_value=True)
    mock.notify_beautician_assigned = AsyncMock(return_value=True)
    mock.notify_customer_beautician_assigned = AsyncMock(return_value=True)
    return mock


@pytest.fixture(autouse=True)
def fake_redis():
    """Every test gets an empty in-process stand-in for the redis connection."""
    mock = MagicMock()
    mock.get = AsyncMock(return_value=None)
    mock.setex = AsyncMock(return_value=True)
    mock.delete = AsyncMock(return_value=1)
    with patch("app.cache.get_redis", return_value=mock):
        yield mock


# ---------------------------------------------------------------------------
# App builder, used by all client fixtures
# ---------------------------------------------------------------------------


def _bare_app() -> FastAPI:
    app = FastAPI()
    app.include_router(booking.router)
    app.include_router(assignment.router)
    app.include_router(invoice.router)
    return app


def build_app(current_user, notifications_client=None) -> FastAPI:
    """
    Fresh FastAPI app with auth/scope dependencies overridden to return
    `current_user` unconditionally.

    Pass `notifications_client` to inject a custom mock. Defaults to a no-op
    mock, avoiding real HTTP calls.
    """
    app = _bare_app()

    async def _user():
        return current_user

    for dep in (
        can_read_booking,
        can_write_booking,
        can_cancel_booking,
        can_manage_booking,
        can_act_as_vendor,
        can_staff_booking,
        can_generate_invoice,
        can_view_finance,
        get_current_user,
    ):
        app.dependency_overrides[dep] = _user

    nc = (
        notifications_client
        if notifications_client is not None
        else _noop_notifications_client()
    )
    app.dependency_overrides[get_notifications_client] = lambda: nc

    return app


# ---------------------------------------------------------------------------
# Reusable client fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def customer_client():
    return TestClient(build_app(make_customer()), raise_server_exceptions=True)


@pytest.fixture()
def manager_client():
    return TestClient(build_app(make_manager()), raise_server_exceptions=True)


@pytest.fixture()
def vendor_client():
    return TestClient(build_app(make_vendor_user()), raise_server_exceptions=True)


@pytest.fixture()
def admin_client():
    return TestClient(build_app(make_admin()), raise_server_exceptions=True)


@pytest.fixture()
def anon_app():
    """
    Bare app with NO dependency overrides.
    Use this when you want real scope/auth deps to run so you can assert 401/403/422.
    """
    return _bare_app()


@pytest.fixture()
def client_factory():
    def _make(current_user, notifications_client=None) -> TestClient:
        return TestClient(
            build_app(current_user, notifications_client=notifications_client),
            raise_server_exceptions=True,
        )

    return _make


# ---------------------------------------------------------------------------
# Database: fresh in-memory SQLite per test for domain-layer tests
# ---------------------------------------------------------------------------


@pytest.fixture()
async def db():
    await Tortoise.init(db_url="sqlite://:memory:", modules={"models": ["app.models"]})
    await Tortoise.generate_schemas()
    yield
    await Tortoise.close_connections()
