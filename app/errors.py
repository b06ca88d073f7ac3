"""
Domain error taxonomy.

Every error is an HTTPException so the domain layer can raise it directly and
FastAPI renders it without extra handlers. `code` is a stable machine-readable
tag that callers (and tests) can branch on; `detail` is the human message.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import HTTPException, status
from loguru import logger
from tortoise.exceptions import BaseORMException


class BookingError(HTTPException):
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: str = "booking_error"

    def __init__(self, detail: str, code: str | None = None) -> None:
        super().__init__(status_code=self.http_status, detail=detail)
        self.code = code or self.default_code


class BookingValidationError(BookingError):
    """Missing or malformed input. Nothing was written."""

    http_status = status.HTTP_400_BAD_REQUEST
    default_code = "validation_error"


class NotFoundError(BookingError):
    """A referenced record is absent or not in an eligible state."""

    http_status = status.HTTP_404_NOT_FOUND
    default_code = "not_found"


class ConflictError(BookingError):
    """The booking exists but its status does not allow the action."""

    http_status = status.HTTP_409_CONFLICT
    default_code = "conflict"


class StoreError(BookingError):
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "store_failure"


@asynccontextmanager
async def store_errors(action: str) -> AsyncIterator[None]:
    """Convert ORM failures raised inside the block into StoreError."""
    try:
        yield
    except BaseORMException as exc:
        logger.exception("Store failure while trying to {}", action)
        raise StoreError(f"Failed to {action}") from exc
