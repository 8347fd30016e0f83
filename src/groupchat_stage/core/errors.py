"""Typed failures raised by the service layer.

Services never build HTTP responses themselves. They raise one of the errors
below and the handlers registered in :mod:`groupchat_stage.main` translate
each class to its status code.
"""

from __future__ import annotations

from fastapi import status


class AppError(Exception):
    """Base class for failures that carry a user-visible message."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, errors: list[dict[str, str]] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors = errors or []


class InvalidArgumentError(AppError):
    """Malformed input or a request the current state cannot accept."""

    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedError(AppError):
    """Missing or wrong credentials."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(AppError):
    """Authenticated, but not allowed to do this."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    """A referenced user, group, message or invitation does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    """Uniqueness or state violation."""

    status_code = status.HTTP_409_CONFLICT


class LastAdminError(ConflictError):
    """The operation would leave a group without an active admin."""


class InternalError(AppError):
    """Unexpected failure; safe to retry for idempotent operations."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


__all__ = [
    "AppError",
    "InvalidArgumentError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "LastAdminError",
    "InternalError",
]
