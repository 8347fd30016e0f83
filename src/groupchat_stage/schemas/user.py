"""User-related Pydantic schemas."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Annotated, Literal

from pydantic import AfterValidator, EmailStr, Field

from .common import CamelModel

NAME_PATTERN = re.compile(r"^[a-zA-Z\s]+$")
# At least one lowercase letter, one uppercase letter and one digit.
PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")
EMAIL_MAX_LENGTH = 100


def _check_name(value: str) -> str:
    value = value.strip()
    if not 2 <= len(value) <= 50:
        raise ValueError("Name must be between 2 and 50 characters")
    if not NAME_PATTERN.match(value):
        raise ValueError("Name can only contain letters and spaces")
    return value


def _check_password(value: str) -> str:
    if len(value) < 6:
        raise ValueError("Password must be at least 6 characters long")
    if len(value) > 128:
        raise ValueError("Password cannot exceed 128 characters")
    if not PASSWORD_PATTERN.match(value):
        raise ValueError(
            "Password must contain at least one lowercase letter, "
            "one uppercase letter, and one number"
        )
    return value


def _normalize_email(value: str) -> str:
    value = value.strip().lower()
    if len(value) > EMAIL_MAX_LENGTH:
        raise ValueError(f"Email cannot exceed {EMAIL_MAX_LENGTH} characters")
    return value


PersonName = Annotated[str, AfterValidator(_check_name)]
StrongPassword = Annotated[str, AfterValidator(_check_password)]
NormalizedEmail = Annotated[EmailStr, AfterValidator(_normalize_email)]
UserRoleLiteral = Literal["super_admin", "admin", "user"]


class SignupRequest(CamelModel):
    """Self-service registration payload."""

    name: PersonName
    email: NormalizedEmail
    password: StrongPassword
    assigned_group: int | None = None


class LoginRequest(CamelModel):
    """Email and password credentials."""

    email: NormalizedEmail
    password: str = Field(..., min_length=1, max_length=128)


class ChangePasswordRequest(CamelModel):
    """Payload for rotating the caller's password."""

    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: StrongPassword


class AdminUserCreate(CamelModel):
    """Account created by a system administrator."""

    name: PersonName
    email: NormalizedEmail
    password: StrongPassword
    role: UserRoleLiteral
    assigned_group: int | None = None


class AdminUserUpdate(CamelModel):
    """Partial account update applied by a system administrator.

    ``assigned_group`` is always applied: omitting it clears the assignment.
    """

    name: PersonName | None = None
    email: NormalizedEmail | None = None
    password: StrongPassword | None = None
    role: UserRoleLiteral | None = None
    assigned_group: int | None = None


class GroupRef(CamelModel):
    """Minimal group reference embedded in user payloads."""

    id: int
    name: str


class UserSummary(CamelModel):
    """Sender/inviter reference embedded in other payloads."""

    id: int
    name: str
    email: str


class UserResponse(CamelModel):
    """Public view of an account; never carries the password hash."""

    id: int
    name: str
    email: str
    role: str
    assigned_group_id: int | None = None
    assigned_group: GroupRef | None = None
    is_online: bool = False
    last_active: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UserWithStatus(UserResponse):
    """Account view with the derived online flag."""

    is_currently_online: bool = False


class OnlineUser(CamelModel):
    """Entry in the online users summary."""

    id: int
    name: str
    email: str
    last_active: datetime | None = None


class OnlineSummary(CamelModel):
    """Presence overview across all accounts."""

    online_count: int
    total_count: int
    online_percentage: int
    online_users: list[OnlineUser]
