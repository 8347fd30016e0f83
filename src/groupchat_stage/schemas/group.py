"""Group-related Pydantic schemas."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Annotated, Literal

from pydantic import AfterValidator, EmailStr, Field

from .common import CamelModel
from .message import MessageResponse
from .user import UserResponse, UserSummary

GROUP_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9\s\-_]+$")


def _check_group_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Group name is required")
    if not 2 <= len(value) <= 100:
        raise ValueError("Group name must be between 2 and 100 characters")
    if not GROUP_NAME_PATTERN.match(value):
        raise ValueError(
            "Group name can only contain letters, numbers, spaces, hyphens, and underscores"
        )
    return value


def _strip(value: str) -> str:
    return value.strip()


GroupName = Annotated[str, AfterValidator(_check_group_name)]
Description = Annotated[str, Field(max_length=500), AfterValidator(_strip)]
Capacity = Annotated[int, Field(ge=1, le=1000)]
MemberRoleLiteral = Literal["admin", "moderator", "member"]


class GroupCreate(CamelModel):
    """Schema for creating a new group."""

    name: GroupName
    description: Description | None = None
    is_public: bool = False
    max_members: Capacity | None = None


class GroupUpdate(CamelModel):
    """Partial group update; omitted fields stay unchanged."""

    name: GroupName | None = None
    description: Description | None = None
    is_public: bool | None = None
    max_members: Capacity | None = None


class GroupResponse(CamelModel):
    """Schema for group information returned by the API."""

    id: int
    name: str
    description: str | None = None
    is_public: bool
    max_members: int
    created_by_id: int | None = None
    created_at: datetime
    updated_at: datetime


class GroupWithCount(GroupResponse):
    """Group with its active member count."""

    member_count: int

    @classmethod
    def from_group(cls, group: object, member_count: int) -> GroupWithCount:
        base = GroupResponse.model_validate(group).model_dump()
        return cls(**base, member_count=member_count)


class UserGroup(GroupResponse):
    """A group from the caller's point of view."""

    user_role: str
    joined_at: datetime

    @classmethod
    def from_membership(cls, membership: object) -> UserGroup:
        base = GroupResponse.model_validate(membership.group).model_dump()  # type: ignore[attr-defined]
        return cls(
            **base,
            user_role=membership.role,  # type: ignore[attr-defined]
            joined_at=membership.joined_at,  # type: ignore[attr-defined]
        )


class GroupData(CamelModel):
    """Group snapshot with its opening messages."""

    group: GroupWithCount
    messages: list[MessageResponse]
    user_role: str | None = None

    @classmethod
    def from_snapshot(cls, snapshot: object) -> GroupData:
        """Build from a ``services.groups.GroupSnapshot``."""
        return cls(
            group=GroupWithCount.from_group(snapshot.group, snapshot.member_count),  # type: ignore[attr-defined]
            messages=[
                MessageResponse.model_validate(m) for m in snapshot.messages  # type: ignore[attr-defined]
            ],
            user_role=snapshot.user_role,  # type: ignore[attr-defined]
        )


class AuthResponse(CamelModel):
    """Signup/login result: token, account and landing group."""

    success: bool = True
    message: str
    token: str
    user: UserResponse
    group: GroupWithCount
    messages: list[MessageResponse]


class MemberResponse(CamelModel):
    """An active member of a group."""

    id: int
    user: UserSummary
    role: str
    joined_at: datetime
    is_active: bool


class MemberRoleUpdate(CamelModel):
    """New role for a group member."""

    role: MemberRoleLiteral


class InviteRequest(CamelModel):
    """Invite an existing account by email."""

    email: EmailStr


class InvitationResponse(CamelModel):
    """Invitation into a group."""

    id: int
    group_id: int
    group_name: str | None = None
    user: UserSummary
    invited_by_id: int | None = None
    invited_at: datetime
    status: str
