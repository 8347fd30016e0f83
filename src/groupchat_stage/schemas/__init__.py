# src/groupchat_stage/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .common import CamelModel, StatusMessage
from .group import (
    AuthResponse,
    GroupCreate,
    GroupData,
    GroupResponse,
    GroupUpdate,
    GroupWithCount,
    InvitationResponse,
    InviteRequest,
    MemberResponse,
    MemberRoleUpdate,
    UserGroup,
)
from .message import (
    MarkReadRequest,
    MarkReadResponse,
    MessageEdit,
    MessagePage,
    MessageResponse,
    MessageSend,
    PaginationMeta,
    UnreadCountResponse,
)
from .user import (
    AdminUserCreate,
    AdminUserUpdate,
    ChangePasswordRequest,
    LoginRequest,
    OnlineSummary,
    SignupRequest,
    UserResponse,
    UserWithStatus,
)

__all__ = [
    "CamelModel", "StatusMessage",
    "AuthResponse", "GroupCreate", "GroupData", "GroupResponse", "GroupUpdate",
    "GroupWithCount", "InvitationResponse", "InviteRequest", "MemberResponse",
    "MemberRoleUpdate", "UserGroup",
    "MarkReadRequest", "MarkReadResponse", "MessageEdit", "MessagePage",
    "MessageResponse", "MessageSend", "PaginationMeta", "UnreadCountResponse",
    "AdminUserCreate", "AdminUserUpdate", "ChangePasswordRequest", "LoginRequest",
    "OnlineSummary", "SignupRequest", "UserResponse", "UserWithStatus",
]
