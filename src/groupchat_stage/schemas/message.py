"""Message-related Pydantic schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from .common import CamelModel
from .user import UserSummary


class MessageSend(CamelModel):
    """Payload for posting a message to a group.

    Content and type rules are enforced by the access engine so the same
    checks apply to every caller, not just HTTP clients.
    """

    content: str
    message_type: str = "text"


class MessageEdit(CamelModel):
    """Replacement content for an existing message."""

    content: str


class MarkReadRequest(CamelModel):
    """Messages to mark as read for the caller."""

    message_ids: list[int] = Field(..., min_length=1)


class ReadReceipt(CamelModel):
    """A user that has seen a message and when."""

    user_id: int
    read_at: datetime


class MessageResponse(CamelModel):
    """Message with its sender and read receipts."""

    id: int
    content: str
    sender: UserSummary
    group_id: int
    message_type: str
    read_by: list[ReadReceipt] = []
    created_at: datetime
    updated_at: datetime


class PaginationMeta(CamelModel):
    """Page bookkeeping for message history."""

    current_page: int
    total_pages: int
    total_messages: int
    has_next: bool
    has_prev: bool


class MessagePage(CamelModel):
    """One page of history, oldest message first."""

    messages: list[MessageResponse]
    pagination: PaginationMeta


class UnreadCountResponse(CamelModel):
    """Unread messages for the caller in a group."""

    unread_count: int
    group_id: int
    user_id: int


class MarkReadResponse(CamelModel):
    """Result of a bulk mark-read."""

    marked_count: int
    group_id: int
    user_id: int
