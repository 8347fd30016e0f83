# src/groupchat_stage/api/v1/endpoints/messages.py
"""Group message endpoints for the Group Chat API."""

from __future__ import annotations

from fastapi import APIRouter, status

from groupchat_stage.schemas.common import StatusMessage
from groupchat_stage.schemas.message import (
    MarkReadRequest,
    MarkReadResponse,
    MessageEdit,
    MessagePage,
    MessageResponse,
    MessageSend,
    PaginationMeta,
    UnreadCountResponse,
)
from groupchat_stage.services.access import DEFAULT_PAGE_SIZE, AccessEngine

from ..dependencies import CurrentUserDep, SessionDep

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post(
    "/{group_id}/send",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    group_id: int,
    payload: MessageSend,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> MessageResponse:
    """Post a message to a group the caller belongs to."""
    message = AccessEngine(db).send_message(
        group_id, current_user, payload.content, payload.message_type
    )
    return MessageResponse.model_validate(message)


@router.get("/{group_id}/messages", response_model=MessagePage)
async def list_messages(
    group_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> MessagePage:
    """Return one page of history, oldest first.

    Page 1 is the most recent page. Returned messages are marked read for
    the caller.
    """
    messages, pagination = AccessEngine(db).list_messages(group_id, current_user, page, limit)
    return MessagePage(
        messages=[MessageResponse.model_validate(m) for m in messages],
        pagination=PaginationMeta.model_validate(pagination),
    )


@router.get("/{group_id}/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    group_id: int, current_user: CurrentUserDep, db: SessionDep
) -> UnreadCountResponse:
    count = AccessEngine(db).unread_count(group_id, current_user)
    return UnreadCountResponse(unread_count=count, group_id=group_id, user_id=current_user.id)


@router.post("/{group_id}/mark-read", response_model=MarkReadResponse)
async def mark_messages_read(
    group_id: int,
    payload: MarkReadRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> MarkReadResponse:
    """Mark messages read; ids outside the group are ignored."""
    marked = AccessEngine(db).mark_many_read(group_id, current_user, payload.message_ids)
    return MarkReadResponse(marked_count=marked, group_id=group_id, user_id=current_user.id)


@router.put("/{message_id}", response_model=MessageResponse)
async def edit_message(
    message_id: int,
    payload: MessageEdit,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> MessageResponse:
    """Edit the caller's own message."""
    message = AccessEngine(db).edit_message(message_id, current_user, payload.content)
    return MessageResponse.model_validate(message)


@router.delete("/{message_id}", response_model=StatusMessage)
async def delete_message(
    message_id: int, current_user: CurrentUserDep, db: SessionDep
) -> StatusMessage:
    AccessEngine(db).delete_message(message_id, current_user)
    return StatusMessage(message="Message deleted successfully")
