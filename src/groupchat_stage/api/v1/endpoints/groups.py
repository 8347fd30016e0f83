# src/groupchat_stage/api/v1/endpoints/groups.py
"""Group endpoints for the Group Chat API."""

from __future__ import annotations

from fastapi import APIRouter, status

from groupchat_stage.schemas.common import StatusMessage
from groupchat_stage.schemas.group import (
    GroupCreate,
    GroupData,
    GroupResponse,
    GroupUpdate,
    GroupWithCount,
    UserGroup,
)
from groupchat_stage.services.groups import GroupService

from ..dependencies import CurrentUserDep, SessionDep

router = APIRouter(prefix="/groups", tags=["groups"])


@router.get("/public", response_model=list[GroupWithCount])
async def list_public_groups(db: SessionDep) -> list[GroupWithCount]:
    """List public groups by name. No authentication required."""
    return [
        GroupWithCount.from_group(group, count)
        for group, count in GroupService(db).list_public_groups()
    ]


@router.post("/", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
async def create_group(
    payload: GroupCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> GroupResponse:
    """Create a group; the caller becomes its admin."""
    group = GroupService(db).create_group(
        current_user,
        payload.name,
        description=payload.description,
        is_public=payload.is_public,
        max_members=payload.max_members,
    )
    return GroupResponse.model_validate(group)


@router.get("/my-groups", response_model=list[UserGroup])
async def list_my_groups(current_user: CurrentUserDep, db: SessionDep) -> list[UserGroup]:
    memberships = GroupService(db).list_user_groups(current_user)
    return [UserGroup.from_membership(m) for m in memberships]


@router.get("/main-chat", response_model=GroupData)
async def get_main_chat(current_user: CurrentUserDep, db: SessionDep) -> GroupData:
    """Return Main Chat, joining the caller to it if needed."""
    return GroupData.from_snapshot(GroupService(db).get_main_chat(current_user))


@router.get("/{group_id}", response_model=GroupData)
async def get_group(group_id: int, current_user: CurrentUserDep, db: SessionDep) -> GroupData:
    return GroupData.from_snapshot(GroupService(db).get_group_details(group_id, current_user))


@router.put("/{group_id}", response_model=GroupResponse)
async def update_group(
    group_id: int,
    payload: GroupUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> GroupResponse:
    """Update group settings. Only fields present in the body change."""
    changes = payload.model_dump(exclude_unset=True)
    group = GroupService(db).update_group(group_id, current_user, **changes)
    return GroupResponse.model_validate(group)


@router.delete("/{group_id}", response_model=StatusMessage)
async def delete_group(group_id: int, current_user: CurrentUserDep, db: SessionDep) -> StatusMessage:
    GroupService(db).delete_group(group_id, current_user)
    return StatusMessage(message="Group deleted successfully")


@router.post("/{group_id}/join", response_model=StatusMessage)
async def join_group(group_id: int, current_user: CurrentUserDep, db: SessionDep) -> StatusMessage:
    """Join a public group."""
    GroupService(db).join_public_group(group_id, current_user)
    return StatusMessage(message="Joined group successfully")
