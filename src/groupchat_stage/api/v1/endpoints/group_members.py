# src/groupchat_stage/api/v1/endpoints/group_members.py
"""Group membership and invitation endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query, status

from groupchat_stage.schemas.common import StatusMessage
from groupchat_stage.schemas.group import (
    InvitationResponse,
    InviteRequest,
    MemberResponse,
    MemberRoleUpdate,
)
from groupchat_stage.services.groups import GroupService
from groupchat_stage.services.invitations import InvitationService

from ..dependencies import CurrentUserDep, SessionDep

router = APIRouter(prefix="/group-members", tags=["group members"])


@router.get("/invitations", response_model=list[InvitationResponse])
async def list_invitations(
    current_user: CurrentUserDep, db: SessionDep
) -> list[InvitationResponse]:
    """List the caller's pending invitations."""
    invitations = InvitationService(db).list_pending(current_user)
    return [InvitationResponse.model_validate(inv) for inv in invitations]


@router.post(
    "/{group_id}/invite",
    response_model=InvitationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def invite_member(
    group_id: int,
    payload: InviteRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> InvitationResponse:
    """Invite an existing account into the group. Group admins only."""
    invitation = InvitationService(db).invite(group_id, current_user, payload.email)
    return InvitationResponse.model_validate(invitation)


@router.post("/{group_id}/accept", response_model=StatusMessage)
async def accept_invitation(
    group_id: int, current_user: CurrentUserDep, db: SessionDep
) -> StatusMessage:
    InvitationService(db).accept(group_id, current_user)
    return StatusMessage(message="Group invitation accepted successfully")


@router.post("/{group_id}/decline", response_model=StatusMessage)
async def decline_invitation(
    group_id: int, current_user: CurrentUserDep, db: SessionDep
) -> StatusMessage:
    InvitationService(db).decline(group_id, current_user)
    return StatusMessage(message="Group invitation declined")


@router.get("/{group_id}/members", response_model=list[MemberResponse])
async def list_members(
    group_id: int, current_user: CurrentUserDep, db: SessionDep
) -> list[MemberResponse]:
    """Active members, admins first."""
    members = GroupService(db).list_members(group_id, current_user)
    return [MemberResponse.model_validate(m) for m in members]


@router.delete("/{group_id}/members/{user_id}", response_model=StatusMessage)
async def remove_member(
    group_id: int,
    user_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    successor_id: Annotated[int | None, Query(alias="successorId")] = None,
) -> StatusMessage:
    """Remove a member, or leave the group when ``user_id`` is the caller.

    Removing the last admin requires ``successorId``, the member promoted in
    their place.
    """
    GroupService(db).remove_member(group_id, current_user, user_id, successor_id)
    return StatusMessage(message="Member removed successfully")


@router.put("/{group_id}/members/{user_id}/role", response_model=MemberResponse)
async def change_member_role(
    group_id: int,
    user_id: int,
    payload: MemberRoleUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> MemberResponse:
    membership = GroupService(db).change_member_role(group_id, current_user, user_id, payload.role)
    return MemberResponse.model_validate(membership)
