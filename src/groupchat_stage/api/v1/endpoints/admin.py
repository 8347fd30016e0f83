# src/groupchat_stage/api/v1/endpoints/admin.py
"""System administration endpoints (admin and super_admin accounts only)."""

from __future__ import annotations

from fastapi import APIRouter, status

from groupchat_stage.schemas.common import StatusMessage
from groupchat_stage.schemas.group import GroupWithCount
from groupchat_stage.schemas.user import AdminUserCreate, AdminUserUpdate, UserResponse, UserWithStatus
from groupchat_stage.services.users import UserService

from ..dependencies import CurrentUserDep, SessionDep
from .auth import user_with_status

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: AdminUserCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> UserResponse:
    user = UserService(db).create_user(
        current_user,
        name=payload.name,
        email=payload.email,
        password=payload.password,
        role=payload.role,
        assigned_group_id=payload.assigned_group,
    )
    return UserResponse.model_validate(user)


@router.get("/users", response_model=list[UserWithStatus])
async def list_users(current_user: CurrentUserDep, db: SessionDep) -> list[UserWithStatus]:
    """All accounts, newest first, with their online status."""
    return [user_with_status(u) for u in UserService(db).list_users(current_user)]


@router.get("/users/{user_id}", response_model=UserWithStatus)
async def get_user(user_id: int, current_user: CurrentUserDep, db: SessionDep) -> UserWithStatus:
    return user_with_status(UserService(db).get_user(current_user, user_id))


@router.put("/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    payload: AdminUserUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> UserResponse:
    """Edit an account. Omitting ``assignedGroup`` clears the assignment."""
    user = UserService(db).update_user(
        current_user,
        user_id,
        name=payload.name,
        email=payload.email,
        password=payload.password,
        role=payload.role,
        assigned_group_id=payload.assigned_group,
    )
    return UserResponse.model_validate(user)


@router.delete("/users/{user_id}", response_model=StatusMessage)
async def delete_user(user_id: int, current_user: CurrentUserDep, db: SessionDep) -> StatusMessage:
    UserService(db).delete_user(current_user, user_id)
    return StatusMessage(message="User deleted successfully")


@router.get("/groups", response_model=list[GroupWithCount])
async def list_all_groups(current_user: CurrentUserDep, db: SessionDep) -> list[GroupWithCount]:
    return [
        GroupWithCount.from_group(group, count)
        for group, count in UserService(db).list_all_groups(current_user)
    ]
