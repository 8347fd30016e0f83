# src/groupchat_stage/api/v1/endpoints/users.py
"""Presence endpoints for the Group Chat API."""

from __future__ import annotations

from fastapi import APIRouter

from groupchat_stage.schemas.user import OnlineSummary, OnlineUser, UserWithStatus
from groupchat_stage.services.users import UserService

from ..dependencies import CurrentUserDep, SessionDep
from .auth import user_with_status

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/me/activity", response_model=UserWithStatus)
async def update_activity(current_user: CurrentUserDep, db: SessionDep) -> UserWithStatus:
    """Mark the caller online and refresh their last-active time."""
    return user_with_status(UserService(db).touch_activity(current_user))


@router.post("/me/offline", response_model=UserWithStatus)
async def set_offline(current_user: CurrentUserDep, db: SessionDep) -> UserWithStatus:
    return user_with_status(UserService(db).set_offline(current_user))


@router.get("/online", response_model=OnlineSummary)
async def get_online_users(_current_user: CurrentUserDep, db: SessionDep) -> OnlineSummary:
    """Accounts active within the presence window, most recent first."""
    online_count, total, recent = UserService(db).online_summary()
    percentage = round(online_count / total * 100) if total else 0
    return OnlineSummary(
        online_count=online_count,
        total_count=total,
        online_percentage=percentage,
        online_users=[OnlineUser.model_validate(u) for u in recent],
    )
