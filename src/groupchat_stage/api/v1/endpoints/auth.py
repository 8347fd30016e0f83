# src/groupchat_stage/api/v1/endpoints/auth.py
"""Authentication endpoints for the Group Chat API."""

from __future__ import annotations

from fastapi import APIRouter, status

from groupchat_stage.models import User
from groupchat_stage.schemas.common import StatusMessage
from groupchat_stage.schemas.group import AuthResponse, GroupWithCount
from groupchat_stage.schemas.message import MessageResponse
from groupchat_stage.schemas.user import (
    ChangePasswordRequest,
    LoginRequest,
    SignupRequest,
    UserResponse,
    UserWithStatus,
)
from groupchat_stage.services.users import AuthResult, UserService, is_currently_online

from ..dependencies import CurrentUserDep, SessionDep

router = APIRouter(prefix="/auth", tags=["authentication"])


def _auth_response(result: AuthResult, message: str) -> AuthResponse:
    landing = result.landing
    return AuthResponse(
        message=message,
        token=result.token,
        user=UserResponse.model_validate(result.user),
        group=GroupWithCount.from_group(landing.group, landing.member_count),
        messages=[MessageResponse.model_validate(m) for m in landing.messages],
    )


def user_with_status(user: User) -> UserWithStatus:
    base = UserResponse.model_validate(user).model_dump()
    return UserWithStatus(**base, is_currently_online=is_currently_online(user))


@router.post(
    "/signup",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
)
async def signup(payload: SignupRequest, db: SessionDep) -> AuthResponse:
    """Register a new account and return a bearer token.

    Any role sent by the client is ignored; self-registered accounts are
    always regular users.
    """
    result = UserService(db).signup(
        payload.name, payload.email, payload.password, payload.assigned_group
    )
    return _auth_response(result, "User registered successfully")


@router.post("/login", response_model=AuthResponse)
async def login(payload: LoginRequest, db: SessionDep) -> AuthResponse:
    """Exchange email and password for a bearer token."""
    result = UserService(db).login(payload.email, payload.password)
    return _auth_response(result, "Login successful")


@router.get("/profile", response_model=UserWithStatus)
async def get_profile(current_user: CurrentUserDep) -> UserWithStatus:
    """Return the caller's account with its online status."""
    return user_with_status(current_user)


@router.put("/change-password", response_model=StatusMessage)
async def change_password(
    payload: ChangePasswordRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> StatusMessage:
    UserService(db).change_password(
        current_user, payload.current_password, payload.new_password
    )
    return StatusMessage(message="Password changed successfully")
