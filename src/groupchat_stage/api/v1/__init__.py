"""Version 1 API endpoints."""

from .endpoints import (
    admin_router,
    auth_router,
    group_members_router,
    groups_router,
    messages_router,
    system_router,
    users_router,
)

__all__ = [
    "auth_router",
    "groups_router",
    "group_members_router",
    "messages_router",
    "admin_router",
    "users_router",
    "system_router",
]
