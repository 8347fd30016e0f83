"""API endpoint modules for version 1."""

from .admin import router as admin_router
from .auth import router as auth_router
from .group_members import router as group_members_router
from .groups import router as groups_router
from .messages import router as messages_router
from .system import router as system_router
from .users import router as users_router

__all__ = [
    "admin_router",
    "auth_router",
    "group_members_router",
    "groups_router",
    "messages_router",
    "system_router",
    "users_router",
]
