# src/groupchat_stage/services/__init__.py
"""Business logic services for the Group Chat application."""

from .access import AccessEngine
from .groups import GroupService
from .invitations import InvitationService
from .membership import MembershipTable
from .users import UserService

__all__ = [
    "AccessEngine",
    "GroupService",
    "InvitationService",
    "MembershipTable",
    "UserService",
]
