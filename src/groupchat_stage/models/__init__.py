# src/groupchat_stage/models/__init__.py
"""SQLAlchemy models for the Group Chat application."""

from .group import Group, GroupInvitation
from .membership import GroupMember
from .message import Message, MessageRead
from .user import User

__all__ = [
    "Group", "GroupInvitation",
    "GroupMember",
    "Message", "MessageRead",
    "User",
]
