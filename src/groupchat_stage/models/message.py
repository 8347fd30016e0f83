# src/groupchat_stage/models/message.py
"""Models describing group messages and their read receipts."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groupchat_stage.db.session import Base
from groupchat_stage.db.time import utcnow

MESSAGE_MAX_LENGTH = 1000

MESSAGE_TYPE_TEXT = "text"
MESSAGE_TYPE_IMAGE = "image"
MESSAGE_TYPE_FILE = "file"
MESSAGE_TYPE_SYSTEM = "system"
MESSAGE_TYPES = (MESSAGE_TYPE_TEXT, MESSAGE_TYPE_IMAGE, MESSAGE_TYPE_FILE, MESSAGE_TYPE_SYSTEM)


class Message(Base):
    """A message posted to a group."""

    __tablename__ = "group_message"
    __table_args__ = (Index("ix_group_message_group_created", "group_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    sender_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False, index=True
    )
    group_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("chat_group.id", ondelete="CASCADE"), nullable=False
    )
    message_type: Mapped[str] = mapped_column(
        String(10), nullable=False, default=MESSAGE_TYPE_TEXT
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    sender: Mapped["User"] = relationship("User")  # noqa: F821
    read_by: Mapped[list[MessageRead]] = relationship(
        "MessageRead",
        order_by="MessageRead.read_at",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class MessageRead(Base):
    """Read receipt for a message.

    The composite primary key keeps a user to one receipt per message.
    """

    __tablename__ = "message_read"

    message_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("group_message.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("user_account.id", ondelete="CASCADE"),
        primary_key=True,
    )
    read_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
