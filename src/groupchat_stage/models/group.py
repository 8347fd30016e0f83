"""SQLAlchemy models for chat groups and their invitations."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groupchat_stage.db.session import Base
from groupchat_stage.db.time import utcnow

MAIN_CHAT_NAME = "Main Chat"

MIN_GROUP_CAPACITY = 1
MAX_GROUP_CAPACITY = 1000
DEFAULT_GROUP_CAPACITY = 50

INVITATION_PENDING = "pending"
INVITATION_ACCEPTED = "accepted"
INVITATION_REJECTED = "rejected"


def clamp_capacity(value: int) -> int:
    """Clamp a requested member capacity to the supported range."""
    return min(max(value, MIN_GROUP_CAPACITY), MAX_GROUP_CAPACITY)


class Group(Base):
    """A named chat room that members post messages to."""

    __tablename__ = "chat_group"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    max_members: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_GROUP_CAPACITY
    )
    # Nullable: bootstrap groups have no creator. Kept without a foreign key
    # since user_account already references chat_group.
    created_by_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    invitations: Mapped[list[GroupInvitation]] = relationship(
        "GroupInvitation",
        back_populates="group",
        order_by="GroupInvitation.id",
    )

    @property
    def is_main_chat(self) -> bool:
        """Return True for the undeletable default group."""
        return self.name == MAIN_CHAT_NAME


class GroupInvitation(Base):
    """Invitation of a user into a (usually private) group."""

    __tablename__ = "group_invitation"
    __table_args__ = (
        # A user holds at most one pending invitation per group.
        Index(
            "uq_group_invitation_pending",
            "group_id",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    group_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("chat_group.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False
    )
    invited_by_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="SET NULL"), nullable=True
    )
    invited_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=INVITATION_PENDING)

    group: Mapped[Group] = relationship("Group", back_populates="invitations")
    user: Mapped["User"] = relationship("User", foreign_keys=[user_id])  # noqa: F821

    @property
    def group_name(self) -> str | None:
        return self.group.name if self.group is not None else None
