"""SQLAlchemy model for group membership."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groupchat_stage.db.session import Base
from groupchat_stage.db.time import utcnow

MEMBER_ROLE_ADMIN = "admin"
MEMBER_ROLE_MODERATOR = "moderator"
MEMBER_ROLE_MEMBER = "member"
MEMBER_ROLES = (MEMBER_ROLE_ADMIN, MEMBER_ROLE_MODERATOR, MEMBER_ROLE_MEMBER)


class GroupMember(Base):
    """Join table mapping users into groups.

    The (user_id, group_id) pair is unique across all rows, active or not;
    removal clears ``is_active`` and re-joining flips it back.
    """

    __tablename__ = "group_member"
    __table_args__ = (UniqueConstraint("user_id", "group_id", name="uq_group_member_user_group"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False
    )
    group_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("chat_group.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=MEMBER_ROLE_MEMBER)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    user: Mapped["User"] = relationship("User")  # noqa: F821
    group: Mapped["Group"] = relationship("Group")  # noqa: F821
