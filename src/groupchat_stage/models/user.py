# src/groupchat_stage/models/user.py
"""SQLAlchemy models for user accounts."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groupchat_stage.db.session import Base
from groupchat_stage.db.time import utcnow

USER_ROLE_SUPER_ADMIN = "super_admin"
USER_ROLE_ADMIN = "admin"
USER_ROLE_USER = "user"
USER_ROLES = (USER_ROLE_SUPER_ADMIN, USER_ROLE_ADMIN, USER_ROLE_USER)
SYSTEM_ADMIN_ROLES = (USER_ROLE_SUPER_ADMIN, USER_ROLE_ADMIN)


class User(Base):
    """A registered account.

    Emails are stored lower-cased and trimmed, so the unique constraint makes
    them unique case-insensitively. The password hash never leaves the
    service layer.
    """

    __tablename__ = "user_account"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=USER_ROLE_USER)
    assigned_group_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("chat_group.id", ondelete="SET NULL"),
        nullable=True,
    )

    is_online: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_active: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    assigned_group: Mapped["Group | None"] = relationship(  # noqa: F821
        "Group",
        foreign_keys=[assigned_group_id],
    )

    @property
    def is_system_admin(self) -> bool:
        """Return True for the admin and super_admin account roles."""
        return self.role in SYSTEM_ADMIN_ROLES
