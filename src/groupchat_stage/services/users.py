"""Accounts: signup, login, presence and system administration."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from groupchat_stage.core import security
from groupchat_stage.core.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidArgumentError,
    LastAdminError,
    NotFoundError,
    UnauthorizedError,
)
from groupchat_stage.core.settings import settings
from groupchat_stage.db.time import as_utc, utcnow
from groupchat_stage.models import Group, GroupInvitation, GroupMember, Message, MessageRead, User
from groupchat_stage.models.message import MESSAGE_TYPE_SYSTEM
from groupchat_stage.models.user import USER_ROLE_SUPER_ADMIN, USER_ROLE_USER
from groupchat_stage.services.access import AccessEngine
from groupchat_stage.services.groups import GroupService, GroupSnapshot
from groupchat_stage.services.membership import MembershipTable

logger = logging.getLogger(__name__)

__all__ = ["AuthResult", "UserService", "is_currently_online", "ONLINE_USERS_LIMIT"]

ONLINE_USERS_LIMIT = 20


@dataclass
class AuthResult:
    """Outcome of signup or login."""

    user: User
    token: str
    landing: GroupSnapshot


def is_currently_online(user: User) -> bool:
    """Return True when the user was active within the presence window."""
    if user.last_active is None:
        return False
    window = timedelta(minutes=settings.online_window_minutes)
    return as_utc(user.last_active) > utcnow() - window


class UserService:
    """Account operations for end users and system administrators."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.members = MembershipTable(db)
        self.access = AccessEngine(db)
        self.groups = GroupService(db)

    # -- lookups -------------------------------------------------------------

    def find_by_email(self, email: str) -> User | None:
        return self.db.query(User).filter(User.email == email.strip().lower()).first()

    def get(self, user_id: int) -> User:
        user = (
            self.db.query(User)
            .options(joinedload(User.assigned_group))
            .filter(User.id == user_id)
            .first()
        )
        if user is None:
            raise NotFoundError("User not found")
        return user

    def _resolve_group(self, group_id: int | None) -> Group | None:
        if group_id is None:
            return None
        group = self.db.get(Group, group_id)
        if group is None:
            raise NotFoundError("Assigned group not found")
        return group

    # -- self service --------------------------------------------------------

    def signup(
        self, name: str, email: str, password: str, assigned_group_id: int | None = None
    ) -> AuthResult:
        """Register a regular user and land them in their group.

        The landing group is the assigned group, or Main Chat when none is
        given. Self-registered accounts always get the ``user`` role.
        """
        email = email.strip().lower()
        if self.find_by_email(email) is not None:
            raise ConflictError("User with this email already exists")
        assigned = self._resolve_group(assigned_group_id)
        target = assigned or self.groups.ensure_main_chat()

        now = utcnow()
        user = User(
            name=name.strip(),
            email=email,
            password_hash=security.get_password_hash(password),
            role=USER_ROLE_USER,
            assigned_group_id=assigned.id if assigned else None,
            is_online=True,
            last_active=now,
        )
        self.db.add(user)
        try:
            self.db.flush()
            membership = self.members.ensure_active(user.id, target.id)
            if assigned is None or target.is_main_chat:
                self.access.post(
                    target.id,
                    user.id,
                    f"Welcome {user.name} to {target.name}!",
                    MESSAGE_TYPE_SYSTEM,
                )
            self.db.commit()
        except IntegrityError as err:
            self.db.rollback()
            raise ConflictError("User with this email already exists") from err
        self.db.refresh(user)
        logger.info("User %s signed up and joined group %s", user.id, target.id)

        return AuthResult(
            user=user,
            token=security.create_access_token(user.id),
            landing=self.groups.snapshot(target, membership.role),
        )

    def login(self, email: str, password: str) -> AuthResult:
        user = self.find_by_email(email)
        if user is None or not security.verify_password(password, user.password_hash):
            raise UnauthorizedError("Invalid email or password")

        user.is_online = True
        user.last_active = utcnow()
        target = user.assigned_group or self.groups.ensure_main_chat(creator_id=user.id)
        membership = self.members.ensure_active(user.id, target.id)
        self.db.commit()
        self.db.refresh(user)
        logger.info("User %s logged in", user.id)

        return AuthResult(
            user=user,
            token=security.create_access_token(user.id),
            landing=self.groups.snapshot(target, membership.role),
        )

    def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not security.verify_password(current_password, user.password_hash):
            raise UnauthorizedError("Current password is incorrect")
        if current_password == new_password:
            raise InvalidArgumentError("New password must be different from current password")
        user.password_hash = security.get_password_hash(new_password)
        self.db.commit()
        logger.info("User %s changed password", user.id)

    # -- presence ------------------------------------------------------------

    def touch_activity(self, user: User) -> User:
        user.is_online = True
        user.last_active = utcnow()
        self.db.commit()
        self.db.refresh(user)
        return user

    def set_offline(self, user: User) -> User:
        user.is_online = False
        self.db.commit()
        self.db.refresh(user)
        return user

    def online_summary(self) -> tuple[int, int, list[User]]:
        """Return (online count, total count, most recently active online users)."""
        cutoff = utcnow() - timedelta(minutes=settings.online_window_minutes)
        online_query = self.db.query(User).filter(User.last_active > cutoff)
        online_count = online_query.count()
        total = self.db.query(User).count()
        recent = online_query.order_by(User.last_active.desc()).limit(ONLINE_USERS_LIMIT).all()
        return online_count, total, recent

    # -- administration --------------------------------------------------------

    @staticmethod
    def require_system_admin(actor: User) -> None:
        if not actor.is_system_admin:
            raise ForbiddenError("Admin access required")

    def create_user(
        self,
        actor: User,
        *,
        name: str,
        email: str,
        password: str,
        role: str,
        assigned_group_id: int | None = None,
    ) -> User:
        """Create an account with any role; the assigned group is joined too."""
        self.require_system_admin(actor)
        email = email.strip().lower()
        if self.find_by_email(email) is not None:
            raise ConflictError("User with this email already exists")
        assigned = self._resolve_group(assigned_group_id)

        user = User(
            name=name.strip(),
            email=email,
            password_hash=security.get_password_hash(password),
            role=role,
            assigned_group_id=assigned.id if assigned else None,
        )
        self.db.add(user)
        try:
            self.db.flush()
        except IntegrityError as err:
            self.db.rollback()
            raise ConflictError("User with this email already exists") from err
        if assigned is not None:
            self.members.ensure_active(user.id, assigned.id)
        self.db.commit()
        logger.info("Admin %s created user %s with role %s", actor.id, user.id, role)
        return self.get(user.id)

    def list_users(self, actor: User) -> list[User]:
        self.require_system_admin(actor)
        return (
            self.db.query(User)
            .options(joinedload(User.assigned_group))
            .order_by(User.created_at.desc(), User.id.desc())
            .all()
        )

    def get_user(self, actor: User, user_id: int) -> User:
        self.require_system_admin(actor)
        return self.get(user_id)

    def update_user(
        self,
        actor: User,
        user_id: int,
        *,
        name: str | None = None,
        email: str | None = None,
        password: str | None = None,
        role: str | None = None,
        assigned_group_id: int | None = None,
    ) -> User:
        """Edit an account. ``assigned_group_id`` is always applied."""
        self.require_system_admin(actor)
        user = self.get(user_id)

        if email is not None:
            email = email.strip().lower()
            if email != user.email:
                clash = self.find_by_email(email)
                if clash is not None and clash.id != user.id:
                    raise ConflictError("Email already in use by another user")
                user.email = email
        if name is not None:
            user.name = name.strip()
        if password is not None:
            user.password_hash = security.get_password_hash(password)
        if role is not None:
            user.role = role

        assigned = self._resolve_group(assigned_group_id)
        user.assigned_group_id = assigned.id if assigned else None
        if assigned is not None:
            self.members.ensure_active(user.id, assigned.id)

        try:
            self.db.commit()
        except IntegrityError as err:
            self.db.rollback()
            raise ConflictError("Email already in use by another user") from err
        self.db.expire(user)
        return self.get(user.id)

    def delete_user(self, actor: User, user_id: int) -> None:
        """Hard-delete an account with its memberships, invitations and messages.

        Raises:
            InvalidArgumentError: The actor tried to delete their own account.
            LastAdminError: The user is the sole active admin of a group.
            InternalError: The cascade failed and was rolled back.
        """
        self.require_system_admin(actor)
        if user_id == actor.id:
            raise InvalidArgumentError("Cannot delete your own account")
        self.get(user_id)

        sole_admin_of = self.members.groups_where_sole_admin(user_id)
        if sole_admin_of:
            raise LastAdminError(
                "User is the only admin of one or more groups. Transfer admin role first."
            )

        authored = select(Message.id).where(Message.sender_id == user_id)
        try:
            self.db.query(MessageRead).filter(
                (MessageRead.user_id == user_id) | MessageRead.message_id.in_(authored)
            ).delete(synchronize_session=False)
            self.db.query(Message).filter(Message.sender_id == user_id).delete(
                synchronize_session=False
            )
            self.db.query(GroupMember).filter(GroupMember.user_id == user_id).delete(
                synchronize_session=False
            )
            self.db.query(GroupInvitation).filter(GroupInvitation.user_id == user_id).delete(
                synchronize_session=False
            )
            self.db.query(GroupInvitation).filter(GroupInvitation.invited_by_id == user_id).update(
                {GroupInvitation.invited_by_id: None}, synchronize_session=False
            )
            self.db.query(Group).filter(Group.created_by_id == user_id).update(
                {Group.created_by_id: None}, synchronize_session=False
            )
            self.db.query(User).filter(User.id == user_id).delete(synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as err:
            self.db.rollback()
            logger.error("Deleting user %s failed: %s", user_id, err)
            raise InternalError("Error deleting user. Please try again.") from err
        logger.info("Admin %s deleted user %s", actor.id, user_id)

    def list_all_groups(self, actor: User) -> list[tuple[Group, int]]:
        self.require_system_admin(actor)
        return self.groups.groups_with_counts()

    # -- bootstrap -------------------------------------------------------------

    def ensure_admin_user(self) -> User | None:
        """Create the configured super admin unless it already exists.

        Does nothing when no admin password is configured.
        """
        if not settings.admin_email or not settings.admin_password:
            return None
        existing = self.find_by_email(settings.admin_email)
        if existing is not None:
            return existing

        admin = User(
            name=settings.admin_name,
            email=settings.admin_email.strip().lower(),
            password_hash=security.get_password_hash(settings.admin_password),
            role=USER_ROLE_SUPER_ADMIN,
        )
        self.db.add(admin)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return self.find_by_email(settings.admin_email)
        self.db.refresh(admin)
        logger.info("Created super admin account %s", admin.email)
        return admin
