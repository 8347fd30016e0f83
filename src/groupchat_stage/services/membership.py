"""Membership table: who belongs to which group, and in what role."""
from __future__ import annotations

import logging

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from groupchat_stage.core.errors import ConflictError, InvalidArgumentError, LastAdminError
from groupchat_stage.db.time import utcnow
from groupchat_stage.models import GroupMember
from groupchat_stage.models.membership import (
    MEMBER_ROLE_ADMIN,
    MEMBER_ROLE_MEMBER,
    MEMBER_ROLES,
)

logger = logging.getLogger(__name__)

__all__ = ["MembershipTable"]


class MembershipTable:
    """Data access and invariants for ``GroupMember`` rows.

    Methods here only flush; committing is left to the calling service so a
    membership change can share a unit of work with the mutation that caused
    it (group creation, invitation acceptance, admin succession).
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, user_id: int, group_id: int) -> GroupMember | None:
        """Return the membership row for the pair, active or not."""
        return (
            self.db.query(GroupMember)
            .filter(GroupMember.user_id == user_id, GroupMember.group_id == group_id)
            .first()
        )

    def get_active(self, user_id: int, group_id: int) -> GroupMember | None:
        """Return the membership row only if it is active."""
        return (
            self.db.query(GroupMember)
            .filter(
                GroupMember.user_id == user_id,
                GroupMember.group_id == group_id,
                GroupMember.is_active.is_(True),
            )
            .first()
        )

    def is_active_member(self, user_id: int, group_id: int) -> bool:
        return self.get_active(user_id, group_id) is not None

    def role_of(self, user_id: int, group_id: int) -> str | None:
        membership = self.get_active(user_id, group_id)
        return membership.role if membership else None

    def active_admin_count(self, group_id: int) -> int:
        return (
            self.db.query(func.count(GroupMember.id))
            .filter(
                GroupMember.group_id == group_id,
                GroupMember.role == MEMBER_ROLE_ADMIN,
                GroupMember.is_active.is_(True),
            )
            .scalar()
            or 0
        )

    def active_member_count(self, group_id: int) -> int:
        return (
            self.db.query(func.count(GroupMember.id))
            .filter(GroupMember.group_id == group_id, GroupMember.is_active.is_(True))
            .scalar()
            or 0
        )

    def join(self, user_id: int, group_id: int, role: str = MEMBER_ROLE_MEMBER) -> GroupMember:
        """Insert a new membership row.

        Raises:
            ConflictError: If a row for the pair exists, active or not, or a
                concurrent insert wins the unique constraint.
        """
        _check_role(role)
        if self.get(user_id, group_id) is not None:
            raise ConflictError("User is already a member of this group")

        membership = GroupMember(user_id=user_id, group_id=group_id, role=role, is_active=True)
        try:
            # Only the savepoint is undone on a duplicate.
            with self.db.begin_nested():
                self.db.add(membership)
        except IntegrityError as err:
            logger.info("Duplicate membership insert for user %s in group %s", user_id, group_id)
            raise ConflictError("User is already a member of this group") from err
        return membership

    def ensure_active(
        self, user_id: int, group_id: int, role: str = MEMBER_ROLE_MEMBER
    ) -> GroupMember:
        """Return an active membership for the pair, creating or reactivating it.

        An existing row keeps its role; a reactivated row rejoins with
        ``role`` and a fresh join time.
        """
        membership = self.get(user_id, group_id)
        if membership is None:
            try:
                return self.join(user_id, group_id, role)
            except ConflictError:
                # Lost a race against another request; the row exists now.
                membership = self.get(user_id, group_id)
                if membership is None:
                    raise
        if not membership.is_active:
            membership.is_active = True
            membership.role = role
            membership.joined_at = utcnow()
            self.db.flush()
        return membership

    def deactivate(
        self, user_id: int, group_id: int, successor_id: int | None = None
    ) -> GroupMember | None:
        """Soft-remove a member, keeping at least one active admin.

        Args:
            user_id: Member being removed.
            group_id: Group to remove them from.
            successor_id: Optional active member promoted to admin in the
                same unit of work when the target is the last admin.

        Returns:
            The deactivated row, or None when there was no active row.

        Raises:
            LastAdminError: The target is the sole active admin and no
                successor was supplied.
            InvalidArgumentError: The successor is not an active member.
        """
        membership = self.get_active(user_id, group_id)
        if membership is None:
            return None

        if membership.role == MEMBER_ROLE_ADMIN and self.active_admin_count(group_id) <= 1:
            if successor_id is None:
                raise LastAdminError(
                    "Cannot remove the only admin. Transfer admin role first or delete group."
                )
            self._promote_successor(successor_id, group_id, exclude_user_id=user_id)

        membership.is_active = False
        self.db.flush()
        return membership

    def set_role(self, user_id: int, group_id: int, role: str) -> GroupMember | None:
        """Change an active member's role; refuses to demote the last admin."""
        _check_role(role)
        membership = self.get_active(user_id, group_id)
        if membership is None:
            return None
        if (
            membership.role == MEMBER_ROLE_ADMIN
            and role != MEMBER_ROLE_ADMIN
            and self.active_admin_count(group_id) <= 1
        ):
            raise LastAdminError("Cannot demote the only admin. Promote another admin first.")
        membership.role = role
        self.db.flush()
        return membership

    def list_members(self, group_id: int) -> list[GroupMember]:
        """Active members: admins first, then by join time, then insertion order."""
        admin_first = case((GroupMember.role == MEMBER_ROLE_ADMIN, 0), else_=1)
        return (
            self.db.query(GroupMember)
            .options(joinedload(GroupMember.user))
            .filter(GroupMember.group_id == group_id, GroupMember.is_active.is_(True))
            .order_by(admin_first, GroupMember.joined_at.asc(), GroupMember.id.asc())
            .all()
        )

    def list_for_user(self, user_id: int) -> list[GroupMember]:
        """Active memberships of a user, most recently updated first."""
        return (
            self.db.query(GroupMember)
            .options(joinedload(GroupMember.group))
            .filter(GroupMember.user_id == user_id, GroupMember.is_active.is_(True))
            .order_by(GroupMember.updated_at.desc(), GroupMember.id.desc())
            .all()
        )

    def groups_where_sole_admin(self, user_id: int) -> list[int]:
        """Group ids in which ``user_id`` is the only active admin."""
        admin_group_ids = [
            row.group_id
            for row in self.db.query(GroupMember.group_id).filter(
                GroupMember.user_id == user_id,
                GroupMember.role == MEMBER_ROLE_ADMIN,
                GroupMember.is_active.is_(True),
            )
        ]
        return [gid for gid in admin_group_ids if self.active_admin_count(gid) <= 1]

    def _promote_successor(self, successor_id: int, group_id: int, *, exclude_user_id: int) -> None:
        if successor_id == exclude_user_id:
            raise InvalidArgumentError("Successor must be a different member")
        successor = self.get_active(successor_id, group_id)
        if successor is None:
            raise InvalidArgumentError("Successor must be an active member of this group")
        successor.role = MEMBER_ROLE_ADMIN
        logger.info("Promoted user %s to admin of group %s", successor_id, group_id)


def _check_role(role: str) -> None:
    if role not in MEMBER_ROLES:
        raise InvalidArgumentError("Role must be admin, moderator, or member")
