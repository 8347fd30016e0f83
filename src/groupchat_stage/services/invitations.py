"""Invitation flow for bringing users into groups."""
from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from groupchat_stage.core.errors import ConflictError, NotFoundError
from groupchat_stage.db.time import utcnow
from groupchat_stage.models import GroupInvitation, GroupMember, User
from groupchat_stage.models.group import (
    INVITATION_ACCEPTED,
    INVITATION_PENDING,
    INVITATION_REJECTED,
)
from groupchat_stage.services.access import AccessEngine
from groupchat_stage.services.membership import MembershipTable

logger = logging.getLogger(__name__)

__all__ = ["InvitationService"]


class InvitationService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.members = MembershipTable(db)
        self.access = AccessEngine(db)

    def _pending(self, group_id: int, user_id: int) -> GroupInvitation | None:
        return (
            self.db.query(GroupInvitation)
            .filter(
                GroupInvitation.group_id == group_id,
                GroupInvitation.user_id == user_id,
                GroupInvitation.status == INVITATION_PENDING,
            )
            .first()
        )

    def invite(self, group_id: int, inviter: User, email: str) -> GroupInvitation:
        """Invite the account registered under ``email`` into a group.

        Raises:
            NotFoundError: Unknown group or no account for the email.
            ForbiddenError: The inviter is not an active admin of the group.
            ConflictError: The invitee is already an active member or already
                holds a pending invitation.
        """
        self.access.require_admin(inviter, group_id, "invite members")

        invitee = self.db.query(User).filter(User.email == email.strip().lower()).first()
        if invitee is None:
            raise NotFoundError("User not found")
        if self.members.is_active_member(invitee.id, group_id):
            raise ConflictError("User is already a member of this group")
        if self._pending(group_id, invitee.id) is not None:
            raise ConflictError("User has already been invited to this group")

        invitation = GroupInvitation(
            group_id=group_id,
            user_id=invitee.id,
            invited_by_id=inviter.id,
            invited_at=utcnow(),
            status=INVITATION_PENDING,
        )
        self.db.add(invitation)
        try:
            self.db.commit()
        except IntegrityError as err:
            self.db.rollback()
            raise ConflictError("User has already been invited to this group") from err
        self.db.refresh(invitation)
        logger.info("User %s invited user %s to group %s", inviter.id, invitee.id, group_id)
        return invitation

    def accept(self, group_id: int, user: User) -> GroupMember:
        """Accept a pending invitation, creating or reactivating membership."""
        group = self.access.get_group(group_id)
        invitation = self._pending(group_id, user.id)
        if invitation is None:
            raise NotFoundError("No pending invitation found")

        if not self.members.is_active_member(user.id, group_id):
            if self.members.active_member_count(group_id) >= group.max_members:
                raise ConflictError("Group is full")

        membership = self.members.ensure_active(user.id, group_id)
        invitation.status = INVITATION_ACCEPTED
        self.db.commit()
        self.db.refresh(membership)
        logger.info("User %s accepted invitation to group %s", user.id, group_id)
        return membership

    def decline(self, group_id: int, user: User) -> GroupInvitation:
        self.access.get_group(group_id)
        invitation = self._pending(group_id, user.id)
        if invitation is None:
            raise NotFoundError("No pending invitation found")
        invitation.status = INVITATION_REJECTED
        self.db.commit()
        self.db.refresh(invitation)
        return invitation

    def list_pending(self, user: User) -> list[GroupInvitation]:
        """The caller's pending invitations, oldest first."""
        return (
            self.db.query(GroupInvitation)
            .options(joinedload(GroupInvitation.group), joinedload(GroupInvitation.user))
            .filter(
                GroupInvitation.user_id == user.id,
                GroupInvitation.status == INVITATION_PENDING,
            )
            .order_by(GroupInvitation.id)
            .all()
        )
