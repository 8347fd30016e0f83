"""Group lifecycle: creation, settings, deletion, members and the bootstrap groups."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from groupchat_stage.core.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidArgumentError,
    NotFoundError,
)
from groupchat_stage.models import Group, GroupInvitation, GroupMember, Message, MessageRead, User
from groupchat_stage.models.group import (
    DEFAULT_GROUP_CAPACITY,
    MAIN_CHAT_NAME,
    MAX_GROUP_CAPACITY,
    clamp_capacity,
)
from groupchat_stage.models.membership import MEMBER_ROLE_ADMIN
from groupchat_stage.models.message import MESSAGE_TYPE_SYSTEM
from groupchat_stage.services.access import DEFAULT_PAGE_SIZE, AccessEngine
from groupchat_stage.services.membership import MembershipTable

logger = logging.getLogger(__name__)

__all__ = ["GroupService", "GroupSnapshot", "DEFAULT_GROUPS"]

MAIN_CHAT_DESCRIPTION = "Default group for all users"

# (name, description, capacity)
DEFAULT_GROUPS: tuple[tuple[str, str, int], ...] = (
    ("General Chat", "General discussion for everyone", 1000),
    ("Technology", "Talk about the latest in tech", 500),
    ("Gaming", "Games, strategies and sessions", 300),
    ("Music", "Share and discuss music", 200),
    ("Sports", "Scores, teams and matches", 400),
)


@dataclass
class GroupSnapshot:
    """A group with its member count and opening messages."""

    group: Group
    member_count: int
    messages: list[Message] = field(default_factory=list)
    user_role: str | None = None


class GroupService:
    """Create, update, delete and look up groups."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.members = MembershipTable(db)
        self.access = AccessEngine(db)

    # -- lookups -------------------------------------------------------------

    def get(self, group_id: int) -> Group:
        return self.access.get_group(group_id)

    def find_by_name(self, name: str) -> Group | None:
        return self.db.query(Group).filter(Group.name == name).first()

    def _name_taken(self, name: str, exclude_id: int | None = None) -> bool:
        query = self.db.query(Group.id).filter(Group.name == name)
        if exclude_id is not None:
            query = query.filter(Group.id != exclude_id)
        return query.first() is not None

    def snapshot(self, group: Group, user_role: str | None = None) -> GroupSnapshot:
        return GroupSnapshot(
            group=group,
            member_count=self.members.active_member_count(group.id),
            messages=self.access.opening_messages(group.id, DEFAULT_PAGE_SIZE),
            user_role=user_role,
        )

    def groups_with_counts(self, *, public_only: bool = False) -> list[tuple[Group, int]]:
        """Groups sorted by name, each paired with its active member count."""
        counts = (
            self.db.query(GroupMember.group_id, func.count(GroupMember.id).label("member_count"))
            .filter(GroupMember.is_active.is_(True))
            .group_by(GroupMember.group_id)
            .subquery()
        )
        query = self.db.query(Group, func.coalesce(counts.c.member_count, 0)).outerjoin(
            counts, counts.c.group_id == Group.id
        )
        if public_only:
            query = query.filter(Group.is_public.is_(True))
        return [(group, int(count)) for group, count in query.order_by(Group.name).all()]

    # -- lifecycle -------------------------------------------------------------

    def create_group(
        self,
        creator: User,
        name: str,
        description: str | None = None,
        is_public: bool = False,
        max_members: int | None = None,
    ) -> Group:
        """Create a group owned by ``creator`` and post its welcome message."""
        name = name.strip()
        if self._name_taken(name):
            raise ConflictError("Group name already exists")

        group = Group(
            name=name,
            description=description.strip() if description else None,
            is_public=is_public,
            max_members=clamp_capacity(
                max_members if max_members is not None else DEFAULT_GROUP_CAPACITY
            ),
            created_by_id=creator.id,
        )
        self.db.add(group)
        try:
            self.db.flush()
        except IntegrityError as err:
            self.db.rollback()
            raise ConflictError("Group name already exists") from err

        self.members.join(creator.id, group.id, MEMBER_ROLE_ADMIN)
        self.access.post(
            group.id,
            creator.id,
            f'Group "{name}" was created! Start the conversation.',
            MESSAGE_TYPE_SYSTEM,
        )
        self.db.commit()
        self.db.refresh(group)
        logger.info("Group %s (%s) created by user %s", group.id, name, creator.id)
        return group

    def update_group(
        self,
        group_id: int,
        user: User,
        *,
        name: str | None = None,
        description: str | None = None,
        is_public: bool | None = None,
        max_members: int | None = None,
    ) -> Group:
        """Apply the supplied settings; only group admins may do this."""
        group = self.get(group_id)
        self.access.require_admin(user, group_id, "update group settings")

        if name is not None:
            name = name.strip()
            if name != group.name:
                if group.is_main_chat:
                    raise InvalidArgumentError("Cannot rename the Main Chat group")
                if self._name_taken(name, exclude_id=group.id):
                    raise ConflictError("Group name already exists")
                group.name = name
        if description is not None:
            group.description = description.strip()
        if is_public is not None:
            group.is_public = is_public
        if max_members is not None:
            group.max_members = clamp_capacity(max_members)

        try:
            self.db.commit()
        except IntegrityError as err:
            self.db.rollback()
            raise ConflictError("Group name already exists") from err
        self.db.refresh(group)
        return group

    def delete_group(self, group_id: int, user: User) -> None:
        """Delete a group with all its messages, receipts and memberships.

        Raises:
            NotFoundError: Unknown group.
            ForbiddenError: Caller is not an active admin of the group.
            InvalidArgumentError: The group is Main Chat.
            InternalError: The cascade failed and was rolled back.
        """
        group = self.get(group_id)
        self.access.require_admin(user, group_id, "delete group")
        if group.is_main_chat:
            raise InvalidArgumentError("Cannot delete the Main Chat group")

        message_ids = select(Message.id).where(Message.group_id == group_id)
        try:
            self.db.query(MessageRead).filter(MessageRead.message_id.in_(message_ids)).delete(
                synchronize_session=False
            )
            self.db.query(Message).filter(Message.group_id == group_id).delete(
                synchronize_session=False
            )
            self.db.query(GroupInvitation).filter(GroupInvitation.group_id == group_id).delete(
                synchronize_session=False
            )
            self.db.query(GroupMember).filter(GroupMember.group_id == group_id).delete(
                synchronize_session=False
            )
            self.db.query(User).filter(User.assigned_group_id == group_id).update(
                {User.assigned_group_id: None}, synchronize_session=False
            )
            self.db.query(Group).filter(Group.id == group_id).delete(synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as err:
            self.db.rollback()
            logger.error("Deleting group %s failed: %s", group_id, err)
            raise InternalError("Error deleting group. Please try again.") from err
        logger.info("Group %s deleted by user %s", group_id, user.id)

    # -- main chat and defaults ------------------------------------------------

    def ensure_main_chat(self, creator_id: int | None = None) -> Group:
        """Find or create Main Chat, tolerating a concurrent creator."""
        group = self.find_by_name(MAIN_CHAT_NAME)
        if group is not None:
            return group

        group = Group(
            name=MAIN_CHAT_NAME,
            description=MAIN_CHAT_DESCRIPTION,
            is_public=True,
            max_members=MAX_GROUP_CAPACITY,
            created_by_id=creator_id,
        )
        self.db.add(group)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            group = self.find_by_name(MAIN_CHAT_NAME)
            if group is None:
                raise InternalError("Could not create Main Chat. Please try again.") from None
            return group
        self.db.refresh(group)
        logger.info("Created %s group %s", MAIN_CHAT_NAME, group.id)
        return group

    def get_main_chat(self, user: User) -> GroupSnapshot:
        """Main Chat with the caller guaranteed to be an active member."""
        group = self.ensure_main_chat(creator_id=user.id)
        membership = self.members.ensure_active(user.id, group.id)
        self.db.commit()
        return self.snapshot(group, membership.role)

    def ensure_default_groups(self) -> int:
        """Create whichever default public groups are missing."""
        created = 0
        for name, description, capacity in DEFAULT_GROUPS:
            if self.find_by_name(name) is not None:
                continue
            self.db.add(
                Group(name=name, description=description, is_public=True, max_members=capacity)
            )
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                continue
            created += 1
        if created:
            logger.info("Created %d default groups", created)
        return created

    # -- membership-facing views -----------------------------------------------

    def get_group_details(self, group_id: int, user: User) -> GroupSnapshot:
        membership = self.access.authorize(user, group_id)
        return self.snapshot(self.get(group_id), membership.role)

    def list_user_groups(self, user: User) -> list[GroupMember]:
        return self.members.list_for_user(user.id)

    def list_public_groups(self) -> list[tuple[Group, int]]:
        return self.groups_with_counts(public_only=True)

    def join_public_group(self, group_id: int, user: User) -> GroupMember:
        """Join a public group, reactivating a previous membership if any."""
        group = self.get(group_id)
        if not group.is_public:
            raise ForbiddenError("This group is private. An invitation is required to join.")
        if self.members.is_active_member(user.id, group_id):
            raise ConflictError("You are already a member of this group")
        if self.members.active_member_count(group_id) >= group.max_members:
            raise ConflictError("Group is full")

        membership = self.members.ensure_active(user.id, group_id)
        self.db.commit()
        self.db.refresh(membership)
        logger.info("User %s joined public group %s", user.id, group_id)
        return membership

    # -- member management -----------------------------------------------------

    def list_members(self, group_id: int, user: User) -> list[GroupMember]:
        self.access.authorize(user, group_id)
        return self.members.list_members(group_id)

    def remove_member(
        self, group_id: int, user: User, target_user_id: int, successor_id: int | None = None
    ) -> GroupMember:
        """Soft-remove a member; admins remove anyone, members only themselves.

        When the target is the last active admin, ``successor_id`` names the
        member promoted in the same commit.
        """
        self.get(group_id)
        if target_user_id != user.id:
            self.access.require_admin(user, group_id, "remove members")

        membership = self.members.deactivate(target_user_id, group_id, successor_id)
        if membership is None:
            raise NotFoundError("Member not found")
        self.db.commit()
        logger.info("User %s removed user %s from group %s", user.id, target_user_id, group_id)
        return membership

    def change_member_role(
        self, group_id: int, user: User, target_user_id: int, role: str
    ) -> GroupMember:
        self.access.require_admin(user, group_id, "change member roles")
        membership = self.members.set_role(target_user_id, group_id, role)
        if membership is None:
            raise NotFoundError("Member not found")
        self.db.commit()
        self.db.refresh(membership)
        return membership
