"""Access & pagination engine for group messages.

Every group-scoped read or write goes through :class:`AccessEngine`, which
checks the caller's active membership before touching the message log and
serves history in a stable chronological order.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from sqlalchemy import and_, exists, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from groupchat_stage.core.errors import (
    ForbiddenError,
    InternalError,
    InvalidArgumentError,
    NotFoundError,
)
from groupchat_stage.db.time import utcnow
from groupchat_stage.models import Group, GroupMember, Message, MessageRead, User
from groupchat_stage.models.membership import MEMBER_ROLE_ADMIN
from groupchat_stage.models.message import MESSAGE_MAX_LENGTH, MESSAGE_TYPE_TEXT, MESSAGE_TYPES
from groupchat_stage.services.membership import MembershipTable

logger = logging.getLogger(__name__)

__all__ = [
    "AccessEngine",
    "Pagination",
    "MAX_PAGE_SIZE",
    "DEFAULT_PAGE_SIZE",
    "validate_message_content",
    "validate_message_type",
]

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class Pagination:
    """Page bookkeeping returned alongside a page of messages."""

    current_page: int
    total_pages: int
    total_messages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def compute(cls, page: int, limit: int, total: int) -> Pagination:
        total_pages = math.ceil(total / limit)
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_messages=total,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


def validate_message_content(content: str | None) -> str:
    """Return trimmed content or raise InvalidArgumentError.

    The length limit applies to the raw content, matching what the client sent.
    """
    if content is None or not content.strip():
        raise InvalidArgumentError("Message content cannot be empty")
    if len(content) > MESSAGE_MAX_LENGTH:
        raise InvalidArgumentError(f"Message cannot exceed {MESSAGE_MAX_LENGTH} characters")
    return content.strip()


def validate_message_type(message_type: str | None) -> str:
    if message_type not in MESSAGE_TYPES:
        raise InvalidArgumentError("Invalid message type")
    return message_type


class AccessEngine:
    """Membership-gated access to a group's messages."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.members = MembershipTable(db)

    # -- authorization -----------------------------------------------------

    def get_group(self, group_id: int) -> Group:
        group = self.db.get(Group, group_id)
        if group is None:
            raise NotFoundError("Group not found")
        return group

    def authorize(self, user: User, group_id: int) -> GroupMember:
        """Return the caller's active membership in the group.

        Raises:
            NotFoundError: The group does not exist.
            ForbiddenError: The caller has no active membership.
        """
        self.get_group(group_id)
        membership = self.members.get_active(user.id, group_id)
        if membership is None:
            raise ForbiddenError("You are not a member of this group")
        return membership

    def require_admin(self, user: User, group_id: int, action: str) -> GroupMember:
        """Like :meth:`authorize` but the caller must be an active admin.

        ``action`` completes the message "Only group admin can ...".
        """
        self.get_group(group_id)
        membership = self.members.get_active(user.id, group_id)
        if membership is None or membership.role != MEMBER_ROLE_ADMIN:
            raise ForbiddenError(f"Only group admin can {action}")
        return membership

    # -- history -------------------------------------------------------------

    def list_messages(
        self,
        group_id: int,
        user: User,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        *,
        mark_read: bool = True,
    ) -> tuple[list[Message], Pagination]:
        """Return one page of history in chronological order.

        Page 1 holds the most recent ``limit`` messages. Each page is fetched
        newest-first and reversed, so messages within a page read oldest to
        newest. Returned messages are marked read for the caller.
        """
        if page < 1 or limit < 1 or limit > MAX_PAGE_SIZE:
            raise InvalidArgumentError(
                "Invalid pagination parameters. Page must be >= 1, limit between 1-100"
            )
        self.authorize(user, group_id)

        total = (
            self.db.query(func.count(Message.id)).filter(Message.group_id == group_id).scalar()
            or 0
        )
        newest_first = (
            self.db.query(Message)
            .options(joinedload(Message.sender), selectinload(Message.read_by))
            .filter(Message.group_id == group_id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        messages = list(reversed(newest_first))

        if mark_read and messages:
            self._mark_messages_read([m.id for m in messages], user.id)
            for message in messages:
                self.db.refresh(message, attribute_names=["read_by"])

        logger.debug("Served %d messages of group %s page %d", len(messages), group_id, page)
        return messages, Pagination.compute(page, limit, total)

    def opening_messages(self, group_id: int, limit: int = DEFAULT_PAGE_SIZE) -> list[Message]:
        """First ``limit`` messages of a group, oldest first, without side effects."""
        return (
            self.db.query(Message)
            .options(joinedload(Message.sender), selectinload(Message.read_by))
            .filter(Message.group_id == group_id)
            .order_by(Message.created_at.asc(), Message.id.asc())
            .limit(limit)
            .all()
        )

    # -- read state ----------------------------------------------------------

    def mark_read(self, message_id: int, user_id: int) -> bool:
        """Record that ``user_id`` has read the message.

        Idempotent: returns False when the receipt already existed (including
        when a concurrent request inserted it first).
        """
        already = self.db.get(MessageRead, (message_id, user_id))
        if already is not None:
            return False
        self.db.add(MessageRead(message_id=message_id, user_id=user_id, read_at=utcnow()))
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return False
        return True

    def mark_many_read(self, group_id: int, user: User, message_ids: list[int]) -> int:
        """Mark the given messages of a group as read for the caller.

        Ids that are unknown or belong to another group are ignored.

        Returns:
            Number of distinct group messages now read by the caller.
        """
        if not message_ids:
            raise InvalidArgumentError("Message IDs array is required")
        self.authorize(user, group_id)

        wanted = {int(mid) for mid in message_ids}
        in_group = [
            row.id
            for row in self.db.query(Message.id).filter(
                Message.group_id == group_id, Message.id.in_(wanted)
            )
        ]
        if in_group:
            self._mark_messages_read(in_group, user.id)
        logger.debug("User %s marked %d messages read in group %s", user.id, len(in_group), group_id)
        return len(in_group)

    def unread_count(self, group_id: int, user: User) -> int:
        """Messages from other senders the caller has no receipt for."""
        self.authorize(user, group_id)
        has_receipt = exists().where(
            and_(MessageRead.message_id == Message.id, MessageRead.user_id == user.id)
        )
        return (
            self.db.query(func.count(Message.id))
            .filter(
                Message.group_id == group_id,
                Message.sender_id != user.id,
                ~has_receipt,
            )
            .scalar()
            or 0
        )

    def _mark_messages_read(self, message_ids: list[int], user_id: int) -> None:
        """Insert the missing receipts for ``message_ids`` in one transaction.

        A racing duplicate receipt falls back to per-message idempotent
        inserts; any other store failure aborts the whole batch.
        """
        existing = {
            row.message_id
            for row in self.db.query(MessageRead.message_id).filter(
                MessageRead.user_id == user_id, MessageRead.message_id.in_(message_ids)
            )
        }
        now = utcnow()
        for message_id in message_ids:
            if message_id not in existing:
                self.db.add(MessageRead(message_id=message_id, user_id=user_id, read_at=now))
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            for message_id in message_ids:
                self.mark_read(message_id, user_id)
        except SQLAlchemyError as err:
            self.db.rollback()
            logger.error("Bulk mark-read failed for user %s: %s", user_id, err)
            raise InternalError("Error marking messages as read") from err

    # -- writes --------------------------------------------------------------

    def send_message(
        self,
        group_id: int,
        sender: User,
        content: str | None,
        message_type: str | None = MESSAGE_TYPE_TEXT,
    ) -> Message:
        """Validate, authorize and store a message; the sender has read it."""
        content = validate_message_content(content)
        message_type = validate_message_type(message_type)
        self.authorize(sender, group_id)

        message = self.post(group_id, sender.id, content, message_type)
        self.db.commit()
        self.db.refresh(message)
        logger.info("Message %s sent to group %s by user %s", message.id, group_id, sender.id)
        return message

    def post(self, group_id: int, sender_id: int, content: str, message_type: str) -> Message:
        """Stage a message plus the sender's own receipt without committing."""
        now = utcnow()
        message = Message(
            content=content,
            sender_id=sender_id,
            group_id=group_id,
            message_type=message_type,
            created_at=now,
            updated_at=now,
        )
        self.db.add(message)
        self.db.flush()
        self.db.add(MessageRead(message_id=message.id, user_id=sender_id, read_at=now))
        self.db.flush()
        return message

    def get_message(self, message_id: int) -> Message:
        message = self.db.get(Message, message_id)
        if message is None:
            raise NotFoundError("Message not found")
        return message

    def edit_message(self, message_id: int, user: User, content: str | None) -> Message:
        """Replace the content of the caller's own message."""
        message = self.get_message(message_id)
        if message.sender_id != user.id:
            raise ForbiddenError("Only message sender can edit messages")
        message.content = validate_message_content(content)
        message.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(message)
        return message

    def delete_message(self, message_id: int, user: User) -> None:
        """Delete a message as its sender or as an active admin of its group."""
        message = self.get_message(message_id)
        if message.sender_id != user.id:
            if self.members.role_of(user.id, message.group_id) != MEMBER_ROLE_ADMIN:
                raise ForbiddenError("Only message sender or group admin can delete messages")
        # Load the receipts so the delete cascade removes them with the message.
        self.db.refresh(message, attribute_names=["read_by"])
        self.db.delete(message)
        self.db.commit()
        logger.info("Message %s deleted by user %s", message_id, user.id)
