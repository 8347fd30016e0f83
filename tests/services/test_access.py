# tests/services/test_access.py
"""Tests for the access & pagination engine."""

import pytest
from sqlalchemy import func

from groupchat_stage.core.errors import (
    ForbiddenError,
    InternalError,
    InvalidArgumentError,
    NotFoundError,
)
from groupchat_stage.models import Message, MessageRead
from groupchat_stage.models.membership import MEMBER_ROLE_ADMIN
from groupchat_stage.services.access import AccessEngine, Pagination
from groupchat_stage.services.membership import MembershipTable


def _message_count(db_session) -> int:
    return db_session.query(func.count(Message.id)).scalar()


def test_authorize_unknown_group(db_session, user) -> None:
    with pytest.raises(NotFoundError):
        AccessEngine(db_session).authorize(user, 4040)


def test_authorize_non_member(db_session, make_user, group) -> None:
    with pytest.raises(ForbiddenError, match="not a member"):
        AccessEngine(db_session).authorize(make_user(), group.id)


def test_authorize_inactive_member(db_session, group, other_user) -> None:
    MembershipTable(db_session).deactivate(other_user.id, group.id)
    db_session.commit()
    with pytest.raises(ForbiddenError):
        AccessEngine(db_session).authorize(other_user, group.id)


def test_send_message_self_marks_read(db_session, group, user) -> None:
    message = AccessEngine(db_session).send_message(group.id, user, "  hello there  ")

    assert message.content == "hello there"
    assert message.message_type == "text"
    assert [r.user_id for r in message.read_by] == [user.id]


@pytest.mark.parametrize(
    "content",
    ["", "   ", "x" * 1001],
)
def test_send_message_rejects_bad_content(db_session, group, user, content) -> None:
    with pytest.raises(InvalidArgumentError):
        AccessEngine(db_session).send_message(group.id, user, content)
    assert _message_count(db_session) == 0


def test_send_message_accepts_limit_length(db_session, group, user) -> None:
    message = AccessEngine(db_session).send_message(group.id, user, "x" * 1000)
    assert len(message.content) == 1000


def test_send_message_rejects_unknown_type(db_session, group, user) -> None:
    with pytest.raises(InvalidArgumentError):
        AccessEngine(db_session).send_message(group.id, user, "hi", "video")


def test_validation_precedes_membership(db_session, make_user, group) -> None:
    """A non-member sending empty content gets the validation failure."""
    with pytest.raises(InvalidArgumentError):
        AccessEngine(db_session).send_message(group.id, make_user(), "   ")


def test_send_message_unknown_group(db_session, user) -> None:
    with pytest.raises(NotFoundError):
        AccessEngine(db_session).send_message(9999, user, "hi")


def test_send_message_non_member(db_session, make_user, group) -> None:
    with pytest.raises(ForbiddenError):
        AccessEngine(db_session).send_message(group.id, make_user(), "hi")
    assert _message_count(db_session) == 0


def test_pagination_meta() -> None:
    meta = Pagination.compute(page=2, limit=10, total=25)
    assert meta.total_pages == 3
    assert meta.has_next
    assert meta.has_prev

    empty = Pagination.compute(page=1, limit=50, total=0)
    assert empty.total_pages == 0
    assert not empty.has_next
    assert not empty.has_prev


@pytest.mark.parametrize(("page", "limit"), [(0, 10), (-1, 10), (1, 0), (1, 101)])
def test_list_messages_rejects_bad_paging(db_session, user, page, limit) -> None:
    # Checked before the group lookup, so an unknown group id is fine here.
    with pytest.raises(InvalidArgumentError):
        AccessEngine(db_session).list_messages(12345, user, page, limit)


def test_list_messages_pages_reconstruct_history(
    db_session, group, user, post_messages
) -> None:
    sent = post_messages(group, user, 7)
    engine = AccessEngine(db_session)

    pages = []
    page = 1
    while True:
        messages, meta = engine.list_messages(group.id, user, page, 3)
        pages.append([m.id for m in messages])
        assert meta.total_messages == 7
        assert meta.total_pages == 3
        if not meta.has_next:
            break
        page += 1

    # Page 1 is the newest slice; each page is ascending.
    assert pages[0] == [m.id for m in sent[4:]]
    assert pages[-1] == [sent[0].id]
    history = [mid for chunk in reversed(pages) for mid in chunk]
    assert history == [m.id for m in sent]


def test_list_messages_marks_returned_read(
    db_session, group, user, other_user, post_messages
) -> None:
    post_messages(group, user, 3)
    engine = AccessEngine(db_session)
    assert engine.unread_count(group.id, other_user) == 3

    messages, _ = engine.list_messages(group.id, other_user, 1, 2)

    assert engine.unread_count(group.id, other_user) == 1
    assert all(other_user.id in {r.user_id for r in m.read_by} for m in messages)


def test_list_messages_requires_membership(db_session, make_user, group) -> None:
    with pytest.raises(ForbiddenError):
        AccessEngine(db_session).list_messages(group.id, make_user())


def test_unread_count_scenario(db_session, group, user, other_user, post_messages) -> None:
    """Three messages from A; B reads two of them and one stays unread."""
    sent = post_messages(group, user, 3)
    engine = AccessEngine(db_session)
    assert engine.unread_count(group.id, other_user) == 3
    assert engine.unread_count(group.id, user) == 0

    marked = engine.mark_many_read(group.id, other_user, [sent[0].id, sent[1].id])

    assert marked == 2
    assert engine.unread_count(group.id, other_user) == 1


def test_unread_count_ignores_own_messages(
    db_session, group, user, other_user, post_messages
) -> None:
    post_messages(group, other_user, 2)
    post_messages(group, user, 1)
    assert AccessEngine(db_session).unread_count(group.id, other_user) == 1


def test_mark_read_is_idempotent(db_session, group, user, other_user, post_messages) -> None:
    (message,) = post_messages(group, user, 1)
    engine = AccessEngine(db_session)

    assert engine.mark_read(message.id, other_user.id) is True
    assert engine.mark_read(message.id, other_user.id) is False

    receipts = db_session.query(MessageRead).filter(MessageRead.message_id == message.id).count()
    assert receipts == 2


def test_mark_many_read_ignores_foreign_and_duplicate_ids(
    db_session, make_group, group, user, other_user, post_messages
) -> None:
    elsewhere = make_group(user, members=(other_user,))
    mine = post_messages(group, user, 2)
    foreign = post_messages(elsewhere, user, 1)
    engine = AccessEngine(db_session)

    marked = engine.mark_many_read(
        group.id, other_user, [mine[0].id, mine[0].id, foreign[0].id, 99999]
    )

    assert marked == 1
    assert engine.unread_count(group.id, other_user) == 1
    assert engine.unread_count(elsewhere.id, other_user) == 1


def test_mark_many_read_requires_ids(db_session, group, user) -> None:
    with pytest.raises(InvalidArgumentError):
        AccessEngine(db_session).mark_many_read(group.id, user, [])


def test_mark_many_read_already_read(db_session, group, user, post_messages) -> None:
    sent = post_messages(group, user, 2)
    assert AccessEngine(db_session).mark_many_read(group.id, user, [m.id for m in sent]) == 2


def test_edit_message_by_sender(db_session, group, user, post_messages) -> None:
    (message,) = post_messages(group, user, 1)
    before = message.updated_at

    edited = AccessEngine(db_session).edit_message(message.id, user, " updated ")

    assert edited.content == "updated"
    assert edited.updated_at >= before


def test_edit_message_by_group_admin_forbidden(
    db_session, group, user, other_user, post_messages
) -> None:
    """Admins may delete but not edit other members' messages."""
    (message,) = post_messages(group, other_user, 1)
    with pytest.raises(ForbiddenError):
        AccessEngine(db_session).edit_message(message.id, user, "rewritten")


def test_edit_message_validates_content(db_session, group, user, post_messages) -> None:
    (message,) = post_messages(group, user, 1)
    with pytest.raises(InvalidArgumentError):
        AccessEngine(db_session).edit_message(message.id, user, "x" * 1001)


def test_edit_unknown_message(db_session, user) -> None:
    with pytest.raises(NotFoundError):
        AccessEngine(db_session).edit_message(4242, user, "hi")


def test_delete_message_by_group_admin(
    db_session, group, user, other_user, post_messages
) -> None:
    (message,) = post_messages(group, other_user, 1)
    message_id = message.id

    AccessEngine(db_session).delete_message(message_id, user)

    assert db_session.get(Message, message_id) is None
    assert db_session.query(MessageRead).filter(MessageRead.message_id == message_id).count() == 0


def test_delete_message_by_plain_member_forbidden(
    db_session, make_user, group, user, post_messages
) -> None:
    (message,) = post_messages(group, user, 1)
    with pytest.raises(ForbiddenError):
        AccessEngine(db_session).delete_message(message.id, make_user())


def test_require_admin(db_session, group, user, other_user) -> None:
    engine = AccessEngine(db_session)
    assert engine.require_admin(user, group.id, "do this").role == MEMBER_ROLE_ADMIN
    with pytest.raises(ForbiddenError, match="Only group admin can do this"):
        engine.require_admin(other_user, group.id, "do this")


def test_mark_many_read_failure_is_internal(
    db_session, group, user, other_user, post_messages, break_commits
) -> None:
    sent = post_messages(group, user, 2)
    engine = AccessEngine(db_session)
    break_commits()

    with pytest.raises(InternalError):
        engine.mark_many_read(group.id, other_user, [m.id for m in sent])

    assert engine.unread_count(group.id, other_user) == 2
