# tests/services/test_membership.py
"""Tests for the membership table invariants."""

import pytest

from groupchat_stage.core.errors import ConflictError, InvalidArgumentError, LastAdminError
from groupchat_stage.models import GroupMember, User
from groupchat_stage.models.membership import (
    MEMBER_ROLE_ADMIN,
    MEMBER_ROLE_MEMBER,
    MEMBER_ROLE_MODERATOR,
)
from groupchat_stage.services.membership import MembershipTable


def test_join_creates_active_membership(db_session, make_group, user, other_user) -> None:
    group = make_group(user)
    table = MembershipTable(db_session)

    membership = table.join(other_user.id, group.id)
    db_session.commit()

    assert membership.is_active
    assert membership.role == MEMBER_ROLE_MEMBER
    assert table.is_active_member(other_user.id, group.id)
    assert table.active_member_count(group.id) == 2


def test_join_twice_is_conflict(db_session, group, other_user) -> None:
    table = MembershipTable(db_session)
    with pytest.raises(ConflictError):
        table.join(other_user.id, group.id)


def test_join_conflicts_with_inactive_row(db_session, group, other_user) -> None:
    """Uniqueness covers inactive rows too."""
    table = MembershipTable(db_session)
    table.deactivate(other_user.id, group.id)
    db_session.commit()

    with pytest.raises(ConflictError):
        table.join(other_user.id, group.id)


def test_join_rejects_unknown_role(db_session, make_group, user, other_user) -> None:
    group = make_group(user)
    with pytest.raises(InvalidArgumentError):
        MembershipTable(db_session).join(other_user.id, group.id, role="owner")


def test_ensure_active_reactivates_existing_row(db_session, group, other_user) -> None:
    table = MembershipTable(db_session)
    original = table.get(other_user.id, group.id)
    table.deactivate(other_user.id, group.id)
    db_session.commit()
    assert not table.is_active_member(other_user.id, group.id)

    rejoined = table.ensure_active(other_user.id, group.id)
    db_session.commit()

    assert rejoined.id == original.id
    assert rejoined.is_active
    assert table.is_active_member(other_user.id, group.id)


def test_ensure_active_is_idempotent(db_session, group, other_user) -> None:
    table = MembershipTable(db_session)
    first = table.ensure_active(other_user.id, group.id)
    second = table.ensure_active(other_user.id, group.id)
    assert first.id == second.id
    assert table.active_member_count(group.id) == 2


def test_cannot_remove_sole_admin(db_session, group, user) -> None:
    table = MembershipTable(db_session)
    with pytest.raises(LastAdminError):
        table.deactivate(user.id, group.id)
    assert table.active_admin_count(group.id) == 1


def test_remove_sole_admin_with_successor(db_session, group, user, other_user) -> None:
    table = MembershipTable(db_session)
    table.deactivate(user.id, group.id, successor_id=other_user.id)
    db_session.commit()

    assert not table.is_active_member(user.id, group.id)
    assert table.role_of(other_user.id, group.id) == MEMBER_ROLE_ADMIN
    assert table.active_admin_count(group.id) == 1


def test_successor_must_be_active_member(db_session, make_user, group, user) -> None:
    outsider = make_user()
    table = MembershipTable(db_session)
    with pytest.raises(InvalidArgumentError):
        table.deactivate(user.id, group.id, successor_id=outsider.id)
    assert table.is_active_member(user.id, group.id)


def test_admin_removable_when_another_admin_exists(db_session, group, user, other_user) -> None:
    table = MembershipTable(db_session)
    table.set_role(other_user.id, group.id, MEMBER_ROLE_ADMIN)
    table.deactivate(user.id, group.id)
    db_session.commit()
    assert table.active_admin_count(group.id) == 1


def test_cannot_demote_last_admin(db_session, group, user) -> None:
    table = MembershipTable(db_session)
    with pytest.raises(LastAdminError):
        table.set_role(user.id, group.id, MEMBER_ROLE_MEMBER)
    assert table.role_of(user.id, group.id) == MEMBER_ROLE_ADMIN


def test_deactivate_without_membership_returns_none(db_session, make_user, group) -> None:
    assert MembershipTable(db_session).deactivate(make_user().id, group.id) is None


def test_list_members_orders_admins_first(db_session, make_user, make_group, user) -> None:
    early, late = make_user(), make_user()
    group = make_group(user, members=(early, late))
    table = MembershipTable(db_session)
    table.set_role(late.id, group.id, MEMBER_ROLE_MODERATOR)
    table.set_role(early.id, group.id, MEMBER_ROLE_ADMIN)
    db_session.commit()

    members = table.list_members(group.id)

    assert [m.role for m in members][:2] == [MEMBER_ROLE_ADMIN, MEMBER_ROLE_ADMIN]
    assert members[-1].user_id == late.id


def test_groups_where_sole_admin(db_session, make_group, user, other_user) -> None:
    solo = make_group(user)
    shared = make_group(user, members=(other_user,))
    MembershipTable(db_session).set_role(other_user.id, shared.id, MEMBER_ROLE_ADMIN)
    db_session.commit()

    assert MembershipTable(db_session).groups_where_sole_admin(user.id) == [solo.id]


def test_join_duplicate_insert_is_conflict_and_keeps_pending_work(
    db_session, monkeypatch, group, other_user
) -> None:
    table = MembershipTable(db_session)
    staged = User(name="Staged User", email="staged@example.com", password_hash="x")
    db_session.add(staged)
    db_session.flush()
    # Skip the lookup so the insert reaches the unique constraint.
    monkeypatch.setattr(table, "get", lambda user_id, group_id: None)

    with pytest.raises(ConflictError):
        table.join(other_user.id, group.id)
    db_session.commit()

    assert db_session.query(User).filter(User.email == "staged@example.com").count() == 1
    assert db_session.query(GroupMember).filter(GroupMember.group_id == group.id).count() == 2
