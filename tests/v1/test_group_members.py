# tests/v1/test_group_members.py
"""Tests for membership and invitation endpoints."""

from fastapi import status


def test_invite_accept_flow(client, make_user, group, auth_headers, headers_for) -> None:
    invitee = make_user(email="carol@example.com")
    invitee_headers = headers_for(invitee)

    invite = client.post(
        f"/api/group-members/{group.id}/invite",
        json={"email": "Carol@Example.com"},
        headers=auth_headers,
    )
    assert invite.status_code == status.HTTP_201_CREATED
    assert invite.json()["status"] == "pending"
    assert invite.json()["user"]["id"] == invitee.id

    pending = client.get("/api/group-members/invitations", headers=invitee_headers)
    assert [i["groupName"] for i in pending.json()] == ["Book Club"]

    accept = client.post(f"/api/group-members/{group.id}/accept", headers=invitee_headers)
    assert accept.status_code == status.HTTP_200_OK

    members = client.get(f"/api/group-members/{group.id}/members", headers=invitee_headers)
    assert invitee.id in {m["user"]["id"] for m in members.json()}


def test_invite_unknown_email(client, group, auth_headers) -> None:
    response = client.post(
        f"/api/group-members/{group.id}/invite",
        json={"email": "ghost@example.com"},
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["message"] == "User not found"


def test_invite_existing_member(client, group, other_user, auth_headers) -> None:
    response = client.post(
        f"/api/group-members/{group.id}/invite",
        json={"email": other_user.email},
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_409_CONFLICT


def test_invite_by_non_admin(client, make_user, group, other_headers) -> None:
    response = client.post(
        f"/api/group-members/{group.id}/invite",
        json={"email": make_user().email},
        headers=other_headers,
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_accept_without_invitation(client, make_user, group, headers_for) -> None:
    response = client.post(
        f"/api/group-members/{group.id}/accept", headers=headers_for(make_user())
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_decline(client, make_user, group, auth_headers, headers_for) -> None:
    invitee = make_user()
    client.post(
        f"/api/group-members/{group.id}/invite",
        json={"email": invitee.email},
        headers=auth_headers,
    )
    response = client.post(f"/api/group-members/{group.id}/decline", headers=headers_for(invitee))
    assert response.status_code == status.HTTP_200_OK
    pending = client.get("/api/group-members/invitations", headers=headers_for(invitee))
    assert pending.json() == []


def test_members_list_admins_first(client, group, user, other_user, other_headers) -> None:
    response = client.get(f"/api/group-members/{group.id}/members", headers=other_headers)
    assert response.status_code == status.HTTP_200_OK
    assert [(m["user"]["id"], m["role"]) for m in response.json()] == [
        (user.id, "admin"),
        (other_user.id, "member"),
    ]


def test_remove_last_admin_requires_successor(
    client, group, user, other_user, auth_headers
) -> None:
    refused = client.delete(
        f"/api/group-members/{group.id}/members/{user.id}", headers=auth_headers
    )
    assert refused.status_code == status.HTTP_409_CONFLICT

    handed_over = client.delete(
        f"/api/group-members/{group.id}/members/{user.id}",
        params={"successorId": other_user.id},
        headers=auth_headers,
    )
    assert handed_over.status_code == status.HTTP_200_OK


def test_admin_removes_member(client, group, other_user, auth_headers, other_headers) -> None:
    response = client.delete(
        f"/api/group-members/{group.id}/members/{other_user.id}", headers=auth_headers
    )
    assert response.status_code == status.HTTP_200_OK

    messages = client.get(f"/api/messages/{group.id}/messages", headers=other_headers)
    assert messages.status_code == status.HTTP_403_FORBIDDEN


def test_change_role(client, group, user, other_user, auth_headers) -> None:
    response = client.put(
        f"/api/group-members/{group.id}/members/{other_user.id}/role",
        json={"role": "moderator"},
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["role"] == "moderator"

    demote_self = client.put(
        f"/api/group-members/{group.id}/members/{user.id}/role",
        json={"role": "member"},
        headers=auth_headers,
    )
    assert demote_self.status_code == status.HTTP_409_CONFLICT


def test_change_role_invalid(client, group, other_user, auth_headers) -> None:
    response = client.put(
        f"/api/group-members/{group.id}/members/{other_user.id}/role",
        json={"role": "owner"},
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
