"""Test authentication: token issuance, the role guards and role ranking."""

from __future__ import annotations

import dataclasses

import pytest

from app.auth import ROLE_RANK, create_access_token, decode_access_token, role_satisfies
from app.main import app
from app.models import RoleName, UserStatus


def test_create_and_decode_access_token(make_user):
    user = make_user(roles=(RoleName.AUTHENTICATED, RoleName.BUSINESS_OWNER))
    config = app.state.auth_config

    payload = decode_access_token(create_access_token(user, config), config)

    assert payload["sub"] == user.user_id
    assert payload["userId"] == user.user_id
    assert payload["email"] == user.email
    assert payload["isAuthenticated"] is True
    assert sorted(payload["roles"]) == ["Authenticated", "BusinessOwner"]
    assert payload["ver"] == config.token_version


def test_issue_token_for_verified_user(client, make_user):
    user = make_user(email="reader@example.com")

    response = client.post("/auth/token", json={"email": "reader@example.com"})

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Token generated successfully"
    assert body["user"]["userId"] == user.user_id
    assert "password" not in body["user"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert me.status_code == 200
    assert me.json()["email"] == "reader@example.com"
    assert me.json()["roles"] == ["Authenticated"]


def test_issue_token_rejects_unverified_user(client, make_user):
    make_user(email="pending@example.com", verified=False)

    response = client.post("/auth/token", json={"email": "pending@example.com"})

    assert response.status_code == 401
    assert response.json() == {"message": "User is not verified"}


def test_issue_token_unknown_email(client):
    response = client.post("/auth/token", json={"email": "nobody@example.com"})
    assert response.status_code == 404
    assert response.json()["message"] == "User not found"


def test_login_checks_password(client, make_user):
    make_user(email="writer@example.com", password="correct-horse")

    bad = client.post("/auth/login", json={"email": "writer@example.com", "password": "wrong"})
    assert bad.status_code == 401
    assert bad.json()["message"] == "Invalid credentials"

    good = client.post(
        "/auth/login", json={"email": "writer@example.com", "password": "correct-horse"}
    )
    assert good.status_code == 200
    assert good.json()["token"]


def test_guard_without_token(client):
    response = client.get("/auth/me")
    assert response.status_code == 401
    assert response.json() == {"message": "No token provided"}


def test_guard_rejects_malformed_header(client):
    response = client.get("/auth/me", headers={"Authorization": "Token abc"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid token format"


def test_guard_rejects_bad_signature(client):
    response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid token"


def test_guard_rejects_expired_token(client, make_user):
    user = make_user()
    token = create_access_token(user, app.state.auth_config, expires_in_seconds=-60)

    response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["message"] == "Token expired"


def test_guard_rejects_old_token_version(client, make_user):
    user = make_user()
    old_config = dataclasses.replace(app.state.auth_config, token_version=1)
    token = create_access_token(user, old_config)

    response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["message"] == "Unsupported token version"


def test_guard_rejects_banned_user(client, make_user, auth_headers):
    user = make_user(status=UserStatus.BANNED)

    response = client.get("/auth/me", headers=auth_headers(user))

    assert response.status_code == 401
    assert response.json()["message"] == "Account is banned"


def test_guard_rejects_deleted_user(client, make_user, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    assert client.delete(f"/users/{user.user_id}", headers=headers).status_code == 200

    response = client.get("/auth/me", headers=headers)

    assert response.status_code == 401
    assert response.json()["message"] == "User not found"


def test_anonymous_routes_accept_missing_token(client):
    response = client.get("/blogs")
    assert response.status_code == 200
    assert response.json()["data"] == []


def test_anonymous_routes_reject_invalid_token(client):
    response = client.get("/blogs", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401


def test_insufficient_role_is_forbidden(client, make_user, auth_headers):
    user = make_user()

    response = client.get(f"/users/{user.user_id}/roles", headers=auth_headers(user))

    assert response.status_code == 403
    assert response.json() == {"message": "Insufficient permissions"}


@pytest.mark.parametrize(
    "roles, minimum, expected",
    [
        ({RoleName.ANONYMOUS}, RoleName.ANONYMOUS, True),
        ({RoleName.ANONYMOUS}, RoleName.AUTHENTICATED, False),
        ({RoleName.AUTHENTICATED}, RoleName.AUTHENTICATED, True),
        ({RoleName.AUTHENTICATED}, RoleName.BUSINESS_OWNER, False),
        ({RoleName.BUSINESS_OWNER}, RoleName.BUSINESS_OWNER, True),
        ({RoleName.BUSINESS_OWNER}, RoleName.PAYMENT_AGENT, False),
        ({RoleName.PAYMENT_AGENT}, RoleName.BUSINESS_OWNER, False),
        ({RoleName.PAYMENT_AGENT}, RoleName.AUTHENTICATED, True),
        ({RoleName.ADMIN}, RoleName.PAYMENT_AGENT, True),
        ({RoleName.ADMIN}, RoleName.SUPER_ADMIN, False),
        ({RoleName.SUPER_ADMIN}, RoleName.ADMIN, True),
    ],
)
def test_role_satisfies(roles, minimum, expected):
    assert role_satisfies(frozenset(roles), minimum) is expected


def test_role_rank_covers_every_role():
    assert set(ROLE_RANK) == set(RoleName)
