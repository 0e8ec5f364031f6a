"""Startup seeding: roles and the bootstrap SuperAdmin."""

from __future__ import annotations

from fastapi.testclient import TestClient

from app import main, models
from app.models import RoleName
from app.seed import ensure_seed_data


def test_roles_seeded_once(db):
    ensure_seed_data()
    ensure_seed_data()

    assert {role.role_name for role in db.query(models.Role).all()} == set(RoleName)
    assert db.query(models.User).count() == 0


def test_fresh_deployment_boots_with_super_admin(monkeypatch):
    monkeypatch.setenv("SUPERADMIN_EMAIL", "Root@Example.com")
    monkeypatch.setenv("SUPERADMIN_PASSWORD", "bootstrap-secret")
    monkeypatch.setattr(main, "_STARTUP_COMPLETE", False)

    with TestClient(main.app) as client:
        response = client.post(
            "/auth/login", json={"email": "root@example.com", "password": "bootstrap-secret"}
        )
        assert response.status_code == 200, response.text
        body = response.json()
        assert body["user"]["roles"] == ["SuperAdmin"]
        assert body["user"]["usersStats"]["totalPosts"] == 0

        headers = {"Authorization": f"Bearer {body['token']}"}
        created = client.post(
            "/users",
            json={"email": "first@example.com", "password": "secret123", "role": "Admin"},
            headers=headers,
        )
        assert created.status_code == 201

        wallet = client.get(f"/users/{body['user']['userId']}/wallet", headers=headers)
        assert wallet.status_code == 200
        assert wallet.json()["balance"] == 0


def test_super_admin_seed_is_idempotent(db, monkeypatch):
    monkeypatch.setenv("SUPERADMIN_EMAIL", "root@example.com")
    monkeypatch.setenv("SUPERADMIN_PASSWORD", "bootstrap-secret")

    ensure_seed_data()
    ensure_seed_data()

    users = db.query(models.User).filter(models.User.email == "root@example.com").all()
    assert len(users) == 1
    assert db.query(models.UsersStats).count() == 1
    assert db.query(models.Wallet).count() == 1
    assert db.query(models.UserRole).count() == 1
