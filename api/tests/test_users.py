"""User endpoint tests: accounts, follows, search and administration."""

from __future__ import annotations

from app import models
from app.models import RoleName
from app.services import users as user_service


def _follow(client, headers, follower_id: str, following_id: str):
    return client.post(
        "/users/follows",
        json={"followerId": follower_id, "followingId": following_id},
        headers=headers,
    )


def _stats(client, user_id: str) -> dict:
    return client.get(f"/users/{user_id}").json()["usersStats"]


def test_get_user_hides_password(client, make_user):
    user = make_user(full_name="Grace Hopper")

    response = client.get(f"/users/{user.user_id}")

    assert response.status_code == 200
    body = response.json()
    assert body["fullName"] == "Grace Hopper"
    assert body["roles"] == ["Authenticated"]
    assert body["usersStats"]["totalPosts"] == 0
    assert "password" not in body


def test_get_missing_user(client):
    response = client.get("/users/phimissingmissingmissing00")
    assert response.status_code == 404
    assert response.json() == {"message": "User not found"}


def test_follow_then_unfollow(client, make_user, auth_headers):
    alice = make_user()
    bob = make_user()
    headers = auth_headers(alice)

    first = _follow(client, headers, alice.user_id, bob.user_id)
    assert first.status_code == 200
    assert first.json() == {"followed": True}
    assert _stats(client, bob.user_id)["followersCount"] == 1
    assert _stats(client, alice.user_id)["followingsCount"] == 1
    assert client.get(f"/users/{bob.user_id}", headers=headers).json()["following"] is True

    second = _follow(client, headers, alice.user_id, bob.user_id)
    assert second.json() == {"followed": False}
    assert _stats(client, bob.user_id)["followersCount"] == 0
    assert _stats(client, alice.user_id)["followingsCount"] == 0


def test_concurrent_duplicate_follow_is_conflict(client, db, make_user, auth_headers, monkeypatch):
    alice = make_user()
    bob = make_user()
    headers = auth_headers(alice)
    _follow(client, headers, alice.user_id, bob.user_id)
    # The edge already exists but the lookup raced past it
    monkeypatch.setattr(user_service, "find_follow", lambda *args: None)

    response = _follow(client, headers, alice.user_id, bob.user_id)

    assert response.status_code == 409
    assert response.json() == {"message": "Follow already recorded"}
    assert db.query(models.Follow).count() == 1
    assert _stats(client, bob.user_id)["followersCount"] == 1
    assert _stats(client, alice.user_id)["followingsCount"] == 1


def test_cannot_follow_self(client, make_user, auth_headers):
    alice = make_user()
    response = _follow(client, auth_headers(alice), alice.user_id, alice.user_id)
    assert response.status_code == 400


def test_cannot_follow_on_behalf_of_someone_else(client, make_user, auth_headers):
    alice = make_user()
    bob = make_user()
    carol = make_user()

    response = _follow(client, auth_headers(carol), alice.user_id, bob.user_id)

    assert response.status_code == 403


def test_followers_and_followings(client, make_user, auth_headers):
    star = make_user(full_name="Star")
    fan_one = make_user(full_name="Fan One")
    fan_two = make_user(full_name="Fan Two")
    _follow(client, auth_headers(fan_one), fan_one.user_id, star.user_id)
    _follow(client, auth_headers(fan_two), fan_two.user_id, star.user_id)
    _follow(client, auth_headers(star), star.user_id, fan_two.user_id)

    followers = client.get(
        f"/users/{star.user_id}/followers", headers=auth_headers(star)
    ).json()
    assert [user["fullName"] for user in followers["data"]] == ["Fan Two", "Fan One"]
    assert [user["following"] for user in followers["data"]] == [True, False]
    assert followers["metadata"]["totalItems"] == 2

    followings = client.get(f"/users/{fan_one.user_id}/followings").json()
    assert [user["userId"] for user in followings["data"]] == [star.user_id]

    filtered = client.get(f"/users/{star.user_id}/followers", params={"search": "one"}).json()
    assert [user["fullName"] for user in filtered["data"]] == ["Fan One"]


def test_unfollowings_excludes_self_and_followed(client, make_user, auth_headers):
    me = make_user()
    followed = make_user()
    suggestion = make_user()
    _follow(client, auth_headers(me), me.user_id, followed.user_id)

    response = client.get(f"/users/{me.user_id}/unfollowings").json()

    assert [user["userId"] for user in response["data"]] == [suggestion.user_id]


def test_search_requires_every_term(client, make_user):
    make_user(full_name="Ada Lovelace", bio="mathematician")
    make_user(full_name="Ada Byron", bio="poet")
    make_user(full_name="Alan Turing", bio="mathematician")

    response = client.get("/users", params={"search": "ada mathematician"}).json()
    assert [user["fullName"] for user in response["data"]] == ["Ada Lovelace"]

    everyone = client.get("/users", params={"search": "undefined"}).json()
    assert everyone["metadata"]["totalItems"] == 3


def test_create_user_is_admin_only(client, make_user, auth_headers):
    regular = make_user()
    payload = {"email": "new@example.com", "password": "secret123", "firstName": "New", "lastName": "Person"}

    assert client.post("/users", json=payload, headers=auth_headers(regular)).status_code == 403

    admin = make_user(roles=(RoleName.ADMIN,))
    response = client.post("/users", json=payload, headers=auth_headers(admin))

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "User created successfully"
    user = body["data"]
    assert user["fullName"] == "New Person"
    assert user["roles"] == ["Authenticated"]
    assert user["usersStats"]["followersCount"] == 0
    assert "password" not in user

    wallet = client.get(f"/users/{user['userId']}/wallet", headers=auth_headers(admin)).json()
    assert wallet["balance"] == 0
    assert len(wallet["accountNumber"]) == 10


def test_create_user_duplicate_email(client, make_user, auth_headers):
    make_user(email="taken@example.com")
    admin = make_user(roles=(RoleName.ADMIN,))

    response = client.post(
        "/users",
        json={"email": "Taken@example.com", "password": "secret123"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 409
    assert response.json() == {"message": "Email already in use"}


def test_admin_cannot_grant_super_admin(client, make_user, auth_headers):
    admin = make_user(roles=(RoleName.ADMIN,))

    response = client.post(
        "/users",
        json={"email": "boss@example.com", "password": "secret123", "role": "SuperAdmin"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 403


def test_update_user_self_only(client, make_user, auth_headers):
    user = make_user(full_name="Old Name")
    other = make_user()

    assert client.put(
        f"/users/{user.user_id}", json={"bio": "hacked"}, headers=auth_headers(other)
    ).status_code == 403

    response = client.put(
        f"/users/{user.user_id}",
        json={"bio": "Writer", "firstName": "New", "lastName": "Name", "phoneNumber": ""},
        headers=auth_headers(user),
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["bio"] == "Writer"
    assert data["fullName"] == "New Name"
    assert data["phoneNumber"] is None


def test_update_status_is_audited(client, db, make_user, auth_headers):
    admin = make_user(roles=(RoleName.ADMIN,))
    target = make_user()

    response = client.patch(
        f"/users/{target.user_id}/status", json={"status": "banned"}, headers=auth_headers(admin)
    )

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "banned"
    entry = db.query(models.AuditLog).filter(models.AuditLog.target_id == target.user_id).one()
    assert entry.action == "update_user_status"
    assert entry.actor_id == admin.user_id
    assert client.get("/auth/me", headers=auth_headers(target)).status_code == 401


def test_admin_cannot_change_super_admin_status(client, make_user, auth_headers):
    admin = make_user(roles=(RoleName.ADMIN,))
    boss = make_user(roles=(RoleName.SUPER_ADMIN,))

    response = client.patch(
        f"/users/{boss.user_id}/status", json={"status": "banned"}, headers=auth_headers(admin)
    )

    assert response.status_code == 403


def test_replace_roles_requires_super_admin(client, make_user, auth_headers):
    admin = make_user(roles=(RoleName.ADMIN,))
    boss = make_user(roles=(RoleName.SUPER_ADMIN,))
    target = make_user()
    payload = {"roles": ["Authenticated", "PaymentAgent"]}

    assert client.put(
        f"/users/{target.user_id}/roles", json=payload, headers=auth_headers(admin)
    ).status_code == 403

    response = client.put(f"/users/{target.user_id}/roles", json=payload, headers=auth_headers(boss))

    assert response.status_code == 200
    assert sorted(response.json()["data"]["roles"]) == ["Authenticated", "PaymentAgent"]
    roles = client.get(f"/users/{target.user_id}/roles", headers=auth_headers(admin)).json()
    assert sorted(roles["roles"]) == ["Authenticated", "PaymentAgent"]


def test_delete_user_fixes_counters(client, make_user, auth_headers):
    leaving = make_user()
    friend = make_user()
    _follow(client, auth_headers(leaving), leaving.user_id, friend.user_id)
    _follow(client, auth_headers(friend), friend.user_id, leaving.user_id)
    blog_id = client.post(
        "/blogs", json={"title": "Friend's", "text": "post"}, headers=auth_headers(friend)
    ).json()["data"]["blogId"]
    client.put(f"/blogs/{blog_id}/likes", headers=auth_headers(leaving))
    client.post(f"/blogs/{blog_id}/comments", json={"text": "bye"}, headers=auth_headers(leaving))

    response = client.delete(f"/users/{leaving.user_id}", headers=auth_headers(leaving))

    assert response.status_code == 200
    assert client.get(f"/users/{leaving.user_id}").status_code == 404
    stats = _stats(client, friend.user_id)
    assert stats["followersCount"] == 0
    assert stats["followingsCount"] == 0
    blog = client.get(f"/blogs/{blog_id}").json()
    assert blog["likesCount"] == 0
    assert blog["commentsCount"] == 0


def test_search_treats_wildcards_literally(client, make_user):
    make_user(full_name="Ada Lovelace")
    make_user(full_name="Bob Smith")
    make_user(full_name="100% Real", user_name="real_deal")

    percent = client.get("/users", params={"search": "%"}).json()
    assert [user["fullName"] for user in percent["data"]] == ["100% Real"]

    underscore = client.get("/users", params={"search": "_"}).json()
    assert [user["userName"] for user in underscore["data"]] == ["real_deal"]

    backslash = client.get("/users", params={"search": "\\"}).json()
    assert backslash["metadata"]["totalItems"] == 0


def test_composed_full_name_fits_column(client, make_user, auth_headers):
    admin = make_user(roles=(RoleName.ADMIN,))
    payload = {
        "email": "long@example.com",
        "password": "secret123",
        "firstName": "F" * 255,
        "middleName": "M" * 255,
        "lastName": "L" * 255,
    }

    response = client.post("/users", json=payload, headers=auth_headers(admin))

    assert response.status_code == 201
    full_name = response.json()["data"]["fullName"]
    assert len(full_name) <= models.User.__table__.c.full_name.type.length
    assert full_name.startswith("F" * 255)

    user_id = response.json()["data"]["userId"]
    renamed = client.put(
        f"/users/{user_id}", json={"lastName": "Z" * 255}, headers=auth_headers(admin)
    )
    assert renamed.status_code == 200
    assert len(renamed.json()["data"]["fullName"]) <= 255


def test_audit_columns_hold_any_actor_name(client, make_user, auth_headers):
    widest_actor = max(
        models.User.__table__.c.full_name.type.length,
        models.User.__table__.c.email.type.length,
    )
    for table in models.Base.metadata.sorted_tables:
        for column_name in ("created_by", "updated_by"):
            if column_name in table.c:
                assert table.c[column_name].type.length >= widest_actor, table.name

    author = make_user(full_name="N" * 255)
    response = client.post(
        "/blogs", json={"title": "Long name", "text": "body"}, headers=auth_headers(author)
    )
    assert response.status_code == 201
    assert response.json()["data"]["createdBy"] == "N" * 255
