"""Blog endpoint tests: feeds, views, likes, reposts, pins and delete cascade."""

from __future__ import annotations

from datetime import timedelta

from app import models
from app.models import utcnow
from app.services import likes
from app.utils.ids import ID_LENGTH, ID_PREFIX


def _create_blog(client, headers, **fields) -> dict:
    body = {"title": "Hello world", "text": "First post"}
    body.update(fields)
    response = client.post("/blogs", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _user_stats(client, user_id: str) -> dict:
    return client.get(f"/users/{user_id}").json()["usersStats"]


def test_create_blog(client, make_user, auth_headers):
    author = make_user(full_name="Ada Writer")

    response = client.post(
        "/blogs",
        json={"title": "Hello world", "text": "First post", "images": ["a.png"]},
        headers=auth_headers(author),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Blog created successfully"
    blog = body["data"]
    assert blog["blogId"].startswith(ID_PREFIX)
    assert len(blog["blogId"]) == ID_LENGTH
    assert blog["userId"] == author.user_id
    assert blog["isReel"] is False
    assert blog["images"] == ["a.png"]
    assert blog["slug"].startswith("hello-world-")
    assert blog["createdBy"] == "Ada Writer"
    assert blog["author"]["fullName"] == "Ada Writer"
    assert _user_stats(client, author.user_id)["totalPosts"] == 1


def test_create_blog_requires_authentication(client):
    response = client.post("/blogs", json={"title": "t", "text": "x"})
    assert response.status_code == 401
    assert response.json()["message"] == "No token provided"


def test_create_blog_validation_error_is_400(client, make_user, auth_headers):
    response = client.post("/blogs", json={"text": "no title"}, headers=auth_headers(make_user()))
    assert response.status_code == 400
    assert "title" in response.json()["message"]


def test_blog_with_video_is_reel_and_filterable(client, make_user, auth_headers):
    headers = auth_headers(make_user())
    _create_blog(client, headers, title="Plain")
    reel = _create_blog(client, headers, title="Clip", video="clip.mp4")
    assert reel["isReel"] is True

    reels = client.get("/blogs", params={"isReel": "true"}).json()
    assert [item["blog"]["blogId"] for item in reels["data"]] == [reel["blogId"]]

    others = client.get("/blogs", params={"isReel": "false"}).json()
    assert [item["blog"]["title"] for item in others["data"]] == ["Plain"]


def test_list_blogs_newest_first_with_metadata(client, make_user, auth_headers):
    headers = auth_headers(make_user())
    for title in ("one", "two", "three"):
        _create_blog(client, headers, title=title)

    first = client.get("/blogs", params={"page": 1, "limit": 2}).json()
    assert [item["blog"]["title"] for item in first["data"]] == ["three", "two"]
    assert first["metadata"] == {
        "currentPage": 1,
        "itemsPerPage": 2,
        "totalItems": 3,
        "totalPages": 2,
        "hasNextPage": True,
        "hasPreviousPage": False,
    }

    second = client.get("/blogs", params={"page": 2, "limit": 2}).json()
    assert [item["blog"]["title"] for item in second["data"]] == ["one"]
    assert second["metadata"]["hasNextPage"] is False
    assert second["metadata"]["hasPreviousPage"] is True


def test_random_sort_returns_every_blog(client, make_user, auth_headers):
    headers = auth_headers(make_user())
    for title in ("a", "b", "c"):
        _create_blog(client, headers, title=title)

    response = client.get("/blogs", params={"sort": "random"})

    assert response.status_code == 200
    assert sorted(item["blog"]["title"] for item in response.json()["data"]) == ["a", "b", "c"]


def test_get_blog_counts_each_view(client, db, make_user, auth_headers):
    author = make_user()
    reader = make_user()
    blog = _create_blog(client, auth_headers(author))

    client.get(f"/blogs/{blog['blogId']}")
    response = client.get(f"/blogs/{blog['blogId']}", headers=auth_headers(reader))

    assert response.status_code == 200
    assert response.json()["viewsCount"] == 2
    assert response.json()["blog"]["viewsCount"] == 2
    views = db.query(models.View).filter(models.View.ref_id == blog["blogId"]).all()
    assert sorted(view.user_id or "" for view in views) == sorted(["", reader.user_id])


def test_get_missing_blog(client):
    response = client.get("/blogs/phimissingmissingmissing00")
    assert response.status_code == 404
    assert response.json() == {"message": "Blog not found"}


def test_like_toggle_updates_counters(client, make_user, auth_headers):
    author = make_user()
    fan = make_user()
    blog = _create_blog(client, auth_headers(author))
    url = f"/blogs/{blog['blogId']}/likes"

    liked = client.put(url, headers=auth_headers(fan))
    assert liked.json() == {"liked": True, "likesCount": 1}
    assert _user_stats(client, fan.user_id)["totalLikes"] == 1

    listing = client.get(url).json()
    assert listing["metadata"]["totalItems"] == 1
    assert listing["data"][0]["user"]["userId"] == fan.user_id

    meta = client.get(f"/blogs/{blog['blogId']}", headers=auth_headers(fan)).json()
    assert meta["liked"] is True

    unliked = client.put(url, headers=auth_headers(fan))
    assert unliked.json() == {"liked": False, "likesCount": 0}
    assert _user_stats(client, fan.user_id)["totalLikes"] == 0


def test_concurrent_duplicate_like_is_conflict(client, db, make_user, auth_headers, monkeypatch):
    author = make_user()
    fan = make_user()
    blog = _create_blog(client, auth_headers(author))
    url = f"/blogs/{blog['blogId']}/likes"
    client.put(url, headers=auth_headers(fan))
    # Another request inserted the like between our lookup and our insert
    monkeypatch.setattr(likes, "find_like", lambda *args: None)

    response = client.put(url, headers=auth_headers(fan))

    assert response.status_code == 409
    assert response.json() == {"message": "Like already recorded"}
    assert db.query(models.Like).count() == 1
    assert client.get(f"/blogs/{blog['blogId']}").json()["likesCount"] == 1
    assert _user_stats(client, fan.user_id)["totalLikes"] == 1


def test_update_blog_only_by_owner(client, make_user, auth_headers):
    author = make_user()
    stranger = make_user()
    blog = _create_blog(client, auth_headers(author))
    url = f"/blogs/{blog['blogId']}"

    forbidden = client.put(url, json={"title": "Hijacked"}, headers=auth_headers(stranger))
    assert forbidden.status_code == 403

    response = client.put(url, json={"title": "Edited", "text": ""}, headers=auth_headers(author))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["title"] == "Edited"
    assert data["text"] == "First post"


def test_admin_may_edit_any_blog(client, make_user, auth_headers):
    from app.models import RoleName

    author = make_user()
    admin = make_user(roles=(RoleName.ADMIN,))
    blog = _create_blog(client, auth_headers(author))

    response = client.put(
        f"/blogs/{blog['blogId']}", json={"title": "Moderated"}, headers=auth_headers(admin)
    )

    assert response.status_code == 200
    assert response.json()["data"]["title"] == "Moderated"


def test_delete_blog_cascades(client, db, make_user, auth_headers):
    author = make_user()
    fan = make_user()
    blog = _create_blog(client, auth_headers(author), pinned=True)
    blog_id = blog["blogId"]

    comment = client.post(
        f"/blogs/{blog_id}/comments", json={"text": "nice"}, headers=auth_headers(fan)
    ).json()["data"]["comment"]
    client.post(
        f"/comments/{comment['commentId']}/replies", json={"text": "thanks"}, headers=auth_headers(author)
    )
    client.put(f"/comments/{comment['commentId']}/likes", headers=auth_headers(author))
    client.put(f"/blogs/{blog_id}/likes", headers=auth_headers(fan))
    client.get(f"/blogs/{blog_id}")

    response = client.delete(f"/blogs/{blog_id}", headers=auth_headers(author))

    assert response.status_code == 200
    assert response.json() == {"message": "Blog deleted successfully"}
    assert client.get(f"/blogs/{blog_id}").status_code == 404
    assert _user_stats(client, author.user_id)["totalPosts"] == 0
    assert _user_stats(client, fan.user_id)["totalLikes"] == 0
    assert db.query(models.Comment).count() == 0
    assert db.query(models.Like).count() == 0
    assert db.query(models.View).count() == 0
    assert db.query(models.PinnedBlog).count() == 0


def test_repost_records_share(client, make_user, auth_headers):
    author = make_user()
    reposter = make_user()
    source = _create_blog(client, auth_headers(author))

    repost = _create_blog(
        client, auth_headers(reposter), title="Look at this", repostedFromBlogId=source["blogId"]
    )

    assert repost["blogId"] != source["blogId"]
    seen = client.get(f"/blogs/{source['blogId']}", headers=auth_headers(reposter)).json()
    assert seen["repostsCount"] == 1
    assert seen["reposted"] is True


def test_delete_blog_removes_its_shares(client, db, make_user, auth_headers):
    author = make_user()
    reposter = make_user()
    source = _create_blog(client, auth_headers(author))
    other = _create_blog(client, auth_headers(author), title="Other")
    repost = _create_blog(client, auth_headers(reposter), repostedFromBlogId=source["blogId"])
    _create_blog(client, auth_headers(reposter), repostedFromBlogId=other["blogId"])

    response = client.delete(f"/blogs/{source['blogId']}", headers=auth_headers(author))

    assert response.status_code == 200
    shares = db.query(models.Share).all()
    assert [share.ref_id for share in shares] == [other["blogId"]]
    # The repost is the reposter's own blog and stays
    assert client.get(f"/blogs/{repost['blogId']}").status_code == 200


def test_pinned_feed(client, make_user, auth_headers):
    headers = auth_headers(make_user())
    _create_blog(client, headers, title="regular")
    pinned = _create_blog(client, headers, title="promoted", pinned=True, pinnedNumberOfDays=7)

    response = client.get("/blogs/pinned").json()

    assert [item["blog"]["blogId"] for item in response["data"]] == [pinned["blogId"]]


def test_expired_pin_leaves_pinned_feed(client, db, make_user, auth_headers):
    headers = auth_headers(make_user())
    expired = _create_blog(client, headers, title="last week", pinned=True, pinnedNumberOfDays=7)
    current = _create_blog(client, headers, title="this week", pinned=True, pinnedNumberOfDays=7)
    pin = db.query(models.PinnedBlog).filter(models.PinnedBlog.blog_id == expired["blogId"]).one()
    pin.start_date = utcnow() - timedelta(days=8)
    pin.end_date = utcnow() - timedelta(days=1)
    db.commit()

    response = client.get("/blogs/pinned").json()

    assert [item["blog"]["blogId"] for item in response["data"]] == [current["blogId"]]
    assert response["metadata"]["totalItems"] == 1
    # Expiry hides the pin; the blog itself is untouched
    assert client.get(f"/blogs/{expired['blogId']}").status_code == 200


def test_following_feed(client, make_user, auth_headers):
    reader = make_user()
    followed = make_user()
    stranger = make_user()
    client.post(
        "/users/follows",
        json={"followerId": reader.user_id, "followingId": followed.user_id},
        headers=auth_headers(reader),
    )
    mine = _create_blog(client, auth_headers(reader), title="mine")
    theirs = _create_blog(client, auth_headers(followed), title="theirs")
    _create_blog(client, auth_headers(stranger), title="unrelated")

    response = client.get("/blogs/following", headers=auth_headers(reader)).json()

    assert [item["blog"]["blogId"] for item in response["data"]] == [theirs["blogId"], mine["blogId"]]
    assert response["metadata"]["totalItems"] == 2


def test_likers_in_network(client, make_user, auth_headers):
    reader = make_user()
    friend = make_user()
    stranger = make_user()
    blog = _create_blog(client, auth_headers(stranger))
    client.post(
        "/users/follows",
        json={"followerId": reader.user_id, "followingId": friend.user_id},
        headers=auth_headers(reader),
    )
    client.put(f"/blogs/{blog['blogId']}/likes", headers=auth_headers(friend))
    client.put(f"/blogs/{blog['blogId']}/likes", headers=auth_headers(stranger))

    response = client.get(f"/blogs/{blog['blogId']}/follows/likes", headers=auth_headers(reader))

    assert response.status_code == 200
    assert [user["userId"] for user in response.json()["sessionUsers"]] == [friend.user_id]


def test_user_blogs(client, make_user, auth_headers):
    author = make_user()
    other = make_user()
    _create_blog(client, auth_headers(author), title="by author")
    _create_blog(client, auth_headers(other), title="by other")

    response = client.get(f"/users/{author.user_id}/blogs").json()

    assert [item["blog"]["title"] for item in response["data"]] == ["by author"]
    assert client.get("/users/phimissingmissingmissing00/blogs").status_code == 404
