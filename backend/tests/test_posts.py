# tests/test_posts.py
from __future__ import annotations

import uuid

import pytest
from sqlalchemy import func, select

from app.models.post import PostComment


async def _post(client, user, chapter, headers, **body):
    body.setdefault("content", "Hello chapter")
    r = await client.post("/api/v1/posts", json=body, headers=headers(user, chapter))
    assert r.status_code == 201, r.text
    return r.json()


async def _comment(client, user, post_id, headers, content="Nice", parent=None):
    body = {"content": content}
    if parent is not None:
        body["parent_comment_id"] = parent
    r = await client.post(f"/api/v1/posts/{post_id}/comments", json=body, headers=headers(user))
    assert r.status_code == 201, r.text
    return r.json()


# ---------------------------------------------------------
# Posts + feed
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_create_post_validation(client, db, factory, headers):
    chapter = await factory.chapter()
    user = await factory.member(chapter, full_name="Poster")
    await db.commit()

    cases = [
        ({"post_type": "video", "content": "x"}, "Invalid post type"),
        ({"post_type": "image", "content": "x"}, "Image URL required for image posts"),
        ({"post_type": "text", "content": "   "}, "Content required for text posts"),
        ({"post_type": "text_image"}, "Content or image URL required"),
    ]
    for body, detail in cases:
        r = await client.post("/api/v1/posts", json=body, headers=headers(user, chapter))
        assert r.status_code == 400
        assert r.json()["detail"] == detail

    post = await _post(client, user, chapter, headers, post_type="IMAGE", image_url="https://img/x.png", content="", metadata={"k": 1})
    assert post["post_type"] == "image"
    assert post["metadata"] == {"k": 1}
    assert post["author"]["full_name"] == "Poster"
    assert (post["likes_count"], post["comments_count"], post["is_author"]) == (0, 0, True)


@pytest.mark.asyncio
async def test_feed_is_paginated_newest_first(client, db, factory, headers):
    chapter = await factory.chapter()
    other = await factory.chapter()
    user = await factory.member(chapter)
    stranger = await factory.member(other)
    await db.commit()

    ids = [(await _post(client, user, chapter, headers, content=f"post {i}"))["id"] for i in range(3)]
    await _post(client, stranger, other, headers, content="elsewhere")

    r = await client.get("/api/v1/posts", params={"limit": 2}, headers=headers(user, chapter))
    assert r.status_code == 200
    body = r.json()
    assert [p["id"] for p in body["posts"]] == [ids[2], ids[1]]
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "total_pages": 2}

    r = await client.get("/api/v1/posts", params={"limit": 2, "page": 2}, headers=headers(user, chapter))
    assert [p["id"] for p in r.json()["posts"]] == [ids[0]]

    r = await client.get("/api/v1/posts", params={"limit": 1000}, headers=headers(user, chapter))
    assert r.json()["pagination"]["limit"] == 50


@pytest.mark.asyncio
async def test_post_access_limited_to_chapter_members(client, db, factory, headers):
    chapter = await factory.chapter()
    other = await factory.chapter()
    author = await factory.member(chapter)
    outsider = await factory.member(other)
    await db.commit()

    post = await _post(client, author, chapter, headers)

    r = await client.post(f"/api/v1/posts/{post['id']}/like", headers=headers(outsider))
    assert r.status_code == 403
    assert r.json()["detail"] == "Access denied"

    r = await client.post(f"/api/v1/posts/{uuid.uuid4()}/like", headers=headers(author))
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_like_toggle_and_delete_own_post(client, db, factory, headers):
    chapter = await factory.chapter()
    author = await factory.member(chapter)
    fan = await factory.member(chapter, role="ALUMNI")
    await db.commit()

    post = await _post(client, author, chapter, headers)
    url = f"/api/v1/posts/{post['id']}/like"

    r = await client.post(url, headers=headers(fan))
    assert r.json() == {"liked": True, "likes_count": 1}
    r = await client.post(url, headers=headers(author))
    assert r.json() == {"liked": True, "likes_count": 2}
    r = await client.post(url, headers=headers(fan))
    assert r.json() == {"liked": False, "likes_count": 1}

    r = await client.get("/api/v1/posts", headers=headers(author, chapter))
    feed_post = r.json()["posts"][0]
    assert (feed_post["likes_count"], feed_post["is_liked"]) == (1, True)

    r = await client.get("/api/v1/posts", headers=headers(fan, chapter))
    assert r.json()["posts"][0]["is_liked"] is False
    assert r.json()["posts"][0]["is_author"] is False

    r = await client.delete(f"/api/v1/posts/{post['id']}", headers=headers(fan))
    assert r.status_code == 403
    assert r.json()["detail"] == "You can only delete your own posts"

    await _comment(client, fan, post["id"], headers)
    r = await client.delete(f"/api/v1/posts/{post['id']}", headers=headers(author))
    assert r.status_code == 204

    left = (await db.execute(select(func.count(PostComment.id)))).scalar()
    assert left == 0


# ---------------------------------------------------------
# Comments
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_replies_nest_one_level(client, db, factory, headers):
    chapter = await factory.chapter()
    a = await factory.member(chapter, full_name="A")
    b = await factory.member(chapter, full_name="B")
    await db.commit()

    post = await _post(client, a, chapter, headers)
    pid = post["id"]

    r = await client.post(f"/api/v1/posts/{pid}/comments", json={"content": "  "}, headers=headers(a))
    assert r.status_code == 400
    assert r.json()["detail"] == "Comment content is required"

    top = await _comment(client, a, pid, headers, "top")
    reply = await _comment(client, b, pid, headers, "reply", parent=top["id"])
    assert reply["parent_comment_id"] == top["id"]

    # replying to a reply hangs off the top-level comment
    deep = await _comment(client, a, pid, headers, "deep", parent=reply["id"])
    assert deep["parent_comment_id"] == top["id"]

    second = await _comment(client, b, pid, headers, "second top")

    r = await client.post(
        f"/api/v1/posts/{pid}/comments",
        json={"content": "lost", "parent_comment_id": str(uuid.uuid4())},
        headers=headers(a),
    )
    assert r.status_code == 404
    assert r.json()["detail"] == "Parent comment not found"

    r = await client.get(f"/api/v1/posts/{pid}/comments", headers=headers(b))
    assert r.status_code == 200
    body = r.json()
    assert [c["id"] for c in body["comments"]] == [top["id"], second["id"]]
    assert [c["content"] for c in body["comments"][0]["replies"]] == ["reply", "deep"]
    assert body["comments"][0]["replies"][0]["is_author"] is True
    assert body["pagination"]["total"] == 2

    r = await client.get(f"/api/v1/posts/{pid}/comments", params={"limit": 1, "page": 2}, headers=headers(b))
    assert [c["id"] for c in r.json()["comments"]] == [second["id"]]

    r = await client.get("/api/v1/posts", headers=headers(a, chapter))
    feed_post = r.json()["posts"][0]
    assert feed_post["comments_count"] == 4
    assert [c["content"] for c in feed_post["comments_preview"]] == ["second top", "deep"]


@pytest.mark.asyncio
async def test_comment_like_and_delete(client, db, factory, headers):
    chapter = await factory.chapter()
    a = await factory.member(chapter)
    b = await factory.member(chapter)
    await db.commit()

    post = await _post(client, a, chapter, headers)
    pid = post["id"]
    top = await _comment(client, a, pid, headers, "top")
    await _comment(client, b, pid, headers, "reply", parent=top["id"])

    like_url = f"/api/v1/posts/{pid}/comments/{top['id']}/like"
    r = await client.post(like_url, headers=headers(b))
    assert r.json() == {"liked": True, "likes_count": 1}

    r = await client.get(f"/api/v1/posts/{pid}/comments", headers=headers(b))
    c = r.json()["comments"][0]
    assert (c["likes_count"], c["is_liked"], c["is_author"]) == (1, True, False)

    r = await client.post(like_url, headers=headers(b))
    assert r.json() == {"liked": False, "likes_count": 0}

    r = await client.delete(f"/api/v1/posts/{pid}/comments/{top['id']}", headers=headers(b))
    assert r.status_code == 403
    assert r.json()["detail"] == "You can only delete your own comments"

    r = await client.delete(f"/api/v1/posts/{pid}/comments/{top['id']}", headers=headers(a))
    assert r.status_code == 204

    # the reply went with its parent
    left = (await db.execute(select(func.count(PostComment.id)))).scalar()
    assert left == 0

    r = await client.post(like_url, headers=headers(b))
    assert r.status_code == 404
    assert r.json()["detail"] == "Comment not found"
