# tests/test_developer.py
from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from app.api.v1.developer import growth_percentage
from app.core.overview import previous_month_start
from app.models.chapter_membership import ChapterMembership
from app.models.developer_access import DeveloperAccess
from app.models.user import User


def test_previous_month_start():
    now = datetime(2025, 3, 17, 15, 30, tzinfo=timezone.utc)
    assert previous_month_start(now) == datetime(2025, 2, 1, tzinfo=timezone.utc)

    january = datetime(2025, 1, 31, 23, 59, tzinfo=timezone.utc)
    assert previous_month_start(january) == datetime(2024, 12, 1, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "total,new,expected",
    [(0, 0, 0.0), (10, 0, 0.0), (10, 5, 100.0), (3, 1, 50.0), (1, 1, 100.0)],
)
def test_growth_percentage(total, new, expected):
    assert growth_percentage(total, new) == expected


async def _dev(factory, level="admin", **kw):
    user = await factory.user(**kw)
    await factory.developer(user, access_level=level)
    return user


# ---------------------------------------------------------
# Access control
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_developer_routes_require_developer_access(client, db, factory, headers):
    plain = await factory.user()
    standard = await _dev(factory, "standard")
    await db.commit()

    r = await client.get("/api/v1/developer/users", headers=headers(plain))
    assert r.status_code == 403
    assert r.json()["detail"] == "Insufficient permissions. Developer access required."

    r = await client.get("/api/v1/developer/users", headers=headers(standard))
    assert r.status_code == 200

    r = await client.post("/api/v1/developer/users", json={"email": "n@example.com"}, headers=headers(standard))
    assert r.status_code == 403
    assert r.json()["detail"]["required"] == "manage_permissions"


# ---------------------------------------------------------
# Users
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_list_users_search_and_memberships(client, db, factory, headers):
    dev = await _dev(factory, email="dev@example.com")
    chapter = await factory.chapter("Omega")
    await factory.member(chapter, role="ALUMNI", email="old@example.com", full_name="Old Timer")
    await factory.member(chapter, email="young@example.com", full_name="Young Gun")
    await db.commit()

    r = await client.get("/api/v1/developer/users", headers=headers(dev))
    body = r.json()
    assert body["total"] == 3
    by_email = {u["email"]: u for u in body["users"]}
    assert by_email["dev@example.com"]["is_developer"] is True
    assert by_email["dev@example.com"]["developer_access_level"] == "admin"
    assert by_email["old@example.com"]["memberships"][0]["chapter_name"] == "Omega"

    r = await client.get("/api/v1/developer/users", params={"search": "alumni"}, headers=headers(dev))
    assert [u["email"] for u in r.json()["users"]] == ["old@example.com"]
    assert r.json()["search"] == "alumni"

    r = await client.get("/api/v1/developer/users", params={"search": "young"}, headers=headers(dev))
    assert [u["email"] for u in r.json()["users"]] == ["young@example.com"]

    r = await client.get("/api/v1/developer/users", params={"limit": 2}, headers=headers(dev))
    assert (r.json()["total_pages"], len(r.json()["users"])) == (2, 2)


@pytest.mark.asyncio
async def test_create_user_with_membership(client, db, factory, headers):
    dev = await _dev(factory)
    chapter = await factory.chapter()
    await db.commit()

    body = {
        "email": "Fresh@Example.com",
        "full_name": "Fresh  Face",
        "chapter_id": str(chapter.id),
        "role": "admin",
        "chapter_role": "President",
    }
    r = await client.post("/api/v1/developer/users", json=body, headers=headers(dev))
    assert r.status_code == 201, r.text
    out = r.json()
    assert out["email"] == "fresh@example.com"
    assert (out["first_name"], out["last_name"]) == ("Fresh", "Face")
    assert out["memberships"] == [
        {
            "chapter_id": str(chapter.id),
            "chapter_name": chapter.name,
            "role": "ADMIN",
            "chapter_role": "president",
            "member_status": "active",
            "is_active": True,
        }
    ]
    assert out["is_developer"] is False

    r = await client.post("/api/v1/developer/users", json={"email": "fresh@example.com"}, headers=headers(dev))
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_granting_developer_level_needs_manage_developers(client, db, factory, headers):
    admin_dev = await _dev(factory, "admin")
    target = await factory.user()
    await db.commit()

    # an extra grant of manage_permissions alone is not enough to create developers
    limited = await factory.user()
    db.add(DeveloperAccess(user_id=limited.id, access_level="elevated", permissions=["manage_permissions"], is_active=True))
    await db.commit()

    r = await client.post(
        "/api/v1/developer/users",
        json={"email": "d2@example.com", "developer_access_level": "standard"},
        headers=headers(limited),
    )
    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "developer_forbidden"

    r = await client.patch(
        f"/api/v1/developer/users/{target.id}",
        json={"developer_access_level": "elevated"},
        headers=headers(admin_dev),
    )
    assert r.status_code == 200, r.text
    assert (r.json()["is_developer"], r.json()["developer_access_level"]) == (True, "elevated")


@pytest.mark.asyncio
async def test_update_user_membership_fields(client, db, factory, headers):
    dev = await _dev(factory)
    chapter = await factory.chapter()
    target = await factory.user()
    await db.commit()

    url = f"/api/v1/developer/users/{target.id}"
    r = await client.patch(url, json={}, headers=headers(dev))
    assert r.status_code == 400

    r = await client.patch(url, json={"role": "ALUMNI"}, headers=headers(dev))
    assert r.status_code == 400
    assert r.json()["detail"] == "chapter_id is required to update membership fields"

    r = await client.patch(url, json={"chapter_id": str(chapter.id), "role": "ALUMNI"}, headers=headers(dev))
    assert r.status_code == 200, r.text
    assert [m["role"] for m in r.json()["memberships"]] == ["ALUMNI"]

    r = await client.patch(
        url,
        json={"chapter_id": str(chapter.id), "chapter_role": "treasurer", "full_name": "Tina Treasurer"},
        headers=headers(dev),
    )
    body = r.json()
    assert body["memberships"][0]["role"] == "ALUMNI"
    assert body["memberships"][0]["chapter_role"] == "treasurer"
    assert (body["first_name"], body["last_name"]) == ("Tina", "Treasurer")

    rows = (await db.execute(select(ChapterMembership).where(ChapterMembership.user_id == target.id))).scalars().all()
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_delete_user(client, db, factory, headers):
    dev = await _dev(factory)
    chapter = await factory.chapter()
    target = await factory.member(chapter)
    await db.commit()

    r = await client.delete(f"/api/v1/developer/users/{dev.id}", headers=headers(dev))
    assert r.status_code == 400

    r = await client.delete(f"/api/v1/developer/users/{target.id}", headers=headers(dev))
    assert r.status_code == 204

    remaining = (await db.execute(select(User.id).where(User.id == target.id))).scalar_one_or_none()
    assert remaining is None
    memberships = (await db.execute(select(ChapterMembership.id))).scalars().all()
    assert memberships == []

    r = await client.delete(f"/api/v1/developer/users/{target.id}", headers=headers(dev))
    assert r.status_code == 404


# ---------------------------------------------------------
# Stats + chapters
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_stats_and_chapter_listing(client, db, factory, headers):
    dev = await _dev(factory, "standard")
    a = await factory.chapter("Alpha")
    b = await factory.chapter("Beta")
    await factory.member(a, role="ALUMNI")
    await factory.member(a)
    gone = await factory.user()
    await factory.membership(b, gone, role="ALUMNI", is_active=False)
    await db.commit()

    r = await client.get("/api/v1/developer/stats", headers=headers(dev))
    assert r.status_code == 200, r.text
    stats = r.json()
    assert stats["total_users"] == 4
    assert stats["new_users_this_month"] == 4
    assert stats["total_chapters"] == 2
    assert stats["total_alumni"] == 1
    assert stats["new_alumni_this_month"] == 1
    assert stats["system_health"] == "healthy"

    r = await client.get("/api/v1/developer/chapters", headers=headers(dev))
    assert [(c["name"], c["member_count"]) for c in r.json()] == [("Alpha", 2), ("Beta", 0)]
