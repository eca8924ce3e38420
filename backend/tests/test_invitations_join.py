# tests/test_invitations_join.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from app.core.invitations import ERR_DOMAIN, ERR_EMAIL_USED, ERR_EXPIRED, ERR_INVALID, ERR_LIMIT
from app.models.chapter_membership import ChapterMembership
from app.models.user import User


async def _create(client, user, chapter, headers, **body):
    r = await client.post("/api/v1/invitations", json=body, headers=headers(user, chapter))
    assert r.status_code == 201, r.text
    return r.json()


async def _join(client, token, email, full_name="New Member"):
    return await client.post(f"/api/v1/join/{token}", json={"email": email, "full_name": full_name})


# ---------------------------------------------------------
# Management
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_create_and_list_invitations(client, db, factory, headers):
    chapter = await factory.chapter("Sigma Chi Test")
    admin = await factory.member(chapter, role="ADMIN", full_name="Ann Admin")
    member = await factory.member(chapter)
    await db.commit()

    r = await client.post("/api/v1/invitations", json={}, headers=headers(member, chapter))
    assert r.status_code == 403

    inv = await _create(
        client,
        admin,
        chapter,
        headers,
        invitation_type="Alumni",
        email_domain_allowlist=["@School.edu", "school.edu"],
        max_uses=3,
    )
    assert inv["invitation_type"] == "alumni"
    assert inv["email_domain_allowlist"] == ["school.edu"]
    assert inv["usage_count"] == 0
    assert inv["chapter_name"] == "Sigma Chi Test"
    assert inv["created_by_name"] == "Ann Admin"
    assert inv["invitation_url"].endswith(f"/alumni-join/{inv['token']}")
    assert inv["usage"] == []

    second = await _create(client, admin, chapter, headers)
    assert second["token"] != inv["token"]

    r = await client.get("/api/v1/invitations", headers=headers(admin, chapter))
    assert r.status_code == 200
    assert {i["id"] for i in r.json()} == {inv["id"], second["id"]}

    r = await client.post("/api/v1/invitations", json={"approval_mode": "maybe"}, headers=headers(admin, chapter))
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_update_and_delete_invitation(client, db, factory, headers):
    chapter = await factory.chapter()
    other = await factory.chapter()
    admin = await factory.member(chapter, role="ADMIN")
    other_admin = await factory.member(other, role="ADMIN")
    await db.commit()

    inv = await _create(client, admin, chapter, headers)
    url = f"/api/v1/invitations/{inv['id']}"

    r = await client.put(url, json={}, headers=headers(admin, chapter))
    assert r.status_code == 400

    r = await client.put(url, json={"is_active": None}, headers=headers(admin, chapter))
    assert r.status_code == 422

    r = await client.put(url, json={"is_active": False, "approval_mode": "pending"}, headers=headers(admin, chapter))
    assert r.status_code == 200, r.text
    assert (r.json()["is_active"], r.json()["approval_mode"]) == (False, "pending")

    # scoped to the caller's chapter
    r = await client.get(url, headers=headers(other_admin, other))
    assert r.status_code == 404

    r = await client.delete(url, headers=headers(admin, chapter))
    assert r.status_code == 204
    r = await client.get(url, headers=headers(admin, chapter))
    assert r.status_code == 404


# ---------------------------------------------------------
# Join flow
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_validate_and_join(client, db, factory, headers):
    chapter = await factory.chapter("Join Me")
    admin = await factory.member(chapter, role="ADMIN")
    await db.commit()

    inv = await _create(client, admin, chapter, headers)

    r = await client.get(f"/api/v1/join/{inv['token']}")
    assert r.status_code == 200
    assert r.json()["valid"] is True
    assert r.json()["invitation"]["chapter_name"] == "Join Me"

    r = await _join(client, inv["token"], "Newbie@Example.com", "  New   Bie ")
    assert r.status_code == 201, r.text
    body = r.json()
    assert (body["role"], body["member_status"], body["needs_approval"]) == ("ACTIVE_MEMBER", "active", False)

    # the returned token works against the chapter straight away
    auth = {"Authorization": f"Bearer {body['access_token']}", "X-Chapter-Id": str(chapter.id)}
    r = await client.get("/api/v1/chapters/membership", headers=auth)
    assert r.status_code == 200
    assert r.json()["role"] == "ACTIVE_MEMBER"

    user = (await db.execute(select(User).where(User.email == "newbie@example.com"))).scalar_one()
    assert (user.full_name, user.first_name, user.last_name) == ("New Bie", "New", "Bie")

    r = await client.get(f"/api/v1/invitations/{inv['id']}", headers=headers(admin, chapter))
    detail = r.json()
    assert detail["usage_count"] == 1
    assert [u["email"] for u in detail["usage"]] == ["newbie@example.com"]
    assert detail["usage"][0]["user_name"] == "New Bie"


@pytest.mark.asyncio
async def test_join_errors(client, db, factory, headers):
    chapter = await factory.chapter()
    admin = await factory.member(chapter, role="ADMIN", email="admin@school.edu")
    await db.commit()

    r = await client.get("/api/v1/join/nope")
    assert r.status_code == 400
    assert r.json()["detail"] == ERR_INVALID

    restricted = await _create(client, admin, chapter, headers, email_domain_allowlist=["school.edu"])
    r = await _join(client, restricted["token"], "x@gmail.com")
    assert r.status_code == 400
    assert r.json()["detail"] == ERR_DOMAIN

    # existing active member
    r = await _join(client, restricted["token"], "admin@school.edu")
    assert r.status_code == 409

    once = await _create(client, admin, chapter, headers, single_use=True)
    assert (await _join(client, once["token"], "first@example.com")).status_code == 201
    r = await _join(client, once["token"], "second@example.com")
    assert r.status_code == 400
    assert r.json()["detail"] == ERR_LIMIT

    multi = await _create(client, admin, chapter, headers)
    assert (await _join(client, multi["token"], "again@example.com")).status_code == 201
    # leave, then try to reuse the same link with the same email
    m = (
        await db.execute(
            select(ChapterMembership).join(User, User.id == ChapterMembership.user_id).where(User.email == "again@example.com")
        )
    ).scalar_one()
    m.is_active = False
    await db.commit()
    r = await _join(client, multi["token"], "again@example.com")
    assert r.status_code == 400
    assert r.json()["detail"] == ERR_EMAIL_USED

    past = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
    r = await client.put(f"/api/v1/invitations/{multi['id']}", json={"expires_at": past}, headers=headers(admin, chapter))
    assert r.status_code == 200
    r = await client.get(f"/api/v1/join/{multi['token']}")
    assert r.status_code == 400
    assert r.json()["detail"] == ERR_EXPIRED


@pytest.mark.asyncio
async def test_pending_alumni_invitation_and_rejoin(client, db, factory, headers):
    chapter = await factory.chapter()
    admin = await factory.member(chapter, role="ADMIN")
    former = await factory.user("former@example.com", full_name="Former Brother")
    await factory.membership(chapter, former, is_active=False, member_status="inactive")
    await db.commit()

    inv = await _create(client, admin, chapter, headers, invitation_type="alumni", approval_mode="pending")
    r = await _join(client, inv["token"], "former@example.com")
    assert r.status_code == 201, r.text
    body = r.json()
    assert (body["role"], body["member_status"], body["needs_approval"]) == ("ALUMNI", "probation", True)
    assert body["user_id"] == str(former.id)

    rows = (
        await db.execute(select(ChapterMembership).where(ChapterMembership.user_id == former.id))
    ).scalars().all()
    assert len(rows) == 1

    r = await client.get("/api/v1/invitations/stats", headers=headers(admin, chapter))
    assert r.json() == {"total_invitations": 1, "active_invitations": 1, "total_usage": 1, "pending_approvals": 1}
