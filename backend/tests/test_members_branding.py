# tests/test_members_branding.py
from __future__ import annotations

import os

import pytest

from app.core.config import settings
from app.models.chapter_membership import ChapterMembership


# ---------------------------------------------------------
# Members
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_list_members_search_and_paging(client, db, factory, headers):
    chapter = await factory.chapter()
    other = await factory.chapter()
    admin = await factory.member(chapter, role="ADMIN", full_name="Alice Admin", email="alice@example.com")
    await factory.member(chapter, full_name="Bob Brother", email="bob@example.com")
    await factory.member(chapter, role="ALUMNI", full_name="Carl Alum", email="carl@example.com")
    gone = await factory.user("gone@example.com", full_name="Gone Guy")
    await factory.membership(chapter, gone, is_active=False)
    await factory.member(other, full_name="Elsewhere")
    await db.commit()

    r = await client.get("/api/v1/members", headers=headers(admin, chapter))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["total"] == 3
    assert [m["full_name"] for m in body["members"]] == ["Alice Admin", "Bob Brother", "Carl Alum"]

    r = await client.get("/api/v1/members", params={"search": "BOB"}, headers=headers(admin, chapter))
    assert [m["email"] for m in r.json()["members"]] == ["bob@example.com"]

    r = await client.get("/api/v1/members", params={"role": "alumni"}, headers=headers(admin, chapter))
    assert [m["email"] for m in r.json()["members"]] == ["carl@example.com"]

    r = await client.get("/api/v1/members", params={"limit": 2, "page": 2}, headers=headers(admin, chapter))
    body = r.json()
    assert (body["page"], body["limit"], body["total_pages"]) == (2, 2, 2)
    assert len(body["members"]) == 1


@pytest.mark.asyncio
async def test_update_member_role_and_officer_title(client, db, factory, headers):
    chapter = await factory.chapter()
    admin = await factory.member(chapter, role="ADMIN")
    user = await factory.user()
    m = await factory.membership(chapter, user)
    await db.commit()

    url = f"/api/v1/members/{m.id}"
    r = await client.patch(url, json={"chapter_role": "Rush Chair", "role": "admin"}, headers=headers(admin, chapter))
    assert r.status_code == 200, r.text
    assert (r.json()["role"], r.json()["chapter_role"]) == ("ADMIN", "rush_chair")

    r = await client.patch(url, json={}, headers=headers(admin, chapter))
    assert r.status_code == 400

    r = await client.patch(url, json={"role": None}, headers=headers(admin, chapter))
    assert r.status_code == 422

    r = await client.patch(url, json={"member_status": "sleeping"}, headers=headers(admin, chapter))
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_members_write_is_forbidden_for_members(client, db, factory, headers):
    chapter = await factory.chapter()
    member = await factory.member(chapter)
    target = await factory.user()
    m = await factory.membership(chapter, target)
    await db.commit()

    r = await client.patch(f"/api/v1/members/{m.id}", json={"member_status": "inactive"}, headers=headers(member, chapter))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_remove_member_soft_deletes(client, db, factory, headers):
    chapter = await factory.chapter()
    admin = await factory.user()
    admin_m = await factory.membership(chapter, admin, role="ADMIN")
    target = await factory.user()
    m = await factory.membership(chapter, target)
    await db.commit()

    r = await client.delete(f"/api/v1/members/{admin_m.id}", headers=headers(admin, chapter))
    assert r.status_code == 400

    r = await client.delete(f"/api/v1/members/{m.id}", headers=headers(admin, chapter))
    assert r.status_code == 204

    db.expire_all()
    row = await db.get(ChapterMembership, m.id)
    assert row.is_active is False
    assert row.member_status == "inactive"

    r = await client.delete(f"/api/v1/members/{m.id}", headers=headers(admin, chapter))
    assert r.status_code == 404

    r = await client.get("/api/v1/chapters/current", headers=headers(target, chapter))
    assert r.status_code == 403


# ---------------------------------------------------------
# Branding
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_branding_lifecycle(client, db, factory, headers):
    chapter = await factory.chapter()
    admin = await factory.member(chapter, role="ADMIN")
    member = await factory.member(chapter)
    await db.commit()

    url = f"/api/v1/branding/chapters/{chapter.id}"

    r = await client.get(url, headers=headers(member))
    assert r.status_code == 200
    assert r.json() is None

    r = await client.get(f"{url}/theme", headers=headers(member))
    assert r.json()["primary_color"] == "#2346e0"

    r = await client.put(url, json={"primary_color": "1e3a8a"}, headers=headers(member))
    assert r.status_code == 403

    r = await client.put(url, json={"primary_color": "blue"}, headers=headers(admin))
    assert r.status_code == 400

    r = await client.put(url, json={"primary_color": "1e3a8a", "primary_logo_url": "https://cdn/x.png"}, headers=headers(admin))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["message"] == "Branding created successfully"
    assert body["branding"]["primary_color"] == "#1E3A8A"
    assert body["branding"]["logo_alt_text"] == "Chapter Logo"

    r = await client.post(url, json={}, headers=headers(admin))
    assert r.status_code == 409

    r = await client.get(f"{url}/theme", headers=headers(member))
    theme = r.json()
    assert theme["primary_color"] == "#1E3A8A"
    assert theme["primary_color_hover"] == "#1B347C"
    assert theme["primary_logo"] == "https://cdn/x.png"

    # full replace: omitted fields clear
    r = await client.put(url, json={"accent_color": "#ffffff"}, headers=headers(admin))
    body = r.json()
    assert body["message"] == "Branding updated successfully"
    assert body["branding"]["primary_color"] is None
    assert body["branding"]["primary_logo_url"] is None
    assert body["branding"]["accent_color"] == "#FFFFFF"

    r = await client.delete(url, headers=headers(admin))
    assert r.status_code == 204
    r = await client.delete(url, headers=headers(admin))
    assert r.status_code == 404
    assert r.json()["detail"] == "Branding not found"


@pytest.mark.asyncio
async def test_branding_view_requires_membership_or_developer(client, db, factory, headers):
    chapter = await factory.chapter()
    outsider = await factory.user()
    dev = await factory.user()
    await factory.developer(dev, access_level="standard")
    await db.commit()

    url = f"/api/v1/branding/chapters/{chapter.id}"
    r = await client.get(url, headers=headers(outsider))
    assert r.status_code == 403

    r = await client.get(url, headers=headers(dev))
    assert r.status_code == 200

    r = await client.put(url, json={"primary_color": "#000000"}, headers=headers(dev))
    assert r.status_code == 200

    r = await client.get("/api/v1/branding/chapters", headers=headers(dev))
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 1
    assert body["branding"][0]["chapter"]["id"] == str(chapter.id)
    assert body["chapters_without_branding"] == []


@pytest.mark.asyncio
async def test_upload_logo(client, db, factory, headers, monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "MEDIA_ROOT", str(tmp_path))
    chapter = await factory.chapter()
    admin = await factory.member(chapter, role="ADMIN")
    await db.commit()

    r = await client.post(
        "/api/v1/branding/upload-logo",
        data={"chapter_id": str(chapter.id), "variant": "secondary"},
        files={"file": ("logo.png", b"\x89PNG fake", "image/png")},
        headers=headers(admin),
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["variant"] == "secondary"
    assert body["path"].startswith(f"{chapter.id}/secondary-")
    assert body["path"].endswith(".png")
    assert body["url"] == f"{settings.MEDIA_BASE_URL}/{body['path']}"
    assert os.path.exists(os.path.join(str(tmp_path), body["path"]))

    r = await client.post(
        "/api/v1/branding/upload-logo",
        data={"chapter_id": str(chapter.id)},
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=headers(admin),
    )
    assert r.status_code == 400

    r = await client.post(
        "/api/v1/branding/upload-logo",
        data={"chapter_id": str(chapter.id), "variant": "banner"},
        files={"file": ("logo.png", b"x", "image/png")},
        headers=headers(admin),
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_upload_logo_size_limit(client, db, factory, headers, monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "MEDIA_ROOT", str(tmp_path))
    chapter = await factory.chapter()
    admin = await factory.member(chapter, role="ADMIN")
    await db.commit()

    limit = settings.LOGO_MAX_BYTES
    assert limit == 5 * 1024 * 1024

    r = await client.post(
        "/api/v1/branding/upload-logo",
        data={"chapter_id": str(chapter.id)},
        files={"file": ("big.png", b"\x00" * limit, "image/png")},
        headers=headers(admin),
    )
    assert r.status_code == 200, r.text
    assert os.path.getsize(os.path.join(str(tmp_path), r.json()["path"])) == limit

    r = await client.post(
        "/api/v1/branding/upload-logo",
        data={"chapter_id": str(chapter.id)},
        files={"file": ("bigger.png", b"\x00" * (limit + 1), "image/png")},
        headers=headers(admin),
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "File size must be less than 5MB"

    r = await client.post(
        "/api/v1/branding/upload-logo",
        data={"chapter_id": str(chapter.id)},
        files={"file": ("empty.png", b"", "image/png")},
        headers=headers(admin),
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Uploaded file is empty"
