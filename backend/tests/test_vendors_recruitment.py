# tests/test_vendors_recruitment.py
from __future__ import annotations

import uuid
from decimal import Decimal

import pytest

from app.models.vendor import Vendor

CRM_ON = {"recruitment_crm_enabled": True}


# ---------------------------------------------------------
# Vendors
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_vendor_crud_and_soft_delete(client, db, factory, headers):
    chapter = await factory.chapter()
    admin = await factory.member(chapter, role="ADMIN")
    member = await factory.member(chapter)
    await db.commit()

    body = {"name": "Zed Catering", "type": "Catering", "rating": "4.5", "email": "zed@catering.com"}
    r = await client.post("/api/v1/vendors", json=body, headers=headers(member, chapter))
    assert r.status_code == 403

    r = await client.post("/api/v1/vendors", json=body, headers=headers(admin, chapter))
    assert r.status_code == 201, r.text
    zed = r.json()
    assert zed["type"] == "catering"
    assert Decimal(zed["rating"]) == Decimal("4.5")

    r = await client.post("/api/v1/vendors", json={"name": "Alpha DJ", "type": "dj"}, headers=headers(admin, chapter))
    dj = r.json()

    r = await client.post("/api/v1/vendors", json={"name": "  ", "type": "dj"}, headers=headers(admin, chapter))
    assert r.status_code == 422
    r = await client.post("/api/v1/vendors", json={"name": "Too good", "type": "dj", "rating": 6}, headers=headers(admin, chapter))
    assert r.status_code == 422

    r = await client.get("/api/v1/vendors", headers=headers(member, chapter))
    assert r.status_code == 200
    assert [v["name"] for v in r.json()] == ["Alpha DJ", "Zed Catering"]

    r = await client.get("/api/v1/vendors", params={"type": "CATERING"}, headers=headers(member, chapter))
    assert [v["id"] for v in r.json()] == [zed["id"]]

    url = f"/api/v1/vendors/{dj['id']}"
    r = await client.patch(url, json={}, headers=headers(admin, chapter))
    assert r.status_code == 400
    r = await client.patch(url, json={"name": None}, headers=headers(admin, chapter))
    assert r.status_code == 422
    r = await client.patch(url, json={"notes": "Loud", "contact_person": "Dee"}, headers=headers(admin, chapter))
    assert r.status_code == 200, r.text
    assert (r.json()["notes"], r.json()["contact_person"]) == ("Loud", "Dee")

    r = await client.delete(url, headers=headers(admin, chapter))
    assert r.status_code == 204

    r = await client.get("/api/v1/vendors", headers=headers(member, chapter))
    assert [v["name"] for v in r.json()] == ["Zed Catering"]
    r = await client.patch(url, json={"notes": "back?"}, headers=headers(admin, chapter))
    assert r.status_code == 404

    # soft delete keeps the row
    row = await db.get(Vendor, uuid.UUID(dj["id"]))
    assert row is not None
    assert row.is_active is False


# ---------------------------------------------------------
# Recruitment CRM
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_recruitment_requires_feature_flag(client, db, factory, headers):
    chapter = await factory.chapter()
    admin = await factory.member(chapter, role="ADMIN")
    await db.commit()

    r = await client.get("/api/v1/recruitment/recruits", headers=headers(admin, chapter))
    assert r.status_code == 403
    assert r.json()["detail"] == "Recruitment CRM feature is not enabled for this chapter"


@pytest.mark.asyncio
async def test_submit_recruit_validation(client, db, factory, headers):
    chapter = await factory.chapter(feature_flags=CRM_ON)
    member = await factory.member(chapter)
    alumni = await factory.member(chapter, role="ALUMNI")
    await db.commit()

    url = "/api/v1/recruitment/recruits"
    r = await client.post(url, json={"name": "Sam", "hometown": "Austin"}, headers=headers(alumni, chapter))
    assert r.status_code == 403

    r = await client.post(url, json={"name": " ", "hometown": "Austin"}, headers=headers(member, chapter))
    assert r.status_code == 400
    assert r.json()["detail"] == "Name is required and must be a non-empty string"

    r = await client.post(url, json={"name": "Sam"}, headers=headers(member, chapter))
    assert r.status_code == 400
    assert r.json()["detail"] == "Hometown is required and must be a non-empty string"

    r = await client.post(url, json={"name": "Sam", "hometown": "Austin", "phone_number": "555-12"}, headers=headers(member, chapter))
    assert r.status_code == 400
    assert "10 or 11 digit" in r.json()["detail"]

    r = await client.post(
        url,
        json={"name": " Sam Smith ", "hometown": "Austin", "phone_number": "(512) 555-0100", "instagram_handle": "@samsmith"},
        headers=headers(member, chapter),
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["name"] == "Sam Smith"
    assert body["stage"] == "New"
    assert body["instagram_handle"] == "samsmith"
    assert body["submitted_by"] == str(member.id)

    # plain members submit but cannot browse the pipeline
    r = await client.get(url, headers=headers(member, chapter))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_manage_recruit_pipeline(client, db, factory, headers):
    chapter = await factory.chapter(feature_flags=CRM_ON)
    rush = await factory.member(chapter, chapter_role="rush_chair")
    member = await factory.member(chapter)
    await db.commit()

    url = "/api/v1/recruitment/recruits"
    first = (await client.post(url, json={"name": "One", "hometown": "A"}, headers=headers(member, chapter))).json()
    second = (await client.post(url, json={"name": "Two", "hometown": "B", "phone_number": "5125550100"}, headers=headers(member, chapter))).json()

    r = await client.get(url, headers=headers(rush, chapter))
    assert r.status_code == 200
    assert {x["id"] for x in r.json()} == {first["id"], second["id"]}

    item = f"{url}/{second['id']}"
    r = await client.patch(item, json={"stage": "Bid Given"}, headers=headers(member, chapter))
    assert r.status_code == 403

    r = await client.patch(item, json={"stage": "bid given"}, headers=headers(rush, chapter))
    assert r.status_code == 400
    assert r.json()["detail"].startswith("Invalid stage value. Must be one of: New, Contacted")

    r = await client.patch(item, json={"name": ""}, headers=headers(rush, chapter))
    assert r.status_code == 400
    assert r.json()["detail"] == "Name must be a non-empty string"

    r = await client.patch(item, json={}, headers=headers(rush, chapter))
    assert r.status_code == 400

    r = await client.patch(
        item,
        json={"stage": "Bid Given", "phone_number": "", "notes": "  Great fit "},
        headers=headers(rush, chapter),
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert (body["stage"], body["phone_number"], body["notes"]) == ("Bid Given", None, "Great fit")

    r = await client.get(url, params={"stage": "Bid Given"}, headers=headers(rush, chapter))
    assert [x["id"] for x in r.json()] == [second["id"]]
    r = await client.get(url, params={"stage": "Maybe"}, headers=headers(rush, chapter))
    assert r.status_code == 400

    r = await client.delete(item, headers=headers(rush, chapter))
    assert r.status_code == 204
    r = await client.patch(item, json={"notes": "x"}, headers=headers(rush, chapter))
    assert r.status_code == 404
