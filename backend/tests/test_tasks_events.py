# tests/test_tasks_events.py
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from app.models.event import Event, EventRSVP


def _iso(dt: datetime) -> str:
    return dt.isoformat()


def _in(**kw) -> datetime:
    return datetime.now(timezone.utc) + timedelta(**kw)


# ---------------------------------------------------------
# Tasks
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_create_tasks_one_per_assignee(client, db, factory, headers):
    chapter = await factory.chapter("Task Chapter")
    admin = await factory.member(chapter, role="ADMIN", full_name="Boss")
    a = await factory.member(chapter, full_name="Alpha")
    b = await factory.member(chapter, full_name="Bravo")
    await db.commit()

    body = {"title": "  Clean house ", "assignee_id": [str(a.id), str(b.id), str(a.id)], "priority": "HIGH"}
    r = await client.post("/api/v1/tasks", json=body, headers=headers(admin, chapter))
    assert r.status_code == 201, r.text
    tasks = r.json()
    assert [t["assignee_name"] for t in tasks] == ["Alpha", "Bravo"]
    assert {t["title"] for t in tasks} == {"Clean house"}
    assert tasks[0]["priority"] == "high"
    assert tasks[0]["assigned_by_name"] == "Boss"
    assert tasks[0]["chapter_name"] == "Task Chapter"

    r = await client.post("/api/v1/tasks", json={"title": "Solo", "assignee_id": str(a.id)}, headers=headers(admin, chapter))
    assert r.status_code == 201
    assert len(r.json()) == 1

    r = await client.get("/api/v1/tasks", params={"assignee_id": str(b.id)}, headers=headers(a, chapter))
    assert r.status_code == 200
    assert [t["title"] for t in r.json()] == ["Clean house"]


@pytest.mark.asyncio
async def test_task_assignee_must_be_active_member(client, db, factory, headers):
    chapter = await factory.chapter()
    other = await factory.chapter()
    admin = await factory.member(chapter, role="ADMIN")
    outsider = await factory.member(other)
    await db.commit()

    body = {"title": "Nope", "assignee_id": str(outsider.id)}
    r = await client.post("/api/v1/tasks", json=body, headers=headers(admin, chapter))
    assert r.status_code == 400
    detail = r.json()["detail"]
    assert detail["code"] == "assignee_not_member"
    assert detail["assignee_ids"] == [str(outsider.id)]

    r = await client.post("/api/v1/tasks", json={"title": "x", "assignee_id": []}, headers=headers(admin, chapter))
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_task_overdue_flag_and_filters(client, db, factory, headers):
    chapter = await factory.chapter()
    admin = await factory.member(chapter, role="ADMIN")
    await db.commit()

    for title, due, st in [
        ("late", _in(days=-1), "pending"),
        ("done late", _in(days=-1), "completed"),
        ("future", _in(days=5), "pending"),
    ]:
        r = await client.post(
            "/api/v1/tasks",
            json={"title": title, "assignee_id": str(admin.id), "due_date": _iso(due), "status": st},
            headers=headers(admin, chapter),
        )
        assert r.status_code == 201, r.text

    r = await client.get("/api/v1/tasks", headers=headers(admin, chapter))
    overdue = {t["title"]: t["is_overdue"] for t in r.json()}
    assert overdue == {"late": True, "done late": False, "future": False}

    r = await client.get("/api/v1/tasks", params={"status": "completed"}, headers=headers(admin, chapter))
    assert [t["title"] for t in r.json()] == ["done late"]


@pytest.mark.asyncio
async def test_task_due_dates_without_offset_are_utc(client, db, factory, headers):
    chapter = await factory.chapter()
    admin = await factory.member(chapter, role="ADMIN")
    await db.commit()

    r = await client.post(
        "/api/v1/tasks",
        json={"title": "naive past", "assignee_id": str(admin.id), "due_date": "2020-01-01T09:00:00"},
        headers=headers(admin, chapter),
    )
    assert r.status_code == 201, r.text
    created = r.json()[0]
    assert created["is_overdue"] is True
    assert datetime.fromisoformat(created["due_date"].replace("Z", "+00:00")) == datetime(
        2020, 1, 1, 9, tzinfo=timezone.utc
    )

    r = await client.post(
        "/api/v1/tasks",
        json={"title": "date only", "assignee_id": str(admin.id), "due_date": "2030-05-01"},
        headers=headers(admin, chapter),
    )
    assert r.status_code == 201, r.text
    assert r.json()[0]["is_overdue"] is False

    r = await client.patch(
        f"/api/v1/tasks/{created['id']}",
        json={"due_date": "2031-01-01T00:00:00"},
        headers=headers(admin, chapter),
    )
    assert r.status_code == 200, r.text
    assert r.json()["is_overdue"] is False

    r = await client.get("/api/v1/tasks", headers=headers(admin, chapter))
    assert {t["title"]: t["is_overdue"] for t in r.json()} == {"naive past": False, "date only": False}


@pytest.mark.asyncio
async def test_task_title_cannot_be_blanked(client, db, factory, headers):
    chapter = await factory.chapter()
    admin = await factory.member(chapter, role="ADMIN")
    await db.commit()

    r = await client.post("/api/v1/tasks", json={"title": "Keep me", "assignee_id": str(admin.id)}, headers=headers(admin, chapter))
    url = f"/api/v1/tasks/{r.json()[0]['id']}"

    r = await client.patch(url, json={"title": "   "}, headers=headers(admin, chapter))
    assert r.status_code == 422

    r = await client.patch(url, json={"title": "  Renamed  "}, headers=headers(admin, chapter))
    assert r.status_code == 200, r.text
    assert r.json()["title"] == "Renamed"


@pytest.mark.asyncio
async def test_assignee_can_only_change_status(client, db, factory, headers):
    chapter = await factory.chapter()
    admin = await factory.member(chapter, role="ADMIN")
    worker = await factory.member(chapter)
    bystander = await factory.member(chapter)
    await db.commit()

    r = await client.post("/api/v1/tasks", json={"title": "Mine", "assignee_id": str(worker.id)}, headers=headers(admin, chapter))
    task_id = r.json()[0]["id"]
    url = f"/api/v1/tasks/{task_id}"

    r = await client.patch(url, json={"status": "in_progress"}, headers=headers(worker, chapter))
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "in_progress"

    r = await client.patch(url, json={"title": "Renamed"}, headers=headers(worker, chapter))
    assert r.status_code == 403

    r = await client.patch(url, json={"status": "completed"}, headers=headers(bystander, chapter))
    assert r.status_code == 403

    r = await client.patch(url, json={"assignee_id": str(bystander.id), "priority": "urgent"}, headers=headers(admin, chapter))
    assert r.status_code == 200
    assert r.json()["assignee_id"] == str(bystander.id)

    r = await client.patch(url, json={"title": None}, headers=headers(admin, chapter))
    assert r.status_code == 422

    r = await client.delete(url, headers=headers(worker, chapter))
    assert r.status_code == 403
    r = await client.delete(url, headers=headers(admin, chapter))
    assert r.status_code == 204
    r = await client.patch(url, json={"status": "completed"}, headers=headers(admin, chapter))
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_assignable_members_excludes_alumni(client, db, factory, headers):
    chapter = await factory.chapter()
    admin = await factory.member(chapter, role="ADMIN", full_name="Admin Person")
    await factory.member(chapter, full_name="Active Person")
    await factory.member(chapter, role="ALUMNI", full_name="Old Person")
    await db.commit()

    r = await client.get("/api/v1/tasks/assignable-members", headers=headers(admin, chapter))
    assert r.status_code == 200
    assert sorted(m["full_name"] for m in r.json()) == ["Active Person", "Admin Person"]


# ---------------------------------------------------------
# Events
# ---------------------------------------------------------
async def _event(client, user, chapter, headers, **overrides):
    body = {
        "title": "Chapter Meeting",
        "start_time": _iso(_in(days=2)),
        "end_time": _iso(_in(days=2, hours=2)),
    }
    body.update(overrides)
    r = await client.post("/api/v1/events", json=body, headers=headers(user, chapter))
    assert r.status_code == 201, r.text
    return r.json()


@pytest.mark.asyncio
async def test_event_create_validation(client, db, factory, headers):
    chapter = await factory.chapter()
    social = await factory.member(chapter, chapter_role="social_chair")
    member = await factory.member(chapter)
    await db.commit()

    start = _in(days=1)
    body = {"title": "Party", "start_time": _iso(start), "end_time": _iso(start)}
    r = await client.post("/api/v1/events", json=body, headers=headers(member, chapter))
    assert r.status_code == 403

    r = await client.post("/api/v1/events", json=body, headers=headers(social, chapter))
    assert r.status_code == 400
    assert r.json()["detail"] == "End time must be after start time"

    ev = await _event(client, social, chapter, headers, budget_amount="250.00", budget_label="Social")
    assert ev["created_by"] == str(social.id)
    assert ev["rsvp_counts"] == {"attending": 0, "maybe": 0, "not_attending": 0}


@pytest.mark.asyncio
async def test_event_listing_scopes(client, db, factory, headers):
    chapter = await factory.chapter()
    admin = await factory.member(chapter, role="ADMIN")
    member = await factory.member(chapter)
    await db.commit()

    soon = await _event(client, admin, chapter, headers, title="soon", start_time=_iso(_in(days=1)), end_time=_iso(_in(days=1, hours=1)))
    later = await _event(client, admin, chapter, headers, title="later", start_time=_iso(_in(days=9)), end_time=_iso(_in(days=9, hours=1)))
    await _event(client, admin, chapter, headers, title="draft", status="draft")
    await _event(
        client, admin, chapter, headers, title="past", start_time=_iso(_in(days=-3)), end_time=_iso(_in(days=-3, hours=1))
    )

    r = await client.get("/api/v1/events", params={"scope": "upcoming"}, headers=headers(member, chapter))
    assert r.status_code == 200
    assert [e["id"] for e in r.json()] == [soon["id"], later["id"]]

    r = await client.get("/api/v1/events", headers=headers(member, chapter))
    assert {e["title"] for e in r.json()} == {"soon", "later", "past"}

    r = await client.get("/api/v1/events", headers=headers(admin, chapter))
    assert {e["title"] for e in r.json()} == {"soon", "later", "past", "draft"}


@pytest.mark.asyncio
async def test_event_update_and_delete(client, db, factory, headers):
    chapter = await factory.chapter()
    admin = await factory.member(chapter, role="ADMIN")
    editor = await factory.member(chapter, chapter_role="rush_chair")
    await db.commit()

    ev = await _event(client, admin, chapter, headers)
    url = f"/api/v1/events/{ev['id']}"

    r = await client.patch(url, json={}, headers=headers(editor, chapter))
    assert r.status_code == 400

    r = await client.patch(url, json={"status": None}, headers=headers(editor, chapter))
    assert r.status_code == 422

    # merged with the stored start time
    r = await client.patch(url, json={"end_time": _iso(_in(days=1))}, headers=headers(editor, chapter))
    assert r.status_code == 400

    r = await client.patch(url, json={"title": "Renamed", "location": "House"}, headers=headers(editor, chapter))
    assert r.status_code == 200, r.text
    assert (r.json()["title"], r.json()["location"]) == ("Renamed", "House")
    assert r.json()["updated_by"] == str(editor.id)

    r = await client.delete(url, headers=headers(admin, chapter))
    assert r.status_code == 204
    r = await client.get(url, headers=headers(admin, chapter))
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_rsvp_upsert_counts_and_detail(client, db, factory, headers):
    chapter = await factory.chapter()
    admin = await factory.member(chapter, role="ADMIN")
    a = await factory.member(chapter, full_name="Attendee A")
    b = await factory.member(chapter, role="ALUMNI", full_name="Alum B")
    await db.commit()

    ev = await _event(client, admin, chapter, headers)
    url = f"/api/v1/events/{ev['id']}/rsvp"

    r = await client.get(url, headers=headers(a, chapter))
    assert r.json() == {"status": None, "has_rsvp": False}

    r = await client.post(url, json={"status": "Maybe"}, headers=headers(a, chapter))
    assert r.status_code == 200, r.text
    assert r.json() == {"status": "maybe", "has_rsvp": True}

    r = await client.post(url, json={"status": "attending"}, headers=headers(a, chapter))
    assert r.status_code == 200
    r = await client.post(url, json={"status": "not_attending"}, headers=headers(b, chapter))
    assert r.status_code == 200

    r = await client.post(url, json={"status": "sure"}, headers=headers(a, chapter))
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid RSVP status"

    count = (await db.execute(select(func.count(EventRSVP.id)))).scalar()
    assert count == 2

    r = await client.get(f"/api/v1/events/{ev['id']}", headers=headers(admin, chapter))
    body = r.json()
    assert body["rsvp_counts"] == {"attending": 1, "maybe": 0, "not_attending": 1}
    assert {(x["user_name"], x["status"]) for x in body["rsvps"]} == {
        ("Attendee A", "attending"),
        ("Alum B", "not_attending"),
    }

    r = await client.get(url, headers=headers(a, chapter))
    assert r.json() == {"status": "attending", "has_rsvp": True}


@pytest.mark.asyncio
async def test_rsvp_rejected_for_drafts_and_started_events(client, db, factory, headers):
    chapter = await factory.chapter()
    admin = await factory.member(chapter, role="ADMIN")
    member = await factory.member(chapter)
    started = Event(
        chapter_id=chapter.id,
        title="Already going",
        start_time=_in(hours=-1),
        end_time=_in(hours=1),
        status="published",
    )
    db.add(started)
    await db.commit()

    draft = await _event(client, admin, chapter, headers, status="draft")

    r = await client.post(f"/api/v1/events/{draft['id']}/rsvp", json={"status": "attending"}, headers=headers(member, chapter))
    assert r.status_code == 400
    assert r.json()["detail"] == "Event is not published"

    r = await client.post(f"/api/v1/events/{started.id}/rsvp", json={"status": "attending"}, headers=headers(member, chapter))
    assert r.status_code == 400
    assert r.json()["detail"] == "RSVP is closed for this event"

    r = await client.post(f"/api/v1/events/{uuid.uuid4()}/rsvp", json={"status": "attending"}, headers=headers(member, chapter))
    assert r.status_code == 404
