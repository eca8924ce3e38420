from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.chapter import get_current_chapter
from app.api.deps.permissions import membership_has, require_permissions
from app.auth.permissions import PERM
from app.crud.chapter_membership import user_names
from app.db.session import get_db
from app.db.types import as_utc, utcnow
from app.models.chapter import Chapter
from app.models.chapter_membership import ChapterMembership
from app.models.event import Event, EventRSVP
from app.schemas.event import (
    RSVP_STATUSES,
    EventCreate,
    EventDetailOut,
    EventOut,
    EventUpdate,
    MyRSVPOut,
    RSVPCounts,
    RSVPOut,
    RSVPRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])

SCOPE_UPCOMING = "upcoming"


def _check_times(start_time: datetime, end_time: datetime) -> None:
    if as_utc(end_time) <= as_utc(start_time):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End time must be after start time")


async def _rsvp_counts(db: AsyncSession, event_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, RSVPCounts]:
    ids = list(event_ids)
    counts: Dict[uuid.UUID, RSVPCounts] = {i: RSVPCounts() for i in ids}
    if not ids:
        return counts
    rows = (
        await db.execute(
            select(EventRSVP.event_id, EventRSVP.status, func.count(EventRSVP.id))
            .where(EventRSVP.event_id.in_(ids))
            .group_by(EventRSVP.event_id, EventRSVP.status)
        )
    ).all()
    for event_id, rsvp_status, n in rows:
        if rsvp_status in RSVP_STATUSES:
            setattr(counts[event_id], rsvp_status, int(n))
    return counts


def _event_out(ev: Event, counts: RSVPCounts, model=EventOut, **extra):
    return model(
        id=ev.id,
        chapter_id=ev.chapter_id,
        title=ev.title,
        description=ev.description,
        location=ev.location,
        start_time=ev.start_time,
        end_time=ev.end_time,
        status=ev.status,
        budget_label=ev.budget_label,
        budget_amount=ev.budget_amount,
        created_by=ev.created_by,
        updated_by=ev.updated_by,
        created_at=ev.created_at,
        updated_at=ev.updated_at,
        rsvp_counts=counts,
        **extra,
    )


async def _load_event(db: AsyncSession, chapter_id: uuid.UUID, event_id: uuid.UUID) -> Event:
    ev = (
        await db.execute(select(Event).where(Event.id == event_id, Event.chapter_id == chapter_id))
    ).scalar_one_or_none()
    if ev is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    return ev


@router.get("", response_model=List[EventOut])
async def list_events(
    scope: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    membership: ChapterMembership = Depends(require_permissions(PERM.EVENTS_READ)),
):
    """
    scope=upcoming: published events that have not started, soonest first.
    Otherwise every event, newest first (drafts only for event managers).
    """
    stmt = select(Event).where(Event.chapter_id == chapter.id)
    if scope == SCOPE_UPCOMING:
        stmt = (
            stmt.where(Event.status == "published")
            .where(Event.start_time >= utcnow())
            .order_by(Event.start_time.asc())
        )
    else:
        if not membership_has(membership, PERM.EVENTS_WRITE):
            stmt = stmt.where(Event.status != "draft")
        stmt = stmt.order_by(Event.created_at.desc())

    events = (await db.execute(stmt)).scalars().all()
    counts = await _rsvp_counts(db, [e.id for e in events])
    return [_event_out(e, counts[e.id]) for e in events]


@router.post("", response_model=EventOut, status_code=status.HTTP_201_CREATED)
async def create_event(
    payload: EventCreate,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    membership: ChapterMembership = Depends(require_permissions(PERM.EVENTS_WRITE)),
):
    _check_times(payload.start_time, payload.end_time)

    ev = Event(
        chapter_id=chapter.id,
        title=payload.title.strip(),
        description=payload.description,
        location=payload.location,
        start_time=payload.start_time,
        end_time=payload.end_time,
        status=payload.status,
        budget_label=payload.budget_label,
        budget_amount=payload.budget_amount,
        created_by=membership.user_id,
        updated_by=membership.user_id,
    )
    db.add(ev)
    await db.commit()
    await db.refresh(ev)

    logger.info("Event created", extra={"chapter_id": chapter.id, "user_id": membership.user_id})
    return _event_out(ev, RSVPCounts())


@router.get("/{event_id}", response_model=EventDetailOut)
async def get_event(
    event_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    _=Depends(require_permissions(PERM.EVENTS_READ)),
):
    ev = await _load_event(db, chapter.id, event_id)
    rsvps = (
        await db.execute(
            select(EventRSVP).where(EventRSVP.event_id == ev.id).order_by(EventRSVP.responded_at)
        )
    ).scalars().all()
    names = await user_names(db, [r.user_id for r in rsvps])
    counts = await _rsvp_counts(db, [ev.id])

    return _event_out(
        ev,
        counts[ev.id],
        model=EventDetailOut,
        rsvps=[
            RSVPOut(user_id=r.user_id, user_name=names.get(r.user_id), status=r.status, responded_at=r.responded_at)
            for r in rsvps
        ],
    )


@router.patch("/{event_id}", response_model=EventOut)
async def update_event(
    event_id: uuid.UUID,
    payload: EventUpdate,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    membership: ChapterMembership = Depends(require_permissions(PERM.EVENTS_WRITE)),
):
    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields provided to update")

    for field in ("title", "start_time", "end_time", "status"):
        if field in data and data[field] is None:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"{field} cannot be null")

    ev = await _load_event(db, chapter.id, event_id)
    _check_times(data.get("start_time", ev.start_time), data.get("end_time", ev.end_time))

    for field, value in data.items():
        setattr(ev, field, value)
    ev.updated_by = membership.user_id

    await db.commit()
    await db.refresh(ev)

    counts = await _rsvp_counts(db, [ev.id])
    return _event_out(ev, counts[ev.id])


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event(
    event_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    membership: ChapterMembership = Depends(require_permissions(PERM.EVENTS_WRITE)),
):
    ev = await _load_event(db, chapter.id, event_id)
    await db.delete(ev)
    await db.commit()

    logger.info("Event deleted", extra={"chapter_id": chapter.id, "user_id": membership.user_id})
    return None


# =========================================================
# RSVP
# =========================================================
@router.post("/{event_id}/rsvp", response_model=MyRSVPOut)
async def rsvp_to_event(
    event_id: uuid.UUID,
    payload: RSVPRequest,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    membership: ChapterMembership = Depends(require_permissions(PERM.EVENTS_RSVP)),
):
    rsvp_status = (payload.status or "").strip().lower()
    if rsvp_status not in RSVP_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid RSVP status")

    ev = await _load_event(db, chapter.id, event_id)
    if ev.status != "published":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Event is not published")
    if utcnow() >= ev.start_time:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="RSVP is closed for this event")

    rsvp = (
        await db.execute(
            select(EventRSVP).where(
                EventRSVP.event_id == ev.id,
                EventRSVP.user_id == membership.user_id,
            )
        )
    ).scalar_one_or_none()

    if rsvp is None:
        rsvp = EventRSVP(event_id=ev.id, user_id=membership.user_id, status=rsvp_status, responded_at=utcnow())
        db.add(rsvp)
    else:
        rsvp.status = rsvp_status
        rsvp.responded_at = utcnow()

    await db.commit()
    return MyRSVPOut(status=rsvp_status, has_rsvp=True)


@router.get("/{event_id}/rsvp", response_model=MyRSVPOut)
async def get_my_rsvp(
    event_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    membership: ChapterMembership = Depends(require_permissions(PERM.EVENTS_READ)),
):
    ev = await _load_event(db, chapter.id, event_id)
    rsvp_status = (
        await db.execute(
            select(EventRSVP.status).where(
                EventRSVP.event_id == ev.id,
                EventRSVP.user_id == membership.user_id,
            )
        )
    ).scalar_one_or_none()
    return MyRSVPOut(status=rsvp_status, has_rsvp=rsvp_status is not None)
