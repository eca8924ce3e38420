# app/api/v1/announcements.py
from __future__ import annotations

import logging
import uuid
from typing import Dict, Iterable, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.chapter import get_current_chapter, get_current_membership
from app.api.deps.permissions import require_permissions
from app.auth.permissions import PERM
from app.core.pagination import page_window, pagination_meta
from app.core.roles import MembershipRole
from app.db.session import get_db
from app.db.types import as_utc, utcnow
from app.models.announcement import Announcement, AnnouncementRecipient
from app.models.chapter import Chapter
from app.models.chapter_membership import ChapterMembership
from app.models.user import User
from app.schemas.announcement import (
    AnnouncementCreate,
    AnnouncementListOut,
    AnnouncementOut,
    AnnouncementReadOut,
    AnnouncementUpdate,
)
from app.schemas.post import AuthorOut, Pagination

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/announcements", tags=["announcements"])

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


async def _senders(db: AsyncSession, ids: Iterable[Optional[uuid.UUID]]) -> Dict[uuid.UUID, AuthorOut]:
    wanted = {i for i in ids if i is not None}
    if not wanted:
        return {}
    users = (await db.execute(select(User).where(User.id.in_(wanted)))).scalars().all()
    return {u.id: AuthorOut(id=u.id, full_name=u.display_name, avatar_url=u.avatar_url) for u in users}


def _out(a: Announcement, senders: Dict[uuid.UUID, AuthorOut], **extra) -> AnnouncementOut:
    return AnnouncementOut(
        id=a.id,
        chapter_id=a.chapter_id,
        title=a.title,
        content=a.content,
        announcement_type=a.announcement_type,
        is_scheduled=a.is_scheduled,
        scheduled_at=a.scheduled_at,
        is_sent=a.is_sent,
        sent_at=a.sent_at,
        metadata=a.extra_metadata or {},
        sender=senders.get(a.sender_id) if a.sender_id else None,
        created_at=a.created_at,
        updated_at=a.updated_at,
        **extra,
    )


async def _recipient_stats(db: AsyncSession, ids: List[uuid.UUID]) -> Dict[uuid.UUID, dict]:
    if not ids:
        return {}
    rows = (
        await db.execute(
            select(
                AnnouncementRecipient.announcement_id,
                func.count(AnnouncementRecipient.id),
                func.count(AnnouncementRecipient.id).filter(AnnouncementRecipient.is_read.is_(True)),
            )
            .where(AnnouncementRecipient.announcement_id.in_(ids))
            .group_by(AnnouncementRecipient.announcement_id)
        )
    ).all()
    return {
        aid: {"total_recipients": int(total), "read_count": int(read), "unread_count": int(total) - int(read)}
        for aid, total, read in rows
    }


def _empty_stats() -> dict:
    return {"total_recipients": 0, "read_count": 0, "unread_count": 0}


async def _deliver(db: AsyncSession, announcement: Announcement) -> int:
    """Recipient rows for every active, non-alumni member; marks the announcement sent."""
    member_ids = (
        await db.execute(
            select(ChapterMembership.user_id)
            .where(ChapterMembership.chapter_id == announcement.chapter_id)
            .where(ChapterMembership.is_active.is_(True))
            .where(ChapterMembership.role != MembershipRole.ALUMNI.value)
        )
    ).scalars().all()
    db.add_all(AnnouncementRecipient(announcement_id=announcement.id, recipient_id=uid) for uid in member_ids)
    announcement.is_sent = True
    announcement.sent_at = utcnow()
    return len(member_ids)


async def _load(db: AsyncSession, chapter_id: uuid.UUID, announcement_id: uuid.UUID) -> Announcement:
    announcement = (
        await db.execute(
            select(Announcement).where(Announcement.id == announcement_id, Announcement.chapter_id == chapter_id)
        )
    ).scalar_one_or_none()
    if announcement is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Announcement not found")
    return announcement


async def _managed_out(db: AsyncSession, announcement: Announcement) -> AnnouncementOut:
    senders = await _senders(db, [announcement.sender_id])
    stats = (await _recipient_stats(db, [announcement.id])).get(announcement.id, _empty_stats())
    return _out(announcement, senders, **stats)


# ---------------------------------------------------------
# Inbox
# ---------------------------------------------------------
@router.get("", response_model=AnnouncementListOut)
async def list_my_announcements(
    page: int = Query(default=1),
    limit: int = Query(default=DEFAULT_LIMIT),
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    membership: ChapterMembership = Depends(require_permissions(PERM.ANNOUNCEMENTS_READ)),
):
    window = page_window(page, limit, default_limit=DEFAULT_LIMIT, max_limit=MAX_LIMIT)
    received = (
        select(Announcement, AnnouncementRecipient)
        .join(AnnouncementRecipient, AnnouncementRecipient.announcement_id == Announcement.id)
        .where(Announcement.chapter_id == chapter.id)
        .where(AnnouncementRecipient.recipient_id == membership.user_id)
    )

    total, unread = (
        await db.execute(
            select(
                func.count(AnnouncementRecipient.id),
                func.count(AnnouncementRecipient.id).filter(AnnouncementRecipient.is_read.is_(False)),
            )
            .join(Announcement, Announcement.id == AnnouncementRecipient.announcement_id)
            .where(Announcement.chapter_id == chapter.id)
            .where(AnnouncementRecipient.recipient_id == membership.user_id)
        )
    ).one()

    rows = (
        await db.execute(
            received.order_by(Announcement.sent_at.desc(), Announcement.created_at.desc())
            .offset(window.offset)
            .limit(window.limit)
        )
    ).all()
    senders = await _senders(db, [a.sender_id for a, _ in rows])

    return AnnouncementListOut(
        announcements=[_out(a, senders, is_read=r.is_read, read_at=r.read_at) for a, r in rows],
        pagination=Pagination(**pagination_meta(window, int(total))),
        unread_count=int(unread),
    )


@router.post("/{announcement_id}/read", response_model=AnnouncementReadOut)
async def mark_read(
    announcement_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    membership: ChapterMembership = Depends(get_current_membership),
):
    recipient = (
        await db.execute(
            select(AnnouncementRecipient)
            .join(Announcement, Announcement.id == AnnouncementRecipient.announcement_id)
            .where(Announcement.id == announcement_id, Announcement.chapter_id == chapter.id)
            .where(AnnouncementRecipient.recipient_id == membership.user_id)
        )
    ).scalar_one_or_none()
    if recipient is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Announcement not found")

    if not recipient.is_read:
        recipient.is_read = True
        recipient.read_at = utcnow()
        await db.commit()
        await db.refresh(recipient)

    return AnnouncementReadOut(announcement_id=announcement_id, is_read=True, read_at=recipient.read_at)


# ---------------------------------------------------------
# Management
# ---------------------------------------------------------
@router.get("/manage", response_model=AnnouncementListOut)
async def list_chapter_announcements(
    page: int = Query(default=1),
    limit: int = Query(default=DEFAULT_LIMIT),
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    _=Depends(require_permissions(PERM.ANNOUNCEMENTS_MANAGE)),
):
    window = page_window(page, limit, default_limit=DEFAULT_LIMIT, max_limit=MAX_LIMIT)
    total = (
        await db.execute(select(func.count(Announcement.id)).where(Announcement.chapter_id == chapter.id))
    ).scalar() or 0
    announcements = (
        await db.execute(
            select(Announcement)
            .where(Announcement.chapter_id == chapter.id)
            .order_by(Announcement.created_at.desc())
            .offset(window.offset)
            .limit(window.limit)
        )
    ).scalars().all()

    ids = [a.id for a in announcements]
    senders = await _senders(db, [a.sender_id for a in announcements])
    stats = await _recipient_stats(db, ids)
    return AnnouncementListOut(
        announcements=[_out(a, senders, **stats.get(a.id, _empty_stats())) for a in announcements],
        pagination=Pagination(**pagination_meta(window, int(total))),
    )


@router.post("", response_model=AnnouncementOut, status_code=status.HTTP_201_CREATED)
async def create_announcement(
    payload: AnnouncementCreate,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    membership: ChapterMembership = Depends(require_permissions(PERM.ANNOUNCEMENTS_MANAGE)),
):
    if payload.is_scheduled:
        if payload.scheduled_at is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Scheduled announcements need scheduled_at")
        if payload.scheduled_at <= utcnow():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Scheduled time must be in the future")

    announcement = Announcement(
        chapter_id=chapter.id,
        sender_id=membership.user_id,
        title=payload.title,
        content=payload.content,
        announcement_type=payload.announcement_type,
        is_scheduled=payload.is_scheduled,
        scheduled_at=payload.scheduled_at if payload.is_scheduled else None,
        is_sent=False,
        extra_metadata=dict(payload.metadata),
    )
    db.add(announcement)
    await db.flush()

    delivered = 0
    if not payload.is_scheduled:
        delivered = await _deliver(db, announcement)

    await db.commit()
    await db.refresh(announcement)

    logger.info(
        "Announcement created (%d recipients)",
        delivered,
        extra={"chapter_id": chapter.id, "user_id": membership.user_id},
    )
    return await _managed_out(db, announcement)


@router.post("/{announcement_id}/send", response_model=AnnouncementOut)
async def send_announcement(
    announcement_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    membership: ChapterMembership = Depends(require_permissions(PERM.ANNOUNCEMENTS_MANAGE)),
):
    """Send a scheduled announcement now."""
    announcement = await _load(db, chapter.id, announcement_id)
    if announcement.is_sent:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Announcement already sent")

    delivered = await _deliver(db, announcement)
    await db.commit()
    await db.refresh(announcement)

    logger.info(
        "Announcement sent (%d recipients)",
        delivered,
        extra={"chapter_id": chapter.id, "user_id": membership.user_id},
    )
    return await _managed_out(db, announcement)


@router.patch("/{announcement_id}", response_model=AnnouncementOut)
async def update_announcement(
    announcement_id: uuid.UUID,
    payload: AnnouncementUpdate,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    _=Depends(require_permissions(PERM.ANNOUNCEMENTS_MANAGE)),
):
    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields provided to update")
    for field in ("title", "content", "announcement_type"):
        if field in data and data[field] is None:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"{field} cannot be null")

    announcement = await _load(db, chapter.id, announcement_id)

    if "scheduled_at" in data:
        if announcement.is_sent:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Sent announcements cannot be rescheduled")
        when = data["scheduled_at"]
        if when is not None and as_utc(when) <= utcnow():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Scheduled time must be in the future")
        announcement.is_scheduled = when is not None

    for field, value in data.items():
        setattr(announcement, field, value)

    await db.commit()
    await db.refresh(announcement)
    return await _managed_out(db, announcement)


@router.delete("/{announcement_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_announcement(
    announcement_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    membership: ChapterMembership = Depends(require_permissions(PERM.ANNOUNCEMENTS_MANAGE)),
):
    announcement = await _load(db, chapter.id, announcement_id)
    await db.delete(announcement)
    await db.commit()

    logger.info("Announcement deleted", extra={"chapter_id": chapter.id, "user_id": membership.user_id})
    return None
