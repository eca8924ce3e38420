# app/crud/chapter_membership.py
from __future__ import annotations

import uuid
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.chapter_membership import ChapterMembership
from app.models.user import User


async def count_active_members(
    db: AsyncSession,
    chapter_id: uuid.UUID,
    *,
    role: Optional[str] = None,
    member_status: Optional[str] = None,
) -> int:
    """Active memberships in a chapter, optionally narrowed by role and/or member_status."""
    stmt = (
        select(func.count(ChapterMembership.id))
        .where(ChapterMembership.chapter_id == chapter_id)
        .where(ChapterMembership.is_active.is_(True))
    )
    if role is not None:
        stmt = stmt.where(ChapterMembership.role == role)
    if member_status is not None:
        stmt = stmt.where(ChapterMembership.member_status == member_status)
    return int((await db.execute(stmt)).scalar() or 0)


async def get_membership(
    db: AsyncSession,
    chapter_id: uuid.UUID,
    user_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> Optional[ChapterMembership]:
    """Membership row regardless of is_active (used for reactivation)."""
    stmt = select(ChapterMembership).where(
        ChapterMembership.chapter_id == chapter_id,
        ChapterMembership.user_id == user_id,
    )
    if for_update:
        stmt = stmt.with_for_update()
    return (await db.execute(stmt)).scalar_one_or_none()


async def active_member_ids(
    db: AsyncSession, chapter_id: uuid.UUID, user_ids: Iterable[uuid.UUID]
) -> set[uuid.UUID]:
    ids = list(user_ids)
    if not ids:
        return set()
    stmt = select(ChapterMembership.user_id).where(
        ChapterMembership.chapter_id == chapter_id,
        ChapterMembership.is_active.is_(True),
        ChapterMembership.user_id.in_(ids),
    )
    return set((await db.execute(stmt)).scalars().all())


async def user_names(db: AsyncSession, user_ids: Iterable[Optional[uuid.UUID]]) -> dict[uuid.UUID, str]:
    """{user_id: display name} for the given ids (None ids skipped)."""
    ids = {i for i in user_ids if i is not None}
    if not ids:
        return {}
    users = (await db.execute(select(User).where(User.id.in_(ids)))).scalars().all()
    return {u.id: u.display_name for u in users}
