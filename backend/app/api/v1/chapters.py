# app/api/v1/chapters.py
from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.chapter import get_current_chapter, get_current_membership
from app.api.deps.developer import require_developer
from app.api.deps.permissions import require_permissions
from app.api.v1.auth import get_current_user
from app.auth.permissions import DEV_MANAGE_CHAPTERS, PERM
from app.core.overview import membership_growth, month_start, previous_month_start
from app.core.roles import MembershipRole, MemberStatus
from app.db.session import get_db
from app.db.types import utcnow
from app.models.chapter import Chapter
from app.models.chapter_membership import ChapterMembership
from app.models.event import Event
from app.models.task import Task
from app.models.user import User
from app.schemas.chapter import (
    ChapterCreate,
    ChapterOut,
    FeatureFlagsOut,
    FeatureFlagsUpdate,
    MembershipGrowthOut,
    OverviewOut,
)
from app.schemas.membership import MembershipOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chapters", tags=["chapters"])


# ---------------------------------------------------------
# Chapter creation (developer portal)
# ---------------------------------------------------------
@router.post("", response_model=ChapterOut, status_code=status.HTTP_201_CREATED)
async def create_chapter(
    payload: ChapterCreate,
    db: AsyncSession = Depends(get_db),
    _dev=Depends(require_developer(DEV_MANAGE_CHAPTERS)),
):
    chapter = Chapter(
        name=payload.name.strip(),
        chapter_name=payload.chapter_name,
        university=payload.university,
        national_fraternity=payload.national_fraternity,
        location=payload.location,
        founded_year=payload.founded_year,
        starting_budget=payload.starting_budget,
        feature_flags=dict(payload.feature_flags),
        chapter_status="active",
    )
    db.add(chapter)
    await db.flush()

    if payload.admin_email:
        email = str(payload.admin_email).strip().lower()
        admin = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
        if admin is None:
            admin = User(email=email, is_active=True)
            db.add(admin)
            await db.flush()
        db.add(
            ChapterMembership(
                chapter_id=chapter.id,
                user_id=admin.id,
                role=MembershipRole.ADMIN.value,
                member_status=MemberStatus.ACTIVE.value,
                permissions=[],
                is_active=True,
            )
        )

    await db.commit()
    await db.refresh(chapter)

    logger.info("Chapter created", extra={"chapter_id": chapter.id})
    return chapter


# ---------------------------------------------------------
# Chapters I belong to
# ---------------------------------------------------------
@router.get("", response_model=List[ChapterOut])
async def list_my_chapters(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    stmt = (
        select(Chapter)
        .join(ChapterMembership, ChapterMembership.chapter_id == Chapter.id)
        .where(ChapterMembership.user_id == user.id)
        .where(ChapterMembership.is_active.is_(True))
        .order_by(Chapter.name)
    )
    return list((await db.execute(stmt)).scalars().unique().all())


# ---------------------------------------------------------
# Chapter scoped (X-Chapter-Id)
# ---------------------------------------------------------
@router.get("/current", response_model=ChapterOut)
async def get_current_chapter_route(chapter: Chapter = Depends(get_current_chapter)):
    return chapter


@router.get("/membership", response_model=MembershipOut)
async def get_my_membership(membership: ChapterMembership = Depends(get_current_membership)):
    return membership


@router.get("/current/features", response_model=FeatureFlagsOut)
async def get_feature_flags(chapter: Chapter = Depends(get_current_chapter)):
    return FeatureFlagsOut(chapter_id=chapter.id, feature_flags=chapter.feature_flags or {})


@router.patch("/current/features", response_model=FeatureFlagsOut)
async def update_feature_flags(
    payload: FeatureFlagsUpdate,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    membership: ChapterMembership = Depends(require_permissions(PERM.CHAPTER_MANAGE)),
):
    # Reassign (not mutate) so the JSON column is flagged dirty
    chapter.feature_flags = {**(chapter.feature_flags or {}), **payload.feature_flags}
    await db.commit()
    await db.refresh(chapter)

    logger.info(
        "Chapter feature flags updated: %s",
        sorted(payload.feature_flags),
        extra={"chapter_id": chapter.id, "user_id": membership.user_id},
    )
    return FeatureFlagsOut(chapter_id=chapter.id, feature_flags=chapter.feature_flags)


@router.get("/current/overview", response_model=OverviewOut)
async def get_overview(
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    _=Depends(require_permissions(PERM.CHAPTER_READ)),
):
    active = (ChapterMembership.chapter_id == chapter.id, ChapterMembership.is_active.is_(True))

    by_role = dict(
        (await db.execute(
            select(ChapterMembership.role, func.count(ChapterMembership.id)).where(*active).group_by(ChapterMembership.role)
        )).all()
    )
    by_status = dict(
        (await db.execute(
            select(ChapterMembership.member_status, func.count(ChapterMembership.id))
            .where(*active)
            .group_by(ChapterMembership.member_status)
        )).all()
    )

    now = utcnow()
    this_month = month_start(now)

    async def joined(start, end=None) -> int:
        stmt = select(func.count(ChapterMembership.id)).where(*active).where(ChapterMembership.created_at >= start)
        if end is not None:
            stmt = stmt.where(ChapterMembership.created_at < end)
        return int((await db.execute(stmt)).scalar() or 0)

    current = await joined(this_month)
    last = await joined(previous_month_start(now), this_month)

    upcoming = (
        await db.execute(
            select(func.count(Event.id))
            .where(Event.chapter_id == chapter.id, Event.status == "published", Event.start_time > now)
        )
    ).scalar() or 0
    open_tasks = (
        await db.execute(select(func.count(Task.id)).where(Task.chapter_id == chapter.id, Task.status != "completed"))
    ).scalar() or 0

    return OverviewOut(
        chapter_id=chapter.id,
        total_members=sum(by_role.values()),
        members_by_role={role: int(n) for role, n in by_role.items()},
        members_by_status={s: int(n) for s, n in by_status.items()},
        alumni_count=int(by_role.get(MembershipRole.ALUMNI.value, 0)),
        upcoming_events=int(upcoming),
        open_tasks=int(open_tasks),
        membership_growth=MembershipGrowthOut(
            current_month=current, last_month=last, growth=membership_growth(current, last)
        ),
    )
