# app/api/v1/members.py
from __future__ import annotations

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.chapter import get_current_chapter
from app.api.deps.permissions import require_permissions
from app.auth.permissions import PERM
from app.core.pagination import page_window, total_pages
from app.db.session import get_db
from app.models.chapter import Chapter
from app.models.chapter_membership import ChapterMembership
from app.models.user import User
from app.schemas.membership import MemberListOut, MemberOut, MembershipOut, MemberUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/members", tags=["members"])

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def _to_member_out(m: ChapterMembership, u: User) -> MemberOut:
    return MemberOut(
        membership_id=m.id,
        user_id=u.id,
        email=u.email,
        full_name=u.full_name,
        avatar_url=u.avatar_url,
        role=m.role,
        chapter_role=m.chapter_role,
        member_status=m.member_status,
        joined_at=m.created_at,
    )


@router.get("", response_model=MemberListOut)
async def list_members(
    search: Optional[str] = Query(default=None, max_length=100),
    role: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_LIMIT, ge=1),
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    _=Depends(require_permissions(PERM.MEMBERS_READ)),
):
    window = page_window(page, limit, default_limit=DEFAULT_LIMIT, max_limit=MAX_LIMIT)

    base = (
        select(ChapterMembership, User)
        .join(User, User.id == ChapterMembership.user_id)
        .where(ChapterMembership.chapter_id == chapter.id)
        .where(ChapterMembership.is_active.is_(True))
    )
    if role:
        base = base.where(ChapterMembership.role == role.strip().upper())
    if search and search.strip():
        pattern = f"%{search.strip().lower()}%"
        base = base.where(
            or_(
                func.lower(User.email).like(pattern),
                func.lower(func.coalesce(User.full_name, "")).like(pattern),
                func.lower(ChapterMembership.role).like(pattern),
                func.lower(func.coalesce(ChapterMembership.chapter_role, "")).like(pattern),
            )
        )

    total = int((await db.execute(select(func.count()).select_from(base.subquery()))).scalar() or 0)

    rows = (
        await db.execute(
            base.order_by(User.full_name.is_(None), User.full_name, User.email)
            .offset(window.offset)
            .limit(window.limit)
        )
    ).all()

    return MemberListOut(
        members=[_to_member_out(m, u) for m, u in rows],
        page=window.page,
        limit=window.limit,
        total=total,
        total_pages=total_pages(total, window.limit),
    )


async def _load_membership(db: AsyncSession, chapter_id: uuid.UUID, membership_id: uuid.UUID) -> ChapterMembership:
    m = (
        await db.execute(
            select(ChapterMembership).where(
                ChapterMembership.id == membership_id,
                ChapterMembership.chapter_id == chapter_id,
            )
        )
    ).scalar_one_or_none()
    if m is None or not m.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")
    return m


@router.patch("/{membership_id}", response_model=MembershipOut)
async def update_member(
    membership_id: uuid.UUID,
    payload: MemberUpdate,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    actor: ChapterMembership = Depends(require_permissions(PERM.MEMBERS_WRITE)),
):
    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields provided to update")

    for field in ("role", "member_status"):
        if field in data and data[field] is None:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"{field} cannot be null")

    m = await _load_membership(db, chapter.id, membership_id)
    for field, value in data.items():
        if field == "permissions":
            value = value or []
        setattr(m, field, value)

    await db.commit()
    await db.refresh(m)

    logger.info(
        "Member updated: %s",
        sorted(data),
        extra={"chapter_id": chapter.id, "user_id": actor.user_id},
    )
    return m


@router.delete("/{membership_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    membership_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    actor: ChapterMembership = Depends(require_permissions(PERM.MEMBERS_WRITE)),
):
    m = await _load_membership(db, chapter.id, membership_id)
    if m.user_id == actor.user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot remove yourself from the chapter")

    m.is_active = False
    m.member_status = "inactive"
    await db.commit()

    logger.info("Member removed", extra={"chapter_id": chapter.id, "user_id": actor.user_id})
    return None
