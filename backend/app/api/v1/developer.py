# app/api/v1/developer.py
from __future__ import annotations

import logging
import uuid
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.developer import require_developer
from app.auth.permissions import (
    DEV_MANAGE_DEVELOPERS,
    DEV_MANAGE_PERMISSIONS,
    DEV_VIEW_ANALYTICS,
    DEV_VIEW_USERS,
    developer_permissions,
)
from app.core.overview import previous_month_start
from app.core.pagination import page_window, total_pages
from app.core.roles import MembershipRole
from app.db.session import get_db
from app.db.types import utcnow
from app.models.chapter import Chapter
from app.models.chapter_membership import ChapterMembership
from app.models.developer_access import DeveloperAccess
from app.models.user import User
from app.schemas.developer import (
    DeveloperChapterOut,
    DeveloperStatsOut,
    DeveloperUserCreate,
    DeveloperUserListOut,
    DeveloperUserOut,
    DeveloperUserUpdate,
    UserMembershipOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/developer", tags=["developer"])

DEFAULT_LIMIT = 100
MAX_LIMIT = 500


def growth_percentage(total: int, new: int) -> float:
    if total <= 0:
        return 0.0
    return round(new / ((total - new) or 1) * 100, 1)


async def _to_out(db: AsyncSession, users: List[User]) -> List[DeveloperUserOut]:
    ids = [u.id for u in users]
    if not ids:
        return []

    access_rows = (
        await db.execute(select(DeveloperAccess).where(DeveloperAccess.user_id.in_(ids)))
    ).scalars().all()
    access: Dict[uuid.UUID, DeveloperAccess] = {a.user_id: a for a in access_rows}

    membership_rows = (
        await db.execute(
            select(ChapterMembership, Chapter.name)
            .join(Chapter, Chapter.id == ChapterMembership.chapter_id)
            .where(ChapterMembership.user_id.in_(ids))
            .order_by(ChapterMembership.created_at)
        )
    ).all()
    memberships: Dict[uuid.UUID, List[UserMembershipOut]] = {}
    for m, chapter_name in membership_rows:
        memberships.setdefault(m.user_id, []).append(
            UserMembershipOut(
                chapter_id=m.chapter_id,
                chapter_name=chapter_name,
                role=m.role,
                chapter_role=m.chapter_role,
                member_status=m.member_status,
                is_active=m.is_active,
            )
        )

    out = []
    for u in users:
        a = access.get(u.id)
        is_dev = a is not None and a.is_active
        out.append(
            DeveloperUserOut(
                id=u.id,
                email=u.email,
                full_name=u.full_name,
                first_name=u.first_name,
                last_name=u.last_name,
                phone=u.phone,
                is_active=u.is_active,
                is_developer=is_dev,
                developer_access_level=a.access_level if is_dev else None,
                created_at=u.created_at,
                memberships=memberships.get(u.id, []),
            )
        )
    return out


async def _load_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


async def _load_chapter(db: AsyncSession, chapter_id: uuid.UUID) -> Chapter:
    chapter = await db.get(Chapter, chapter_id)
    if chapter is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chapter not found")
    return chapter


def _ensure_can_grant_developer(access: DeveloperAccess) -> None:
    if DEV_MANAGE_DEVELOPERS not in developer_permissions(access.access_level, access.permissions):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "code": "developer_forbidden",
                "message": "Your developer access level does not allow this action.",
                "required": DEV_MANAGE_DEVELOPERS,
                "access_level": access.access_level,
            },
        )


async def _set_developer_level(db: AsyncSession, user_id: uuid.UUID, level: str) -> None:
    existing = (
        await db.execute(select(DeveloperAccess).where(DeveloperAccess.user_id == user_id))
    ).scalar_one_or_none()
    if existing is None:
        db.add(DeveloperAccess(user_id=user_id, access_level=level, permissions=[], is_active=True))
    else:
        existing.access_level = level
        existing.is_active = True


# =========================================================
# Users
# =========================================================
@router.get("/users", response_model=DeveloperUserListOut)
async def list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_LIMIT, ge=1),
    search: Optional[str] = Query(default=None, max_length=100),
    db: AsyncSession = Depends(get_db),
    _=Depends(require_developer(DEV_VIEW_USERS)),
):
    """Newest users first; search matches email, names and any membership role."""
    window = page_window(page, limit, default_limit=DEFAULT_LIMIT, max_limit=MAX_LIMIT)

    stmt = select(User)
    term = (search or "").strip()
    if term:
        pattern = f"%{term.lower()}%"
        role_match = exists().where(
            ChapterMembership.user_id == User.id,
            func.lower(ChapterMembership.role).like(pattern),
        )
        stmt = stmt.where(
            or_(
                func.lower(User.email).like(pattern),
                func.lower(func.coalesce(User.full_name, "")).like(pattern),
                func.lower(func.coalesce(User.first_name, "")).like(pattern),
                func.lower(func.coalesce(User.last_name, "")).like(pattern),
                role_match,
            )
        )

    total = int((await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar() or 0)
    users = (
        await db.execute(
            stmt.order_by(User.created_at.desc(), User.id).offset(window.offset).limit(window.limit)
        )
    ).scalars().all()

    return DeveloperUserListOut(
        users=await _to_out(db, list(users)),
        total=total,
        page=window.page,
        limit=window.limit,
        total_pages=total_pages(total, window.limit),
        search=term or None,
    )


@router.post("/users", response_model=DeveloperUserOut, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: DeveloperUserCreate,
    db: AsyncSession = Depends(get_db),
    access: DeveloperAccess = Depends(require_developer(DEV_MANAGE_PERMISSIONS)),
):
    email = payload.email.strip().lower()
    taken = (await db.execute(select(User.id).where(func.lower(User.email) == email))).scalar_one_or_none()
    if taken is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A user with this email already exists")

    if payload.developer_access_level:
        _ensure_can_grant_developer(access)

    full_name = User.normalize_full_name(payload.full_name)
    if full_name is None and (payload.first_name or payload.last_name):
        full_name = User.normalize_full_name(f"{payload.first_name or ''} {payload.last_name or ''}")
    first, last = payload.first_name, payload.last_name
    if full_name and not (first or last):
        first, last = User.split_full_name(full_name)

    user = User(
        email=email,
        full_name=full_name,
        first_name=first,
        last_name=last,
        phone=payload.phone,
        is_active=True,
    )
    db.add(user)
    await db.flush()

    if payload.chapter_id is not None:
        chapter = await _load_chapter(db, payload.chapter_id)
        db.add(
            ChapterMembership(
                chapter_id=chapter.id,
                user_id=user.id,
                role=payload.role,
                chapter_role=payload.chapter_role,
                member_status=payload.member_status,
                permissions=[],
                is_active=True,
            )
        )

    if payload.developer_access_level:
        await _set_developer_level(db, user.id, payload.developer_access_level)

    await db.commit()
    await db.refresh(user)

    logger.info("User created from developer portal", extra={"user_id": user.id})
    return (await _to_out(db, [user]))[0]


@router.patch("/users/{user_id}", response_model=DeveloperUserOut)
async def update_user(
    user_id: uuid.UUID,
    payload: DeveloperUserUpdate,
    db: AsyncSession = Depends(get_db),
    access: DeveloperAccess = Depends(require_developer(DEV_MANAGE_PERMISSIONS)),
):
    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields provided to update")

    user = await _load_user(db, user_id)

    for field in ("first_name", "last_name", "phone"):
        if field in data:
            setattr(user, field, data[field])
    if "full_name" in data:
        user.full_name = User.normalize_full_name(data["full_name"])
        if user.full_name and not ({"first_name", "last_name"} & data.keys()):
            user.first_name, user.last_name = User.split_full_name(user.full_name)
    if data.get("is_active") is not None:
        user.is_active = data["is_active"]

    membership_fields = {k: data[k] for k in ("role", "chapter_role", "member_status") if k in data}
    if membership_fields:
        if payload.chapter_id is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="chapter_id is required to update membership fields",
            )
        chapter = await _load_chapter(db, payload.chapter_id)
        membership = (
            await db.execute(
                select(ChapterMembership).where(
                    ChapterMembership.chapter_id == chapter.id,
                    ChapterMembership.user_id == user.id,
                )
            )
        ).scalar_one_or_none()
        if membership is None:
            membership = ChapterMembership(
                chapter_id=chapter.id,
                user_id=user.id,
                role=membership_fields.get("role") or MembershipRole.ACTIVE_MEMBER.value,
                chapter_role=membership_fields.get("chapter_role"),
                member_status=membership_fields.get("member_status") or "active",
                permissions=[],
                is_active=True,
            )
            db.add(membership)
        else:
            for field, value in membership_fields.items():
                if value is None and field != "chapter_role":
                    continue
                setattr(membership, field, value)
            membership.is_active = True

    if data.get("developer_access_level"):
        _ensure_can_grant_developer(access)
        await _set_developer_level(db, user.id, data["developer_access_level"])

    await db.commit()
    await db.refresh(user)
    return (await _to_out(db, [user]))[0]


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    access: DeveloperAccess = Depends(require_developer(DEV_MANAGE_PERMISSIONS)),
):
    if user_id == access.user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete your own account")

    user = await _load_user(db, user_id)
    # memberships, developer access, posts and likes cascade in the database
    await db.delete(user)
    await db.commit()

    logger.info("User deleted from developer portal", extra={"user_id": user_id})
    return None


# =========================================================
# Stats / chapters
# =========================================================
@router.get("/stats", response_model=DeveloperStatsOut)
async def get_stats(
    db: AsyncSession = Depends(get_db),
    _=Depends(require_developer(DEV_VIEW_ANALYTICS)),
):
    since = previous_month_start(utcnow())

    total_users, new_users = (
        await db.execute(
            select(func.count(User.id), func.count(User.id).filter(User.created_at >= since))
        )
    ).one()

    alumni = exists().where(
        ChapterMembership.user_id == User.id,
        ChapterMembership.role == MembershipRole.ALUMNI.value,
        ChapterMembership.is_active.is_(True),
    )
    total_alumni, new_alumni = (
        await db.execute(
            select(func.count(User.id), func.count(User.id).filter(User.created_at >= since)).where(alumni)
        )
    ).one()

    total_chapters, new_chapters = (
        await db.execute(
            select(func.count(Chapter.id), func.count(Chapter.id).filter(Chapter.created_at >= since))
        )
    ).one()

    return DeveloperStatsOut(
        total_users=int(total_users or 0),
        new_users_this_month=int(new_users or 0),
        user_growth_percentage=growth_percentage(int(total_users or 0), int(new_users or 0)),
        total_chapters=int(total_chapters or 0),
        new_chapters_this_month=int(new_chapters or 0),
        total_alumni=int(total_alumni or 0),
        new_alumni_this_month=int(new_alumni or 0),
    )


@router.get("/chapters", response_model=List[DeveloperChapterOut])
async def list_chapters(
    db: AsyncSession = Depends(get_db),
    _=Depends(require_developer(DEV_VIEW_USERS)),
):
    member_count = (
        select(func.count(ChapterMembership.id))
        .where(ChapterMembership.chapter_id == Chapter.id)
        .where(ChapterMembership.is_active.is_(True))
        .correlate(Chapter)
        .scalar_subquery()
    )
    rows = (await db.execute(select(Chapter, member_count).order_by(Chapter.name))).all()

    return [
        DeveloperChapterOut(
            id=c.id,
            name=c.name,
            chapter_name=c.chapter_name,
            university=c.university,
            national_fraternity=c.national_fraternity,
            chapter_status=c.chapter_status,
            member_count=int(n or 0),
            created_at=c.created_at,
        )
        for c, n in rows
    ]
