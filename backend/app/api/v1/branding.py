# app/api/v1/branding.py
from __future__ import annotations

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.chapter import get_active_membership
from app.api.deps.developer import get_developer_access, require_developer
from app.api.deps.permissions import membership_has
from app.api.v1.auth import get_current_user
from app.auth.permissions import DEV_VIEW_USERS, PERM
from app.core.branding import (
    DEFAULT_LOGO_ALT_TEXT,
    branding_to_theme,
    is_valid_hex_color,
    normalize_hex_color,
)
from app.core.config import settings
from app.core.pagination import page_window, total_pages
from app.db.session import get_db
from app.models.chapter import Chapter
from app.models.chapter_branding import ChapterBranding
from app.models.user import User
from app.schemas.branding import (
    BrandingListOut,
    BrandingMutationOut,
    BrandingOut,
    BrandingPayload,
    BrandingWithChapterOut,
    ChapterSummary,
    LogoUploadOut,
    ThemeOut,
)
from app.services.logo_storage import LOGO_VARIANTS, LogoValidationError, save_logo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/branding", tags=["branding"])

DEFAULT_LIST_LIMIT = 100
MAX_LIST_LIMIT = 500


async def _ensure_can_manage(db: AsyncSession, user: User, chapter_id: uuid.UUID, action: str) -> None:
    """Developers manage any chapter; otherwise branding.manage in that chapter."""
    if await get_developer_access(db, user.id) is not None:
        return
    membership = await get_active_membership(db, chapter_id, user.id)
    if membership is None or not membership_has(membership, PERM.BRANDING_MANAGE):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Insufficient permissions to {action} this chapter branding",
        )


async def _ensure_can_view(db: AsyncSession, user: User, chapter_id: uuid.UUID) -> None:
    if await get_developer_access(db, user.id) is not None:
        return
    if await get_active_membership(db, chapter_id, user.id) is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions to access this chapter branding",
        )


async def _get_chapter_or_404(db: AsyncSession, chapter_id: uuid.UUID) -> Chapter:
    chapter = await db.get(Chapter, chapter_id)
    if chapter is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chapter not found")
    return chapter


async def _get_branding(db: AsyncSession, chapter_id: uuid.UUID) -> Optional[ChapterBranding]:
    stmt = select(ChapterBranding).where(ChapterBranding.chapter_id == chapter_id)
    return (await db.execute(stmt)).scalar_one_or_none()


def _clean_colors(payload: BrandingPayload) -> tuple[Optional[str], Optional[str]]:
    if payload.primary_color and not is_valid_hex_color(payload.primary_color):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid primary color format. Must be a valid hex color (e.g., #FF5733)",
        )
    if payload.accent_color and not is_valid_hex_color(payload.accent_color):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid accent color format. Must be a valid hex color (e.g., #33C3F0)",
        )
    primary = normalize_hex_color(payload.primary_color) if payload.primary_color else None
    accent = normalize_hex_color(payload.accent_color) if payload.accent_color else None
    return primary, accent


def _apply_payload(branding: ChapterBranding, payload: BrandingPayload, user: User) -> None:
    primary, accent = _clean_colors(payload)
    branding.primary_logo_url = payload.primary_logo_url or None
    branding.secondary_logo_url = payload.secondary_logo_url or None
    branding.logo_alt_text = (payload.logo_alt_text or "").strip() or DEFAULT_LOGO_ALT_TEXT
    branding.primary_color = primary
    branding.accent_color = accent
    branding.organization_id = payload.organization_id
    branding.updated_by = user.id


# =========================================================
# Developer listing
# =========================================================
@router.get("/chapters", response_model=BrandingListOut)
async def list_chapter_branding(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_LIST_LIMIT, ge=1),
    search: Optional[str] = Query(default=None, max_length=100),
    db: AsyncSession = Depends(get_db),
    _dev=Depends(require_developer(DEV_VIEW_USERS)),
):
    window = page_window(page, limit, default_limit=DEFAULT_LIST_LIMIT, max_limit=MAX_LIST_LIMIT)
    term = (search or "").strip()

    stmt = select(ChapterBranding, Chapter).join(Chapter, Chapter.id == ChapterBranding.chapter_id)
    if term:
        pattern = f"%{term.lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(Chapter.name).like(pattern),
                func.lower(func.coalesce(Chapter.chapter_name, "")).like(pattern),
                func.lower(func.coalesce(Chapter.university, "")).like(pattern),
            )
        )

    total = int((await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar() or 0)
    rows = (
        await db.execute(
            stmt.order_by(ChapterBranding.updated_at.desc()).offset(window.offset).limit(window.limit)
        )
    ).all()

    items = []
    for branding, chapter in rows:
        item = BrandingWithChapterOut.model_validate(branding)
        item.chapter = ChapterSummary.model_validate(chapter)
        items.append(item)

    missing_stmt = (
        select(Chapter)
        .outerjoin(ChapterBranding, ChapterBranding.chapter_id == Chapter.id)
        .where(ChapterBranding.id.is_(None))
        .where(Chapter.chapter_status == "active")
        .order_by(Chapter.name)
    )
    missing = (await db.execute(missing_stmt)).scalars().all()

    return BrandingListOut(
        branding=items,
        chapters_without_branding=[ChapterSummary.model_validate(c) for c in missing],
        total=total,
        page=window.page,
        limit=window.limit,
        total_pages=total_pages(total, window.limit),
        search=term or None,
    )


# =========================================================
# Per-chapter CRUD
# =========================================================
@router.get("/chapters/{chapter_id}", response_model=Optional[BrandingOut])
async def get_chapter_branding(
    chapter_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """The branding record, or null when the chapter has none yet."""
    await _ensure_can_view(db, user, chapter_id)
    return await _get_branding(db, chapter_id)


@router.get("/chapters/{chapter_id}/theme", response_model=ThemeOut)
async def get_chapter_theme(
    chapter_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    await _ensure_can_view(db, user, chapter_id)
    theme = branding_to_theme(await _get_branding(db, chapter_id))
    return ThemeOut(**theme.as_dict())


@router.put("/chapters/{chapter_id}", response_model=BrandingMutationOut)
async def upsert_chapter_branding(
    chapter_id: uuid.UUID,
    payload: BrandingPayload,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    await _ensure_can_manage(db, user, chapter_id, "update")
    await _get_chapter_or_404(db, chapter_id)

    branding = await _get_branding(db, chapter_id)
    created = branding is None
    if created:
        branding = ChapterBranding(chapter_id=chapter_id, created_by=user.id)
        db.add(branding)

    _apply_payload(branding, payload, user)
    await db.commit()
    await db.refresh(branding)

    logger.info(
        "Branding %s",
        "created" if created else "updated",
        extra={"chapter_id": chapter_id, "user_id": user.id},
    )
    return BrandingMutationOut(
        branding=BrandingOut.model_validate(branding),
        message=f"Branding {'created' if created else 'updated'} successfully",
    )


@router.post("/chapters/{chapter_id}", response_model=BrandingMutationOut, status_code=status.HTTP_201_CREATED)
async def create_chapter_branding(
    chapter_id: uuid.UUID,
    payload: BrandingPayload,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    await _ensure_can_manage(db, user, chapter_id, "create")
    await _get_chapter_or_404(db, chapter_id)

    if await _get_branding(db, chapter_id) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Branding already exists for this chapter. Use PUT to update.",
        )

    branding = ChapterBranding(chapter_id=chapter_id, created_by=user.id)
    _apply_payload(branding, payload, user)
    db.add(branding)
    await db.commit()
    await db.refresh(branding)

    logger.info("Branding created", extra={"chapter_id": chapter_id, "user_id": user.id})
    return BrandingMutationOut(
        branding=BrandingOut.model_validate(branding),
        message="Branding created successfully",
    )


@router.delete("/chapters/{chapter_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_chapter_branding(
    chapter_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Revert the chapter to the default theme."""
    await _ensure_can_manage(db, user, chapter_id, "delete")
    branding = await _get_branding(db, chapter_id)
    if branding is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Branding not found")

    await db.delete(branding)
    await db.commit()
    logger.info("Branding deleted", extra={"chapter_id": chapter_id, "user_id": user.id})
    return None


# =========================================================
# Logo upload (multipart)
# =========================================================
@router.post("/upload-logo", response_model=LogoUploadOut)
async def upload_logo(
    file: UploadFile = File(...),
    chapter_id: uuid.UUID = Form(...),
    variant: str = Form(default="primary"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if variant not in LOGO_VARIANTS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Variant must be "primary" or "secondary"')

    await _ensure_can_manage(db, user, chapter_id, "upload logos for")
    await _get_chapter_or_404(db, chapter_id)

    # one byte past the limit is enough to detect an oversized file
    data = await file.read(settings.LOGO_MAX_BYTES + 1)
    try:
        stored = await save_logo(chapter_id, variant, file.content_type, data)
    except LogoValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    finally:
        await file.close()

    return LogoUploadOut(url=stored.url, path=stored.path, variant=stored.variant)
