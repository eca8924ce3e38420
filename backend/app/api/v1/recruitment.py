from __future__ import annotations

import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.chapter import get_current_chapter
from app.api.deps.permissions import require_permissions
from app.auth.permissions import PERM
from app.core.features import is_feature_enabled
from app.core.recruitment import (
    DEFAULT_STAGE,
    RECRUIT_STAGES,
    RECRUITMENT_FEATURE_FLAG,
    is_valid_phone_number,
    is_valid_stage,
    normalize_instagram_handle,
)
from app.db.session import get_db
from app.models.chapter import Chapter
from app.models.chapter_membership import ChapterMembership
from app.models.recruit import Recruit
from app.schemas.recruit import RecruitCreate, RecruitOut, RecruitUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recruitment", tags=["recruitment"])

INVALID_PHONE = "Invalid phone number format. Please provide a valid 10 or 11 digit phone number."


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


async def require_recruitment_enabled(chapter: Chapter = Depends(get_current_chapter)) -> Chapter:
    if not is_feature_enabled(chapter.feature_flags, RECRUITMENT_FEATURE_FLAG):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Recruitment CRM feature is not enabled for this chapter",
        )
    return chapter


def _blank(v: Optional[str]) -> bool:
    return v is None or not v.strip()


async def _load_recruit(db: AsyncSession, chapter_id: uuid.UUID, recruit_id: uuid.UUID) -> Recruit:
    recruit = (
        await db.execute(select(Recruit).where(Recruit.id == recruit_id, Recruit.chapter_id == chapter_id))
    ).scalar_one_or_none()
    if recruit is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recruit not found")
    return recruit


@router.get("/recruits", response_model=List[RecruitOut])
async def list_recruits(
    stage: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(require_recruitment_enabled),
    _=Depends(require_permissions(PERM.RECRUITMENT_READ)),
):
    stmt = select(Recruit).where(Recruit.chapter_id == chapter.id)
    if stage:
        if not is_valid_stage(stage):
            raise _bad_request(f"Invalid stage value. Must be one of: {', '.join(RECRUIT_STAGES)}")
        stmt = stmt.where(Recruit.stage == stage)
    return (await db.execute(stmt.order_by(Recruit.created_at.desc()))).scalars().all()


@router.post("/recruits", response_model=RecruitOut, status_code=status.HTTP_201_CREATED)
async def create_recruit(
    payload: RecruitCreate,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(require_recruitment_enabled),
    membership: ChapterMembership = Depends(require_permissions(PERM.RECRUITMENT_SUBMIT)),
):
    if _blank(payload.name):
        raise _bad_request("Name is required and must be a non-empty string")
    if _blank(payload.hometown):
        raise _bad_request("Hometown is required and must be a non-empty string")

    phone = None if _blank(payload.phone_number) else payload.phone_number.strip()
    if phone is not None and not is_valid_phone_number(phone):
        raise _bad_request(INVALID_PHONE)

    recruit = Recruit(
        chapter_id=chapter.id,
        name=payload.name.strip(),
        hometown=payload.hometown.strip(),
        phone_number=phone,
        instagram_handle=normalize_instagram_handle(payload.instagram_handle),
        stage=DEFAULT_STAGE,
        submitted_by=membership.user_id,
    )
    db.add(recruit)
    await db.commit()
    await db.refresh(recruit)

    logger.info("Recruit submitted", extra={"chapter_id": chapter.id, "user_id": membership.user_id})
    return recruit


@router.patch("/recruits/{recruit_id}", response_model=RecruitOut)
async def update_recruit(
    recruit_id: uuid.UUID,
    payload: RecruitUpdate,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(require_recruitment_enabled),
    _=Depends(require_permissions(PERM.RECRUITMENT_MANAGE)),
):
    data = payload.model_dump(exclude_unset=True)
    changes = {}

    if "name" in data:
        if _blank(data["name"]):
            raise _bad_request("Name must be a non-empty string")
        changes["name"] = data["name"].strip()

    if "hometown" in data:
        if _blank(data["hometown"]):
            raise _bad_request("Hometown must be a non-empty string")
        changes["hometown"] = data["hometown"].strip()

    if "phone_number" in data:
        phone = data["phone_number"]
        if _blank(phone):
            changes["phone_number"] = None
        elif not is_valid_phone_number(phone):
            raise _bad_request(INVALID_PHONE)
        else:
            changes["phone_number"] = phone.strip()

    if "instagram_handle" in data:
        changes["instagram_handle"] = normalize_instagram_handle(data["instagram_handle"])

    if "stage" in data:
        if not is_valid_stage(data["stage"]):
            raise _bad_request(f"Invalid stage value. Must be one of: {', '.join(RECRUIT_STAGES)}")
        changes["stage"] = data["stage"]

    if "notes" in data:
        changes["notes"] = None if _blank(data["notes"]) else data["notes"].strip()

    if not changes:
        raise _bad_request("No fields provided to update")

    recruit = await _load_recruit(db, chapter.id, recruit_id)
    for field, value in changes.items():
        setattr(recruit, field, value)

    await db.commit()
    await db.refresh(recruit)
    return recruit


@router.delete("/recruits/{recruit_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_recruit(
    recruit_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(require_recruitment_enabled),
    membership: ChapterMembership = Depends(require_permissions(PERM.RECRUITMENT_MANAGE)),
):
    recruit = await _load_recruit(db, chapter.id, recruit_id)
    await db.delete(recruit)
    await db.commit()

    logger.info("Recruit deleted", extra={"chapter_id": chapter.id, "user_id": membership.user_id})
    return None
