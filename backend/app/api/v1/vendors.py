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
from app.db.session import get_db
from app.models.chapter import Chapter
from app.models.chapter_membership import ChapterMembership
from app.models.vendor import Vendor
from app.schemas.vendor import VendorCreate, VendorOut, VendorUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/vendors", tags=["vendors"])


async def _load_vendor(db: AsyncSession, chapter_id: uuid.UUID, vendor_id: uuid.UUID) -> Vendor:
    vendor = (
        await db.execute(
            select(Vendor).where(
                Vendor.id == vendor_id,
                Vendor.chapter_id == chapter_id,
                Vendor.is_active.is_(True),
            )
        )
    ).scalar_one_or_none()
    if vendor is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vendor not found")
    return vendor


@router.get("", response_model=List[VendorOut])
async def list_vendors(
    vendor_type: Optional[str] = Query(default=None, alias="type"),
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    _=Depends(require_permissions(PERM.VENDORS_READ)),
):
    stmt = (
        select(Vendor)
        .where(Vendor.chapter_id == chapter.id)
        .where(Vendor.is_active.is_(True))
    )
    if vendor_type:
        stmt = stmt.where(Vendor.type == vendor_type.strip().lower())

    return (await db.execute(stmt.order_by(Vendor.name.asc()))).scalars().all()


@router.post("", response_model=VendorOut, status_code=status.HTTP_201_CREATED)
async def create_vendor(
    payload: VendorCreate,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    membership: ChapterMembership = Depends(require_permissions(PERM.VENDORS_WRITE)),
):
    vendor = Vendor(
        chapter_id=chapter.id,
        **payload.model_dump(),
        created_by=membership.user_id,
        updated_by=membership.user_id,
    )
    db.add(vendor)
    await db.commit()
    await db.refresh(vendor)

    logger.info("Vendor created", extra={"chapter_id": chapter.id, "user_id": membership.user_id})
    return vendor


@router.patch("/{vendor_id}", response_model=VendorOut)
async def update_vendor(
    vendor_id: uuid.UUID,
    payload: VendorUpdate,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    membership: ChapterMembership = Depends(require_permissions(PERM.VENDORS_WRITE)),
):
    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields provided to update")
    for field in ("name", "type"):
        if field in data and data[field] is None:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"{field} cannot be null")

    vendor = await _load_vendor(db, chapter.id, vendor_id)
    for field, value in data.items():
        setattr(vendor, field, value)
    vendor.updated_by = membership.user_id

    await db.commit()
    await db.refresh(vendor)
    return vendor


@router.delete("/{vendor_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_vendor(
    vendor_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    membership: ChapterMembership = Depends(require_permissions(PERM.VENDORS_WRITE)),
):
    # soft delete; the row stays for history
    vendor = await _load_vendor(db, chapter.id, vendor_id)
    vendor.is_active = False
    vendor.updated_by = membership.user_id
    await db.commit()

    logger.info("Vendor deactivated", extra={"chapter_id": chapter.id, "user_id": membership.user_id})
    return None
