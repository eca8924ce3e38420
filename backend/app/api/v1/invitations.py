from __future__ import annotations

import logging
import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.api.deps.chapter import get_current_chapter
from app.api.deps.permissions import require_permissions
from app.auth.permissions import PERM
from app.core.config import settings
from app.core.invitations import invitation_url
from app.core.roles import MemberStatus
from app.core.security import generate_invitation_token
from app.crud.chapter_membership import count_active_members, user_names
from app.db.session import get_db
from app.models.chapter import Chapter
from app.models.chapter_membership import ChapterMembership
from app.models.invitation import Invitation
from app.schemas.invitation import (
    InvitationCreate,
    InvitationOut,
    InvitationStatsOut,
    InvitationUpdate,
    InvitationUsageOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invitations", tags=["invitations"])

TOKEN_ATTEMPTS = 5


async def _unique_token(db: AsyncSession) -> str:
    for _ in range(TOKEN_ATTEMPTS):
        token = generate_invitation_token()
        exists = (await db.execute(select(Invitation.id).where(Invitation.token == token))).scalar_one_or_none()
        if exists is None:
            return token
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Could not generate a unique invitation token",
    )


async def _to_out(db: AsyncSession, inv: Invitation, chapter: Chapter) -> InvitationOut:
    names = await user_names(db, [inv.created_by, *(u.user_id for u in inv.usages)])
    return InvitationOut(
        id=inv.id,
        chapter_id=inv.chapter_id,
        token=inv.token,
        invitation_type=inv.invitation_type,
        email_domain_allowlist=inv.email_domain_allowlist,
        approval_mode=inv.approval_mode,
        single_use=inv.single_use,
        expires_at=inv.expires_at,
        max_uses=inv.max_uses,
        usage_count=inv.usage_count,
        is_active=inv.is_active,
        created_by=inv.created_by,
        created_at=inv.created_at,
        updated_at=inv.updated_at,
        chapter_name=chapter.name,
        created_by_name=names.get(inv.created_by),
        invitation_url=invitation_url(settings.APP_BASE_URL, inv.token, inv.invitation_type),
        usage=[
            InvitationUsageOut(
                id=u.id,
                email=u.email,
                user_id=u.user_id,
                used_at=u.used_at,
                user_name=names.get(u.user_id),
            )
            for u in inv.usages
        ],
    )


async def _load_invitation(db: AsyncSession, chapter_id: uuid.UUID, invitation_id: uuid.UUID) -> Invitation:
    stmt = (
        select(Invitation)
        .options(selectinload(Invitation.usages))
        .where(Invitation.id == invitation_id, Invitation.chapter_id == chapter_id)
        .execution_options(populate_existing=True)
    )
    inv = (await db.execute(stmt)).scalar_one_or_none()
    if inv is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invitation not found")
    return inv


# =========================================================
# CREATE + LIST
# =========================================================
@router.post("", response_model=InvitationOut, status_code=status.HTTP_201_CREATED)
async def create_invitation(
    payload: InvitationCreate,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    membership: ChapterMembership = Depends(require_permissions(PERM.INVITATIONS_MANAGE)),
):
    """Shareable join link for the current chapter (X-Chapter-Id)."""
    invitation = Invitation(
        chapter_id=chapter.id,
        created_by=membership.user_id,
        token=await _unique_token(db),
        invitation_type=payload.invitation_type,
        email_domain_allowlist=payload.email_domain_allowlist,
        approval_mode=payload.approval_mode,
        single_use=payload.single_use,
        expires_at=payload.expires_at,
        max_uses=payload.max_uses,
        usage_count=0,
        is_active=True,
    )
    db.add(invitation)
    await db.commit()

    invitation = await _load_invitation(db, chapter.id, invitation.id)
    logger.info(
        "Invitation created",
        extra={"chapter_id": chapter.id, "user_id": membership.user_id, "invitation_id": invitation.id},
    )
    return await _to_out(db, invitation, chapter)


@router.get("", response_model=List[InvitationOut])
async def list_invitations(
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    _=Depends(require_permissions(PERM.INVITATIONS_MANAGE)),
):
    stmt = (
        select(Invitation)
        .options(selectinload(Invitation.usages))
        .where(Invitation.chapter_id == chapter.id)
        .order_by(Invitation.created_at.desc())
    )
    invitations = (await db.execute(stmt)).scalars().all()
    return [await _to_out(db, inv, chapter) for inv in invitations]


@router.get("/stats", response_model=InvitationStatsOut)
async def invitation_stats(
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    _=Depends(require_permissions(PERM.INVITATIONS_MANAGE)),
):
    total, active, usage = (
        await db.execute(
            select(
                func.count(Invitation.id),
                func.count(Invitation.id).filter(Invitation.is_active.is_(True)),
                func.coalesce(func.sum(Invitation.usage_count), 0),
            ).where(Invitation.chapter_id == chapter.id)
        )
    ).one()

    pending = await count_active_members(db, chapter.id, member_status=MemberStatus.PROBATION.value)

    return InvitationStatsOut(
        total_invitations=int(total or 0),
        active_invitations=int(active or 0),
        total_usage=int(usage or 0),
        pending_approvals=pending,
    )


@router.get("/{invitation_id}", response_model=InvitationOut)
async def get_invitation(
    invitation_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    _=Depends(require_permissions(PERM.INVITATIONS_MANAGE)),
):
    return await _to_out(db, await _load_invitation(db, chapter.id, invitation_id), chapter)


@router.put("/{invitation_id}", response_model=InvitationOut)
async def update_invitation(
    invitation_id: uuid.UUID,
    payload: InvitationUpdate,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    membership: ChapterMembership = Depends(require_permissions(PERM.INVITATIONS_MANAGE)),
):
    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields provided to update")

    inv = await _load_invitation(db, chapter.id, invitation_id)

    # NULL-able columns accept an explicit null; flags/modes do not
    for field in ("approval_mode", "single_use", "is_active", "invitation_type"):
        if field in data and data[field] is None:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"{field} cannot be null")

    for field, value in data.items():
        setattr(inv, field, value)

    await db.commit()
    inv = await _load_invitation(db, chapter.id, invitation_id)

    logger.info(
        "Invitation updated: %s",
        sorted(data),
        extra={"chapter_id": chapter.id, "user_id": membership.user_id, "invitation_id": inv.id},
    )
    return await _to_out(db, inv, chapter)


@router.delete("/{invitation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invitation(
    invitation_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    chapter: Chapter = Depends(get_current_chapter),
    membership: ChapterMembership = Depends(require_permissions(PERM.INVITATIONS_MANAGE)),
):
    inv = await _load_invitation(db, chapter.id, invitation_id)
    await db.delete(inv)  # usage rows go with it
    await db.commit()

    logger.info(
        "Invitation deleted",
        extra={"chapter_id": chapter.id, "user_id": membership.user_id, "invitation_id": invitation_id},
    )
    return None
