# app/api/v1/join.py
"""
Public side of invitations: look a token up, then join the chapter with it.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.invitations import (
    ERR_DOMAIN,
    ERR_EMAIL_USED,
    check_invitation,
    email_domain_allowed,
    member_status_for,
    membership_role_for,
)
from app.core.roles import MemberStatus
from app.core.security import create_access_token
from app.crud.chapter_membership import get_membership
from app.db.session import get_db
from app.db.types import utcnow
from app.models.chapter import Chapter
from app.models.chapter_membership import ChapterMembership
from app.models.invitation import Invitation, InvitationUsage
from app.models.user import User
from app.schemas.invitation import JoinInvitationOut, JoinRequest, JoinResponse, JoinValidationOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/join", tags=["join"])


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


@router.get("/{token}", response_model=JoinValidationOut)
async def validate_join_token(token: str, db: AsyncSession = Depends(get_db)):
    token = token.strip()
    inv = (await db.execute(select(Invitation).where(Invitation.token == token))).scalar_one_or_none()

    check = check_invitation(inv, utcnow())
    if not check.valid:
        raise _bad_request(check.error)

    chapter = await db.get(Chapter, inv.chapter_id)
    return JoinValidationOut(
        valid=True,
        invitation=JoinInvitationOut(
            id=inv.id,
            token=inv.token,
            chapter_id=inv.chapter_id,
            chapter_name=chapter.name if chapter else None,
            invitation_type=inv.invitation_type,
            email_domain_allowlist=inv.email_domain_allowlist,
            approval_mode=inv.approval_mode,
            single_use=inv.single_use,
            expires_at=inv.expires_at,
            max_uses=inv.max_uses,
            usage_count=inv.usage_count,
        ),
    )


@router.post("/{token}", response_model=JoinResponse, status_code=status.HTTP_201_CREATED)
async def join_chapter(
    token: str,
    payload: JoinRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Join a chapter with an invitation token (public).

    Creates the user if needed, creates or reactivates the membership,
    records usage and returns an access token for the new member.
    The invitation row is locked (FOR UPDATE) so concurrent joins cannot
    overrun max_uses.
    """
    token = token.strip()
    email = str(payload.email).strip().lower()

    inv = (
        await db.execute(select(Invitation).where(Invitation.token == token).with_for_update())
    ).scalar_one_or_none()

    check = check_invitation(inv, utcnow())
    if not check.valid:
        raise _bad_request(check.error)

    if not email_domain_allowed(email, inv.email_domain_allowlist):
        raise _bad_request(ERR_DOMAIN)

    used = (
        await db.execute(
            select(InvitationUsage.id).where(
                InvitationUsage.invitation_id == inv.id,
                InvitationUsage.email == email,
            )
        )
    ).scalar_one_or_none()
    if used is not None:
        raise _bad_request(ERR_EMAIL_USED)

    user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if user is None:
        first, last = User.split_full_name(payload.full_name)
        user = User(
            email=email,
            full_name=payload.full_name,
            first_name=payload.first_name or first,
            last_name=payload.last_name or last,
            phone=payload.phone,
            is_active=True,
        )
        db.add(user)
        await db.flush()
    elif not user.full_name:
        user.full_name = payload.full_name

    role = membership_role_for(inv.invitation_type)
    member_status = member_status_for(inv.approval_mode)

    membership = await get_membership(db, inv.chapter_id, user.id, for_update=True)
    if membership is not None and membership.is_active:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You are already a member of this chapter")

    if membership is None:
        membership = ChapterMembership(
            chapter_id=inv.chapter_id,
            user_id=user.id,
            role=role,
            member_status=member_status,
            permissions=[],
            is_active=True,
        )
        db.add(membership)
    else:
        membership.is_active = True
        membership.role = role
        membership.member_status = member_status

    db.add(InvitationUsage(invitation_id=inv.id, email=email, user_id=user.id, used_at=utcnow()))
    inv.usage_count = (inv.usage_count or 0) + 1

    try:
        await db.commit()
    except IntegrityError:
        # lost a race with another join using the same email
        await db.rollback()
        raise _bad_request(ERR_EMAIL_USED)

    logger.info(
        "Joined chapter via invitation",
        extra={"chapter_id": inv.chapter_id, "user_id": user.id, "invitation_id": inv.id},
    )

    return JoinResponse(
        chapter_id=inv.chapter_id,
        user_id=user.id,
        role=role,
        member_status=member_status,
        needs_approval=member_status == MemberStatus.PROBATION.value,
        access_token=create_access_token(subject=str(user.id)),
    )
