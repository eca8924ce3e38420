# backend/app/api/v1/auth.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.security import (
    bearer_scheme,
    create_access_token,
    decode_access_token,
    generate_magic_code,
)
from app.db.session import get_db
from app.models.chapter import Chapter
from app.models.chapter_membership import ChapterMembership
from app.models.developer_access import DeveloperAccess
from app.models.user import User
from app.schemas.auth import (
    MagicCodeRequest,
    MagicCodeVerify,
    MembershipSummary,
    MeResponse,
    ProfileUpdateRequest,
    TokenResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

MAGIC_CODE_EXPIRY_MINUTES = 10


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _should_return_magic_code_in_response() -> bool:
    """Never in production; elsewhere controlled by RETURN_MAGIC_CODE_IN_RESPONSE."""
    if settings.is_production:
        return False
    return settings.RETURN_MAGIC_CODE_IN_RESPONSE


async def purge_expired_magic_codes(db: AsyncSession) -> None:
    stmt = (
        update(User)
        .where(User.magic_code_expires_at.is_not(None))
        .where(User.magic_code_expires_at < _utcnow())
        .values(magic_code=None, magic_code_expires_at=None)
    )
    await db.execute(stmt)


@router.post("/request-code")
async def request_code(payload: MagicCodeRequest, db: AsyncSession = Depends(get_db)):
    """
    Body: {"email": "user@example.com"}
    Creates the user on first contact and stores a 6-digit code on it.
    """
    email = payload.email.strip().lower()

    await purge_expired_magic_codes(db)

    user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if user is None:
        user = User(email=email, is_active=True)
        db.add(user)
        await db.flush()
        logger.info("User created from magic-code request", extra={"user_id": user.id})

    code = generate_magic_code()
    user.magic_code = code
    user.magic_code_expires_at = _utcnow() + timedelta(minutes=MAGIC_CODE_EXPIRY_MINUTES)

    await db.commit()

    resp = {"status": "ok", "expires_in_minutes": MAGIC_CODE_EXPIRY_MINUTES}
    if _should_return_magic_code_in_response():
        resp["code"] = code
    return resp


@router.post("/verify-code", response_model=TokenResponse)
async def verify_code(payload: MagicCodeVerify, db: AsyncSession = Depends(get_db)) -> TokenResponse:
    email = payload.email.strip().lower()
    code = payload.code.strip()

    if not code:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="code is required")

    await purge_expired_magic_codes(db)

    user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()

    if not user or not user.magic_code or not user.magic_code_expires_at:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid code")

    if user.magic_code != code:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid code")

    if user.magic_code_expires_at < _utcnow():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Code expired")

    # single use
    user.magic_code = None
    user.magic_code_expires_at = None
    await db.commit()

    return TokenResponse(access_token=create_access_token(subject=str(user.id)))


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Dependency for protected endpoints (401 on any auth failure)."""
    user_id = decode_access_token(credentials.credentials if credentials else None)

    try:
        user_uuid = uuid.UUID(user_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject")

    user = await db.get(User, user_uuid)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User inactive")

    return user


async def _to_me_response(db: AsyncSession, user: User) -> MeResponse:
    rows = (
        await db.execute(
            select(ChapterMembership, Chapter)
            .join(Chapter, Chapter.id == ChapterMembership.chapter_id)
            .where(ChapterMembership.user_id == user.id, ChapterMembership.is_active.is_(True))
            .order_by(ChapterMembership.created_at)
        )
    ).all()

    developer = (
        await db.execute(
            select(DeveloperAccess.id).where(
                DeveloperAccess.user_id == user.id,
                DeveloperAccess.is_active.is_(True),
            )
        )
    ).scalar_one_or_none()

    return MeResponse(
        id=str(user.id),
        email=user.email,
        is_active=user.is_active,
        full_name=user.full_name,
        first_name=user.first_name,
        last_name=user.last_name,
        phone=user.phone,
        avatar_url=user.avatar_url,
        profile_complete=user.is_profile_complete,
        is_developer=developer is not None,
        memberships=[
            MembershipSummary(
                chapter_id=str(chapter.id),
                chapter_name=chapter.name,
                role=m.role,
                chapter_role=m.chapter_role,
                member_status=m.member_status,
            )
            for m, chapter in rows
        ],
    )


@router.get("/me", response_model=MeResponse)
async def me(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> MeResponse:
    return await _to_me_response(db, user)


@router.patch("/me", response_model=MeResponse)
async def update_me(
    payload: ProfileUpdateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> MeResponse:
    data = payload.model_dump(exclude_unset=True)

    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields provided to update.")

    for field, value in data.items():
        setattr(user, field, value)

    # Keep the split names in step when only full_name was sent
    if "full_name" in data and not {"first_name", "last_name"} & data.keys():
        user.first_name, user.last_name = User.split_full_name(user.full_name)

    await db.commit()
    await db.refresh(user)

    return await _to_me_response(db, user)
