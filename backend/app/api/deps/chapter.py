import logging
import uuid
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.auth import get_current_user
from app.db.session import get_db
from app.models.chapter import Chapter
from app.models.chapter_membership import ChapterMembership
from app.models.user import User

logger = logging.getLogger(__name__)


async def get_active_membership(
    db: AsyncSession, chapter_id: uuid.UUID, user_id: uuid.UUID
) -> Optional[ChapterMembership]:
    stmt = select(ChapterMembership).where(
        ChapterMembership.chapter_id == chapter_id,
        ChapterMembership.user_id == user_id,
        ChapterMembership.is_active.is_(True),
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_current_chapter(
    x_chapter_id: Optional[str] = Header(default=None, alias="X-Chapter-Id"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Chapter:
    """
    Resolve the chapter from the X-Chapter-Id header; the caller must hold an
    active membership in it.
    """
    if not x_chapter_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Chapter-Id header is required",
        )

    try:
        chapter_uuid = uuid.UUID(x_chapter_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="X-Chapter-Id must be a valid UUID",
        )

    chapter = await db.get(Chapter, chapter_uuid)
    if not chapter:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chapter not found")

    membership = await get_active_membership(db, chapter.id, user.id)
    if not membership:
        logger.info(
            "Chapter access denied",
            extra={"chapter_id": chapter.id, "user_id": user.id},
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not a member of this chapter",
        )

    return chapter


async def get_current_membership(
    chapter: Chapter = Depends(get_current_chapter),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ChapterMembership:
    """Active membership for (user, chapter). Safe after get_current_chapter."""
    membership = await get_active_membership(db, chapter.id, user.id)
    if membership is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not a member of this chapter",
        )
    return membership

