from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.auth import get_current_user
from app.auth.permissions import developer_permissions
from app.db.session import get_db
from app.models.developer_access import DeveloperAccess
from app.models.user import User


async def get_developer_access(db: AsyncSession, user_id) -> Optional[DeveloperAccess]:
    """Active developer grant for a user, if any."""
    stmt = select(DeveloperAccess).where(
        DeveloperAccess.user_id == user_id,
        DeveloperAccess.is_active.is_(True),
    )
    return (await db.execute(stmt)).scalar_one_or_none()


def require_developer(permission: Optional[str] = None):
    async def _checker(
        db: AsyncSession = Depends(get_db),
        user: User = Depends(get_current_user),
    ) -> DeveloperAccess:
        access = await get_developer_access(db, user.id)
        if access is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions. Developer access required.",
            )
        if permission and permission not in developer_permissions(access.access_level, access.permissions):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "code": "developer_forbidden",
                    "message": "Your developer access level does not allow this action.",
                    "required": permission,
                    "access_level": access.access_level,
                },
            )
        return access

    return _checker
