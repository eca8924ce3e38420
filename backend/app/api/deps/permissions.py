from __future__ import annotations

from typing import Callable, Sequence

from fastapi import Depends, HTTPException, status

from app.api.deps.chapter import get_current_membership
from app.auth.permissions import effective_permissions, is_permitted
from app.models.chapter_membership import ChapterMembership


def membership_grants(membership: ChapterMembership):
    return effective_permissions(
        role=membership.role,
        chapter_role=membership.chapter_role,
        extra=membership.permissions,
    )


def membership_has(membership: ChapterMembership, permission: str) -> bool:
    return is_permitted(grants=membership_grants(membership), required=permission)


def require_permissions(
    required: str | Sequence[str],
    *,
    any_of: bool = False,
) -> Callable:
    """
    RBAC check against the current chapter membership: role grants, officer
    title grants and membership.permissions extras.

    any_of=True passes when any one permission is held; otherwise all are
    required.
    """
    required_list = [required] if isinstance(required, str) else list(required)

    async def _checker(
        membership: ChapterMembership = Depends(get_current_membership),
    ) -> ChapterMembership:
        role = (membership.role or "").strip().upper()
        if not role:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"code": "rbac_role_missing", "message": "Membership role is missing."},
            )

        grants = membership_grants(membership)
        checks = [is_permitted(grants=grants, required=p) for p in required_list]
        allowed = any(checks) if any_of else all(checks)

        if not allowed:
            missing = [p for p, ok in zip(required_list, checks) if not ok]
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "code": "rbac_forbidden",
                    "message": "You do not have permission to perform this action.",
                    "required": required_list,
                    "missing": missing,
                    "role": role,
                },
            )

        return membership

    return _checker
