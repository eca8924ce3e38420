from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.roles import (
    CHAPTER_ROLES,
    MEMBER_STATUSES,
    MEMBERSHIP_ROLES,
    normalize_chapter_role,
    normalize_membership_role,
)


class MembershipOut(BaseModel):
    id: UUID
    chapter_id: UUID
    user_id: UUID
    role: str
    chapter_role: Optional[str] = None
    member_status: str
    permissions: List[str] = Field(default_factory=list)
    is_active: bool

    model_config = {"from_attributes": True}


class MemberOut(BaseModel):
    membership_id: UUID
    user_id: UUID
    email: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    role: str
    chapter_role: Optional[str] = None
    member_status: str
    joined_at: datetime


class MemberListOut(BaseModel):
    members: List[MemberOut]
    page: int
    limit: int
    total: int
    total_pages: int


class MemberUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    role: Optional[str] = None
    chapter_role: Optional[str] = None
    member_status: Optional[str] = None
    permissions: Optional[List[str]] = None

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        r = normalize_membership_role(v)
        if r not in MEMBERSHIP_ROLES:
            raise ValueError(f"role must be one of {', '.join(sorted(MEMBERSHIP_ROLES))}")
        return r

    @field_validator("chapter_role")
    @classmethod
    def validate_chapter_role(cls, v: Optional[str]) -> Optional[str]:
        r = normalize_chapter_role(v)
        if r is not None and r not in CHAPTER_ROLES:
            raise ValueError("Unknown chapter role")
        return r

    @field_validator("member_status")
    @classmethod
    def validate_member_status(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        s = v.strip().lower()
        if s not in MEMBER_STATUSES:
            raise ValueError(f"member_status must be one of {', '.join(sorted(MEMBER_STATUSES))}")
        return s
