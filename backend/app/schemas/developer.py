from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.core.roles import (
    CHAPTER_ROLES,
    DEVELOPER_ACCESS_LEVELS,
    MEMBER_STATUSES,
    MEMBERSHIP_ROLES,
    normalize_chapter_role,
    normalize_membership_role,
)
from app.schemas.auth import normalize_phone


class _UserFields(BaseModel):
    @field_validator("phone", check_fields=False)
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return normalize_phone(v)

    @field_validator("role", check_fields=False)
    @classmethod
    def validate_role(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        r = normalize_membership_role(v)
        if r not in MEMBERSHIP_ROLES:
            raise ValueError(f"role must be one of {', '.join(sorted(MEMBERSHIP_ROLES))}")
        return r

    @field_validator("chapter_role", check_fields=False)
    @classmethod
    def validate_chapter_role(cls, v: Optional[str]) -> Optional[str]:
        r = normalize_chapter_role(v)
        if r is not None and r not in CHAPTER_ROLES:
            raise ValueError("Unknown chapter role")
        return r

    @field_validator("member_status", check_fields=False)
    @classmethod
    def validate_member_status(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        s = v.strip().lower()
        if s not in MEMBER_STATUSES:
            raise ValueError(f"member_status must be one of {', '.join(sorted(MEMBER_STATUSES))}")
        return s

    @field_validator("developer_access_level", check_fields=False)
    @classmethod
    def validate_access_level(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        level = v.strip().lower()
        if level not in DEVELOPER_ACCESS_LEVELS:
            raise ValueError(f"developer_access_level must be one of {', '.join(sorted(DEVELOPER_ACCESS_LEVELS))}")
        return level


class DeveloperUserCreate(_UserFields):
    email: EmailStr
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    full_name: Optional[str] = Field(default=None, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=32)

    chapter_id: Optional[UUID] = None
    role: str = "ACTIVE_MEMBER"
    chapter_role: Optional[str] = None
    member_status: str = "active"

    developer_access_level: Optional[str] = None


class DeveloperUserUpdate(_UserFields):
    model_config = ConfigDict(extra="forbid")

    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    full_name: Optional[str] = Field(default=None, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=32)
    is_active: Optional[bool] = None

    # Applied to the membership in chapter_id
    chapter_id: Optional[UUID] = None
    role: Optional[str] = None
    chapter_role: Optional[str] = None
    member_status: Optional[str] = None

    developer_access_level: Optional[str] = None


class UserMembershipOut(BaseModel):
    chapter_id: UUID
    chapter_name: Optional[str] = None
    role: str
    chapter_role: Optional[str] = None
    member_status: str
    is_active: bool


class DeveloperUserOut(BaseModel):
    id: UUID
    email: str
    full_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool
    is_developer: bool
    developer_access_level: Optional[str] = None
    created_at: datetime
    memberships: List[UserMembershipOut] = Field(default_factory=list)


class DeveloperUserListOut(BaseModel):
    users: List[DeveloperUserOut]
    total: int
    page: int
    limit: int
    total_pages: int
    search: Optional[str] = None


class DeveloperStatsOut(BaseModel):
    total_users: int
    new_users_this_month: int
    user_growth_percentage: float
    total_chapters: int
    new_chapters_this_month: int
    total_alumni: int
    new_alumni_this_month: int
    system_health: str = "healthy"


class DeveloperChapterOut(BaseModel):
    id: UUID
    name: str
    chapter_name: Optional[str] = None
    university: Optional[str] = None
    national_fraternity: Optional[str] = None
    chapter_status: str
    member_count: int
    created_at: datetime
