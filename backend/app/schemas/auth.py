# backend/app/schemas/auth.py
from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, ConfigDict, field_validator

_PHONE_CHARS_RE = re.compile(r"[^\d+]")


def normalize_phone(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    v = _PHONE_CHARS_RE.sub("", value.strip())
    if not v:
        return None
    digits = v.lstrip("+")
    if not digits.isdigit() or not 10 <= len(digits) <= 15:
        raise ValueError("Must be a phone number with 10 to 15 digits.")
    return v


def normalize_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    v = " ".join(value.strip().split())
    return v or None


class MagicCodeRequest(BaseModel):
    email: EmailStr


class MagicCodeVerify(BaseModel):
    email: EmailStr
    code: str = Field(min_length=4, max_length=64)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class ProfileUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # null clears; blank strings normalize to null
    full_name: Optional[str] = Field(default=None, max_length=200)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=32)
    avatar_url: Optional[str] = Field(default=None, max_length=1024)

    @field_validator("full_name", "first_name", "last_name")
    @classmethod
    def validate_names(cls, v: Optional[str]) -> Optional[str]:
        return normalize_name(v)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return normalize_phone(v)


class MembershipSummary(BaseModel):
    chapter_id: str
    chapter_name: str
    role: str
    chapter_role: Optional[str] = None
    member_status: str


class MeResponse(BaseModel):
    id: str
    email: EmailStr
    is_active: bool

    full_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None

    profile_complete: bool
    is_developer: bool = False
    memberships: list[MembershipSummary] = Field(default_factory=list)
