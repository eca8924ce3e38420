from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.core.invitations import APPROVAL_MODES, INVITATION_TYPES, normalize_domains
from app.schemas.auth import normalize_phone


class _InvitationFields(BaseModel):
    @field_validator("email_domain_allowlist", check_fields=False)
    @classmethod
    def validate_domains(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return normalize_domains(v)

    @field_validator("approval_mode", check_fields=False)
    @classmethod
    def validate_approval_mode(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        mode = v.strip().lower()
        if mode not in APPROVAL_MODES:
            raise ValueError(f"approval_mode must be one of {', '.join(sorted(APPROVAL_MODES))}")
        return mode

    @field_validator("invitation_type", check_fields=False)
    @classmethod
    def validate_invitation_type(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        t = v.strip().lower()
        if t not in INVITATION_TYPES:
            raise ValueError(f"invitation_type must be one of {', '.join(sorted(INVITATION_TYPES))}")
        return t


class InvitationCreate(_InvitationFields):
    email_domain_allowlist: Optional[List[str]] = None
    approval_mode: str = "auto"
    single_use: bool = False
    expires_at: Optional[datetime] = None
    max_uses: Optional[int] = Field(default=None, ge=1)
    invitation_type: str = "active_member"


class InvitationUpdate(_InvitationFields):
    model_config = ConfigDict(extra="forbid")

    email_domain_allowlist: Optional[List[str]] = None
    approval_mode: Optional[str] = None
    single_use: Optional[bool] = None
    expires_at: Optional[datetime] = None
    max_uses: Optional[int] = Field(default=None, ge=1)
    is_active: Optional[bool] = None
    invitation_type: Optional[str] = None


class InvitationUsageOut(BaseModel):
    id: UUID
    email: str
    user_id: Optional[UUID] = None
    used_at: datetime
    user_name: Optional[str] = None


class InvitationOut(BaseModel):
    id: UUID
    chapter_id: UUID
    token: str
    invitation_type: str
    email_domain_allowlist: Optional[List[str]] = None
    approval_mode: str
    single_use: bool
    expires_at: Optional[datetime] = None
    max_uses: Optional[int] = None
    usage_count: int
    is_active: bool
    created_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    chapter_name: Optional[str] = None
    created_by_name: Optional[str] = None
    invitation_url: str
    usage: List[InvitationUsageOut] = Field(default_factory=list)


class InvitationStatsOut(BaseModel):
    total_invitations: int
    active_invitations: int
    total_usage: int
    pending_approvals: int


class JoinInvitationOut(BaseModel):
    """Public view of an invitation (no creator or usage details)."""

    id: UUID
    token: str
    chapter_id: UUID
    chapter_name: Optional[str] = None
    invitation_type: str
    email_domain_allowlist: Optional[List[str]] = None
    approval_mode: str
    single_use: bool
    expires_at: Optional[datetime] = None
    max_uses: Optional[int] = None
    usage_count: int


class JoinValidationOut(BaseModel):
    valid: bool
    invitation: JoinInvitationOut


class JoinRequest(BaseModel):
    email: EmailStr
    full_name: str = Field(min_length=1, max_length=200)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=32)

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: str) -> str:
        name = " ".join(v.strip().split())
        if not name:
            raise ValueError("full_name is required")
        return name

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return normalize_phone(v)


class JoinResponse(BaseModel):
    status: str = "ok"
    chapter_id: UUID
    user_id: UUID
    role: str
    member_status: str
    needs_approval: bool
    access_token: str
    token_type: str = "bearer"
