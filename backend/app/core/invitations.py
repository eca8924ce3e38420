# app/core/invitations.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from app.core.roles import MembershipRole, MemberStatus

INVITATION_TYPE_ACTIVE_MEMBER = "active_member"
INVITATION_TYPE_ALUMNI = "alumni"
INVITATION_TYPES = frozenset({INVITATION_TYPE_ACTIVE_MEMBER, INVITATION_TYPE_ALUMNI})

APPROVAL_AUTO = "auto"
APPROVAL_PENDING = "pending"
APPROVAL_MODES = frozenset({APPROVAL_AUTO, APPROVAL_PENDING})

ERR_INVALID = "Invalid or expired invitation link"
ERR_EXPIRED = "This invitation has expired"
ERR_LIMIT = "This invitation has reached its usage limit"
ERR_EMAIL_USED = "This email has already been used with this invitation"
ERR_DOMAIN = "This email domain is not allowed for this invitation"


@dataclass(frozen=True)
class InvitationCheck:
    valid: bool
    error: Optional[str] = None


def effective_max_uses(single_use: bool, max_uses: Optional[int]) -> Optional[int]:
    if single_use:
        return 1 if max_uses is None else min(1, max_uses)
    return max_uses


def is_expired(expires_at: Optional[datetime], now: datetime) -> bool:
    return expires_at is not None and expires_at < now


def has_reached_limit(usage_count: int, max_uses: Optional[int]) -> bool:
    if max_uses is None:
        return False
    return usage_count >= max_uses


def check_invitation(invitation, now: datetime) -> InvitationCheck:
    """Order matters: missing/inactive, then expiry, then usage limit."""
    if invitation is None or not invitation.is_active:
        return InvitationCheck(False, ERR_INVALID)
    if is_expired(invitation.expires_at, now):
        return InvitationCheck(False, ERR_EXPIRED)
    limit = effective_max_uses(invitation.single_use, invitation.max_uses)
    if has_reached_limit(invitation.usage_count or 0, limit):
        return InvitationCheck(False, ERR_LIMIT)
    return InvitationCheck(True)


def normalize_domains(domains: Optional[Iterable[str]]) -> Optional[list[str]]:
    if not domains:
        return None
    cleaned = []
    for d in domains:
        v = (d or "").strip().lower().lstrip("@")
        if v and v not in cleaned:
            cleaned.append(v)
    return cleaned or None


def email_domain_allowed(email: str, allowlist: Optional[Iterable[str]]) -> bool:
    domains = normalize_domains(allowlist)
    if not domains:
        return True
    _, _, domain = email.strip().lower().rpartition("@")
    return domain in domains


def membership_role_for(invitation_type: str) -> str:
    if invitation_type == INVITATION_TYPE_ALUMNI:
        return MembershipRole.ALUMNI.value
    return MembershipRole.ACTIVE_MEMBER.value


def member_status_for(approval_mode: str) -> str:
    if approval_mode == APPROVAL_PENDING:
        return MemberStatus.PROBATION.value
    return MemberStatus.ACTIVE.value


def invitation_url(base_url: str, token: str, invitation_type: str) -> str:
    path = "alumni-join" if invitation_type == INVITATION_TYPE_ALUMNI else "join"
    return f"{base_url.rstrip('/')}/{path}/{token}"
