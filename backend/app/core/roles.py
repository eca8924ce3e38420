# app/core/roles.py

import enum


class MembershipRole(str, enum.Enum):
    ADMIN = "ADMIN"                  # chapter administrator
    ACTIVE_MEMBER = "ACTIVE_MEMBER"  # undergraduate brother/sister
    ALUMNI = "ALUMNI"


class ChapterRole(str, enum.Enum):
    """Officer titles carried on a membership (optional)."""

    PRESIDENT = "president"
    VICE_PRESIDENT = "vice_president"
    TREASURER = "treasurer"
    SECRETARY = "secretary"
    RUSH_CHAIR = "rush_chair"
    SOCIAL_CHAIR = "social_chair"
    PHILANTHROPY_CHAIR = "philanthropy_chair"
    RISK_MANAGEMENT_CHAIR = "risk_management_chair"
    ALUMNI_RELATIONS_CHAIR = "alumni_relations_chair"
    MEMBER = "member"
    PLEDGE = "pledge"


class MemberStatus(str, enum.Enum):
    ACTIVE = "active"
    PROBATION = "probation"
    INACTIVE = "inactive"


class DeveloperAccessLevel(str, enum.Enum):
    STANDARD = "standard"
    ELEVATED = "elevated"
    ADMIN = "admin"


CHAPTER_ADMIN_ROLES = frozenset(
    {
        ChapterRole.PRESIDENT.value,
        ChapterRole.VICE_PRESIDENT.value,
        ChapterRole.TREASURER.value,
        ChapterRole.SECRETARY.value,
    }
)

EXECUTIVE_ROLES = CHAPTER_ADMIN_ROLES | frozenset(
    {
        ChapterRole.RUSH_CHAIR.value,
        ChapterRole.SOCIAL_CHAIR.value,
        ChapterRole.PHILANTHROPY_CHAIR.value,
        ChapterRole.RISK_MANAGEMENT_CHAIR.value,
        ChapterRole.ALUMNI_RELATIONS_CHAIR.value,
    }
)

MEMBERSHIP_ROLES = frozenset(r.value for r in MembershipRole)
CHAPTER_ROLES = frozenset(r.value for r in ChapterRole)
MEMBER_STATUSES = frozenset(s.value for s in MemberStatus)
DEVELOPER_ACCESS_LEVELS = frozenset(a.value for a in DeveloperAccessLevel)


def normalize_membership_role(role: str | None) -> str:
    return (role or "").strip().upper()


def normalize_chapter_role(role: str | None) -> str | None:
    if role is None:
        return None
    v = role.strip().lower().replace(" ", "_")
    return v or None
