from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Mapping

from app.core.roles import (
    CHAPTER_ADMIN_ROLES,
    EXECUTIVE_ROLES,
    DeveloperAccessLevel,
    MembershipRole,
    normalize_chapter_role,
    normalize_membership_role,
)

ROLE_ADMIN = MembershipRole.ADMIN.value
ROLE_ACTIVE_MEMBER = MembershipRole.ACTIVE_MEMBER.value
ROLE_ALUMNI = MembershipRole.ALUMNI.value


@dataclass(frozen=True)
class Permission:
    # chapter.*
    CHAPTER_READ: str = "chapter.read"
    CHAPTER_MANAGE: str = "chapter.manage"

    # members.*
    MEMBERS_READ: str = "members.read"
    MEMBERS_WRITE: str = "members.write"

    # branding.*
    BRANDING_MANAGE: str = "branding.manage"

    # invitations.*
    INVITATIONS_MANAGE: str = "invitations.manage"

    # tasks.*
    TASKS_READ: str = "tasks.read"
    TASKS_WRITE: str = "tasks.write"

    # events.*
    EVENTS_READ: str = "events.read"
    EVENTS_WRITE: str = "events.write"
    EVENTS_RSVP: str = "events.rsvp"

    # budget.*
    BUDGET_READ: str = "budget.read"
    BUDGET_WRITE: str = "budget.write"

    # dues.*
    DUES_MANAGE: str = "dues.manage"

    # announcements.*
    ANNOUNCEMENTS_READ: str = "announcements.read"
    ANNOUNCEMENTS_MANAGE: str = "announcements.manage"

    # vendors.*
    VENDORS_READ: str = "vendors.read"
    VENDORS_WRITE: str = "vendors.write"

    # recruitment.*
    RECRUITMENT_READ: str = "recruitment.read"
    RECRUITMENT_SUBMIT: str = "recruitment.submit"
    RECRUITMENT_MANAGE: str = "recruitment.manage"

    # feed.*
    FEED_READ: str = "feed.read"
    FEED_POST: str = "feed.post"

    # wildcards (domain-level)
    CHAPTER_ALL: str = "chapter.*"
    MEMBERS_ALL: str = "members.*"
    BRANDING_ALL: str = "branding.*"
    INVITATIONS_ALL: str = "invitations.*"
    TASKS_ALL: str = "tasks.*"
    EVENTS_ALL: str = "events.*"
    BUDGET_ALL: str = "budget.*"
    DUES_ALL: str = "dues.*"
    ANNOUNCEMENTS_ALL: str = "announcements.*"
    VENDORS_ALL: str = "vendors.*"
    RECRUITMENT_ALL: str = "recruitment.*"
    FEED_ALL: str = "feed.*"


PERM = Permission()

_ALL_CHAPTER_DOMAINS = frozenset(
    {
        PERM.CHAPTER_ALL,
        PERM.MEMBERS_ALL,
        PERM.BRANDING_ALL,
        PERM.INVITATIONS_ALL,
        PERM.TASKS_ALL,
        PERM.EVENTS_ALL,
        PERM.BUDGET_ALL,
        PERM.DUES_ALL,
        PERM.ANNOUNCEMENTS_ALL,
        PERM.VENDORS_ALL,
        PERM.RECRUITMENT_ALL,
        PERM.FEED_ALL,
    }
)

ROLE_BASE_PERMISSIONS: Mapping[str, FrozenSet[str]] = {
    ROLE_ADMIN: _ALL_CHAPTER_DOMAINS,
    ROLE_ACTIVE_MEMBER: frozenset(
        {
            PERM.CHAPTER_READ,
            PERM.MEMBERS_READ,
            PERM.TASKS_READ,
            PERM.EVENTS_READ,
            PERM.EVENTS_RSVP,
            PERM.VENDORS_READ,
            PERM.RECRUITMENT_SUBMIT,
            PERM.ANNOUNCEMENTS_READ,
            PERM.FEED_ALL,
        }
    ),
    ROLE_ALUMNI: frozenset(
        {
            PERM.CHAPTER_READ,
            PERM.MEMBERS_READ,
            PERM.EVENTS_READ,
            PERM.EVENTS_RSVP,
            PERM.FEED_ALL,
        }
    ),
}

# Officer titles stack on top of the membership role.
_EXECUTIVE_GRANTS = frozenset(
    {
        PERM.RECRUITMENT_ALL,
        PERM.EVENTS_ALL,
        PERM.TASKS_READ,
        PERM.BUDGET_READ,
    }
)


def officer_permissions(chapter_role: str | None) -> FrozenSet[str]:
    r = normalize_chapter_role(chapter_role)
    if r in CHAPTER_ADMIN_ROLES:
        return _ALL_CHAPTER_DOMAINS
    if r in EXECUTIVE_ROLES:
        return _EXECUTIVE_GRANTS
    return frozenset()


def _normalize_extras(extra: Iterable[str] | None) -> FrozenSet[str]:
    if not extra:
        return frozenset()
    return frozenset(p.strip() for p in extra if isinstance(p, str) and p.strip())


def effective_permissions(
    *,
    role: str | None,
    chapter_role: str | None = None,
    extra: Iterable[str] | None = None,
) -> FrozenSet[str]:
    """
    Role grants + officer grants + membership.permissions extras (all additive).
    """
    base = ROLE_BASE_PERMISSIONS.get(normalize_membership_role(role), frozenset())
    return frozenset(set(base) | set(officer_permissions(chapter_role)) | set(_normalize_extras(extra)))


def _has_domain_wildcard(grants: FrozenSet[str], required: str) -> bool:
    if required in grants:
        return True
    idx = required.find(".")
    if idx <= 0:
        return False
    domain = required[:idx]
    return f"{domain}.*" in grants


def is_permitted(*, grants: FrozenSet[str], required: str) -> bool:
    return _has_domain_wildcard(grants, required)


# -----------------------------------------------------------------
# Developer portal
# -----------------------------------------------------------------
DEV_VIEW_USERS = "view_users"
DEV_VIEW_ANALYTICS = "view_analytics"
DEV_CREATE_ENDPOINTS = "create_endpoints"
DEV_MANAGE_CHAPTERS = "manage_chapters"
DEV_MANAGE_PERMISSIONS = "manage_permissions"
DEV_VIEW_SYSTEM_LOGS = "view_system_logs"
DEV_MANAGE_DEVELOPERS = "manage_developers"

DEVELOPER_ACCESS_PERMISSIONS: Mapping[str, FrozenSet[str]] = {
    DeveloperAccessLevel.STANDARD.value: frozenset({DEV_VIEW_USERS, DEV_VIEW_ANALYTICS}),
    DeveloperAccessLevel.ELEVATED.value: frozenset(
        {DEV_VIEW_USERS, DEV_VIEW_ANALYTICS, DEV_CREATE_ENDPOINTS, DEV_MANAGE_CHAPTERS}
    ),
    DeveloperAccessLevel.ADMIN.value: frozenset(
        {
            DEV_VIEW_USERS,
            DEV_VIEW_ANALYTICS,
            DEV_CREATE_ENDPOINTS,
            DEV_MANAGE_CHAPTERS,
            DEV_MANAGE_PERMISSIONS,
            DEV_VIEW_SYSTEM_LOGS,
            DEV_MANAGE_DEVELOPERS,
        }
    ),
}


def developer_permissions(access_level: str | None, extra: Iterable[str] | None = None) -> FrozenSet[str]:
    level = (access_level or "").strip().lower()
    base = DEVELOPER_ACCESS_PERMISSIONS.get(level, frozenset())
    return frozenset(set(base) | set(_normalize_extras(extra)))
