"""
Role-based permission model.

Each role's allow-list is written out in full rather than derived from a
lower role, so editing one role never changes another. The tables are
built once at import and exposed read-only.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Mapping

from brandhub_shared.schemas.common import Role

# ---------------------------------------------------------------------------
# Permissions
# ---------------------------------------------------------------------------

CONTENT_VIEW = "content:view"
CONTENT_CREATE = "content:create"
CONTENT_EDIT = "content:edit"
CONTENT_DELETE = "content:delete"
CONTENT_PUBLISH = "content:publish"
CONTENT_REVIEW = "content:review"
CONTENT_APPROVE = "content:approve"

BRAND_VIEW = "brand:view"
BRAND_EDIT = "brand:edit"
BRAND_DELETE = "brand:delete"
BRAND_SETTINGS = "brand:settings"

USERS_VIEW = "users:view"
USERS_INVITE = "users:invite"
USERS_EDIT = "users:edit"
USERS_REMOVE = "users:remove"

WORKFLOWS_VIEW = "workflows:view"
WORKFLOWS_CREATE = "workflows:create"
WORKFLOWS_EDIT = "workflows:edit"
WORKFLOWS_DELETE = "workflows:delete"
WORKFLOWS_EXECUTE = "workflows:execute"

DOCUMENTS_VIEW = "documents:view"
DOCUMENTS_UPLOAD = "documents:upload"
DOCUMENTS_EDIT = "documents:edit"
DOCUMENTS_DELETE = "documents:delete"

ANALYTICS_VIEW = "analytics:view"
ANALYTICS_EXPORT = "analytics:export"

QUOTA_VIEW = "quota:view"
QUOTA_MANAGE = "quota:manage"

EMAIL_SEND = "email:send"
AI_USE = "ai:use"

ALL_PERMISSIONS: frozenset[str] = frozenset({
    CONTENT_VIEW, CONTENT_CREATE, CONTENT_EDIT, CONTENT_DELETE,
    CONTENT_PUBLISH, CONTENT_REVIEW, CONTENT_APPROVE,
    BRAND_VIEW, BRAND_EDIT, BRAND_DELETE, BRAND_SETTINGS,
    USERS_VIEW, USERS_INVITE, USERS_EDIT, USERS_REMOVE,
    WORKFLOWS_VIEW, WORKFLOWS_CREATE, WORKFLOWS_EDIT, WORKFLOWS_DELETE, WORKFLOWS_EXECUTE,
    DOCUMENTS_VIEW, DOCUMENTS_UPLOAD, DOCUMENTS_EDIT, DOCUMENTS_DELETE,
    ANALYTICS_VIEW, ANALYTICS_EXPORT,
    QUOTA_VIEW, QUOTA_MANAGE,
    EMAIL_SEND, AI_USE,
})

# ---------------------------------------------------------------------------
# Role tables
# ---------------------------------------------------------------------------

ROLE_HIERARCHY: Mapping[str, int] = MappingProxyType({
    Role.OWNER.value: 5,
    Role.ADMIN.value: 4,
    Role.EDITOR.value: 3,
    Role.REVIEWER.value: 2,
    Role.USER.value: 1,
})

VALID_ROLES: frozenset[str] = frozenset(ROLE_HIERARCHY)

ROLE_PERMISSIONS: Mapping[str, frozenset[str]] = MappingProxyType({
    Role.OWNER.value: ALL_PERMISSIONS,
    Role.ADMIN.value: ALL_PERMISSIONS - {BRAND_DELETE},
    Role.EDITOR.value: frozenset({
        CONTENT_VIEW, CONTENT_CREATE, CONTENT_EDIT, CONTENT_PUBLISH,
        BRAND_VIEW,
        USERS_VIEW,
        WORKFLOWS_VIEW, WORKFLOWS_EXECUTE,
        DOCUMENTS_VIEW, DOCUMENTS_UPLOAD, DOCUMENTS_EDIT,
        ANALYTICS_VIEW,
        EMAIL_SEND,
        AI_USE,
    }),
    Role.REVIEWER.value: frozenset({
        CONTENT_VIEW, CONTENT_REVIEW, CONTENT_APPROVE,
        BRAND_VIEW,
        USERS_VIEW,
        WORKFLOWS_VIEW,
        DOCUMENTS_VIEW,
        ANALYTICS_VIEW,
    }),
    Role.USER.value: frozenset({
        CONTENT_VIEW,
        BRAND_VIEW,
        DOCUMENTS_VIEW,
        ANALYTICS_VIEW,
    }),
})

ROLE_DISPLAY_NAMES: Mapping[str, str] = MappingProxyType({
    Role.OWNER.value: "Owner",
    Role.ADMIN.value: "Admin",
    Role.EDITOR.value: "Editor",
    Role.REVIEWER.value: "Reviewer",
    Role.USER.value: "Member",
})

ROLE_DESCRIPTIONS: Mapping[str, str] = MappingProxyType({
    Role.OWNER.value: "Full control over the brand, its team, billing and settings.",
    Role.ADMIN.value: "Manage team members, settings and all content.",
    Role.EDITOR.value: "Create, edit and publish content and upload documents.",
    Role.REVIEWER.value: "Review and approve content before it is published.",
    Role.USER.value: "View brand content, documents and analytics.",
})


def _role_key(role: str | Role | None) -> str | None:
    if isinstance(role, Role):
        return role.value
    return role


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------

def get_role_permissions(role: str | Role | None) -> frozenset[str]:
    """Permissions for a role; unknown roles get none."""
    return ROLE_PERMISSIONS.get(_role_key(role), frozenset())


def has_permission(role: str | Role | None, permission: str) -> bool:
    return permission in get_role_permissions(role)


def has_any_permission(role: str | Role | None, permissions: Iterable[str]) -> bool:
    granted = get_role_permissions(role)
    return any(p in granted for p in permissions)


def has_all_permissions(role: str | Role | None, permissions: Iterable[str]) -> bool:
    granted = get_role_permissions(role)
    return all(p in granted for p in permissions)


def role_rank(role: str | Role | None) -> int:
    """Rank in the hierarchy; 0 for unknown roles."""
    return ROLE_HIERARCHY.get(_role_key(role), 0)


def is_valid_role(role: str | Role | None) -> bool:
    return _role_key(role) in VALID_ROLES


def is_role_at_least(role: str | Role | None, min_role: str | Role) -> bool:
    if not is_valid_role(role):
        return False
    return role_rank(role) >= role_rank(min_role)


def is_role_higher_than(role: str | Role | None, other: str | Role | None) -> bool:
    return role_rank(role) > role_rank(other)


def can_manage_user(manager_role: str | Role | None, target_role: str | Role | None) -> bool:
    """A manager must strictly outrank the target; equal ranks cannot manage each other."""
    if not is_valid_role(manager_role):
        return False
    return role_rank(manager_role) > role_rank(target_role)


def get_role_display_name(role: str | Role | None) -> str:
    key = _role_key(role)
    return ROLE_DISPLAY_NAMES.get(key, key or "Unknown")


def get_role_description(role: str | Role | None) -> str:
    return ROLE_DESCRIPTIONS.get(_role_key(role), "")
