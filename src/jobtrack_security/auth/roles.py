"""Team role hierarchy and role-derived permissions.

Permissions are a pure function of role; members never carry independent
permission overrides.
"""

from .models import TeamRole

ROLE_PERMISSIONS: dict[TeamRole, tuple[str, ...]] = {
    TeamRole.SUPER_ADMIN: (
        "read:all",
        "write:all",
        "delete:all",
        "manage:users",
        "manage:admins",
        "manage:team",
        "export:data",
        "view:analytics",
        "system:settings",
        "invite:users",
        "promote:users",
    ),
    TeamRole.ADMIN: (
        "read:jobs",
        "write:jobs",
        "delete:jobs",
        "read:feedback",
        "write:feedback",
        "delete:feedback",
        "export:data",
        "view:analytics",
    ),
}

ROLE_HIERARCHY: dict[TeamRole, int] = {
    TeamRole.ADMIN: 1,
    TeamRole.SUPER_ADMIN: 2,
}

ROLE_DESCRIPTIONS: dict[TeamRole, str] = {
    TeamRole.SUPER_ADMIN: (
        "Full access to all features including user management and system settings"
    ),
    TeamRole.ADMIN: "Manage jobs and feedback, view analytics (cannot manage team members)",
}

ASSIGNABLE_ROLES = frozenset({TeamRole.ADMIN})


def permissions_for(role: TeamRole) -> list[str]:
    return list(ROLE_PERMISSIONS[role])


def role_at_least(role: TeamRole | None, minimum: TeamRole) -> bool:
    if role is None:
        return False
    return ROLE_HIERARCHY[role] >= ROLE_HIERARCHY[minimum]


def parse_role(value: str | TeamRole) -> TeamRole:
    if isinstance(value, TeamRole):
        return value
    return TeamRole(value.strip().lower())
