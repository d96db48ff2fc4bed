"""Role-based team administration.

Rules enforced on every mutation:
- only an active super-admin may add, edit or remove members and send invitations
- only the admin role may be granted; super-admin status cannot be assigned here
- members with the super-admin role cannot be edited
- an actor cannot remove themselves, and only a super-admin removes a super-admin
- adding an email that is already a member fails

Authorization failures come back as a TeamActionResult with a reason. Directory
errors are logged and treated as "no access" or a failed result, never raised.
"""

import logging
from datetime import timedelta
from typing import Any
from uuid import uuid4

import asyncpg

from ..audit import SecurityEventLogger, SecurityEventType, Severity
from ..sanitization import is_valid_email, sanitize_text
from .directory import InMemoryInviteStore, InviteStore, TeamDirectory
from .models import Principal, TeamActionResult, TeamInvite, TeamMember, TeamRole, normalize_email
from .roles import ASSIGNABLE_ROLES, parse_role, permissions_for
from .store import Clock, utc_now

logger = logging.getLogger(__name__)

INVITE_LIFETIME = timedelta(days=7)
EDITABLE_FIELDS = frozenset({"role", "display_name", "department", "notes", "is_active"})
TEXT_FIELDS = ("display_name", "department", "notes")

DIRECTORY_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)

INSUFFICIENT_PERMISSIONS = "Insufficient permissions to manage team members"


def _role_label(role: TeamRole | str) -> str:
    return role.value if isinstance(role, TeamRole) else str(role)


class AccessControl:
    def __init__(
        self,
        directory: TeamDirectory,
        invites: InviteStore | None = None,
        clock: Clock | None = None,
        event_logger: SecurityEventLogger | None = None,
    ):
        self._directory = directory
        self._invites = invites if invites is not None else InMemoryInviteStore()
        self._clock = clock or utc_now
        self._event_logger = event_logger or SecurityEventLogger()

    async def get_member(self, email: str) -> TeamMember | None:
        try:
            return await self._directory.get(normalize_email(email))
        except DIRECTORY_ERRORS as e:
            logger.error("Error fetching team member %s: %s", normalize_email(email), e)
            return None

    async def list_members(self) -> list[TeamMember]:
        try:
            return await self._directory.list_all()
        except DIRECTORY_ERRORS as e:
            logger.error("Error fetching team members: %s", e)
            return []

    async def get_user_role(self, actor: Principal | None) -> TeamRole | None:
        """Role of an active member, or None."""
        if actor is None or not actor.normalized_email:
            return None
        member = await self.get_member(actor.normalized_email)
        if member is None or not member.is_active:
            return None
        return member.role

    async def is_team_member(self, actor: Principal | None) -> bool:
        if actor is None or not actor.normalized_email:
            return False
        member = await self.get_member(actor.normalized_email)
        return bool(member and member.is_active)

    async def can_manage_team(self, actor: Principal | None) -> bool:
        return await self.get_user_role(actor) == TeamRole.SUPER_ADMIN

    async def can_assign_role(self, actor: Principal | None, target_role: TeamRole | str) -> bool:
        """Only super-admins may assign roles, and only known ones."""
        try:
            role = parse_role(target_role)
        except ValueError:
            return False
        if await self.get_user_role(actor) != TeamRole.SUPER_ADMIN:
            return False
        return role in ASSIGNABLE_ROLES

    async def has_permission(self, actor: Principal | None, permission: str) -> bool:
        """True when the actor is an active member whose role grants the permission."""
        if actor is None:
            return False
        member = await self.get_member(actor.normalized_email)
        if member is None or not member.is_active:
            return False
        return permission in permissions_for(member.role)

    async def add_member(
        self,
        actor: Principal,
        email: str,
        role: TeamRole | str,
        display_name: str | None = None,
        department: str | None = None,
        notes: str | None = None,
    ) -> TeamActionResult:
        """Add an active member. Only super-admins may add, and emails must be new."""
        if not await self.can_manage_team(actor):
            return self._deny(actor, "add_member", INSUFFICIENT_PERMISSIONS)

        member_email = normalize_email(email)
        if not is_valid_email(member_email):
            return TeamActionResult(False, "Invalid email address")

        if await self.get_member(member_email) is not None:
            return TeamActionResult(False, "Team member already exists")

        if not await self.can_assign_role(actor, role):
            return self._deny(
                actor, "add_member", f"Insufficient permissions to assign {_role_label(role)} role"
            )

        team_role = parse_role(role)
        member = TeamMember(
            id=str(uuid4()),
            email=member_email,
            role=team_role,
            added_by=actor.normalized_email,
            added_at=self._clock(),
            permissions=permissions_for(team_role),
            display_name=sanitize_text(display_name) or None,
            department=sanitize_text(department) or None,
            notes=sanitize_text(notes) or None,
        )

        try:
            await self._directory.create(member)
        except DIRECTORY_ERRORS as e:
            logger.error("Error adding team member %s: %s", member_email, e)
            return TeamActionResult(False, "Failed to add team member")

        self._audit(actor, "add_member", member_email, role=team_role.value)
        return TeamActionResult(True, "Team member added", member=member)

    async def update_member(
        self,
        actor: Principal,
        email: str,
        updates: dict[str, Any],
    ) -> TeamActionResult:
        """Apply editable field changes to a member who is not a super-admin."""
        if not await self.can_manage_team(actor):
            return self._deny(actor, "update_member", INSUFFICIENT_PERMISSIONS)

        unknown = set(updates) - EDITABLE_FIELDS
        if unknown:
            return TeamActionResult(False, f"Cannot update fields: {', '.join(sorted(unknown))}")

        member = await self.get_member(email)
        if member is None:
            return TeamActionResult(False, "Team member not found")

        if member.role == TeamRole.SUPER_ADMIN:
            return self._deny(actor, "update_member", "Super-admin accounts cannot be edited")

        changes = dict(updates)
        if "role" in changes:
            if not await self.can_assign_role(actor, changes["role"]):
                return self._deny(
                    actor,
                    "update_member",
                    f"Insufficient permissions to assign {_role_label(changes['role'])} role",
                )
            changes["role"] = parse_role(changes["role"])
            changes["permissions"] = permissions_for(changes["role"])

        for field in TEXT_FIELDS:
            if field in changes:
                changes[field] = sanitize_text(changes[field]) or None

        try:
            await self._directory.update(member.email, changes)
        except (*DIRECTORY_ERRORS, KeyError) as e:
            logger.error("Error updating team member %s: %s", member.email, e)
            return TeamActionResult(False, "Failed to update team member")

        self._audit(actor, "update_member", member.email, fields=sorted(updates))
        return TeamActionResult(True, "Team member updated")

    async def remove_member(self, actor: Principal, email: str) -> TeamActionResult:
        """Remove a member other than the acting super-admin."""
        if not await self.can_manage_team(actor):
            return self._deny(actor, "remove_member", INSUFFICIENT_PERMISSIONS)

        member_email = normalize_email(email)
        if member_email == actor.normalized_email:
            return TeamActionResult(False, "Cannot remove yourself from the team")

        member = await self.get_member(member_email)
        if member is None:
            return TeamActionResult(False, "Team member not found")

        if member.role == TeamRole.SUPER_ADMIN and (
            await self.get_user_role(actor) != TeamRole.SUPER_ADMIN
        ):
            return self._deny(
                actor, "remove_member", "Only super-admins can remove other super-admins"
            )

        try:
            await self._directory.delete(member_email)
        except DIRECTORY_ERRORS as e:
            logger.error("Error removing team member %s: %s", member_email, e)
            return TeamActionResult(False, "Failed to remove team member")

        self._audit(actor, "remove_member", member_email)
        return TeamActionResult(True, "Team member removed")

    async def update_last_login(self, email: str) -> None:
        """Stamp the last login time; unknown emails are ignored."""
        member = await self.get_member(email)
        if member is None:
            return
        try:
            await self._directory.update(member.email, {"last_login": self._clock()})
        except (*DIRECTORY_ERRORS, KeyError) as e:
            logger.error("Error updating last login for %s: %s", member.email, e)

    async def send_invitation(
        self, actor: Principal, email: str, role: TeamRole | str
    ) -> TeamActionResult:
        """Create a pending invite for an email that is not already a member."""
        if not await self.can_manage_team(actor):
            return self._deny(
                actor, "send_invitation", "Only super-admins can send team invitations"
            )

        if not await self.can_assign_role(actor, role):
            return self._deny(
                actor, "send_invitation", "Can only assign admin role to new team members"
            )

        invite_email = normalize_email(email)
        if not is_valid_email(invite_email):
            return TeamActionResult(False, "Invalid email address")

        if await self.get_member(invite_email) is not None:
            return TeamActionResult(False, "User is already a team member")

        now = self._clock()
        invite = TeamInvite(
            id=str(uuid4()),
            email=invite_email,
            role=parse_role(role),
            invited_by=actor.normalized_email,
            invited_at=now,
            expires_at=now + INVITE_LIFETIME,
            token=str(uuid4()),
        )

        try:
            await self._invites.create(invite)
        except DIRECTORY_ERRORS as e:
            logger.error("Error sending team invitation to %s: %s", invite_email, e)
            return TeamActionResult(False, "Failed to send invitation")

        logger.info("Team invitation created for %s with role %s", invite_email, invite.role.value)
        self._audit(actor, "send_invitation", invite_email, role=invite.role.value)
        return TeamActionResult(True, "Invitation sent", invite=invite)

    async def get_pending_invitations(self) -> list[TeamInvite]:
        try:
            invites = await self._invites.list_pending()
        except DIRECTORY_ERRORS as e:
            logger.error("Error fetching pending invitations: %s", e)
            return []
        now = self._clock()
        return [i for i in invites if not i.is_expired(now)]

    async def cancel_invitation(self, actor: Principal, invite_id: str) -> TeamActionResult:
        """Cancel a pending invite by id."""
        if not await self.can_manage_team(actor):
            return self._deny(
                actor, "cancel_invitation", "Insufficient permissions to cancel invitations"
            )
        try:
            deleted = await self._invites.delete(invite_id)
        except DIRECTORY_ERRORS as e:
            logger.error("Error canceling invitation %s: %s", invite_id, e)
            return TeamActionResult(False, "Failed to cancel invitation")
        if not deleted:
            return TeamActionResult(False, "Invitation not found")
        return TeamActionResult(True, "Invitation cancelled")

    def _deny(self, actor: Principal | None, action: str, reason: str) -> TeamActionResult:
        self._event_logger.log(
            SecurityEventType.ADMIN_ACCESS_DENIED,
            Severity.MEDIUM,
            user_email=actor.normalized_email if actor else None,
            action=action,
            reason=reason,
        )
        return TeamActionResult(False, reason)

    def _audit(self, actor: Principal, action: str, target: str, **details: Any) -> None:
        self._event_logger.log(
            SecurityEventType.TEAM_CHANGE,
            Severity.LOW,
            user_email=actor.normalized_email,
            action=action,
            target=target,
            **details,
        )
