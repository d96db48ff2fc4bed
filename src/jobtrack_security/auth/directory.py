"""Team directory collaborators.

The directory is keyed by normalized email and follows last-write-wins
semantics. In-memory implementations back tests and single-process use; the
PostgreSQL implementations run on asyncpg.
"""

import logging
from dataclasses import replace
from importlib.resources import files
from typing import Any, Protocol

import asyncpg

from .models import TeamInvite, TeamMember, normalize_email

logger = logging.getLogger(__name__)

UPDATABLE_COLUMNS = frozenset(
    {"role", "permissions", "display_name", "department", "notes", "is_active", "last_login"}
)

MEMBER_COLUMNS = """
    id, email, display_name, role, is_active, added_by, added_at,
    last_login, permissions, department, notes
"""


class TeamDirectory(Protocol):
    async def get(self, email: str) -> TeamMember | None: ...

    async def list_all(self) -> list[TeamMember]: ...

    async def create(self, member: TeamMember) -> None: ...

    async def update(self, email: str, changes: dict[str, Any]) -> None: ...

    async def delete(self, email: str) -> None: ...


class InviteStore(Protocol):
    async def create(self, invite: TeamInvite) -> None: ...

    async def list_pending(self) -> list[TeamInvite]: ...

    async def delete(self, invite_id: str) -> bool: ...


class LegacyAdminRecords(Protocol):
    async def lookup(self, email: str) -> bool | None:
        """Return the stored admin flag, or None when no record exists."""
        ...


def _check_columns(changes: dict[str, Any]) -> None:
    unknown = set(changes) - UPDATABLE_COLUMNS
    if unknown:
        raise ValueError(f"Cannot update team member fields: {', '.join(sorted(unknown))}")


class InMemoryTeamDirectory:
    def __init__(self, members: list[TeamMember] | None = None):
        self._members: dict[str, TeamMember] = {}
        for member in members or []:
            self._members[normalize_email(member.email)] = member

    async def get(self, email: str) -> TeamMember | None:
        return self._members.get(normalize_email(email))

    async def list_all(self) -> list[TeamMember]:
        return sorted(self._members.values(), key=lambda m: m.email)

    async def create(self, member: TeamMember) -> None:
        self._members[normalize_email(member.email)] = member

    async def update(self, email: str, changes: dict[str, Any]) -> None:
        _check_columns(changes)
        key = normalize_email(email)
        member = self._members.get(key)
        if member is None:
            raise KeyError(f"Team member not found: {key}")
        self._members[key] = replace(member, **changes)

    async def delete(self, email: str) -> None:
        self._members.pop(normalize_email(email), None)


class InMemoryInviteStore:
    def __init__(self) -> None:
        self._invites: dict[str, TeamInvite] = {}

    async def create(self, invite: TeamInvite) -> None:
        self._invites[invite.id] = invite

    async def list_pending(self) -> list[TeamInvite]:
        return [i for i in self._invites.values() if not i.is_accepted]

    async def delete(self, invite_id: str) -> bool:
        return self._invites.pop(invite_id, None) is not None


class InMemoryLegacyAdminRecords:
    def __init__(self, records: dict[str, bool] | None = None):
        self._records = {normalize_email(k): v for k, v in (records or {}).items()}

    async def lookup(self, email: str) -> bool | None:
        return self._records.get(normalize_email(email))


class PostgresTeamDirectory:
    def __init__(self, conn: asyncpg.Connection):
        self._conn = conn

    async def get(self, email: str) -> TeamMember | None:
        row = await self._conn.fetchrow(
            f"SELECT {MEMBER_COLUMNS} FROM team_members WHERE email = $1",
            normalize_email(email),
        )
        if not row:
            return None
        return TeamMember.from_db_row(dict(row))

    async def list_all(self) -> list[TeamMember]:
        rows = await self._conn.fetch(f"SELECT {MEMBER_COLUMNS} FROM team_members ORDER BY email")
        return [TeamMember.from_db_row(dict(row)) for row in rows]

    async def create(self, member: TeamMember) -> None:
        await self._conn.execute(
            """
            INSERT INTO team_members (id, email, display_name, role, is_active, added_by,
                                      added_at, last_login, permissions, department, notes)
            VALUES ($1::uuid, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
            ON CONFLICT (email) DO UPDATE SET
                id = EXCLUDED.id, display_name = EXCLUDED.display_name,
                role = EXCLUDED.role, is_active = EXCLUDED.is_active,
                added_by = EXCLUDED.added_by, added_at = EXCLUDED.added_at,
                last_login = EXCLUDED.last_login, permissions = EXCLUDED.permissions,
                department = EXCLUDED.department, notes = EXCLUDED.notes
            """,
            member.id,
            normalize_email(member.email),
            member.display_name,
            member.role.value,
            member.is_active,
            member.added_by,
            member.added_at,
            member.last_login,
            list(member.permissions),
            member.department,
            member.notes,
        )

    async def update(self, email: str, changes: dict[str, Any]) -> None:
        _check_columns(changes)
        if not changes:
            return

        columns = sorted(changes)
        assignments = ", ".join(f"{col} = ${i + 2}" for i, col in enumerate(columns))
        values = [
            changes[col].value if col == "role" else changes[col] for col in columns
        ]
        result = await self._conn.execute(
            f"UPDATE team_members SET {assignments} WHERE email = $1",
            normalize_email(email),
            *values,
        )
        if result == "UPDATE 0":
            raise KeyError(f"Team member not found: {normalize_email(email)}")

    async def delete(self, email: str) -> None:
        await self._conn.execute(
            "DELETE FROM team_members WHERE email = $1", normalize_email(email)
        )


class PostgresInviteStore:
    def __init__(self, conn: asyncpg.Connection):
        self._conn = conn

    async def create(self, invite: TeamInvite) -> None:
        await self._conn.execute(
            """
            INSERT INTO team_invites (id, email, role, invited_by, invited_at,
                                      expires_at, token, is_accepted)
            VALUES ($1::uuid, $2, $3, $4, $5, $6, $7, $8)
            """,
            invite.id,
            invite.email,
            invite.role.value,
            invite.invited_by,
            invite.invited_at,
            invite.expires_at,
            invite.token,
            invite.is_accepted,
        )

    async def list_pending(self) -> list[TeamInvite]:
        rows = await self._conn.fetch(
            """
            SELECT id, email, role, invited_by, invited_at, expires_at, token, is_accepted
            FROM team_invites WHERE is_accepted = false ORDER BY invited_at
            """
        )
        return [TeamInvite.from_db_row(dict(row)) for row in rows]

    async def delete(self, invite_id: str) -> bool:
        result = await self._conn.execute(
            "DELETE FROM team_invites WHERE id = $1::uuid", invite_id
        )
        return result == "DELETE 1"


class PostgresLegacyAdminRecords:
    def __init__(self, conn: asyncpg.Connection):
        self._conn = conn

    async def lookup(self, email: str) -> bool | None:
        row = await self._conn.fetchrow(
            "SELECT is_admin FROM admin_users WHERE email = $1", normalize_email(email)
        )
        if not row:
            return None
        return bool(row["is_admin"])


class TeamSchemaManager:
    async def create_schema(self, conn: asyncpg.Connection) -> None:
        sql = files("jobtrack_security.db").joinpath("team_tables.sql").read_text()
        await conn.execute(sql)
        logger.info("Team directory schema created/updated")

    async def schema_exists(self, conn: asyncpg.Connection) -> bool:
        result = await conn.fetchval(
            """
            SELECT EXISTS (
                SELECT FROM information_schema.tables
                WHERE table_schema = 'public' AND table_name = 'team_members'
            )
            """
        )
        return bool(result)
