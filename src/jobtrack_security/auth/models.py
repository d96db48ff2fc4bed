"""Authentication and access control models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


@dataclass(frozen=True)
class PasswordRequirements:
    min_length: int = 8
    max_length: int = 128
    require_uppercase: bool = True
    require_lowercase: bool = True
    require_numbers: bool = True
    require_symbols: bool = True
    max_repeating_chars: int = 3
    prevent_common_passwords: bool = True
    prevent_personal_info: bool = True


@dataclass(frozen=True)
class PersonalInfo:
    email: str | None = None
    name: str | None = None


class PasswordStrength(Enum):
    VERY_WEAK = "very-weak"
    WEAK = "weak"
    FAIR = "fair"
    GOOD = "good"
    STRONG = "strong"
    VERY_STRONG = "very-strong"


@dataclass
class PasswordValidationResult:
    errors: list[str]
    warnings: list[str]
    strength: PasswordStrength
    score: int

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass
class AttemptRecord:
    count: int
    last_attempt: datetime


@dataclass
class AttemptCheck:
    allowed: bool
    remaining: int
    lockout_ends: datetime | None = None


@dataclass
class SessionRecord:
    last_activity: datetime
    fingerprint: str
    created_at: datetime
    is_valid: bool = True


@dataclass(frozen=True)
class DeviceSignals:
    user_agent: str = ""
    language: str = ""
    platform: str = ""
    screen_width: int = 0
    screen_height: int = 0
    color_depth: int = 0
    timezone: str = ""
    canvas_hash: str = ""
    local_storage: bool = False
    session_storage: bool = False
    indexed_db: bool = False
    webgl: str = "no-webgl"


class TeamRole(Enum):
    SUPER_ADMIN = "super-admin"
    ADMIN = "admin"


@dataclass
class Principal:
    email: str
    display_name: str | None = None

    @property
    def normalized_email(self) -> str:
        return normalize_email(self.email)


@dataclass
class TeamMember:
    id: str
    email: str
    role: TeamRole
    added_by: str
    added_at: datetime
    permissions: list[str] = field(default_factory=list)
    display_name: str | None = None
    is_active: bool = True
    last_login: datetime | None = None
    department: str | None = None
    notes: str | None = None

    @classmethod
    def from_db_row(cls, row: dict) -> "TeamMember":
        return cls(
            id=str(row["id"]),
            email=row["email"],
            role=TeamRole(row["role"]),
            added_by=row["added_by"],
            added_at=row["added_at"],
            permissions=list(row.get("permissions") or []),
            display_name=row.get("display_name"),
            is_active=row.get("is_active", True),
            last_login=row.get("last_login"),
            department=row.get("department"),
            notes=row.get("notes"),
        )


@dataclass
class TeamInvite:
    id: str
    email: str
    role: TeamRole
    invited_by: str
    invited_at: datetime
    expires_at: datetime
    token: str
    is_accepted: bool = False

    @classmethod
    def from_db_row(cls, row: dict) -> "TeamInvite":
        return cls(
            id=str(row["id"]),
            email=row["email"],
            role=TeamRole(row["role"]),
            invited_by=row["invited_by"],
            invited_at=row["invited_at"],
            expires_at=row["expires_at"],
            token=row["token"],
            is_accepted=row.get("is_accepted", False),
        )

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


@dataclass
class TeamActionResult:
    success: bool
    message: str
    member: TeamMember | None = None
    invite: TeamInvite | None = None


class ResolutionSource(Enum):
    CACHE = "cache"
    DIRECTORY = "directory"
    LEGACY = "legacy"
    REMOTE = "remote"
    DENIED = "denied"


@dataclass
class AdminResolution:
    is_admin: bool
    source: ResolutionSource
    role: TeamRole | None = None
