"""Password policy, attempt limiting, session protection and team access control."""

from .access_control import AccessControl
from .admin_resolver import (
    AdminCache,
    AdminResolver,
    CacheStrategy,
    DirectoryStrategy,
    LegacyRecordStrategy,
    RemoteVerificationStrategy,
    build_admin_resolver,
)
from .attempts import AttemptLimiter, admin_action_limiter, password_attempt_limiter
from .directory import (
    InMemoryInviteStore,
    InMemoryLegacyAdminRecords,
    InMemoryTeamDirectory,
    PostgresInviteStore,
    PostgresLegacyAdminRecords,
    PostgresTeamDirectory,
    TeamSchemaManager,
)
from .models import (
    AdminResolution,
    AttemptCheck,
    DeviceSignals,
    PasswordRequirements,
    PasswordStrength,
    PasswordValidationResult,
    PersonalInfo,
    Principal,
    ResolutionSource,
    TeamActionResult,
    TeamInvite,
    TeamMember,
    TeamRole,
)
from .password_policy import DEFAULT_PASSWORD_POLICY, password_suggestions, validate_password
from .roles import ROLE_DESCRIPTIONS, ROLE_PERMISSIONS, permissions_for
from .session_guard import EventHub, SessionGuard, SessionGuardConfig
from .store import InMemoryStore, StateStore

__all__ = [
    "AccessControl",
    "AdminCache",
    "AdminResolution",
    "AdminResolver",
    "AttemptCheck",
    "AttemptLimiter",
    "CacheStrategy",
    "DEFAULT_PASSWORD_POLICY",
    "DeviceSignals",
    "DirectoryStrategy",
    "EventHub",
    "InMemoryInviteStore",
    "InMemoryLegacyAdminRecords",
    "InMemoryStore",
    "InMemoryTeamDirectory",
    "LegacyRecordStrategy",
    "PasswordRequirements",
    "PasswordStrength",
    "PasswordValidationResult",
    "PersonalInfo",
    "PostgresInviteStore",
    "PostgresLegacyAdminRecords",
    "PostgresTeamDirectory",
    "Principal",
    "ROLE_DESCRIPTIONS",
    "ROLE_PERMISSIONS",
    "RemoteVerificationStrategy",
    "ResolutionSource",
    "SessionGuard",
    "SessionGuardConfig",
    "StateStore",
    "TeamActionResult",
    "TeamInvite",
    "TeamMember",
    "TeamRole",
    "TeamSchemaManager",
    "admin_action_limiter",
    "build_admin_resolver",
    "password_attempt_limiter",
    "password_suggestions",
    "permissions_for",
    "validate_password",
]
