"""Security guards wired from a single SecurityConfig."""

import logging
from collections.abc import Callable

from .audit import SecurityEventLogger
from .auth import (
    AdminCache,
    AdminResolver,
    AttemptLimiter,
    PersonalInfo,
    SessionGuard,
    admin_action_limiter,
    build_admin_resolver,
    password_attempt_limiter,
    validate_password,
)
from .auth.directory import LegacyAdminRecords, TeamDirectory
from .auth.models import DeviceSignals, PasswordValidationResult
from .auth.session_guard import EventHub
from .auth.store import Clock
from .config import SecurityConfig
from .remote import AdminVerificationClient

logger = logging.getLogger(__name__)


class SecurityEngine:
    """Builds the password, limiter, session and admin guards from configuration.

    Every guard shares one event logger, which writes JSON lines to
    ``security_log_path`` when the configuration sets it.
    """

    def __init__(
        self,
        config: SecurityConfig | None = None,
        clock: Clock | None = None,
    ):
        self.config = config or SecurityConfig()
        self._clock = clock
        self.event_logger = SecurityEventLogger(jsonl_path=self.config.security_log_path)

        limits = self.config.limits
        self.password_limiter: AttemptLimiter = password_attempt_limiter(
            clock=clock, max_attempts=limits.login_max_attempts, window=limits.login_lockout
        )
        self.admin_limiter: AttemptLimiter = admin_action_limiter(
            clock=clock, max_attempts=limits.admin_max_actions, window=limits.admin_window
        )
        self.admin_cache = AdminCache(ttl=self.config.admin.cache_ttl, clock=clock)

    def validate_password(
        self, password: str, personal_info: PersonalInfo | None = None
    ) -> PasswordValidationResult:
        return validate_password(password, self.config.password_policy, personal_info)

    def session_guard(
        self,
        signals_provider: Callable[[], DeviceSignals],
        events: EventHub | None = None,
    ) -> SessionGuard:
        return SessionGuard(
            signals_provider,
            events=events,
            config=self.config.sessions,
            clock=self._clock,
            event_logger=self.event_logger,
        )

    def admin_resolver(
        self,
        directory: TeamDirectory | None = None,
        legacy_records: LegacyAdminRecords | None = None,
    ) -> AdminResolver:
        verifier = None
        if self.config.admin.remote_verification:
            verifier = AdminVerificationClient(
                self.config.api_url, timeout=self.config.request_timeout
            )
        else:
            logger.debug("Remote admin verification disabled")
        return build_admin_resolver(
            directory=directory,
            legacy_records=legacy_records,
            verifier=verifier,
            cache=self.admin_cache,
            event_logger=self.event_logger,
        )
