"""Tests for the configured guard wiring."""

import json
from datetime import timedelta
from unittest.mock import patch

import pytest
from conftest import make_member

from jobtrack_security.audit import SecurityEventType
from jobtrack_security.auth import InMemoryTeamDirectory, ResolutionSource, TeamRole
from jobtrack_security.auth.models import DeviceSignals
from jobtrack_security.config import SecurityConfig
from jobtrack_security.engine import SecurityEngine

CONFIG = {
    "password_policy": {"min_length": 12},
    "sessions": {"timeout_minutes": 5},
    "limits": {
        "login_max_attempts": 2,
        "login_lockout_minutes": 3,
        "admin_max_actions": 1,
        "admin_window_minutes": 2,
    },
    "admin": {"cache_ttl_minutes": 1, "remote_verification": False},
}


class FakeVerifier:
    def __init__(self, *args, **kwargs):
        pass

    async def verify(self, email: str) -> bool:
        return True


@pytest.fixture
def engine(clock):
    return SecurityEngine(SecurityConfig.from_dict(CONFIG), clock=clock)


class TestLimits:
    def test_login_limit_from_config(self, engine):
        limiter = engine.password_limiter
        assert limiter.max_attempts == 2
        assert limiter.window == timedelta(minutes=3)

        limiter.check("jane@co.com")
        limiter.record("jane@co.com", succeeded=False)
        limiter.record("jane@co.com", succeeded=False)

        assert not limiter.check("jane@co.com").allowed

    def test_login_lockout_expires_after_configured_window(self, engine, clock):
        limiter = engine.password_limiter
        for _ in range(2):
            limiter.record("jane@co.com", succeeded=False)

        clock.advance(minutes=3, seconds=1)

        assert limiter.check("jane@co.com").allowed

    def test_admin_limit_from_config(self, engine):
        limiter = engine.admin_limiter
        limiter.record("root@co.com", succeeded=False)

        check = limiter.check("root@co.com")
        assert not check.allowed
        assert limiter.window == timedelta(minutes=2)

    def test_defaults(self):
        engine = SecurityEngine()
        assert engine.password_limiter.max_attempts == 5
        assert engine.admin_limiter.max_attempts == 100


class TestPasswordPolicy:
    def test_policy_from_config(self, engine):
        result = engine.validate_password("Tr0ub4dor&3")
        assert "Password must be at least 12 characters long" in result.errors


class TestSessionGuard:
    def test_timeout_from_config(self, engine, clock):
        guard = engine.session_guard(lambda: DeviceSignals(user_agent="test"))
        guard.initialize("jane@co.com")

        clock.advance(minutes=5, seconds=1)

        assert not guard.validate("jane@co.com")
        assert engine.event_logger.recent(SecurityEventType.SESSION_TIMEOUT)

    def test_session_active_within_timeout(self, engine, clock):
        guard = engine.session_guard(lambda: DeviceSignals(user_agent="test"))
        guard.initialize("jane@co.com")

        clock.advance(minutes=4)

        assert guard.validate("jane@co.com")


class TestAdminResolver:
    @pytest.mark.asyncio
    async def test_directory_answer_cached_for_configured_ttl(self, engine, clock):
        directory = InMemoryTeamDirectory()
        resolver = engine.admin_resolver(directory=directory)
        await directory.create(make_member("boss@co.com", role=TeamRole.ADMIN))

        first = await resolver.resolve("boss@co.com")
        await directory.delete("boss@co.com")
        cached = await resolver.resolve("boss@co.com")
        clock.advance(minutes=1)
        expired = await resolver.resolve("boss@co.com")

        assert first.source == ResolutionSource.DIRECTORY
        assert cached.source == ResolutionSource.CACHE
        assert expired.source == ResolutionSource.DENIED

    @pytest.mark.asyncio
    async def test_remote_verification_disabled(self, engine):
        resolution = await engine.admin_resolver().resolve("boss@co.com")

        assert resolution.source == ResolutionSource.DENIED
        assert engine.event_logger.recent(SecurityEventType.ADMIN_ACCESS_DENIED)

    @pytest.mark.asyncio
    async def test_remote_verification_enabled(self):
        engine = SecurityEngine(SecurityConfig())
        with patch("jobtrack_security.engine.AdminVerificationClient", FakeVerifier):
            resolution = await engine.admin_resolver().resolve("boss@co.com")

        assert resolution.is_admin
        assert resolution.source == ResolutionSource.REMOTE


class TestSecurityLog:
    def test_events_written_to_configured_path(self, tmp_path, clock):
        log_path = tmp_path / "security.jsonl"
        config = SecurityConfig.from_dict(
            {**CONFIG, "jobtrack_security": {"security_log_path": str(log_path)}}
        )
        engine = SecurityEngine(config, clock=clock)
        guard = engine.session_guard(lambda: DeviceSignals(user_agent="test"))
        guard.initialize("jane@co.com")

        guard.invalidate("jane@co.com")

        events = [json.loads(line) for line in log_path.read_text().splitlines()]
        assert [e["event_type"] for e in events] == ["SESSION_TERMINATED"]