"""Tests for admin status resolution."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from conftest import make_member

from jobtrack_security.audit import SecurityEventType
from jobtrack_security.auth.admin_resolver import (
    AdminCache,
    AdminResolver,
    CacheStrategy,
    DirectoryStrategy,
    RemoteVerificationStrategy,
    build_admin_resolver,
)
from jobtrack_security.auth.directory import (
    InMemoryLegacyAdminRecords,
    InMemoryTeamDirectory,
    PostgresLegacyAdminRecords,
)
from jobtrack_security.auth.models import AdminResolution, ResolutionSource, TeamRole
from jobtrack_security.remote import AdminVerificationError


class FakeVerifier:
    def __init__(self, verdicts: dict[str, bool] | None = None, error: Exception | None = None):
        self.verdicts = verdicts or {}
        self.error = error
        self.calls: list[str] = []

    async def verify(self, email: str) -> bool:
        self.calls.append(email)
        if self.error is not None:
            raise self.error
        return self.verdicts.get(email, False)


class BrokenDirectory(InMemoryTeamDirectory):
    async def get(self, email):
        raise OSError("directory unavailable")


@pytest.fixture
def directory():
    return InMemoryTeamDirectory(
        [
            make_member("root@co.com", TeamRole.SUPER_ADMIN),
            make_member("admin@co.com", TeamRole.ADMIN),
            make_member("former@co.com", TeamRole.ADMIN, is_active=False),
        ]
    )


@pytest.fixture
def legacy():
    return InMemoryLegacyAdminRecords({"Legacy@co.com": True, "revoked@co.com": False})


@pytest.fixture
def cache(clock):
    return AdminCache(clock=clock)


class TestAdminCache:
    def test_roundtrip_normalizes_key(self, cache):
        resolution = AdminResolution(True, ResolutionSource.REMOTE, TeamRole.ADMIN)
        cache.set("A@co.com ", resolution)
        assert cache.get("a@co.com") == resolution

    def test_expires_after_ttl(self, cache, clock):
        cache.set("a@co.com", AdminResolution(True, ResolutionSource.REMOTE))
        clock.advance(minutes=4, seconds=59)
        assert cache.get("a@co.com") is not None

        clock.advance(seconds=1)
        assert cache.get("a@co.com") is None

    def test_remove_and_clear(self, cache):
        cache.set("a@co.com", AdminResolution(True, ResolutionSource.REMOTE))
        cache.set("b@co.com", AdminResolution(False, ResolutionSource.REMOTE))
        cache.remove("A@co.com")
        assert cache.get("a@co.com") is None
        cache.clear()
        assert cache.get("b@co.com") is None


class TestAdminResolver:
    @pytest.mark.asyncio
    async def test_directory_member(self, directory, legacy, cache):
        verifier = FakeVerifier()
        resolver = build_admin_resolver(directory, legacy, verifier, cache)

        resolution = await resolver.resolve("ROOT@co.com")

        assert resolution == AdminResolution(
            True, ResolutionSource.DIRECTORY, TeamRole.SUPER_ADMIN
        )
        assert verifier.calls == []

    @pytest.mark.asyncio
    async def test_inactive_member_denied_without_fallback(self, directory, legacy, cache):
        verifier = FakeVerifier({"former@co.com": True})
        resolver = build_admin_resolver(directory, legacy, verifier, cache)

        assert not await resolver.is_admin("former@co.com")
        assert verifier.calls == []

    @pytest.mark.asyncio
    async def test_legacy_record(self, directory, legacy, cache):
        resolver = build_admin_resolver(directory, legacy, FakeVerifier(), cache)

        legacy_admin = await resolver.resolve("legacy@co.com")
        revoked = await resolver.resolve("revoked@co.com")

        assert legacy_admin.source == ResolutionSource.LEGACY
        assert legacy_admin.is_admin
        assert revoked.source == ResolutionSource.LEGACY
        assert not revoked.is_admin

    @pytest.mark.asyncio
    async def test_remote_fallback_when_unknown(self, directory, legacy, cache):
        verifier = FakeVerifier({"remote@co.com": True})
        resolver = build_admin_resolver(directory, legacy, verifier, cache)

        resolution = await resolver.resolve("remote@co.com")

        assert resolution.source == ResolutionSource.REMOTE
        assert resolution.is_admin
        assert verifier.calls == ["remote@co.com"]

    @pytest.mark.asyncio
    async def test_strategy_error_jumps_to_fallback(self, legacy, cache):
        verifier = FakeVerifier({"legacy@co.com": False})
        resolver = build_admin_resolver(BrokenDirectory(), legacy, verifier, cache)

        resolution = await resolver.resolve("legacy@co.com")

        assert resolution.source == ResolutionSource.REMOTE
        assert not resolution.is_admin
        assert verifier.calls == ["legacy@co.com"]

    @pytest.mark.asyncio
    async def test_fallback_error_denies(self, cache, event_logger):
        verifier = FakeVerifier(error=AdminVerificationError("HTTP 500"))
        resolver = build_admin_resolver(
            BrokenDirectory(), verifier=verifier, cache=cache, event_logger=event_logger
        )

        resolution = await resolver.resolve("admin@co.com")

        assert resolution == AdminResolution(False, ResolutionSource.DENIED)
        assert cache.get("admin@co.com") is None
        assert len(event_logger.recent(SecurityEventType.ADMIN_ACCESS_DENIED)) == 1

    @pytest.mark.asyncio
    async def test_no_fallback_configured_denies(self, cache):
        resolver = build_admin_resolver(InMemoryTeamDirectory(), cache=cache)
        assert not await resolver.is_admin("nobody@co.com")

    @pytest.mark.asyncio
    async def test_empty_email_denied(self, directory, cache):
        verifier = FakeVerifier()
        resolver = build_admin_resolver(directory, verifier=verifier, cache=cache)

        assert (await resolver.resolve("  ")).source == ResolutionSource.DENIED
        assert not await resolver.is_admin(None)
        assert verifier.calls == []

    @pytest.mark.asyncio
    async def test_results_cached(self, cache):
        verifier = FakeVerifier({"remote@co.com": True})
        resolver = build_admin_resolver(verifier=verifier, cache=cache)

        await resolver.resolve("remote@co.com")
        second = await resolver.resolve("Remote@co.com")

        assert second.source == ResolutionSource.CACHE
        assert second.is_admin
        assert verifier.calls == ["remote@co.com"]

    @pytest.mark.asyncio
    async def test_negative_results_cached(self, cache):
        verifier = FakeVerifier()
        resolver = build_admin_resolver(verifier=verifier, cache=cache)

        assert not await resolver.is_admin("x@co.com")
        assert not await resolver.is_admin("x@co.com")
        assert verifier.calls == ["x@co.com"]

    @pytest.mark.asyncio
    async def test_cache_expiry_triggers_lookup(self, cache, clock):
        verifier = FakeVerifier({"remote@co.com": True})
        resolver = build_admin_resolver(verifier=verifier, cache=cache)

        await resolver.resolve("remote@co.com")
        clock.advance(minutes=5)
        await resolver.resolve("remote@co.com")

        assert verifier.calls == ["remote@co.com", "remote@co.com"]

    @pytest.mark.asyncio
    async def test_get_role(self, directory, cache):
        resolver = build_admin_resolver(directory, cache=cache)

        assert await resolver.get_role("admin@co.com") == TeamRole.ADMIN
        assert await resolver.get_role("former@co.com") is None

    @pytest.mark.asyncio
    async def test_custom_chain_order(self, directory, cache):
        verifier = FakeVerifier({"admin@co.com": False})
        resolver = AdminResolver(
            [
                CacheStrategy(cache),
                RemoteVerificationStrategy(verifier),
                DirectoryStrategy(directory),
            ],
            cache=cache,
        )

        resolution = await resolver.resolve("admin@co.com")

        assert resolution.source == ResolutionSource.REMOTE
        assert not resolution.is_admin

    @pytest.mark.asyncio
    async def test_postgres_legacy_records(self, cache):
        mock_conn = AsyncMock()
        mock_conn.fetchrow.return_value = {"is_admin": True}
        resolver = build_admin_resolver(
            legacy_records=PostgresLegacyAdminRecords(mock_conn), cache=cache
        )

        resolution = await resolver.resolve("Old@co.com")

        assert resolution.source == ResolutionSource.LEGACY
        assert mock_conn.fetchrow.call_args[0][1] == "old@co.com"


def test_cache_ttl_configurable(clock):
    cache = AdminCache(ttl=timedelta(seconds=30), clock=clock)
    cache.set("a@co.com", AdminResolution(True, ResolutionSource.REMOTE))
    clock.advance(seconds=31)
    assert cache.get("a@co.com") is None
