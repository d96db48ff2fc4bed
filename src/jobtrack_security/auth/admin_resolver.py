"""Admin status resolution through an ordered chain of strategies.

Default order: short-lived cache, team directory, legacy admin records, remote
server verification. Each strategy returns an AdminResolution or None to pass to
the next one. A strategy that raises sends resolution straight to the remote
fallback, and a fallback that raises resolves to deny. Nothing here ever fails
open.

Concurrent lookups for the same uncached email are not coalesced; both may reach
the remote fallback.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from ..audit import SecurityEventLogger, SecurityEventType, Severity
from .directory import LegacyAdminRecords, TeamDirectory
from .models import AdminResolution, ResolutionSource, TeamRole, normalize_email
from .store import Clock, InMemoryStore, StateStore, utc_now

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = timedelta(minutes=5)


class AdminVerifier(Protocol):
    async def verify(self, email: str) -> bool: ...


class ResolverStrategy(Protocol):
    name: str

    async def resolve(self, email: str) -> AdminResolution | None: ...


@dataclass
class CachedResolution:
    resolution: AdminResolution
    cached_at: datetime


class AdminCache:
    def __init__(
        self,
        ttl: timedelta = DEFAULT_CACHE_TTL,
        store: StateStore | None = None,
        clock: Clock | None = None,
    ):
        self._ttl = ttl
        self._store = store if store is not None else InMemoryStore()
        self._clock = clock or utc_now

    def get(self, email: str) -> AdminResolution | None:
        key = normalize_email(email)
        entry: CachedResolution | None = self._store.get(key)
        if entry is None:
            return None
        if self._clock() - entry.cached_at >= self._ttl:
            self._store.delete(key)
            return None
        return entry.resolution

    def set(self, email: str, resolution: AdminResolution) -> None:
        self._store.set(normalize_email(email), CachedResolution(resolution, self._clock()))

    def remove(self, email: str) -> None:
        self._store.delete(normalize_email(email))

    def clear(self) -> None:
        self._store.clear()


class CacheStrategy:
    name = "cache"

    def __init__(self, cache: AdminCache):
        self._cache = cache

    async def resolve(self, email: str) -> AdminResolution | None:
        cached = self._cache.get(email)
        if cached is None:
            return None
        return AdminResolution(cached.is_admin, ResolutionSource.CACHE, cached.role)


class DirectoryStrategy:
    """Team directory lookup. An inactive member resolves to deny."""

    name = "directory"

    def __init__(self, directory: TeamDirectory):
        self._directory = directory

    async def resolve(self, email: str) -> AdminResolution | None:
        member = await self._directory.get(email)
        if member is None:
            return None
        if not member.is_active:
            return AdminResolution(False, ResolutionSource.DIRECTORY)
        return AdminResolution(True, ResolutionSource.DIRECTORY, member.role)


class LegacyRecordStrategy:
    name = "legacy"

    def __init__(self, records: LegacyAdminRecords):
        self._records = records

    async def resolve(self, email: str) -> AdminResolution | None:
        flag = await self._records.lookup(email)
        if flag is None:
            return None
        return AdminResolution(flag, ResolutionSource.LEGACY, TeamRole.ADMIN if flag else None)


class RemoteVerificationStrategy:
    name = "remote"

    def __init__(self, verifier: AdminVerifier):
        self._verifier = verifier

    async def resolve(self, email: str) -> AdminResolution | None:
        is_admin = await self._verifier.verify(email)
        role = TeamRole.ADMIN if is_admin else None
        return AdminResolution(is_admin, ResolutionSource.REMOTE, role)


class AdminResolver:
    def __init__(
        self,
        strategies: list[ResolverStrategy],
        fallback: ResolverStrategy | None = None,
        cache: AdminCache | None = None,
        event_logger: SecurityEventLogger | None = None,
    ):
        self._strategies = strategies
        self._fallback = fallback
        self._cache = cache
        self._event_logger = event_logger or SecurityEventLogger()

    @property
    def cache(self) -> AdminCache | None:
        return self._cache

    async def resolve(self, email: str | None) -> AdminResolution:
        """Try each strategy in order; deny when none can answer and the fallback fails."""
        normalized = normalize_email(email)
        if not normalized:
            return AdminResolution(False, ResolutionSource.DENIED)

        for strategy in self._strategies:
            try:
                resolution = await strategy.resolve(normalized)
            except Exception as e:
                logger.error(
                    "Admin lookup via %s failed for %s: %s", strategy.name, normalized, e
                )
                return await self._run_fallback(normalized)
            if resolution is not None:
                self._remember(normalized, resolution)
                return resolution

        return await self._run_fallback(normalized)

    async def is_admin(self, email: str | None) -> bool:
        """True only for an active admin or super-admin."""
        return (await self.resolve(email)).is_admin

    async def get_role(self, email: str | None) -> TeamRole | None:
        """Admin role of the email, or None for non-admins."""
        resolution = await self.resolve(email)
        return resolution.role if resolution.is_admin else None

    async def _run_fallback(self, email: str) -> AdminResolution:
        if self._fallback is not None:
            try:
                resolution = await self._fallback.resolve(email)
            except Exception as e:
                logger.error("Admin verification fallback failed for %s: %s", email, e)
                resolution = None
            if resolution is not None:
                self._remember(email, resolution)
                return resolution

        self._event_logger.log(
            SecurityEventType.ADMIN_ACCESS_DENIED,
            Severity.MEDIUM,
            user_email=email,
            reason="admin status could not be resolved",
        )
        return AdminResolution(False, ResolutionSource.DENIED)

    def _remember(self, email: str, resolution: AdminResolution) -> None:
        if self._cache is not None and resolution.source != ResolutionSource.CACHE:
            self._cache.set(email, resolution)


def build_admin_resolver(
    directory: TeamDirectory | None = None,
    legacy_records: LegacyAdminRecords | None = None,
    verifier: AdminVerifier | None = None,
    cache: AdminCache | None = None,
    event_logger: SecurityEventLogger | None = None,
) -> AdminResolver:
    cache = cache or AdminCache()
    strategies: list[ResolverStrategy] = [CacheStrategy(cache)]
    if directory is not None:
        strategies.append(DirectoryStrategy(directory))
    if legacy_records is not None:
        strategies.append(LegacyRecordStrategy(legacy_records))
    fallback = RemoteVerificationStrategy(verifier) if verifier is not None else None
    return AdminResolver(strategies, fallback=fallback, cache=cache, event_logger=event_logger)
