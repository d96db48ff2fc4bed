"""Fixed-window attempt limiting keyed by identifier.

A record is (re)initialized on check once its window has elapsed; failed
attempts increment the count, and a successful attempt deletes the record.
Expiry is lazy: stale records are only replaced when next observed, or removed
by an explicit ``sweep()``.
"""

import logging
from datetime import timedelta

from .models import AttemptCheck, AttemptRecord
from .store import Clock, InMemoryStore, StateStore, utc_now

logger = logging.getLogger(__name__)

MAX_PASSWORD_ATTEMPTS = 5
PASSWORD_LOCKOUT_WINDOW = timedelta(minutes=15)
MAX_ADMIN_ACTIONS = 100
ADMIN_ACTION_WINDOW = timedelta(minutes=1)


class AttemptLimiter:
    def __init__(
        self,
        max_attempts: int,
        window: timedelta,
        store: StateStore | None = None,
        clock: Clock | None = None,
        name: str = "attempts",
    ):
        if max_attempts <= 0:
            raise ValueError(f"max_attempts must be positive, got {max_attempts}")
        self._max_attempts = max_attempts
        self._window = window
        self._store = store if store is not None else InMemoryStore()
        self._clock = clock or utc_now
        self._name = name

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    @property
    def window(self) -> timedelta:
        return self._window

    def _is_stale(self, record: AttemptRecord) -> bool:
        return self._clock() - record.last_attempt > self._window

    def check(self, identifier: str) -> AttemptCheck:
        now = self._clock()
        record: AttemptRecord | None = self._store.get(identifier)

        if record is None or self._is_stale(record):
            self._store.set(identifier, AttemptRecord(count=0, last_attempt=now))
            return AttemptCheck(allowed=True, remaining=self._max_attempts)

        if record.count >= self._max_attempts:
            lockout_ends = record.last_attempt + self._window
            logger.info("%s limit reached for %s until %s", self._name, identifier, lockout_ends)
            return AttemptCheck(allowed=False, remaining=0, lockout_ends=lockout_ends)

        return AttemptCheck(allowed=True, remaining=self._max_attempts - record.count)

    def record(self, identifier: str, succeeded: bool) -> None:
        if succeeded:
            self._store.delete(identifier)
            return

        now = self._clock()
        record: AttemptRecord | None = self._store.get(identifier)
        count = 0 if record is None or self._is_stale(record) else record.count
        self._store.set(identifier, AttemptRecord(count=count + 1, last_attempt=now))
        logger.debug(
            "%s failure %d/%d for %s", self._name, count + 1, self._max_attempts, identifier
        )

    def reset(self, identifier: str) -> None:
        self._store.delete(identifier)

    def sweep(self) -> int:
        """Delete stale records. Returns the number removed."""
        removed = 0
        for key in self._store.keys():
            record = self._store.get(key)
            if record is not None and self._is_stale(record):
                self._store.delete(key)
                removed += 1
        if removed:
            logger.info("Swept %d stale %s records", removed, self._name)
        return removed


def password_attempt_limiter(
    store: StateStore | None = None,
    clock: Clock | None = None,
    max_attempts: int = MAX_PASSWORD_ATTEMPTS,
    window: timedelta = PASSWORD_LOCKOUT_WINDOW,
) -> AttemptLimiter:
    return AttemptLimiter(max_attempts, window, store, clock, name="password attempts")


def admin_action_limiter(
    store: StateStore | None = None,
    clock: Clock | None = None,
    max_attempts: int = MAX_ADMIN_ACTIONS,
    window: timedelta = ADMIN_ACTION_WINDOW,
) -> AttemptLimiter:
    return AttemptLimiter(max_attempts, window, store, clock, name="admin actions")
