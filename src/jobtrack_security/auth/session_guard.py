"""Device-bound session guarding.

A session is bound to a fingerprint of the device signals captured at
initialization. Every validation recomputes the fingerprint; a mismatch is
treated as a hijacked session and invalidates it. Inactivity beyond the timeout
also invalidates. Expiry is checked lazily on validation, never by timers.
"""

import hashlib
import json
import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import Any

from ..audit import SecurityEventLogger, SecurityEventType, Severity
from .models import DeviceSignals, SessionRecord
from .store import Clock, InMemoryStore, StateStore, utc_now

logger = logging.getLogger(__name__)

ACTIVITY_EVENTS = ("mousedown", "mousemove", "keypress", "scroll", "touchstart", "click")
VISIBILITY_EVENT = "visibilitychange"
FINGERPRINT_LENGTH = 32

Listener = Callable[..., None]


@dataclass
class SessionGuardConfig:
    session_timeout: timedelta = timedelta(minutes=30)
    refresh_threshold: timedelta = timedelta(minutes=5)


class EventHub:
    """Minimal in-process listener registry for UI events."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def add_listener(self, event: str, listener: Listener) -> None:
        self._listeners[event].append(listener)

    def remove_listener(self, event: str, listener: Listener) -> None:
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def emit(self, event: str, **payload: Any) -> None:
        for listener in list(self._listeners.get(event, [])):
            listener(**payload)


def compute_fingerprint(signals: DeviceSignals) -> str:
    canonical = json.dumps(asdict(signals), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode()).hexdigest()[:FINGERPRINT_LENGTH]


class SessionGuard:
    def __init__(
        self,
        signals_provider: Callable[[], DeviceSignals],
        events: EventHub | None = None,
        config: SessionGuardConfig | None = None,
        store: StateStore | None = None,
        clock: Clock | None = None,
        event_logger: SecurityEventLogger | None = None,
    ):
        self._signals_provider = signals_provider
        self._events = events
        self._config = config or SessionGuardConfig()
        self._store = store if store is not None else InMemoryStore()
        self._clock = clock or utc_now
        self._event_logger = event_logger or SecurityEventLogger()
        self._listeners: dict[str, list[tuple[str, Listener]]] = {}

    @property
    def config(self) -> SessionGuardConfig:
        return self._config

    def generate_fingerprint(self) -> str:
        return compute_fingerprint(self._signals_provider())

    def get_session(self, user_id: str) -> SessionRecord | None:
        return self._store.get(user_id)

    def initialize(self, user_id: str) -> SessionRecord:
        now = self._clock()
        record = SessionRecord(
            last_activity=now,
            fingerprint=self.generate_fingerprint(),
            created_at=now,
            is_valid=True,
        )
        self._detach_listeners(user_id)
        self._store.set(user_id, record)
        self._attach_listeners(user_id)
        logger.debug("Session initialized for %s", user_id)
        return record

    def validate(self, user_id: str) -> bool:
        record: SessionRecord | None = self._store.get(user_id)
        if record is None:
            return False

        now = self._clock()
        if now - record.last_activity > self._config.session_timeout:
            self._event_logger.log(
                SecurityEventType.SESSION_TIMEOUT,
                Severity.LOW,
                user_email=user_id,
                idle_seconds=int((now - record.last_activity).total_seconds()),
            )
            self._discard(user_id)
            return False

        if self.generate_fingerprint() != record.fingerprint:
            logger.warning(
                "Session fingerprint mismatch for %s - possible session hijacking", user_id
            )
            self._event_logger.log(
                SecurityEventType.SESSION_ANOMALY,
                Severity.HIGH,
                user_email=user_id,
                reason="fingerprint_mismatch",
            )
            self._discard(user_id)
            return False

        record.last_activity = now
        self._store.set(user_id, record)
        return record.is_valid

    def invalidate(self, user_id: str, reason: str = "logout") -> None:
        """End a session explicitly, for example on sign-out."""
        if self._discard(user_id):
            self._event_logger.log(
                SecurityEventType.SESSION_TERMINATED,
                Severity.LOW,
                user_email=user_id,
                reason=reason,
            )

    def _discard(self, user_id: str) -> bool:
        record: SessionRecord | None = self._store.get(user_id)
        if record is not None:
            record.is_valid = False
        self._store.delete(user_id)
        self._detach_listeners(user_id)
        return record is not None

    def needs_refresh(self, user_id: str) -> bool:
        record: SessionRecord | None = self._store.get(user_id)
        if record is None:
            return True
        return self._clock() - record.last_activity > self._config.refresh_threshold

    def _touch(self, user_id: str) -> None:
        record: SessionRecord | None = self._store.get(user_id)
        if record is not None:
            record.last_activity = self._clock()
            self._store.set(user_id, record)

    def _on_visibility_change(self, user_id: str, hidden: bool = False) -> None:
        if not hidden:
            return
        record: SessionRecord | None = self._store.get(user_id)
        if record is not None:
            record.last_activity = self._clock() - self._config.session_timeout / 2
            self._store.set(user_id, record)

    def _attach_listeners(self, user_id: str) -> None:
        if self._events is None:
            return

        def on_activity(**_: Any) -> None:
            self._touch(user_id)

        def on_visibility(hidden: bool = False, **_: Any) -> None:
            self._on_visibility_change(user_id, hidden)

        registered = [(event, on_activity) for event in ACTIVITY_EVENTS]
        registered.append((VISIBILITY_EVENT, on_visibility))
        for event, listener in registered:
            self._events.add_listener(event, listener)
        self._listeners[user_id] = registered

    def _detach_listeners(self, user_id: str) -> None:
        if self._events is None:
            return
        for event, listener in self._listeners.pop(user_id, []):
            self._events.remove_listener(event, listener)
