"""Security event logger backed by the standard logging module."""

import json
import logging
from collections import deque
from pathlib import Path

from .models import SecurityEvent, SecurityEventType, Severity

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_SIZE = 500

SEVERITY_LEVELS = {
    Severity.LOW: logging.INFO,
    Severity.MEDIUM: logging.WARNING,
    Severity.HIGH: logging.WARNING,
    Severity.CRITICAL: logging.ERROR,
}


class SecurityEventLogger:
    """Records security events.

    Features:
    - Severity mapped onto logging levels (low=INFO, medium/high=WARNING, critical=ERROR)
    - Bounded in-memory history for monitors and tests
    - Optional JSON lines sink; a failing sink never blocks the caller
    """

    def __init__(
        self,
        history_size: int = DEFAULT_HISTORY_SIZE,
        jsonl_path: Path | None = None,
    ):
        self._history: deque[SecurityEvent] = deque(maxlen=history_size)
        self._jsonl_path = jsonl_path

    def log_event(self, event: SecurityEvent) -> None:
        payload = event.to_dict()
        logger.log(
            SEVERITY_LEVELS[event.severity],
            "Security event [%s] %s: %s",
            event.severity.value.upper(),
            event.event_type.value,
            payload["details"],
        )
        self._history.append(event)

        if self._jsonl_path is not None:
            try:
                with open(self._jsonl_path, "a") as f:
                    f.write(json.dumps(payload) + "\n")
            except OSError as e:
                logger.error("Failed to write security event to %s: %s", self._jsonl_path, e)

    def log(
        self,
        event_type: SecurityEventType,
        severity: Severity = Severity.LOW,
        user_email: str | None = None,
        **details: object,
    ) -> SecurityEvent:
        event = SecurityEvent(
            event_type=event_type,
            severity=severity,
            details=dict(details),
            user_email=user_email,
        )
        self.log_event(event)
        return event

    def recent(self, event_type: SecurityEventType | None = None) -> list[SecurityEvent]:
        if event_type is None:
            return list(self._history)
        return [e for e in self._history if e.event_type == event_type]

    def clear(self) -> None:
        self._history.clear()
