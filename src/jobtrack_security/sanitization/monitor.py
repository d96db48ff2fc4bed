"""Suspicious-input tracking and monitored sanitization."""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any
from urllib.parse import quote

from ..audit import SecurityEventLogger, SecurityEventType, Severity
from .html import encode_strict, sanitize_html
from .inputs import canonicalize_url

logger = logging.getLogger(__name__)

HISTORY_WINDOW = timedelta(hours=1)
ANALYSIS_WINDOW = timedelta(minutes=5)
HIGH_ACTIVITY_THRESHOLD = 10
XSS_ATTEMPT_THRESHOLD = 3

SAFE_LINK_SCHEMES = ("http", "https", "mailto", "tel")
CONTACT_LINK_UNSAFE_CHARS = re.compile(r"[\"'<>`\s]")

XSS_MARKERS = [
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+=", re.IGNORECASE),
    re.compile(r"expression\(", re.IGNORECASE),
    re.compile(r"%3Cscript", re.IGNORECASE),
    re.compile(r"&lt;script", re.IGNORECASE),
    re.compile(r"eval\(", re.IGNORECASE),
    re.compile(r"setTimeout\(", re.IGNORECASE),
]


class ActivityType(Enum):
    RAPID_REQUESTS = "rapid_requests"
    UNUSUAL_INPUT = "unusual_input"
    SESSION_ANOMALY = "session_anomaly"
    XSS_ATTEMPT = "xss_attempt"


@dataclass
class SuspiciousActivity:
    activity_type: ActivityType
    timestamp: datetime
    details: dict[str, Any] = field(default_factory=dict)


class SecurityMonitor:
    def __init__(
        self,
        event_logger: SecurityEventLogger | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._event_logger = event_logger or SecurityEventLogger()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._activity: list[SuspiciousActivity] = []

    @property
    def activity(self) -> list[SuspiciousActivity]:
        return list(self._activity)

    def report(self, activity_type: ActivityType, details: dict[str, Any] | None = None) -> None:
        now = self._clock()
        self._activity.append(SuspiciousActivity(activity_type, now, details or {}))
        self._activity = [a for a in self._activity if now - a.timestamp < HISTORY_WINDOW]
        self._analyze(now)

    def _analyze(self, now: datetime) -> None:
        recent = [a for a in self._activity if now - a.timestamp < ANALYSIS_WINDOW]

        if len(recent) > HIGH_ACTIVITY_THRESHOLD:
            self._event_logger.log(
                SecurityEventType.HIGH_SUSPICIOUS_ACTIVITY,
                Severity.HIGH,
                activity_count=len(recent),
                types=[a.activity_type.value for a in recent],
            )

        xss_attempts = [a for a in recent if a.activity_type == ActivityType.XSS_ATTEMPT]
        if len(xss_attempts) > XSS_ATTEMPT_THRESHOLD:
            self._event_logger.log(
                SecurityEventType.MULTIPLE_XSS_ATTEMPTS,
                Severity.HIGH,
                attempts=len(xss_attempts),
            )


def contains_xss_marker(value: str) -> bool:
    return any(pattern.search(value) for pattern in XSS_MARKERS)


def sanitize_link(value: str | None) -> str:
    """Sanitize a link target, also allowing mailto: and tel: targets."""
    if not value:
        return ""
    value = value.strip()
    lowered = value.lower()
    if "javascript:" in lowered or "data:" in lowered or "<script" in lowered:
        return ""

    scheme = lowered.split(":", 1)[0] if ":" in lowered else ""
    if scheme in ("mailto", "tel"):
        return CONTACT_LINK_UNSAFE_CHARS.sub(lambda m: quote(m.group(0), safe=""), value)
    return canonicalize_url(value, SAFE_LINK_SCHEMES) or ""


def validate_and_sanitize(
    value: str | None,
    kind: str = "text",
    monitor: SecurityMonitor | None = None,
) -> str:
    """Sanitize ``value`` and report XSS markers to ``monitor``.

    ``kind`` is one of "text" (strict entity encoding), "html" or "url".
    """
    if not value:
        return ""

    if monitor is not None and contains_xss_marker(value):
        logger.debug("XSS marker found in %s input", kind)
        monitor.report(ActivityType.XSS_ATTEMPT, {"input": value[:100], "type": kind})

    if kind == "html":
        return sanitize_html(value)
    if kind == "url":
        return sanitize_link(value)
    return encode_strict(value)
