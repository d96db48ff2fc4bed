"""Security event models."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

SENSITIVE_PATTERNS = [
    "password",
    "passwd",
    "secret",
    "token",
    "api_key",
    "credential",
    "fingerprint",
]


class SecurityEventType(Enum):
    XSS_ATTEMPT = "XSS_ATTEMPT"
    SESSION_ANOMALY = "SESSION_ANOMALY"
    SESSION_TIMEOUT = "SESSION_TIMEOUT"
    SESSION_TERMINATED = "SESSION_TERMINATED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    ADMIN_ACCESS = "ADMIN_ACCESS"
    ADMIN_ACCESS_DENIED = "ADMIN_ACCESS_DENIED"
    TEAM_CHANGE = "TEAM_CHANGE"
    SUSPICIOUS_ACTIVITY = "SUSPICIOUS_ACTIVITY"
    HIGH_SUSPICIOUS_ACTIVITY = "HIGH_SUSPICIOUS_ACTIVITY"
    MULTIPLE_XSS_ATTEMPTS = "MULTIPLE_XSS_ATTEMPTS"


class Severity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class SecurityEvent:
    event_type: SecurityEventType
    severity: Severity = Severity.LOW
    details: dict[str, Any] = field(default_factory=dict)
    user_email: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def sanitize_details(self) -> dict[str, Any]:
        """Redact credential-like values from details.

        Keys are matched case-insensitively against SENSITIVE_PATTERNS, nested
        dicts and lists of dicts are walked.
        """
        if not self.details:
            return {}
        return self._sanitize_nested(self.details)

    def _sanitize_nested(self, d: dict[str, Any]) -> dict[str, Any]:
        sanitized: dict[str, Any] = {}
        for key, value in d.items():
            key_lower = key.lower()
            if any(pattern in key_lower for pattern in SENSITIVE_PATTERNS):
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, dict):
                sanitized[key] = self._sanitize_nested(value)
            elif isinstance(value, list):
                sanitized[key] = [
                    self._sanitize_nested(v) if isinstance(v, dict) else v for v in value
                ]
            else:
                sanitized[key] = value
        return sanitized

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_email": self.user_email,
            "timestamp": self.timestamp.isoformat(),
            "details": self.sanitize_details(),
        }
