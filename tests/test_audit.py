"""Tests for security event models and the event logger."""

import json
import logging

from jobtrack_security.audit import (
    SecurityEvent,
    SecurityEventLogger,
    SecurityEventType,
    Severity,
)


class TestSecurityEvent:
    def test_defaults(self):
        event = SecurityEvent(event_type=SecurityEventType.ADMIN_ACCESS)
        assert event.severity == Severity.LOW
        assert event.details == {}
        assert event.timestamp.tzinfo is not None

    def test_sensitive_details_redacted(self):
        event = SecurityEvent(
            event_type=SecurityEventType.SESSION_ANOMALY,
            details={
                "reason": "mismatch",
                "Fingerprint": "abc123",
                "nested": {"api_key": "k", "ok": 1},
                "items": [{"password": "p"}, "plain"],
            },
        )

        sanitized = event.sanitize_details()

        assert sanitized["reason"] == "mismatch"
        assert sanitized["Fingerprint"] == "[REDACTED]"
        assert sanitized["nested"] == {"api_key": "[REDACTED]", "ok": 1}
        assert sanitized["items"] == [{"password": "[REDACTED]"}, "plain"]

    def test_to_dict(self):
        event = SecurityEvent(
            event_type=SecurityEventType.XSS_ATTEMPT,
            severity=Severity.HIGH,
            user_email="a@b.com",
        )
        data = event.to_dict()
        assert data["event_type"] == "XSS_ATTEMPT"
        assert data["severity"] == "high"
        assert data["user_email"] == "a@b.com"
        json.dumps(data)


class TestSecurityEventLogger:
    def test_log_returns_event_and_records_history(self):
        event_logger = SecurityEventLogger()
        event = event_logger.log(SecurityEventType.TEAM_CHANGE, action="add_member")

        assert event.details == {"action": "add_member"}
        assert event_logger.recent() == [event]

    def test_recent_filters_by_type(self):
        event_logger = SecurityEventLogger()
        event_logger.log(SecurityEventType.TEAM_CHANGE)
        event_logger.log(SecurityEventType.XSS_ATTEMPT)

        assert len(event_logger.recent(SecurityEventType.XSS_ATTEMPT)) == 1

    def test_history_is_bounded(self):
        event_logger = SecurityEventLogger(history_size=2)
        for _ in range(5):
            event_logger.log(SecurityEventType.ADMIN_ACCESS)
        assert len(event_logger.recent()) == 2

    def test_clear(self):
        event_logger = SecurityEventLogger()
        event_logger.log(SecurityEventType.ADMIN_ACCESS)
        event_logger.clear()
        assert event_logger.recent() == []

    def test_severity_mapped_to_log_level(self, caplog):
        event_logger = SecurityEventLogger()
        with caplog.at_level(logging.INFO, logger="jobtrack_security.audit.logger"):
            event_logger.log(SecurityEventType.ADMIN_ACCESS, Severity.LOW)
            event_logger.log(SecurityEventType.SESSION_ANOMALY, Severity.HIGH)
            event_logger.log(SecurityEventType.SUSPICIOUS_ACTIVITY, Severity.CRITICAL)

        levels = [r.levelno for r in caplog.records]
        assert levels == [logging.INFO, logging.WARNING, logging.ERROR]

    def test_jsonl_sink(self, tmp_path):
        path = tmp_path / "security.jsonl"
        event_logger = SecurityEventLogger(jsonl_path=path)

        event_logger.log(SecurityEventType.XSS_ATTEMPT, Severity.MEDIUM, token="t", field="bio")

        lines = path.read_text().splitlines()
        assert len(lines) == 1
        record = json.loads(lines[0])
        assert record["details"] == {"token": "[REDACTED]", "field": "bio"}

    def test_unwritable_sink_does_not_raise(self, tmp_path):
        event_logger = SecurityEventLogger(jsonl_path=tmp_path / "missing" / "events.jsonl")
        event = event_logger.log(SecurityEventType.ADMIN_ACCESS)
        assert event_logger.recent() == [event]
