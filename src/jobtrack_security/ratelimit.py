"""Sliding-window rate limiter behind the rate-limit and admin verification endpoints.

Requests are tracked per ``client:action`` key. Once a key reaches its limit
inside the window it is blocked for the limit class's block duration, after
which its history starts over.
"""

import logging
import math
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from .audit import SecurityEventLogger, SecurityEventType, Severity
from .auth.store import Clock, InMemoryStore, StateStore, utc_now
from .remote import LimitType

logger = logging.getLogger(__name__)

IDLE_RECORD_TTL = timedelta(hours=1)
USER_AGENT_PREFIX = 50
DEFAULT_RETRY_AFTER = 300
EXCEEDED_MESSAGE = "Too many requests. Please try again later."

ENV_ADMIN_EMAILS = "ADMIN_EMAILS"
ENV_PUBLIC_ADMIN_EMAILS = "NEXT_PUBLIC_ADMIN_EMAILS"
ADMIN_VERIFY_ACTION = "admin-verify"


@dataclass(frozen=True)
class LimitConfig:
    window: timedelta
    max_requests: int
    block_duration: timedelta


RATE_LIMITS: dict[LimitType, LimitConfig] = {
    LimitType.GENERAL: LimitConfig(timedelta(minutes=1), 100, timedelta(minutes=5)),
    LimitType.FEEDBACK: LimitConfig(timedelta(minutes=1), 10, timedelta(minutes=10)),
    LimitType.ADMIN: LimitConfig(timedelta(minutes=1), 50, timedelta(minutes=15)),
    LimitType.AUTH: LimitConfig(timedelta(minutes=1), 5, timedelta(minutes=30)),
}

# Per-IP budget for the admin verification endpoint.
ADMIN_VERIFY_LIMITS: dict[LimitType, LimitConfig] = {
    LimitType.ADMIN: LimitConfig(timedelta(minutes=1), 10, timedelta(minutes=1)),
}


@dataclass
class WindowRecord:
    requests: list[datetime] = field(default_factory=list)
    blocked_until: datetime | None = None


@dataclass
class LimitDecision:
    allowed: bool
    reset_at: datetime
    remaining: int | None = None
    total: int | None = None


def client_ip(headers: Mapping[str, str]) -> str:
    """First forwarded hop, then the real-IP headers, matched case-insensitively."""
    lowered = {k.lower(): v for k, v in headers.items()}
    forwarded = lowered.get("x-forwarded-for", "")
    return (
        forwarded.split(",")[0].strip()
        or lowered.get("x-real-ip")
        or lowered.get("cf-connecting-ip")
        or "unknown"
    )


def client_identifier(headers: Mapping[str, str]) -> str:
    """Build ``ip:user-agent-prefix`` from request headers."""
    lowered = {k.lower(): v for k, v in headers.items()}
    user_agent = lowered.get("user-agent") or "unknown"
    return f"{client_ip(headers)}:{user_agent[:USER_AGENT_PREFIX]}"


def parse_limit_type(value: LimitType | str) -> LimitType:
    if isinstance(value, LimitType):
        return value
    return LimitType(value)


class SlidingWindowRateLimiter:
    def __init__(
        self,
        limits: dict[LimitType, LimitConfig] | None = None,
        store: StateStore | None = None,
        clock: Clock | None = None,
        event_logger: SecurityEventLogger | None = None,
    ):
        self._limits = limits or RATE_LIMITS
        self._store = store if store is not None else InMemoryStore()
        self._clock = clock or utc_now
        self._event_logger = event_logger or SecurityEventLogger()

    def now(self) -> datetime:
        return self._clock()

    def check(
        self, identifier: str, action: str, limit_type: LimitType | str = LimitType.GENERAL
    ) -> LimitDecision:
        config = self._limits[parse_limit_type(limit_type)]
        key = f"{identifier}:{action}"
        now = self._clock()

        record: WindowRecord | None = self._store.get(key)
        if record is None:
            record = WindowRecord()
            self._store.set(key, record)

        if record.blocked_until is not None:
            if now < record.blocked_until:
                return LimitDecision(allowed=False, reset_at=record.blocked_until)
            record.blocked_until = None
            record.requests = []

        window_start = now - config.window
        record.requests = [t for t in record.requests if t > window_start]

        if len(record.requests) >= config.max_requests:
            record.blocked_until = now + config.block_duration
            logger.warning(
                "Rate limit exceeded for %s, blocked until %s", key, record.blocked_until
            )
            self._event_logger.log(
                SecurityEventType.RATE_LIMIT_EXCEEDED,
                Severity.MEDIUM,
                key=key,
                blocked_until=record.blocked_until.isoformat(),
            )
            return LimitDecision(allowed=False, reset_at=record.blocked_until)

        record.requests.append(now)
        return LimitDecision(
            allowed=True,
            reset_at=now,
            remaining=config.max_requests - len(record.requests),
            total=config.max_requests,
        )

    def sweep(self) -> int:
        """Drop records blocked or idle for more than an hour."""
        now = self._clock()
        removed = 0
        for key in self._store.keys():
            record: WindowRecord | None = self._store.get(key)
            if record is None:
                continue
            if record.blocked_until is not None:
                stale = now - record.blocked_until > IDLE_RECORD_TTL
            else:
                stale = not record.requests or max(record.requests) < now - IDLE_RECORD_TTL
            if stale:
                self._store.delete(key)
                removed += 1
        if removed:
            logger.info("Swept %d idle rate limit records", removed)
        return removed


def handle_rate_limit_request(
    limiter: SlidingWindowRateLimiter,
    headers: Mapping[str, str],
    payload: Any,
) -> tuple[int, dict[str, Any], dict[str, str]]:
    """Evaluate a rate-limit request body. Returns (status, body, response headers)."""
    if not isinstance(payload, dict):
        return 400, {"error": "Action is required"}, {}

    action = payload.get("action")
    if not action or not isinstance(action, str):
        return 400, {"error": "Action is required"}, {}

    try:
        limit_type = parse_limit_type(payload.get("limitType", LimitType.GENERAL.value))
    except ValueError:
        return 400, {"error": "Invalid limit type"}, {}

    decision = limiter.check(client_identifier(headers), action, limit_type)

    if not decision.allowed:
        seconds = (decision.reset_at - limiter.now()).total_seconds()
        retry_after = math.ceil(seconds) if seconds > 0 else DEFAULT_RETRY_AFTER
        body = {
            "error": "Rate limit exceeded",
            "resetTime": decision.reset_at.isoformat(),
            "message": EXCEEDED_MESSAGE,
        }
        return 429, body, {"Retry-After": str(retry_after)}

    return (
        200,
        {
            "allowed": True,
            "remaining": decision.remaining,
            "total": decision.total,
            "resetTime": decision.reset_at.isoformat(),
        },
        {},
    )


def admin_emails_from_env(environ: Mapping[str, str] | None = None) -> frozenset[str]:
    """Admin allow-list from ``ADMIN_EMAILS``, lowercased and trimmed.

    ``NEXT_PUBLIC_ADMIN_EMAILS`` is read when the server-side variable is unset.
    """
    source = os.environ if environ is None else environ
    raw = source.get(ENV_ADMIN_EMAILS) or source.get(ENV_PUBLIC_ADMIN_EMAILS) or ""
    emails = frozenset(e.strip() for e in raw.lower().split(",") if e.strip())
    if not emails:
        logger.warning(
            "No admin emails configured (%s or %s)", ENV_ADMIN_EMAILS, ENV_PUBLIC_ADMIN_EMAILS
        )
    return emails


def admin_verify_limiter(
    clock: Clock | None = None, event_logger: SecurityEventLogger | None = None
) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(ADMIN_VERIFY_LIMITS, clock=clock, event_logger=event_logger)


def handle_admin_verify_request(
    limiter: SlidingWindowRateLimiter,
    headers: Mapping[str, str],
    payload: Any,
    admin_emails: frozenset[str] | None = None,
) -> tuple[int, dict[str, Any], dict[str, str]]:
    """Answer an admin verification request. Returns (status, body, response headers).

    The limiter should come from ``admin_verify_limiter`` so each client IP is
    held to ten requests a minute. The allow-list defaults to the environment.
    """
    ip = client_ip(headers)
    if not limiter.check(ip, ADMIN_VERIFY_ACTION, LimitType.ADMIN).allowed:
        return 429, {"error": "Rate limit exceeded"}, {}

    email = payload.get("email") if isinstance(payload, dict) else None
    if not email or not isinstance(email, str):
        return 400, {"error": "Invalid email provided"}, {}

    if admin_emails is None:
        admin_emails = admin_emails_from_env()
    normalized = email.lower().strip()
    is_admin = normalized in admin_emails
    if payload.get("action") == "verify":
        logger.debug("Admin verification for %s from %s: %s", normalized, ip, is_admin)

    return 200, {"isAdmin": is_admin, "timestamp": limiter.now().isoformat()}, {}
