"""HTTP clients for the server-side admin verification and rate-limit endpoints.

The two clients fail in opposite directions: admin verification
raises (and callers deny), while the rate-limit check fails open when the
service cannot be reached.
"""

import logging
from dataclasses import dataclass
from enum import Enum

import httpx

from .auth.models import normalize_email

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
ADMIN_VERIFY_PATH = "/api/admin/verify"
RATE_LIMIT_PATH = "/api/rate-limit"


class LimitType(Enum):
    GENERAL = "general"
    FEEDBACK = "feedback"
    ADMIN = "admin"
    AUTH = "auth"


class AdminVerificationError(Exception):
    """Raised when the admin verification endpoint gives no usable verdict."""

    pass


class AccessDeniedError(Exception):
    pass


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int | None = None
    total: int | None = None
    reset_time: str | None = None
    message: str | None = None


class AdminVerificationClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def verify(self, email: str) -> bool:
        normalized = normalize_email(email)
        if not normalized:
            raise AdminVerificationError("Email is required for admin verification")

        try:
            async with httpx.AsyncClient(
                base_url=self._base_url, timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    ADMIN_VERIFY_PATH, json={"email": normalized, "action": "verify"}
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise AdminVerificationError(
                f"Admin verification failed: HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise AdminVerificationError(f"Admin verification request failed: {e}") from e
        except ValueError as e:
            raise AdminVerificationError("Admin verification returned invalid JSON") from e

        if not isinstance(data, dict) or "error" in data:
            message = data.get("error") if isinstance(data, dict) else data
            raise AdminVerificationError(f"Admin verification error: {message}")

        is_admin = data.get("isAdmin")
        if not isinstance(is_admin, bool):
            raise AdminVerificationError("Admin verification response missing isAdmin")
        return is_admin


async def verify_admin_status(email: str | None, client: AdminVerificationClient) -> bool:
    """Return the server verdict, or False when it cannot be obtained."""
    if not email:
        return False
    try:
        return await client.verify(email)
    except AdminVerificationError as e:
        logger.error("%s", e)
        return False


async def require_admin_access(email: str | None, client: AdminVerificationClient) -> None:
    if not email:
        raise AccessDeniedError("Authentication required")
    if not await verify_admin_status(email, client):
        raise AccessDeniedError("Admin access required")


class RateLimitClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def check(
        self, action: str, limit_type: LimitType | str = LimitType.GENERAL
    ) -> RateLimitResult:
        limit_value = limit_type.value if isinstance(limit_type, LimitType) else limit_type
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url, timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    RATE_LIMIT_PATH, json={"action": action, "limitType": limit_value}
                )
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            # Fail open: an unreachable limiter must not block the user.
            logger.error("Rate limit check failed: %s", e)
            return RateLimitResult(allowed=True, message="Rate limit service unavailable")

        if not isinstance(data, dict):
            data = {}

        if not response.is_success:
            return RateLimitResult(
                allowed=False,
                reset_time=data.get("resetTime"),
                message=data.get("message") or data.get("error") or "Rate limit exceeded",
            )

        return RateLimitResult(
            allowed=True,
            remaining=data.get("remaining"),
            total=data.get("total"),
            reset_time=data.get("resetTime"),
        )
