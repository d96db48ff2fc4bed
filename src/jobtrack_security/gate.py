"""Composite pre-flight check: rate limit first, then admin status."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar

from .remote import LimitType, RateLimitClient, RateLimitResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMITED_MESSAGE = "Rate limit exceeded. Please try again later."
AUTH_REQUIRED_MESSAGE = "Authentication required"
ADMIN_REQUIRED_MESSAGE = "Admin access required"
VALIDATION_FAILED_MESSAGE = "Security validation failed"


class AdminChecker(Protocol):
    async def is_admin(self, email: str | None) -> bool: ...


@dataclass
class GateResult:
    is_authorized: bool
    error: str | None = None


@dataclass
class SubmitResult(Generic[T]):
    success: bool
    error: str | None = None
    data: T | None = None


class SecurityGate:
    def __init__(
        self,
        rate_limit_client: RateLimitClient | None = None,
        admin_checker: AdminChecker | None = None,
    ):
        self._rate_limit_client = rate_limit_client
        self._admin_checker = admin_checker

    async def _admin_error(self, user_email: str | None) -> str | None:
        if not user_email:
            return AUTH_REQUIRED_MESSAGE
        if self._admin_checker is None or not await self._admin_checker.is_admin(user_email):
            return ADMIN_REQUIRED_MESSAGE
        return None

    async def _rate_limit(self, action: str, limit_type: LimitType | str) -> RateLimitResult:
        if self._rate_limit_client is None:
            return RateLimitResult(allowed=True)
        return await self._rate_limit_client.check(action, limit_type)

    async def check(
        self,
        user_email: str | None = None,
        require_admin: bool = False,
        rate_limit_action: str | None = None,
        limit_type: LimitType | str = LimitType.GENERAL,
    ) -> GateResult:
        """Authorize a protected view. Unexpected failures deny."""
        try:
            if rate_limit_action:
                result = await self._rate_limit(rate_limit_action, limit_type)
                if not result.allowed:
                    return GateResult(False, RATE_LIMITED_MESSAGE)

            if require_admin:
                error = await self._admin_error(user_email)
                if error:
                    return GateResult(False, error)
        except Exception as e:
            logger.error("Security check failed: %s", e)
            return GateResult(False, VALIDATION_FAILED_MESSAGE)

        return GateResult(True)

    async def secure_submit(
        self,
        action: str,
        form_data: T,
        limit_type: LimitType | str = LimitType.GENERAL,
        require_admin: bool = False,
        user_email: str | None = None,
        on_rate_limit: Callable[[RateLimitResult], Any] | None = None,
        on_admin_required: Callable[[], Any] | None = None,
    ) -> SubmitResult[T]:
        result = await self._rate_limit(action, limit_type)
        if not result.allowed:
            if on_rate_limit:
                on_rate_limit(result)
            return SubmitResult(False, error=result.message or "Rate limit exceeded")

        if require_admin:
            error = await self._admin_error(user_email)
            if error:
                if on_admin_required:
                    on_admin_required()
                return SubmitResult(False, error=error)

        return SubmitResult(True, data=form_data)
