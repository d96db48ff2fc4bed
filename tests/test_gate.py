"""Tests for the composite security gate."""

import httpx
import pytest

from jobtrack_security.gate import (
    ADMIN_REQUIRED_MESSAGE,
    AUTH_REQUIRED_MESSAGE,
    RATE_LIMITED_MESSAGE,
    VALIDATION_FAILED_MESSAGE,
    SecurityGate,
)
from jobtrack_security.remote import RateLimitClient

BASE_URL = "https://tracker.example"


def rate_limit_client(allowed: bool, message: str | None = None) -> RateLimitClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if allowed:
            return httpx.Response(200, json={"allowed": True, "remaining": 4, "total": 5})
        body = {"error": "Rate limit exceeded"}
        if message:
            body["message"] = message
        return httpx.Response(429, json=body)

    return RateLimitClient(BASE_URL, transport=httpx.MockTransport(handler))


class FakeAdminChecker:
    def __init__(self, admins: set[str] | None = None, error: Exception | None = None):
        self.admins = admins or set()
        self.error = error
        self.calls: list[str | None] = []

    async def is_admin(self, email: str | None) -> bool:
        self.calls.append(email)
        if self.error is not None:
            raise self.error
        return email in self.admins


class TestCheck:
    @pytest.mark.asyncio
    async def test_open_view(self):
        result = await SecurityGate().check()
        assert result.is_authorized
        assert result.error is None

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        checker = FakeAdminChecker({"boss@co.com"})
        gate = SecurityGate(rate_limit_client(False), checker)

        result = await gate.check("boss@co.com", True, rate_limit_action="view_admin")

        assert not result.is_authorized
        assert result.error == RATE_LIMITED_MESSAGE
        assert checker.calls == []

    @pytest.mark.asyncio
    async def test_rate_limit_skipped_without_action(self):
        gate = SecurityGate(rate_limit_client(False))
        assert (await gate.check()).is_authorized

    @pytest.mark.asyncio
    async def test_admin_required_without_email(self):
        gate = SecurityGate(admin_checker=FakeAdminChecker({"boss@co.com"}))

        result = await gate.check(require_admin=True)

        assert result.error == AUTH_REQUIRED_MESSAGE

    @pytest.mark.asyncio
    async def test_admin_required_for_non_admin(self):
        gate = SecurityGate(rate_limit_client(True), FakeAdminChecker({"boss@co.com"}))

        result = await gate.check("dev@co.com", True, rate_limit_action="view_admin")

        assert not result.is_authorized
        assert result.error == ADMIN_REQUIRED_MESSAGE

    @pytest.mark.asyncio
    async def test_admin_allowed(self):
        gate = SecurityGate(rate_limit_client(True), FakeAdminChecker({"boss@co.com"}))
        result = await gate.check("boss@co.com", True, rate_limit_action="view_admin")
        assert result.is_authorized

    @pytest.mark.asyncio
    async def test_missing_checker_denies(self):
        result = await SecurityGate().check("boss@co.com", require_admin=True)
        assert result.error == ADMIN_REQUIRED_MESSAGE

    @pytest.mark.asyncio
    async def test_checker_error_denies(self):
        gate = SecurityGate(admin_checker=FakeAdminChecker(error=RuntimeError("boom")))

        result = await gate.check("boss@co.com", require_admin=True)

        assert not result.is_authorized
        assert result.error == VALIDATION_FAILED_MESSAGE


class TestSecureSubmit:
    @pytest.mark.asyncio
    async def test_success_returns_data(self):
        form = {"title": "Bug", "body": "It broke"}
        result = await SecurityGate(rate_limit_client(True)).secure_submit("feedback", form)

        assert result.success
        assert result.data == form
        assert result.error is None

    @pytest.mark.asyncio
    async def test_rate_limited_calls_back(self):
        seen = []
        gate = SecurityGate(rate_limit_client(False, "Slow down"))

        result = await gate.secure_submit("feedback", {}, on_rate_limit=seen.append)

        assert not result.success
        assert result.error == "Slow down"
        assert len(seen) == 1
        assert not seen[0].allowed

    @pytest.mark.asyncio
    async def test_admin_required_calls_back(self):
        calls = []
        gate = SecurityGate(rate_limit_client(True), FakeAdminChecker())

        result = await gate.secure_submit(
            "update_role",
            {"role": "admin"},
            require_admin=True,
            user_email="dev@co.com",
            on_admin_required=lambda: calls.append("denied"),
        )

        assert not result.success
        assert result.error == ADMIN_REQUIRED_MESSAGE
        assert result.data is None
        assert calls == ["denied"]

    @pytest.mark.asyncio
    async def test_admin_submit(self):
        gate = SecurityGate(admin_checker=FakeAdminChecker({"boss@co.com"}))

        result = await gate.secure_submit(
            "update_role", {"role": "viewer"}, require_admin=True, user_email="boss@co.com"
        )

        assert result.success
