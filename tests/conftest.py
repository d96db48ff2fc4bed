"""Pytest configuration and fixtures for jobtrack-security tests."""

from datetime import UTC, datetime, timedelta

import pytest

from jobtrack_security.audit import SecurityEventLogger
from jobtrack_security.auth.models import TeamMember, TeamRole
from jobtrack_security.auth.roles import permissions_for

EPOCH = datetime(2024, 1, 15, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced clock for expiry tests."""

    def __init__(self, start: datetime = EPOCH):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def make_member(
    email: str,
    role: TeamRole = TeamRole.ADMIN,
    is_active: bool = True,
    added_by: str = "root@co.com",
) -> TeamMember:
    return TeamMember(
        id=f"id-{email}",
        email=email,
        role=role,
        added_by=added_by,
        added_at=EPOCH,
        permissions=permissions_for(role),
        is_active=is_active,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def event_logger() -> SecurityEventLogger:
    return SecurityEventLogger()
