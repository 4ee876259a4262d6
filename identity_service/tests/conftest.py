"""
Pytest configuration for identity_service. In-memory SQLite, cheap bcrypt, no rate limiting,
and a fixed signing secret, all set before the app module is imported.
"""
import os
from datetime import datetime, timedelta, timezone

import pytest

os.environ["AUTH_DATABASE_URL"] = "sqlite:///:memory:"
os.environ.setdefault("AUTH_JWT_SECRET", "test-signing-secret-0123456789abcdef-0123456789")
os.environ["AUTH_BCRYPT_ROUNDS"] = "4"
os.environ["AUTH_RATE_LIMIT_LOGIN_PER_MINUTE"] = "0"
os.environ["AUTH_RATE_LIMIT_REGISTER_PER_MINUTE"] = "0"
os.environ["AUTH_COOKIE_SECURE"] = "auto"

from identity_service import rate_limit  # noqa: E402
from identity_service.database import engine, init_db  # noqa: E402
from identity_service.models import Base  # noqa: E402


class FakeClock:
    """Settable time source for the issuer and verifier."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(autouse=True)
def fresh_db():
    """Every test starts from empty tables and an empty rate-limit window."""
    Base.metadata.drop_all(bind=engine)
    init_db()
    rate_limit.reset()
    yield


@pytest.fixture
def fake_clock():
    return FakeClock()
