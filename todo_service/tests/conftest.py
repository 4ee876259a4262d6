"""
Pytest configuration for todo_service: in-memory SQLite and the shared test signing secret.
"""
import os

import pytest

os.environ["TODO_DATABASE_URL"] = "sqlite:///:memory:"
os.environ.setdefault("AUTH_JWT_SECRET", "test-signing-secret-0123456789abcdef-0123456789")

from todo_service.database import engine, init_db  # noqa: E402
from todo_service.models import Base  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    init_db()
    yield
