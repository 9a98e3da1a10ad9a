"""Pytest configuration and fixtures."""

import os

# Settings are read at import time; point them at an in-memory database first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_LEVEL", "DEBUG")

import pytest

from utm_magic.core.database import Base, SessionLocal, engine, get_db
from utm_magic import models  # noqa: F401
from utm_magic.client.storage import MemoryStore


@pytest.fixture
def db_session():
    """Create a test database session."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db_session):
    """Create a test FastAPI client."""
    from fastapi.testclient import TestClient
    from utm_magic.main import app

    app.dependency_overrides[get_db] = lambda: db_session

    with TestClient(app) as test_client:
        yield test_client
        # Release the session before lifespan shutdown disposes the engine
        db_session.close()

    app.dependency_overrides.clear()


class FakeClock:
    """A settable clock for session and queue timing."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def persistent():
    return MemoryStore()


@pytest.fixture
def session_store():
    return MemoryStore()
