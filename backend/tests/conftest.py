"""
Test configuration and shared fixtures for the slot engine test suite.

Uses an in-memory SQLite database per test, with the schema built from the
model metadata. Each test gets a fresh, empty database.
"""

import os

# Must be set before any application module reads core.config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENABLE_SCHEDULERS"] = "false"
os.environ["FACILITY_TIMEZONE"] = "America/Chicago"

import pytest
from contextlib import contextmanager
from typing import Generator
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core.database import Base, get_db
import models  # noqa: F401  # register every model on Base.metadata


@pytest.fixture(scope="function")
def db_engine():
    """
    Create a fresh in-memory SQLite engine for one test.

    StaticPool keeps a single connection so the in-memory database survives
    across sessions and threads (TestClient, asyncio.to_thread).
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Session factory bound to the test engine, configured like SessionLocal."""
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine, expire_on_commit=False)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """Provide a database session for a test."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def patched_db_context(session_factory):
    """
    Point get_db_context at the test database.

    Background jobs open their own sessions through get_db_context; this
    fixture swaps it for one that behaves the same (commit on success,
    rollback on failure) against the test engine.
    """
    @contextmanager
    def _context() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    with patch("services.slot_generation_scheduler.get_db_context", _context), \
            patch("services.reservation_release_service.get_db_context", _context):
        yield _context


@pytest.fixture
def client(db_session) -> Generator[TestClient, None, None]:
    """TestClient with the get_db dependency bound to the test session."""
    from main import app

    def override_get_db() -> Generator[Session, None, None]:
        try:
            yield db_session
        finally:
            # Don't close the session as it's managed by the test fixture
            pass

    app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.pop(get_db, None)
