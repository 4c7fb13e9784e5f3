"""Root-level pytest fixtures for all tests.

Provides shared fixtures including:
- In-memory SQLite engine, sessions and a session factory
- Fake Drive capability and fake keychain
"""

import os
import tempfile
from collections.abc import Generator
from contextlib import contextmanager

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.db.models import Base
from tests.helpers.fake_drive import FakeDrive
from tests.helpers.fakes import FakeKeyringStore


# ============================================================================
# Pytest Markers
# ============================================================================


def pytest_configure(config):
    """Register custom markers and point the app database at a temp file."""
    config.addinivalue_line(
        "markers", "integration: marks tests requiring external services"
    )
    if not (os.environ.get("DATABASE_URL") or os.environ.get("DRIVECHAT_DB_PATH")):
        db_dir = tempfile.mkdtemp(prefix="drivechat-tests-")
        os.environ["DRIVECHAT_DB_PATH"] = os.path.join(db_dir, "drivechat.db")


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def db_engine() -> Generator[Engine, None, None]:
    """In-memory SQLite shared across threads via StaticPool."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine: Engine) -> Generator[Session, None, None]:
    """Session bound to the in-memory engine."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def session_factory(db_engine: Engine):
    """Context-manager factory with get_db_context semantics."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

    @contextmanager
    def factory():
        db = SessionLocal()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    return factory


# ============================================================================
# Fakes
# ============================================================================


@pytest.fixture
def fake_drive() -> FakeDrive:
    return FakeDrive()


@pytest.fixture
def fake_keyring() -> FakeKeyringStore:
    return FakeKeyringStore()
