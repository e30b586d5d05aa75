"""Shared fixtures for the party venues test suite."""

import tempfile
from pathlib import Path

import pytest
from sqlalchemy.orm import Session, sessionmaker

from party_venues.db.engine import create_db_engine
from party_venues.db.models import Base
from party_venues.ingestion.config import reset_default_config


@pytest.fixture
def temp_db_path():
    """Create a temporary database file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.db"


@pytest.fixture
def engine(temp_db_path):
    """Create a test database engine with foreign keys enforced."""
    engine = create_db_engine(temp_db_path)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine) -> Session:
    """Create a database session for testing."""
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def _reset_config():
    """Keep the cached pipeline config from leaking between tests."""
    reset_default_config()
    yield
    reset_default_config()
