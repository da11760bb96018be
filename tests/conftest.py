"""
Shared fixtures for CDN stats tests.
"""

import os

# Must be set before cdnstats.config is imported
os.environ.setdefault("CDNSTATS_DB_URL", "sqlite://")

import pytest

from cdnstats.database import Base, SessionLocal, engine
import cdnstats.models  # noqa: F401  registers tables
from helpers import FakeSession, make_line


@pytest.fixture
def db_session():
    """Fresh in-memory schema for each test."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def sample_log_text():
    """Three requests for one host over 60 seconds plus noise."""
    return "\n".join([
        make_line(size="500000", timestamp="[10/Sep/2025:06:45:01 +0000]"),
        make_line(size="300000", timestamp="[10/Sep/2025:06:45:31 +0000]"),
        "",
        make_line(size="200000", timestamp="[10/Sep/2025:06:46:01 +0000]"),
        make_line(host="rare.example.net", size="999999999"),
        make_line(host="rare.example.net", size="1"),
    ])


@pytest.fixture
def fake_session_factory():
    return FakeSession


@pytest.fixture
def line_factory():
    return make_line
