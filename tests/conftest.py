"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from seasonelo.db.models import Base
from seasonelo.db.session import get_session, make_session_factory
from seasonelo.elo.calculator import EloParams, RatingModel
from seasonelo.seasons import create_season
from seasonelo.services.coordinator import RecomputationCoordinator


@pytest.fixture
def test_engine():
    """
    Create a test database engine.

    Uses SQLite in-memory for fast tests. StaticPool keeps a single
    connection so every session sees the same database. The coordinator
    commits, so each test gets a fresh engine instead of a rolled-back
    transaction.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """
    File-backed SQLite engine for tests that write from several threads.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        echo=False,
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return make_session_factory(test_engine)


@pytest.fixture
def db_session(session_factory):
    """
    Create a database session for a test.

    Nothing is committed unless the test does it.
    """
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def model():
    """Rating model with the default constants (K=32, S=400, baseline 1000)."""
    return RatingModel(EloParams())


@pytest.fixture
def season_id(session_factory):
    """A committed, active season."""
    with get_session(session_factory) as session:
        season = create_season(session, "Season 1", active=True)
        return season.id


@pytest.fixture
def coordinator(test_engine, session_factory, model):
    return RecomputationCoordinator(
        test_engine,
        session_factory=session_factory,
        model=model,
        recompute_mode="incremental",
        lock_timeout_seconds=5,
        max_score_diff=960,
        score_diff_step=5,
        recent_matches_limit=8,
    )
