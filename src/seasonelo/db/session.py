"""
Database session management for SeasonElo.

Provides SQLAlchemy engine and session factory with connection pooling
configured from config.py.

Usage:
    # As a context manager (recommended for scripts)
    from seasonelo.db import get_session

    with get_session() as session:
        seasons = session.query(Season).all()
        # Commits automatically on exit, rolls back on exception

    # With an explicit factory (tests, embedded use)
    factory = make_session_factory(engine)
    with get_session(factory) as session:
        ...
"""

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from seasonelo.config import settings


def get_engine(database_url: Optional[str] = None) -> Engine:
    """
    Create SQLAlchemy engine.

    The engine is configured with:
    - Connection pool sizing for server databases (SQLite manages its own)
    - Echo mode only when LOG_LEVEL=DEBUG
    - Pre-ping to verify connections before use (handles stale connections)
    """
    url = database_url or settings.database_url
    kwargs = {
        "pool_pre_ping": True,
        "echo": settings.log_level == "DEBUG",
    }
    if url.startswith("sqlite"):
        # Sessions may be used from request threads other than the creator
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_size"] = settings.db_pool_size
        kwargs["max_overflow"] = settings.db_max_overflow

    return create_engine(url, **kwargs)


def make_session_factory(engine: Engine) -> sessionmaker:
    """Build a session factory bound to ``engine``."""
    return sessionmaker(
        autocommit=False,  # Commits are explicit
        autoflush=False,  # Flushes are explicit too
        expire_on_commit=False,  # Returned rows stay readable after commit
        bind=engine,
    )


# Singleton engine, created lazily so importing this module never connects
_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def _get_engine() -> Engine:
    """Get or create the singleton engine instance."""
    global _engine
    if _engine is None:
        _engine = get_engine()
    return _engine


def SessionLocal() -> Session:
    """Create a session bound to the default engine."""
    global _session_factory
    if _session_factory is None:
        _session_factory = make_session_factory(_get_engine())
    return _session_factory()


@contextmanager
def get_session(factory=None) -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Automatically commits on successful exit, rolls back on exception.
    This is the only way the ledger writes: a mutation and the recompute
    it triggers share one session, so readers never see half of it.

    Args:
        factory: Optional session factory. Defaults to the settings engine.

    Raises:
        Any exception from the database operation (after rollback)
    """
    session = factory() if factory is not None else SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
