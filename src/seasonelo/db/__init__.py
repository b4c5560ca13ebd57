"""
Database module for SeasonElo.

Provides SQLAlchemy ORM models and session management.

Usage:
    from seasonelo.db import get_session, Season, Match

    with get_session() as session:
        seasons = session.query(Season).all()
"""

from seasonelo.db.models import (
    Base,
    Match,
    Player,
    RatingCheckpoint,
    Season,
    SeasonRating,
)
from seasonelo.db.session import SessionLocal, get_engine, get_session, make_session_factory

__all__ = [
    # Base
    "Base",
    # Models
    "Season",
    "Player",
    "Match",
    "SeasonRating",
    "RatingCheckpoint",
    # Session
    "get_session",
    "get_engine",
    "make_session_factory",
    "SessionLocal",
]
