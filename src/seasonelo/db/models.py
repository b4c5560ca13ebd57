"""
SQLAlchemy ORM models for SeasonElo.

The schema separates the canonical match history from the ratings derived
from it. Matches are the source of truth; season_ratings and
rating_checkpoints can always be rebuilt by replaying a season's matches
in creation order.

Key design decisions:
- Player ids are opaque strings supplied by the identity provider
- Each match side has one required and one optional player
- order_index (creation order) drives replay, created_at only drives display
- Seasons own a monotonic counter so deleted indices are never reused
- Checkpoints are not foreign-keyed to matches: a deleted match's
  checkpoints survive until the recompute that replaces them

Tables:
- seasons: Season records with the active flag and order counter
- players: Known player ids
- matches: Match results, one row per match
- season_ratings: Committed current rating per (season, player)
- rating_checkpoints: Rating before/after every applied match per participant
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from seasonelo.match_results import MatchResult


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# =============================================================================
# Season / Player Models
# =============================================================================

class Season(Base):
    """
    A bounded period grouping an ordered set of matches.

    At most one season is expected to be active at a time, but that policy
    belongs to whoever flips the flag; nothing here enforces it.
    """
    __tablename__ = "seasons"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Next creation-order index to hand out. Only ever incremented.
    next_order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    matches: Mapped[list["Match"]] = relationship(
        back_populates="season", order_by="Match.order_index"
    )

    def __repr__(self) -> str:
        return f"<Season(id={self.id}, name='{self.name}', active={self.is_active})>"


class Player(Base):
    """
    Known player identity.

    Existence and validity are checked by the caller before a match is
    submitted; rows are registered here the first time an id is referenced.
    """
    __tablename__ = "players"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Player(id='{self.id}')>"


# =============================================================================
# Match Model
# =============================================================================

class Match(Base):
    """
    A single doubles (or degenerate singles) match within a season.

    Editable fields: the four participant slots, result and score_diff.
    season_id and order_index are fixed at insertion.

    result values: 'side_a', 'side_b', 'draw'
    """
    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(primary_key=True)
    season_id: Mapped[int] = mapped_column(ForeignKey("seasons.id"), nullable=False)

    side_a_player1: Mapped[str] = mapped_column(ForeignKey("players.id"), nullable=False)
    side_a_player2: Mapped[Optional[str]] = mapped_column(ForeignKey("players.id"), nullable=True)
    side_b_player1: Mapped[str] = mapped_column(ForeignKey("players.id"), nullable=False)
    side_b_player2: Mapped[Optional[str]] = mapped_column(ForeignKey("players.id"), nullable=True)

    result: Mapped[str] = mapped_column(String(10), nullable=False)
    score_diff: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Creation order within the season - the replay key
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)

    # Display timestamp only
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    season: Mapped["Season"] = relationship(back_populates="matches")

    __table_args__ = (
        UniqueConstraint("season_id", "order_index", name="uq_matches_season_order"),
        CheckConstraint("score_diff >= 0", name="ck_matches_score_diff_non_negative"),
        CheckConstraint(
            "result IN ('side_a', 'side_b', 'draw')", name="ck_matches_result"
        ),
        Index("idx_matches_season_created_at", "season_id", "created_at"),
    )

    @property
    def side_a(self) -> tuple[str, ...]:
        """Player ids on side A (one or two)."""
        return tuple(p for p in (self.side_a_player1, self.side_a_player2) if p)

    @property
    def side_b(self) -> tuple[str, ...]:
        """Player ids on side B (one or two)."""
        return tuple(p for p in (self.side_b_player1, self.side_b_player2) if p)

    @property
    def participants(self) -> tuple[str, ...]:
        return self.side_a + self.side_b

    @property
    def match_result(self) -> MatchResult:
        return MatchResult(self.result)

    def __repr__(self) -> str:
        return (
            f"<Match(id={self.id}, season={self.season_id}, "
            f"order={self.order_index}, result='{self.result}')>"
        )


# =============================================================================
# Derived Rating State
# =============================================================================

class SeasonRating(Base):
    """Committed current rating of one player within one season."""

    __tablename__ = "season_ratings"

    id: Mapped[int] = mapped_column(primary_key=True)
    season_id: Mapped[int] = mapped_column(ForeignKey("seasons.id"), nullable=False)
    player_id: Mapped[str] = mapped_column(ForeignKey("players.id"), nullable=False)
    rating: Mapped[float] = mapped_column(Float, nullable=False)
    match_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_order_index: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    peak_rating: Mapped[float] = mapped_column(Float, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        UniqueConstraint("season_id", "player_id", name="uq_season_ratings_player"),
        Index("idx_season_ratings_rating", "season_id", "rating"),
    )

    def __repr__(self) -> str:
        return (
            f"<SeasonRating(season={self.season_id}, player='{self.player_id}', "
            f"rating={self.rating:.2f})>"
        )


class RatingCheckpoint(Base):
    """
    Rating of one participant immediately before and after one match.

    rating_after of a player's latest checkpoint below some order index is
    that player's rating going into the match at that index, which is what
    lets a recompute resume mid-season.
    """

    __tablename__ = "rating_checkpoints"

    id: Mapped[int] = mapped_column(primary_key=True)
    season_id: Mapped[int] = mapped_column(ForeignKey("seasons.id"), nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    match_id: Mapped[int] = mapped_column(Integer, nullable=False)
    player_id: Mapped[str] = mapped_column(String(64), nullable=False)
    rating_before: Mapped[float] = mapped_column(Float, nullable=False)
    rating_after: Mapped[float] = mapped_column(Float, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "season_id", "order_index", "player_id", name="uq_rating_checkpoints_slot"
        ),
        Index("idx_rating_checkpoints_player", "season_id", "player_id", "order_index"),
    )

    def __repr__(self) -> str:
        return (
            f"<RatingCheckpoint(season={self.season_id}, order={self.order_index}, "
            f"player='{self.player_id}', {self.rating_before:.2f} -> {self.rating_after:.2f})>"
        )
