"""
SeasonElo - Doubles Match Ledger

Tracks doubles match results within seasons and derives a running Elo
rating for every player from the ordered history of those matches.

Main components:
- elo: Rating model (team Elo with margin scaling) and the rating ledger
- matches: Match validation and the season-ordered match store
- seasons: Active season resolution
- tasks: Per-season writer locks
- services: Recomputation coordinator (the public entry point)
- db: SQLAlchemy models and session management
"""

__version__ = "1.0.0"
