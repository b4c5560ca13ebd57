"""
Season helpers and the active-season resolver.

Which season is active is decided outside the ledger; these helpers only
read and flip the flag. When no season is flagged active, the first
season (lowest id) is used so the views still have something to show.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from seasonelo.db.models import Season
from seasonelo.exceptions import NotFoundError

logger = logging.getLogger(__name__)


def get_active_season(session: Session) -> Optional[Season]:
    """Return the active season, else the first season, else None."""
    active = session.scalars(
        select(Season).where(Season.is_active.is_(True)).order_by(Season.id.asc())
    ).first()
    if active is not None:
        return active
    return session.scalars(select(Season).order_by(Season.id.asc())).first()


def resolve_active_season_id(session: Session) -> int:
    """
    Default season resolver used by the coordinator.

    Raises:
        NotFoundError: If no season exists at all
    """
    season = get_active_season(session)
    if season is None:
        raise NotFoundError("no season exists")
    return season.id


def create_season(session: Session, name: str, active: bool = False) -> Season:
    """Create a season. With active=True every other season is deactivated."""
    if active:
        session.execute(update(Season).values(is_active=False))
    season = Season(name=name, is_active=active, next_order_index=1)
    session.add(season)
    session.flush()
    logger.info("Created season %s ('%s', active=%s)", season.id, name, active)
    return season


def set_active_season(session: Session, season_id: int) -> Season:
    """
    Flag one season active and clear the flag on all others.

    Raises:
        NotFoundError: If the season does not exist
    """
    season = session.get(Season, season_id)
    if season is None:
        raise NotFoundError(f"season {season_id} not found")
    session.execute(update(Season).where(Season.id != season_id).values(is_active=False))
    season.is_active = True
    session.flush()
    return season
