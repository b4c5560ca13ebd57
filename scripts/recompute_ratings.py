#!/usr/bin/env python3
"""
Rebuild season ratings from the match history.

Replays every match of a season from baseline in creation order and
replaces the stored ratings and checkpoints. Use after changing rating
constants or when a recompute failure was reported.

Normal usage (one season):
    python scripts/recompute_ratings.py --season-id 3

Every season:
    python scripts/recompute_ratings.py --all

Dry run (compute, print, roll back):
    python scripts/recompute_ratings.py --season-id 3 --dry-run
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from time import perf_counter

# Add src to path so this script can be run directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sqlalchemy import select

from seasonelo.config import configure_logging
from seasonelo.db import Season, get_engine, get_session, make_session_factory
from seasonelo.elo.calculator import EloParams, RatingModel
from seasonelo.elo.ledger import RatingLedger
from seasonelo.exceptions import LedgerError
from seasonelo.services.coordinator import RecomputationCoordinator

logger = logging.getLogger("recompute_ratings")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Rebuild season ratings by replaying match history.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument(
        "--season-id",
        type=int,
        default=None,
        help="Season to rebuild.",
    )
    target.add_argument(
        "--all",
        action="store_true",
        help="Rebuild every season.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute ratings but do not write to the database.",
    )
    return parser


def _dry_run(factory, season_ids: list[int]) -> None:
    model = RatingModel(EloParams.from_settings())
    session = factory()
    try:
        for season_id in season_ids:
            ledger = RatingLedger(session, model)
            result = ledger.full_recompute(season_id)
            print(f"Season {season_id}: {result.replayed} matches, {result.players_touched} players")
            for entry in ledger.leaderboard(season_id):
                print(f"  {entry.player_id:<24} {entry.rating:8.2f}  ({entry.match_count} matches)")
        session.rollback()
        print("(dry run - changes rolled back)")
    finally:
        session.close()


def main() -> int:
    args = _build_parser().parse_args()
    configure_logging()

    engine = get_engine()
    factory = make_session_factory(engine)

    if args.all:
        with get_session(factory) as session:
            season_ids = list(session.scalars(select(Season.id).order_by(Season.id)))
    else:
        season_ids = [args.season_id]

    if not season_ids:
        print("No seasons found.")
        return 0

    t_start = perf_counter()

    if args.dry_run:
        try:
            _dry_run(factory, season_ids)
        except LedgerError as exc:
            print(f"ERROR [{exc.code}]: {exc.detail}")
            return 1
        return 0

    coordinator = RecomputationCoordinator(engine=engine)
    failures = 0
    for season_id in season_ids:
        try:
            result = coordinator.recompute(season_id)
        except LedgerError as exc:
            failures += 1
            logger.error("Season %s: %s (%s)", season_id, exc.detail, exc.code)
            continue
        print(f"Season {season_id}: {result.replayed} matches replayed, {result.players_touched} players")

    print(f"Elapsed: {perf_counter() - t_start:.2f}s")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
