#!/usr/bin/env python3
"""
Update team Elo, coach Elo and wPN for the league.

Usage:
    python scripts/update_metrics.py --league data/league.json
    python scripts/update_metrics.py --season 3                # Preseason + every week of season 3
    python scripts/update_metrics.py --season 3 --week -1      # Preseason pass only
    python scripts/update_metrics.py --season 3 --week 7       # Just week 7
    python scripts/update_metrics.py --season 3 --wpn-only     # Recompute wPN only
    python scripts/update_metrics.py --delete-season 3         # Drop a season's metrics

Ratings are read from and written back to the metrics store
(METRICS_STORE_DIR, default data/metrics).
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config.settings import get_settings
from league_metrics.data.loader import load_league
from league_metrics.data.rating_store import COACH, TEAM, RatingStore
from league_metrics.ratings.errors import MetricsError
from league_metrics.ratings.update import MetricsUpdateOrchestrator

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Update league Elo and wPN metrics")
    parser.add_argument(
        "--league",
        type=str,
        default=None,
        help="League export JSON (default: LEAGUE_FILE from settings)",
    )
    parser.add_argument(
        "--store",
        type=str,
        default=None,
        help="Metrics store directory (default: METRICS_STORE_DIR or data/metrics)",
    )
    parser.add_argument(
        "--season",
        type=int,
        default=None,
        help="Season number (default: every season in order)",
    )
    parser.add_argument(
        "--week",
        type=int,
        default=None,
        help="Week number; -1 runs the preseason pass only (default: all weeks)",
    )
    parser.add_argument(
        "--no-coaches",
        action="store_true",
        help="Skip coach Elo",
    )
    parser.add_argument(
        "--no-wpn",
        action="store_true",
        help="Skip the wPN recompute",
    )
    parser.add_argument(
        "--wpn-only",
        action="store_true",
        help="Only recompute wPN",
    )
    parser.add_argument(
        "--mov-influence",
        type=float,
        default=None,
        help="wPN margin-of-victory influence (default: WPN_MOV_INFLUENCE)",
    )
    parser.add_argument(
        "--delete-season",
        type=int,
        default=None,
        metavar="SEASON",
        help="Delete all metrics for a season and exit",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args()


def run(args) -> None:
    settings = get_settings()
    league_file = args.league or settings.league_file
    if not league_file:
        logger.error("LEAGUE_FILE is required. Set it in .env file or pass --league.")
        sys.exit(1)
    errors = [e for e in settings.validate() if not e.startswith("LEAGUE_FILE")]
    if errors:
        for error in errors:
            logger.error(error)
        sys.exit(1)

    store_dir = Path(args.store) if args.store else settings.store_dir
    repository = load_league(league_file)
    store = RatingStore.load(store_dir)
    orchestrator = MetricsUpdateOrchestrator(repository, store, settings)

    if args.delete_season is not None:
        removed = orchestrator.delete_season(args.delete_season)
        store.save(store_dir)
        print(f"Deleted {removed} snapshots for season {args.delete_season}")
        return

    if not args.wpn_only:
        orchestrator.update_all(args.season, args.week, coaches=not args.no_coaches)

    if not args.no_wpn:
        seasons = (
            [args.season] if args.season is not None
            else [s.season_no for s in repository.seasons()]
        )
        for season_no in seasons:
            orchestrator.update_season_wpn(season_no, mov_influence=args.mov_influence)

    for kind in (TEAM, COACH):
        for entity in store.entities(kind):
            for problem in store.check_chain(entity, args.season, kind):
                logger.warning(problem)

    store.save(store_dir)
    print(f"Metrics saved to {store_dir}")


def main():
    """Main entry point."""
    args = parse_args()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        run(args)
    except MetricsError as e:
        logger.error(f"Metrics update failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
