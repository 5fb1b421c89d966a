#!/usr/bin/env python3
"""Display conference/division standings and metrics leaderboards.

Usage:
    python3 scripts/show_standings.py 3                     # Season 3 standings
    python3 scripts/show_standings.py 3 --teams-csv         # Team Elo/wP-N as CSV
    python3 scripts/show_standings.py 3 --coaches-csv       # Coach Elo and records as CSV
    python3 scripts/show_standings.py 3 --ranges            # Rating ranges per week as CSV
    python3 scripts/show_standings.py 3 --excel             # Leaderboard workbook

Standings are compiled from the league file on every run. Leaderboards read
the metrics store written by update_metrics.py.
"""

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import get_settings
from league_metrics.data.loader import load_league
from league_metrics.data.rating_store import RatingStore
from league_metrics.data.validators import LeagueValidator
from league_metrics.reports.leaderboard import (
    COACH_HEADER,
    RANGE_HEADER,
    TEAM_HEADER,
    LeaderboardExporter,
    coach_leaderboard,
    coach_rating_ranges,
    range_rows,
    team_leaderboard,
    team_rating_ranges,
    to_csv_text,
)
from league_metrics.standings.compiler import ConferenceStandings, StandingsCompiler

logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)


def format_standings(standings: list[ConferenceStandings], division_names: dict[str, str]) -> str:
    lines = []
    for conference in standings:
        lines.append(f"\n{conference.name}")
        lines.append("=" * 72)
        for division in conference.divisions:
            lines.append(f"  {division_names.get(division.division_id, division.name)}")
            lines.append(
                f"  {'Team':<28} {'Conf':>8} {'Div':>8} {'Overall':>9} {'PD':>5} {'Strk':>5}"
            )
            for entry in division.teams:
                conf = f"{entry.conference.wins}-{entry.conference.losses}-{entry.conference.ties}"
                div = f"{entry.division.wins}-{entry.division.losses}-{entry.division.ties}"
                ovr = f"{entry.overall.wins}-{entry.overall.losses}-{entry.overall.ties}"
                lines.append(
                    f"  {entry.team:<28} {conf:>8} {div:>8} {ovr:>9} "
                    f"{entry.overall.point_differential:>+5} {str(entry.streak):>5}"
                )
    return "\n".join(lines)


def main():
    parser = argparse.ArgumentParser(description="Show league standings and leaderboards")
    parser.add_argument("season", type=int, help="Season number")
    parser.add_argument("--league", type=str, default=None, help="League export JSON")
    parser.add_argument("--store", type=str, default=None, help="Metrics store directory")
    parser.add_argument("--teams-csv", action="store_true", help="Print team leaderboard CSV")
    parser.add_argument("--coaches-csv", action="store_true", help="Print coach leaderboard CSV")
    parser.add_argument("--ranges", action="store_true", help="Print per-week team and coach rating ranges as CSV")
    parser.add_argument("--excel", action="store_true", help="Write the leaderboard workbook")
    args = parser.parse_args()

    settings = get_settings()
    league_file = args.league or settings.league_file
    if not league_file:
        logger.error("LEAGUE_FILE is required. Set it in .env file or pass --league.")
        sys.exit(1)

    repository = load_league(league_file)

    if args.teams_csv or args.coaches_csv or args.ranges or args.excel:
        store = RatingStore.load(Path(args.store) if args.store else settings.store_dir)
        if args.teams_csv:
            print(to_csv_text(team_leaderboard(store, repository), TEAM_HEADER))
        if args.coaches_csv:
            print(to_csv_text(coach_leaderboard(store, repository), COACH_HEADER))
        if args.ranges:
            for title, ranges in (
                ("Teams", team_rating_ranges(store, repository)),
                ("Coaches", coach_rating_ranges(store, repository)),
            ):
                print(title)
                print(to_csv_text(range_rows(ranges), RANGE_HEADER))
        if args.excel:
            path = LeaderboardExporter().export(store, repository)
            print(f"Leaderboard saved to {path}", file=sys.stderr)
        return

    season = repository.find_season(args.season)
    if season is None:
        logger.error(f"Season {args.season} not found")
        sys.exit(1)

    divisions = LeagueValidator(repository).validate_divisions(args.season)
    if not divisions.is_valid:
        logger.warning(divisions.message)

    compiler = StandingsCompiler(settings.regular_season_last_week)
    standings = compiler.compile(season, repository.conferences, list(repository.teams.values()))
    print(f"Season {args.season} standings (through week {settings.regular_season_last_week})")
    print(format_standings(standings, repository.division_names()))


if __name__ == "__main__":
    main()
