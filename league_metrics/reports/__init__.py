"""Reports package."""

from .leaderboard import (
    LeaderboardExporter,
    coach_leaderboard,
    coach_rating_ranges,
    range_rows,
    team_leaderboard,
    team_rating_ranges,
    to_csv_text,
)

__all__ = [
    "LeaderboardExporter",
    "coach_leaderboard",
    "coach_rating_ranges",
    "range_rows",
    "team_leaderboard",
    "team_rating_ranges",
    "to_csv_text",
]
