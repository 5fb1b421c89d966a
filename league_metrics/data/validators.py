"""Data validation utilities."""

import logging
from dataclasses import dataclass
from typing import Optional

from league_metrics.data.schedule import LeagueRepository

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of a data validation check."""

    is_valid: bool
    message: str
    details: Optional[dict] = None


class LeagueValidator:
    """Validate league data completeness before computing metrics."""

    def __init__(self, repository: LeagueRepository):
        """Initialize validator with the league repository.

        Args:
            repository: League data to validate
        """
        self.repository = repository

    def validate_week(self, season_no: int, week_no: int) -> ValidationResult:
        """Validate that every game in a week is final.

        Args:
            season_no: Season number
            week_no: Week number

        Returns:
            ValidationResult with status and details
        """
        week = self.repository.find_week(season_no, week_no)
        if week is None:
            return ValidationResult(
                is_valid=False,
                message=f"Week {week_no} not found in season {season_no}",
            )

        total_games = len(week.games)
        if total_games == 0:
            return ValidationResult(
                is_valid=False,
                message=f"No games found for S{season_no} week {week_no}",
            )

        live = [g.game_id for g in week.games if g.live]
        details = {
            "total_games": total_games,
            "completed_games": total_games - len(live),
            "live_games": live,
        }
        if live:
            return ValidationResult(
                is_valid=False,
                message=f"{len(live)}/{total_games} games still in progress",
                details=details,
            )

        return ValidationResult(
            is_valid=True,
            message=f"Data complete: {total_games}/{total_games} games",
            details=details,
        )

    def validate_divisions(self, season_no: int) -> ValidationResult:
        """Check that every team playing in a season has a division for it."""
        season = self.repository.find_season(season_no)
        if season is None:
            return ValidationResult(is_valid=False, message=f"Season {season_no} not found")

        playing = {side.team for _, g in season.iter_games() for side in (g.home, g.away)}
        unassigned = sorted(
            name
            for name in playing
            if name not in self.repository.teams
            or self.repository.teams[name].division_for(season_no) is None
        )
        details = {"teams_playing": len(playing), "unassigned": unassigned}
        if unassigned:
            return ValidationResult(
                is_valid=False,
                message=f"{len(unassigned)} teams have no division for season {season_no}",
                details=details,
            )
        return ValidationResult(
            is_valid=True,
            message=f"All {len(playing)} teams have season {season_no} divisions",
            details=details,
        )
