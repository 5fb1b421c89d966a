"""League data package."""

from .schedule import (
    Coach,
    CoachShare,
    Conference,
    Division,
    Game,
    GameSide,
    LeagueRepository,
    Season,
    Team,
    Week,
)
from .loader import league_from_dict, load_league
from .rating_store import RatingSnapshot, RatingStore, WPNScore
from .validators import LeagueValidator, ValidationResult

__all__ = [
    "Coach",
    "CoachShare",
    "Conference",
    "Division",
    "Game",
    "GameSide",
    "LeagueRepository",
    "Season",
    "Team",
    "Week",
    "league_from_dict",
    "load_league",
    "RatingSnapshot",
    "RatingStore",
    "WPNScore",
    "LeagueValidator",
    "ValidationResult",
]
