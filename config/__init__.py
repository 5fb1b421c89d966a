"""Configuration package for the league metrics engine."""

from .settings import Settings, get_settings
from .league import (
    NON_CONFERENCE_WEEKS,
    division_sort_key,
    is_conference_game,
)

__all__ = [
    "Settings",
    "get_settings",
    "NON_CONFERENCE_WEEKS",
    "division_sort_key",
    "is_conference_game",
]
