"""Standings package."""

from .compiler import (
    ConferenceStandings,
    DivisionStandings,
    StandingsCompiler,
    StandingsEntry,
    StandingsRecord,
    Streak,
)

__all__ = [
    "ConferenceStandings",
    "DivisionStandings",
    "StandingsCompiler",
    "StandingsEntry",
    "StandingsRecord",
    "Streak",
]
