"""Shared fixtures: a small two-season league, settings and an empty store."""

import pytest

from builders import make_game, make_league, make_season
from config.settings import Settings
from league_metrics.data.rating_store import RatingStore

A_COACHES = [("alice", 60), ("bob", 40)]
B_COACHES = [("carol", 100)]
C_COACHES = [("dave", 100)]
D_COACHES = [("[deleted]", 100)]

COACHES = {"A": A_COACHES, "B": B_COACHES, "C": C_COACHES, "D": D_COACHES}


def coached_game(home, home_score, away, away_score, **kwargs):
    return make_game(
        home,
        home_score,
        away,
        away_score,
        home_coaches=COACHES[home],
        away_coaches=COACHES[away],
        **kwargs,
    )


@pytest.fixture
def settings():
    return Settings(
        league_file="",
        elo_k=20.0,
        rating_precision=4,
        regular_season_last_week=13,
        wpn_mov_influence=0.25,
        wpn_workers=1,
        store_dir_override="",
    )


@pytest.fixture
def store():
    return RatingStore()


@pytest.fixture
def league():
    """Teams A, B (east) and C, D (west) over two seasons.

    Season 1 week 3 holds a game still in progress.
    """
    season1 = make_season(
        1,
        {
            1: [coached_game("A", 21, "B", 7), coached_game("C", 14, "D", 14)],
            2: [coached_game("A", 10, "C", 17), coached_game("B", 28, "D", 3)],
            3: [coached_game("A", 7, "D", 0, live=True)],
        },
    )
    season2 = make_season(
        2,
        {
            1: [coached_game("B", 24, "A", 20), coached_game("D", 7, "C", 35)],
        },
    )
    divisions = {
        "A": {1: "east", 2: "east"},
        "B": {1: "east", 2: "east"},
        "C": {1: "west", 2: "west"},
        "D": {1: "west", 2: "west"},
    }
    return make_league(
        [season1, season2],
        divisions,
        coaches=["alice", "bob", "carol", "dave"],
    )
