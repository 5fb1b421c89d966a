"""Team Elo ratings from final scores and game length.

Win probabilities follow the Pro-Football-Reference in-game model: the
pre-game Elo gap is converted to a point spread (``VEGAS_DIVISOR`` Elo per
point), and the remaining margin is treated as normally distributed around
the time-scaled spread with standard deviation ``MOV_STDEV`` shrinking with
the square root of time remaining.

Per game:
    mins = min(length / 60, 28)                    # overtime folds into 28
    actual = calc_win_prob(score, opp_score, elo, opp_elo, mins)
    expected = calc_win_prob(0, 0, elo, opp_elo, 0)  # pre-game odds
    delta = exp_deweight(mins) * mov_multiplier * K * (actual - expected)

The home and away deltas are exact negatives of each other.

Fully elapsed games:
    At mins == 28 no time remains and the normal spread collapses to zero
    (the raw formula divides by zero). The result is then deterministic:
    win probability is 1 for the leader, 0 for the trailer and 0.5 for a
    tie, which is the limit of the formula as time runs out.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

from scipy.special import erf

from league_metrics.data.rating_store import TEAM, RatingStore
from league_metrics.data.schedule import Game
from league_metrics.ratings.errors import MissingAnchorError

logger = logging.getLogger(__name__)

# K value
K = 20

# Vegas line divisor - (Elo - Opp Elo) / x points
VEGAS_DIVISOR = 18.14010981807

# MOV standard deviation - MOVs' standard deviation from the vegas line
MOV_STDEV = 15.61

# Regulation length in minutes
GAME_MINUTES = 28

DEFAULT_RATING = 1500.0

# Constant part of the short-game deweighting
EXP_NORMALIZER = (1 - math.exp(-(GAME_MINUTES / 2))) * 2


def cdf_normal(x: float, mean: float, stdev: float) -> float:
    """Normal CDF via the error function."""
    return float((1 - erf((mean - x) / (math.sqrt(2) * stdev))) / 2)


def calc_mov_multiplier(score_diff: float, winner_elo_diff: float) -> float:
    """Margin-of-victory multiplier, damped when the favourite wins."""
    return math.log(abs(score_diff) + 1) * (2.2 / ((winner_elo_diff * 0.001) + 2.2))


def exp_deweight(mins_played: float) -> float:
    """Weight in [0, 1]; very short games have almost no influence."""
    return ((1 - math.exp(-(mins_played / 2))) * 2) / EXP_NORMALIZER


def calc_win_prob(
    team_score: float,
    opp_score: float,
    team_elo: float,
    opp_elo: float,
    mins_played: float,
) -> float:
    """Probability the team wins given the score and time elapsed.

    Ties count as half a win.
    """
    opp_margin = opp_score - team_score
    mins_remaining = GAME_MINUTES - mins_played

    if mins_remaining <= 0:
        if opp_margin < 0:
            return 1.0
        if opp_margin > 0:
            return 0.0
        return 0.5

    inverse_vegas_line = (team_elo - opp_elo) / VEGAS_DIVISOR
    mean = inverse_vegas_line * (mins_remaining / GAME_MINUTES)
    stdev = MOV_STDEV / math.sqrt(GAME_MINUTES / mins_remaining)

    win_dist = cdf_normal(opp_margin + 0.5, mean, stdev)
    loss_dist = cdf_normal(opp_margin - 0.5, mean, stdev)

    return (1 - win_dist) + (0.5 * (win_dist - loss_dist))


def calc_elo_change(
    mins_played: float,
    win_prob: float,
    mov_multiplier: float,
    expected_win_prob: float,
    k: float = K,
) -> float:
    """Rating change for the side whose probabilities are given."""
    return exp_deweight(mins_played) * mov_multiplier * k * (win_prob - expected_win_prob)


def winner_elo_diff(home_score: float, away_score: float, home_elo: float, away_elo: float) -> float:
    """Pre-game rating gap in favour of the side that won (0 for a tie)."""
    if home_score > away_score:
        return home_elo - away_elo
    if away_score > home_score:
        return away_elo - home_elo
    return 0.0


def game_minutes(game: Game) -> float:
    """Minutes played, capped at regulation so overtime games share one scale."""
    return min(game.length_seconds / 60, GAME_MINUTES)


def calc_home_delta(
    home_score: float,
    away_score: float,
    home_elo: float,
    away_elo: float,
    mins_played: float,
    k: float = K,
) -> float:
    """Home side's rating change for a finished game."""
    home_win_prob = calc_win_prob(home_score, away_score, home_elo, away_elo, mins_played)
    mov_multiplier = calc_mov_multiplier(
        home_score - away_score,
        winner_elo_diff(home_score, away_score, home_elo, away_elo),
    )
    # 0 score diff and 0 minutes played = pre-game odds
    expected_home_win_prob = calc_win_prob(0, 0, home_elo, away_elo, 0)
    return calc_elo_change(mins_played, home_win_prob, mov_multiplier, expected_home_win_prob, k)


def regress_preseason(old_rating: float, precision: int = 4) -> float:
    """Preseason anchor: keep two thirds of last season, pull one third to 1500."""
    return round(old_rating / 3 * 2 + 500, precision)


@dataclass
class EloResult:
    """One side's rating movement in a game."""

    team: str
    opp_rating: float
    prior_rating: float
    delta: float

    @property
    def new_rating(self) -> float:
        return self.prior_rating + self.delta


@dataclass
class GameElo:
    game: Game
    home: EloResult
    away: EloResult


class EloEngine:
    """Season-aware team Elo backed by a RatingStore."""

    def __init__(self, store: RatingStore, k: float = K):
        """Initialize the engine.

        Args:
            store: Rating timelines to read pre-game ratings from
            k: Elo K value
        """
        self.store = store
        self.k = k

    def get_rating(self, team: str, season_no: Optional[int], as_of_week: Optional[int]) -> float:
        """Team rating as of a week.

        Args:
            team: Team name
            season_no: Season number; None (no such season) rates at 1500
            as_of_week: Latest week to consider; None = end of season

        Returns:
            ``new_rating`` of the latest snapshot at or before the week, or
            1500 when the team has no snapshot in the season

        Raises:
            MissingAnchorError: If the season has snapshots for the team but
                none at or before the week (no preseason anchor)
        """
        if season_no is None:
            return DEFAULT_RATING
        if not self.store.has_season(team, season_no, TEAM):
            return DEFAULT_RATING

        snapshot = self.store.latest_at_or_before(team, season_no, as_of_week, TEAM)
        if snapshot is None:
            raise MissingAnchorError(
                f"Could not find S{season_no} W{as_of_week if as_of_week is not None else '--'} "
                f"metrics for {team}"
            )
        return snapshot.new_rating

    def compute_game_delta(self, game: Game, season_no: int, week_no: int) -> Optional[GameElo]:
        """Rating changes for both sides of a finished game.

        Pre-game ratings are read as of the previous week, so every game in a
        week sees the same ratings regardless of processing order.

        Returns:
            GameElo, or None for a game still in progress
        """
        if game.live:
            return None

        mins = game_minutes(game)
        home_elo = self.get_rating(game.home.team, season_no, week_no - 1)
        away_elo = self.get_rating(game.away.team, season_no, week_no - 1)

        home_change = calc_home_delta(
            game.home.score, game.away.score, home_elo, away_elo, mins, self.k
        )
        away_change = -home_change

        logger.debug(
            f"S{season_no} W{week_no} {game.home.team} {game.home.score}-{game.away.score} "
            f"{game.away.team}: {home_change:+.3f}"
        )
        return GameElo(
            game=game,
            home=EloResult(
                team=game.home.team,
                opp_rating=away_elo,
                prior_rating=home_elo,
                delta=home_change,
            ),
            away=EloResult(
                team=game.away.team,
                opp_rating=home_elo,
                prior_rating=away_elo,
                delta=away_change,
            ),
        )
