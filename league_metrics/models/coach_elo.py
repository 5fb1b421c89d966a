"""Coach Elo ratings.

Uses the same win-probability and delta math as team Elo, with two
differences:

- A side's rating is the play-weighted blend of its coaches' ratings:
      side_elo = sum(coach_elo * plays / side_plays)
  and the side's delta is split back to the coaches by the same shares,
  each applied to that coach's own prior rating.
- Coach timelines carry across seasons with no preseason regression.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from league_metrics.data.rating_store import COACH, RatingStore
from league_metrics.data.schedule import DELETED_COACH, Game, GameSide
from league_metrics.models.elo import DEFAULT_RATING, K, calc_home_delta, game_minutes

logger = logging.getLogger(__name__)


@dataclass
class CoachGameElo:
    """One coach's rating movement in a game."""

    coach: str
    team: str
    opp_rating: float
    prior_rating: float
    delta: float
    play_share: float

    @property
    def new_rating(self) -> float:
        return self.prior_rating + self.delta


def is_rated_coach(coach: Optional[str]) -> bool:
    """Unknown and deleted coaches are never rated."""
    return coach is not None and coach != DELETED_COACH


class CoachEloEngine:
    """Play-share weighted coach Elo backed by a RatingStore."""

    def __init__(self, store: RatingStore, k: float = K):
        self.store = store
        self.k = k

    def get_rating(self, coach: Optional[str], season_no: int, week_no: Optional[int]) -> float:
        """Coach rating going into a week.

        Returns the latest snapshot strictly before (season_no, week_no),
        walking back through earlier seasons as needed; 1500 for unknown or
        deleted coaches and for coaches without history.
        """
        if not is_rated_coach(coach):
            return DEFAULT_RATING
        snapshot = self.store.latest_before(coach, season_no, week_no, COACH)
        if snapshot is None:
            return DEFAULT_RATING
        return snapshot.new_rating

    def side_rating(self, side: GameSide, season_no: int, week_no: int) -> float:
        """Play-weighted rating of a side's coaching staff."""
        total_plays = side.total_plays
        if total_plays <= 0:
            return DEFAULT_RATING
        return sum(
            self.get_rating(share.coach, season_no, week_no) * (share.plays / total_plays)
            for share in side.coaches
        )

    def _split(
        self,
        side: GameSide,
        change: float,
        opp_rating: float,
        season_no: int,
        week_no: int,
    ) -> list[CoachGameElo]:
        total_plays = side.total_plays
        if total_plays <= 0:
            logger.warning(f"No plays recorded for {side.team} coaches, skipping coach updates")
            return []
        results = []
        for share in side.coaches:
            if not is_rated_coach(share.coach):
                continue
            play_share = share.plays / total_plays
            results.append(
                CoachGameElo(
                    coach=share.coach,
                    team=side.team,
                    opp_rating=opp_rating,
                    prior_rating=self.get_rating(share.coach, season_no, week_no),
                    delta=change * play_share,
                    play_share=play_share,
                )
            )
        return results

    def compute_game_deltas(
        self, game: Game, season_no: int, week_no: int
    ) -> Optional[list[CoachGameElo]]:
        """Rating changes for every rated coach in a finished game.

        Returns:
            List of per-coach results, or None for a game still in progress
        """
        if game.live:
            return None

        mins = game_minutes(game)
        home_elo = self.side_rating(game.home, season_no, week_no)
        away_elo = self.side_rating(game.away, season_no, week_no)

        home_change = calc_home_delta(
            game.home.score, game.away.score, home_elo, away_elo, mins, self.k
        )
        away_change = -home_change

        return (
            self._split(game.home, home_change, away_elo, season_no, week_no)
            + self._split(game.away, away_change, home_elo, season_no, week_no)
        )
