"""Park-Newman win value (wPN).

Credits a team for its wins, for the wins of the teams it beat, for the
wins of the teams those teams beat, and so on, with each hop worth
``BASE_A`` times the previous one. Losses propagate the same way with a
negative weight. Following Park & Newman, a = 0.2 is close to optimal for
every season they tested, so it is fixed here.

    W(team, a) = sum over games the team won:
                 a + a * mov_modifier(margin) + W(beaten opponent, round(a * 0.2, 4))
    L(team, a) = same over games lost, with a < 0
    wPN(team)  = round(W(team, +1) + L(team, -1), 4)

Evaluation:
    Because ``a`` follows the same rounded geometric chain for every team
    (1, 0.2, 0.04, ... until |a| < 0.0001), the recursion is evaluated
    bottom-up one chain level at a time over an index-addressed result
    graph. Every (team, a, max_week) value is computed once and memoized,
    which replaces the O(g^depth) branching of the naive recursion with
    O(depth * games). Values are rounded to 4 places at every level, the
    same points at which the recursive definition rounds its returns.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, Optional

import polars as pl

from league_metrics.data.rating_store import WPNScore
from league_metrics.data.schedule import Season

logger = logging.getLogger(__name__)

# Decay per hop
BASE_A = 0.2

# Tiny a's are pointless to calculate
A_FLOOR = 0.0001

# Decimal places kept at every level
PRECISION = 4


def calc_mov_multiplier(mov_influence: float, median_mov: float) -> float:
    """Scale ln(MoV) so that the median margin earns exactly ``mov_influence``."""
    return mov_influence / math.log(median_mov + 1)


def calc_mov_modifier(mov: float, mov_influence: float, mov_multiplier: float) -> float:
    """Extra weight for a result; negative below the median margin, positive above."""
    return -mov_influence + math.log(mov + 1) * mov_multiplier


def median_margin_of_victory(games_df: pl.DataFrame) -> Optional[float]:
    """Median absolute margin over a games frame (home_points/away_points)."""
    if games_df.height == 0:
        return None
    margins = (pl.col("home_points") - pl.col("away_points")).abs()
    return float(games_df.select(margins.median()).item())


@dataclass(frozen=True)
class ResultEdge:
    """A game from one team's point of view."""

    opponent: int  # Index into the scorer's team arena
    sign: int  # +1 win, -1 loss, 0 tie
    margin: int


class ParkNewmanScorer:
    """wPN scores for one season's frozen result graph."""

    def __init__(
        self,
        season: Season,
        max_week: Optional[int] = None,
        mov_influence: float = 0.0,
        median_mov: Optional[float] = None,
        base_a: float = BASE_A,
    ):
        """Build the result graph.

        Args:
            season: Season whose finalized games form the graph
            max_week: If given, only games in weeks before this week count
            mov_influence: Weight of margin of victory; 0 disables it
            median_mov: Median margin used to normalize margins. Computed
                from the season when margin weighting is on and none is given
            base_a: Decay per hop
        """
        self.season_no = season.season_no
        self.max_week = max_week
        self.base_a = base_a

        self._index: dict[str, int] = {}
        self._names: list[str] = []
        self._edges: list[list[ResultEdge]] = []
        self._memo: dict[tuple[str, float, Optional[int]], float] = {}

        n_games = 0
        for week in season.weeks:
            if max_week is not None and week.week_no >= max_week:
                continue
            for game in week.final_games():
                home = self._team_index(game.home.team)
                away = self._team_index(game.away.team)
                diff = game.home.score - game.away.score
                sign = (diff > 0) - (diff < 0)
                self._edges[home].append(ResultEdge(opponent=away, sign=sign, margin=abs(diff)))
                self._edges[away].append(ResultEdge(opponent=home, sign=-sign, margin=abs(diff)))
                n_games += 1

        if mov_influence > 0 and median_mov is None:
            median_mov = median_margin_of_victory(season.games_frame())
        if mov_influence > 0 and (median_mov is None or median_mov <= 0):
            logger.warning(
                f"Season {self.season_no} median MoV is {median_mov}, "
                "disabling margin weighting for wPN"
            )
            mov_influence = 0.0

        self.mov_influence = mov_influence
        self.median_mov = median_mov
        self.mov_multiplier = (
            calc_mov_multiplier(mov_influence, median_mov) if mov_influence > 0 else 0.0
        )

        logger.debug(
            f"wPN graph S{self.season_no}: {len(self._names)} teams, {n_games} games "
            f"(max_week={max_week}, mov_influence={self.mov_influence})"
        )

    def _team_index(self, name: str) -> int:
        index = self._index.get(name)
        if index is None:
            index = len(self._names)
            self._index[name] = index
            self._names.append(name)
            self._edges.append([])
        return index

    def _chain(self, a: float) -> list[float]:
        """The sequence of a values visited from a starting a."""
        chain = []
        while abs(a) >= A_FLOOR:
            chain.append(a)
            a = round(a * self.base_a, PRECISION)
        return chain

    def _fill(self, a: float) -> None:
        """Compute and memoize scores for every team along a's chain."""
        below = [0.0] * len(self._names)
        for level_a in reversed(self._chain(a)):
            cached = [self._memo.get((n, level_a, self.max_week)) for n in self._names]
            if all(value is not None for value in cached):
                below = cached
                continue
            current = []
            for team, edges in zip(self._names, self._edges):
                score = 0.0
                for edge in edges:
                    if (edge.sign > 0 and level_a > 0) or (edge.sign < 0 and level_a < 0):
                        game_score = level_a
                        if self.mov_influence > 0:
                            game_score += level_a * calc_mov_modifier(
                                edge.margin, self.mov_influence, self.mov_multiplier
                            )
                        game_score += below[edge.opponent]
                        score += game_score
                value = round(score, PRECISION)
                self._memo[(team, level_a, self.max_week)] = value
                current.append(value)
            below = current

    def calc_score(self, team: str, a: float) -> float:
        """Win score (a > 0) or loss score (a < 0) for a team."""
        if abs(a) < A_FLOOR:
            return 0.0
        key = (team, a, self.max_week)
        if key not in self._memo:
            if team not in self._index:
                return 0.0
            self._fill(a)
        return self._memo.get(key, 0.0)

    def prepare(self) -> None:
        """Evaluate both chains up front so scoring is read-only."""
        if not self._names:
            return
        for a in (1, -1):
            self.calc_score(self._names[0], a)

    def score_team(self, team: str) -> WPNScore:
        win_score = self.calc_score(team, 1)
        loss_score = self.calc_score(team, -1)
        return WPNScore(
            team=team,
            season=self.season_no,
            score=round(win_score + loss_score, PRECISION),
            win_score=win_score,
            loss_score=loss_score,
        )

    def score_teams(self, teams: Iterable[str], workers: int = 1) -> list[WPNScore]:
        """Score several teams, optionally across worker threads.

        The graph and memo are fully built before any worker starts, so
        workers only read shared state.
        """
        teams = list(teams)
        self.prepare()
        if workers <= 1 or len(teams) <= 1:
            return [self.score_team(team) for team in teams]
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(self.score_team, teams))
