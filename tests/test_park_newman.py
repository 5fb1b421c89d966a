"""Tests for the Park-Newman win value (wPN)."""

import logging

import polars as pl
import pytest

from builders import make_game, make_season
from league_metrics.models.park_newman import (
    ParkNewmanScorer,
    calc_mov_modifier,
    calc_mov_multiplier,
    median_margin_of_victory,
)


def _chain_season():
    """A beats B, B beats C, in week 1 and week 2."""
    return make_season(
        1,
        {
            1: [make_game("A", 21, "B", 14)],
            2: [make_game("B", 28, "C", 7)],
        },
    )


class TestChain:
    """Geometric decay of a."""

    def test_chain_from_one(self):
        scorer = ParkNewmanScorer(_chain_season())
        assert scorer._chain(1) == pytest.approx([1, 0.2, 0.04, 0.008, 0.0016, 0.0003, 0.0001])

    def test_chain_negative(self):
        scorer = ParkNewmanScorer(_chain_season())
        chain = scorer._chain(-1)
        assert chain[0] == -1
        assert all(a < 0 for a in chain)
        assert len(chain) == 7

    def test_below_floor_is_zero(self):
        scorer = ParkNewmanScorer(_chain_season())
        assert scorer.calc_score("A", 0.00004) == 0.0


class TestScores:
    """Win and loss propagation."""

    def test_transitive_wins(self):
        """A gets credit for B's win over C; C is charged for B's loss."""
        scorer = ParkNewmanScorer(_chain_season())
        a = scorer.score_team("A")
        b = scorer.score_team("B")
        c = scorer.score_team("C")

        assert a.win_score == pytest.approx(1.2)
        assert a.loss_score == 0.0
        assert a.score == pytest.approx(1.2)
        assert b.win_score == pytest.approx(1.0)
        assert b.loss_score == pytest.approx(-1.0)
        assert b.score == pytest.approx(0.0)
        assert c.score == pytest.approx(-1.2)

    def test_winless_team_has_zero_win_score(self):
        scorer = ParkNewmanScorer(_chain_season())
        assert scorer.calc_score("C", 1) == 0.0

    def test_unknown_team_scores_zero(self):
        scorer = ParkNewmanScorer(_chain_season())
        result = scorer.score_team("Z")
        assert result.score == 0.0
        assert result.season == 1

    def test_ties_do_not_count(self):
        season = make_season(1, {1: [make_game("A", 14, "B", 14)]})
        scorer = ParkNewmanScorer(season)
        assert scorer.score_team("A").score == 0.0
        assert scorer.score_team("B").score == 0.0

    def test_live_games_ignored(self):
        season = make_season(1, {1: [make_game("A", 14, "B", 0, live=True)]})
        scorer = ParkNewmanScorer(season)
        assert scorer.score_team("A").score == 0.0

    def test_max_week_excludes_that_week(self):
        """Only weeks before max_week count."""
        scorer = ParkNewmanScorer(_chain_season(), max_week=2)
        assert scorer.score_team("A").score == pytest.approx(1.0)
        assert scorer.score_team("C").score == 0.0

    def test_results_rounded(self):
        scorer = ParkNewmanScorer(_chain_season())
        result = scorer.score_team("A")
        assert result.score == round(result.score, 4)

    def test_cycle_terminates_symmetrically(self):
        season = make_season(
            1,
            {
                1: [make_game("A", 7, "B", 0)],
                2: [make_game("B", 7, "C", 0)],
                3: [make_game("C", 7, "A", 0)],
            },
        )
        scorer = ParkNewmanScorer(season)
        scores = {s.team: s.score for s in scorer.score_teams(["A", "B", "C"])}
        assert scores["A"] == scores["B"] == scores["C"]

    def test_memoized_by_team_and_a(self):
        scorer = ParkNewmanScorer(_chain_season())
        scorer.calc_score("A", 1)
        assert ("A", 1, None) in scorer._memo
        assert ("B", 0.2, None) in scorer._memo


class TestScoreTeams:
    """Scoring many teams."""

    def _round_robin(self):
        names = ["A", "B", "C", "D", "E", "F"]
        games = {}
        week = 1
        for i, home in enumerate(names):
            for away in names[i + 1:]:
                games[week] = [make_game(home, 10 + len(home + away) + i, away, 10 + week % 7)]
                week += 1
        return make_season(1, games), names

    def test_workers_match_sequential(self):
        season, names = self._round_robin()
        sequential = ParkNewmanScorer(season).score_teams(names, workers=1)
        threaded = ParkNewmanScorer(season).score_teams(names, workers=4)
        assert [s.score for s in sequential] == [s.score for s in threaded]

    def test_deterministic(self):
        season, names = self._round_robin()
        first = ParkNewmanScorer(season, mov_influence=0.25).score_teams(names)
        second = ParkNewmanScorer(season, mov_influence=0.25).score_teams(names)
        assert first == second


class TestMarginOfVictory:
    """Margin weighting."""

    def test_median_margin(self):
        df = pl.DataFrame({"home_points": [21, 7, 30], "away_points": [0, 14, 28]})
        assert median_margin_of_victory(df) == 7.0

    def test_median_margin_empty(self):
        df = pl.DataFrame(
            {"home_points": [], "away_points": []},
            schema={"home_points": pl.Int64, "away_points": pl.Int64},
        )
        assert median_margin_of_victory(df) is None

    def test_median_margin_earns_no_modifier(self):
        multiplier = calc_mov_multiplier(0.25, 14)
        assert calc_mov_modifier(14, 0.25, multiplier) == pytest.approx(0.0)
        assert calc_mov_modifier(28, 0.25, multiplier) > 0
        assert calc_mov_modifier(3, 0.25, multiplier) < 0

    def test_blowout_worth_more(self):
        season = make_season(
            1,
            {1: [make_game("A", 21, "B", 0), make_game("C", 7, "D", 0)]},
        )
        scorer = ParkNewmanScorer(season, mov_influence=0.25)
        assert scorer.median_mov == 14.0
        assert scorer.score_team("A").score > 1.0
        assert scorer.score_team("C").score < 1.0

    def test_zero_median_disables_weighting(self, caplog):
        season = make_season(1, {1: [make_game("A", 7, "B", 7)]})
        with caplog.at_level(logging.WARNING):
            scorer = ParkNewmanScorer(season, mov_influence=0.25)
        assert scorer.mov_influence == 0.0
        assert "disabling margin weighting" in caplog.text
