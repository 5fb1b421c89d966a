"""Tests for the metrics update orchestrator."""

import logging

import pytest

from builders import make_game, make_league, make_season
from league_metrics.data.rating_store import COACH, TEAM
from league_metrics.models.elo import calc_home_delta, regress_preseason
from league_metrics.ratings.errors import (
    MissingAnchorError,
    SeasonNotFoundError,
    WeekNotFoundError,
)
from league_metrics.ratings.update import PRESEASON_ONLY, MetricsUpdateOrchestrator

TEAMS = ["A", "B", "C", "D"]


@pytest.fixture
def orchestrator(league, store, settings):
    return MetricsUpdateOrchestrator(league, store, settings)


class TestEnsureMetrics:
    """Empty records for every team and coach."""

    def test_creates_once(self, orchestrator, store):
        assert orchestrator.ensure_metrics() == 8
        assert orchestrator.ensure_metrics() == 0
        assert store.entities(TEAM) == TEAMS
        assert store.entities(COACH) == ["alice", "bob", "carol", "dave"]


class TestPreseason:
    """Preseason anchors."""

    def test_first_season_anchors_at_default(self, orchestrator, store):
        orchestrator.update_preseason(1)
        for team in TEAMS:
            anchor = store.get(team, 1, None)
            assert anchor.new_rating == 1500.0
            assert anchor.prior_rating == 1500.0
            assert anchor.opponent_rating is None

    def test_regresses_prior_season_final(self, orchestrator, store):
        orchestrator.update_season(1)
        final = store.latest_at_or_before("A", 1, None).new_rating
        orchestrator.update_preseason(2)
        assert store.get("A", 2, None).new_rating == regress_preseason(final)
        assert store.get("A", 2, None).prior_rating == final

    def test_idempotent(self, orchestrator, store):
        """Running the pass again never regresses twice."""
        orchestrator.update_season(1)
        orchestrator.update_preseason(2)
        first = store.get("A", 2, None).new_rating

        assert orchestrator.update_preseason(2) == []
        orchestrator.update_season(2)
        orchestrator.update_preseason(2)
        assert store.get("A", 2, None).new_rating == first
        assert len(store.season_snapshots("A", 2)) == 2

    def test_preseason_only(self, orchestrator, store):
        orchestrator.update_season(1, PRESEASON_ONLY)
        assert all(s.is_preseason for t in TEAMS for s in store.timeline(t))
        assert store.timeline("alice", COACH) == []


class TestWeeklyUpdates:
    """Team Elo week by week."""

    def test_season_flow(self, orchestrator, store):
        orchestrator.update_season(1)

        weeks = [s.week for s in store.season_snapshots("A", 1)]
        assert weeks == [None, 1, 2]
        for team in TEAMS:
            assert store.check_chain(team, 1) == []

        a_week1 = store.get("A", 1, 1)
        b_week1 = store.get("B", 1, 1)
        assert a_week1.delta > 0
        assert a_week1.delta == pytest.approx(-b_week1.delta)
        assert a_week1.opponent_rating == 1500.0
        assert a_week1.delta == pytest.approx(calc_home_delta(21, 7, 1500, 1500, 28))

    def test_tie_between_even_teams_no_change(self, orchestrator, store):
        orchestrator.update_season(1)
        assert store.get("C", 1, 1).delta == 0.0
        assert store.get("D", 1, 1).delta == 0.0

    def test_week_is_zero_sum(self, orchestrator, store):
        orchestrator.update_season(1)
        total = sum(store.get(team, 1, 2).delta for team in TEAMS)
        assert total == pytest.approx(0.0, abs=1e-9)

    def test_live_week_writes_nothing(self, orchestrator, store, caplog):
        orchestrator.update_season(1)
        with caplog.at_level(logging.WARNING):
            written = orchestrator.update_week(1, 3)
        assert written == []
        assert store.get("A", 1, 3) is None
        assert "still in progress" in caplog.text

    def test_rerun_week_replaces_in_place(self, orchestrator, store, caplog):
        orchestrator.update_season(1)
        before = store.get("A", 1, 1).new_rating

        with caplog.at_level(logging.WARNING):
            orchestrator.update_week(1, 1)

        assert store.get("A", 1, 1).new_rating == before
        assert [s.week for s in store.season_snapshots("A", 1)] == [None, 1, 2]
        assert "already has" in caplog.text

    def test_single_week(self, orchestrator, store):
        orchestrator.update_season(1, PRESEASON_ONLY)
        orchestrator.update_season(1, 1)
        assert store.get("A", 1, 1) is not None
        assert store.get("A", 1, 2) is None

    def test_two_games_in_one_week_sum(self, store, settings):
        season = make_season(1, {1: [make_game("A", 14, "B", 7), make_game("A", 14, "C", 7)]})
        league = make_league(
            [season],
            {"A": {1: "east"}, "B": {1: "east"}, "C": {1: "west"}},
        )
        orchestrator = MetricsUpdateOrchestrator(league, store, settings)
        orchestrator.update_season(1)

        single = calc_home_delta(14, 7, 1500, 1500, 28)
        snapshot = store.get("A", 1, 1)
        assert snapshot.prior_rating == 1500.0
        assert snapshot.delta == pytest.approx(2 * single)
        assert len(store.season_snapshots("A", 1)) == 2


class TestCoachUpdates:
    """Coach Elo within the season runs."""

    def test_coach_snapshots_written(self, orchestrator, store):
        orchestrator.update_season(1)
        alice = store.get("alice", 1, 1, COACH)
        bob = store.get("bob", 1, 1, COACH)
        team_delta = store.get("A", 1, 1).delta

        assert alice.delta == pytest.approx(team_delta * 0.6)
        assert bob.delta == pytest.approx(team_delta * 0.4)
        assert store.timeline("[deleted]", COACH) == []

    def test_coaches_carry_into_next_season(self, orchestrator, store):
        orchestrator.update_all()
        alice_s1 = store.latest_at_or_before("alice", 1, None, COACH).new_rating
        assert store.get("alice", 2, 1, COACH).prior_rating == alice_s1

    def test_coaches_can_be_skipped(self, orchestrator, store):
        orchestrator.update_season(1, coaches=False)
        assert store.timeline("alice", COACH) == []


class TestErrors:
    """Fatal conditions."""

    def test_unknown_season(self, orchestrator):
        with pytest.raises(SeasonNotFoundError):
            orchestrator.update_season(99)
        with pytest.raises(SeasonNotFoundError):
            orchestrator.update_season_wpn(99)

    def test_unknown_week(self, orchestrator):
        with pytest.raises(WeekNotFoundError):
            orchestrator.update_season(1, 42)

    def test_weekly_pass_needs_preseason(self, orchestrator):
        with pytest.raises(MissingAnchorError):
            orchestrator.update_week(1, 1)

    def test_mid_season_debut_without_anchor(self, store, settings):
        season = make_season(1, {1: [make_game("A", 14, "E", 7)]})
        league = make_league([season], {"A": {1: "east"}, "E": {}})
        orchestrator = MetricsUpdateOrchestrator(league, store, settings)
        with pytest.raises(MissingAnchorError, match="for E"):
            orchestrator.update_season(1)


class TestWPN:
    """Season wPN scores."""

    def test_scores_stored(self, orchestrator, store):
        scores = orchestrator.update_season_wpn(1)
        assert sorted(s.team for s in scores) == TEAMS
        assert all(store.get_wpn(team, 1) is not None for team in TEAMS)

    def test_value_without_margin_weighting(self, orchestrator, store):
        """A beat B (who beat D) and lost to C (who never lost)."""
        orchestrator.update_season_wpn(1, mov_influence=0.0)
        assert store.get_wpn("A", 1).score == pytest.approx(0.2)

    def test_recompute_overwrites(self, orchestrator, store):
        orchestrator.update_season_wpn(1, mov_influence=0.0)
        orchestrator.update_season_wpn(1, mov_influence=0.25)
        assert len(store.wpn_scores(1)) == 4


class TestDeleteSeason:
    """Removing a season's metrics."""

    def test_delete(self, orchestrator, store):
        orchestrator.update_all()
        orchestrator.update_season_wpn(1)
        orchestrator.delete_season(1)

        assert store.season_snapshots("A", 1) == []
        assert store.get_wpn("A", 1) is None
        assert len(store.season_snapshots("A", 2)) == 2
