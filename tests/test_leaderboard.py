"""Tests for leaderboard rows, CSV text and the workbook export."""

import pytest
from openpyxl import load_workbook

from builders import make_league, make_season
from league_metrics.data.rating_store import COACH, RatingSnapshot, WPNScore
from league_metrics.ratings.update import MetricsUpdateOrchestrator
from league_metrics.reports.leaderboard import (
    COACH_HEADER,
    RANGE_HEADER,
    TEAM_HEADER,
    LeaderboardExporter,
    RatingRange,
    coach_leaderboard,
    coach_rating_ranges,
    coach_records,
    range_rows,
    team_leaderboard,
    team_rating_ranges,
    to_csv_text,
)


@pytest.fixture
def rated(league, store, settings):
    orchestrator = MetricsUpdateOrchestrator(league, store, settings)
    orchestrator.update_all()
    orchestrator.update_season_wpn(2)
    return league, store


class TestCsv:
    """CSV text."""

    def test_header_and_rows(self):
        text = to_csv_text([("A", 1510.5, 0.2), ("B", 1489.5, None)], TEAM_HEADER)
        assert text.splitlines() == ["Team Name,Elo,wP-N", "A,1510.5,0.2", "B,1489.5,"]

    def test_quotes_commas(self):
        text = to_csv_text([("Team, The", 1500.0, 0.0)], TEAM_HEADER)
        assert text.splitlines()[1] == '"Team, The",1500.0,0.0'

    def test_range_rows(self):
        ranges = [RatingRange(3, None, 1500.0, 1500.0), RatingRange(3, 1, 1488.123, 1511.877)]
        text = to_csv_text(range_rows(ranges), RANGE_HEADER)
        assert text.splitlines() == [
            "Season,Week,Min,Max",
            "3,Preseason,1500.0,1500.0",
            "3,1,1488.12,1511.88",
        ]


class TestTeamLeaderboard:
    """Latest Elo and wPN per team."""

    def test_sorted_by_elo(self, rated):
        league, store = rated
        rows = team_leaderboard(store, league)
        assert len(rows) == 4
        assert [r[1] for r in rows] == sorted((r[1] for r in rows), reverse=True)

    def test_uses_latest_values(self, rated):
        league, store = rated
        rows = {r[0]: r for r in team_leaderboard(store, league)}
        assert rows["A"][1] == store.latest("A").new_rating
        assert rows["A"][2] == store.get_wpn("A", 2).score

    def test_unrated_teams_left_out(self, league, store):
        store.upsert(
            RatingSnapshot(entity="A", season=1, week=None, opponent_rating=None,
                           prior_rating=1500.0, new_rating=1500.0)
        )
        store.set_wpn(WPNScore(team="A", season=1, score=0.4))
        assert team_leaderboard(store, league) == [("A", 1500.0, 0.4)]


class TestCoachLeaderboard:
    """Coach Elo with records."""

    def test_primary_requires_majority_of_plays(self, league):
        alice_primary, alice_all = coach_records("alice", league)
        bob_primary, bob_all = coach_records("bob", league)

        # A: W vs B, L vs C in season 1; L at B in season 2 (live game excluded)
        assert (alice_all.wins, alice_all.losses, alice_all.ties) == (1, 2, 0)
        assert (alice_primary.wins, alice_primary.losses) == (1, 2)
        assert (bob_all.wins, bob_all.losses) == (1, 2)
        assert (bob_primary.wins, bob_primary.losses, bob_primary.ties) == (0, 0, 0)

    def test_ties_recorded(self, league):
        _, dave_all = coach_records("dave", league)
        assert dave_all.ties == 1

    def test_rows(self, rated):
        league, store = rated
        rows = {r[0]: r for r in coach_leaderboard(store, league)}
        assert sorted(rows) == ["alice", "bob", "carol", "dave"]
        assert rows["alice"][1] == store.latest("alice", COACH).new_rating
        assert len(rows["alice"]) == len(COACH_HEADER)


class TestCoachRanges:
    """Per-week spread of coach ratings."""

    def test_ranges_cover_every_week(self, rated):
        league, store = rated
        ranges = coach_rating_ranges(store, league)
        assert [(r.season, r.week) for r in ranges] == [(1, 1), (1, 2), (1, 3), (2, 1)]
        for r in ranges:
            assert r.min <= 1500.0 <= r.max

    def test_extremes_match_snapshots(self, rated):
        league, store = rated
        ranges = {(r.season, r.week): r for r in coach_rating_ranges(store, league)}
        week1 = [store.get(c, 1, 1, COACH).new_rating for c in ["alice", "bob", "carol", "dave"]]
        assert ranges[(1, 1)].max == pytest.approx(max(week1 + [1500.0]))
        assert ranges[(1, 1)].min == pytest.approx(min(week1 + [1500.0]))
        # Week 3 only had a live game: ratings carry forward from week 2
        assert ranges[(1, 3)].max == ranges[(1, 2)].max

    def test_empty_league(self, store):
        assert coach_rating_ranges(store, make_league([], {})) == []


class TestTeamRanges:
    """Per-week spread of team ratings, preseason included."""

    def test_preseason_column_per_season(self, rated):
        league, store = rated
        ranges = team_rating_ranges(store, league)
        assert [(r.season, r.week) for r in ranges] == [
            (1, None), (1, 1), (1, 2), (1, 3), (2, None), (2, 1),
        ]
        first = ranges[0]
        assert (first.min, first.max) == (1500.0, 1500.0)

    def test_extremes_match_snapshots(self, rated):
        league, store = rated
        ranges = {(r.season, r.week): r for r in team_rating_ranges(store, league)}
        teams = ["A", "B", "C", "D"]
        week1 = [store.get(t, 1, 1).new_rating for t in teams]
        assert ranges[(1, 1)].max == pytest.approx(max(week1 + [1500.0]))
        assert ranges[(1, 1)].min == pytest.approx(min(week1 + [1500.0]))
        anchors = [store.get(t, 2, None).new_rating for t in teams]
        assert ranges[(2, None)].max == pytest.approx(max(anchors + [1500.0]))
        assert ranges[(2, None)].min == pytest.approx(min(anchors + [1500.0]))
        assert ranges[(1, 3)] == RatingRange(1, 3, ranges[(1, 2)].min, ranges[(1, 2)].max)

    def test_rolling_rating_restarts_each_season(self, store):
        league = make_league(
            [make_season(1, {1: []}), make_season(2, {1: []})],
            {"A": {1: "east", 2: "east"}, "B": {1: "east", 2: "east"}},
        )
        for snapshot in [
            RatingSnapshot("A", 1, None, None, 1500.0, 1500.0),
            RatingSnapshot("A", 1, 1, 1500.0, 1500.0, 1620.0),
            RatingSnapshot("B", 1, None, None, 1500.0, 1500.0),
            RatingSnapshot("B", 1, 1, 1500.0, 1500.0, 1380.0),
            RatingSnapshot("B", 2, None, None, 1380.0, 1420.0),
        ]:
            store.upsert(snapshot)

        ranges = {(r.season, r.week): (r.min, r.max) for r in team_rating_ranges(store, league)}
        assert ranges[(1, 1)] == (1380.0, 1620.0)
        # A has no season 2 snapshots; its season 1 rating does not carry over
        assert ranges[(2, None)] == (1420.0, 1500.0)
        assert ranges[(2, 1)] == (1420.0, 1500.0)

    def test_empty_league(self, store):
        assert team_rating_ranges(store, make_league([], {})) == []


class TestExcelExport:
    """Workbook output."""

    def test_sheets_written(self, rated, tmp_path):
        league, store = rated
        path = LeaderboardExporter(tmp_path).export(store, league, filename="board.xlsx")
        assert path == tmp_path / "board.xlsx"

        wb = load_workbook(path)
        assert wb.sheetnames == ["Teams", "Coaches"]
        teams = wb["Teams"]
        assert [c.value for c in teams[1]] == ["Rank"] + TEAM_HEADER
        assert teams.cell(row=2, column=1).value == 1
        assert wb["Coaches"].cell(row=1, column=1).value == "Username"

    def test_empty_store(self, league, store, tmp_path):
        path = LeaderboardExporter(tmp_path).export(store, league, filename="empty.xlsx")
        wb = load_workbook(path)
        assert wb["Teams"].cell(row=1, column=1).value == "No teams rated yet"
