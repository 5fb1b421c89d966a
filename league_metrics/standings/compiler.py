"""Conference and division standings.

Standings are compiled from scratch on every call: a pure fold over the
season's finalized regular-season games produces a fresh StandingsEntry per
team, and each division is then sorted with the tie-break cascade:

    1. Conference wins
    2. Conference games over .500 (wins - losses)
    3. Head-to-head
    4. Division wins
    5. Division games over .500
    6. Record against common opponents
    7. Conference point differential
    8. Division point differential

Records only count regular-season weeks, but head-to-head and common
opponents look at every finalized game of the season.

Teams still tied after all eight keep their input order.
"""

import logging
from dataclasses import dataclass, field, replace
from functools import cmp_to_key
from typing import Callable, Optional

from config.league import division_sort_key, is_conference_game
from league_metrics.data.schedule import Conference, Game, Season, Team

logger = logging.getLogger(__name__)

REGULAR_SEASON_LAST_WEEK = 13

WIN = "W"
LOSS = "L"
TIE = "T"


@dataclass(frozen=True)
class StandingsRecord:
    wins: int = 0
    losses: int = 0
    ties: int = 0
    points_for: int = 0
    points_against: int = 0

    @property
    def margin(self) -> int:
        """Games over .500."""
        return self.wins - self.losses

    @property
    def point_differential(self) -> int:
        return self.points_for - self.points_against

    def add(self, pf: int, pa: int) -> "StandingsRecord":
        return StandingsRecord(
            wins=self.wins + (pf > pa),
            losses=self.losses + (pa > pf),
            ties=self.ties + (pf == pa),
            points_for=self.points_for + pf,
            points_against=self.points_against + pa,
        )


@dataclass(frozen=True)
class Streak:
    type: Optional[str] = None  # W, L, T; None before the first game
    length: int = 0

    def extend(self, result: str) -> "Streak":
        if result == self.type:
            return Streak(type=result, length=self.length + 1)
        return Streak(type=result, length=1)

    def __str__(self) -> str:
        return f"{self.type}{self.length}" if self.type else "N/A"


@dataclass(frozen=True)
class StandingsEntry:
    """One team's season-to-date standings line."""

    team: str
    abbreviation: Optional[str]
    division_id: str
    overall: StandingsRecord = StandingsRecord()
    conference: StandingsRecord = StandingsRecord()
    division: StandingsRecord = StandingsRecord()
    streak: Streak = Streak()

    def record_game(self, pf: int, pa: int, conference_game: bool, division_game: bool) -> "StandingsEntry":
        """New entry with one more game applied."""
        result = WIN if pf > pa else LOSS if pa > pf else TIE
        return replace(
            self,
            overall=self.overall.add(pf, pa),
            conference=self.conference.add(pf, pa) if conference_game else self.conference,
            division=self.division.add(pf, pa) if division_game else self.division,
            streak=self.streak.extend(result),
        )


@dataclass
class DivisionStandings:
    division_id: str
    name: str
    teams: list[StandingsEntry] = field(default_factory=list)


@dataclass
class ConferenceStandings:
    name: str
    divisions: list[DivisionStandings] = field(default_factory=list)


def _descending(a_value: float, b_value: float) -> int:
    """Comparator result ranking the larger value first."""
    return (b_value > a_value) - (b_value < a_value)


def head_to_head(team: str, opp: str, games: list[Game]) -> int:
    """Head-to-head tie-break.

    Returns:
        -1 if ``team`` won every meeting, 1 if ``opp`` won every meeting,
        0 when they never met, split the meetings, or any meeting was tied
    """
    winners = []
    for game in games:
        if not (game.involves(team) and game.involves(opp)):
            continue
        winner = game.winner
        if winner is None:
            return 0
        winners.append(winner)

    if not winners:
        return 0
    if all(w == team for w in winners):
        return -1
    if all(w == opp for w in winners):
        return 1
    return 0


def _margins_by_opponent(team: str, games: list[Game]) -> dict[str, list[int]]:
    margins: dict[str, list[int]] = {}
    for game in games:
        if not game.involves(team):
            continue
        side = game.side_for(team)
        other = game.opponent_of(team)
        margins.setdefault(other.team, []).append(side.score - other.score)
    return margins


def _win_percentage(margins: list[int]) -> float:
    wins = sum(1 for m in margins if m > 0)
    ties = sum(1 for m in margins if m == 0)
    return (wins + ties / 2) / len(margins)


def common_opponents(team: str, opp: str, games: list[Game]) -> float:
    """Common-opponents tie-break.

    Compares win percentage (ties count half) in games against opponents
    both teams played.

    Returns:
        opp percentage - team percentage: negative when ``team`` ranks
        higher, positive when ``opp`` does, 0 with no common opponents
    """
    team_games = _margins_by_opponent(team, games)
    opp_games = _margins_by_opponent(opp, games)

    team_margins: list[int] = []
    opp_margins: list[int] = []
    for common in team_games.keys() & opp_games.keys():
        team_margins.extend(team_games[common])
        opp_margins.extend(opp_games[common])

    if not team_margins:
        return 0.0
    return _win_percentage(opp_margins) - _win_percentage(team_margins)


def division_comparator(games: list[Game]) -> Callable[[StandingsEntry, StandingsEntry], int]:
    """Comparator implementing the tie-break cascade over a season's games."""

    def compare(a: StandingsEntry, b: StandingsEntry) -> int:
        # Conference wins
        result = _descending(a.conference.wins, b.conference.wins)
        if result:
            return result
        # Conference games over .500
        result = _descending(a.conference.margin, b.conference.margin)
        if result:
            return result
        result = head_to_head(a.team, b.team, games)
        if result:
            return result
        # Division wins
        result = _descending(a.division.wins, b.division.wins)
        if result:
            return result
        # Division games over .500
        result = _descending(a.division.margin, b.division.margin)
        if result:
            return result
        common = common_opponents(a.team, b.team, games)
        if common:
            return 1 if common > 0 else -1
        result = _descending(a.conference.point_differential, b.conference.point_differential)
        if result:
            return result
        return _descending(a.division.point_differential, b.division.point_differential)

    return compare


class StandingsCompiler:
    """Compile a season's standings tables."""

    def __init__(self, regular_season_last_week: int = REGULAR_SEASON_LAST_WEEK):
        """Initialize compiler.

        Args:
            regular_season_last_week: Last week (inclusive) counted in standings
        """
        self.regular_season_last_week = regular_season_last_week

    def tiebreak_games(self, season: Season) -> list[Game]:
        """Every finalized game of the season, later weeks included."""
        return [game for _, game in season.iter_games()]

    def fold(self, season: Season, teams: list[Team]) -> dict[str, StandingsEntry]:
        """Apply every regular-season game to fresh entries.

        Teams without a division for the season are left out of the tables.
        Their opponents still record the game.
        """
        season_no = season.season_no
        divisions = {t.name: t.division_for(season_no) for t in teams}
        entries: dict[str, StandingsEntry] = {}
        for team in teams:
            division_id = divisions[team.name]
            if division_id is None:
                logger.warning(
                    f"{team.name} has no division for season {season_no}, excluded from standings"
                )
                continue
            entries[team.name] = StandingsEntry(
                team=team.name, abbreviation=team.abbreviation, division_id=division_id
            )

        for week_no, game in season.iter_games(self.regular_season_last_week):
            conference_game = is_conference_game(season_no, week_no)
            for side, other in ((game.home, game.away), (game.away, game.home)):
                entry = entries.get(side.team)
                if entry is None:
                    continue
                division_game = divisions.get(other.team) == entry.division_id
                entries[side.team] = entry.record_game(
                    side.score, other.score, conference_game, division_game
                )
        return entries

    def compile(
        self,
        season: Season,
        conferences: list[Conference],
        teams: list[Team],
    ) -> list[ConferenceStandings]:
        """Standings for every conference, divisions and teams sorted.

        Args:
            season: Season to compile
            conferences: Conference/division structure
            teams: All league teams (division membership resolved per season)

        Returns:
            Conferences alphabetically, each with divisions in display order
            and teams ranked by the tie-break cascade
        """
        entries = self.fold(season, teams)
        comparator = cmp_to_key(division_comparator(self.tiebreak_games(season)))

        placed: set[str] = set()
        standings = []
        for conference in sorted(conferences, key=lambda c: c.name):
            divisions = []
            for division in sorted(conference.divisions, key=lambda d: division_sort_key(d.name)):
                members = [e for e in entries.values() if e.division_id == division.division_id]
                placed.update(e.team for e in members)
                divisions.append(
                    DivisionStandings(
                        division_id=division.division_id,
                        name=division.name,
                        teams=sorted(members, key=comparator),
                    )
                )
            standings.append(ConferenceStandings(name=conference.name, divisions=divisions))

        orphans = sorted(set(entries) - placed)
        if orphans:
            logger.warning(
                f"Season {season.season_no}: {len(orphans)} teams in unknown divisions: {', '.join(orphans)}"
            )
        return standings
