"""League schedule records and the in-memory league repository.

Seasons own weeks, weeks own games. Games carry both sides' final scores,
per-quarter scores, the coaches who called plays for each side, and a
``live`` flag that stays True while the game is in progress. Live games are
never handed to the rating, wPN or standings code.

Division membership is season-indexed: a team can move divisions every
season, so every lookup goes through ``Team.division_for(season_no)``.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterator, Optional

import polars as pl

logger = logging.getLogger(__name__)

# Coaches whose accounts were removed upstream; always rated at the default
DELETED_COACH = "[deleted]"


@dataclass
class Team:
    """A team and its season-by-season division assignments."""

    name: str
    abbreviation: Optional[str] = None
    divisions: dict[int, Optional[str]] = field(default_factory=dict)

    def division_for(self, season_no: int) -> Optional[str]:
        """Division id for a season, or None when unassigned."""
        return self.divisions.get(season_no)


@dataclass
class Coach:
    username: str


@dataclass
class CoachShare:
    """A coach's share of one side's plays in a game."""

    coach: Optional[str]
    plays: int


@dataclass
class GameSide:
    team: str
    score: int = 0
    quarters: list[int] = field(default_factory=list)
    coaches: list[CoachShare] = field(default_factory=list)

    @property
    def total_plays(self) -> int:
        return sum(share.plays for share in self.coaches)


@dataclass
class Game:
    """A single game. Scores are final once ``live`` is False."""

    game_id: str
    home: GameSide
    away: GameSide
    start_time: Optional[float] = None  # Seconds since epoch
    end_time: Optional[float] = None
    live: bool = False

    @property
    def length_seconds(self) -> float:
        """Elapsed in-game length; 0 when the game has no timestamps."""
        if self.start_time is None or self.end_time is None:
            return 0.0
        return max(self.end_time - self.start_time, 0.0)

    @property
    def margin(self) -> int:
        """Absolute point differential."""
        return abs(self.home.score - self.away.score)

    @property
    def winner(self) -> Optional[str]:
        """Winning team name, None for a tie."""
        if self.home.score > self.away.score:
            return self.home.team
        if self.away.score > self.home.score:
            return self.away.team
        return None

    def involves(self, team: str) -> bool:
        return self.home.team == team or self.away.team == team

    def side_for(self, team: str) -> GameSide:
        if self.home.team == team:
            return self.home
        if self.away.team == team:
            return self.away
        raise ValueError(f"{team} did not play in game {self.game_id}")

    def opponent_of(self, team: str) -> GameSide:
        return self.away if self.side_for(team) is self.home else self.home


@dataclass
class Week:
    week_no: int
    games: list[Game] = field(default_factory=list)
    name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or f"Week {self.week_no}"

    def final_games(self) -> list[Game]:
        """Games that are no longer in progress."""
        return [game for game in self.games if not game.live]


@dataclass
class Season:
    season_no: int
    weeks: list[Week] = field(default_factory=list)

    def __post_init__(self):
        self.weeks.sort(key=lambda w: w.week_no)

    def week(self, week_no: int) -> Optional[Week]:
        for week in self.weeks:
            if week.week_no == week_no:
                return week
        return None

    def iter_games(self, max_week: Optional[int] = None) -> Iterator[tuple[int, Game]]:
        """Yield (week_no, game) for finalized games, weeks ascending.

        Args:
            max_week: If given, only weeks numbered <= max_week are included
        """
        for week in self.weeks:
            if max_week is not None and week.week_no > max_week:
                continue
            for game in week.final_games():
                yield week.week_no, game

    def games_frame(self, max_week: Optional[int] = None) -> pl.DataFrame:
        """Finalized games as a polars DataFrame (one row per game)."""
        rows = [
            {
                "season": self.season_no,
                "week": week_no,
                "game_id": game.game_id,
                "home_team": game.home.team,
                "away_team": game.away.team,
                "home_points": game.home.score,
                "away_points": game.away.score,
                "length_seconds": game.length_seconds,
            }
            for week_no, game in self.iter_games(max_week)
        ]
        schema = {
            "season": pl.Int64,
            "week": pl.Int64,
            "game_id": pl.Utf8,
            "home_team": pl.Utf8,
            "away_team": pl.Utf8,
            "home_points": pl.Int64,
            "away_points": pl.Int64,
            "length_seconds": pl.Float64,
        }
        return pl.DataFrame(rows, schema=schema)


@dataclass
class Division:
    division_id: str
    name: str


@dataclass
class Conference:
    name: str
    divisions: list[Division] = field(default_factory=list)


class LeagueRepository:
    """In-memory league: teams, coaches, conferences and seasons.

    Stands in for the game/team/coach/season/week collections of the
    league database. Lookups mirror what the metrics code needs: games by
    week, games by team and season, and season/week structure.
    """

    def __init__(
        self,
        teams: Optional[list[Team]] = None,
        coaches: Optional[list[Coach]] = None,
        conferences: Optional[list[Conference]] = None,
        seasons: Optional[list[Season]] = None,
    ):
        self.teams: dict[str, Team] = {t.name: t for t in teams or []}
        self.coaches: dict[str, Coach] = {c.username: c for c in coaches or []}
        self.conferences: list[Conference] = list(conferences or [])
        self._seasons: dict[int, Season] = {s.season_no: s for s in seasons or []}

    def add_season(self, season: Season) -> None:
        if season.season_no in self._seasons:
            logger.warning(f"Season {season.season_no} appears twice; keeping the later one")
        self._seasons[season.season_no] = season

    def seasons(self) -> list[Season]:
        """All seasons, ascending by season number."""
        return [self._seasons[n] for n in sorted(self._seasons)]

    def find_season(self, season_no: int) -> Optional[Season]:
        return self._seasons.get(season_no)

    def find_week(self, season_no: int, week_no: int) -> Optional[Week]:
        season = self.find_season(season_no)
        if season is None:
            return None
        return season.week(week_no)

    def find_by_week(self, season_no: int, week_no: int) -> list[Game]:
        week = self.find_week(season_no, week_no)
        return list(week.games) if week else []

    def find_by_team_and_season(self, team: str, season_no: int) -> list[Game]:
        season = self.find_season(season_no)
        if season is None:
            return []
        return [game for week in season.weeks for game in week.games if game.involves(team)]

    def teams_in_season(self, season_no: int) -> list[Team]:
        """Teams with a division assignment for the season."""
        return [t for t in self.teams.values() if t.division_for(season_no) is not None]

    def division_names(self) -> dict[str, str]:
        """Map of division id to display name."""
        return {d.division_id: d.name for c in self.conferences for d in c.divisions}
