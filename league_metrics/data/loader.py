"""Load a league export (JSON) into a LeagueRepository."""

import json
import logging
from pathlib import Path
from typing import Union

from league_metrics.data.schedule import (
    Coach,
    CoachShare,
    Conference,
    Division,
    Game,
    GameSide,
    LeagueRepository,
    Season,
    Team,
    Week,
)

logger = logging.getLogger(__name__)


def _parse_divisions(raw) -> dict[int, str]:
    """Division history as {season_no: division_id}.

    Accepts either a mapping keyed by season number or a list where index 0
    is season 1 (the league database's layout).
    """
    if raw is None:
        return {}
    if isinstance(raw, list):
        return {i + 1: div for i, div in enumerate(raw) if div is not None}
    return {int(season_no): div for season_no, div in raw.items() if div is not None}


def _parse_side(raw: dict) -> GameSide:
    return GameSide(
        team=raw["team"],
        score=int(raw.get("score", 0)),
        quarters=[int(q) for q in raw.get("quarters", [])],
        coaches=[
            CoachShare(coach=c.get("coach"), plays=int(c.get("plays", 0)))
            for c in raw.get("coaches", [])
        ],
    )


def _parse_game(raw: dict) -> Game:
    return Game(
        game_id=str(raw["game_id"]),
        home=_parse_side(raw["home"]),
        away=_parse_side(raw["away"]),
        start_time=raw.get("start_time"),
        end_time=raw.get("end_time"),
        live=bool(raw.get("live", False)),
    )


def league_from_dict(data: dict) -> LeagueRepository:
    """Build a repository from an already-decoded league export.

    Raises:
        ValueError: If a game references a team that is not in the league
    """
    teams = [
        Team(
            name=t["name"],
            abbreviation=t.get("abbreviation"),
            divisions=_parse_divisions(t.get("divisions")),
        )
        for t in data.get("teams", [])
    ]
    known = {t.name for t in teams}

    conferences = [
        Conference(
            name=c["name"],
            divisions=[Division(division_id=d["id"], name=d["name"]) for d in c.get("divisions", [])],
        )
        for c in data.get("conferences", [])
    ]
    coaches = [Coach(username=c["username"]) for c in data.get("coaches", [])]

    repository = LeagueRepository(teams=teams, coaches=coaches, conferences=conferences)
    for raw_season in data.get("seasons", []):
        weeks = []
        for raw_week in raw_season.get("weeks", []):
            games = [_parse_game(g) for g in raw_week.get("games", [])]
            for game in games:
                for side in (game.home, game.away):
                    if side.team not in known:
                        raise ValueError(
                            f"Game {game.game_id} references unknown team '{side.team}'"
                        )
            weeks.append(Week(week_no=int(raw_week["week_no"]), games=games, name=raw_week.get("name")))
        repository.add_season(Season(season_no=int(raw_season["season_no"]), weeks=weeks))

    seasons = repository.seasons()
    n_games = sum(len(w.games) for s in seasons for w in s.weeks)
    logger.info(
        f"Loaded league: {len(teams)} teams, {len(coaches)} coaches, "
        f"{len(seasons)} seasons, {n_games} games"
    )
    return repository


def load_league(path: Union[str, Path]) -> LeagueRepository:
    """Load a league export file."""
    path = Path(path)
    with path.open() as f:
        data = json.load(f)
    logger.debug(f"Read league export from {path}")
    return league_from_dict(data)
