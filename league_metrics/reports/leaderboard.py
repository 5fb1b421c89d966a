"""Leaderboard rows, CSV text and the Excel workbook export.

Team rows are (team, elo, wPN) from each team's latest snapshot and latest
wPN score. Coach rows add win/loss/tie records over every finalized game the
coach called plays in, split into "primary" games (more than half of their
side's plays) and all games.
"""

import csv
import io
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils.dataframe import dataframe_to_rows

from config.settings import get_settings
from league_metrics.data.rating_store import COACH, TEAM, RatingStore
from league_metrics.data.schedule import LeagueRepository
from league_metrics.models.coach_elo import is_rated_coach
from league_metrics.models.elo import DEFAULT_RATING

logger = logging.getLogger(__name__)

TEAM_HEADER = ["Team Name", "Elo", "wP-N"]
COACH_HEADER = [
    "Username",
    "Elo",
    "Primary W",
    "Primary L",
    "Primary T",
    "All W",
    "All L",
    "All T",
]
RANGE_HEADER = ["Season", "Week", "Min", "Max"]


@dataclass
class WLT:
    wins: int = 0
    losses: int = 0
    ties: int = 0

    def add(self, margin: int) -> None:
        if margin > 0:
            self.wins += 1
        elif margin < 0:
            self.losses += 1
        else:
            self.ties += 1


@dataclass
class RatingRange:
    """Spread of rolling ratings at the end of one week (``week=None`` is preseason)."""

    season: int
    week: Optional[int]
    min: float
    max: float


def team_leaderboard(store: RatingStore, repository: LeagueRepository) -> list[tuple]:
    """(team, elo, wpn) rows, highest Elo first.

    Teams without any snapshot are left out; wpn is None when the team has
    never been scored.
    """
    rows = []
    for name in repository.teams:
        latest = store.latest(name, TEAM)
        if latest is None:
            continue
        wpn = store.latest_wpn(name)
        rows.append((name, latest.new_rating, wpn.score if wpn else None))
    rows.sort(key=lambda r: (-r[1], r[0]))
    return rows


def coach_records(coach: str, repository: LeagueRepository) -> tuple[WLT, WLT]:
    """(primary, all) records for a coach over every finalized game."""
    primary = WLT()
    overall = WLT()
    for season in repository.seasons():
        for _, game in season.iter_games():
            for side, other in ((game.home, game.away), (game.away, game.home)):
                shares = [s for s in side.coaches if s.coach == coach]
                if not shares:
                    continue
                plays = sum(s.plays for s in shares)
                margin = side.score - other.score
                overall.add(margin)
                if plays > side.total_plays / 2:
                    primary.add(margin)
    return primary, overall


def coach_leaderboard(store: RatingStore, repository: LeagueRepository) -> list[tuple]:
    """(username, elo, primary W/L/T, all W/L/T) rows, highest Elo first."""
    rows = []
    for username in repository.coaches:
        if not is_rated_coach(username):
            continue
        latest = store.latest(username, COACH)
        if latest is None:
            continue
        primary, overall = coach_records(username, repository)
        rows.append(
            (
                username,
                latest.new_rating,
                primary.wins,
                primary.losses,
                primary.ties,
                overall.wins,
                overall.losses,
                overall.ties,
            )
        )
    rows.sort(key=lambda r: (-r[1], r[0]))
    return rows


def _ranges(columns: list[tuple[int, Optional[int]]], rows: list[np.ndarray]) -> list[RatingRange]:
    """Column-wise min/max of rolling ratings; 1500 is always inside the range."""
    ratings = np.vstack([np.full(len(columns), DEFAULT_RATING)] + rows)
    lows = np.nanmin(ratings, axis=0)
    highs = np.nanmax(ratings, axis=0)
    return [
        RatingRange(season=season_no, week=week_no, min=float(low), max=float(high))
        for (season_no, week_no), low, high in zip(columns, lows, highs)
    ]


def team_rating_ranges(store: RatingStore, repository: LeagueRepository) -> list[RatingRange]:
    """Min and max rolling team rating at the preseason and after every week.

    Each season starts with a preseason column (``week=None``). A team's
    rolling rating restarts at its preseason anchor and carries forward
    through weeks it did not play. Teams without snapshots in a season do
    not count toward that season's ranges.
    """
    columns = [
        (season.season_no, week_no)
        for season in repository.seasons()
        for week_no in [None] + [w.week_no for w in season.weeks]
    ]
    if not columns:
        return []

    rows = []
    for team in store.entities(TEAM):
        row = np.full(len(columns), np.nan)
        rolling = np.nan
        current_season = None
        for col, (season_no, week_no) in enumerate(columns):
            if season_no != current_season:
                rolling = np.nan
                current_season = season_no
            snapshot = store.get(team, season_no, week_no, TEAM)
            if snapshot is not None:
                rolling = snapshot.new_rating
            row[col] = rolling
        rows.append(row)
    return _ranges(columns, rows)


def coach_rating_ranges(store: RatingStore, repository: LeagueRepository) -> list[RatingRange]:
    """Min and max rolling coach rating after every week of every season.

    A coach's rolling rating starts at 1500 and carries forward through
    weeks they did not play, across season boundaries.
    """
    columns = [(s.season_no, w.week_no) for s in repository.seasons() for w in s.weeks]
    if not columns:
        return []

    rows = []
    for coach in store.entities(COACH):
        row = np.full(len(columns), DEFAULT_RATING)
        rolling = DEFAULT_RATING
        for col, (season_no, week_no) in enumerate(columns):
            snapshot = store.get(coach, season_no, week_no, COACH)
            if snapshot is not None:
                rolling = snapshot.new_rating
            row[col] = rolling
        rows.append(row)
    return _ranges(columns, rows)


def range_rows(ranges: Sequence[RatingRange]) -> list[tuple]:
    """(season, week, min, max) rows; the preseason column reads "Preseason"."""
    return [
        (r.season, "Preseason" if r.week is None else r.week, round(r.min, 2), round(r.max, 2))
        for r in ranges
    ]


def to_csv_text(rows: Sequence[Sequence], header: Sequence[str]) -> str:
    """Rows as CSV text, header first, no trailing newline."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    for row in rows:
        writer.writerow(["" if value is None else value for value in row])
    return buffer.getvalue().rstrip("\n")


class LeaderboardExporter:
    """
    Export leaderboards to an Excel workbook.

    Sheets:
    1. Teams - Latest Elo and wP-N, ranked by Elo
    2. Coaches - Latest Elo with primary and overall records
    """

    def __init__(self, output_dir: Optional[Path] = None):
        """Initialize exporter.

        Args:
            output_dir: Output directory for Excel files
        """
        settings = get_settings()
        self.output_dir = Path(output_dir) if output_dir else settings.outputs_dir

    def _style_header(self, ws, num_cols: int) -> None:
        header_fill = PatternFill(start_color="1F4E79", end_color="1F4E79", fill_type="solid")
        header_font = Font(color="FFFFFF", bold=True)
        for col in range(1, num_cols + 1):
            cell = ws.cell(row=1, column=col)
            cell.fill = header_fill
            cell.font = header_font
            cell.alignment = Alignment(horizontal="center")

    def _auto_column_width(self, ws) -> None:
        for column in ws.columns:
            max_length = max((len(str(c.value)) for c in column if c.value is not None), default=0)
            ws.column_dimensions[column[0].column_letter].width = min(max_length + 2, 50)

    def _add_borders(self, ws) -> None:
        thin = Side(style="thin")
        thin_border = Border(left=thin, right=thin, top=thin, bottom=thin)
        for row in ws.iter_rows():
            for cell in row:
                if cell.value is not None:
                    cell.border = thin_border

    def _write_sheet(self, wb: Workbook, title: str, df: pd.DataFrame) -> None:
        ws = wb.create_sheet(title)
        if df.empty:
            ws.cell(row=1, column=1, value=f"No {title.lower()} rated yet")
            return

        for r_idx, row in enumerate(dataframe_to_rows(df, index=False, header=True)):
            for c_idx, value in enumerate(row, start=1):
                cell = ws.cell(row=r_idx + 1, column=c_idx)
                if isinstance(value, float) and not np.isnan(value):
                    cell.value = round(value, 2)
                    cell.number_format = "0.00"
                elif isinstance(value, float):
                    cell.value = None
                else:
                    cell.value = value

        self._style_header(ws, len(df.columns))
        self._auto_column_width(ws)
        self._add_borders(ws)

    def export(
        self,
        store: RatingStore,
        repository: LeagueRepository,
        filename: Optional[str] = None,
    ) -> Path:
        """Write the Teams and Coaches sheets.

        Args:
            store: Rating timelines and wPN scores
            repository: League data (team and coach lists, game results)
            filename: Custom filename (optional)

        Returns:
            Path to created file
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        if filename is None:
            filename = f"league_metrics_{datetime.now().strftime('%Y%m%d')}.xlsx"
        filepath = self.output_dir / filename

        teams_df = pd.DataFrame(team_leaderboard(store, repository), columns=TEAM_HEADER)
        teams_df.insert(0, "Rank", range(1, len(teams_df) + 1))
        coaches_df = pd.DataFrame(coach_leaderboard(store, repository), columns=COACH_HEADER)

        wb = Workbook()
        wb.remove(wb.active)
        self._write_sheet(wb, "Teams", teams_df)
        self._write_sheet(wb, "Coaches", coaches_df)

        wb.save(filepath)
        logger.info(
            f"Exported leaderboard to {filepath} ({len(teams_df)} teams, {len(coaches_df)} coaches)"
        )
        return filepath
