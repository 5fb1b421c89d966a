"""Rating timelines for teams and coaches, plus per-season wPN scores.

Each entity (team or coach) owns a timeline of rating snapshots indexed by
(season, week). A snapshot with ``week=None`` is the preseason anchor and
sorts before every real week of its season. There is exactly one snapshot
per (entity, season, week): writing an existing key replaces it in place.

Writes to the same timeline are serialized with a per-entity lock, so
independent entities can be updated from worker threads without
interfering with each other.

Persistence:
    ``save()`` uses the same atomic write pattern as the season cache:
    1. Write parquet files to .tmp/
    2. Move files into place
    3. Write the .complete marker LAST
    ``load()`` refuses a directory without the marker.
"""

import bisect
import logging
import shutil
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import polars as pl

logger = logging.getLogger(__name__)

TEAM = "team"
COACH = "coach"

COMPLETE_MARKER = ".complete"
SNAPSHOTS_FILE = "snapshots.parquet"
WPN_FILE = "wpn.parquet"

SNAPSHOT_SCHEMA = {
    "kind": pl.Utf8,
    "entity": pl.Utf8,
    "season": pl.Int64,
    "week": pl.Int64,
    "opponent_rating": pl.Float64,
    "prior_rating": pl.Float64,
    "new_rating": pl.Float64,
    "game_id": pl.Utf8,
}

WPN_SCHEMA = {
    "team": pl.Utf8,
    "season": pl.Int64,
    "score": pl.Float64,
    "win_score": pl.Float64,
    "loss_score": pl.Float64,
}


def week_order(week: Optional[int]) -> float:
    """Sort position of a week within its season; preseason comes first."""
    return float("-inf") if week is None else float(week)


@dataclass
class RatingSnapshot:
    """One rating update for an entity in a given season/week."""

    entity: str
    season: int
    week: Optional[int]  # None = preseason anchor
    opponent_rating: Optional[float]
    prior_rating: float
    new_rating: float
    game_id: Optional[str] = None
    kind: str = TEAM

    @property
    def is_preseason(self) -> bool:
        return self.week is None

    @property
    def delta(self) -> float:
        return self.new_rating - self.prior_rating


@dataclass
class WPNScore:
    """Park-Newman win value for a team-season."""

    team: str
    season: int
    score: float
    win_score: float = 0.0
    loss_score: float = 0.0


class SeasonTimeline:
    """One entity's snapshots for one season, keyed by week and kept in week order."""

    def __init__(self):
        self.by_week: dict[Optional[int], RatingSnapshot] = {}
        self._keys: list[float] = []
        self._weeks: list[Optional[int]] = []

    def __len__(self) -> int:
        return len(self._weeks)

    def put(self, snapshot: RatingSnapshot) -> bool:
        """Insert or replace the snapshot for its week. Returns True if replaced."""
        replaced = snapshot.week in self.by_week
        if not replaced:
            key = week_order(snapshot.week)
            i = bisect.bisect_left(self._keys, key)
            self._keys.insert(i, key)
            self._weeks.insert(i, snapshot.week)
        self.by_week[snapshot.week] = snapshot
        return replaced

    def snapshots(self) -> list[RatingSnapshot]:
        return [self.by_week[w] for w in self._weeks]

    def last(self) -> Optional[RatingSnapshot]:
        return self.by_week[self._weeks[-1]] if self._weeks else None

    def at_or_before(self, week: Optional[int]) -> Optional[RatingSnapshot]:
        """Latest snapshot with week <= ``week``; ``None`` means no cap."""
        if week is None:
            return self.last()
        i = bisect.bisect_right(self._keys, float(week))
        return self.by_week[self._weeks[i - 1]] if i else None

    def before(self, week: Optional[int]) -> Optional[RatingSnapshot]:
        """Latest snapshot strictly before ``week`` (preseason has nothing before it)."""
        i = bisect.bisect_left(self._keys, week_order(week))
        return self.by_week[self._weeks[i - 1]] if i else None

    def count_after(self, week: Optional[int]) -> int:
        return len(self._keys) - bisect.bisect_right(self._keys, week_order(week))


class RatingStore:
    """Indexed, append-or-replace store of rating snapshots."""

    def __init__(self):
        self._timelines: dict[tuple[str, str], dict[int, SeasonTimeline]] = {}
        self._wpn: dict[tuple[str, int], WPNScore] = {}
        self._locks: dict[tuple[str, str], threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, kind: str, entity: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get((kind, entity))
            if lock is None:
                lock = threading.Lock()
                self._locks[(kind, entity)] = lock
            return lock

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    def ensure_entity(self, entity: str, kind: str = TEAM) -> bool:
        """Create an empty timeline if none exists. Returns True if created."""
        with self._lock_for(kind, entity):
            if (kind, entity) in self._timelines:
                return False
            self._timelines[(kind, entity)] = {}
        logger.debug(f"Created {kind} metrics for {entity}")
        return True

    def has_entity(self, entity: str, kind: str = TEAM) -> bool:
        return (kind, entity) in self._timelines

    def entities(self, kind: str = TEAM) -> list[str]:
        return sorted(e for k, e in self._timelines if k == kind)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _season(self, entity: str, season: int, kind: str) -> Optional[SeasonTimeline]:
        return self._timelines.get((kind, entity), {}).get(season)

    def _seasons_desc(self, entity: str, kind: str) -> list[tuple[int, SeasonTimeline]]:
        seasons = self._timelines.get((kind, entity), {})
        return [(n, seasons[n]) for n in sorted(seasons, reverse=True)]

    def get(self, entity: str, season: int, week: Optional[int], kind: str = TEAM) -> Optional[RatingSnapshot]:
        timeline = self._season(entity, season, kind)
        return timeline.by_week.get(week) if timeline else None

    def has_season(self, entity: str, season: int, kind: str = TEAM) -> bool:
        timeline = self._season(entity, season, kind)
        return bool(timeline)

    def timeline(self, entity: str, kind: str = TEAM) -> list[RatingSnapshot]:
        """All snapshots for an entity in chronological order."""
        return [s for _, timeline in reversed(self._seasons_desc(entity, kind)) for s in timeline.snapshots()]

    def season_snapshots(self, entity: str, season: int, kind: str = TEAM) -> list[RatingSnapshot]:
        """Snapshots for one season, preseason first."""
        timeline = self._season(entity, season, kind)
        return timeline.snapshots() if timeline else []

    def latest_at_or_before(
        self, entity: str, season: int, week: Optional[int], kind: str = TEAM
    ) -> Optional[RatingSnapshot]:
        """Most recent snapshot in ``season`` with week <= ``week``.

        The preseason anchor always qualifies. ``week=None`` means no cap.
        """
        timeline = self._season(entity, season, kind)
        return timeline.at_or_before(week) if timeline else None

    def latest_before(
        self, entity: str, season: int, week: Optional[int], kind: str = TEAM
    ) -> Optional[RatingSnapshot]:
        """Most recent snapshot strictly before (season, week) across all seasons."""
        for n, timeline in self._seasons_desc(entity, kind):
            if n > season:
                continue
            snapshot = timeline.before(week) if n == season else timeline.last()
            if snapshot is not None:
                return snapshot
        return None

    def count_after(self, entity: str, season: int, week: Optional[int], kind: str = TEAM) -> int:
        """Number of snapshots later than (season, week) across all seasons."""
        count = 0
        for n, timeline in self._timelines.get((kind, entity), {}).items():
            if n > season:
                count += len(timeline)
            elif n == season:
                count += timeline.count_after(week)
        return count

    def latest(self, entity: str, kind: str = TEAM) -> Optional[RatingSnapshot]:
        for _, timeline in self._seasons_desc(entity, kind):
            if timeline:
                return timeline.last()
        return None

    def check_chain(self, entity: str, season: Optional[int] = None, kind: str = TEAM) -> list[str]:
        """Report snapshots whose prior rating does not continue the timeline.

        Args:
            entity: Team name or coach username
            season: Restrict the check to one season (team timelines restart
                at each preseason anchor, so they are checked per season)
            kind: TEAM or COACH

        Returns:
            List of human-readable problems; empty when the chain is intact
        """
        snapshots = self.timeline(entity, kind) if season is None else self.season_snapshots(entity, season, kind)
        problems = []
        for previous, current in zip(snapshots, snapshots[1:]):
            if current.is_preseason:
                continue
            if abs(current.prior_rating - previous.new_rating) > 1e-9:
                problems.append(
                    f"{entity} S{current.season} W{current.week}: prior {current.prior_rating:.4f} "
                    f"!= previous new {previous.new_rating:.4f}"
                )
        return problems

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(self, snapshot: RatingSnapshot) -> bool:
        """Insert or replace the snapshot for (entity, season, week).

        Returns:
            True if an existing snapshot was replaced
        """
        with self._lock_for(snapshot.kind, snapshot.entity):
            seasons = self._timelines.setdefault((snapshot.kind, snapshot.entity), {})
            replaced = seasons.setdefault(snapshot.season, SeasonTimeline()).put(snapshot)
        week_label = "preseason" if snapshot.is_preseason else f"week {snapshot.week}"
        action = "Updating" if replaced else "Adding"
        logger.debug(
            f"{action} {week_label} in {snapshot.entity} {snapshot.kind} metrics season {snapshot.season}"
        )
        return replaced

    def delete_season(self, season: int) -> int:
        """Remove every snapshot and wPN score for a season. Returns snapshots removed."""
        removed = 0
        for (kind, entity), seasons in self._timelines.items():
            with self._lock_for(kind, entity):
                timeline = seasons.pop(season, None)
            if timeline is not None:
                removed += len(timeline)
        for key in [k for k in self._wpn if k[1] == season]:
            del self._wpn[key]
        logger.info(f"Deleted {removed} snapshots for season {season}")
        return removed

    # ------------------------------------------------------------------
    # wPN
    # ------------------------------------------------------------------

    def set_wpn(self, score: WPNScore) -> None:
        self._wpn[(score.team, score.season)] = score

    def get_wpn(self, team: str, season: int) -> Optional[WPNScore]:
        return self._wpn.get((team, season))

    def latest_wpn(self, team: str) -> Optional[WPNScore]:
        seasons = [s for (t, s) in self._wpn if t == team]
        if not seasons:
            return None
        return self._wpn[(team, max(seasons))]

    def wpn_scores(self, season: int) -> list[WPNScore]:
        """Season scores, best first."""
        scores = [s for (_, n), s in self._wpn.items() if n == season]
        return sorted(scores, key=lambda s: (-s.score, s.team))

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_frames(self) -> tuple[pl.DataFrame, pl.DataFrame]:
        """Snapshots and wPN scores as polars DataFrames."""
        snapshot_rows = [
            {
                "kind": s.kind,
                "entity": s.entity,
                "season": s.season,
                "week": s.week,
                "opponent_rating": s.opponent_rating,
                "prior_rating": s.prior_rating,
                "new_rating": s.new_rating,
                "game_id": s.game_id,
            }
            for (kind, entity) in sorted(self._timelines)
            for s in self.timeline(entity, kind)
        ]
        wpn_rows = [
            {
                "team": w.team,
                "season": w.season,
                "score": w.score,
                "win_score": w.win_score,
                "loss_score": w.loss_score,
            }
            for w in self._wpn.values()
        ]
        return (
            pl.DataFrame(snapshot_rows, schema=SNAPSHOT_SCHEMA),
            pl.DataFrame(wpn_rows, schema=WPN_SCHEMA),
        )

    def save(self, store_dir: Union[str, Path]) -> None:
        """Write the store to ``store_dir`` atomically."""
        store_dir = Path(store_dir)
        store_dir.mkdir(parents=True, exist_ok=True)
        tmp_dir = store_dir / ".tmp"
        if tmp_dir.exists():
            shutil.rmtree(tmp_dir)
        tmp_dir.mkdir(parents=True)

        marker = store_dir / COMPLETE_MARKER
        if marker.exists():
            marker.unlink()

        snapshots_df, wpn_df = self.to_frames()
        snapshots_df.write_parquet(tmp_dir / SNAPSHOTS_FILE)
        wpn_df.write_parquet(tmp_dir / WPN_FILE)

        for filename in (SNAPSHOTS_FILE, WPN_FILE):
            dst = store_dir / filename
            if dst.exists():
                dst.unlink()
            shutil.move(str(tmp_dir / filename), str(dst))
        shutil.rmtree(tmp_dir)
        marker.touch()
        logger.info(
            f"Saved metrics store to {store_dir} "
            f"({len(snapshots_df)} snapshots, {len(wpn_df)} wPN scores)"
        )

    @classmethod
    def load(cls, store_dir: Union[str, Path]) -> "RatingStore":
        """Load a store written by ``save()``.

        Returns an empty store when the directory has never been written.

        Raises:
            ValueError: If the snapshot file is missing required columns
        """
        store_dir = Path(store_dir)
        store = cls()
        if not (store_dir / COMPLETE_MARKER).exists():
            if (store_dir / ".tmp").exists():
                logger.warning(f"Ignoring incomplete metrics store write in {store_dir}")
            logger.info(f"No metrics store at {store_dir}, starting empty")
            return store

        snapshots_df = pl.read_parquet(store_dir / SNAPSHOTS_FILE)
        missing = set(SNAPSHOT_SCHEMA) - set(snapshots_df.columns)
        if missing:
            raise ValueError(f"Snapshot file missing required columns: {sorted(missing)}")

        for row in snapshots_df.iter_rows(named=True):
            store.ensure_entity(row["entity"], row["kind"])
            store.upsert(
                RatingSnapshot(
                    entity=row["entity"],
                    season=row["season"],
                    week=row["week"],
                    opponent_rating=row["opponent_rating"],
                    prior_rating=row["prior_rating"],
                    new_rating=row["new_rating"],
                    game_id=row["game_id"],
                    kind=row["kind"],
                )
            )

        wpn_path = store_dir / WPN_FILE
        if wpn_path.exists():
            for row in pl.read_parquet(wpn_path).iter_rows(named=True):
                store.set_wpn(WPNScore(**row))

        logger.info(f"Loaded metrics store from {store_dir} ({len(snapshots_df)} snapshots)")
        return store
