"""Metrics update runs: the single entry point for writing ratings.

Every consumer (update script, reports, tests) goes through
MetricsUpdateOrchestrator so that timelines are always built the same way:

1. Ensure every team and coach has a metrics record.
2. Preseason pass, once per season, before any weekly pass:
       anchor = round(final rating last season / 3 * 2 + 500, 4)
   i.e. a third of the way back to 1500. The anchor is always derived
   from the *previous* season's final rating, so re-running it never
   regresses twice.
3. Weekly passes in ascending week order. Each game's pre-game ratings are
   read as of the previous week, and a week's deltas for one entity are
   summed into a single snapshot for that (entity, season, week). Writes
   replace an existing snapshot in place, never append a duplicate.
4. wPN, recomputed wholesale per season from the finalized games.

The first unhandled error aborts the run and propagates to the caller.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from config.settings import Settings, get_settings
from league_metrics.data.rating_store import COACH, TEAM, RatingSnapshot, RatingStore, WPNScore
from league_metrics.data.schedule import LeagueRepository, Season, Week
from league_metrics.data.validators import LeagueValidator
from league_metrics.models.coach_elo import CoachEloEngine
from league_metrics.models.elo import DEFAULT_RATING, EloEngine, regress_preseason
from league_metrics.models.park_newman import ParkNewmanScorer
from league_metrics.ratings.errors import (
    MissingAnchorError,
    SeasonNotFoundError,
    WeekNotFoundError,
)

logger = logging.getLogger(__name__)

# Week argument meaning "preseason pass only"
PRESEASON_ONLY = -1


@dataclass
class _WeekAccumulator:
    """Running total of one entity's deltas within a week."""

    prior_rating: float
    opponent_rating: float
    game_id: str
    delta: float = 0.0
    games: int = 0


class MetricsUpdateOrchestrator:
    """Drive Elo, coach Elo and wPN updates over the league's seasons."""

    def __init__(
        self,
        repository: LeagueRepository,
        store: RatingStore,
        settings: Optional[Settings] = None,
    ):
        """Initialize the orchestrator.

        Args:
            repository: League schedule and results
            store: Rating timelines to read from and write to
            settings: Settings; defaults to the process-wide singleton
        """
        self.repository = repository
        self.store = store
        self.settings = settings or get_settings()
        self.elo = EloEngine(store, k=self.settings.elo_k)
        self.coach_elo = CoachEloEngine(store, k=self.settings.elo_k)
        self.validator = LeagueValidator(repository)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _require_season(self, season_no: int) -> Season:
        season = self.repository.find_season(season_no)
        if season is None:
            raise SeasonNotFoundError(f"Season {season_no} not found")
        return season

    def _require_week(self, season: Season, week_no: int) -> Week:
        week = season.week(week_no)
        if week is None:
            raise WeekNotFoundError(f"Week {week_no} not found in season {season.season_no}")
        return week

    def _require_anchor(self, team: str, season_no: int, week_no: int) -> None:
        if self.store.latest_at_or_before(team, season_no, week_no - 1, TEAM) is None:
            raise MissingAnchorError(
                f"Season {season_no} has no preseason rating for {team} "
                f"(needed for week {week_no}); run the preseason pass first"
            )

    def _warn_if_later_weeks(self, entity: str, season_no: int, week_no: int, kind: str) -> None:
        later = self.store.count_after(entity, season_no, week_no, kind)
        if later:
            logger.warning(
                f"{entity} already has {later} {kind} snapshots after S{season_no} W{week_no}; "
                "re-run the later weeks to keep the timeline consistent"
            )

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    def ensure_metrics(self) -> int:
        """Create empty metrics records for teams and coaches lacking one."""
        created = 0
        for name in self.repository.teams:
            if self.store.ensure_entity(name, TEAM):
                logger.info(f"Creating team metrics for {name}")
                created += 1
        for username in self.repository.coaches:
            if self.store.ensure_entity(username, COACH):
                logger.info(f"Creating coach metrics for {username}")
                created += 1
        return created

    def update_preseason(self, season_no: int) -> list[RatingSnapshot]:
        """Write the preseason anchor for every team assigned to a division this season."""
        self._require_season(season_no)
        prev_season_no = season_no - 1
        has_prev = self.repository.find_season(prev_season_no) is not None

        written = []
        skipped = 0
        for team in self.repository.teams_in_season(season_no):
            old_rating = (
                self.elo.get_rating(team.name, prev_season_no, None) if has_prev else DEFAULT_RATING
            )
            new_rating = regress_preseason(old_rating, self.settings.rating_precision)

            existing = self.store.get(team.name, season_no, None, TEAM)
            if existing is not None and existing.prior_rating == old_rating and existing.new_rating == new_rating:
                skipped += 1
                continue

            snapshot = RatingSnapshot(
                entity=team.name,
                season=season_no,
                week=None,
                opponent_rating=None,
                prior_rating=old_rating,
                new_rating=new_rating,
                kind=TEAM,
            )
            self.store.upsert(snapshot)
            written.append(snapshot)

        logger.info(
            f"Season {season_no} preseason: {len(written)} anchors written, {skipped} unchanged"
        )
        return written

    def update_week(self, season_no: int, week_no: int) -> list[RatingSnapshot]:
        """Team Elo for every finalized game of a week."""
        season = self._require_season(season_no)
        week = self._require_week(season, week_no)

        validation = self.validator.validate_week(season_no, week_no)
        if not validation.is_valid:
            logger.warning(f"S{season_no} W{week_no}: {validation.message}")

        totals: dict[str, _WeekAccumulator] = {}
        for game in week.games:
            if game.live:
                continue
            self._require_anchor(game.home.team, season_no, week_no)
            self._require_anchor(game.away.team, season_no, week_no)
            game_elo = self.elo.compute_game_delta(game, season_no, week_no)
            for result in (game_elo.home, game_elo.away):
                acc = totals.setdefault(
                    result.team,
                    _WeekAccumulator(
                        prior_rating=result.prior_rating,
                        opponent_rating=result.opp_rating,
                        game_id=game.game_id,
                    ),
                )
                acc.delta += result.delta
                acc.opponent_rating = result.opp_rating
                acc.game_id = game.game_id
                acc.games += 1

        written = self._write(totals, season_no, week_no, TEAM)
        logger.info(f"S{season_no} W{week_no}: updated Elo for {len(written)} teams")
        return written

    def update_coach_week(self, season_no: int, week_no: int) -> list[RatingSnapshot]:
        """Coach Elo for every finalized game of a week."""
        season = self._require_season(season_no)
        week = self._require_week(season, week_no)

        totals: dict[str, _WeekAccumulator] = {}
        for game in week.games:
            results = self.coach_elo.compute_game_deltas(game, season_no, week_no)
            if results is None:
                continue
            for result in results:
                acc = totals.setdefault(
                    result.coach,
                    _WeekAccumulator(
                        prior_rating=result.prior_rating,
                        opponent_rating=result.opp_rating,
                        game_id=game.game_id,
                    ),
                )
                acc.delta += result.delta
                acc.opponent_rating = result.opp_rating
                acc.game_id = game.game_id
                acc.games += 1

        written = self._write(totals, season_no, week_no, COACH)
        logger.info(f"S{season_no} W{week_no}: updated Elo for {len(written)} coaches")
        return written

    def _write(
        self,
        totals: dict[str, _WeekAccumulator],
        season_no: int,
        week_no: int,
        kind: str,
    ) -> list[RatingSnapshot]:
        written = []
        for entity, acc in totals.items():
            if acc.games > 1:
                logger.debug(f"{entity} played {acc.games} games in S{season_no} W{week_no}")
            self._warn_if_later_weeks(entity, season_no, week_no, kind)
            snapshot = RatingSnapshot(
                entity=entity,
                season=season_no,
                week=week_no,
                opponent_rating=acc.opponent_rating,
                prior_rating=acc.prior_rating,
                new_rating=acc.prior_rating + acc.delta,
                game_id=acc.game_id,
                kind=kind,
            )
            self.store.upsert(snapshot)
            written.append(snapshot)
        return written

    def update_season(
        self,
        season_no: int,
        week_no: Optional[int] = None,
        coaches: bool = True,
    ) -> None:
        """Update one season.

        Args:
            season_no: Season number
            week_no: None = preseason pass then every week; PRESEASON_ONLY (-1)
                = preseason pass only; otherwise just that week
            coaches: Also update coach Elo
        """
        self.ensure_metrics()
        season = self._require_season(season_no)

        if week_no is None or week_no == PRESEASON_ONLY:
            self.update_preseason(season_no)
        if week_no == PRESEASON_ONLY:
            return

        weeks = season.weeks if week_no is None else [self._require_week(season, week_no)]
        for week in sorted(weeks, key=lambda w: w.week_no):
            self.update_week(season_no, week.week_no)
            if coaches:
                self.update_coach_week(season_no, week.week_no)

    def update_all(
        self,
        season_no: Optional[int] = None,
        week_no: Optional[int] = None,
        coaches: bool = True,
    ) -> None:
        """Update every season in order, or a single season when given."""
        if season_no is not None:
            self.update_season(season_no, week_no, coaches)
            return
        for season in self.repository.seasons():
            self.update_season(season.season_no, week_no, coaches)

    def update_season_wpn(
        self,
        season_no: int,
        mov_influence: Optional[float] = None,
        max_week: Optional[int] = None,
    ) -> list[WPNScore]:
        """Recompute and store wPN for every team assigned to a division this season."""
        season = self._require_season(season_no)
        if mov_influence is None:
            mov_influence = self.settings.wpn_mov_influence

        scorer = ParkNewmanScorer(season, max_week=max_week, mov_influence=mov_influence)
        teams = [t.name for t in self.repository.teams_in_season(season_no)]
        scores = scorer.score_teams(teams, workers=self.settings.wpn_workers)
        for score in scores:
            logger.debug(f"Updating season {season_no} wPN for team {score.team}: {score.score}")
            self.store.set_wpn(score)

        logger.info(
            f"Season {season_no}: wPN for {len(scores)} teams "
            f"(median MoV={scorer.median_mov}, mov_influence={scorer.mov_influence})"
        )
        return scores

    def delete_season(self, season_no: int) -> int:
        """Remove a season's snapshots and wPN scores."""
        self._require_season(season_no)
        return self.store.delete_season(season_no)
