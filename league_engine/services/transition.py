"""
Season transition orchestration.

Drives every division of a season through its lifecycle:

    REGULAR_IN_PROGRESS -> REGULAR_COMPLETE -> PLAYOFFS_NONE | PLAYOFFS_IN_PROGRESS
    PLAYOFFS_IN_PROGRESS -> PLAYOFFS_COMPLETE
    PLAYOFFS_NONE | PLAYOFFS_COMPLETE -> CONSEQUENCES_FINALIZED -> NEXT_SEASON_PLANNED

The phase is persisted per (division, season). Each run re-enters the loop,
so repeated triggers are safe: every step checks whether its artifact
already exists before creating it.
"""

import logging
from datetime import date
from typing import Optional

from ..models import (
    ALLOWED_TRANSITIONS,
    AssignmentPlan,
    Division,
    DivisionPhase,
    MatchStatus,
    Season,
    TransitionResult,
)
from ..storage import get_database, DatabaseInterface
from .exceptions import (
    DivisionConfigurationError,
    InconsistentStateError,
    InsufficientDataError,
)
from .planner import NextSeasonPlanner
from .playoffs import PlayoffBracketBuilder
from .standings import StandingsService

logger = logging.getLogger(__name__)


class SeasonTransitionOrchestrator:
    """
    Top-level state machine coordinating standings, consequences, playoffs
    and next-season planning.

    The season id is always passed explicitly.
    """

    def __init__(
        self,
        db: Optional[DatabaseInterface] = None,
        standings: Optional[StandingsService] = None,
        bracket: Optional[PlayoffBracketBuilder] = None,
        planner: Optional[NextSeasonPlanner] = None
    ) -> None:
        self._db = db
        self._standings = standings
        self._bracket = bracket
        self._planner = planner

    @property
    def db(self) -> DatabaseInterface:
        if self._db is None:
            self._db = get_database()
        return self._db

    @property
    def standings(self) -> StandingsService:
        if self._standings is None:
            self._standings = StandingsService(db=self.db)
        return self._standings

    @property
    def bracket(self) -> PlayoffBracketBuilder:
        if self._bracket is None:
            self._bracket = PlayoffBracketBuilder(db=self.db, standings=self.standings)
        return self._bracket

    @property
    def planner(self) -> NextSeasonPlanner:
        if self._planner is None:
            self._planner = NextSeasonPlanner(db=self.db)
        return self._planner

    # =========================================================================
    # PHASES
    # =========================================================================

    def get_phase(self, division_id: int, season_id: int) -> DivisionPhase:
        """Stored phase, REGULAR_IN_PROGRESS if never recorded."""
        return self.db.get_phase(division_id, season_id) or DivisionPhase.REGULAR_IN_PROGRESS

    def _advance(self, division: Division, season_id: int, current: DivisionPhase,
                 target: DivisionPhase) -> DivisionPhase:
        if target not in ALLOWED_TRANSITIONS[current]:
            raise InconsistentStateError(
                f"{division.name}: illegal transition {current.value} -> {target.value}"
            )
        self.db.set_phase(division.id, season_id, target)
        logger.info(f"{division.name} season {season_id}: {current.value} -> {target.value}")
        return target

    # =========================================================================
    # PER DIVISION
    # =========================================================================

    def recalculate_division(self, division: Division, season_id: int, phase: DivisionPhase) -> None:
        """Rewrite every group table; classify unless the phase has frozen it."""
        apply = not phase.classification_frozen
        reset_promotion = apply and not self.bracket.is_playoff_active(division, season_id)
        for group in self.db.get_groups(division.id):
            self.standings.recalculate(
                season_id, group.id,
                apply_consequences=apply,
                reset_promotion=reset_promotion,
            )

    def process_division(
        self,
        division: Division,
        season_id: int,
        result: Optional[TransitionResult] = None
    ) -> DivisionPhase:
        """
        Move one division as far along its lifecycle as the data allows.

        Raises:
            DivisionConfigurationError: Unsupported playoff layout
            InconsistentStateError: Playoff draw or illegal transition
        """
        if result is None:
            result = TransitionResult(season_id=season_id)
        phase = self.get_phase(division.id, season_id)

        if phase == DivisionPhase.NEXT_SEASON_PLANNED:
            return phase

        self.recalculate_division(division, season_id, phase)

        if phase == DivisionPhase.REGULAR_IN_PROGRESS:
            if not self.standings.is_division_regular_season_complete(season_id, division.id):
                return phase
            phase = self._advance(division, season_id, phase, DivisionPhase.REGULAR_COMPLETE)

        if phase == DivisionPhase.REGULAR_COMPLETE:
            if not division.has_playoffs:
                phase = self._advance(division, season_id, phase, DivisionPhase.PLAYOFFS_NONE)
            else:
                try:
                    created = self.bracket.generate(division, season_id)
                except InsufficientDataError as e:
                    logger.warning(f"{division.name}: playoff generation skipped: {e}")
                    result.warnings.append(str(e))
                    return phase
                result.created_matches += len(created)
                if self.bracket.get_playoff_matches(division, season_id):
                    phase = self._advance(division, season_id, phase, DivisionPhase.PLAYOFFS_IN_PROGRESS)
                else:
                    return phase

        if phase == DivisionPhase.PLAYOFFS_IN_PROGRESS:
            self.bracket.apply_results(division, season_id)
            created = self.bracket.advance(division, season_id)
            result.created_matches += len(created)
            if not self.bracket.are_playoffs_complete(division, season_id):
                return phase
            phase = self._advance(division, season_id, phase, DivisionPhase.PLAYOFFS_COMPLETE)

        if phase in (DivisionPhase.PLAYOFFS_NONE, DivisionPhase.PLAYOFFS_COMPLETE):
            self.bracket.clear_remaining_playoff_flags(division, season_id)
            phase = self._advance(division, season_id, phase, DivisionPhase.CONSEQUENCES_FINALIZED)

        return phase

    # =========================================================================
    # WHOLE LEAGUE
    # =========================================================================

    def run(self, season_id: int) -> TransitionResult:
        """
        Process every division of a season, then plan the next one when all
        divisions have finalized their consequences.

        A configuration or consistency failure stops only the division it
        belongs to; it is reported in ``result.errors``.
        """
        result = TransitionResult(season_id=season_id)
        season = self.db.get_season(season_id)
        if season is None:
            result.errors.append(f"Season {season_id} does not exist")
            return result
        if season.is_completed:
            result.warnings.append(f"Season {season.name} is completed, nothing to do")
            return result

        divisions = self.db.get_divisions()
        for division in divisions:
            try:
                result.phases[division.id] = self.process_division(division, season_id, result)
            except (DivisionConfigurationError, InconsistentStateError) as e:
                logger.error(f"{division.name} season {season_id}: {e}")
                result.errors.append(f"{division.name}: {e}")
                result.phases[division.id] = self.get_phase(division.id, season_id)

        finalized = [
            d for d in divisions
            if result.phases.get(d.id) == DivisionPhase.CONSEQUENCES_FINALIZED
        ]
        if divisions and len(finalized) == len(divisions):
            try:
                result.plan = self.plan_next_season(season_id)
            except DivisionConfigurationError as e:
                logger.error(f"Next season planning failed for season {season_id}: {e}")
                result.errors.append(str(e))
            else:
                for division in divisions:
                    result.phases[division.id] = self._advance(
                        division, season_id,
                        DivisionPhase.CONSEQUENCES_FINALIZED,
                        DivisionPhase.NEXT_SEASON_PLANNED,
                    )

        logger.info(
            f"Season {season_id} run: {result.created_matches} fixtures created, "
            f"{len(result.warnings)} warnings, {len(result.errors)} errors"
        )
        return result

    def is_season_planned(self, season_id: int) -> bool:
        divisions = self.db.get_divisions()
        return bool(divisions) and all(
            self.get_phase(d.id, season_id) == DivisionPhase.NEXT_SEASON_PLANNED
            for d in divisions
        )

    def plan_next_season(self, season_id: int) -> AssignmentPlan:
        return self.planner.plan(season_id)

    def start_next_season(
        self,
        season_id: int,
        name: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> Season:
        """
        Create the next season from the plan, close the current one and
        activate the new one.

        Raises:
            InconsistentStateError: If the season is completed or some division
                has not been planned yet
        """
        current = self.db.get_season(season_id)
        if current is None:
            raise InconsistentStateError(f"Season {season_id} does not exist")
        if current.is_completed:
            raise InconsistentStateError(f"Season {current.name} is already completed")
        if not self.is_season_planned(season_id):
            raise InconsistentStateError(
                f"Season {current.name} is not fully planned; run the transition first"
            )

        plan = self.planner.plan(season_id)
        year = current.year + 1 if current.year else None
        with self.db.transaction():
            next_season = self.db.save_season(Season(
                name=name or (f"Season {year}" if year else f"{current.name} (next)"),
                year=year,
                start_date=start_date,
                end_date=end_date,
            ))
            self.planner.execute(plan, next_season.id)
            self.db.complete_season(season_id)
            self.db.set_active_season(next_season.id)

        logger.info(f"Season {current.name} closed, {next_season.name} is now active")
        return self.db.get_season(next_season.id)

    def clear_season_outcomes(self, season_id: int) -> int:
        """
        Reset all outcome flags of a season for an administrative re-run.

        Raises:
            InconsistentStateError: If the season is already completed
        """
        season = self.db.get_season(season_id)
        if season is None or season.is_completed:
            raise InconsistentStateError(f"Season {season_id} is missing or completed")
        return self.standings.classifier.clear_season(season_id)

    def record_result(self, match_id: int, home_goals: int, away_goals: int) -> None:
        """
        Store a final score from the match simulator.

        Raises:
            InconsistentStateError: Unknown match, or a drawn playoff match
        """
        match = self.db.get_match(match_id)
        if match is None:
            raise InconsistentStateError(f"Match {match_id} does not exist")
        if match.is_playoff and home_goals == away_goals:
            raise InconsistentStateError(f"Playoff match {match_id} cannot end in a draw")
        self.db.update_match_result(match_id, home_goals, away_goals, MatchStatus.FINISHED)
        self.standings.cache.invalidate(match.season_id, match.group_id)
