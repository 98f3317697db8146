"""
Standings service.

Aggregates finished regular-season matches into classification tables.
``calculate_standings`` is the single ranking routine: the live (read-only,
cached) view and the persisted recompute both go through it.
"""

import logging
import threading
from typing import Dict, List, Optional, Sequence, Tuple

from ..models import Division, Group, Match, MatchStatus, Standing, Team, TeamStats
from ..storage import get_database, DatabaseInterface
from .cache import StandingsCache
from .consequences import ConsequenceClassifier, determine_team_status
from .exceptions import InconsistentStateError
from .tiebreak import TiebreakResolver

logger = logging.getLogger(__name__)


class StandingsCalculator:
    """Folds match results into per-team statistics."""

    def aggregate(self, teams: Sequence[Team], matches: Sequence[Match]) -> List[TeamStats]:
        """
        Aggregate raw stats for one group/season.

        Args:
            teams: Every team assigned to the group
            matches: The group's matches; only finished regular ones count

        Returns:
            One stats record per team (teams without matches are all zeros)
        """
        table: Dict[int, TeamStats] = {
            team.id: TeamStats(team_id=team.id, team_name=team.name, followers=team.followers)
            for team in teams
        }

        for match in matches:
            if match.is_playoff or not match.is_finished():
                continue
            home = table.get(match.home_team_id)
            away = table.get(match.away_team_id)
            if home is None or away is None:
                logger.warning(
                    f"Match {match.id} involves a team outside group {match.group_id}, skipping"
                )
                continue
            home.record(match.home_goals, match.away_goals)
            away.record(match.away_goals, match.home_goals)

        return list(table.values())


def calculate_standings(
    teams: Sequence[Team],
    matches: Sequence[Match],
    resolver: Optional[TiebreakResolver] = None,
    calculator: Optional[StandingsCalculator] = None
) -> List[Standing]:
    """Aggregate and rank a group. Pure function of its inputs."""
    resolver = resolver or TiebreakResolver()
    calculator = calculator or StandingsCalculator()
    stats = calculator.aggregate(teams, matches)
    regular = [m for m in matches if not m.is_playoff]
    return resolver.rank(stats, regular)


class StandingsService:
    """
    Read and write paths for group standings.

    Recomputation of one (season, group) is serialized with a lock so two
    triggers cannot interleave a flag reset with a fresh classification.
    """

    def __init__(
        self,
        db: Optional[DatabaseInterface] = None,
        resolver: Optional[TiebreakResolver] = None,
        classifier: Optional[ConsequenceClassifier] = None,
        cache: Optional[StandingsCache] = None
    ) -> None:
        self._db = db
        self.resolver = resolver or TiebreakResolver()
        self.calculator = StandingsCalculator()
        self.classifier = classifier or ConsequenceClassifier(db=db)
        self.cache = cache or StandingsCache()

        # One lock per group, shared by all seasons
        self._locks: Dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def db(self) -> DatabaseInterface:
        if self._db is None:
            self._db = get_database()
        return self._db

    def _lock_for(self, group_id: int) -> threading.Lock:
        with self._locks_guard:
            if group_id not in self._locks:
                self._locks[group_id] = threading.Lock()
            return self._locks[group_id]

    def _load(self, season_id: int, group_id: int) -> Tuple[Group, Division, List[Team], List[Match]]:
        """Fetch everything needed to rank a group."""
        group = self.db.get_group(group_id)
        if group is None:
            raise InconsistentStateError(f"Group {group_id} does not exist")
        division = self.db.get_division(group.division_id)
        if division is None:
            raise InconsistentStateError(f"Group {group_id} references missing division")

        assignments = self.db.get_assignments(season_id, group_id=group_id)
        teams = self.db.get_teams([a.team_id for a in assignments])
        matches = self.db.get_matches(season_id, group_id=group_id, is_playoff=False)
        return group, division, teams, matches

    # =========================================================================
    # READ PATH
    # =========================================================================

    def get_live_standings(self, season_id: int, group_id: int) -> List[Standing]:
        """Compute the current table without persisting anything."""
        cached = self.cache.get(season_id, group_id)
        if cached is not None:
            return cached

        _, _, teams, matches = self._load(season_id, group_id)
        standings = calculate_standings(teams, matches, self.resolver, self.calculator)
        self.cache.set(season_id, group_id, standings)
        return standings

    @staticmethod
    def _same_table(live: List[Standing], persisted: List[Standing]) -> bool:
        """True when the stored table holds exactly the live numbers."""
        def numbers(s: Standing) -> Tuple[int, ...]:
            return (s.played, s.points, s.goal_difference, s.goals_for, s.goals_against)

        stored = {s.team_id: numbers(s) for s in persisted}
        return len(stored) == len(live) and all(stored.get(s.team_id) == numbers(s) for s in live)

    def get_standings_with_consequences(self, season_id: int, group_id: int) -> List[Standing]:
        """
        Live table annotated with each position's label and the team's current status.

        While no result has changed since the last recompute, the stored order
        is used, so a drawn tie shows the same label as the persisted flags.
        """
        group = self.db.get_group(group_id)
        if group is None:
            raise InconsistentStateError(f"Group {group_id} does not exist")
        division = self.db.get_division(group.division_id)

        standings = self.get_live_standings(season_id, group_id)
        persisted = self.db.get_standings(season_id, group_id)
        if persisted and self._same_table(standings, persisted):
            standings = sorted(persisted, key=lambda s: s.position)

        labels = self.classifier.classify_standings(standings, division)
        assignments = {
            a.team_id: a for a in self.db.get_assignments(season_id, group_id=group_id)
        }

        annotated = []
        for s in standings:
            assignment = assignments.get(s.team_id)
            annotated.append(s.model_copy(update={
                'consequence': labels[s.team_id],
                'status': determine_team_status(assignment) if assignment else None,
            }))
        return annotated

    # =========================================================================
    # WRITE PATH
    # =========================================================================

    def recalculate(
        self,
        season_id: int,
        group_id: int,
        apply_consequences: bool = True,
        reset_promotion: bool = True
    ) -> List[Standing]:
        """
        Recompute, persist and optionally classify a group's table.

        Args:
            season_id: Season to recompute
            group_id: Group to recompute
            apply_consequences: Also rewrite the teams' outcome flags
            reset_promotion: Passed through to the classifier

        Returns:
            The persisted standings
        """
        with self._lock_for(group_id):
            _, division, teams, matches = self._load(season_id, group_id)
            standings = calculate_standings(teams, matches, self.resolver, self.calculator)

            with self.db.transaction():
                self.db.replace_standings(season_id, group_id, standings)
                if apply_consequences:
                    self.classifier.apply(
                        season_id, group_id, standings, division,
                        reset_promotion=reset_promotion
                    )

            self.cache.invalidate(season_id, group_id)

        logger.info(f"Recalculated standings for group {group_id} season {season_id}: {len(standings)} teams")
        return standings

    # =========================================================================
    # SCHEDULE COMPLETENESS
    # =========================================================================

    def is_group_regular_season_complete(self, season_id: int, group_id: int) -> bool:
        """True when the group has regular matches and all of them are finished."""
        matches = self.db.get_matches(season_id, group_id=group_id, is_playoff=False)
        if not matches:
            return False
        return all(m.status == MatchStatus.FINISHED for m in matches)

    def is_division_regular_season_complete(self, season_id: int, division_id: int) -> bool:
        groups = self.db.get_groups(division_id)
        if not groups:
            return False
        return all(self.is_group_regular_season_complete(season_id, g.id) for g in groups)
