"""
Consequence classification.

Maps a final position to a season outcome using the division's per-group
slot counts, and writes the outcome flags onto the teams' assignments.
"""

import logging
from typing import Dict, List, Optional, Sequence

from ..models import Assignment, Consequence, Division, Standing, TeamStatus
from ..storage import get_database, DatabaseInterface
from .exceptions import DivisionConfigurationError

logger = logging.getLogger(__name__)


def determine_team_status(assignment: Assignment) -> TeamStatus:
    """Resolve an assignment's flags into one status (promotion first)."""
    return assignment.get_status()


class ConsequenceClassifier:
    """Assigns promotion/relegation/playoff/tournament labels to positions."""

    def __init__(
        self,
        db: Optional[DatabaseInterface] = None,
        top_level: int = 1,
        bottom_level: Optional[int] = None
    ) -> None:
        """
        Args:
            db: Storage used by apply(); defaults to get_database()
            top_level: Level of the top tier (no promotion above it)
            bottom_level: Level of the deepest tier (no relegation below it);
                defaults to the deepest stored division
        """
        self._db = db
        self.top_level = top_level
        self.bottom_level = bottom_level

    @property
    def db(self) -> DatabaseInterface:
        if self._db is None:
            self._db = get_database()
        return self._db

    def get_bottom_level(self) -> int:
        """Deepest configured level."""
        if self.bottom_level is not None:
            return self.bottom_level
        levels = [d.level for d in self.db.get_divisions()]
        return max(levels) if levels else self.top_level

    # =========================================================================
    # PURE CLASSIFICATION
    # =========================================================================

    def _bands(self, division: Division, group_size: int, bottom_level: int) -> Dict[str, range]:
        """Position ranges (1-based, inclusive start) for each label."""
        bands: Dict[str, range] = {}
        if division.level == self.top_level:
            bands['tournament'] = range(1, division.tournament_slots + 1)
        else:
            promote_end = division.promote_slots
            playoff_end = promote_end + division.promote_playoff_slots
            bands['promotion'] = range(1, promote_end + 1)
            bands['playoff'] = range(promote_end + 1, playoff_end + 1)

        if division.level < bottom_level and division.relegate_slots > 0:
            start = max(group_size - division.relegate_slots + 1, 1)
            bands['relegation'] = range(start, group_size + 1)
        return bands

    def check_bands(self, division: Division, group_size: int, bottom_level: Optional[int] = None) -> None:
        """
        Ensure promotion-side and relegation bands do not overlap.

        Raises:
            DivisionConfigurationError: If a position would get two labels
        """
        if bottom_level is None:
            bottom_level = self.get_bottom_level()
        bands = self._bands(division, group_size, bottom_level)
        relegation = bands.get('relegation')
        if not relegation:
            return
        upper = [r for name, r in bands.items() if name != 'relegation' and len(r)]
        top_end = max((r.stop - 1 for r in upper), default=0)
        if top_end >= relegation.start:
            raise DivisionConfigurationError(
                f"{division.name}: relegation from position {relegation.start} overlaps "
                f"promotion/playoff/tournament places up to {top_end} "
                f"in a group of {group_size}"
            )

    def classify(
        self,
        position: int,
        group_size: int,
        division: Division,
        bottom_level: Optional[int] = None
    ) -> Consequence:
        """Label one final position."""
        if bottom_level is None:
            bottom_level = self.get_bottom_level()
        bands = self._bands(division, group_size, bottom_level)

        if position in bands.get('tournament', ()):
            return Consequence.TOURNAMENT
        if position in bands.get('promotion', ()):
            return Consequence.PROMOTION
        if position in bands.get('playoff', ()):
            return Consequence.PLAYOFF
        if position in bands.get('relegation', ()):
            return Consequence.RELEGATION
        return Consequence.SAFE

    def classify_standings(
        self,
        standings: Sequence[Standing],
        division: Division,
        bottom_level: Optional[int] = None
    ) -> Dict[int, Consequence]:
        """
        Label every team of a ranked table.

        Returns:
            Mapping of team id to consequence
        """
        if bottom_level is None:
            bottom_level = self.get_bottom_level()
        size = len(standings)
        self.check_bands(division, size, bottom_level)
        return {
            s.team_id: self.classify(s.position, size, division, bottom_level)
            for s in standings
        }

    # =========================================================================
    # APPLY
    # =========================================================================

    def apply(
        self,
        season_id: int,
        group_id: int,
        standings: Sequence[Standing],
        division: Division,
        reset_promotion: bool = True
    ) -> Dict[int, Consequence]:
        """
        Write outcome flags for every team assigned to the group.

        Relegated, playoff and tournament flags are always reset and
        re-applied. The promoted flag is reset only when ``reset_promotion``
        is true; otherwise an existing promotion survives and wins over any
        other label.

        Args:
            season_id: Season being classified
            group_id: Group being classified
            standings: Ranked table of the group
            division: The group's division
            reset_promotion: False while the division has an unresolved playoff

        Returns:
            Mapping of team id to consequence
        """
        labels = self.classify_standings(standings, division)
        assignments: List[Assignment] = self.db.get_assignments(season_id, group_id=group_id)

        with self.db.transaction():
            for assignment in assignments:
                label = labels.get(assignment.team_id)
                if label is None:
                    logger.warning(
                        f"Team {assignment.team_id} has no standing in group {group_id}, "
                        f"flags left untouched"
                    )
                    continue

                promoted = label == Consequence.PROMOTION
                if not reset_promotion and assignment.promoted:
                    promoted = True

                self.db.update_assignment_flags(season_id, assignment.team_id, {
                    'promoted': promoted,
                    'relegated': label == Consequence.RELEGATION and not promoted,
                    'playoff': label == Consequence.PLAYOFF and not promoted,
                    'qualified_for_tournament': label == Consequence.TOURNAMENT,
                })

        counts: Dict[str, int] = {}
        for label in labels.values():
            counts[label.value] = counts.get(label.value, 0) + 1
        logger.info(
            f"Applied consequences for group {group_id} season {season_id} "
            f"(reset_promotion={reset_promotion}): {counts}"
        )
        return labels

    def clear_season(self, season_id: int) -> int:
        """Reset every outcome flag of a season. Returns rows touched."""
        cleared = self.db.clear_assignment_flags(season_id)
        logger.info(f"Cleared outcome flags on {cleared} assignments for season {season_id}")
        return cleared
