"""
Next-season assignment planning.

Promoted teams move up into the least-filled group of the division above.
Relegated teams move down into the exact group slots vacated by teams that
were promoted out of the division below. Everyone else stays put.
"""

import logging
from typing import Dict, List, Optional, Tuple

from ..models import (
    Assignment,
    AssignmentPlan,
    AssignmentReason,
    Division,
    Group,
    PlannedAssignment,
    TeamStatus,
)
from ..storage import get_database, DatabaseInterface
from .consequences import determine_team_status
from .exceptions import DivisionConfigurationError

logger = logging.getLogger(__name__)


class NextSeasonPlanner:
    """Computes and executes the team → group plan for the next season."""

    def __init__(self, db: Optional[DatabaseInterface] = None) -> None:
        self._db = db

    @property
    def db(self) -> DatabaseInterface:
        if self._db is None:
            self._db = get_database()
        return self._db

    def _playoff_participants(self, season_id: int, group_ids: List[int]) -> set:
        """Teams that played at least one playoff match this season."""
        teams = set()
        for match in self.db.get_matches(season_id, group_ids=group_ids, is_playoff=True):
            teams.add(match.home_team_id)
            teams.add(match.away_team_id)
        return teams

    def _positions(self, season_id: int, group_id: int) -> Dict[int, int]:
        return {s.team_id: s.position for s in self.db.get_standings(season_id, group_id)}

    def plan(self, season_id: int) -> AssignmentPlan:
        """
        Build the plan for every assignment of a season.

        Args:
            season_id: The season that is ending

        Returns:
            AssignmentPlan with one entry per assigned team

        Raises:
            DivisionConfigurationError: Division levels with a gap, more
                relegated teams than vacated slots, or no group with free
                capacity for a promoted team
        """
        divisions: List[Division] = self.db.get_divisions()
        if not divisions:
            return AssignmentPlan(season_id=season_id)

        levels = [d.level for d in divisions]
        top_level, bottom_level = min(levels), max(levels)
        by_level = {d.level: d for d in divisions}
        missing = sorted(set(range(top_level, bottom_level + 1)) - set(by_level))
        if missing:
            raise DivisionConfigurationError(
                f"Division levels must be contiguous, no division at level {missing}"
            )

        groups: Dict[int, List[Group]] = {d.id: self.db.get_groups(d.id) for d in divisions}
        group_index: Dict[int, Group] = {g.id: g for gs in groups.values() for g in gs}
        division_of_group = {g.id: g.division_id for g in group_index.values()}
        level_of_division = {d.id: d.level for d in divisions}

        assignments: List[Assignment] = self.db.get_assignments(season_id)
        playoff_teams = self._playoff_participants(season_id, list(group_index))

        # Stable processing order: by group code, then final position
        positions: Dict[int, Dict[int, int]] = {
            gid: self._positions(season_id, gid) for gid in group_index
        }

        def order_key(a: Assignment) -> Tuple[int, str, int, int]:
            group = group_index[a.group_id]
            level = level_of_division[group.division_id]
            return (level, group.code, positions[a.group_id].get(a.team_id, 0), a.team_id)

        assignments.sort(key=order_key)

        occupancy: Dict[int, int] = {gid: 0 for gid in group_index}
        vacated: Dict[int, List[int]] = {d.level: [] for d in divisions}
        promoted_up: Dict[int, List[Assignment]] = {d.level: [] for d in divisions}
        relegated_down: Dict[int, List[Assignment]] = {d.level: [] for d in divisions}
        entries: List[PlannedAssignment] = []

        for a in assignments:
            level = level_of_division[division_of_group[a.group_id]]
            status = determine_team_status(a)
            if status == TeamStatus.PROMOTES and level > top_level:
                promoted_up[level - 1].append(a)
                vacated[level].append(a.group_id)
            elif status == TeamStatus.RELEGATES and level < bottom_level:
                relegated_down[level + 1].append(a)
            else:
                occupancy[a.group_id] += 1
                entries.append(PlannedAssignment(
                    team_id=a.team_id,
                    from_group_id=a.group_id,
                    to_group_id=a.group_id,
                    reason=AssignmentReason.STAYS.value,
                ))

        for level in sorted(by_level):
            division = by_level[level]

            # Relegated teams take over the slots left by promoted teams, 1:1
            incoming = relegated_down[level]
            slots = vacated[level]
            if len(incoming) > len(slots):
                raise DivisionConfigurationError(
                    f"{division.name}: {len(incoming)} relegated teams but only "
                    f"{len(slots)} slots vacated by promotion"
                )
            if len(incoming) < len(slots):
                logger.info(
                    f"{division.name}: {len(slots) - len(incoming)} vacated slots left "
                    f"open for promoted teams"
                )
            for a, target in zip(incoming, slots):
                occupancy[target] += 1
                entries.append(PlannedAssignment(
                    team_id=a.team_id,
                    from_group_id=a.group_id,
                    to_group_id=target,
                    reason=AssignmentReason.RELEGATION.value,
                ))

        for level in sorted(by_level):
            division = by_level[level]

            # Promoted teams from the tier below fill the least-populated group
            for a in promoted_up[level]:
                target = self._least_filled(division, groups[division.id], occupancy)
                occupancy[target.id] += 1
                reason = (
                    AssignmentReason.PLAYOFF_PROMOTION
                    if a.team_id in playoff_teams
                    else AssignmentReason.PROMOTION
                )
                entries.append(PlannedAssignment(
                    team_id=a.team_id,
                    from_group_id=a.group_id,
                    to_group_id=target.id,
                    reason=reason.value,
                ))

        plan = AssignmentPlan(season_id=season_id, entries=entries)
        plan.warnings = self.validate(plan, group_index)

        with self.db.transaction():
            for entry in entries:
                self.db.update_assignment_flags(
                    season_id, entry.team_id, {'next_group_id': entry.to_group_id}
                )

        logger.info(
            f"Planned season after {season_id}: {len(entries)} teams, "
            f"{len(plan.by_reason('promotion')) + len(plan.by_reason('playoff_promotion'))} up, "
            f"{len(plan.by_reason('relegation'))} down"
        )
        return plan

    @staticmethod
    def _least_filled(division: Division, groups: List[Group], occupancy: Dict[int, int]) -> Group:
        candidates = [g for g in groups if occupancy[g.id] < g.max_teams]
        if not candidates:
            raise DivisionConfigurationError(
                f"{division.name}: every group is at capacity, cannot place a promoted team"
            )
        return min(candidates, key=lambda g: (occupancy[g.id], g.code))

    @staticmethod
    def validate(plan: AssignmentPlan, group_index: Dict[int, Group]) -> List[str]:
        """Report groups that do not end exactly at capacity and duplicate teams."""
        warnings = []
        sizes = plan.group_sizes()
        for group_id, group in group_index.items():
            size = sizes.get(group_id, 0)
            if size and size != group.max_teams:
                warnings.append(
                    f"Group {group.name} planned with {size} teams (capacity {group.max_teams})"
                )

        seen = set()
        for entry in plan.entries:
            if entry.team_id in seen:
                warnings.append(f"Team {entry.team_id} planned more than once")
            seen.add(entry.team_id)

        for warning in warnings:
            logger.warning(warning)
        return warnings

    def execute(self, plan: AssignmentPlan, next_season_id: int) -> int:
        """
        Create the next season's assignments from a plan.

        Existing (team, next season) assignments are left alone.

        Returns:
            Number of assignments created
        """
        teams = {t.id: t for t in self.db.get_teams([e.team_id for e in plan.entries])}
        created = self.db.save_assignments([
            Assignment(
                team_id=entry.team_id,
                group_id=entry.to_group_id,
                season_id=next_season_id,
                reason=AssignmentReason(entry.reason),
                followers_at_assignment=teams[entry.team_id].followers if entry.team_id in teams else 0,
            )
            for entry in plan.entries
        ])
        skipped = len(plan.entries) - len(created)
        logger.info(
            f"Created {len(created)} assignments for season {next_season_id}"
            + (f" ({skipped} already existed)" if skipped else "")
        )
        return len(created)
