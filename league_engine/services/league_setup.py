"""League structure initialisation and first-season seeding."""

import logging
import string
from typing import Any, Dict, List, Optional, Sequence

from ..models import Assignment, AssignmentReason, Division, Group, Team
from ..storage import get_database, DatabaseInterface
from .exceptions import DivisionConfigurationError
from .. import config

logger = logging.getLogger(__name__)


def group_codes(count: int) -> List[str]:
    """Group codes A, B, C, ... for a division."""
    if count > len(string.ascii_uppercase):
        raise DivisionConfigurationError(f"Cannot label {count} groups with single letters")
    return list(string.ascii_uppercase[:count])


def initialize_league_system(
    db: Optional[DatabaseInterface] = None,
    divisions: Optional[Sequence[Dict[str, Any]]] = None
) -> List[Division]:
    """
    Create (or update) divisions and their groups.

    Args:
        db: Storage; defaults to get_database()
        divisions: Division settings; defaults to config.DEFAULT_DIVISIONS

    Returns:
        The stored divisions, top tier first
    """
    db = db or get_database()
    definitions = divisions if divisions is not None else config.DEFAULT_DIVISIONS

    stored = []
    with db.transaction():
        for definition in definitions:
            division = db.save_division(Division(**definition))
            for code in group_codes(division.group_count):
                db.save_group(Group(
                    division_id=division.id,
                    code=code,
                    name=f"{division.name} - Group {code}",
                    max_teams=division.teams_per_group,
                ))
            stored.append(division)

    logger.info(f"League system ready: {len(stored)} divisions")
    return sorted(stored, key=lambda d: d.level)


def assign_initial_groups(
    season_id: int,
    teams: Sequence[Team],
    db: Optional[DatabaseInterface] = None
) -> List[Assignment]:
    """
    Seed a first season: most-followed teams go to the top tier, and each
    division's teams are spread over its least-populated groups.

    Teams that already hold an assignment for the season are skipped.

    Returns:
        The assignments created
    """
    db = db or get_database()
    existing = {a.team_id for a in db.get_assignments(season_id)}
    pending = sorted(
        (t for t in teams if t.id not in existing),
        key=lambda t: (-t.followers, t.id)
    )

    occupancy: Dict[int, int] = {}
    for a in db.get_assignments(season_id):
        occupancy[a.group_id] = occupancy.get(a.group_id, 0) + 1

    open_groups: List[Group] = []
    for division in db.get_divisions():
        open_groups.extend(db.get_groups(division.id))

    new_assignments = []
    for team in pending:
        candidates = [g for g in open_groups if occupancy.get(g.id, 0) < g.max_teams]
        if not candidates:
            logger.warning(f"No free group for team {team.name}, league is full")
            break
        division_id = candidates[0].division_id
        target = min(
            (g for g in candidates if g.division_id == division_id),
            key=lambda g: (occupancy.get(g.id, 0), g.code)
        )
        occupancy[target.id] = occupancy.get(target.id, 0) + 1
        new_assignments.append(Assignment(
            team_id=team.id,
            group_id=target.id,
            season_id=season_id,
            reason=AssignmentReason.INITIAL,
            followers_at_assignment=team.followers,
        ))

    created = db.save_assignments(new_assignments)
    logger.info(f"Seeded {len(created)} teams into season {season_id}")
    return created
