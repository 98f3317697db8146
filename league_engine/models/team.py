"""Team and assignment data models."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel


class Team(BaseModel):
    """A persistent competitor."""

    id: Optional[int] = None
    name: str
    followers: int = 0


class AssignmentReason(str, Enum):
    """Why a team plays in its group this season."""

    INITIAL = "initial"
    PROMOTION = "promotion"
    RELEGATION = "relegation"
    PLAYOFF_PROMOTION = "playoff_promotion"
    STAYS = "stays"


class TeamStatus(str, Enum):
    """Resolved season outcome for a single team."""

    PROMOTES = "PROMOTES"
    RELEGATES = "RELEGATES"
    PLAYOFF = "PLAYOFF"
    TOURNAMENT = "TOURNAMENT"
    SAFE = "SAFE"


class Assignment(BaseModel):
    """Team plays in group during season, plus its season-outcome flags."""

    id: Optional[int] = None
    team_id: int
    group_id: int
    season_id: int
    reason: AssignmentReason = AssignmentReason.INITIAL
    followers_at_assignment: int = 0

    promoted: bool = False
    relegated: bool = False
    playoff: bool = False
    qualified_for_tournament: bool = False
    next_group_id: Optional[int] = None

    def get_status(self) -> TeamStatus:
        """Collapse the outcome flags into one status."""
        if self.promoted:
            return TeamStatus.PROMOTES
        if self.relegated:
            return TeamStatus.RELEGATES
        if self.playoff:
            return TeamStatus.PLAYOFF
        if self.qualified_for_tournament:
            return TeamStatus.TOURNAMENT
        return TeamStatus.SAFE
