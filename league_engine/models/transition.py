"""Season transition data models."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel


class DivisionPhase(str, Enum):
    """Lifecycle of one division within one season."""

    REGULAR_IN_PROGRESS = "REGULAR_IN_PROGRESS"
    REGULAR_COMPLETE = "REGULAR_COMPLETE"
    PLAYOFFS_NONE = "PLAYOFFS_NONE"
    PLAYOFFS_IN_PROGRESS = "PLAYOFFS_IN_PROGRESS"
    PLAYOFFS_COMPLETE = "PLAYOFFS_COMPLETE"
    CONSEQUENCES_FINALIZED = "CONSEQUENCES_FINALIZED"
    NEXT_SEASON_PLANNED = "NEXT_SEASON_PLANNED"

    @property
    def classification_frozen(self) -> bool:
        """Regular-season flags are no longer rewritten in this phase."""
        return self not in (
            DivisionPhase.REGULAR_IN_PROGRESS,
            DivisionPhase.REGULAR_COMPLETE,
            DivisionPhase.PLAYOFFS_NONE,
        )


ALLOWED_TRANSITIONS = {
    DivisionPhase.REGULAR_IN_PROGRESS: {DivisionPhase.REGULAR_COMPLETE},
    DivisionPhase.REGULAR_COMPLETE: {
        DivisionPhase.PLAYOFFS_NONE,
        DivisionPhase.PLAYOFFS_IN_PROGRESS,
    },
    DivisionPhase.PLAYOFFS_NONE: {DivisionPhase.CONSEQUENCES_FINALIZED},
    DivisionPhase.PLAYOFFS_IN_PROGRESS: {DivisionPhase.PLAYOFFS_COMPLETE},
    DivisionPhase.PLAYOFFS_COMPLETE: {DivisionPhase.CONSEQUENCES_FINALIZED},
    DivisionPhase.CONSEQUENCES_FINALIZED: {DivisionPhase.NEXT_SEASON_PLANNED},
    DivisionPhase.NEXT_SEASON_PLANNED: set(),
}


class PlannedAssignment(BaseModel):
    """Where one team plays next season, and why."""

    team_id: int
    from_group_id: int
    to_group_id: int
    reason: str


class AssignmentPlan(BaseModel):
    """Next-season group for every team of a season."""

    season_id: int
    entries: list[PlannedAssignment] = []
    warnings: list[str] = []

    def by_reason(self, reason: str) -> list[PlannedAssignment]:
        return [e for e in self.entries if e.reason == reason]

    def group_sizes(self) -> dict[int, int]:
        """Planned team count per target group."""
        sizes: dict[int, int] = {}
        for entry in self.entries:
            sizes[entry.to_group_id] = sizes.get(entry.to_group_id, 0) + 1
        return sizes


class TransitionResult(BaseModel):
    """Summary of one orchestrator run over a season."""

    season_id: int
    phases: dict[int, DivisionPhase] = {}
    created_matches: int = 0
    warnings: list[str] = []
    errors: list[str] = []
    plan: Optional[AssignmentPlan] = None

    @property
    def ok(self) -> bool:
        return not self.errors
