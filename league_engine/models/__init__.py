"""Data models for the league engine."""

from league_engine.models.division import Division, Group, PromotionPolicy
from league_engine.models.match import Match, MatchStatus, PlayoffMatchup, PlayoffRound
from league_engine.models.season import Season
from league_engine.models.standing import Consequence, Standing, TeamStats
from league_engine.models.team import Assignment, AssignmentReason, Team, TeamStatus
from league_engine.models.transition import (
    ALLOWED_TRANSITIONS,
    AssignmentPlan,
    DivisionPhase,
    PlannedAssignment,
    TransitionResult,
)

__all__ = [
    "Division", "Group", "PromotionPolicy",
    "Match", "MatchStatus", "PlayoffMatchup", "PlayoffRound",
    "Season",
    "Consequence", "Standing", "TeamStats",
    "Assignment", "AssignmentReason", "Team", "TeamStatus",
    "ALLOWED_TRANSITIONS", "AssignmentPlan", "DivisionPhase",
    "PlannedAssignment", "TransitionResult",
]
