"""Services for the league standings and season-transition engine."""

from league_engine.services.cache import StandingsCache
from league_engine.services.consequences import ConsequenceClassifier, determine_team_status
from league_engine.services.exceptions import (
    DivisionConfigurationError,
    EngineError,
    InconsistentStateError,
    InsufficientDataError,
)
from league_engine.services.league_setup import assign_initial_groups, initialize_league_system
from league_engine.services.planner import NextSeasonPlanner
from league_engine.services.playoffs import PlayoffBracketBuilder
from league_engine.services.report import SeasonReportService
from league_engine.services.standings import StandingsCalculator, StandingsService, calculate_standings
from league_engine.services.tiebreak import TiebreakResolver, random_draw, stable_order
from league_engine.services.transition import SeasonTransitionOrchestrator

__all__ = [
    "StandingsCache",
    "ConsequenceClassifier", "determine_team_status",
    "DivisionConfigurationError", "EngineError", "InconsistentStateError", "InsufficientDataError",
    "assign_initial_groups", "initialize_league_system",
    "NextSeasonPlanner",
    "PlayoffBracketBuilder",
    "SeasonReportService",
    "StandingsCalculator", "StandingsService", "calculate_standings",
    "TiebreakResolver", "random_draw", "stable_order",
    "SeasonTransitionOrchestrator",
]
