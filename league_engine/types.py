"""
Type definitions for the league engine.

Provides TypedDict classes for report payloads and API responses.
"""

from typing import TypedDict, Optional, List, Dict


class TeamRefDict(TypedDict, total=False):
    """Team reference inside a report."""
    id: int
    name: str
    group: str
    position: Optional[int]


class PlayoffResultDict(TypedDict, total=False):
    """One playoff fixture and its outcome."""
    match_id: int
    round: str  # Quarterfinal, Semifinal, Final
    home: str
    away: str
    home_goals: Optional[int]
    away_goals: Optional[int]
    status: str
    winner: Optional[str]


class GroupStatsDict(TypedDict, total=False):
    """Aggregated match statistics for one group."""
    group: str
    matches_played: int
    home_wins: int
    away_wins: int
    draws: int
    goals: int


class DivisionReportDict(TypedDict, total=False):
    """Season outcome for one division."""
    division_id: int
    name: str
    level: int
    phase: str
    promoted: List[TeamRefDict]
    relegated: List[TeamRefDict]
    tournament: List[TeamRefDict]
    playoff_results: List[PlayoffResultDict]
    pending_playoffs: List[PlayoffResultDict]
    groups: List[GroupStatsDict]


class SeasonReportDict(TypedDict, total=False):
    """Closure report for a whole season."""
    season_id: int
    season_name: str
    generated_at: str
    divisions: List[DivisionReportDict]
    totals: Dict[str, int]
    issues: List[str]


class TriggerResponseDict(TypedDict, total=False):
    """Response from /api/trigger endpoint."""
    status: str  # completed, rate_limited, no_active_season
    message: str
    retry_after: int  # Only present when rate_limited
    result: dict
