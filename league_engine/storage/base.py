"""
Abstract base class defining the database interface.

All database implementations must inherit from this class and implement
all abstract methods. This ensures consistent behavior across backends.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Optional, List, Dict, Any

from ..models import (
    Assignment,
    Division,
    DivisionPhase,
    Group,
    Match,
    MatchStatus,
    PlayoffRound,
    Season,
    Standing,
    Team,
)


class DatabaseInterface(ABC):
    """
    Abstract interface for league data storage.

    All methods must be implemented by concrete database classes.
    Methods should be thread-safe where applicable.
    """

    # Assignment columns that update_assignment_flags may touch
    ASSIGNMENT_FLAGS = (
        'promoted',
        'relegated',
        'playoff',
        'qualified_for_tournament',
        'next_group_id',
    )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @abstractmethod
    def initialize(self) -> None:
        """
        Initialize the database connection and schema.

        Called once when the database is first created.
        Should create tables if they don't exist.
        Should be idempotent (safe to call multiple times).
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """
        Close database connections and clean up resources.

        Should be called when the application shuts down.
        """
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """
        Check if the database connection is healthy.

        Returns:
            True if database is accessible, False otherwise
        """
        pass

    @abstractmethod
    def transaction(self, exclusive: bool = False) -> AbstractContextManager:
        """
        Context manager grouping several writes into one unit of work.

        Args:
            exclusive: Take the write lock up front, so a read-then-insert
                check cannot interleave with another writer

        Behavior:
            - Nested use joins the outer transaction
            - Commit happens when the outermost block exits cleanly
            - Any exception rolls back the whole unit and is re-raised
        """
        pass

    # =========================================================================
    # LEAGUE STRUCTURE
    # =========================================================================

    @abstractmethod
    def save_division(self, division: Division) -> Division:
        """
        Insert or update a division.

        Args:
            division: Division to store; rows are matched by level

        Returns:
            The stored division with its id populated
        """
        pass

    @abstractmethod
    def get_divisions(self) -> List[Division]:
        """Get all divisions ordered by level (top tier first)."""
        pass

    @abstractmethod
    def get_division(self, division_id: int) -> Optional[Division]:
        """Get one division by id."""
        pass

    @abstractmethod
    def save_group(self, group: Group) -> Group:
        """
        Insert or update a group.

        Args:
            group: Group to store; rows are matched by (division_id, code)

        Returns:
            The stored group with its id populated
        """
        pass

    @abstractmethod
    def get_groups(self, division_id: Optional[int] = None) -> List[Group]:
        """Get groups ordered by code, optionally for one division."""
        pass

    @abstractmethod
    def get_group(self, group_id: int) -> Optional[Group]:
        """Get one group by id."""
        pass

    # =========================================================================
    # SEASONS
    # =========================================================================

    @abstractmethod
    def save_season(self, season: Season) -> Season:
        """Insert or update a season. Returns it with its id populated."""
        pass

    @abstractmethod
    def get_season(self, season_id: int) -> Optional[Season]:
        pass

    @abstractmethod
    def get_seasons(self) -> List[Season]:
        """Get all seasons, newest first."""
        pass

    @abstractmethod
    def get_active_season(self) -> Optional[Season]:
        pass

    @abstractmethod
    def set_active_season(self, season_id: int) -> None:
        """
        Make one season active.

        Behavior:
            - Every other season becomes inactive in the same transaction
        """
        pass

    @abstractmethod
    def complete_season(self, season_id: int) -> None:
        """Mark a season completed and inactive."""
        pass

    # =========================================================================
    # TEAMS
    # =========================================================================

    @abstractmethod
    def save_teams(self, teams: List[Team]) -> List[Team]:
        """Insert or update teams. Returns them with ids populated."""
        pass

    @abstractmethod
    def get_team(self, team_id: int) -> Optional[Team]:
        pass

    @abstractmethod
    def get_teams(self, team_ids: Optional[List[int]] = None) -> List[Team]:
        """Get teams ordered by id, optionally restricted to ``team_ids``."""
        pass

    # =========================================================================
    # ASSIGNMENTS
    # =========================================================================

    @abstractmethod
    def save_assignments(self, assignments: List[Assignment]) -> List[Assignment]:
        """
        Create assignments.

        Args:
            assignments: New assignments

        Returns:
            The assignments that were actually created

        Behavior:
            - An assignment for an existing (team, season) pair is skipped
        """
        pass

    @abstractmethod
    def get_assignments(
        self,
        season_id: int,
        group_id: Optional[int] = None,
        group_ids: Optional[List[int]] = None
    ) -> List[Assignment]:
        """Get a season's assignments, optionally filtered by group(s)."""
        pass

    @abstractmethod
    def get_assignment(self, team_id: int, season_id: int) -> Optional[Assignment]:
        pass

    @abstractmethod
    def update_assignment_flags(
        self,
        season_id: int,
        team_id: int,
        flags: Dict[str, Any]
    ) -> None:
        """
        Update outcome flags on one assignment.

        Args:
            season_id: Season of the assignment
            team_id: Team of the assignment
            flags: Column/value pairs; keys must be in ASSIGNMENT_FLAGS

        Raises:
            QueryError: If a key is not an assignment flag
        """
        pass

    @abstractmethod
    def clear_assignment_flags(self, season_id: int) -> int:
        """Reset every outcome flag and next-group pointer of a season."""
        pass

    # =========================================================================
    # MATCHES
    # =========================================================================

    @abstractmethod
    def save_matches(self, matches: List[Match]) -> List[Match]:
        """Insert new matches. Returns them with ids populated."""
        pass

    @abstractmethod
    def get_match(self, match_id: int) -> Optional[Match]:
        pass

    @abstractmethod
    def get_matches(
        self,
        season_id: int,
        group_id: Optional[int] = None,
        group_ids: Optional[List[int]] = None,
        is_playoff: Optional[bool] = None,
        status: Optional[MatchStatus] = None,
        playoff_round: Optional[PlayoffRound] = None
    ) -> List[Match]:
        """
        Get matches with flexible filtering.

        Returns:
            Matches ordered by id (creation order)
        """
        pass

    @abstractmethod
    def update_match_result(
        self,
        match_id: int,
        home_goals: int,
        away_goals: int,
        status: MatchStatus = MatchStatus.FINISHED
    ) -> None:
        """Store a match score and status."""
        pass

    # =========================================================================
    # STANDINGS
    # =========================================================================

    @abstractmethod
    def replace_standings(
        self,
        season_id: int,
        group_id: int,
        standings: List[Standing]
    ) -> int:
        """
        Replace the stored table of a group/season.

        Behavior:
            - Existing rows for the group/season are deleted first
            - Returns the number of rows written
        """
        pass

    @abstractmethod
    def get_standings(self, season_id: int, group_id: int) -> List[Standing]:
        """Get the stored table ordered by position."""
        pass

    # =========================================================================
    # DIVISION PHASES
    # =========================================================================

    @abstractmethod
    def get_phase(self, division_id: int, season_id: int) -> Optional[DivisionPhase]:
        """Get the stored lifecycle phase, or None if never recorded."""
        pass

    @abstractmethod
    def set_phase(self, division_id: int, season_id: int, phase: DivisionPhase) -> None:
        pass

    # =========================================================================
    # METADATA
    # =========================================================================

    @abstractmethod
    def get_metadata(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set_metadata(self, key: str, value: str) -> None:
        pass
