"""
Shared test fixtures and configuration.

Provides reusable fixtures for all test files including database instances,
a league builder for seeding divisions, teams and fixtures, and an engine
wired to the test database with a deterministic tiebreak.
"""

import pytest
import os
import shutil
import tempfile
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from unittest.mock import patch

from league_engine.models import (
    Assignment,
    AssignmentReason,
    Division,
    Group,
    Match,
    MatchStatus,
    Season,
    Team,
)
from league_engine.services import (
    SeasonTransitionOrchestrator,
    StandingsCache,
    StandingsService,
    TiebreakResolver,
    initialize_league_system,
    stable_order,
)
from league_engine.storage import get_database, reset_database

Outcome = Callable[[int, int], Optional[Tuple[int, int]]]


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture
def test_data_dir():
    """Provide a temporary directory for test data."""
    temp_dir = tempfile.mkdtemp(prefix="league_engine_test_")
    yield temp_dir

    # Cleanup
    if os.path.exists(temp_dir):
        try:
            shutil.rmtree(temp_dir)
        except PermissionError:
            pass  # Windows file locking, ignore


@pytest.fixture
def db_fixture(test_data_dir):
    """Provide a clean test database instance."""
    with patch.dict(os.environ, {'DB_TYPE': 'sqlite', 'DATA_DIR': test_data_dir}, clear=False):
        reset_database()
        db = get_database()
        yield db
        reset_database()  # Close connection before cleanup


# =============================================================================
# LEAGUE BUILDER
# =============================================================================

def division_config(level: int, **overrides: Any) -> Dict[str, Any]:
    """Division settings with small defaults, overridable per test."""
    definition = {
        'level': level,
        'name': f'Division {level}',
        'group_count': 1,
        'teams_per_group': 4,
        'promote_slots': 0,
        'promote_playoff_slots': 0,
        'relegate_slots': 0,
        'tournament_slots': 0,
        'playoff_promotion': 'final_winner',
    }
    definition.update(overrides)
    return definition


def ranked_outcome(ranking: Sequence[int], score: Tuple[int, int] = (2, 0)) -> Outcome:
    """Outcome where the team earlier in ``ranking`` always wins."""
    order = {team_id: i for i, team_id in enumerate(ranking)}

    def outcome(home: int, away: int) -> Tuple[int, int]:
        if order[home] < order[away]:
            return score
        return score[1], score[0]

    return outcome


class LeagueBuilder:
    """Seeds divisions, seasons, teams and fixtures into a test database."""

    def __init__(self, db):
        self.db = db
        self._team_counter = 0

    def setup(self, divisions: List[Dict[str, Any]]) -> List[Division]:
        return initialize_league_system(self.db, divisions)

    def division(self, level: int) -> Division:
        return next(d for d in self.db.get_divisions() if d.level == level)

    def groups(self, level: int) -> List[Group]:
        return self.db.get_groups(self.division(level).id)

    def season(self, name: str = "Season 2025", year: int = 2025, active: bool = True) -> Season:
        return self.db.save_season(Season(name=name, year=year, is_active=active))

    def add_teams(self, season_id: int, group: Group, count: int, followers: int = 0) -> List[Team]:
        """Create ``count`` teams and assign them to ``group``."""
        teams = []
        for _ in range(count):
            self._team_counter += 1
            teams.append(Team(name=f"Team {self._team_counter}", followers=followers))
        teams = self.db.save_teams(teams)
        self.db.save_assignments([
            Assignment(
                team_id=t.id,
                group_id=group.id,
                season_id=season_id,
                reason=AssignmentReason.INITIAL,
                followers_at_assignment=t.followers,
            )
            for t in teams
        ])
        return teams

    def round_robin(
        self,
        season_id: int,
        group_id: int,
        team_ids: Sequence[int],
        outcome: Optional[Outcome] = None,
        double: bool = True,
        start: datetime = datetime(2025, 1, 4, 18, 0)
    ) -> List[Match]:
        """
        Create a (double) round robin. ``outcome`` returns the score of a
        fixture, or None to leave it scheduled; without it every match
        stays scheduled.
        """
        pairs = [(h, a) for i, h in enumerate(team_ids) for a in team_ids[i + 1:]]
        if double:
            pairs += [(a, h) for h, a in pairs]

        matches = []
        for day, (home, away) in enumerate(pairs):
            score = outcome(home, away) if outcome else None
            matches.append(Match(
                season_id=season_id,
                group_id=group_id,
                home_team_id=home,
                away_team_id=away,
                matchday=day + 1,
                scheduled_date=start + timedelta(days=day),
                status=MatchStatus.FINISHED if score else MatchStatus.SCHEDULED,
                home_goals=score[0] if score else None,
                away_goals=score[1] if score else None,
            ))
        return self.db.save_matches(matches)

    def play(self, match: Match, home_goals: int, away_goals: int) -> None:
        self.db.update_match_result(match.id, home_goals, away_goals)

    def flags(self, season_id: int) -> Dict[int, Assignment]:
        return {a.team_id: a for a in self.db.get_assignments(season_id)}


@pytest.fixture
def league(db_fixture) -> LeagueBuilder:
    """Provide a league builder over the test database."""
    return LeagueBuilder(db_fixture)


@pytest.fixture
def standings_service(db_fixture) -> StandingsService:
    """Standings service with stable tiebreaks and no caching."""
    return StandingsService(
        db=db_fixture,
        resolver=TiebreakResolver(fallback=stable_order),
        cache=StandingsCache(ttl_seconds=0),
    )


@pytest.fixture
def engine(db_fixture, standings_service) -> SeasonTransitionOrchestrator:
    """Provide an orchestrator bound to the test database."""
    return SeasonTransitionOrchestrator(db=db_fixture, standings=standings_service)
