"""Standings data models."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel

from .team import TeamStatus


class Consequence(str, Enum):
    """Season-outcome label for a final position."""

    TOURNAMENT = "TOURNAMENT"
    PROMOTION = "PROMOTION"
    PLAYOFF = "PLAYOFF"
    RELEGATION = "RELEGATION"
    SAFE = "SAFE"


class TeamStats(BaseModel):
    """Raw aggregated statistics for one team in one group/season."""

    team_id: int
    team_name: str = ""
    followers: int = 0
    played: int = 0
    won: int = 0
    drawn: int = 0
    lost: int = 0
    goals_for: int = 0
    goals_against: int = 0
    points: int = 0

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    def record(self, scored: int, conceded: int) -> None:
        """Fold one finished match into the totals."""
        self.played += 1
        self.goals_for += scored
        self.goals_against += conceded
        if scored > conceded:
            self.won += 1
            self.points += 3
        elif scored == conceded:
            self.drawn += 1
            self.points += 1
        else:
            self.lost += 1


class Standing(BaseModel):
    """A ranked row of a classification table."""

    team_id: int
    team_name: str = ""
    position: int
    played: int = 0
    won: int = 0
    drawn: int = 0
    lost: int = 0
    goals_for: int = 0
    goals_against: int = 0
    goal_difference: int = 0
    points: int = 0
    followers: int = 0
    consequence: Optional[Consequence] = None
    status: Optional[TeamStatus] = None

    @classmethod
    def from_stats(cls, stats: TeamStats, position: int) -> "Standing":
        return cls(
            team_id=stats.team_id,
            team_name=stats.team_name,
            position=position,
            played=stats.played,
            won=stats.won,
            drawn=stats.drawn,
            lost=stats.lost,
            goals_for=stats.goals_for,
            goals_against=stats.goals_against,
            goal_difference=stats.goal_difference,
            points=stats.points,
            followers=stats.followers,
        )
