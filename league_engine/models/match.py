"""Match data model."""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel


class MatchStatus(str, Enum):
    """Lifecycle of a fixture."""

    SCHEDULED = "scheduled"
    LIVE = "live"
    FINISHED = "finished"
    POSTPONED = "postponed"
    CANCELLED = "cancelled"


class PlayoffRound(str, Enum):
    """Elimination stage labels, earliest first."""

    QUARTERFINAL = "Quarterfinal"
    SEMIFINAL = "Semifinal"
    FINAL = "Final"

    @property
    def order(self) -> int:
        return list(PlayoffRound).index(self)

    def next_round(self) -> Optional["PlayoffRound"]:
        """Round that follows this one, or None after the final."""
        rounds = list(PlayoffRound)
        if self.order + 1 < len(rounds):
            return rounds[self.order + 1]
        return None

    @classmethod
    def for_team_count(cls, count: int) -> Optional["PlayoffRound"]:
        """Opening round for a bracket of ``count`` teams."""
        return {2: cls.FINAL, 4: cls.SEMIFINAL, 8: cls.QUARTERFINAL}.get(count)


class Match(BaseModel):
    """A fixture between two teams in a group/season."""

    id: Optional[int] = None
    season_id: int
    group_id: int
    home_team_id: int
    away_team_id: int
    matchday: Optional[int] = None
    scheduled_date: Optional[datetime] = None
    status: MatchStatus = MatchStatus.SCHEDULED
    home_goals: Optional[int] = None
    away_goals: Optional[int] = None
    is_playoff: bool = False
    playoff_round: Optional[PlayoffRound] = None

    def is_finished(self) -> bool:
        """Finished with both scores known."""
        return (
            self.status == MatchStatus.FINISHED
            and self.home_goals is not None
            and self.away_goals is not None
        )

    def involves(self, team_id: int) -> bool:
        return team_id in (self.home_team_id, self.away_team_id)

    def get_winner_id(self) -> Optional[int]:
        """Winning team id, or None for a draw or an unfinished match."""
        if not self.is_finished():
            return None
        if self.home_goals > self.away_goals:
            return self.home_team_id
        if self.away_goals > self.home_goals:
            return self.away_team_id
        return None

    def get_loser_id(self) -> Optional[int]:
        """Losing team id, or None for a draw or an unfinished match."""
        winner = self.get_winner_id()
        if winner is None:
            return None
        return self.away_team_id if winner == self.home_team_id else self.home_team_id


class PlayoffMatchup(BaseModel):
    """A playoff fixture before it is persisted."""

    season_id: int
    group_id: int
    round: PlayoffRound
    home_team_id: int
    away_team_id: int
    scheduled_date: Optional[datetime] = None

    def to_match(self) -> Match:
        """Build the scheduled Match row for this pairing."""
        return Match(
            season_id=self.season_id,
            group_id=self.group_id,
            home_team_id=self.home_team_id,
            away_team_id=self.away_team_id,
            scheduled_date=self.scheduled_date,
            status=MatchStatus.SCHEDULED,
            is_playoff=True,
            playoff_round=self.round,
        )
