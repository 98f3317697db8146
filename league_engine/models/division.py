"""Division and group data models."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, model_validator


class PromotionPolicy(str, Enum):
    """Which playoff winners are promoted in a division."""

    FINAL_WINNER = "final_winner"
    FINALISTS = "finalists"
    OPENING_ROUND_WINNERS = "opening_round_winners"


class Division(BaseModel):
    """A competitive tier. Slot counts apply to every group of the division."""

    id: Optional[int] = None
    level: int
    name: str
    group_count: int = 1
    teams_per_group: int = 20
    promote_slots: int = 0
    promote_playoff_slots: int = 0
    relegate_slots: int = 0
    tournament_slots: int = 0
    playoff_promotion: PromotionPolicy = PromotionPolicy.FINAL_WINNER

    @model_validator(mode="after")
    def check_slots(self) -> "Division":
        """Reject slot counts that cannot fit into a full group."""
        if self.level < 1:
            raise ValueError("level must be >= 1")
        if self.group_count < 1:
            raise ValueError("group_count must be >= 1")
        counts = (
            self.promote_slots,
            self.promote_playoff_slots,
            self.relegate_slots,
            self.tournament_slots,
        )
        if any(c < 0 for c in counts):
            raise ValueError("slot counts cannot be negative")
        used = self.promote_slots + self.promote_playoff_slots + self.relegate_slots
        if used > self.teams_per_group:
            raise ValueError(
                f"{self.name}: {used} promotion/playoff/relegation slots "
                f"exceed {self.teams_per_group} teams per group"
            )
        return self

    @property
    def has_playoffs(self) -> bool:
        """Whether this division runs a promotion playoff."""
        return self.promote_playoff_slots > 0


class Group(BaseModel):
    """A round-robin pool inside a division (also called a league)."""

    id: Optional[int] = None
    division_id: int
    code: str
    name: str
    max_teams: int = 20
