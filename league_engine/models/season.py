"""Season data model."""

from datetime import date
from typing import Optional
from pydantic import BaseModel


class Season(BaseModel):
    """A time-boxed competition cycle."""

    id: Optional[int] = None
    name: str
    year: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: bool = False
    is_completed: bool = False
