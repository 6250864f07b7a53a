"""Pydantic schemas for toto records."""

from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel, Field, field_validator


class MatchStatus(str, Enum):
    """Match lifecycle state."""
    UPCOMING = "upcoming"
    LIVE = "live"
    COMPLETED = "completed"
    CANCELLED = "cancelled"  # Set by admins only


class Outcome(str, Enum):
    """Match outcome, also used for picks."""
    HOME = "H"
    DRAW = "D"
    AWAY = "A"


def _blank_to_none(value):
    # The service sends "" for empty text/date/select fields
    if isinstance(value, str) and not value.strip():
        return None
    return value


class Match(BaseModel):
    """One scheduled fixture."""
    id: str = Field(min_length=1)
    league: str = ""
    tour: int | None = Field(default=None, ge=1)
    home_team: str = ""
    away_team: str = ""
    starts_at: datetime | None = None
    status: MatchStatus
    home_score: int | None = Field(default=None, ge=0)
    away_score: int | None = Field(default=None, ge=0)
    result: Outcome | None = None

    # Informational only
    odd_home: float | None = Field(default=None, gt=0)
    odd_draw: float | None = Field(default=None, gt=0)
    odd_away: float | None = Field(default=None, gt=0)

    @field_validator("home_score", "away_score", "result", mode="before")
    @classmethod
    def _empty_is_unset(cls, value):
        return _blank_to_none(value)

    @field_validator("tour", "odd_home", "odd_draw", "odd_away", mode="before")
    @classmethod
    def _zero_is_unset(cls, value):
        value = _blank_to_none(value)
        return None if value == 0 else value

    @field_validator("starts_at", mode="before")
    @classmethod
    def _service_timestamp(cls, value):
        value = _blank_to_none(value)
        if isinstance(value, str):
            # "2025-08-16 17:00:00.000Z" -> ISO 8601
            value = value.strip().replace(" ", "T", 1)
        return value

    @field_validator("starts_at")
    @classmethod
    def _as_utc(cls, value: datetime | None) -> datetime | None:
        """Naive timestamps are stored in UTC."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @property
    def has_scores(self) -> bool:
        """Both final scores are entered."""
        return self.home_score is not None and self.away_score is not None

    @property
    def label(self) -> str:
        """Short human label for logs."""
        return f"{self.home_team or '?'} - {self.away_team or '?'}"


class Bet(BaseModel):
    """One user's pick on one match."""
    id: str = Field(min_length=1)
    match_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    pick: Outcome
    points: int | None = None

    @field_validator("points", mode="before")
    @classmethod
    def _unsettled_points(cls, value):
        # 0 is the service default for an empty number (and the old "incorrect" score)
        value = _blank_to_none(value)
        return None if value == 0 else value

    @property
    def is_settled(self) -> bool:
        """Points have been assigned."""
        return self.points is not None
