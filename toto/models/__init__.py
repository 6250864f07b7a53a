"""Pydantic models for data structures."""

from .schemas import (
    MatchStatus,
    Outcome,
    Match,
    Bet,
)

__all__ = [
    "MatchStatus",
    "Outcome",
    "Match",
    "Bet",
]
