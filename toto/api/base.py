"""Data service contract consumed by the settlement stages."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from toto.models.schemas import Bet, Match, MatchStatus

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass(frozen=True)
class Credentials:
    identity: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class Session:
    """Authenticated session returned by DataService.authenticate()."""
    token: str = field(repr=False)
    issued_at: datetime
    ttl: timedelta

    def is_valid(self, now: datetime) -> bool:
        return bool(self.token) and now < self.issued_at + self.ttl


@dataclass(frozen=True)
class MatchFilter:
    """
    Match selection.
    - statuses: status must be one of these (empty = any status)
    - has_result: True/False filters on result presence, None ignores it
    - order_by_start: sort by kickoff ascending
    """
    statuses: tuple[MatchStatus, ...] = ()
    has_result: Optional[bool] = None
    order_by_start: bool = False

    def accepts(self, match: Match) -> bool:
        if self.statuses and match.status not in self.statuses:
            return False
        if self.has_result is not None and (match.result is not None) != self.has_result:
            return False
        return True


@dataclass(frozen=True)
class BetFilter:
    """Bet selection by match and/or user (None = any)."""
    match_id: Optional[str] = None
    user_id: Optional[str] = None

    def accepts(self, bet: Bet) -> bool:
        if self.match_id is not None and bet.match_id != self.match_id:
            return False
        if self.user_id is not None and bet.user_id != self.user_id:
            return False
        return True


class DataService(ABC):
    """
    Remote store interface.
    PocketBaseClient and InMemoryDataService implement it;
    the stages and the worker only see this interface.

    Every method raises a toto.api.errors.DataServiceError subclass on failure.
    """

    @property
    @abstractmethod
    def session(self) -> Optional[Session]:
        """Current session, or None before authenticate()."""
        raise NotImplementedError

    @abstractmethod
    def invalidate_session(self) -> None:
        """Forget the current session so the next tick re-authenticates."""
        raise NotImplementedError

    @abstractmethod
    async def authenticate(self, credentials: Credentials) -> Session:
        """Raises AuthError on bad credentials."""
        raise NotImplementedError

    @abstractmethod
    async def list_matches(self, flt: MatchFilter | None = None) -> list[Match]:
        raise NotImplementedError

    @abstractmethod
    async def get_match(self, match_id: str) -> Match:
        raise NotImplementedError

    @abstractmethod
    async def update_match(self, match_id: str, fields: dict[str, Any]) -> Match:
        """Partial update. NotFoundError if absent, ConflictError on a concurrent change."""
        raise NotImplementedError

    @abstractmethod
    async def create_match(self, fields: dict[str, Any]) -> Match:
        raise NotImplementedError

    @abstractmethod
    async def list_bets(self, flt: BetFilter | None = None) -> list[Bet]:
        raise NotImplementedError

    @abstractmethod
    async def get_bet(self, bet_id: str) -> Bet:
        raise NotImplementedError

    @abstractmethod
    async def update_bet(self, bet_id: str, fields: dict[str, Any]) -> Bet:
        raise NotImplementedError

    @abstractmethod
    async def create_bet(self, fields: dict[str, Any]) -> Bet:
        raise NotImplementedError

    async def close(self) -> None:
        """Release resources."""
        return None


def parse_records(model: type[ModelT], items: list[dict[str, Any]], entity: str) -> list[ModelT]:
    """Validate raw records, dropping (and logging) the ones that break the schema."""
    parsed = []
    for item in items:
        try:
            parsed.append(model.model_validate(item))
        except PydanticValidationError as e:
            logger.error(
                "Invalid %s record %s skipped: %s",
                entity, item.get("id", "<no id>"), e.errors(include_url=False),
            )
    return parsed


def serialize_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Turn enums and datetimes into plain JSON values."""
    out = {}
    for key, value in fields.items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, datetime):
            value = value.isoformat()
        out[key] = value
    return out
