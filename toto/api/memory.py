"""In-process data service for dry runs and tests."""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from toto.api.base import (
    BetFilter,
    Credentials,
    DataService,
    MatchFilter,
    ModelT,
    Session,
    parse_records,
    serialize_fields,
)
from toto.api.errors import AuthError, NotFoundError, ValidationError
from toto.models.schemas import Bet, Match
from toto.utils.clock import utc_now


@dataclass
class _PlannedFailure:
    operation: str
    record_id: Optional[str]
    error: Exception


class InMemoryDataService(DataService):
    """
    Dict-backed implementation of DataService.

    - Records are kept as raw dicts (like the remote store) and validated on read,
      so tests can seed records that break the schema.
    - If credentials are given, every call needs a live session from authenticate().
    - fail_next() makes the next matching call raise, to simulate outages.
    - writes lists every successful update/create as (collection, id, fields).
    """

    def __init__(
        self,
        credentials: Credentials | None = None,
        clock: Callable[[], datetime] = utc_now,
        session_ttl_s: int = 3600,
    ):
        self.matches: dict[str, dict[str, Any]] = {}
        self.bets: dict[str, dict[str, Any]] = {}
        self.writes: list[tuple[str, str, dict[str, Any]]] = []
        self.calls: list[str] = []

        self._credentials = credentials
        self._clock = clock
        self._ttl = timedelta(seconds=session_ttl_s)
        self._session: Optional[Session] = None
        self._live_tokens: set[str] = set()
        self._failures: list[_PlannedFailure] = []
        self._ids = itertools.count(1)

    # -------------------------
    # Test helpers
    # -------------------------
    def seed_match(self, **record: Any) -> str:
        """Insert a raw match record (not validated). Returns its id."""
        record = serialize_fields(record)
        record.setdefault("id", f"m{next(self._ids)}")
        self.matches[record["id"]] = record
        return record["id"]

    def seed_bet(self, **record: Any) -> str:
        """Insert a raw bet record (not validated). Returns its id."""
        record = serialize_fields(record)
        record.setdefault("id", f"b{next(self._ids)}")
        self.bets[record["id"]] = record
        return record["id"]

    def fail_next(self, operation: str, error: Exception, record_id: str | None = None) -> None:
        """Make the next call of `operation` (optionally for one record) raise `error`."""
        self._failures.append(_PlannedFailure(operation, record_id, error))

    def revoke_sessions(self) -> None:
        """Server-side expiry: existing tokens are rejected from now on."""
        self._live_tokens.clear()

    # -------------------------
    # Internals
    # -------------------------
    def _enter(self, operation: str, record_id: str | None = None) -> None:
        self.calls.append(operation)
        for i, planned in enumerate(self._failures):
            if planned.operation == operation and planned.record_id in (None, record_id):
                del self._failures[i]
                raise planned.error
        if self._credentials is not None and operation != "authenticate":
            if self._session is None or self._session.token not in self._live_tokens:
                raise AuthError("401: session missing or expired", status_code=401)

    def _validated(self, model: type[ModelT], data: dict[str, Any]) -> ModelT:
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(
                f"{model.__name__} {data.get('id')} rejected: {e.errors(include_url=False)}",
                status_code=400,
                record_id=data.get("id"),
            ) from e

    def _update(self, table: dict[str, dict[str, Any]], name: str, model: type[ModelT],
                record_id: str, fields: dict[str, Any]) -> ModelT:
        if record_id not in table:
            raise NotFoundError(f"{name} {record_id} not found", status_code=404, record_id=record_id)
        changes = serialize_fields(fields)
        merged = {**table[record_id], **changes}
        parsed = self._validated(model, merged)
        table[record_id] = merged
        self.writes.append((name, record_id, changes))
        return parsed

    def _create(self, table: dict[str, dict[str, Any]], name: str, model: type[ModelT],
                prefix: str, fields: dict[str, Any]) -> ModelT:
        record = serialize_fields(fields)
        record.setdefault("id", f"{prefix}{next(self._ids)}")
        parsed = self._validated(model, record)
        table[record["id"]] = record
        self.writes.append((name, record["id"], record))
        return parsed

    # -------------------------
    # DataService implementation
    # -------------------------
    @property
    def session(self) -> Optional[Session]:
        return self._session

    def invalidate_session(self) -> None:
        self._session = None

    async def authenticate(self, credentials: Credentials) -> Session:
        self._enter("authenticate")
        if self._credentials is not None and credentials != self._credentials:
            raise AuthError("Failed to authenticate", status_code=400)
        token = f"token-{next(self._ids)}"
        self._live_tokens.add(token)
        self._session = Session(token=token, issued_at=self._clock(), ttl=self._ttl)
        return self._session

    async def list_matches(self, flt: MatchFilter | None = None) -> list[Match]:
        self._enter("list_matches")
        flt = flt or MatchFilter()
        matches = [m for m in parse_records(Match, list(self.matches.values()), "match") if flt.accepts(m)]
        if flt.order_by_start:
            matches.sort(key=lambda m: (m.starts_at is None, m.starts_at or datetime.min))
        return matches

    async def get_match(self, match_id: str) -> Match:
        self._enter("get_match", match_id)
        if match_id not in self.matches:
            raise NotFoundError(f"match {match_id} not found", status_code=404, record_id=match_id)
        return self._validated(Match, self.matches[match_id])

    async def update_match(self, match_id: str, fields: dict[str, Any]) -> Match:
        self._enter("update_match", match_id)
        return self._update(self.matches, "matches", Match, match_id, fields)

    async def create_match(self, fields: dict[str, Any]) -> Match:
        self._enter("create_match")
        return self._create(self.matches, "matches", Match, "m", fields)

    async def list_bets(self, flt: BetFilter | None = None) -> list[Bet]:
        self._enter("list_bets", flt.match_id if flt else None)
        flt = flt or BetFilter()
        return [b for b in parse_records(Bet, list(self.bets.values()), "bet") if flt.accepts(b)]

    async def get_bet(self, bet_id: str) -> Bet:
        self._enter("get_bet", bet_id)
        if bet_id not in self.bets:
            raise NotFoundError(f"bet {bet_id} not found", status_code=404, record_id=bet_id)
        return self._validated(Bet, self.bets[bet_id])

    async def update_bet(self, bet_id: str, fields: dict[str, Any]) -> Bet:
        self._enter("update_bet", bet_id)
        return self._update(self.bets, "bets", Bet, bet_id, fields)

    async def create_bet(self, fields: dict[str, Any]) -> Bet:
        self._enter("create_bet")
        return self._create(self.bets, "bets", Bet, "b", fields)
