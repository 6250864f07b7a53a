"""HTTP client for a PocketBase-style collection API."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Callable, Optional

import httpx
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
from toto.api.errors import BUSINESS_ERRORS, AuthError, TransientError, ValidationError, error_for_status
from toto.models.schemas import Bet, Match
from toto.utils.clock import utc_now

logger = logging.getLogger(__name__)


def quote(value: str) -> str:
    """Quote a string literal for a filter expression."""
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def match_query(flt: MatchFilter) -> dict[str, str]:
    """Render a MatchFilter as list query parameters."""
    clauses = []
    if flt.statuses:
        clauses.append("(" + " || ".join(f"status = {quote(s.value)}" for s in flt.statuses) + ")")
    if flt.has_result is True:
        clauses.append('result != ""')
    elif flt.has_result is False:
        clauses.append('result = ""')

    params = {}
    if clauses:
        params["filter"] = " && ".join(clauses)
    if flt.order_by_start:
        params["sort"] = "starts_at"
    return params


def bet_query(flt: BetFilter) -> dict[str, str]:
    """Render a BetFilter as list query parameters."""
    clauses = []
    if flt.match_id is not None:
        clauses.append(f"match_id = {quote(flt.match_id)}")
    if flt.user_id is not None:
        clauses.append(f"user_id = {quote(flt.user_id)}")
    return {"filter": " && ".join(clauses)} if clauses else {}


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return response.text[:200]


class PocketBaseClient(DataService):
    """Client for the matches/bets collections (admin session)."""

    def __init__(
        self,
        base_url: str,
        auth_path: str = "/api/admins/auth-with-password",
        matches_collection: str = "matches",
        bets_collection: str = "bets",
        timeout: float = 30.0,
        page_size: int = 200,
        session_ttl_s: int = 3600,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable = utc_now,
    ):
        self.base_url = base_url.rstrip("/")
        self.auth_path = auth_path
        self.matches_collection = matches_collection
        self.bets_collection = bets_collection
        self.page_size = page_size
        self.session_ttl = timedelta(seconds=session_ttl_s)
        self._clock = clock
        self._session: Optional[Session] = None
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    @property
    def session(self) -> Optional[Session]:
        return self._session

    def invalidate_session(self) -> None:
        self._session = None

    def _records_path(self, collection: str, record_id: str | None = None) -> str:
        path = f"/api/collections/{collection}/records"
        return f"{path}/{record_id}" if record_id else path

    async def _request(self, method: str, path: str, record_id: str | None = None, **kwargs) -> dict:
        """Send one request and map failures onto the error taxonomy."""
        headers = {}
        if self._session is not None:
            headers["Authorization"] = self._session.token

        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise TransientError(f"{method} {path} timed out", record_id=record_id) from e
        except httpx.TransportError as e:
            raise TransientError(f"{method} {path} failed: {e}", record_id=record_id) from e

        if response.is_error:
            raise error_for_status(
                response.status_code,
                f"{method} {path} -> {response.status_code}: {_error_message(response)}",
                record_id=record_id,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            # Usually a proxy error page in front of the service
            raise TransientError(f"{method} {path} returned a non-JSON body", record_id=record_id) from e

    async def _list(self, collection: str, params: dict[str, str]) -> list[dict]:
        """Fetch every page of a collection listing."""
        items: list[dict] = []
        page = 1
        while True:
            data = await self._request(
                "GET",
                self._records_path(collection),
                params={**params, "page": page, "perPage": self.page_size},
            )
            batch = data.get("items") or []
            items.extend(batch)
            total_pages = int(data.get("totalPages") or 1)
            if not batch or page >= total_pages:
                return items
            page += 1

    def _validated(self, model: type[ModelT], data: dict, record_id: str | None) -> ModelT:
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(
                f"{model.__name__} {record_id or data.get('id')} violates the schema: {e.errors(include_url=False)}",
                record_id=record_id,
            ) from e

    async def authenticate(self, credentials: Credentials) -> Session:
        """Log in with identity/password and keep the token."""
        self._session = None
        try:
            data = await self._request(
                "POST",
                self.auth_path,
                json={"identity": credentials.identity, "password": credentials.password},
            )
        except BUSINESS_ERRORS as e:
            # A rejected login comes back as 400 "Failed to authenticate."
            raise AuthError(f"Login rejected for {credentials.identity}: {e}", status_code=e.status_code) from e
        token = data.get("token")
        if not token:
            raise AuthError("Authentication response carried no token")
        self._session = Session(token=token, issued_at=self._clock(), ttl=self.session_ttl)
        logger.info("Authenticated as %s", credentials.identity)
        return self._session

    async def list_matches(self, flt: MatchFilter | None = None) -> list[Match]:
        items = await self._list(self.matches_collection, match_query(flt or MatchFilter()))
        return parse_records(Match, items, "match")

    async def get_match(self, match_id: str) -> Match:
        data = await self._request("GET", self._records_path(self.matches_collection, match_id), record_id=match_id)
        return self._validated(Match, data, match_id)

    async def update_match(self, match_id: str, fields: dict[str, Any]) -> Match:
        data = await self._request(
            "PATCH",
            self._records_path(self.matches_collection, match_id),
            record_id=match_id,
            json=serialize_fields(fields),
        )
        return self._validated(Match, data, match_id)

    async def create_match(self, fields: dict[str, Any]) -> Match:
        data = await self._request("POST", self._records_path(self.matches_collection), json=serialize_fields(fields))
        return self._validated(Match, data, None)

    async def list_bets(self, flt: BetFilter | None = None) -> list[Bet]:
        items = await self._list(self.bets_collection, bet_query(flt or BetFilter()))
        return parse_records(Bet, items, "bet")

    async def get_bet(self, bet_id: str) -> Bet:
        data = await self._request("GET", self._records_path(self.bets_collection, bet_id), record_id=bet_id)
        return self._validated(Bet, data, bet_id)

    async def update_bet(self, bet_id: str, fields: dict[str, Any]) -> Bet:
        data = await self._request(
            "PATCH",
            self._records_path(self.bets_collection, bet_id),
            record_id=bet_id,
            json=serialize_fields(fields),
        )
        return self._validated(Bet, data, bet_id)

    async def create_bet(self, fields: dict[str, Any]) -> Bet:
        data = await self._request("POST", self._records_path(self.bets_collection), json=serialize_fields(fields))
        return self._validated(Bet, data, None)
