"""Data service clients."""

from .base import BetFilter, Credentials, DataService, MatchFilter, Session
from .errors import (
    AuthError,
    ConflictError,
    DataServiceError,
    NotFoundError,
    TransientError,
    ValidationError,
)
from .memory import InMemoryDataService
from .pocketbase import PocketBaseClient

__all__ = [
    "BetFilter",
    "Credentials",
    "DataService",
    "MatchFilter",
    "Session",
    "AuthError",
    "ConflictError",
    "DataServiceError",
    "NotFoundError",
    "TransientError",
    "ValidationError",
    "InMemoryDataService",
    "PocketBaseClient",
]
