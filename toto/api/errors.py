"""Errors raised by data service clients."""


class DataServiceError(Exception):
    """Base class for data service failures."""

    def __init__(self, message: str, status_code: int | None = None, record_id: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.record_id = record_id


class AuthError(DataServiceError):
    """Bad credentials or expired session (401/403)."""


class TransientError(DataServiceError):
    """Timeout, connection failure, 429 or 5xx. Safe to retry next tick."""


class NotFoundError(DataServiceError):
    """Record does not exist (404)."""


class ConflictError(DataServiceError):
    """Record was changed concurrently (409)."""


class ValidationError(DataServiceError):
    """Request rejected by the service (other 4xx)."""


# Per-record failures that never abort a stage
BUSINESS_ERRORS = (NotFoundError, ConflictError, ValidationError)


def error_for_status(status_code: int, message: str, record_id: str | None = None) -> DataServiceError:
    """Map an HTTP status code onto the error taxonomy."""
    if status_code in (401, 403):
        cls = AuthError
    elif status_code == 404:
        cls = NotFoundError
    elif status_code == 409:
        cls = ConflictError
    elif status_code == 429 or status_code >= 500:
        cls = TransientError
    else:
        cls = ValidationError
    return cls(message, status_code=status_code, record_id=record_id)
