"""Adapter-specific exceptions."""

from __future__ import annotations

from mailsearch.exceptions import GatewayError


class AdapterError(GatewayError):
    """Base exception for adapter errors."""

    code = "UPSTREAM_ERROR"


class UpstreamUnavailable(AdapterError):
    """Raised when the search backend cannot be reached after all retries."""

    code = "UPSTREAM_UNAVAILABLE"

    def __init__(self, message: str, attempts: int = 1) -> None:
        super().__init__(message)
        self.attempts = attempts


class UpstreamRejected(AdapterError):
    """Raised when the search backend refuses a query (malformed syntax, unknown field, 4xx)."""

    code = "UPSTREAM_REJECTED"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_client_error(self) -> bool:
        """True when the rejection was caused by the query itself."""
        return self.status_code is not None and 400 <= self.status_code < 500


class DocumentNotFoundError(AdapterError):
    """Raised when a requested document does not exist."""

    code = "DOCUMENT_NOT_FOUND"
