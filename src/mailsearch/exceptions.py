"""Gateway exception taxonomy.

Every error the gateway surfaces derives from ``GatewayError``. The HTTP
layer maps each concrete type to a status code and a machine-readable
``code`` (see ``mailsearch.api.errors``).
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base exception for search gateway errors."""

    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidRequest(GatewayError):
    """Raised when a search request is malformed or out of bounds.

    Never retried; surfaced to the caller as a client error.
    """

    code = "INVALID_REQUEST"


class PartialMapping(GatewayError):
    """A single upstream document could not be mapped.

    Raised inside the result mapper and caught there: the document is
    logged and skipped, the rest of the batch is kept.
    """

    code = "PARTIAL_MAPPING"

    def __init__(self, message: str, doc_id: str | None = None) -> None:
        super().__init__(message)
        self.doc_id = doc_id
