"""Base search adapter — Abstract interface for the upstream search connector.

The adapter is responsible for:
  1. Executing translated queries against the backend
  2. Fetching individual documents
  3. Reporting health status

It is deliberately unaware of caching and of the response schema; the
gateway composes it with the query cache and the result mapper.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from mailsearch.models.solr import SolrQuery


class AdapterHealth(BaseModel):
    """Health status of a search adapter."""

    status: str = Field(description="Health status: healthy, degraded, unhealthy")
    latency_ms: int = Field(default=0, description="Latency of last health check in ms")
    last_check: str | None = Field(default=None, description="ISO timestamp of last health check")
    message: str | None = Field(default=None, description="Additional health message")


class RawResults(BaseModel):
    """Raw backend payload before mapping."""

    payload: dict[str, Any] = Field(default_factory=dict, description="Parsed JSON response body")
    took_ms: int = Field(default=0, description="Wall-clock time of the upstream call in ms")
    attempts: int = Field(default=1, description="Number of upstream attempts made")
    facets_dropped: bool = Field(default=False, description="True when faceting was removed after a rejection")


class SearchAdapter(ABC):
    """Abstract base class for search engine adapters.

    Adapters should be safe for concurrent use from many tasks. Connection
    pooling and configuration are handled during initialization.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique adapter name (e.g., 'solr')."""

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the adapter (connections, pools, etc.).

        Called once during application startup.
        """

    @abstractmethod
    async def shutdown(self) -> None:
        """Gracefully shut down the adapter and release connections."""

    @abstractmethod
    async def execute(self, query: SolrQuery) -> RawResults:
        """Execute a translated query against the backend.

        Raises:
            UpstreamUnavailable: When transient failures outlast the retry policy.
            UpstreamRejected: When the backend refuses the query.
        """

    @abstractmethod
    async def fetch_document(self, doc_id: str) -> dict[str, Any]:
        """Retrieve a single raw document by its ID.

        Raises:
            DocumentNotFoundError: If the document does not exist.
        """

    @abstractmethod
    async def health_check(self) -> AdapterHealth:
        """Check the health of the search backend."""
