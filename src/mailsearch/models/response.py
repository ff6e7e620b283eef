"""API response models.

Supports two output modes:

1. **Page mode** (``/emails/search``) — a single ``SearchResponse`` JSON body
   for one page of results, possibly served from the query cache.
2. **Streaming mode** (``/emails/stream``) — a stream of SSE events, each
   carrying a ``StreamEvent`` payload, paging through every match.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from mailsearch.models.document import EmailDocument, FacetResult
from mailsearch.models.result import SearchResult


class SearchResponse(BaseModel):
    """One page of email search results."""

    emails: list[EmailDocument] = Field(default_factory=list, description="Matching email documents")
    total_count: int = Field(default=0, description="Total number of matching documents")
    offset: int = Field(default=0, description="Offset of the first returned document")
    limit: int = Field(default=0, description="Page size")
    page: int = Field(default=0, description="Zero-based page number (offset // limit)")
    total_pages: int = Field(default=0, description="Number of pages at this page size")
    facets: dict[str, FacetResult] = Field(default_factory=dict, description="Facet name -> counts")
    skipped_count: int = Field(default=0, description="Documents dropped because they could not be mapped")
    cached: bool = Field(default=False, description="True when served from the query cache")
    processing_time_ms: int = Field(default=0, description="Gateway processing time in ms")

    @classmethod
    def from_result(cls, result: SearchResult, *, cached: bool, processing_time_ms: int = 0) -> SearchResponse:
        return cls(
            emails=list(result.emails),
            total_count=result.total_count,
            offset=result.offset,
            limit=result.limit,
            page=result.page,
            total_pages=result.total_pages,
            facets=dict(result.facets),
            skipped_count=result.skipped_count,
            cached=cached,
            processing_time_ms=processing_time_ms,
        )


class HitCountResponse(BaseModel):
    """Total number of matching documents, without the documents."""

    count: int = Field(description="Total number of matching documents")


class ErrorResponse(BaseModel):
    """Standard error body returned by the exception handlers."""

    detail: str = Field(description="Human-readable error message")
    code: str = Field(description="Machine-readable error code")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC), description="Time of the error")


class StreamEvent(BaseModel):
    """A single Server-Sent Event payload for streaming mode.

    Event types:

    - ``email`` — One matching document.
    - ``done``  — All pages fetched; carries the number of emails sent.
    - ``error`` — An error occurred; carries error detail.
    """

    event: str = Field(description="Event type: email | done | error")
    data: dict[str, Any] = Field(description="Event payload")
