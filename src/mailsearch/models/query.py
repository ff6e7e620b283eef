"""Query and search request models.

These models only check shapes and types. Bounds, field names and the
time-range ordering are checked by ``QueryTranslator`` against the
configured schema, so that every semantic violation surfaces as
``InvalidRequest``.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class SortDirection(str, Enum):
    """Sort order for a single sort clause."""

    ASC = "asc"
    DESC = "desc"


class SortField(BaseModel):
    """One entry of an ordered sort specification."""

    field: str = Field(min_length=1, description="Field name (or alias such as 'timestamp')")
    direction: SortDirection = Field(default=SortDirection.ASC, description="asc or desc")


class RangeFilter(BaseModel):
    """Inclusive range on a single field. A missing bound is open."""

    gte: str | int | float | datetime | None = Field(default=None, description="Lower bound (inclusive)")
    lte: str | int | float | datetime | None = Field(default=None, description="Upper bound (inclusive)")


FilterValue = RangeFilter | str | int | float | bool


class SearchRequest(BaseModel):
    """Structured email search request.

    Every search is scoped to a time window. ``participant_emails`` narrows
    the result to emails involving any of the given addresses, and
    ``admin_firm_domain`` governs whether BCC recipients are searched.
    """

    query: str | None = Field(default=None, max_length=2000, description="Free-text search terms")
    filters: dict[str, FilterValue] = Field(
        default_factory=dict,
        description="Field filters: exact value or {gte, lte} range",
    )
    start_time: datetime = Field(description="Start of the time range (inclusive)")
    end_time: datetime = Field(description="End of the time range (inclusive)")
    participant_emails: list[str] = Field(default_factory=list, description="Participant email addresses")
    admin_firm_domain: str = Field(description="Admin's firm domain for BCC privacy enforcement")
    offset: int = Field(default=0, description="Index of the first result to return")
    limit: int | None = Field(default=None, description="Number of results to return")
    sort: list[SortField] = Field(default_factory=list, description="Ordered sort specification")
    facet_fields: list[str] = Field(default_factory=list, description="Fields to facet on")
    facet_queries: list[str] = Field(default_factory=list, description="Labels of configured facet queries")

    @field_validator("sort", mode="before")
    @classmethod
    def _parse_sort_string(cls, v: Any) -> Any:
        """Accept Solr-style sort strings such as ``"timestamp desc, id asc"``."""
        if v is None:
            return []
        if not isinstance(v, str):
            return v
        clauses = []
        for part in v.split(","):
            tokens = part.split()
            if not tokens:
                continue
            clause: dict[str, str] = {"field": tokens[0]}
            if len(tokens) > 1:
                clause["direction"] = tokens[1].lower()
            clauses.append(clause)
        return clauses


class StreamSearchRequest(SearchRequest):
    """Search request for streaming exports; pagination is driven server-side."""

    batch_size: int | None = Field(default=None, ge=1, description="Documents fetched per upstream page")
