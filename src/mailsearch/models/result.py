"""Search result model — the cached, immutable output of a gateway search."""

from __future__ import annotations

import math

from pydantic import BaseModel, ConfigDict, Field

from mailsearch.models.document import EmailDocument, FacetResult


class SearchResult(BaseModel):
    """Ordered matches for one translated query, with total count and facets.

    Built once by ``ResultMapper`` and never modified afterwards; the same
    instance may be handed to several concurrent callers by the cache.
    """

    model_config = ConfigDict(frozen=True)

    emails: tuple[EmailDocument, ...] = Field(default=(), description="Matched documents, in Solr order")
    total_count: int = Field(default=0, description="Total number of matching documents")
    offset: int = Field(default=0, description="Offset of the first returned document")
    limit: int = Field(default=0, description="Requested page size")
    facets: dict[str, FacetResult] = Field(default_factory=dict, description="Facet name -> counts")
    skipped_count: int = Field(default=0, description="Documents dropped because they could not be mapped")
    qtime_ms: int = Field(default=0, description="Solr QTime of the originating query")

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return math.ceil(self.total_count / self.limit)

    @property
    def page(self) -> int:
        if self.limit <= 0:
            return 0
        return self.offset // self.limit
