"""Translated Solr query — the unit handed to the search adapter and cache."""

from __future__ import annotations

import hashlib
import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SolrQuery(BaseModel):
    """A fully translated, immutable Solr query.

    Instances are produced by ``QueryTranslator`` with filters already in
    canonical order, so equal requests give equal queries and equal
    fingerprints.
    """

    model_config = ConfigDict(frozen=True)

    q: str = Field(default="*:*", description="Main query")
    def_type: str | None = Field(default=None, description="Query parser (e.g. edismax)")
    qf: str | None = Field(default=None, description="Query fields for edismax")
    filters: tuple[str, ...] = Field(default=(), description="Filter queries (fq), canonically ordered")
    sort: tuple[str, ...] = Field(default=(), description="Sort clauses, e.g. 'sent_at desc'")
    start: int = Field(default=0, ge=0, description="Offset of the first row")
    rows: int = Field(default=10, ge=0, description="Number of rows to return")
    fields: str = Field(default="*,score", description="Field list (fl)")
    facet_fields: tuple[str, ...] = Field(default=(), description="Fields to facet on")
    facet_queries: tuple[tuple[str, str], ...] = Field(default=(), description="(label, query) facet queries")
    facet_limit: int = Field(default=100, description="facet.limit")
    facet_min_count: int = Field(default=1, description="facet.mincount")

    @property
    def has_facets(self) -> bool:
        return bool(self.facet_fields or self.facet_queries)

    def with_page(self, start: int, rows: int) -> SolrQuery:
        """Return a copy of this query for a different page window."""
        return self.model_copy(update={"start": start, "rows": rows})

    def without_facets(self) -> SolrQuery:
        """Return a copy of this query with faceting disabled."""
        return self.model_copy(update={"facet_fields": (), "facet_queries": ()})

    def to_request_body(self) -> dict[str, Any]:
        """Render the body for Solr's JSON Request API (``POST /select``)."""
        params: dict[str, Any] = {}
        if self.def_type:
            params["defType"] = self.def_type
        if self.qf:
            params["qf"] = self.qf

        if self.has_facets:
            params["facet"] = "true"
            params["facet.limit"] = self.facet_limit
            params["facet.mincount"] = self.facet_min_count
            if self.facet_fields:
                params["facet.field"] = list(self.facet_fields)
            if self.facet_queries:
                params["facet.query"] = [query for _, query in self.facet_queries]

        body: dict[str, Any] = {
            "query": self.q,
            "offset": self.start,
            "limit": self.rows,
            "fields": self.fields,
        }
        if self.filters:
            body["filter"] = list(self.filters)
        if self.sort:
            body["sort"] = ", ".join(self.sort)
        if params:
            body["params"] = params
        return body

    def fingerprint(self) -> str:
        """Stable SHA-256 hex digest of the canonical JSON form of this query."""
        canonical = json.dumps(self.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
