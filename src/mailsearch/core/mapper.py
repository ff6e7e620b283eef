"""Result Mapper — converts a raw Solr response into a ``SearchResult``.

Mapping is per document: a document that cannot be mapped is logged and
skipped, never failing the whole batch. Missing optional fields map to
``None`` or empty lists; single-valued fields that Solr returns as lists
are unwrapped.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from mailsearch.exceptions import PartialMapping
from mailsearch.models.document import (
    FIELD_BCC,
    FIELD_BODY,
    FIELD_CC,
    FIELD_FROM,
    FIELD_ID,
    FIELD_SENT_AT,
    FIELD_SUBJECT,
    FIELD_TO,
    EmailDocument,
    FacetResult,
    FacetValue,
)
from mailsearch.models.result import SearchResult
from mailsearch.models.solr import SolrQuery

logger = logging.getLogger(__name__)


class ResultMapper:
    """Maps Solr ``/select`` payloads to the application response schema."""

    def map(self, payload: dict[str, Any], query: SolrQuery) -> SearchResult:
        """Map a full Solr response.

        Args:
            payload: Parsed JSON body of a Solr ``/select`` response.
            query: The query that produced the payload (used for paging
                metadata and facet-query labels).

        Returns:
            An immutable SearchResult.
        """
        response = payload.get("response")
        if not isinstance(response, dict):
            logger.warning("Solr payload has no 'response' section; treating as empty result")
            response = {}

        emails: list[EmailDocument] = []
        skipped = 0
        for raw in response.get("docs") or []:
            try:
                emails.append(self.map_document(raw))
            except PartialMapping as e:
                skipped += 1
                logger.warning("Skipping unmappable document %s: %s", e.doc_id or "<unknown>", e.message)

        return SearchResult(
            emails=tuple(emails),
            total_count=_as_int(response.get("numFound"), default=0),
            offset=query.start,
            limit=query.rows,
            facets=self.map_facets(payload.get("facet_counts"), query),
            skipped_count=skipped,
            qtime_ms=_as_int((payload.get("responseHeader") or {}).get("QTime"), default=0),
        )

    def map_document(self, raw: Any) -> EmailDocument:
        """Map one Solr document.

        Raises:
            PartialMapping: If the document has no id or a malformed field.
        """
        if not isinstance(raw, dict):
            raise PartialMapping(f"expected an object, got {type(raw).__name__}")

        doc_id = _first_value(raw.get(FIELD_ID))
        if doc_id is None or str(doc_id) == "":
            raise PartialMapping("document has no id")
        doc_id = str(doc_id)

        try:
            sent_at = _parse_datetime(_first_value(raw.get(FIELD_SENT_AT)))
        except (TypeError, ValueError) as e:
            raise PartialMapping(f"invalid {FIELD_SENT_AT}: {e}", doc_id=doc_id) from e

        try:
            return EmailDocument(
                id=doc_id,
                subject=_as_str(raw.get(FIELD_SUBJECT)),
                body=_as_str(raw.get(FIELD_BODY)),
                from_addr=_as_str(raw.get(FIELD_FROM)),
                to=_to_list(raw.get(FIELD_TO)),
                cc=_to_list(raw.get(FIELD_CC)),
                bcc=_to_list(raw.get(FIELD_BCC)),
                sent_at=sent_at,
                score=raw.get("score"),
            )
        except ValidationError as e:
            raise PartialMapping(str(e), doc_id=doc_id) from e

    def map_facets(self, facet_counts: Any, query: SolrQuery) -> dict[str, FacetResult]:
        """Map ``facet_counts`` (field facets and labelled facet queries)."""
        if not isinstance(facet_counts, dict):
            return {}

        facets: dict[str, FacetResult] = {}

        for field, raw_values in (facet_counts.get("facet_fields") or {}).items():
            try:
                facets[field] = FacetResult(field=field, values=_facet_pairs(raw_values))
            except (TypeError, ValueError) as e:
                logger.warning("Skipping malformed facet field '%s': %s", field, e)

        labels = {q: label for label, q in query.facet_queries}
        for facet_query, count in (facet_counts.get("facet_queries") or {}).items():
            label = labels.get(facet_query)
            count = _as_int(count, default=0)
            if label is None or count <= 0:
                continue
            facets[label] = FacetResult(field=label, values=[FacetValue(value=label, count=count)])

        return facets


# ── Helpers ──────────────────────────────────────────────────────────────


def _first_value(val: Any) -> Any:
    """Solr may return single-valued fields as lists; unwrap transparently."""
    if isinstance(val, list):
        return val[0] if val else None
    return val


def _as_str(val: Any) -> str | None:
    val = _first_value(val)
    return None if val is None else str(val)


def _to_list(val: Any) -> list[str]:
    if val is None:
        return []
    if isinstance(val, list):
        return [str(v) for v in val if v is not None]
    return [str(val)]


def _as_int(val: Any, default: int) -> int:
    try:
        return int(val)
    except (TypeError, ValueError):
        return default


def _parse_datetime(val: Any) -> datetime | None:
    if val is None or val == "":
        return None
    if isinstance(val, datetime):
        parsed = val
    elif isinstance(val, str):
        parsed = datetime.fromisoformat(val.replace("Z", "+00:00"))
    else:
        raise TypeError(f"unsupported date value {val!r}")
    return parsed.replace(tzinfo=UTC) if parsed.tzinfo is None else parsed.astimezone(UTC)


def _facet_pairs(raw: Any) -> list[FacetValue]:
    """Accept Solr's flat ``[v1, c1, v2, c2]`` list, ``[[v, c], ...]`` pairs, or a ``{v: c}`` map."""
    if isinstance(raw, dict):
        pairs = list(raw.items())
    elif isinstance(raw, list) and all(isinstance(p, list) for p in raw):
        if any(len(p) != 2 for p in raw):
            raise ValueError("facet pair must have exactly two items")
        pairs = [(p[0], p[1]) for p in raw]
    elif isinstance(raw, list):
        if len(raw) % 2:
            raise ValueError("flat facet list has odd length")
        pairs = list(zip(raw[::2], raw[1::2], strict=True))
    else:
        raise TypeError(f"unsupported facet payload {type(raw).__name__}")
    return [FacetValue(value=str(value), count=int(count)) for value, count in pairs]
