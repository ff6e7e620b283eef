"""Query Translator — converts a ``SearchRequest`` into a ``SolrQuery``.

The translator is the single place where user input becomes Solr syntax:

  1. Validation: pagination bounds, time range, and every referenced
     field against the configured schema (``InvalidRequest`` on failure).
  2. Escaping: free text and filter values are escaped so that user input
     can never change the structure of the query.
  3. Canonical ordering: filter queries, participants and facets are
     sorted so that semantically identical requests yield identical
     ``SolrQuery`` objects (and therefore identical cache fingerprints).
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from mailsearch.config.settings import QuerySettings
from mailsearch.exceptions import InvalidRequest
from mailsearch.models.document import FIELD_BCC, FIELD_CC, FIELD_FROM, FIELD_ID, FIELD_SENT_AT, FIELD_TO
from mailsearch.models.query import FilterValue, RangeFilter, SearchRequest, SortDirection
from mailsearch.models.solr import SolrQuery

logger = logging.getLogger(__name__)

MATCH_ALL = "*:*"

# Characters with meaning in the Lucene/Solr standard query syntax.
_SPECIAL_CHARS = frozenset('\\+-!():^[]"{}~*?|&;/')

# Operators that edismax interprets even without special characters.
_OPERATOR_WORDS = frozenset({"AND", "OR", "NOT", "TO"})


def escape_query_chars(text: str) -> str:
    """Backslash-escape every Solr query-syntax character and whitespace."""
    out: list[str] = []
    for ch in text:
        if ch in _SPECIAL_CHARS or ch.isspace():
            out.append("\\")
        out.append(ch)
    return "".join(out)


def format_instant(value: datetime) -> str:
    """Render a datetime as a Solr date (ISO-8601, UTC, trailing ``Z``).

    Naive datetimes are taken to be UTC. Sub-second precision is kept to
    the millisecond, which is what Solr stores.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    value = value.astimezone(UTC)
    rendered = value.replace(microsecond=0, tzinfo=None).isoformat()
    if value.microsecond:
        rendered += f".{value.microsecond // 1000:03d}"
    return rendered + "Z"


def email_domain(email: str) -> str:
    at = email.rfind("@")
    if at == -1 or at == len(email) - 1:
        return ""
    return email[at + 1 :].lower()


def same_domain(email: str | None, firm_domain: str | None) -> bool:
    """True when ``email`` belongs to ``firm_domain`` (case-insensitive)."""
    if not email or not firm_domain:
        return False
    return email_domain(email) == firm_domain.strip().lower()


class QueryTranslator:
    """Translates search requests into canonical Solr queries.

    Args:
        settings: Field schema, pagination bounds and facet configuration.
    """

    def __init__(self, settings: QuerySettings) -> None:
        self.settings = settings
        self._filterable = frozenset(settings.filterable_fields)
        self._sortable = frozenset(settings.sortable_fields)
        self._facetable = frozenset(settings.facetable_fields)

    # ── Public API ───────────────────────────────────────────────────────

    def translate(self, request: SearchRequest) -> SolrQuery:
        """Translate a page request.

        Raises:
            InvalidRequest: On out-of-bounds pagination, an inverted time
                range, or any unknown filter, sort or facet field.
        """
        limit = self.resolve_limit(request)
        self._check_pagination(request.offset, limit)
        return self._build(request, start=request.offset, rows=limit)

    def translate_count(self, request: SearchRequest) -> SolrQuery:
        """Translate a request into a count-only query (no rows, no facets, no sort)."""
        query = self._build(request, start=0, rows=0)
        return query.without_facets().model_copy(update={"sort": ()})

    def translate_stream(self, request: SearchRequest, batch_size: int) -> SolrQuery:
        """Translate a streaming request; the caller pages with ``SolrQuery.with_page``."""
        if batch_size < 1 or batch_size > self.settings.max_limit:
            raise InvalidRequest(f"batch_size must be between 1 and {self.settings.max_limit}")
        query = self._build(request, start=0, rows=batch_size)
        return query.without_facets()

    def resolve_limit(self, request: SearchRequest) -> int:
        return request.limit if request.limit is not None else self.settings.default_limit

    # ── Validation ───────────────────────────────────────────────────────

    def _check_pagination(self, offset: int, limit: int) -> None:
        if offset < 0:
            raise InvalidRequest("offset must be >= 0")
        if limit < 1:
            raise InvalidRequest("limit must be > 0")
        if limit > self.settings.max_limit:
            raise InvalidRequest(f"limit must be <= {self.settings.max_limit}")
        if offset + limit > self.settings.max_window:
            raise InvalidRequest(f"offset + limit must be <= {self.settings.max_window}")

    @staticmethod
    def _check_time_range(request: SearchRequest) -> tuple[str, str]:
        start = format_instant(request.start_time)
        end = format_instant(request.end_time)
        if _as_utc(request.end_time) < _as_utc(request.start_time):
            raise InvalidRequest("end_time must be >= start_time")
        return start, end

    # ── Building ─────────────────────────────────────────────────────────

    def _build(self, request: SearchRequest, *, start: int, rows: int) -> SolrQuery:
        if not request.admin_firm_domain or not request.admin_firm_domain.strip():
            raise InvalidRequest("admin_firm_domain must not be blank")

        range_start, range_end = self._check_time_range(request)
        filters = [f"{FIELD_SENT_AT}:[{range_start} TO {range_end}]"]

        for field in sorted(request.filters):
            filters.append(self._field_filter(field, request.filters[field]))

        participant_fq = self._participant_filter(request.participant_emails, request.admin_firm_domain)
        if participant_fq:
            filters.append(participant_fq)

        text = self._free_text(request.query)
        return SolrQuery(
            q=text or MATCH_ALL,
            def_type="edismax" if text else None,
            qf=self.settings.query_fields if text else None,
            filters=tuple(sorted(set(filters))),
            sort=self._sort_clauses(request),
            start=start,
            rows=rows,
            facet_fields=self._facet_fields(request.facet_fields),
            facet_queries=self._facet_queries(request.facet_queries),
            facet_limit=self.settings.facet_limit,
            facet_min_count=self.settings.facet_min_count,
        )

    @staticmethod
    def _free_text(query: str | None) -> str:
        """Escape free text token by token so edismax still sees separate terms."""
        if not query or not query.strip():
            return ""
        tokens = []
        for token in query.split():
            if token in _OPERATOR_WORDS:
                token = token.lower()
            tokens.append(escape_query_chars(token))
        return " ".join(tokens)

    def _field_filter(self, field: str, value: FilterValue) -> str:
        if field not in self._filterable:
            raise InvalidRequest(f"Unknown filter field '{field}'. Allowed: {sorted(self._filterable)}")

        if isinstance(value, RangeFilter):
            if value.gte is None and value.lte is None:
                raise InvalidRequest(f"Range filter on '{field}' needs at least one bound")
            lo = "*" if value.gte is None else _range_bound(value.gte)
            hi = "*" if value.lte is None else _range_bound(value.lte)
            return f"{field}:[{lo} TO {hi}]"

        return f'{field}:"{escape_query_chars(_scalar(value))}"'

    @staticmethod
    def _participant_filter(participants: list[str], firm_domain: str) -> str | None:
        """OR together one group per participant across from/to/cc (and bcc for the firm's own domain)."""
        normalized = sorted({p.strip().lower() for p in participants if p and p.strip()})
        if not normalized:
            return None

        groups = []
        for participant in normalized:
            term = escape_query_chars(participant)
            fields = [FIELD_FROM, FIELD_TO, FIELD_CC]
            if same_domain(participant, firm_domain):
                fields.append(FIELD_BCC)
            groups.append("(" + " OR ".join(f'{f}:"{term}"' for f in fields) + ")")
        return " OR ".join(groups)

    def _sort_clauses(self, request: SearchRequest) -> tuple[str, ...]:
        if not request.sort:
            return ()

        clauses: list[str] = []
        seen: set[str] = set()
        for spec in request.sort:
            field = self.settings.sort_aliases.get(spec.field.lower(), spec.field)
            if field not in self._sortable:
                raise InvalidRequest(f"Unknown sort field '{spec.field}'. Allowed: {sorted(self._sortable)}")
            if field in seen:
                raise InvalidRequest(f"Duplicate sort field '{spec.field}'")
            seen.add(field)
            clauses.append(f"{field} {spec.direction.value}")

        # Tie-breaker keeps page boundaries stable between requests.
        if FIELD_ID not in seen:
            clauses.append(f"{FIELD_ID} {SortDirection.ASC.value}")
        return tuple(clauses)

    def _facet_fields(self, fields: list[str]) -> tuple[str, ...]:
        for field in fields:
            if field not in self._facetable:
                raise InvalidRequest(f"Unknown facet field '{field}'. Allowed: {sorted(self._facetable)}")
        return tuple(sorted(set(fields)))

    def _facet_queries(self, labels: list[str]) -> tuple[tuple[str, str], ...]:
        configured = self.settings.facet_queries
        for label in labels:
            if label not in configured:
                raise InvalidRequest(f"Unknown facet query '{label}'. Allowed: {sorted(configured)}")
        return tuple((label, configured[label]) for label in sorted(set(labels)))


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


def _scalar(value: str | int | float | bool | datetime) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return format_instant(value)
    return str(value)


def _range_bound(value: str | int | float | datetime) -> str:
    if isinstance(value, datetime):
        return format_instant(value)
    if isinstance(value, int | float) and not isinstance(value, bool):
        return str(value)
    return escape_query_chars(str(value))
