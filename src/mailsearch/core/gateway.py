"""Search Gateway — Core orchestrator for email search requests.

The gateway manages the full request lifecycle:
  1. Translation: SearchRequest → canonical SolrQuery (QueryTranslator)
  2. Cache check: fingerprint lookup with single-flight (QueryCache)
  3. Upstream call on miss: SolrQuery → raw payload (SearchAdapter)
  4. Mapping: raw payload → SearchResult (ResultMapper), stored in cache
  5. Response assembly

Supports two output modes:
  - **Page** (``search``) — Returns a single ``SearchResponse``.
  - **Streaming** (``search_stream``) — Yields every matching
    ``EmailDocument`` page by page, bypassing the cache.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

from mailsearch.cache.manager import QueryCache
from mailsearch.core.mapper import ResultMapper
from mailsearch.core.translator import QueryTranslator
from mailsearch.models.document import EmailDocument
from mailsearch.models.query import SearchRequest
from mailsearch.models.response import SearchResponse
from mailsearch.models.result import SearchResult
from mailsearch.models.solr import SolrQuery

if TYPE_CHECKING:
    from mailsearch.adapters.base.adapter import SearchAdapter
    from mailsearch.config.settings import Settings

logger = logging.getLogger(__name__)


class SearchGateway:
    """Core orchestrator for email search.

    Pipeline:
      SearchRequest → [Translator] → SolrQuery
                    → [Cache] hit → SearchResult
                    → [Cache] miss → [Adapter] → raw payload → [Mapper] → SearchResult → [Cache] store
                    → SearchResponse

    All collaborators are passed in explicitly; translator and mapper are
    built from settings when omitted.

    Attributes:
        settings: Application configuration.
        adapter: Upstream search adapter.
        cache: Query cache.
        translator: Request translator.
        mapper: Payload mapper.
    """

    def __init__(
        self,
        settings: Settings,
        adapter: SearchAdapter,
        cache: QueryCache,
        translator: QueryTranslator | None = None,
        mapper: ResultMapper | None = None,
    ) -> None:
        self.settings = settings
        self.adapter = adapter
        self.cache = cache
        self.translator = translator or QueryTranslator(settings.query)
        self.mapper = mapper or ResultMapper()

    async def initialize(self) -> None:
        """Initialize the cache and the upstream adapter.

        Raises:
            UpstreamUnavailable: If the adapter cannot reach its backend. The
                gateway stays usable and later requests retry the backend.
        """
        await self.cache.initialize()
        await self.adapter.initialize()
        logger.info("Search gateway initialized (adapter=%s, cache=%s)", self.adapter.name, self.cache.backend)

    async def shutdown(self) -> None:
        """Gracefully shut down all components."""
        await self.adapter.shutdown()
        await self.cache.shutdown()
        logger.info("Search gateway shut down")

    # ──────────────────────────────────────────────────────────────────────
    # Page mode
    # ──────────────────────────────────────────────────────────────────────

    async def search(self, request: SearchRequest) -> SearchResponse:
        """Search one page of emails, serving repeated queries from cache.

        Raises:
            InvalidRequest: If the request fails validation.
            UpstreamUnavailable: If Solr stays unreachable through all retries.
            UpstreamRejected: If Solr refuses the query.
        """
        start_time = time.monotonic()
        query = self.translator.translate(request)
        result, cached = await self.lookup(query)
        processing_time_ms = int((time.monotonic() - start_time) * 1000)

        logger.info(
            "Search complete: %d/%d emails (offset=%d, cached=%s) in %d ms",
            len(result.emails),
            result.total_count,
            result.offset,
            cached,
            processing_time_ms,
        )
        return SearchResponse.from_result(result, cached=cached, processing_time_ms=processing_time_ms)

    async def count(self, request: SearchRequest) -> int:
        """Return the number of emails matching ``request`` without fetching them."""
        query = self.translator.translate_count(request)
        result, _ = await self.lookup(query)
        return result.total_count

    async def lookup(self, query: SolrQuery) -> tuple[SearchResult, bool]:
        """Resolve a translated query through the cache.

        Returns:
            ``(result, from_cache)``.
        """
        fingerprint = query.fingerprint()
        return await self.cache.get_or_fetch(fingerprint, lambda: self._fetch(query))

    async def _fetch(self, query: SolrQuery) -> SearchResult:
        raw = await self.adapter.execute(query)
        result = self.mapper.map(raw.payload, query)
        logger.debug(
            "Fetched %d docs from %s in %d ms (attempts=%d, facets_dropped=%s)",
            len(result.emails),
            self.adapter.name,
            raw.took_ms,
            raw.attempts,
            raw.facets_dropped,
        )
        return result

    async def invalidate(self, request: SearchRequest) -> str:
        """Drop the cached page for ``request``.

        Returns:
            The fingerprint that was invalidated.
        """
        fingerprint = self.translator.translate(request).fingerprint()
        await self.cache.invalidate(fingerprint)
        return fingerprint

    async def clear_cache(self) -> None:
        await self.cache.clear()
        logger.info("Query cache cleared")

    async def fetch_document(self, doc_id: str) -> EmailDocument:
        """Fetch one email by id, bypassing the cache.

        Raises:
            DocumentNotFoundError: If no such document exists.
            PartialMapping: If the stored document cannot be mapped.
        """
        raw: dict[str, Any] = await self.adapter.fetch_document(doc_id)
        return self.mapper.map_document(raw)

    # ──────────────────────────────────────────────────────────────────────
    # Streaming mode
    # ──────────────────────────────────────────────────────────────────────

    async def search_stream(self, request: SearchRequest, batch_size: int | None = None) -> AsyncIterator[EmailDocument]:
        """Yield every email matching ``request``, fetched in pages of ``batch_size``.

        The total is counted once up front; pages are then requested in
        order. Results are not cached.

        Args:
            request: The search request; its offset and limit are ignored.
            batch_size: Documents per upstream page (defaults to settings).

        Yields:
            EmailDocument instances in Solr order.
        """
        batch_size = batch_size or self.settings.query.stream_batch_size
        base = self.translator.translate_stream(request, batch_size)

        count_query = self.translator.translate_count(request)
        total = self.mapper.map((await self.adapter.execute(count_query)).payload, count_query).total_count
        logger.info("Streaming %d emails in batches of %d", total, batch_size)

        for start in range(0, total, batch_size):
            page = base.with_page(start, batch_size)
            result = await self._fetch(page)
            for email in result.emails:
                yield email
