"""Apache Solr adapter — Email search via Solr's JSON Request API.

Connects to Apache Solr (v8+) using ``httpx`` (async) over the standard
JSON Request API, with a bounded timeout per call and a retry policy for
transient failures.

Usage::

    adapter = SolrAdapter(
        base_url="http://localhost:8983/solr",
        collection="emails",
    )
    await adapter.initialize()
    raw = await adapter.execute(solr_query)
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import httpx

from mailsearch.adapters.base.adapter import AdapterHealth, RawResults, SearchAdapter
from mailsearch.adapters.base.exceptions import (
    DocumentNotFoundError,
    UpstreamRejected,
    UpstreamUnavailable,
)
from mailsearch.models.solr import SolrQuery

if TYPE_CHECKING:
    from mailsearch.config.settings import SolrSettings

logger = logging.getLogger(__name__)

# Statuses worth retrying: the request may succeed unchanged a moment later.
RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class SolrAdapter(SearchAdapter):
    """Search adapter for Apache Solr (v8+).

    Communicates with Solr via its `JSON Request API`_ over HTTP.

    .. _JSON Request API: https://solr.apache.org/guide/solr/latest/query-guide/json-request-api.html

    Retry policy: transport errors, timeouts and HTTP 408/429/5xx are
    retried up to ``max_retries`` times with exponential backoff
    (``backoff_base * 2**attempt``, capped at ``backoff_max``). Any other
    error response is a rejection and is raised immediately.

    Args:
        base_url: Solr base URL, e.g. ``"http://localhost:8983/solr"``.
        collection: Solr collection/core name.
        username: Optional basic-auth username.
        password: Optional basic-auth password.
        timeout: Upper bound in seconds on one upstream call.
        max_retries: Retries after the first attempt for transient failures.
        backoff_base: Delay before the first retry, in seconds.
        backoff_max: Upper bound on any single retry delay, in seconds.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8983/solr",
        collection: str = "emails",
        username: str | None = None,
        password: str | None = None,
        timeout: float = 10.0,
        max_retries: int = 3,
        backoff_base: float = 0.2,
        backoff_max: float = 5.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._collection = collection.strip("/")
        self._username = username
        self._password = password
        self._timeout = timeout
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._backoff_max = backoff_max
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: SolrSettings) -> SolrAdapter:
        return cls(
            base_url=settings.base_url,
            collection=settings.collection,
            username=settings.username,
            password=settings.password,
            timeout=settings.timeout,
            max_retries=settings.max_retries,
            backoff_base=settings.backoff_base,
            backoff_max=settings.backoff_max,
        )

    @property
    def name(self) -> str:
        return "solr"

    @property
    def collection(self) -> str:
        return self._collection

    async def initialize(self) -> None:
        """Create an ``httpx.AsyncClient`` and ping the Solr collection.

        The client is kept even if the ping fails, so requests can succeed
        once Solr becomes reachable.

        Raises:
            UpstreamUnavailable: If the ping fails.
        """
        auth = None
        if self._username and self._password:
            auth = httpx.BasicAuth(self._username, self._password)

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout),
            auth=auth,
        )

        try:
            resp = await self._client.get(f"/{self._collection}/admin/ping")
            resp.raise_for_status()
            logger.info(
                "Connected to Solr collection '%s' at %s",
                self._collection,
                self._base_url,
            )
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"Failed to connect to Solr: {e}") from e

    async def shutdown(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    # ── Search ───────────────────────────────────────────────────────────

    async def execute(self, query: SolrQuery) -> RawResults:
        """Execute a query against ``/select``.

        If Solr rejects a faceted query as a client error (typically an
        undefined facet field), the query is retried once without facets.
        """
        try:
            return await self._select(query)
        except UpstreamRejected as e:
            if not (query.has_facets and e.is_client_error):
                raise
            logger.warning("Faceted query rejected, retrying without facets: %s", e.message)
            raw = await self._select(query.without_facets())
            return raw.model_copy(update={"facets_dropped": True})

    async def _select(self, query: SolrQuery) -> RawResults:
        start = time.monotonic()
        resp, attempts = await self._request_with_retry(
            "POST",
            f"/{self._collection}/select",
            json=query.to_request_body(),
        )
        took_ms = int((time.monotonic() - start) * 1000)
        return RawResults(payload=self._json(resp), took_ms=took_ms, attempts=attempts)

    async def fetch_document(self, doc_id: str) -> dict[str, Any]:
        """Retrieve a single document from Solr by its ``id`` field (real-time get)."""
        resp, _ = await self._request_with_retry(
            "GET",
            f"/{self._collection}/get",
            params={"id": doc_id},
        )
        doc = self._json(resp).get("doc")
        if doc is None:
            raise DocumentNotFoundError(f"Document '{doc_id}' not found.")
        return dict(doc)

    # ── Retry policy ─────────────────────────────────────────────────────

    async def _request_with_retry(self, method: str, path: str, **kwargs: Any) -> tuple[httpx.Response, int]:
        """Send a request, retrying transient failures.

        Returns:
            The successful response and the number of attempts made.
        """
        client = self._require_client()
        attempts = self._max_retries + 1
        last_error = ""

        for attempt in range(attempts):
            try:
                async with asyncio.timeout(self._timeout):
                    resp = await client.request(method, path, **kwargs)
            except TimeoutError:
                last_error = f"timed out after {self._timeout:.1f}s"
            except httpx.TransportError as e:
                last_error = f"{type(e).__name__}: {e}"
            else:
                if resp.status_code in RETRYABLE_STATUS_CODES:
                    last_error = f"HTTP {resp.status_code}: {self._error_message(resp)}"
                elif resp.is_error:
                    raise UpstreamRejected(
                        f"Solr rejected the query (HTTP {resp.status_code}): {self._error_message(resp)}",
                        status_code=resp.status_code,
                    )
                else:
                    return resp, attempt + 1

            if attempt + 1 < attempts:
                delay = self._backoff_delay(attempt)
                logger.warning(
                    "Solr %s %s failed (attempt %d/%d): %s; retrying in %.2fs",
                    method,
                    path,
                    attempt + 1,
                    attempts,
                    last_error,
                    delay,
                )
                await asyncio.sleep(delay)

        logger.error("Solr %s %s failed after %d attempts: %s", method, path, attempts, last_error)
        raise UpstreamUnavailable(
            f"Solr unavailable after {attempts} attempts: {last_error}",
            attempts=attempts,
        )

    def _backoff_delay(self, attempt: int) -> float:
        return min(self._backoff_max, self._backoff_base * (2**attempt))

    # ── Health ───────────────────────────────────────────────────────────

    async def health_check(self) -> AdapterHealth:
        """Ping the Solr admin endpoint."""
        if not self._client:
            return AdapterHealth(status="unhealthy", message="Client not initialized")

        try:
            start = time.monotonic()
            resp = await self._client.get(f"/{self._collection}/admin/ping")
            latency_ms = int((time.monotonic() - start) * 1000)

            if resp.status_code == 200:
                data = resp.json()
                solr_status = data.get("status", "unknown")
                return AdapterHealth(
                    status="healthy" if solr_status == "OK" else "degraded",
                    latency_ms=latency_ms,
                    last_check=datetime.now(UTC).isoformat(),
                    message=f"Collection: {self._collection}, status: {solr_status}",
                )
            return AdapterHealth(
                status="degraded",
                latency_ms=latency_ms,
                last_check=datetime.now(UTC).isoformat(),
                message=f"Solr returned HTTP {resp.status_code}",
            )
        except Exception as e:
            return AdapterHealth(status="unhealthy", message=str(e))

    # ── Helpers ──────────────────────────────────────────────────────────

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise UpstreamUnavailable("Solr client not initialized.")
        return self._client

    @staticmethod
    def _json(resp: httpx.Response) -> dict[str, Any]:
        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamRejected(f"Solr returned a non-JSON body: {e}") from e
        if not isinstance(data, dict):
            raise UpstreamRejected("Solr returned an unexpected JSON document")
        return data

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        """Extract Solr's ``error.msg`` if present, else a trimmed body."""
        try:
            data = resp.json()
        except ValueError:
            return resp.text[:200]
        if isinstance(data, dict):
            error = data.get("error")
            if isinstance(error, dict) and error.get("msg"):
                return str(error["msg"])
        return resp.text[:200]
