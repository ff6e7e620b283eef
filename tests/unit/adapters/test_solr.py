"""Tests for the Apache Solr adapter."""

from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest

from mailsearch.adapters.base.exceptions import DocumentNotFoundError, UpstreamRejected, UpstreamUnavailable
from mailsearch.adapters.solr.adapter import SolrAdapter
from mailsearch.config.settings import SolrSettings
from mailsearch.models.solr import SolrQuery

# ── Fixtures ──────────────────────────────────────────────────────────────────


@pytest.fixture
def adapter() -> SolrAdapter:
    return SolrAdapter(
        base_url="http://localhost:8983/solr/",
        collection="test_emails",
        max_retries=2,
        backoff_base=0,
    )


@pytest.fixture
def mock_client(adapter: SolrAdapter) -> AsyncMock:
    client = AsyncMock(spec=httpx.AsyncClient)
    adapter._client = client
    return client


@pytest.fixture
def query() -> SolrQuery:
    return SolrQuery(q="invoice", def_type="edismax", qf="subject^2 body", filters=("sent_at:[* TO *]",), rows=10)


def solr_error(status_code: int, msg: str) -> httpx.Response:
    return httpx.Response(status_code, json={"error": {"msg": msg, "code": status_code}})


# ── Properties ───────────────────────────────────────────────────────────────


class TestSolrProperties:
    def test_name(self, adapter: SolrAdapter) -> None:
        assert adapter.name == "solr"

    def test_default_values(self) -> None:
        a = SolrAdapter()
        assert a._base_url == "http://localhost:8983/solr"
        assert a.collection == "emails"

    def test_trailing_slash_stripped(self, adapter: SolrAdapter) -> None:
        assert adapter._base_url == "http://localhost:8983/solr"

    def test_from_settings(self) -> None:
        a = SolrAdapter.from_settings(SolrSettings(collection="archive", timeout=2.5, max_retries=1))
        assert a.collection == "archive"
        assert a._timeout == 2.5
        assert a._max_retries == 1

    def test_backoff_is_exponential_and_capped(self) -> None:
        a = SolrAdapter(backoff_base=0.2, backoff_max=1.0)
        assert a._backoff_delay(0) == pytest.approx(0.2)
        assert a._backoff_delay(1) == pytest.approx(0.4)
        assert a._backoff_delay(5) == pytest.approx(1.0)


# ── Execute ──────────────────────────────────────────────────────────────────


class TestSolrExecute:
    async def test_not_initialized_raises(self, adapter: SolrAdapter, query: SolrQuery) -> None:
        with pytest.raises(UpstreamUnavailable, match="not initialized"):
            await adapter.execute(query)

    async def test_returns_payload(
        self, adapter: SolrAdapter, mock_client: AsyncMock, query: SolrQuery, sample_solr_response: dict
    ) -> None:
        mock_client.request.return_value = httpx.Response(200, json=sample_solr_response)

        raw = await adapter.execute(query)
        assert raw.payload["response"]["numFound"] == 1
        assert raw.attempts == 1
        assert not raw.facets_dropped

        method, path = mock_client.request.await_args.args
        assert (method, path) == ("POST", "/test_emails/select")
        body = mock_client.request.await_args.kwargs["json"]
        assert body["query"] == "invoice"
        assert body["filter"] == ["sent_at:[* TO *]"]
        assert body["limit"] == 10
        assert body["params"]["defType"] == "edismax"

    async def test_retries_transient_status_then_succeeds(
        self, adapter: SolrAdapter, mock_client: AsyncMock, query: SolrQuery, sample_solr_response: dict
    ) -> None:
        mock_client.request.side_effect = [
            solr_error(503, "Service Unavailable"),
            httpx.Response(200, json=sample_solr_response),
        ]

        raw = await adapter.execute(query)
        assert raw.attempts == 2
        assert mock_client.request.await_count == 2

    async def test_retries_transport_error(
        self, adapter: SolrAdapter, mock_client: AsyncMock, query: SolrQuery, sample_solr_response: dict
    ) -> None:
        mock_client.request.side_effect = [
            httpx.ConnectError("Connection refused"),
            httpx.ReadTimeout("read timed out"),
            httpx.Response(200, json=sample_solr_response),
        ]

        raw = await adapter.execute(query)
        assert raw.attempts == 3

    async def test_retries_exhausted(self, adapter: SolrAdapter, mock_client: AsyncMock, query: SolrQuery) -> None:
        mock_client.request.side_effect = httpx.ConnectError("Connection refused")

        with pytest.raises(UpstreamUnavailable, match="after 3 attempts") as exc_info:
            await adapter.execute(query)
        assert exc_info.value.attempts == 3
        assert mock_client.request.await_count == 3

    async def test_call_timeout_is_retried(self, mock_client: AsyncMock, query: SolrQuery) -> None:
        adapter = SolrAdapter(timeout=0.01, max_retries=1, backoff_base=0)
        adapter._client = mock_client

        async def hang(*args: Any, **kwargs: Any) -> httpx.Response:
            await asyncio.sleep(1)
            return httpx.Response(200, json={})

        mock_client.request.side_effect = hang

        with pytest.raises(UpstreamUnavailable, match="timed out"):
            await adapter.execute(query)
        assert mock_client.request.await_count == 2

    async def test_client_error_not_retried(
        self, adapter: SolrAdapter, mock_client: AsyncMock, query: SolrQuery
    ) -> None:
        mock_client.request.return_value = solr_error(400, "undefined field: foo")

        with pytest.raises(UpstreamRejected, match="undefined field: foo") as exc_info:
            await adapter.execute(query)
        assert exc_info.value.status_code == 400
        assert exc_info.value.is_client_error
        assert mock_client.request.await_count == 1

    async def test_facet_rejection_retried_without_facets(
        self, adapter: SolrAdapter, mock_client: AsyncMock, query: SolrQuery, sample_solr_response: dict
    ) -> None:
        faceted = query.model_copy(update={"facet_fields": ("from_addr",)})
        mock_client.request.side_effect = [
            solr_error(400, "can not use FieldCache on a field which is neither indexed nor has doc values"),
            httpx.Response(200, json=sample_solr_response),
        ]

        raw = await adapter.execute(faceted)
        assert raw.facets_dropped
        first, second = (c.kwargs["json"] for c in mock_client.request.await_args_list)
        assert first["params"]["facet"] == "true"
        assert "facet" not in second["params"]

    async def test_non_json_body(self, adapter: SolrAdapter, mock_client: AsyncMock, query: SolrQuery) -> None:
        mock_client.request.return_value = httpx.Response(200, text="<html>proxy page</html>")

        with pytest.raises(UpstreamRejected, match="non-JSON"):
            await adapter.execute(query)


# ── Fetch Document ───────────────────────────────────────────────────────────


class TestSolrFetchDocument:
    async def test_fetch_not_found(self, adapter: SolrAdapter, mock_client: AsyncMock) -> None:
        mock_client.request.return_value = httpx.Response(200, json={"doc": None})

        with pytest.raises(DocumentNotFoundError):
            await adapter.fetch_document("nonexistent")

    async def test_fetch_returns_doc(self, adapter: SolrAdapter, mock_client: AsyncMock) -> None:
        mock_client.request.return_value = httpx.Response(200, json={"doc": {"id": "d1", "subject": "Test"}})

        doc = await adapter.fetch_document("d1")
        assert doc["id"] == "d1"
        assert mock_client.request.await_args.kwargs["params"] == {"id": "d1"}


# ── Health ───────────────────────────────────────────────────────────────────


class TestSolrHealth:
    async def test_health_not_initialized(self, adapter: SolrAdapter) -> None:
        health = await adapter.health_check()
        assert health.status == "unhealthy"

    async def test_health_ok(self, adapter: SolrAdapter, mock_client: AsyncMock) -> None:
        mock_client.get.return_value = httpx.Response(200, json={"status": "OK"})

        health = await adapter.health_check()
        assert health.status == "healthy"
        assert "test_emails" in (health.message or "")

    async def test_health_degraded_status(self, adapter: SolrAdapter, mock_client: AsyncMock) -> None:
        mock_client.get.return_value = httpx.Response(503, text="down")

        health = await adapter.health_check()
        assert health.status == "degraded"

    async def test_health_exception(self, adapter: SolrAdapter, mock_client: AsyncMock) -> None:
        mock_client.get.side_effect = RuntimeError("Connection refused")

        health = await adapter.health_check()
        assert health.status == "unhealthy"
