"""Tests for the search gateway orchestration."""

from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import AsyncMock

import pytest

from mailsearch.adapters.base.adapter import RawResults, SearchAdapter
from mailsearch.adapters.base.exceptions import UpstreamUnavailable
from mailsearch.cache.manager import QueryCache
from mailsearch.config.settings import Settings
from mailsearch.core.gateway import SearchGateway
from mailsearch.exceptions import InvalidRequest
from mailsearch.models.query import SearchRequest, StreamSearchRequest
from mailsearch.models.solr import SolrQuery


def solr_payload(ids: list[str], num_found: int | None = None) -> dict[str, Any]:
    return {
        "responseHeader": {"status": 0, "QTime": 1},
        "response": {
            "numFound": len(ids) if num_found is None else num_found,
            "docs": [{"id": i, "subject": f"Subject {i}", "sent_at": "2024-01-15T09:30:00Z"} for i in ids],
        },
    }


@pytest.fixture
def adapter(sample_solr_response: dict) -> AsyncMock:
    mock = AsyncMock(spec=SearchAdapter)
    mock.name = "solr"
    mock.execute.return_value = RawResults(payload=sample_solr_response, took_ms=3)
    return mock


@pytest.fixture
def gateway(settings: Settings, adapter: AsyncMock) -> SearchGateway:
    return SearchGateway(settings, adapter=adapter, cache=QueryCache(settings.cache))


class TestSearch:
    async def test_search_maps_results(self, gateway: SearchGateway, sample_request: SearchRequest) -> None:
        response = await gateway.search(sample_request)
        assert response.total_count == 1
        assert response.emails[0].id == "email-001"
        assert response.limit == 10
        assert response.total_pages == 1
        assert not response.cached

    async def test_repeated_search_served_from_cache(
        self, gateway: SearchGateway, adapter: AsyncMock, sample_request: SearchRequest
    ) -> None:
        first = await gateway.search(sample_request)
        second = await gateway.search(sample_request)
        assert adapter.execute.await_count == 1
        assert not first.cached
        assert second.cached
        assert second.emails == first.emails

    async def test_concurrent_identical_searches_one_upstream_call(
        self, gateway: SearchGateway, adapter: AsyncMock, sample_request: SearchRequest, sample_solr_response: dict
    ) -> None:
        gate = asyncio.Event()

        async def slow_execute(query: SolrQuery) -> RawResults:
            await gate.wait()
            return RawResults(payload=sample_solr_response)

        adapter.execute.side_effect = slow_execute

        tasks = [asyncio.create_task(gateway.search(sample_request)) for _ in range(10)]
        await asyncio.sleep(0)
        gate.set()
        responses = await asyncio.gather(*tasks)

        assert adapter.execute.await_count == 1
        assert {r.total_count for r in responses} == {1}

    async def test_invalid_request_never_reaches_upstream(self, gateway: SearchGateway, adapter: AsyncMock) -> None:
        request = SearchRequest(
            start_time="2024-02-01T00:00:00Z",
            end_time="2024-01-01T00:00:00Z",
            admin_firm_domain="firm.com",
        )
        with pytest.raises(InvalidRequest):
            await gateway.search(request)
        adapter.execute.assert_not_awaited()

    async def test_upstream_failure_not_cached(
        self, gateway: SearchGateway, adapter: AsyncMock, sample_request: SearchRequest, sample_solr_response: dict
    ) -> None:
        adapter.execute.side_effect = [
            UpstreamUnavailable("Solr down", attempts=4),
            RawResults(payload=sample_solr_response),
        ]
        with pytest.raises(UpstreamUnavailable):
            await gateway.search(sample_request)

        response = await gateway.search(sample_request)
        assert response.total_count == 1
        assert not response.cached

    async def test_invalidate_forces_refetch(
        self, gateway: SearchGateway, adapter: AsyncMock, sample_request: SearchRequest
    ) -> None:
        await gateway.search(sample_request)
        fingerprint = await gateway.invalidate(sample_request)
        assert len(fingerprint) == 64

        response = await gateway.search(sample_request)
        assert not response.cached
        assert adapter.execute.await_count == 2

    async def test_clear_cache(self, gateway: SearchGateway, adapter: AsyncMock, sample_request: SearchRequest) -> None:
        await gateway.search(sample_request)
        await gateway.clear_cache()
        await gateway.search(sample_request)
        assert adapter.execute.await_count == 2


class TestCount:
    async def test_count(self, gateway: SearchGateway, adapter: AsyncMock, sample_request: SearchRequest) -> None:
        adapter.execute.return_value = RawResults(payload=solr_payload([], num_found=42))

        assert await gateway.count(sample_request) == 42
        query: SolrQuery = adapter.execute.await_args.args[0]
        assert query.rows == 0
        assert not query.has_facets


class TestStream:
    async def test_stream_pages_through_all_results(
        self, gateway: SearchGateway, adapter: AsyncMock, sample_request: SearchRequest
    ) -> None:
        ids = [f"e{i}" for i in range(5)]

        async def execute(query: SolrQuery) -> RawResults:
            if query.rows == 0:
                return RawResults(payload=solr_payload([], num_found=len(ids)))
            return RawResults(payload=solr_payload(ids[query.start : query.start + query.rows], num_found=len(ids)))

        adapter.execute.side_effect = execute
        request = StreamSearchRequest(**sample_request.model_dump())

        emails = [email async for email in gateway.search_stream(request, batch_size=2)]

        assert [e.id for e in emails] == ids
        starts = [c.args[0].start for c in adapter.execute.await_args_list if c.args[0].rows]
        assert starts == [0, 2, 4]

    async def test_stream_empty(self, gateway: SearchGateway, adapter: AsyncMock, sample_request: SearchRequest) -> None:
        adapter.execute.return_value = RawResults(payload=solr_payload([]))
        emails = [email async for email in gateway.search_stream(sample_request)]
        assert emails == []
        assert adapter.execute.await_count == 1


class TestFetchDocument:
    async def test_fetch_document(self, gateway: SearchGateway, adapter: AsyncMock, sample_solr_doc: dict) -> None:
        adapter.fetch_document.return_value = sample_solr_doc
        email = await gateway.fetch_document("email-001")
        assert email.subject == "Invoice for January"
