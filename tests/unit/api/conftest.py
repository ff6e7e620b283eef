"""API test fixtures — an app wired to a gateway with a mocked Solr adapter."""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from mailsearch.adapters.base.adapter import RawResults, SearchAdapter
from mailsearch.api.app import create_app
from mailsearch.api.deps import set_gateway
from mailsearch.cache.manager import QueryCache
from mailsearch.config.settings import Settings
from mailsearch.core.gateway import SearchGateway


@pytest.fixture
def adapter(sample_solr_response: dict) -> AsyncMock:
    mock = AsyncMock(spec=SearchAdapter)
    mock.name = "solr"
    mock.execute.return_value = RawResults(payload=sample_solr_response, took_ms=3)
    return mock


@pytest.fixture
def client(settings: Settings, adapter: AsyncMock) -> Iterator[TestClient]:
    """Create a test client for the API."""
    app = create_app(settings)
    set_gateway(SearchGateway(settings, adapter=adapter, cache=QueryCache(settings.cache)))
    yield TestClient(app)
    set_gateway(None)


@pytest.fixture
def search_body() -> dict:
    return {
        "query": "invoice",
        "start_time": "2024-01-01T00:00:00Z",
        "end_time": "2024-01-31T23:59:59Z",
        "participant_emails": ["alice@firm.com"],
        "admin_firm_domain": "firm.com",
        "limit": 10,
    }
