"""Shared test fixtures and configuration."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest

from mailsearch.config.settings import Settings
from mailsearch.models.query import SearchRequest


@pytest.fixture
def settings() -> Settings:
    """Create a test Settings instance with defaults."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        debug=True,
        query={"facet_queries": {"has_attachments": "has_attachment:true"}},
        observability={"log_format": "console"},
    )


@pytest.fixture
def sample_request() -> SearchRequest:
    """Create a sample search request for testing."""
    return SearchRequest(
        query="invoice",
        start_time=datetime(2024, 1, 1, tzinfo=UTC),
        end_time=datetime(2024, 1, 31, 23, 59, 59, tzinfo=UTC),
        participant_emails=["alice@firm.com"],
        admin_firm_domain="firm.com",
        limit=10,
    )


@pytest.fixture
def sample_solr_doc() -> dict[str, Any]:
    """Sample Solr document from a /select response."""
    return {
        "id": "email-001",
        "subject": ["Invoice for January"],
        "body": "Please find the invoice attached.",
        "from_addr": "alice@firm.com",
        "to_addr": ["bob@client.com", "carol@client.com"],
        "cc_addr": "dave@firm.com",
        "sent_at": "2024-01-15T09:30:00Z",
        "score": 4.2,
    }


@pytest.fixture
def sample_solr_response(sample_solr_doc: dict) -> dict[str, Any]:
    """Sample Solr JSON response from /select."""
    return {
        "responseHeader": {"status": 0, "QTime": 3},
        "response": {
            "numFound": 1,
            "start": 0,
            "docs": [sample_solr_doc],
        },
    }
