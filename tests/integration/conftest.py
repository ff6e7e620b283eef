"""Integration test fixtures — a Docker-based Solr collection seeded with mock emails.

Expects Solr to be running with an ``emails`` collection, e.g.:
    docker run -d -p 8983:8983 solr:9 solr-precreate emails

Seed data is automatically loaded on first use. Tests are skipped when
Solr is not reachable.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import time
from typing import Any

import httpx
import pytest

SOLR_URL = os.environ.get("MAILSEARCH_TEST_SOLR_URL", "http://localhost:8983/solr")
SOLR_COLLECTION = os.environ.get("MAILSEARCH_TEST_SOLR_COLLECTION", "emails")

MOCK_EMAILS: list[dict[str, Any]] = [
    {
        "id": "email-001",
        "subject": "Invoice for January",
        "body": "Please find the January invoice attached. Payment is due within 30 days.",
        "from_addr": "alice@firm.com",
        "to_addr": ["bob@client.com"],
        "cc_addr": ["dave@firm.com"],
        "sent_at": "2024-01-15T09:30:00Z",
    },
    {
        "id": "email-002",
        "subject": "Re: Invoice for January",
        "body": "Thanks, the invoice has been forwarded to accounts payable.",
        "from_addr": "bob@client.com",
        "to_addr": ["alice@firm.com"],
        "sent_at": "2024-01-16T11:00:00Z",
    },
    {
        "id": "email-003",
        "subject": "Quarterly board meeting",
        "body": "Agenda for the quarterly board meeting is attached.",
        "from_addr": "erin@firm.com",
        "to_addr": ["frank@firm.com"],
        "bcc_addr": ["alice@firm.com"],
        "sent_at": "2024-01-20T15:45:00Z",
    },
    {
        "id": "email-004",
        "subject": "Lunch on Friday?",
        "body": "Are you free for lunch on Friday?",
        "from_addr": "carol@client.com",
        "to_addr": ["bob@client.com"],
        "bcc_addr": ["grace@other.com"],
        "sent_at": "2024-01-22T12:00:00Z",
    },
    {
        "id": "email-005",
        "subject": "Invoice for February",
        "body": "The February invoice is attached.",
        "from_addr": "alice@firm.com",
        "to_addr": ["bob@client.com"],
        "sent_at": "2024-02-15T09:30:00Z",
    },
]


def _wait_for_service(url: str, timeout: float = 10.0) -> bool:
    """Block until *url* returns HTTP 200, or timeout."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            r = httpx.get(url, timeout=5)
            if r.status_code == 200:
                return True
        except httpx.HTTPError:
            pass
        time.sleep(2)
    return False


async def _seed_solr(host: str = SOLR_URL, collection: str = SOLR_COLLECTION) -> None:
    async with httpx.AsyncClient(base_url=host, timeout=30) as client:
        # Add fields to schema (Solr needs explicit schema for non-dynamic fields)
        for field in [
            {"name": "subject", "type": "text_general", "stored": True, "multiValued": False},
            {"name": "body", "type": "text_general", "stored": True, "multiValued": False},
            {"name": "from_addr", "type": "string", "stored": True},
            {"name": "to_addr", "type": "strings", "stored": True},
            {"name": "cc_addr", "type": "strings", "stored": True},
            {"name": "bcc_addr", "type": "strings", "stored": True},
            {"name": "sent_at", "type": "pdate", "stored": True},
        ]:
            with contextlib.suppress(httpx.HTTPError):
                await client.post(
                    f"/{collection}/schema",
                    json={"add-field": field},
                )

        # Delete all existing docs
        await client.post(
            f"/{collection}/update",
            json={"delete": {"query": "*:*"}},
            params={"commit": "true"},
        )

        resp = await client.post(
            f"/{collection}/update",
            json=MOCK_EMAILS,
            params={"commit": "true"},
        )
        resp.raise_for_status()


@pytest.fixture(scope="session")
def solr_ready() -> str:
    """Ensure Solr is running and seeded."""
    if not _wait_for_service(f"{SOLR_URL}/{SOLR_COLLECTION}/admin/ping"):
        pytest.skip(f"Solr not available at {SOLR_URL}")
    asyncio.run(_seed_solr())
    return SOLR_URL


@pytest.fixture(scope="session")
def solr_collection() -> str:
    return SOLR_COLLECTION
