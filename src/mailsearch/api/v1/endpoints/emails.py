"""Email endpoints — paged search, hit count, streaming export, and lookup by id.

Supports two output modes:

- **Page** (``POST /emails/search``) — One page of results as JSON, served
  from the query cache when the same query was answered recently.
- **Streaming** (``POST /emails/stream``) — Server-Sent Events (SSE); every
  matching email is emitted as its own event, for large exports.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from mailsearch.api.deps import get_gateway
from mailsearch.core.gateway import SearchGateway
from mailsearch.models.document import EmailDocument
from mailsearch.models.query import SearchRequest, StreamSearchRequest
from mailsearch.models.response import ErrorResponse, HitCountResponse, SearchResponse, StreamEvent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/emails")

_ERROR_RESPONSES: dict[int | str, dict] = {
    400: {"model": ErrorResponse, "description": "Invalid search parameters or query rejected by Solr"},
    502: {"model": ErrorResponse, "description": "Solr failed to process the query"},
    503: {"model": ErrorResponse, "description": "Solr unavailable after retries"},
}


@router.post(
    "/search",
    response_model=SearchResponse,
    summary="Search emails with pagination",
    description=(
        "Search for emails in a time range, optionally narrowed by participants, field filters "
        "and free text. BCC recipients are only searched for participants in the admin's firm "
        "domain. Repeated identical searches are served from the query cache."
    ),
    responses=_ERROR_RESPONSES,
)
async def search_emails(
    request: SearchRequest,
    gateway: SearchGateway = Depends(get_gateway),
) -> SearchResponse:
    return await gateway.search(request)


@router.post(
    "/count",
    response_model=HitCountResponse,
    summary="Get hit count",
    description="Count the emails matching the search criteria without returning them.",
    responses=_ERROR_RESPONSES,
)
async def count_emails(
    request: SearchRequest,
    gateway: SearchGateway = Depends(get_gateway),
) -> HitCountResponse:
    return HitCountResponse(count=await gateway.count(request))


@router.post(
    "/stream",
    summary="Stream emails",
    description=(
        "Stream every matching email as Server-Sent Events, for large exports.\n\n"
        "| Event | Emitted | Description |\n"
        "|-------|---------|-------------|\n"
        "| `email` | per email | One `EmailDocument` |\n"
        "| `done` | once | All pages fetched — contains `count` |\n"
        "| `error` | 0–1 | Unrecoverable error — contains `error` and `code` |"
    ),
    responses={200: {"content": {"text/event-stream": {}}}, **_ERROR_RESPONSES},
)
async def stream_emails(
    request: StreamSearchRequest,
    gateway: SearchGateway = Depends(get_gateway),
) -> StreamingResponse:
    batch_size = request.batch_size or gateway.settings.query.stream_batch_size
    # Validate before the response starts so bad requests still get a 400.
    gateway.translator.translate_stream(request, batch_size)

    return StreamingResponse(
        _sse_generator(gateway, request, batch_size),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get(
    "/{doc_id}",
    response_model=EmailDocument,
    summary="Get email by id",
    responses={404: {"model": ErrorResponse, "description": "No email with this id"}, **_ERROR_RESPONSES},
)
async def get_email(
    doc_id: str,
    gateway: SearchGateway = Depends(get_gateway),
) -> EmailDocument:
    return await gateway.fetch_document(doc_id)


def _sse(event: StreamEvent) -> str:
    payload = json.dumps(event.data, ensure_ascii=False, default=str)
    return f"event: {event.event}\ndata: {payload}\n\n"


async def _sse_generator(gateway: SearchGateway, request: StreamSearchRequest, batch_size: int) -> AsyncIterator[str]:
    """Async generator that yields SSE-formatted lines.

    Each event follows the SSE protocol::

        event: <event_type>
        data: <json_payload>

    """
    sent = 0
    try:
        async for email in gateway.search_stream(request, batch_size):
            sent += 1
            yield _sse(StreamEvent(event="email", data=email.model_dump(mode="json")))
        yield _sse(StreamEvent(event="done", data={"count": sent}))
    except Exception as e:
        logger.error("SSE stream error after %d emails: %s", sent, e, exc_info=True)
        yield _sse(StreamEvent(event="error", data={"error": str(e), "code": getattr(e, "code", "INTERNAL_ERROR")}))
