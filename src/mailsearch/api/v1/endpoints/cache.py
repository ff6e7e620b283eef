"""Cache endpoints — explicit invalidation of cached search results."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from mailsearch.api.deps import get_gateway
from mailsearch.core.gateway import SearchGateway
from mailsearch.models.query import SearchRequest

router = APIRouter(prefix="/cache")


class InvalidateResponse(BaseModel):
    """Result of a cache invalidation."""

    invalidated: str = Field(description="Fingerprint removed from the cache, or 'all'")


@router.delete("", response_model=InvalidateResponse, summary="Clear the query cache")
async def clear_cache(gateway: SearchGateway = Depends(get_gateway)) -> InvalidateResponse:
    await gateway.clear_cache()
    return InvalidateResponse(invalidated="all")


@router.post(
    "/invalidate",
    response_model=InvalidateResponse,
    summary="Invalidate one cached search",
    description="Drop the cached page for exactly this search request.",
)
async def invalidate(
    request: SearchRequest,
    gateway: SearchGateway = Depends(get_gateway),
) -> InvalidateResponse:
    return InvalidateResponse(invalidated=await gateway.invalidate(request))
