"""Health check endpoints — Service and Solr health monitoring."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from mailsearch import __version__
from mailsearch.adapters.base.adapter import AdapterHealth
from mailsearch.api.deps import get_gateway
from mailsearch.core.gateway import SearchGateway

router = APIRouter()


class HealthResponse(BaseModel):
    """Service health check response."""

    status: str = Field(description="Health status (e.g. 'healthy')")
    version: str = Field(description="mailsearch server version")
    service: str = Field(description="Service name ('mailsearch')")
    adapter: str = Field(description="Name of the upstream search adapter")
    cache_backend: str = Field(description="Active cache backend (memory or redis)")
    in_flight: int = Field(description="Upstream fetches currently in flight")


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service Health Check",
    description="Returns service health, version, and the active adapter and cache backend.",
)
async def health_check(
    gateway: SearchGateway = Depends(get_gateway),
) -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=__version__,
        service="mailsearch",
        adapter=gateway.adapter.name,
        cache_backend=gateway.cache.backend,
        in_flight=gateway.cache.in_flight,
    )


@router.get(
    "/health/solr",
    response_model=AdapterHealth,
    summary="Solr Health Check",
    description="Ping the Solr collection and report status and latency.",
)
async def solr_health(
    gateway: SearchGateway = Depends(get_gateway),
) -> AdapterHealth:
    return await gateway.adapter.health_check()
