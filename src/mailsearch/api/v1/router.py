"""API v1 Router — Email search, cache, and health endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from mailsearch.api.v1.endpoints.cache import router as cache_router
from mailsearch.api.v1.endpoints.emails import router as emails_router
from mailsearch.api.v1.endpoints.health import router as health_router

router = APIRouter(tags=["v1"])
router.include_router(emails_router)
router.include_router(cache_router)
router.include_router(health_router)
