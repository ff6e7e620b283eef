"""FastAPI application factory and lifecycle management."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mailsearch import __version__
from mailsearch.adapters.solr.adapter import SolrAdapter
from mailsearch.api.deps import set_gateway
from mailsearch.api.errors import setup_exception_handlers
from mailsearch.api.v1.router import router as v1_router
from mailsearch.cache.manager import QueryCache
from mailsearch.config.settings import Settings
from mailsearch.core.gateway import SearchGateway
from mailsearch.exceptions import GatewayError
from mailsearch.observability.logging import setup_logging

logger = logging.getLogger(__name__)

# Set by the CLI so that uvicorn's app factory sees the same configuration.
CONFIG_ENV = "MAILSEARCH_CONFIG"
LOG_LEVEL_ENV = "MAILSEARCH_LOG_LEVEL"


def load_settings() -> Settings:
    """Load settings for the app factory.

    Uses the YAML file named by ``MAILSEARCH_CONFIG``, else
    ``./mailsearch-config.yaml`` if present, else environment variables.
    ``MAILSEARCH_LOG_LEVEL`` overrides the configured log level.
    """
    config = os.environ.get(CONFIG_ENV)
    yaml_path = Path(config) if config else Path("mailsearch-config.yaml")
    if config or yaml_path.exists():
        logger.info("Loading configuration from %s", yaml_path)
        settings = Settings.from_yaml(yaml_path)
    else:
        settings = Settings()

    log_level = os.environ.get(LOG_LEVEL_ENV)
    if log_level:
        settings.observability.log_level = log_level
    return settings


def build_gateway(settings: Settings) -> SearchGateway:
    """Construct the gateway and its collaborators from settings."""
    return SearchGateway(
        settings,
        adapter=SolrAdapter.from_settings(settings.solr),
        cache=QueryCache(settings.cache),
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings. If None, loads from environment.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Manage application lifecycle (startup/shutdown)."""
        setup_logging(settings.observability)
        logger.info("Starting mailsearch v%s", __version__)

        gateway = build_gateway(settings)
        try:
            await gateway.initialize()
        except GatewayError as e:
            logger.warning("Solr is not reachable yet, serving anyway: %s", e.message)

        set_gateway(gateway)
        app.state.gateway = gateway

        logger.info("mailsearch is ready to serve requests on port %d", settings.server.port)
        yield

        logger.info("Shutting down mailsearch...")
        await gateway.shutdown()
        set_gateway(None)
        logger.info("mailsearch shutdown complete")

    app = FastAPI(
        title="mailsearch",
        description="Email search gateway over Apache Solr with query caching.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    setup_exception_handlers(app)
    app.include_router(v1_router, prefix="/v1")

    return app
