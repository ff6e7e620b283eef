"""Centralized exception handlers for the FastAPI application.

Gateway exceptions are mapped to HTTP responses with a consistent body::

    {
        "detail": "Human-readable error message",
        "code": "MACHINE_READABLE_ERROR_CODE",
        "timestamp": "2025-01-01T10:00:00Z"
    }
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from mailsearch.adapters.base.exceptions import DocumentNotFoundError, UpstreamRejected, UpstreamUnavailable
from mailsearch.exceptions import GatewayError, InvalidRequest
from mailsearch.models.response import ErrorResponse

logger = logging.getLogger(__name__)


def status_for(exc: GatewayError) -> int:
    """Determine the HTTP status code for a gateway exception."""
    if isinstance(exc, InvalidRequest):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, DocumentNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, UpstreamUnavailable):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if isinstance(exc, UpstreamRejected):
        return status.HTTP_400_BAD_REQUEST if exc.is_client_error else status.HTTP_502_BAD_GATEWAY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _error_response(status_code: int, message: str, code: str) -> JSONResponse:
    body = ErrorResponse(detail=message, code=code)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI application."""

    @app.exception_handler(GatewayError)
    async def gateway_exception_handler(request: Request, exc: GatewayError) -> JSONResponse:
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error("Gateway error on %s %s: %s (code=%s)", request.method, request.url.path, exc.message, exc.code)
        else:
            logger.warning("Rejected %s %s: %s (code=%s)", request.method, request.url.path, exc.message, exc.code)
        return _error_response(status_code, exc.message, exc.code)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unexpected error on %s %s", request.method, request.url.path, exc_info=exc)
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred",
            "INTERNAL_ERROR",
        )
