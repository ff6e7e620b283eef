"""API dependencies — Dependency injection for FastAPI endpoints."""

from __future__ import annotations

from mailsearch.core.gateway import SearchGateway

# Global gateway instance (set during application lifespan)
_gateway: SearchGateway | None = None


def set_gateway(gateway: SearchGateway | None) -> None:
    """Set the global gateway instance (called during app lifespan)."""
    global _gateway
    _gateway = gateway


def get_gateway() -> SearchGateway:
    """Get the global search gateway instance.

    Returns:
        The initialized SearchGateway.

    Raises:
        RuntimeError: If the gateway is not initialized.
    """
    if _gateway is None:
        raise RuntimeError("Search gateway not initialized. Is the server running?")
    return _gateway
