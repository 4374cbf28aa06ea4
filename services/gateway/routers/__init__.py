"""Routers for the gateway."""

from .health import router as health_router
from .metrics import router as metrics_router
from .proxy import router as proxy_router

__all__ = ["health_router", "metrics_router", "proxy_router"]
