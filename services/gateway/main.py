"""API Gateway - FastAPI application entry point.

Single HTTP surface in front of the auth, forum, assistant and RAG
services:
- Route table: static (method, pattern) -> service mapping, validated at startup
- Identity verification: delegated to the auth service for protected routes
- Forwarding: request relayed to the backend, answer relayed back verbatim
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from core.config.settings import Settings, get_settings
from services.gateway import __version__
from services.gateway.clients import Forwarder, IdentityVerifier
from services.gateway.errors import register_exception_handlers
from services.gateway.middleware import log_requests
from services.gateway.pipeline import GatewayPipeline
from services.gateway.routers import health_router, metrics_router, proxy_router
from services.gateway.routing import build_route_table

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the gateway application.

    Args:
        settings: Settings to use, defaults to the cached environment settings
        transport: Optional httpx transport for all outbound calls

    Returns:
        The FastAPI application

    Raises:
        RouteConfigError: If the route table is invalid
    """
    settings = settings or get_settings()
    route_table = build_route_table(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler for startup and shutdown.

        Startup:
        - Create the verification client (short timeout)
        - Create the forwarding client (per-target timeouts)
        - Assemble the pipeline

        Shutdown:
        - Close both clients
        """
        logger.info("Starting API Gateway...")

        verify_client = httpx.AsyncClient(
            timeout=settings.verify_timeout,
            transport=transport,
        )
        forward_client = httpx.AsyncClient(
            timeout=settings.forward_timeout,
            transport=transport,
        )

        verifier = IdentityVerifier(
            client=verify_client,
            verify_url=settings.auth_service_url.rstrip("/") + settings.verify_path,
            timeout=settings.verify_timeout,
            failure_policy=settings.verifier_failure_policy,
        )
        app.state.pipeline = GatewayPipeline(
            route_table=route_table,
            verifier=verifier,
            forwarder=Forwarder(forward_client),
        )
        logger.info(
            f"API Gateway started with {len(route_table)} routes "
            f"(verifier failure policy: {settings.verifier_failure_policy})"
        )

        yield

        logger.info("Shutting down API Gateway...")
        await verify_client.aclose()
        await forward_client.aclose()
        logger.info("API Gateway shutdown complete")

    app = FastAPI(
        title="API Gateway",
        description="Gateway for the auth, forum, assistant and RAG services",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.route_table = route_table

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request logging middleware
    @app.middleware("http")
    async def log_requests_middleware(request: Request, call_next):
        """Log all incoming requests with timing."""
        return await log_requests(request, call_next)

    register_exception_handlers(app)

    # Gateway-owned routes first; the proxy router catches everything else
    app.include_router(health_router)
    if settings.metrics_enabled:
        app.include_router(metrics_router)
    app.include_router(proxy_router)

    return app


configure_logging(get_settings())
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "services.gateway.main:app",
        host=settings.gateway_host,
        port=settings.gateway_port,
        reload=settings.debug,
    )
