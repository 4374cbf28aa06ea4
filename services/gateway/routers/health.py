"""Health endpoint owned by the gateway itself."""

from fastapi import APIRouter, Request

from core.models.common import HealthCheck

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthCheck)
async def health_check(request: Request) -> HealthCheck:
    """
    Basic health check endpoint for load balancers.

    Does not call any backend; the gateway is healthy when it is serving.
    """
    return HealthCheck(
        status="healthy",
        service="api-gateway",
        routes=len(request.app.state.route_table),
    )
