"""Common models shared across the gateway."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class HealthCheck(BaseModel):
    """Health check response model."""

    status: str = Field(..., description="Service status")
    service: str = Field(..., description="Service name")
    routes: int = Field(..., description="Number of registered routes")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Timestamp")


class ErrorResponse(BaseModel):
    """Gateway-originated error body.

    Only ``message`` is sent to callers. ``detail`` is filled for unexpected
    failures when debug mode is on.
    """

    message: str = Field(..., description="Human-readable error message")
    detail: Optional[str] = Field(None, description="Debug detail")
