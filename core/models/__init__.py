"""Core models module."""

from core.models.common import ErrorResponse, HealthCheck
from core.models.identity import UserRole, VerifiedIdentity

__all__ = [
    # Common models
    "ErrorResponse",
    "HealthCheck",
    # Identity models
    "UserRole",
    "VerifiedIdentity",
]
