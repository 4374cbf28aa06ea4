"""Schemas for the gateway.

Re-exports all schemas from submodules so imports like
`from services.gateway.schemas import InboundRequest` work.
"""

from services.gateway.schemas.auth import VerifyResponse
from services.gateway.schemas.proxy import Body, GatewayResponse, InboundRequest

__all__ = [
    # Auth schemas
    "VerifyResponse",
    # Proxy carriers
    "Body",
    "GatewayResponse",
    "InboundRequest",
]
