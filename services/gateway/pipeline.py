"""Per-request gateway pipeline.

Route Table -> (Identity Verifier, for protected routes) -> Forwarder.
Verification always completes before anything is forwarded. Failures the
gateway originates are rendered by ``errors.error_response`` so every route
fails the same way.
"""

import logging
from typing import Optional

from core.models.identity import VerifiedIdentity
from services.gateway import prometheus
from services.gateway.clients import Forwarder, IdentityVerifier
from services.gateway.errors import GatewayError, RouteNotFound, Unauthorized, error_response
from services.gateway.routing import RouteTable
from services.gateway.schemas import GatewayResponse, InboundRequest

logger = logging.getLogger(__name__)


class GatewayPipeline:
    """Composes route lookup, verification and forwarding.

    Stateless between requests; safe to share across concurrent tasks.
    """

    def __init__(
        self,
        route_table: RouteTable,
        verifier: IdentityVerifier,
        forwarder: Forwarder,
    ):
        self.route_table = route_table
        self.verifier = verifier
        self.forwarder = forwarder

    async def handle(self, inbound: InboundRequest) -> GatewayResponse:
        """Run one request through the pipeline.

        Returns:
            The relayed backend response or a synthesized error response
        """
        service = "none"
        try:
            match = self.route_table.match(inbound.method, inbound.path)
            if match is None:
                raise RouteNotFound(f"no route for {inbound.method} {inbound.path}")
            service = match.target.name

            identity: Optional[VerifiedIdentity] = None
            if match.route.auth_required:
                identity = await self.verifier.verify(inbound.credential)
                if identity is None:
                    raise Unauthorized(f"verification failed for {inbound.method} {inbound.path}")

            response = await self.forwarder.forward(inbound, match, identity)
        except GatewayError as e:
            logger.info(f"{inbound.method} {inbound.path} -> {e.status_code}: {e.reason}")
            response = error_response(e)

        prometheus.record_request(service, response.status_code)
        return response
