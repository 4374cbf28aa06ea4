"""Forwards a routed request to its backend and relays the answer.

One attempt per request, no retries. If the backend answers at all, its
status, headers and raw body bytes go back to the caller unchanged. If it
does not (connect failure, DNS failure, timeout, broken stream), the caller
gets a generic 502 and the details stay in the logs.
"""

import json
import logging
import time
import uuid
from typing import Optional

import httpx

from core.models.identity import VerifiedIdentity
from services.gateway import prometheus
from services.gateway.errors import BadGateway, MalformedBody
from services.gateway.middleware.logging import current_request_id
from services.gateway.routing import RouteMatch
from services.gateway.schemas import Body, GatewayResponse, InboundRequest

logger = logging.getLogger(__name__)

USER_ID_HEADER = "x-user-id"
USER_ROLE_HEADER = "x-user-role"
REQUEST_ID_HEADER = "x-request-id"

# RFC 7230 hop-by-hop headers; they describe one connection, not the message
HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-connection",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
})

IDENTITY_HEADERS = frozenset({USER_ID_HEADER, USER_ROLE_HEADER})

# Headers httpx adds on its own; only sent when the caller sent them
CLIENT_DEFAULT_HEADERS = ("accept", "accept-encoding", "user-agent", "connection")


def build_url(inbound: InboundRequest, match: RouteMatch) -> str:
    """Target base URL + rewritten path + original query string."""
    url = match.target.base_url.rstrip("/") + match.route.rewrite(inbound.path)
    if inbound.query_string:
        url = f"{url}?{inbound.query_string}"
    return url


def prepare_body(inbound: InboundRequest) -> tuple[Body, bool]:
    """
    Decide what body goes out and whether it was re-serialized.

    Multipart and non-JSON bodies pass through untouched. JSON bodies with
    content are parsed and written back compactly. Only an object or an
    array is accepted at the top level.

    Raises:
        MalformedBody: If a JSON body cannot be parsed or is a bare scalar
    """
    body = inbound.body
    if inbound.is_multipart or not isinstance(body, bytes):
        return body, False
    if not body or not inbound.is_json:
        return body, False

    try:
        payload = json.loads(body)
    except ValueError as e:
        raise MalformedBody(f"unparseable JSON body: {e}") from e
    if not isinstance(payload, (dict, list)):
        raise MalformedBody(f"JSON body must be an object or array, got {type(payload).__name__}")
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8"), True


def build_headers(
    inbound: InboundRequest,
    identity: Optional[VerifiedIdentity],
    reserialized: bool,
    body_length: Optional[int],
) -> list[tuple[str, str]]:
    """
    Build outbound headers from the inbound ones.

    Host and hop-by-hop headers are dropped, as are any caller-supplied
    identity headers. Content-Length is recomputed when the body changed.
    """
    headers: list[tuple[str, str]] = []
    for name, value in inbound.headers:
        lowered = name.lower()
        if lowered == "host" or lowered in HOP_BY_HOP_HEADERS or lowered in IDENTITY_HEADERS:
            continue
        if reserialized and lowered in ("content-length", "content-type"):
            continue
        headers.append((name, value))

    if reserialized:
        headers.append(("content-type", "application/json"))
        headers.append(("content-length", str(body_length)))

    if identity is not None:
        headers.append((USER_ID_HEADER, identity.user_id))
        headers.append((USER_ROLE_HEADER, identity.role))

    if inbound.header(REQUEST_ID_HEADER) is None:
        headers.append((REQUEST_ID_HEADER, current_request_id() or str(uuid.uuid4())))

    return headers


def relay_headers(response: httpx.Response, method: str) -> list[tuple[str, str]]:
    """Backend response headers minus hop-by-hop ones.

    Content-Length is left to the response writer because the body is
    relayed unchanged, except for HEAD where there is no body to measure.
    """
    headers: list[tuple[str, str]] = []
    for name, value in response.headers.multi_items():
        lowered = name.lower()
        if lowered in HOP_BY_HOP_HEADERS:
            continue
        if lowered == "content-length" and method != "HEAD":
            continue
        headers.append((name, value))
    return headers


class Forwarder:
    """Sends routed requests to backend services.

    Never calls the auth service: identity, when required, arrives already
    verified.
    """

    def __init__(self, client: httpx.AsyncClient):
        """
        Initialize the forwarder.

        Args:
            client: Shared HTTP client used for all backend calls
        """
        self.client = client

    def _build_request(
        self,
        inbound: InboundRequest,
        match: RouteMatch,
        identity: Optional[VerifiedIdentity],
    ) -> httpx.Request:
        body, reserialized = prepare_body(inbound)
        body_length = len(body) if isinstance(body, bytes) else None
        headers = build_headers(inbound, identity, reserialized, body_length)

        request = self.client.build_request(
            inbound.method,
            build_url(inbound, match),
            headers=headers,
            content=body,
            timeout=match.target.timeout,
        )
        sent = {name.lower() for name, _ in headers}
        for name in CLIENT_DEFAULT_HEADERS:
            if name not in sent and name in request.headers:
                del request.headers[name]
        return request

    async def forward(
        self,
        inbound: InboundRequest,
        match: RouteMatch,
        identity: Optional[VerifiedIdentity] = None,
    ) -> GatewayResponse:
        """
        Forward a request and relay the backend's answer.

        Args:
            inbound: The caller's request
            match: Resolved route and service target
            identity: Verified identity for protected routes

        Returns:
            The backend response, relayed byte-for-byte

        Raises:
            MalformedBody: If a JSON body cannot be parsed
            BadGateway: If no backend response was received
        """
        service = match.target.name
        if match.route.auth_required and identity is None:
            raise RuntimeError(f"Protected route {match.route.pattern} reached the forwarder unverified")

        request = self._build_request(inbound, match, identity)

        start_time = time.time()
        try:
            response = await self.client.send(request, stream=True)
            try:
                content = b"".join([chunk async for chunk in response.aiter_raw()])
            finally:
                await response.aclose()
        except (httpx.HTTPError, httpx.StreamError) as e:
            reason = type(e).__name__
            logger.error(
                f"No response from {service} for {inbound.method} {inbound.path}: "
                f"{reason}: {e}"
            )
            prometheus.record_bad_gateway(service, reason)
            raise BadGateway(f"{service}: {reason}") from e
        finally:
            prometheus.record_upstream_latency(service, time.time() - start_time)

        logger.debug(
            f"{inbound.method} {inbound.path} -> {service} status={response.status_code}"
        )
        return GatewayResponse(
            status_code=response.status_code,
            headers=relay_headers(response, inbound.method),
            body=content,
        )
