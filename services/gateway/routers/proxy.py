"""Catch-all router that hands every proxied request to the pipeline.

Route matching, verification and forwarding all happen in
``GatewayPipeline``; this module only adapts between Starlette and the
pipeline's request/response carriers.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from starlette.requests import ClientDisconnect

from services.gateway.errors import to_starlette
from services.gateway.pipeline import GatewayPipeline
from services.gateway.schemas import InboundRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["proxy"])

PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

# Status logged when the caller went away before an answer was ready
CLIENT_CLOSED_REQUEST = 499

T = TypeVar("T")


def get_pipeline(request: Request) -> GatewayPipeline:
    """Dependency returning the pipeline built at startup."""
    return request.app.state.pipeline


def raw_path(request: Request) -> str:
    """Request path exactly as it appeared on the request line, minus the query."""
    raw = request.scope.get("raw_path")
    if not raw:
        return request.url.path
    return raw.split(b"?", 1)[0].decode("latin-1")


async def to_inbound(request: Request) -> InboundRequest:
    """Build an ``InboundRequest`` from a Starlette request.

    Multipart bodies stay a stream so uploads are never buffered or
    re-encoded; everything else is read in full.

    The path is taken still percent-encoded so an escaped ``/`` or ``?``
    inside a segment reaches the backend as the caller sent it.
    """
    content_type = request.headers.get("content-type", "").lower()
    if content_type.startswith("multipart/"):
        body = request.stream()
    else:
        body = await request.body()

    return InboundRequest(
        method=request.method,
        path=raw_path(request),
        query_string=request.url.query,
        headers=tuple(request.headers.items()),
        body=body,
    )


async def _wait_for_disconnect(receive: Callable[[], Awaitable[dict]]) -> None:
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            return


async def cancel_on_disconnect(request: Request, work: Awaitable[T]) -> Optional[T]:
    """
    Run ``work`` until it finishes or the caller disconnects.

    Must only be used once the request body has been consumed, otherwise
    the watcher would swallow body messages.

    Returns:
        The result of ``work``, or None if the caller disconnected first
    """
    task = asyncio.ensure_future(work)
    watcher = asyncio.ensure_future(_wait_for_disconnect(request.receive))
    try:
        done, _ = await asyncio.wait({task, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        watcher.cancel()

    if task in done:
        return task.result()

    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    return None


@router.api_route("/{path:path}", methods=PROXY_METHODS, include_in_schema=False)
async def proxy(
    request: Request,
    pipeline: GatewayPipeline = Depends(get_pipeline),
) -> Response:
    """Proxy any request matching the route table."""
    inbound = await to_inbound(request)

    if inbound.is_multipart:
        try:
            response = await pipeline.handle(inbound)
        except ClientDisconnect:
            logger.info(f"Client disconnected during upload: {request.method} {request.url.path}")
            return Response(status_code=CLIENT_CLOSED_REQUEST)
    else:
        response = await cancel_on_disconnect(request, pipeline.handle(inbound))
        if response is None:
            logger.info(f"Client disconnected, forward cancelled: {request.method} {request.url.path}")
            return Response(status_code=CLIENT_CLOSED_REQUEST)

    return to_starlette(response)
