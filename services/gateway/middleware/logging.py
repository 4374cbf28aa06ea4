"""Request logging middleware.

Every request gets an id: the caller's ``x-request-id`` when present,
otherwise a fresh one. The id is held in a context variable for the
duration of the request so outbound calls can carry it, and it is echoed
on the response.
"""

import logging
import time
import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi import Request

logger = logging.getLogger(__name__)

request_id_ctx: ContextVar[Optional[str]] = ContextVar("gateway_request_id", default=None)


def current_request_id() -> Optional[str]:
    """Id of the request being handled, or None outside a request."""
    return request_id_ctx.get()


async def log_requests(request: Request, call_next):
    """Log all incoming requests with timing."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    token = request_id_ctx.set(request_id)
    start_time = time.time()

    try:
        response = await call_next(request)
    finally:
        request_id_ctx.reset(token)

    process_time = (time.time() - start_time) * 1000
    logger.info(
        f"{request.method} {request.url.path} "
        f"status={response.status_code} "
        f"duration={process_time:.2f}ms "
        f"request_id={request_id}"
    )

    response.headers.setdefault("x-request-id", request_id)
    return response
