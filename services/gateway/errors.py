"""Gateway error taxonomy and its mapping to caller responses.

Backend error responses are not exceptions here: they are relayed as-is by
the forwarder. Everything in this module describes failures the gateway
itself originates, and every one of them is rendered by ``error_response``.
"""

import json
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.models.common import ErrorResponse
from services.gateway.schemas import GatewayResponse

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """Base class for gateway-originated failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = "Internal server error"

    def __init__(self, reason: str = ""):
        # reason is for logs only, never sent to the caller
        super().__init__(reason or self.message)
        self.reason = reason


class Unauthorized(GatewayError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Unauthorized"


class RouteNotFound(GatewayError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found"


class MalformedBody(GatewayError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid JSON body"


class BadGateway(GatewayError):
    status_code = status.HTTP_502_BAD_GATEWAY
    message = "Bad gateway"


def _json_response(status_code: int, body: ErrorResponse) -> GatewayResponse:
    content = json.dumps(body.model_dump(exclude_none=True)).encode("utf-8")
    return GatewayResponse(
        status_code=status_code,
        headers=[("content-type", "application/json")],
        body=content,
    )


def error_response(exc: Exception, debug: bool = False) -> GatewayResponse:
    """Map any failure to the caller-facing response shape.

    ``GatewayError`` subclasses keep their status and generic message.
    Anything else is an unexpected fault and becomes a 500.
    """
    if isinstance(exc, GatewayError):
        return _json_response(exc.status_code, ErrorResponse(message=exc.message))

    return _json_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorResponse(
            message="Internal server error",
            detail=str(exc) if debug else None,
        ),
    )


def to_starlette(response: GatewayResponse) -> Response:
    """Convert a ``GatewayResponse`` to a Starlette ``Response``."""
    result = Response(content=response.body, status_code=response.status_code)
    for name, value in response.headers:
        if name.lower() == "content-length":
            result.headers["content-length"] = value
        else:
            result.headers.append(name, value)
    return result


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers so every failure path shares one response shape."""

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        """Handler for gateway-originated failures raised outside the pipeline."""
        logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.reason}")
        return to_starlette(error_response(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Framework errors (unknown gateway-owned path or method)."""
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return to_starlette(error_response(RouteNotFound()))
        return to_starlette(
            _json_response(exc.status_code, ErrorResponse(message=str(exc.detail)))
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler for unhandled errors."""
        logger.error(f"Unhandled exception: {exc}")
        return to_starlette(error_response(exc, debug=request.app.state.settings.debug))
