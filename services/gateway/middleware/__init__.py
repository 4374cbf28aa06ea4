"""Middleware for the gateway.

Re-exports all middleware functions so they can be imported from
`services.gateway.middleware` directly.
"""

from services.gateway.middleware.logging import current_request_id, log_requests, request_id_ctx

__all__ = [
    "current_request_id",
    "log_requests",
    "request_id_ctx",
]
