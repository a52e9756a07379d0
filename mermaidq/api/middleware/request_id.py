"""
Request id middleware for the mermaidq API.

Every response carries an X-Request-ID header. A caller-supplied id is echoed
back so client logs and server logs can be joined; otherwise one is generated.
"""

from __future__ import annotations

from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from mermaidq.observability.logging import get_logger
from mermaidq.utils.ids import generate_request_id

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Longer caller ids are replaced rather than echoed
MAX_REQUEST_ID_LENGTH = 128


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a request id to request.state and to the response headers."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER, "").strip()
        if not request_id or len(request_id) > MAX_REQUEST_ID_LENGTH:
            request_id = generate_request_id()

        request.state.request_id = request_id
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        logger.debug(
            "%s %s -> %d [%s]",
            request.method,
            request.url.path,
            response.status_code,
            request_id,
        )
        return response
