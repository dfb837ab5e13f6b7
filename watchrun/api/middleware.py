"""Request logging for the log viewer API."""

from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

__all__ = ["ELAPSED_HEADER", "RequestLogMiddleware"]

ELAPSED_HEADER = "X-Watchrun-Elapsed-Ms"

logger = logging.getLogger("watchrun.api.requests")


class RequestLogMiddleware(BaseHTTPMiddleware):
    """Log each HTTP request and stamp its handling time on the response.

    Viewers poll log snapshots constantly, so successful requests are logged at
    DEBUG. Client errors go to INFO and server errors to WARNING.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("%s %s failed", request.method, request.url.path)
            raise
        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers[ELAPSED_HEADER] = f"{elapsed_ms:.1f}"
        logger.log(
            _level_for(response.status_code),
            "%s %s -> %d (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response


def _level_for(status: int) -> int:
    if status >= 500:
        return logging.WARNING
    if status >= 400:
        return logging.INFO
    return logging.DEBUG
