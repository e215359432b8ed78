# dmhero/api/middleware/request_logging.py
"""
Request logging middleware for FastAPI.

Logs one line per search/listing request with status and elapsed time:

    GET /api/search q='elara' campaignId='1' -> 200 (3 ms)

Usage:
    from dmhero.api.middleware.request_logging import RequestLoggingMiddleware

    app.add_middleware(RequestLoggingMiddleware)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

log = logging.getLogger(__name__)

# Query parameters worth echoing into the log line
LOGGED_PARAMS = ("q", "search", "campaignId")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, exclude_paths: list[str] | None = None):
        super().__init__(app)
        self.exclude_paths = set(exclude_paths or [])
        self.exclude_paths.update({"/health", "/favicon.ico"})

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path in self.exclude_paths or request.method in {"OPTIONS", "HEAD"}:
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = int((time.perf_counter() - start) * 1000)

        params = " ".join(
            f"{name}={request.query_params[name]!r}"
            for name in LOGGED_PARAMS
            if name in request.query_params
        )
        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        log.log(
            level,
            "%s %s %s -> %d (%d ms)",
            request.method,
            path,
            params,
            response.status_code,
            elapsed_ms,
        )
        return response
