"""
HalRest — Request Logging Middleware
======================================

What:  One access log line per request, naming the resource route that
       answered and whether the answer was a HAL document or a Problem.
How:   Times the call below this middleware, reads the matched route name
       from the ASGI scope and picks the log level from the status class
       (5xx ERROR, 4xx WARNING, else INFO).
When:  Inside RequestIDMiddleware, so the request ID is already set.

Example line:
    GET /api/notes/a1 404 problem notes.entity 1.3ms [3f2a9c1d]

Request bodies are never logged.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from halrest.middleware.request_id import request_id_var
from halrest.problem import PROBLEM_MEDIA_TYPE

logger = logging.getLogger("halrest.access")

SKIPPED_PATHS = frozenset({"/health"})


def level_for_status(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


def answer_kind(response: Response) -> str:
    """``problem``, ``hal`` or ``empty`` from the response content type."""
    content_type = response.headers.get("content-type", "")
    if content_type.startswith(PROBLEM_MEDIA_TYPE):
        return "problem"
    if content_type:
        return "hal"
    return "empty"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access logging with request ID correlation; health probes are skipped."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in SKIPPED_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        route = getattr(request.scope.get("route"), "name", None) or "-"
        kind = answer_kind(response)
        rid = request_id_var.get("")

        logger.log(
            level_for_status(response.status_code),
            "%s %s %d %s %s %.1fms [%s]",
            request.method,
            request.url.path,
            response.status_code,
            kind,
            route,
            elapsed_ms,
            rid,
            extra={
                "request_id": rid,
                "route": route,
                "answer": kind,
                "status": response.status_code,
                "duration_ms": round(elapsed_ms, 2),
            },
        )
        return response
