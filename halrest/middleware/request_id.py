"""
HalRest — Request ID Middleware
=================================

What:  Gives every request a correlation ID, echoes it in ``X-Request-ID``
       and stamps it into every Problem body as ``request_id``.
How:   A client-supplied ``X-Request-ID`` is reused only when it is a short
       token of letters, digits, ``.``, ``_`` or ``-``; anything else is
       replaced by a generated ID so it can be logged verbatim. The ID is
       stored in a ContextVar (for loggers) and on ``request.state``.
       ``application/problem+json`` responses coming back up the stack are
       re-rendered with the ``request_id`` member; HAL documents are left as
       they are.
When:  Outermost HalRest middleware; runs before request logging. Problems
       rendered by the last-resort ``Exception`` handler bypass it and carry
       the ID themselves.
"""

import json
import logging
import re
import uuid
from contextvars import ContextVar

from starlette.datastructures import MutableHeaders
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from halrest.problem import PROBLEM_MEDIA_TYPE

logger = logging.getLogger(__name__)

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

REQUEST_ID_HEADER = "X-Request-ID"

_CLIENT_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def resolve_request_id(incoming: str | None) -> str:
    """The client's ID when it is a safe token, else a fresh 8-character one."""
    if incoming and _CLIENT_ID.match(incoming):
        return incoming
    return uuid.uuid4().hex[:8]


async def stamp_problem(response: Response, rid: str) -> Response:
    """Re-render a problem response with ``request_id`` added to its body."""
    body = b"".join([chunk async for chunk in response.body_iterator])

    headers = MutableHeaders(raw=list(response.headers.raw))
    del headers["content-length"]

    try:
        problem = json.loads(body)
    except ValueError:
        problem = None
    if not isinstance(problem, dict):
        logger.debug("[%s] Problem body is not a JSON object; passing it through", rid)
        return Response(content=body, status_code=response.status_code, headers=headers)

    problem.setdefault("request_id", rid)
    return JSONResponse(
        content=problem,
        status_code=response.status_code,
        headers=headers,
        media_type=PROBLEM_MEDIA_TYPE,
    )


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns ``request.state.request_id``, the ``X-Request-ID`` header and problem ``request_id``."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)

        if response.headers.get("content-type", "").startswith(PROBLEM_MEDIA_TYPE):
            response = await stamp_problem(response, rid)

        response.headers[REQUEST_ID_HEADER] = rid
        return response
