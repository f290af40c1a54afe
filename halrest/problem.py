"""
HalRest — Problem Details (Structured Errors)
===============================================

What:  The ApiProblem value and its HTTP rendering, ApiProblemResponse.
How:   ApiProblem is a plain value holding a status code and a detail (either a
       message or the exception that caused it). ApiProblemResponse renders it
       as ``application/problem+json``.
Who:   Built by the controller (405 excluded), by backends that reject a
       request, and by the negotiation layer for upstream rejections.

Wire shape:
    {
        "type": "http://www.w3.org/Protocols/rfc2616/rfc2616-sec10.html",
        "title": "Not Found",
        "status": 404,
        "detail": "Resource not found."
    }

Exception detail is limited to the exception's message. Tracebacks are never
rendered.
"""

from http import HTTPStatus
from typing import Any, Dict, Optional, Union

from starlette.responses import JSONResponse

from halrest.config import settings
from halrest.exceptions import ProblemError

PROBLEM_MEDIA_TYPE = "application/problem+json"
DEFAULT_PROBLEM_TYPE = "http://www.w3.org/Protocols/rfc2616/rfc2616-sec10.html"

# Members an additional-details dict may not overwrite
RESERVED_MEMBERS = frozenset({"type", "title", "status", "detail"})


def status_title(status: int) -> str:
    """Reason phrase for a status code, ``Unknown`` for unregistered codes."""
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Unknown"


class ApiProblem:
    """
    A status-code-plus-detail value describing a failed request.

    ``detail`` may be a string or an exception. When it is an exception, the
    rendered detail is its message; a ProblemError additionally contributes its
    title, type and additional members unless they were given explicitly.
    """

    def __init__(
        self,
        status: int,
        detail: Union[str, BaseException],
        type: Optional[str] = None,
        title: Optional[str] = None,
        additional: Optional[Dict[str, Any]] = None,
    ):
        self.status = int(status)
        self.detail = detail
        self.additional = dict(additional or {})

        if isinstance(detail, ProblemError):
            type = type or detail.type
            title = title or detail.title
            for key, value in detail.additional.items():
                self.additional.setdefault(key, value)

        self.type = type or DEFAULT_PROBLEM_TYPE
        self.title = title or status_title(self.status)

    @property
    def exception(self) -> Optional[BaseException]:
        return self.detail if isinstance(self.detail, BaseException) else None

    @property
    def detail_message(self) -> str:
        if isinstance(self.detail, BaseException):
            message = getattr(self.detail, "message", None)
            return message if isinstance(message, str) else str(self.detail)
        return str(self.detail)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            key: value
            for key, value in self.additional.items()
            if key not in RESERVED_MEMBERS
        }
        body.update(
            {
                "type": self.type,
                "title": self.title,
                "status": self.status,
                "detail": self.detail_message,
            }
        )
        if self.exception is not None and settings.expose_problem_exception_class:
            body["exception"] = type(self.exception).__name__
        return body

    def __repr__(self) -> str:
        return f"ApiProblem(status={self.status}, detail={self.detail_message!r})"


class ApiProblemResponse(JSONResponse):
    """JSON response rendering an ApiProblem with its own status code."""

    media_type = PROBLEM_MEDIA_TYPE

    def __init__(self, problem: ApiProblem, headers: Optional[Dict[str, str]] = None):
        self.api_problem = problem
        super().__init__(
            content=problem.to_dict(),
            status_code=problem.status,
            headers=headers,
        )
