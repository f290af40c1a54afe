"""
HalRest — Dispatch Outcome Classification
===========================================

What:  One place that decides what a backend/decoration result means.
How:   ``classify()`` maps any value to Success, Failure or Passthrough;
       ``call_backend()`` runs a backend operation and turns a raised fault into
       an ApiProblem, so handlers only ever see values.
Who:   RestController, after every backend call and every HAL decoration.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Union

from starlette.responses import Response

from halrest.problem import ApiProblem, ApiProblemResponse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Success:
    value: Any


@dataclass(frozen=True)
class Failure:
    """An error-shaped result: an ApiProblem, or an already rendered problem response."""

    error: Union[ApiProblem, ApiProblemResponse]

    @property
    def status(self) -> int:
        if isinstance(self.error, ApiProblemResponse):
            return self.error.status_code
        return self.error.status


@dataclass(frozen=True)
class Passthrough:
    """A response built elsewhere, returned to the client unchanged."""

    response: Response


Outcome = Union[Success, Failure, Passthrough]


def classify(value: Any) -> Outcome:
    if isinstance(value, (ApiProblem, ApiProblemResponse)):
        return Failure(value)
    if isinstance(value, Response):
        return Passthrough(value)
    return Success(value)


def status_code_from_exception(exc: BaseException) -> int:
    """
    HTTP status for a backend fault.

    Uses the fault's ``code`` (or ``status_code``) when it is an int in
    [100, 600); anything else is a 500.
    """
    code = getattr(exc, "code", None)
    if code is None:
        code = getattr(exc, "status_code", None)
    if not isinstance(code, int) or isinstance(code, bool) or code < 100 or code >= 600:
        return 500
    return code


def call_backend(operation: Callable[..., Any], *args: Any) -> Any:
    """Run ``operation(*args)``; a raised exception comes back as an ApiProblem."""
    try:
        return operation(*args)
    except Exception as exc:
        status = status_code_from_exception(exc)
        name = getattr(operation, "__name__", repr(operation))
        if status >= 500:
            logger.error("Backend %s failed: %s", name, exc, exc_info=True)
        else:
            logger.warning("Backend %s rejected request (%d): %s", name, status, exc)
        return ApiProblem(status, exc)
