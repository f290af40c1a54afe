"""
HalRest — Exception Hierarchy
===============================

What:  Application-specific exceptions raised by backends and by adapter wiring.
How:   Each exception carries a message and an optional context dict. Backend
       faults additionally carry an HTTP ``code`` that the controller reads when
       it converts the fault into a Problem value.
Who:   Raised by resource backends and by RestController construction;
       converted by ``halrest.results.call_backend`` or by the global handlers
       registered in main.py.

Exception Hierarchy:
    HalRestError (base)
    ├── ConfigurationError      → adapter cannot be wired (raised at startup)
    └── ProblemError            → backend fault with Problem details (code)
        ├── NotFoundError       → 404
        ├── ConflictError       → 409
        └── UnprocessableError  → 422

Backends are free to raise any exception. Only the ``code`` attribute matters
to the controller: an int in [100, 600) becomes the response status, anything
else maps to 500.
"""

from typing import Any, Dict, Optional


class HalRestError(Exception):
    """
    Base exception for all HalRest errors.

    Attributes:
        message:  Human-readable description (safe to return to clients)
        context:  Extra debug info (logged, never rendered)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ConfigurationError(HalRestError):
    """
    Raised when a RestController is wired without a backend or a route name.

    This is an adapter-fatal condition: it surfaces while the application is
    being assembled, never per request.
    """

    def __init__(
        self,
        message: str = "Resource controller is not configured",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ProblemError(HalRestError):
    """
    A backend fault that knows how it should be reported.

    What:    Carries an HTTP status ``code`` plus optional Problem members
             (``title``, ``type`` and additional key/value pairs).
    When:    Raised from ResourceBackend implementations.
    How:     ``call_backend`` copies these members onto the ApiProblem it
             builds, so the rendered error keeps the backend's wording.
    """

    default_code = 500

    def __init__(
        self,
        message: str = "Unable to process the resource",
        code: Optional[int] = None,
        title: Optional[str] = None,
        type: Optional[str] = None,
        additional: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
        self.code = self.default_code if code is None else code
        self.title = title
        self.type = type
        self.additional = dict(additional or {})


class NotFoundError(ProblemError):
    """Raised when the addressed entity does not exist."""

    default_code = 404

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(ProblemError):
    """Raised when a create would overwrite an existing entity."""

    default_code = 409


class UnprocessableError(ProblemError):
    """Raised when the submitted representation cannot be applied."""

    default_code = 422
