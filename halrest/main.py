"""
HalRest — FastAPI Application Factory
=======================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance with
       middleware, exception handlers, the health route and one set of routes
       per RestController.
Who:   Called by uvicorn (uvicorn halrest.main:app) and by the test suite.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────────┐ ┌──────────┐ ┌─────────────────┐  │
    │  │  Req ID      │→│ Logging  │→│  CORS           │  │
    │  └──────────────┘ └──────────┘ └─────────────────┘  │
    │                                                     │
    │  Routes:                                            │
    │  ┌────────────────────────────┐ ┌─────────────────┐ │
    │  │ /api/<resource>[/{id}]     │ │ GET /health     │ │
    │  └────────────────────────────┘ └─────────────────┘ │
    │                                                     │
    │  Exception Handlers (everything → problem+json):    │
    │  ┌──────────────────────────────────────────────┐   │
    │  │ ProblemError→code │ HalRestError→500 │ *→500 │   │
    │  └──────────────────────────────────────────────┘   │
    └─────────────────────────────────────────────────────┘

Controllers are validated when they are constructed, so a resource without a
backend or route name stops create_app() instead of failing per request.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional, Sequence, Tuple

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from halrest import __version__
from halrest.config import settings
from halrest.controller import RestController
from halrest.exceptions import ConfigurationError, HalRestError, ProblemError
from halrest.middleware.logging import RequestLoggingMiddleware
from halrest.middleware.request_id import RequestIDMiddleware, request_id_var
from halrest.problem import ApiProblem, ApiProblemResponse
from halrest.resource import InMemoryResource
from halrest.results import status_code_from_exception
from halrest.routes import health
from halrest.routing import register_resource

logger = logging.getLogger(__name__)

# (path relative to settings.api_prefix, controller)
ResourceMount = Tuple[str, RestController]


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("HalRest %s starting up...", __version__)
    for route, controller in app.state.resources.items():
        logger.info(
            "Resource %s → %s (page size %d%s)",
            route,
            type(controller.resource).__name__,
            controller.page_size,
            f", override via ?{controller.page_size_param}=" if controller.page_size_param else "",
        )
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)

    yield

    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Render exceptions escaping the controllers as Problem responses.

    Backend faults are already converted inside the controller; these handlers
    cover event listeners, middleware and anything else raising mid-request.
    Tracebacks are logged, never returned. RequestIDMiddleware stamps
    ``request_id`` into the first two; the last-resort handler runs outside
    it and adds the ID itself.
    """

    @app.exception_handler(ProblemError)
    async def handle_problem_error(request: Request, exc: ProblemError):
        rid = request_id_var.get("")
        status = status_code_from_exception(exc)
        logger.warning("[%s] Problem raised outside a backend call (%d): %s", rid, status, exc.message)
        return ApiProblemResponse(ApiProblem(status, exc))

    @app.exception_handler(HalRestError)
    async def handle_halrest_error(request: Request, exc: HalRestError):
        rid = request_id_var.get("")
        logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        return ApiProblemResponse(ApiProblem(500, exc))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return ApiProblemResponse(
            ApiProblem(
                500,
                "An unexpected error occurred. Please try again or contact support.",
                additional={"request_id": rid},
            )
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def default_resources() -> Sequence[ResourceMount]:
    """The demo ``notes`` resource backed by an in-memory store."""
    controller = RestController(
        InMemoryResource(),
        route="notes",
        page_size=settings.page_size,
        page_size_param=settings.page_size_param,
        collection_name=settings.collection_name,
        collection_http_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    )
    return [("/notes", controller)]


def create_app(resources: Optional[Sequence[ResourceMount]] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        resources: (path, controller) pairs mounted under ``settings.api_prefix``;
                   defaults to the in-memory ``notes`` resource.
    """
    app = FastAPI(
        title="HalRest API",
        description="RESTful resources rendered as HAL, errors as Problem details.",
        version=__version__,
        lifespan=lifespan,
    )

    # Middleware executes in reverse order of addition
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Location", "Allow"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router)

    router = APIRouter(prefix=settings.api_prefix)
    mounted = {}
    for path, controller in (default_resources() if resources is None else resources):
        if controller.route in mounted:
            raise ConfigurationError(f"Route name '{controller.route}' is registered twice")
        register_resource(router, path, controller)
        mounted[controller.route] = controller
    app.include_router(router)
    app.state.resources = mounted

    return app


app = create_app()
