"""
HalRest — Resource Route Registration
=======================================

What:  Mounts a RestController on a FastAPI router.
How:   Registers two paths answering every verb: the collection path under
       the controller's route name and the item path (carrying the identifier
       parameter) under ``entity_route_name(route)``. The HAL builder resolves
       links through those names.
Who:   The app factory in main.py, or any application embedding HalRest.

Example:
    router = APIRouter(prefix="/api")
    register_resource(router, "/notes", RestController(InMemoryResource(), route="notes"))
    # GET /api/notes, POST /api/notes, GET /api/notes/{id}, ...
"""

import logging
from typing import Any, Optional, Sequence

from fastapi import APIRouter
from starlette.requests import Request
from starlette.routing import Route

from halrest.controller import RestController
from halrest.hal import entity_route_name
from halrest.schemas.problem import HalDocument, ProblemDetail

logger = logging.getLogger(__name__)

# Verbs documented in the OpenAPI schema
ROUTE_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

# Name suffix of the undocumented any-method route behind each path
FALLBACK_ROUTE_SUFFIX = ".any"

RESPONSES = {
    200: {"description": "HAL document", "model": HalDocument},
    201: {"description": "Created; Location names the new entity", "model": HalDocument},
    204: {"description": "Deleted, or OPTIONS with an Allow header"},
    405: {"description": "Method not allowed for this target"},
    "4XX": {"description": "Problem details", "model": ProblemDetail},
    "5XX": {"description": "Problem details", "model": ProblemDetail},
}


def register_resource(
    router: APIRouter,
    path: str,
    controller: RestController,
    tags: Optional[Sequence[str]] = None,
) -> APIRouter:
    """
    Register ``controller`` for ``path`` and ``path/{identifier}`` on ``router``.

    Raises:
        ConfigurationError: propagated from a controller missing its backend or route.
    """
    path = "/" + path.strip("/")
    item_path = f"{path}/{{{controller.route_identifier_name}}}"

    async def endpoint(request: Request) -> Any:
        return await controller(request)

    common = {
        "endpoint": endpoint,
        "methods": ROUTE_METHODS,
        "response_model": None,
        "responses": RESPONSES,
        "tags": list(tags or [controller.route]),
    }
    router.add_api_route(path, name=controller.route, summary=f"{controller.route} collection", **common)
    router.add_api_route(
        item_path,
        name=entity_route_name(controller.route),
        summary=f"{controller.route} entity",
        **common,
    )

    # Any other verb still reaches the controller, which answers 405 with
    # the Allow header of the addressed target. Registered last so the
    # documented routes above keep precedence.
    for route_path, name in (
        (path, controller.route),
        (item_path, entity_route_name(controller.route)),
    ):
        router.routes.append(
            Route(
                router.prefix + route_path,
                endpoint,
                methods=None,
                name=f"{name}{FALLBACK_ROUTE_SUFFIX}",
                include_in_schema=False,
            )
        )

    logger.info(
        "Registered resource '%s' at %s (collection: %s, entity: %s)",
        controller.route,
        path,
        ", ".join(controller.collection_http_methods),
        ", ".join(controller.resource_http_methods),
    )
    return router
