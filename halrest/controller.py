"""
HalRest — RESTful Resource Controller
=======================================

What:  Maps the HTTP verbs of one resource route onto a ResourceBackend and
       answers with HAL documents or Problem responses.
How:   Every handler follows the same template:
           method gate → ``<op>.pre`` → backend call → classify
           → HAL decoration → classify → ``<op>.post`` → decorated value
       ``dispatch`` then renders the value: Problems as
       ``application/problem+json``, HAL values through the ContentNegotiator,
       anything else (405/204 responses) unchanged.
Who:   Mounted on a FastAPI router by ``halrest.routing.register_resource``.
When:  One instance per registered resource, shared by all requests.

Verb map:
    GET     /things        → get_list        GET     /things/{id} → get
    POST    /things        → create          HEAD    either       → head
    PUT     /things        → replace_list    PUT     /things/{id} → update
    PATCH   /things        → patch_list      PATCH   /things/{id} → patch
    DELETE  /things        → delete_list     DELETE  /things/{id} → delete
    OPTIONS either         → options

The controller holds configuration only. Everything that varies per request
(identifier, body, page, page size, status code, headers) lives in the
DispatchContext passed to each handler.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import Response

from halrest.config import settings
from halrest.events import EventBus, RestEvent
from halrest.exceptions import ConfigurationError
from halrest.hal import HalBuilder, HalCollection, HalResource
from halrest.negotiation import ContentNegotiator
from halrest.problem import ApiProblem, ApiProblemResponse
from halrest.resource import ResourceBackend
from halrest.results import Failure, Success, call_backend, classify

logger = logging.getLogger(__name__)

# Every method the Allow header knows about, in the order it lists them
HTTP_METHODS = ("OPTIONS", "GET", "HEAD", "POST", "PUT", "DELETE", "TRACE", "CONNECT", "PATCH")

ALWAYS_ALLOWED = frozenset({"HEAD", "OPTIONS"})

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


# ══════════════════════════════════════════════════════════════════════════
# Method Gate
# ══════════════════════════════════════════════════════════════════════════


def normalize_methods(methods: Iterable[str]) -> List[str]:
    """Upper-case, de-duplicated, order preserved."""
    normalized: List[str] = []
    for method in methods:
        upper = str(method).strip().upper()
        if upper and upper not in normalized:
            normalized.append(upper)
    return normalized


def is_method_allowed(methods: Iterable[str], request_method: str) -> bool:
    method = request_method.upper()
    return method in ALWAYS_ALLOWED or method in normalize_methods(methods)


def allow_header(methods: Iterable[str]) -> str:
    """
    Allow header value listing exactly ``methods``.

    Known methods come out in HTTP_METHODS order; configured methods the
    universe does not know are appended in configured order.
    """
    allowed = normalize_methods(methods)
    known = [method for method in HTTP_METHODS if method in allowed]
    extra = [method for method in allowed if method not in HTTP_METHODS]
    return ", ".join(known + extra)


def method_not_allowed(methods: Iterable[str]) -> Response:
    return Response(status_code=405, headers={"Allow": allow_header(methods)})


# ══════════════════════════════════════════════════════════════════════════
# Per-request state
# ══════════════════════════════════════════════════════════════════════════


@dataclass
class DispatchContext:
    """
    Everything one request contributes to dispatch.

    Attributes:
        request:     the incoming Starlette request
        hal:         HAL builder bound to ``request``
        identifier:  item identifier from the route, None for collection requests
        data:        decoded request body
        problem:     an ApiProblem produced before dispatch (body decoding)
        status_code: status of the success response (create sets 201)
        headers:     extra headers of the success response (create sets Location)
    """

    request: Request
    hal: HalBuilder
    identifier: Optional[str] = None
    data: Any = None
    problem: Optional[ApiProblem] = None
    status_code: int = 200
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def method(self) -> str:
        return self.request.method.upper()

    @property
    def query(self) -> Mapping[str, str]:
        return self.request.query_params


def _positive_int(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


# ══════════════════════════════════════════════════════════════════════════
# Controller
# ══════════════════════════════════════════════════════════════════════════


class RestController:
    """
    Dispatches requests for one resource route to a ResourceBackend.

    Args:
        resource:               the backend (required)
        route:                  route name the collection is registered under (required)
        route_identifier_name:  URL parameter holding the item identifier
        collection_http_methods: methods allowed on the collection path
        resource_http_methods:   methods allowed on the item path
        page_size:              default collection page size
        page_size_param:        query parameter overriding the page size
        collection_name:        key of the embedded entries in collections
        events:                 EventBus receiving ``<op>.pre/.post``
        negotiator:             ContentNegotiator rendering HAL values
        entity_identifier_name: field of an entity holding its identifier

    Raises:
        ConfigurationError: when ``resource`` or ``route`` is missing.
    """

    def __init__(
        self,
        resource: ResourceBackend,
        route: str,
        route_identifier_name: str = "id",
        collection_http_methods: Optional[Iterable[str]] = None,
        resource_http_methods: Optional[Iterable[str]] = None,
        page_size: Optional[int] = None,
        page_size_param: Optional[str] = None,
        collection_name: Optional[str] = None,
        events: Optional[EventBus] = None,
        negotiator: Optional[ContentNegotiator] = None,
        entity_identifier_name: str = "id",
    ):
        if resource is None:
            raise ConfigurationError(
                f"{type(self).__name__} requires that a ResourceBackend is composed; none provided"
            )
        if not route:
            raise ConfigurationError(
                f"{type(self).__name__} requires that a route name for the resource is composed; none provided"
            )

        self._resource = resource
        self.route = route
        self.route_identifier_name = route_identifier_name
        self.entity_identifier_name = entity_identifier_name
        self.collection_http_methods = (
            collection_http_methods if collection_http_methods is not None else ["GET", "POST"]
        )
        self.resource_http_methods = (
            resource_http_methods
            if resource_http_methods is not None
            else ["DELETE", "GET", "PATCH", "PUT"]
        )
        self.page_size = page_size if page_size is not None else settings.page_size
        self.page_size_param = page_size_param if page_size_param is not None else settings.page_size_param
        self.collection_name = collection_name or settings.collection_name
        self.events = events or EventBus()
        self.negotiator = negotiator or ContentNegotiator()

    # ── Configuration ─────────────────────────────────────────────────────

    @property
    def resource(self) -> ResourceBackend:
        return self._resource

    @resource.setter
    def resource(self, resource: ResourceBackend) -> None:
        if resource is None:
            raise ConfigurationError("No resource has been set.")
        self._resource = resource

    @property
    def collection_http_methods(self) -> List[str]:
        return list(self._collection_http_methods)

    @collection_http_methods.setter
    def collection_http_methods(self, methods: Iterable[str]) -> None:
        self._collection_http_methods = tuple(normalize_methods(methods))

    @property
    def resource_http_methods(self) -> List[str]:
        return list(self._resource_http_methods)

    @resource_http_methods.setter
    def resource_http_methods(self, methods: Iterable[str]) -> None:
        self._resource_http_methods = tuple(normalize_methods(methods))

    @property
    def page_size(self) -> int:
        return self._page_size

    @page_size.setter
    def page_size(self, count: int) -> None:
        count = int(count)
        if count < 1:
            raise ValueError(f"page_size must be a positive integer, got {count}")
        self._page_size = count

    # ── Request-derived values ────────────────────────────────────────────

    def resolve_page_size(self, query: Mapping[str, Any]) -> int:
        """Page size for this request; the configured default when not overridden."""
        if not self.page_size_param:
            return self.page_size
        size = _positive_int(query.get(self.page_size_param), self.page_size)
        if settings.max_page_size is None:
            return size
        return min(size, max(settings.max_page_size, self.page_size))

    def resolve_page(self, query: Mapping[str, Any]) -> int:
        return _positive_int(query.get("page"), 1)

    # ── Shared handler steps ──────────────────────────────────────────────

    def _gate(self, ctx: DispatchContext, methods: Iterable[str]) -> Optional[Response]:
        if is_method_allowed(methods, ctx.method):
            return None
        logger.debug("%s not allowed on route %s (allowed: %s)", ctx.method, self.route, list(methods))
        return method_not_allowed(methods)

    def _collection_gate(self, ctx: DispatchContext) -> Optional[Response]:
        return self._gate(ctx, self._collection_http_methods)

    def _resource_gate(self, ctx: DispatchContext) -> Optional[Response]:
        return self._gate(ctx, self._resource_http_methods)

    def _decorate_resource(self, ctx: DispatchContext, value: Any) -> Any:
        return ctx.hal.create_resource(value, self.route, self.route_identifier_name)

    def _decorate_collection(self, ctx: DispatchContext, value: Any) -> HalCollection:
        collection = ctx.hal.create_collection(value, self.route)
        collection.collection_route = self.route
        collection.route_identifier_name = self.route_identifier_name
        collection.resource_route = self.route
        collection.page = self.resolve_page(ctx.query)
        collection.page_size = self.resolve_page_size(ctx.query)
        collection.collection_name = self.collection_name
        collection.collection_query = {k: v for k, v in ctx.query.items() if k != "page"}
        return collection

    def _trigger(self, event: RestEvent, params: Optional[Dict[str, Any]] = None) -> None:
        self.events.trigger(event, self, params or {})

    # ══════════════════════════════════════════════════════════════════════
    # Operation handlers
    # ══════════════════════════════════════════════════════════════════════

    def create(self, ctx: DispatchContext, data: Any) -> Any:
        denied = self._collection_gate(ctx)
        if denied is not None:
            return denied

        self._trigger(RestEvent.CREATE_PRE, {"data": data})

        result = call_backend(self.resource.create, data)
        if not isinstance(classify(result), Success):
            return result

        resource = self._decorate_resource(ctx, result)
        if not isinstance(classify(resource), Success):
            return resource

        ctx.status_code = 201
        ctx.headers["Location"] = ctx.hal.from_link(resource.links.get("self"))

        self._trigger(RestEvent.CREATE_POST, {"data": data, "resource": resource})
        return resource

    def delete(self, ctx: DispatchContext, id: Optional[str]) -> Any:
        denied = self._resource_gate(ctx) if id else self._collection_gate(ctx)
        if denied is not None:
            return denied

        self._trigger(RestEvent.DELETE_PRE, {"id": id})

        result = call_backend(self.resource.delete, id)
        result = result or ApiProblem(422, "Unable to delete resource.")
        if not isinstance(classify(result), Success):
            return result

        self._trigger(RestEvent.DELETE_POST, {"id": id})
        return Response(status_code=204)

    def delete_list(self, ctx: DispatchContext) -> Any:
        denied = self._collection_gate(ctx)
        if denied is not None:
            return denied

        self._trigger(RestEvent.DELETE_LIST_PRE)

        result = call_backend(self.resource.delete_list)
        result = result or ApiProblem(422, "Unable to delete collection.")
        if not isinstance(classify(result), Success):
            return result

        self._trigger(RestEvent.DELETE_LIST_POST)
        return Response(status_code=204)

    def get(self, ctx: DispatchContext, id: str) -> Any:
        denied = self._resource_gate(ctx)
        if denied is not None:
            return denied

        self._trigger(RestEvent.GET_PRE, {"id": id})

        result = call_backend(self.resource.fetch, id)
        result = result or ApiProblem(404, "Resource not found.")
        if not isinstance(classify(result), Success):
            return result

        resource = self._decorate_resource(ctx, result)
        if not isinstance(classify(resource), Success):
            return resource

        self._trigger(RestEvent.GET_POST, {"id": id, "resource": resource})
        return resource

    def get_list(self, ctx: DispatchContext) -> Any:
        denied = self._collection_gate(ctx)
        if denied is not None:
            return denied

        self._trigger(RestEvent.GET_LIST_PRE)

        result = call_backend(self.resource.fetch_all, dict(ctx.query))
        if not isinstance(classify(result), Success):
            return result

        collection = self._decorate_collection(ctx, result)

        self._trigger(RestEvent.GET_LIST_POST, {"collection": collection})
        return collection

    def head(self, ctx: DispatchContext, id: Optional[str] = None) -> Any:
        if id:
            return self.get(ctx, id)
        return self.get_list(ctx)

    def options(self, ctx: DispatchContext) -> Response:
        id = ctx.identifier
        if id is None:
            id = ctx.query.get(self.route_identifier_name)

        if id:
            options = self.resource_http_methods
        else:
            options = self.collection_http_methods

        self._trigger(RestEvent.OPTIONS_PRE, {"options": options})
        response = Response(status_code=204, headers={"Allow": allow_header(options)})
        self._trigger(RestEvent.OPTIONS_POST, {"options": options})
        return response

    def patch(self, ctx: DispatchContext, id: str, data: Any) -> Any:
        denied = self._resource_gate(ctx)
        if denied is not None:
            return denied

        self._trigger(RestEvent.PATCH_PRE, {"id": id, "data": data})

        result = call_backend(self.resource.patch, id, data)
        if not isinstance(classify(result), Success):
            return result

        resource = self._decorate_resource(ctx, result)
        if not isinstance(classify(resource), Success):
            return resource

        self._trigger(RestEvent.PATCH_POST, {"id": id, "data": data, "resource": resource})
        return resource

    def update(self, ctx: DispatchContext, id: Optional[str], data: Any) -> Any:
        denied = self._resource_gate(ctx) if id else self._collection_gate(ctx)
        if denied is not None:
            return denied

        self._trigger(RestEvent.UPDATE_PRE, {"id": id, "data": data})

        result = call_backend(self.resource.update, id, data)
        if not isinstance(classify(result), Success):
            return result

        resource = self._decorate_resource(ctx, result)
        if not isinstance(classify(resource), Success):
            return resource

        self._trigger(RestEvent.UPDATE_POST, {"id": id, "data": data, "resource": resource})
        return resource

    def patch_list(self, ctx: DispatchContext, data: Any) -> Any:
        denied = self._collection_gate(ctx)
        if denied is not None:
            return denied

        self._trigger(RestEvent.PATCH_LIST_PRE, {"data": data})

        result = call_backend(self.resource.patch_list, data)
        if not isinstance(classify(result), Success):
            return result

        collection = self._decorate_collection(ctx, result)

        self._trigger(RestEvent.PATCH_LIST_POST, {"data": data, "collection": collection})
        return collection

    def replace_list(self, ctx: DispatchContext, data: Any) -> Any:
        denied = self._collection_gate(ctx)
        if denied is not None:
            return denied

        self._trigger(RestEvent.REPLACE_LIST_PRE, {"data": data})

        result = call_backend(self.resource.replace_list, data)
        if not isinstance(classify(result), Success):
            return result

        collection = self._decorate_collection(ctx, result)

        self._trigger(RestEvent.REPLACE_LIST_POST, {"data": data, "collection": collection})
        return collection

    # ══════════════════════════════════════════════════════════════════════
    # Dispatch
    # ══════════════════════════════════════════════════════════════════════

    def handle(self, ctx: DispatchContext) -> Any:
        """Run the verb handler for ``ctx`` and return its raw outcome."""
        method = ctx.method
        id = ctx.identifier

        if method == "GET":
            return self.get(ctx, id) if id else self.get_list(ctx)
        if method == "HEAD":
            return self.head(ctx, id)
        if method == "OPTIONS":
            return self.options(ctx)
        if method == "POST":
            return self.create(ctx, ctx.data)
        if method == "PUT":
            return self.update(ctx, id, ctx.data) if id else self.replace_list(ctx, ctx.data)
        if method == "PATCH":
            return self.patch(ctx, id, ctx.data) if id else self.patch_list(ctx, ctx.data)
        if method == "DELETE":
            return self.delete(ctx, id) if id else self.delete_list(ctx)

        return method_not_allowed(
            self._resource_http_methods if id else self._collection_http_methods
        )

    def dispatch(self, ctx: DispatchContext) -> Any:
        """
        Produce the final response for ``ctx``.

        An upstream problem short-circuits before any handler runs. Problems
        become ``application/problem+json`` responses, HAL values go through
        content negotiation, anything else is returned unchanged.
        """
        if ctx.problem is not None:
            return ApiProblemResponse(ctx.problem)

        result = self.handle(ctx)
        outcome = classify(result)

        if isinstance(outcome, Failure):
            if isinstance(outcome.error, ApiProblemResponse):
                return outcome.error
            return ApiProblemResponse(outcome.error)

        if isinstance(outcome, Success) and isinstance(outcome.value, (HalResource, HalCollection)):
            return self.negotiator.render(
                outcome.value,
                ctx.hal,
                status_code=ctx.status_code,
                headers=ctx.headers,
            )

        return result

    def build_context(self, request: Request, data: Any = None, problem: Optional[ApiProblem] = None) -> DispatchContext:
        identifier = request.path_params.get(self.route_identifier_name)
        return DispatchContext(
            request=request,
            hal=HalBuilder(request, entity_identifier_name=self.entity_identifier_name),
            identifier=str(identifier) if identifier not in (None, "") else None,
            data=data,
            problem=problem,
        )

    async def __call__(self, request: Request) -> Any:
        """Endpoint entry point: decode the body, then dispatch off the event loop."""
        data, problem = None, None
        if request.method.upper() in BODY_METHODS:
            data, problem = await self.negotiator.decode_body(request)

        ctx = self.build_context(request, data=data, problem=problem)
        return await run_in_threadpool(self.dispatch, ctx)
