"""
HalRest — Test Configuration (conftest.py)
============================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── backend:       MagicMock standing in for a ResourceBackend
    ├── events:        EventBus recording every triggered event name
    ├── controller:    RestController for route "things" over ``backend``
    ├── resource_app:  FastAPI app with ``controller`` mounted at /things
    ├── make_request:  factory building raw Starlette requests against resource_app
    ├── make_ctx:      factory building DispatchContexts against resource_app
    └── test_client:   HTTPX AsyncClient over a full create_app() instance
"""

import os
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from fastapi import APIRouter, FastAPI
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request

# Override settings for testing BEFORE any halrest imports
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["API_PREFIX"] = "/api"

from halrest.controller import DispatchContext, RestController  # noqa: E402
from halrest.events import EventBus, RestEvent  # noqa: E402
from halrest.resource import InMemoryResource, ResourceBackend  # noqa: E402
from halrest.routing import register_resource  # noqa: E402


class RecordingBus(EventBus):
    """EventBus that remembers the order and params of every trigger."""

    def __init__(self) -> None:
        super().__init__()
        self.fired: List[str] = []
        self.params: Dict[str, Dict[str, Any]] = {}

    def trigger(self, event, target, params=None):
        evt = super().trigger(event, target, params)
        self.fired.append(RestEvent(event).value)
        self.params[RestEvent(event).value] = dict(evt.params)
        return evt


@pytest.fixture
def backend():
    """A ResourceBackend mock; every operation returns a MagicMock unless configured."""
    return MagicMock(spec=ResourceBackend)


@pytest.fixture
def events():
    return RecordingBus()


@pytest.fixture
def controller(backend, events):
    return RestController(backend, route="things", events=events)


@pytest.fixture
def resource_app(controller):
    """A bare FastAPI app so ``request.url_for`` can resolve the controller's routes."""
    app = FastAPI()
    router = APIRouter()
    register_resource(router, "/things", controller)
    app.include_router(router)
    return app


def build_request(
    app: FastAPI,
    method: str = "GET",
    path: str = "/things",
    query: str = "",
    path_params: Optional[Dict[str, str]] = None,
    headers: Optional[Dict[str, str]] = None,
    body: bytes = b"",
) -> Request:
    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "server": ("testserver", 80),
        "client": ("127.0.0.1", 50000),
        "root_path": "",
        "path": path,
        "raw_path": path.encode(),
        "query_string": query.encode(),
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "path_params": path_params or {},
        "app": app,
        "router": app.router,
    }

    async def receive():
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)


@pytest.fixture
def make_request(resource_app):
    """Factory for raw Starlette requests against ``resource_app``."""

    def _make(**kwargs: Any) -> Request:
        return build_request(resource_app, **kwargs)

    return _make


@pytest.fixture
def make_ctx(controller, resource_app):
    """
    Build a DispatchContext for ``controller``.

    Usage:
        ctx = make_ctx("PATCH", identifier="42", data={"name": "x"})
        response = controller.dispatch(ctx)
    """

    def _make(
        method: str = "GET",
        identifier: Optional[str] = None,
        query: str = "",
        data: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> DispatchContext:
        path_params = {controller.route_identifier_name: identifier} if identifier else {}
        path = f"/things/{identifier}" if identifier else "/things"
        request = build_request(
            resource_app,
            method=method,
            path=path,
            query=query,
            path_params=path_params,
            headers=headers,
        )
        return controller.build_context(request, data=data)

    return _make


@pytest.fixture
def notes_controller():
    return RestController(
        InMemoryResource(),
        route="notes",
        page_size=2,
        page_size_param="per_page",
        collection_http_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    )


@pytest_asyncio.fixture
async def test_client(notes_controller):
    """
    HTTPX AsyncClient talking to a full HalRest app with an in-memory ``notes`` resource.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from halrest.main import create_app

    app = create_app([("/notes", notes_controller)])
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
