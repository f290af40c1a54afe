"""
HalRest — HAL Hypermedia Builder
==================================

What:  Wraps backend results as HAL resources/collections and renders them
       as ``application/hal+json`` documents.
How:   Links are stored by route name + route params and resolved to absolute
       URLs through Starlette's ``request.url_for`` at render time. Collections
       backed by a Paginator get first/last/prev/next links.
Who:   RestController decorates results with ``create_resource`` and
       ``create_collection``; ContentNegotiator renders them with ``render``.

Rendered resource:
    {
        "id": "a1b2",
        "title": "Groceries",
        "_links": {"self": {"href": "http://host/api/notes/a1b2"}}
    }

Rendered paginated collection:
    {
        "_links": {"self": ..., "first": ..., "last": ..., "next": ...},
        "_embedded": {"items": [ <rendered resources> ]},
        "page": 1, "page_count": 3, "page_size": 30, "total_items": 75
    }

Route naming: the collection path is registered under the route name itself
and the item path under ``entity_route_name(route)``. A link whose route
params carry a value resolves against the item route.
"""

import logging
from collections.abc import Mapping
from typing import Any, Dict, Iterator, List, Optional, Union
from urllib.parse import quote

from fastapi.encoders import jsonable_encoder
from starlette.requests import Request

from halrest.config import settings
from halrest.pagination import Paginator
from halrest.problem import ApiProblem

logger = logging.getLogger(__name__)

ENTITY_ROUTE_SUFFIX = ".entity"


def entity_route_name(route: str) -> str:
    """Name under which the item path of ``route`` is registered."""
    return f"{route}{ENTITY_ROUTE_SUFFIX}"


def is_path_segment(value: Any) -> bool:
    """True when ``value`` can travel as one URL path segment and route back."""
    text = str(value)
    return bool(text) and "/" not in text and text not in (".", "..")


# ══════════════════════════════════════════════════════════════════════════
# Links
# ══════════════════════════════════════════════════════════════════════════


class Link:
    """A relation pointing either at a named route or at a literal href."""

    def __init__(
        self,
        rel: str,
        route: Optional[str] = None,
        route_params: Optional[Dict[str, Any]] = None,
        query: Optional[Dict[str, Any]] = None,
        href: Optional[str] = None,
    ):
        if not route and not href:
            raise ValueError(f"Link '{rel}' needs either a route or an href")
        self.rel = rel
        self.route = route
        self.route_params = dict(route_params or {})
        self.query = dict(query or {})
        self.href = href

    def __repr__(self) -> str:
        target = self.href or self.route
        return f"Link(rel={self.rel!r}, target={target!r})"


class LinkCollection:
    """Links keyed by relation; adding a relation twice replaces it."""

    def __init__(self) -> None:
        self._links: Dict[str, Link] = {}

    def add(self, link: Link) -> "LinkCollection":
        self._links[link.rel] = link
        return self

    def get(self, rel: str) -> Optional[Link]:
        return self._links.get(rel)

    def has(self, rel: str) -> bool:
        return rel in self._links

    def remove(self, rel: str) -> None:
        self._links.pop(rel, None)

    def __iter__(self) -> Iterator[Link]:
        return iter(list(self._links.values()))

    def __len__(self) -> int:
        return len(self._links)


# ══════════════════════════════════════════════════════════════════════════
# Decorated values
# ══════════════════════════════════════════════════════════════════════════


class HalResource:
    """A single entity plus its identifier and links."""

    def __init__(self, payload: Any, identifier: Any):
        self.payload = payload
        self.identifier = identifier
        self.links = LinkCollection()

    def __repr__(self) -> str:
        return f"HalResource(identifier={self.identifier!r})"


class HalCollection:
    """
    A collection result plus everything needed to render its page.

    Attributes set by the controller after construction:
        collection_route:       route name of the collection path
        collection_query:       query params carried into every collection link
        resource_route:         route name used for each embedded entity
        route_identifier_name:  URL parameter name of the entity identifier
        page, page_size:        requested page and its size
        collection_name:        key under ``_embedded``
    """

    def __init__(self, items: Any):
        self.items = items
        self.collection_route: Optional[str] = None
        self.collection_route_params: Dict[str, Any] = {}
        self.collection_query: Dict[str, Any] = {}
        self.resource_route: Optional[str] = None
        self.route_identifier_name = "id"
        self.page = 1
        self.page_size = settings.page_size
        self.collection_name = settings.collection_name
        self.links = LinkCollection()

    @property
    def is_paginated(self) -> bool:
        return isinstance(self.items, Paginator)

    def __repr__(self) -> str:
        return (
            f"HalCollection(route={self.collection_route!r}, page={self.page}, "
            f"page_size={self.page_size})"
        )


# ══════════════════════════════════════════════════════════════════════════
# Builder / Renderer
# ══════════════════════════════════════════════════════════════════════════


class HalBuilder:
    """
    Request-bound HAL helper.

    One builder is created per request, since link resolution needs the
    request's router and base URL.
    """

    def __init__(self, request: Request, entity_identifier_name: str = "id"):
        self.request = request
        self.entity_identifier_name = entity_identifier_name

    # ── Decoration ────────────────────────────────────────────────────────

    def create_resource(
        self,
        value: Any,
        route: str,
        route_identifier_name: str = "id",
    ) -> Union[HalResource, ApiProblem]:
        """
        Wrap ``value`` as a HalResource with a ``self`` link on the item route.

        Returns ApiProblem(422) when no identifier can be found on the value.
        """
        if isinstance(value, HalResource):
            resource = value
        else:
            identifier = self.identifier_from(value)
            if identifier is None:
                return ApiProblem(422, "Unable to determine identifier for resource")
            if not is_path_segment(identifier):
                return ApiProblem(422, f"Resource identifier '{identifier}' cannot be used in a URL")
            resource = HalResource(value, identifier)

        if not resource.links.has("self"):
            resource.links.add(
                Link(
                    "self",
                    route=route,
                    route_params={route_identifier_name: resource.identifier},
                )
            )
        return resource

    def create_collection(self, value: Any, route: Optional[str] = None) -> HalCollection:
        collection = value if isinstance(value, HalCollection) else HalCollection(value)
        if route:
            collection.collection_route = route
        return collection

    def identifier_from(self, value: Any) -> Any:
        name = self.entity_identifier_name
        if isinstance(value, Mapping):
            return value.get(name)
        return getattr(value, name, None)

    # ── Links ─────────────────────────────────────────────────────────────

    def from_link(self, link: Link) -> str:
        """Absolute href of ``link``; route params are percent-encoded."""
        if link.href:
            return link.href

        params = {
            k: quote(str(v), safe="")
            for k, v in link.route_params.items()
            if v not in (None, "")
        }
        name = entity_route_name(link.route) if params else link.route
        url = self.request.url_for(name, **params)
        if link.query:
            url = url.include_query_params(**link.query)
        return str(url)

    def render_links(self, links: LinkCollection) -> Dict[str, Dict[str, str]]:
        return {link.rel: {"href": self.from_link(link)} for link in links}

    # ── Rendering ─────────────────────────────────────────────────────────

    def render(self, value: Union[HalResource, HalCollection]) -> Union[Dict[str, Any], ApiProblem]:
        if isinstance(value, HalCollection):
            return self.render_collection(value)
        return self.render_resource(value)

    def render_resource(self, resource: HalResource) -> Union[Dict[str, Any], ApiProblem]:
        body: Dict[str, Any] = {}
        embedded: Dict[str, Any] = {}

        payload = resource.payload
        if isinstance(payload, Mapping):
            items = payload.items()
        else:
            encoded = jsonable_encoder(payload)
            items = encoded.items() if isinstance(encoded, dict) else [("value", encoded)]

        for key, value in items:
            if isinstance(value, (HalResource, HalCollection)):
                rendered = self.render(value)
                if isinstance(rendered, ApiProblem):
                    return rendered
                embedded[key] = rendered
            else:
                body[key] = jsonable_encoder(value)

        # Links supplied by the payload are replaced by the resource's own
        body.pop("_links", None)
        body["_links"] = self.render_links(resource.links)
        if embedded:
            body["_embedded"] = embedded
        return body

    def render_collection(self, collection: HalCollection) -> Union[Dict[str, Any], ApiProblem]:
        meta: Dict[str, Any] = {}
        route = collection.collection_route
        query = dict(collection.collection_query)

        if collection.is_paginated:
            paginator: Paginator = collection.items
            paginator.page_size = collection.page_size
            page_count = paginator.page_count
            page = collection.page
            if page < 1 or page > page_count:
                return ApiProblem(409, "Invalid page provided")
            paginator.page = page
            entries = paginator.current_items()
            self._add_pagination_links(collection, page, page_count, query)
            meta = {
                "page": page,
                "page_count": page_count,
                "page_size": collection.page_size,
                "total_items": paginator.total_items,
            }
        else:
            items = collection.items
            if isinstance(items, Mapping):
                items = list(items.values())
            entries = list(items or [])
            if route and not collection.links.has("self"):
                collection.links.add(
                    Link("self", route=route, route_params=collection.collection_route_params, query=query)
                )

        rendered_entries: List[Dict[str, Any]] = []
        for entry in entries:
            rendered = self._render_entry(entry, collection)
            if isinstance(rendered, ApiProblem):
                return rendered
            rendered_entries.append(rendered)

        body: Dict[str, Any] = {
            "_links": self.render_links(collection.links),
            "_embedded": {collection.collection_name: rendered_entries},
        }
        body.update(meta)
        return body

    def _render_entry(self, entry: Any, collection: HalCollection) -> Union[Dict[str, Any], ApiProblem]:
        route = collection.resource_route or collection.collection_route
        resource = self.create_resource(entry, route, collection.route_identifier_name)
        if isinstance(resource, ApiProblem):
            return resource
        return self.render_resource(resource)

    def _add_pagination_links(
        self,
        collection: HalCollection,
        page: int,
        page_count: int,
        query: Dict[str, Any],
    ) -> None:
        route = collection.collection_route
        params = collection.collection_route_params

        def page_link(rel: str, number: Optional[int]) -> Link:
            link_query = dict(query)
            if number is not None:
                link_query["page"] = number
            return Link(rel, route=route, route_params=params, query=link_query)

        collection.links.add(page_link("self", page))
        collection.links.add(page_link("first", None))
        collection.links.add(page_link("last", page_count))
        if page > 1:
            collection.links.add(page_link("prev", page - 1))
        if page < page_count:
            collection.links.add(page_link("next", page + 1))
