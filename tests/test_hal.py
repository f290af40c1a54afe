"""
HalRest — HAL Builder Unit Tests
==================================

What:  Tests for HAL decoration, link resolution and rendering.
How:   Builders come from ``make_ctx`` so ``url_for`` resolves against the
       ``things`` routes of a bare FastAPI app (http://testserver/things).

What we test:
    ✅ Identifier extraction from dicts and objects, 422 when missing
    ✅ Links resolve to the collection or entity route by their params
    ✅ Paginated collections: first/last/prev/next links and page metadata
    ✅ Out-of-range pages → 409
    ✅ Nested HAL values are embedded
"""

from types import SimpleNamespace

import pytest

from halrest.hal import (
    HalCollection,
    HalResource,
    Link,
    LinkCollection,
    entity_route_name,
    is_path_segment,
)
from halrest.pagination import Paginator
from halrest.problem import ApiProblem


@pytest.fixture
def hal(make_ctx):
    return make_ctx("GET").hal


def paginated(hal, items, page=1, page_size=2, query=None):
    collection = hal.create_collection(Paginator(items), "things")
    collection.resource_route = "things"
    collection.page = page
    collection.page_size = page_size
    collection.collection_query = dict(query or {})
    return collection


class TestLinks:
    def test_link_needs_route_or_href(self):
        with pytest.raises(ValueError):
            Link("self")

    def test_link_collection_replaces_same_rel(self):
        links = LinkCollection()
        links.add(Link("self", href="/a")).add(Link("self", href="/b"))

        assert len(links) == 1
        assert links.get("self").href == "/b"

    def test_link_collection_remove(self):
        links = LinkCollection().add(Link("next", href="/n"))
        links.remove("next")
        links.remove("missing")
        assert not links.has("next")

    def test_entity_route_name(self):
        assert entity_route_name("things") == "things.entity"

    def test_href_is_returned_verbatim(self, hal):
        assert hal.from_link(Link("docs", href="https://example.com/docs")) == "https://example.com/docs"

    def test_route_without_params_resolves_collection(self, hal):
        assert hal.from_link(Link("self", route="things")) == "http://testserver/things"

    def test_route_with_params_resolves_entity(self, hal):
        link = Link("self", route="things", route_params={"id": 42})
        assert hal.from_link(link) == "http://testserver/things/42"

    def test_query_is_appended(self, hal):
        link = Link("next", route="things", query={"page": 2, "sort": "name"})
        href = hal.from_link(link)
        assert href.startswith("http://testserver/things?")
        assert "page=2" in href
        assert "sort=name" in href

    def test_route_params_are_percent_encoded(self, hal):
        link = Link("self", route="things", route_params={"id": "a b?c"})
        assert hal.from_link(link) == "http://testserver/things/a%20b%3Fc"

    @pytest.mark.parametrize(
        "value, expected",
        [("a1", True), ("a b?c", True), (7, True), ("a/b", False), ("", False), ("..", False)],
    )
    def test_is_path_segment(self, value, expected):
        assert is_path_segment(value) is expected


class TestCreateResource:
    def test_identifier_from_mapping(self, hal):
        resource = hal.create_resource({"id": "a1", "title": "x"}, "things")

        assert isinstance(resource, HalResource)
        assert resource.identifier == "a1"
        assert resource.links.get("self").route_params == {"id": "a1"}

    def test_identifier_from_object(self, hal):
        resource = hal.create_resource(SimpleNamespace(id=7, title="obj"), "things")
        assert resource.identifier == 7

    def test_custom_identifier_field(self, make_ctx):
        builder = make_ctx("GET").hal
        builder.entity_identifier_name = "slug"

        resource = builder.create_resource({"slug": "hello"}, "things")

        assert resource.identifier == "hello"

    def test_identifier_with_slash_is_422(self, hal):
        problem = hal.create_resource({"id": "a/b"}, "things")

        assert isinstance(problem, ApiProblem)
        assert problem.status == 422

    def test_missing_identifier_is_422(self, hal):
        problem = hal.create_resource({"title": "no id"}, "things")

        assert isinstance(problem, ApiProblem)
        assert problem.status == 422
        assert problem.detail == "Unable to determine identifier for resource"

    def test_existing_self_link_is_kept(self, hal):
        resource = HalResource({"id": "1"}, "1")
        resource.links.add(Link("self", href="https://elsewhere/1"))

        decorated = hal.create_resource(resource, "things")

        assert decorated is resource
        assert decorated.links.get("self").href == "https://elsewhere/1"


class TestRenderResource:
    def test_payload_links_are_replaced(self, hal):
        resource = hal.create_resource({"id": "1", "_links": {"bogus": {}}}, "things")

        body = hal.render(resource)

        assert body["_links"] == {"self": {"href": "http://testserver/things/1"}}

    def test_object_payload_is_encoded(self, hal):
        resource = hal.create_resource(SimpleNamespace(id="o", size=3), "things")

        body = hal.render(resource)

        assert body["id"] == "o"
        assert body["size"] == 3

    def test_nested_resource_is_embedded(self, hal):
        author = hal.create_resource({"id": "u1", "name": "Ann"}, "things")
        resource = hal.create_resource({"id": "n1", "author": author}, "things")

        body = hal.render(resource)

        assert "author" not in body
        assert body["_embedded"]["author"]["name"] == "Ann"
        assert body["_embedded"]["author"]["_links"]["self"]["href"] == "http://testserver/things/u1"


class TestRenderCollection:
    def test_plain_list_embeds_everything(self, hal):
        collection = hal.create_collection([{"id": "1"}, {"id": "2"}, {"id": "3"}], "things")
        collection.collection_name = "things"

        body = hal.render(collection)

        assert [entry["id"] for entry in body["_embedded"]["things"]] == ["1", "2", "3"]
        assert body["_links"] == {"self": {"href": "http://testserver/things"}}
        assert "page_count" not in body

    def test_mapping_items_use_values(self, hal):
        collection = hal.create_collection({"a": {"id": "a"}}, "things")

        body = hal.render(collection)

        assert body["_embedded"]["items"][0]["id"] == "a"

    def test_first_page_links(self, hal):
        items = [{"id": str(n)} for n in range(5)]

        body = hal.render(paginated(hal, items, page=1, page_size=2))

        links = body["_links"]
        assert links["self"]["href"] == "http://testserver/things?page=1"
        assert links["first"]["href"] == "http://testserver/things"
        assert links["last"]["href"] == "http://testserver/things?page=3"
        assert links["next"]["href"] == "http://testserver/things?page=2"
        assert "prev" not in links
        assert body["page"] == 1
        assert body["page_count"] == 3
        assert body["page_size"] == 2
        assert body["total_items"] == 5
        assert [entry["id"] for entry in body["_embedded"]["items"]] == ["0", "1"]

    def test_last_page_links(self, hal):
        items = [{"id": str(n)} for n in range(5)]

        body = hal.render(paginated(hal, items, page=3, page_size=2))

        assert body["_links"]["prev"]["href"] == "http://testserver/things?page=2"
        assert "next" not in body["_links"]
        assert [entry["id"] for entry in body["_embedded"]["items"]] == ["4"]

    def test_query_is_carried_into_page_links(self, hal):
        items = [{"id": str(n)} for n in range(4)]

        body = hal.render(paginated(hal, items, page=1, page_size=2, query={"per_page": "2"}))

        assert "per_page=2" in body["_links"]["next"]["href"]
        assert body["_links"]["first"]["href"] == "http://testserver/things?per_page=2"

    def test_empty_collection_has_one_page(self, hal):
        body = hal.render(paginated(hal, [], page=1))

        assert body["page_count"] == 1
        assert body["total_items"] == 0
        assert body["_embedded"]["items"] == []

    @pytest.mark.parametrize("page", [0, 4, 99])
    def test_invalid_page_is_409(self, hal, page):
        items = [{"id": str(n)} for n in range(5)]

        problem = hal.render(paginated(hal, items, page=page, page_size=2))

        assert isinstance(problem, ApiProblem)
        assert problem.status == 409
        assert problem.detail == "Invalid page provided"

    def test_entry_without_identifier_fails_whole_collection(self, hal):
        collection = hal.create_collection([{"id": "1"}, {"title": "anonymous"}], "things")

        problem = hal.render(collection)

        assert isinstance(problem, ApiProblem)
        assert problem.status == 422

    def test_collection_defaults(self):
        collection = HalCollection([])
        assert not collection.is_paginated
        assert collection.page == 1
