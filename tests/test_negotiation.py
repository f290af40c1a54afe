"""
HalRest — Content Negotiation Unit Tests
==========================================

What:  Tests for Accept parsing, media type selection and body decoding.

What we test:
    ✅ q-values order the Accept ranges, q=0 ranges are dropped
    ✅ Wildcards select the preferred HAL type
    ✅ Unacceptable Accept headers fall back to application/hal+json
    ✅ JSON and form bodies decode; bad JSON → 400, other types → 415
"""

import json

import pytest

from halrest.hal import HalResource
from halrest.negotiation import HAL_JSON, JSON, ContentNegotiator, parse_accept


class TestParseAccept:
    def test_empty_header(self):
        assert parse_accept(None) == []
        assert parse_accept("") == []

    def test_sorted_by_quality(self):
        ranges = parse_accept("text/html;q=0.5, application/json, */*;q=0.1")
        assert [media_range for media_range, _ in ranges] == ["application/json", "text/html", "*/*"]

    def test_zero_quality_dropped(self):
        assert parse_accept("application/hal+json;q=0, application/json") == [("application/json", 1.0)]

    def test_malformed_quality_dropped(self):
        assert parse_accept("application/json;q=high") == []


class TestSelect:
    def setup_method(self):
        self.negotiator = ContentNegotiator()

    @pytest.mark.parametrize(
        "accept, expected",
        [
            (None, HAL_JSON),
            ("application/json", JSON),
            ("application/hal+json", HAL_JSON),
            ("*/*", HAL_JSON),
            ("application/*", HAL_JSON),
            ("text/html", HAL_JSON),
            ("application/hal+json;q=0.2, application/json;q=0.9", JSON),
        ],
    )
    def test_select(self, accept, expected):
        assert self.negotiator.select(accept) == expected

    def test_is_json_accepts_suffix_types(self):
        assert self.negotiator.is_json("application/vnd.things.v1+json; charset=utf-8")
        assert not self.negotiator.is_json("text/plain")


class TestDecodeBody:
    def setup_method(self):
        self.negotiator = ContentNegotiator()

    @pytest.mark.asyncio
    async def test_json_body(self, make_request):
        request = make_request(
            method="POST",
            headers={"Content-Type": "application/json"},
            body=json.dumps({"title": "x"}).encode(),
        )

        data, problem = await self.negotiator.decode_body(request)

        assert data == {"title": "x"}
        assert problem is None

    @pytest.mark.asyncio
    async def test_hal_json_list_body(self, make_request):
        request = make_request(
            method="PATCH",
            headers={"Content-Type": "application/hal+json"},
            body=b'[{"id": "1"}]',
        )

        data, problem = await self.negotiator.decode_body(request)

        assert data == [{"id": "1"}]
        assert problem is None

    @pytest.mark.asyncio
    async def test_empty_body_is_empty_dict(self, make_request):
        data, problem = await self.negotiator.decode_body(make_request(method="POST"))

        assert data == {}
        assert problem is None

    @pytest.mark.asyncio
    async def test_missing_content_type_is_parsed_as_json(self, make_request):
        data, problem = await self.negotiator.decode_body(make_request(method="PUT", body=b'{"a": 1}'))

        assert data == {"a": 1}
        assert problem is None

    @pytest.mark.asyncio
    async def test_invalid_json_is_400(self, make_request):
        request = make_request(
            method="POST",
            headers={"Content-Type": "application/json"},
            body=b"{not json",
        )

        data, problem = await self.negotiator.decode_body(request)

        assert data is None
        assert problem.status == 400
        assert problem.detail == "Invalid JSON body"

    @pytest.mark.asyncio
    async def test_form_body(self, make_request):
        request = make_request(
            method="POST",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            body=b"title=Groceries&done=no",
        )

        data, problem = await self.negotiator.decode_body(request)

        assert data == {"title": "Groceries", "done": "no"}
        assert problem is None

    @pytest.mark.asyncio
    async def test_unsupported_type_is_415(self, make_request):
        request = make_request(
            method="POST",
            headers={"Content-Type": "text/csv"},
            body=b"a,b\n1,2",
        )

        data, problem = await self.negotiator.decode_body(request)

        assert data is None
        assert problem.status == 415


class TestRender:
    def test_render_uses_selected_media_type(self, make_ctx):
        ctx = make_ctx("GET", headers={"Accept": "application/json"})
        resource = ctx.hal.create_resource({"id": "1"}, "things")

        response = ContentNegotiator().render(resource, ctx.hal, status_code=201, headers={"Location": "/x"})

        assert response.status_code == 201
        assert response.media_type == JSON
        assert response.headers["location"] == "/x"

    def test_render_problem_from_decoration(self, make_ctx):
        ctx = make_ctx("GET")
        collection = ctx.hal.create_collection([{"title": "no id"}], "things")

        response = ContentNegotiator().render(collection, ctx.hal)

        assert response.status_code == 422
        assert response.media_type == "application/problem+json"

    def test_render_resource_body(self, make_ctx):
        ctx = make_ctx("GET")
        resource = HalResource({"id": "9", "title": "t"}, "9")
        ctx.hal.create_resource(resource, "things")

        response = ContentNegotiator().render(resource, ctx.hal)

        assert json.loads(response.body)["_links"]["self"]["href"] == "http://testserver/things/9"
