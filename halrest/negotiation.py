"""
HalRest — Content Negotiation
===============================

What:  Decodes request bodies and turns decorated HAL values into responses.
How:   Bodies are decoded by Content-Type (JSON, form, empty). Responses pick a
       media type from the Accept header among the HAL-capable types, falling
       back to ``application/hal+json`` when nothing acceptable is offered.
Who:   The routing endpoint decodes bodies before dispatch; RestController
       renders HalResource/HalCollection results through ``render``.

Upstream rejections (unparseable JSON, unsupported body type) are returned as
ApiProblem values instead of being raised, so dispatch can short-circuit on
them before any handler runs.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from halrest.hal import HalBuilder, HalCollection, HalResource
from halrest.problem import ApiProblem, ApiProblemResponse

logger = logging.getLogger(__name__)

HAL_JSON = "application/hal+json"
JSON = "application/json"

# Media types the HAL renderer can answer with, in preference order
HAL_MEDIA_TYPES: Tuple[str, ...] = (HAL_JSON, JSON)

# Request bodies with these types are decoded as JSON
JSON_CONTENT_TYPES: Tuple[str, ...] = (JSON, HAL_JSON)

FORM_CONTENT_TYPES: Tuple[str, ...] = (
    "application/x-www-form-urlencoded",
    "multipart/form-data",
)


def _media_type(header_value: str) -> str:
    return header_value.split(";", 1)[0].strip().lower()


def parse_accept(header: Optional[str]) -> List[Tuple[str, float]]:
    """
    Accept header → [(media_range, q)] sorted by descending q.

    Ranges with q=0 are dropped. Order among equal q-values is preserved.
    """
    if not header:
        return []
    ranges: List[Tuple[str, float]] = []
    for part in header.split(","):
        pieces = [piece.strip() for piece in part.split(";")]
        media_range = pieces[0].lower()
        if not media_range:
            continue
        q = 1.0
        for param in pieces[1:]:
            name, _, value = param.partition("=")
            if name.strip().lower() == "q":
                try:
                    q = float(value)
                except ValueError:
                    q = 0.0
        if q > 0:
            ranges.append((media_range, q))
    return sorted(ranges, key=lambda item: item[1], reverse=True)


def _matches(media_range: str, media_type: str) -> bool:
    if media_range in ("*/*", "*"):
        return True
    range_main, _, range_sub = media_range.partition("/")
    main, _, sub = media_type.partition("/")
    if range_sub == "*":
        return range_main == main
    return media_range == media_type


class ContentNegotiator:
    """Selects a HAL media type from the Accept header and renders payloads."""

    def __init__(
        self,
        media_types: Sequence[str] = HAL_MEDIA_TYPES,
        fallback: str = HAL_JSON,
        json_content_types: Sequence[str] = JSON_CONTENT_TYPES,
    ):
        self.media_types = tuple(media_types)
        self.fallback = fallback
        self.json_content_types = tuple(json_content_types)

    # ── Request bodies ────────────────────────────────────────────────────

    def is_json(self, content_type: str) -> bool:
        media_type = _media_type(content_type)
        return media_type in self.json_content_types or media_type.endswith("+json")

    async def decode_body(self, request: Request) -> Tuple[Any, Optional[ApiProblem]]:
        """
        Decode the request body.

        Returns (data, problem). An empty body decodes to an empty dict.
        """
        body = await request.body()
        if not body.strip():
            return {}, None

        content_type = request.headers.get("content-type", "")
        if self.is_json(content_type) or not content_type:
            try:
                return json.loads(body), None
            except ValueError:
                logger.debug("Rejecting unparseable JSON body on %s", request.url.path)
                return None, ApiProblem(400, "Invalid JSON body")

        if _media_type(content_type) in FORM_CONTENT_TYPES:
            form = await request.form()
            return {key: value for key, value in form.multi_items()}, None

        return None, ApiProblem(415, "Unsupported Media Type")

    # ── Responses ─────────────────────────────────────────────────────────

    def select(self, accept: Optional[str]) -> str:
        """First offered media type acceptable to the client, else the fallback."""
        for media_range, _q in parse_accept(accept):
            for media_type in self.media_types:
                if _matches(media_range, media_type):
                    return media_type
        return self.fallback

    def render(
        self,
        payload: Union[HalResource, HalCollection],
        hal: HalBuilder,
        status_code: int = 200,
        headers: Optional[Dict[str, str]] = None,
    ) -> Response:
        media_type = self.select(hal.request.headers.get("accept"))
        rendered = hal.render(payload)
        if isinstance(rendered, ApiProblem):
            return ApiProblemResponse(rendered)
        return JSONResponse(
            content=rendered,
            status_code=status_code,
            headers=headers,
            media_type=media_type,
        )
