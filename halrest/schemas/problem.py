"""
HalRest — Pydantic Response Schemas
=====================================

What:  Models documenting the Problem body, HAL links and the health check.
Who:   Referenced by route registration (OpenAPI ``responses``) and returned
       by GET /health.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ProblemDetail(BaseModel):
    """
    What:  Body of every ``application/problem+json`` response.

    Example:
        {
            "type": "http://www.w3.org/Protocols/rfc2616/rfc2616-sec10.html",
            "title": "Unprocessable Entity",
            "status": 422,
            "detail": "Unable to delete resource."
        }
    """
    type: str = Field(description="URI identifying the problem type")
    title: str = Field(description="Short summary of the problem type")
    status: int = Field(description="HTTP status code")
    detail: str = Field(description="Explanation specific to this occurrence")

    model_config = {"extra": "allow"}


class HalLink(BaseModel):
    href: str = Field(description="Absolute URL of the linked resource")


class HalDocument(BaseModel):
    """Minimal shape shared by HAL resources and collections."""
    links: Dict[str, HalLink] = Field(alias="_links", description="Links keyed by relation")
    embedded: Optional[Dict[str, Any]] = Field(
        default=None,
        alias="_embedded",
        description="Embedded entries (collections only)",
    )

    model_config = {"extra": "allow", "populate_by_name": True}


class HealthResponse(BaseModel):
    """
    What:  Health check response.
    Who:   Returned by GET /health for monitoring and load balancer probes.
    """
    status: str = Field(description="Overall service status: healthy")
    version: str = Field(description="Application version")
    resources: List[str] = Field(description="Route names of the mounted resources")
    uptime_seconds: float = Field(description="Seconds since service started")
