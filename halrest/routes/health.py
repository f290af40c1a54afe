"""
HalRest — Health Check Route
==============================

What:  Liveness endpoint for monitoring and load balancer probes.
How:   Reports the version, uptime and the route names of the resources the
       app factory mounted (kept on ``app.state.resources``).
"""

import logging
import time

from fastapi import APIRouter, Request

from halrest import __version__
from halrest.schemas.problem import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(request: Request) -> HealthResponse:
    resources = sorted(getattr(request.app.state, "resources", {}).keys())
    return HealthResponse(
        status="healthy",
        version=__version__,
        resources=resources,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
