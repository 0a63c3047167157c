"""
Pharmacy Directory Backend — Health Check Route
================================================

What:  Health check endpoint for monitoring and load balancer probes.
Why:   Load balancers and Docker need to know whether this instance can serve.
How:   Runs SELECT 1 against the injected engine and reports uptime.

Status levels:
    - healthy:   Database reachable
    - unhealthy: Database unreachable (still HTTP 200 so the body is readable)
"""

import logging
import time

from fastapi import APIRouter, Request
from sqlalchemy import text

from pharmacy_directory import __version__
from pharmacy_directory.schemas.pharmacy import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

# Set once when the module loads
_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Returns the health status of the backend service and its database.",
)
async def health_check(request: Request) -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    try:
        async with request.app.state.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
