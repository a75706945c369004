"""
FindMyHelper Backend — Health Check Route
===========================================

What:  GET /health for container and load balancer probes.
How:   Pings the active storage backend and reports which one is in use.

Status levels:
    healthy    storage reachable
    degraded   running on memory storage after a database fallback
               (data will not survive a restart)
    unhealthy  storage unreachable; answered with HTTP 503
"""

import logging
import time

from fastapi import APIRouter, Depends, Response

from findmyhelper import __version__
from findmyhelper.config import Settings
from findmyhelper.dependencies import get_config, get_storage
from findmyhelper.schemas.common import HealthResponse
from findmyhelper.storage.base import Storage

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(
    response: Response,
    storage: Storage = Depends(get_storage),
    config: Settings = Depends(get_config),
) -> HealthResponse:
    reachable = await storage.ping()

    if not reachable:
        overall = "unhealthy"
        response.status_code = 503
        logger.warning("Health check: %s storage unreachable", storage.backend_name)
    elif storage.backend_name == "memory" and config.storage_backend != "memory":
        overall = "degraded"
    else:
        overall = "healthy"

    return HealthResponse(
        status=overall,
        version=__version__,
        storage_backend=storage.backend_name,
        storage="connected" if reachable else "disconnected",
        uptime_seconds=round(time.time() - _start_time, 2),
    )
