"""Health check endpoints."""

import time

from fastapi import APIRouter, Request

from secureapi import __version__
from secureapi.api.schemas import HealthResponse

router = APIRouter()

# Track startup time
_startup_time = time.time()


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """
    Health check endpoint.

    Reports the number of loaded patterns and whether the quota store
    answers. An unreachable store marks the service as degraded.
    """
    store_ok = await request.app.state.quota_gate.store.ping()

    return HealthResponse(
        status="healthy" if store_ok else "degraded",
        version=__version__,
        patterns_loaded=len(request.app.state.catalog),
        quota_store="ok" if store_ok else "unreachable",
        uptime_seconds=time.time() - _startup_time,
    )


@router.get("/ready")
async def readiness_check() -> dict:
    """
    Readiness check for Kubernetes.

    Returns 200 if the service is ready to accept traffic.
    """
    return {"ready": True}


@router.get("/live")
async def liveness_check() -> dict:
    """
    Liveness check for Kubernetes.

    Returns 200 if the service is alive.
    """
    return {"alive": True}
