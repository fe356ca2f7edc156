"""Health & Readiness Probes — liveness plus server info, and readiness on transport status.

Invariants:
    - GET /health/ always returns 200 if the process is up (liveness)
    - GET /health/ready returns 503 unless the runtime status is OPENED

Design Decisions:
    - Separate liveness/readiness: liveness restarts, readiness removes from
      load balancer (ADR: production readiness)
"""

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from lightrpc import __version__
from lightrpc.core.domain_types import ServerStatus
from lightrpc.core.flows import describe_flows

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check(request: Request):
    """Liveness probe with server info. Returns 200 if the process is up."""
    runtime = request.app.state.runtime
    return {
        "status": "healthy",
        "service": "lightrpc",
        "version": __version__,
        "server": {
            **runtime.server_info(),
            "jsonHostPath": request.app.state.settings.json_host_path,
            "flows": describe_flows(runtime.flows),
        },
    }


@router.get("/ready")
async def readiness_check(request: Request):
    runtime = request.app.state.runtime
    if runtime.status is not ServerStatus.OPENED:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "reason": runtime.status.value},
        )
    return {"status": "ready", "connections": len(runtime.directory)}
