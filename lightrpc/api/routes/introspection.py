"""Introspection — published protocol descriptor and live connection listing.

Invariants:
    - Read-only: nothing here registers services or touches connections
"""

from fastapi import APIRouter, Request

router = APIRouter(prefix="/api/v1", tags=["introspection"])


@router.get("/protocol")
async def get_protocol(request: Request):
    """Service table and placeholder types for client generators."""
    return request.app.state.runtime.dispatcher.get_compatible_protocol()


@router.get("/protocol/runtime")
async def get_runtime_protocol(request: Request):
    return request.app.state.runtime.dispatcher.get_protocol()


@router.get("/connections")
async def list_connections(request: Request):
    return {"connections": request.app.state.runtime.directory.list_connections()}
