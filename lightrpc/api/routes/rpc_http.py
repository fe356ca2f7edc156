"""HTTP Binding — POST {json_host_path}{service_name} → dispatcher → envelope.

Invariants:
    - Every request is one logical connection: opened in the directory before
      dispatch, closed after (always, even on failure)
    - Body size checked before parsing; oversized → 413
    - application/json → the path after json_host_path, verbatim, names the
      service (no slash normalization), body is the payload
      (?type=msg → message call, acknowledged with {"success": true})
    - Any other content type → body is a wire frame, answered as octet-stream
    - Transport failures raise HTTPException → envelope via error_handlers

Design Decisions:
    - Router built per app (build_router) because the mount path comes from settings
    - HttpConnection cannot push: write() raises TransportWriteError so an
      addressed send to an HTTP connection reports a failure instead of vanishing
"""

import logging

from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.responses import Response

from lightrpc.api.routes.connection_helpers import client_ip_from, new_connection_id
from lightrpc.config import Settings
from lightrpc.core.context import create_call_context
from lightrpc.core.envelope import MSG_ACK
from lightrpc.core.errors import InternalError, TransportWriteError
from lightrpc.schemas.call import ParsedInput
from lightrpc.services.runtime import RpcRuntime

logger = logging.getLogger(__name__)

JSON_MEDIA_TYPE = "application/json"
BINARY_MEDIA_TYPE = "application/octet-stream"


class HttpConnection:
    """Request-scoped connection handle: lives for one POST, cannot receive pushes."""

    def __init__(self, conn_id: str):
        self.conn_id = conn_id
        self.status = "OPENED"

    async def write(self, data: str | bytes) -> None:
        raise TransportWriteError(
            f"HTTP connection {self.conn_id} cannot receive pushed messages",
        )

    def close(self, reason: str | None = None) -> None:
        self.status = "CLOSED"


def build_router(json_host_path: str) -> APIRouter:
    router = APIRouter(tags=["rpc"])
    router.add_api_route(
        f"{json_host_path}{{service_name:path}}",
        call_service,
        methods=["POST"],
        name="call_service",
    )
    return router


async def call_service(
    service_name: str,
    request: Request,
    call_type: str | None = Query(None, alias="type"),
):
    """Dispatch one API or message call carried by an HTTP POST."""
    runtime: RpcRuntime = request.app.state.runtime
    settings: Settings = request.app.state.settings

    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > settings.max_body_size:
        raise HTTPException(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "Request body too large")
    body = await request.body()
    if len(body) > settings.max_body_size:
        raise HTTPException(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "Request body too large")

    if not service_name:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Invalid API path")

    conn_id = new_connection_id("http")
    client_ip = client_ip_from(request.headers, request.client)
    connection = HttpConnection(conn_id)
    await runtime.directory.open(conn_id, client_ip, connection)
    context = create_call_context(
        conn_id, client_ip,
        extra={"path": request.url.path},
        verbose=runtime.options.debug,
        prefix="HTTP",
    )

    try:
        content_type = request.headers.get("content-type", "").lower()
        if JSON_MEDIA_TYPE in content_type:
            return await _handle_json(runtime, service_name, call_type == "msg", body, context)
        return await _handle_binary(runtime, body, context)
    finally:
        connection.close()
        await runtime.directory.close(conn_id)


async def _handle_json(runtime: RpcRuntime, service_name: str, is_msg: bool, body: bytes, context):
    try:
        data = runtime.codec.deserialize(body)
    except ValueError as e:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, f"JSON parse error: {e}")

    if is_msg:
        await runtime.dispatcher.dispatch(ParsedInput.msg(service_name, data), context)
        return Response(runtime.codec.to_text(MSG_ACK), media_type=JSON_MEDIA_TYPE)

    envelope = await runtime.dispatcher.dispatch(ParsedInput.api(service_name, data), context)
    return Response(_encode(runtime, envelope.to_dict()), media_type=JSON_MEDIA_TYPE)


async def _handle_binary(runtime: RpcRuntime, body: bytes, context):
    call = runtime.dispatcher.parse_server_input(body)
    if call is None:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Invalid binary data")

    envelope = await runtime.dispatcher.dispatch(call, context)
    payload = MSG_ACK if envelope is None else envelope.to_dict()
    return Response(_encode(runtime, payload, binary=True), media_type=BINARY_MEDIA_TYPE)


def _encode(runtime: RpcRuntime, payload: dict, binary: bool = False) -> str | bytes:
    try:
        if binary:
            return runtime.codec.encode(payload)
        return runtime.codec.to_text(payload)
    except (TypeError, ValueError) as e:
        logger.error(f"Response serialization failed: {e}")
        raise InternalError(f"Response serialization failed: {e}")
