"""WebSocket Binding — persistent connections carrying wire frames both ways.

Invariants:
    - One socket = one directory entry, opened after accept and closed when the
      receive loop ends (client disconnect or server close)
    - API frames are answered with their envelope (sn echoed); message frames
      produce no reply
    - Malformed frames or unknown services → INVALID_INPUT / ClientError envelope
    - Codec output decides the frame kind: str → text frame, bytes → binary frame

Design Decisions:
    - One task per frame: frames start in arrival order but complete
      independently, so a slow API call never blocks later frames and replies
      are matched by sn
    - In-flight frame tasks are awaited after the directory entry closes
    - Handlers that push back to the same socket go through the directory like
      any other send
"""

import asyncio
import logging

from fastapi import APIRouter, WebSocket
from starlette.websockets import WebSocketState

from lightrpc.api.routes.connection_helpers import client_ip_from, new_connection_id
from lightrpc.core.context import CallContext, create_call_context
from lightrpc.core.envelope import ApiFailure, ApiReturn
from lightrpc.core.errors import InternalError, InvalidInputError
from lightrpc.services.runtime import RpcRuntime

logger = logging.getLogger(__name__)
router = APIRouter(tags=["rpc"])


class WebSocketConnection:
    """Connection handle that writes pushed frames to an accepted socket."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.status = "OPENED"

    async def write(self, data: str | bytes) -> None:
        if isinstance(data, str):
            await self.websocket.send_text(data)
        else:
            await self.websocket.send_bytes(data)

    async def close(self, reason: str | None = None) -> None:
        if self.status == "CLOSED":
            return
        self.status = "CLOSED"
        if self.websocket.application_state is WebSocketState.CONNECTED:
            await self.websocket.close(code=1000, reason=reason)


@router.websocket("/ws")
async def rpc_socket(websocket: WebSocket):
    runtime: RpcRuntime = websocket.app.state.runtime
    await websocket.accept()

    conn_id = new_connection_id("ws")
    client_ip = client_ip_from(websocket.headers, websocket.client)
    connection = WebSocketConnection(websocket)
    await runtime.directory.open(conn_id, client_ip, connection)

    in_flight: set[asyncio.Task] = set()
    reason = None
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                reason = f"client disconnected ({message.get('code', 1000)})"
                break
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            context = create_call_context(
                conn_id, client_ip, verbose=runtime.options.debug, prefix="WS",
            )
            task = asyncio.create_task(_handle_frame(runtime, connection, raw, context))
            in_flight.add(task)
            task.add_done_callback(_frame_done(in_flight, context))
    finally:
        connection.status = "CLOSED"
        try:
            await runtime.directory.close(conn_id, reason)
        finally:
            if in_flight:
                await asyncio.gather(*list(in_flight), return_exceptions=True)


def _frame_done(in_flight: set[asyncio.Task], context: CallContext):
    def callback(task: asyncio.Task) -> None:
        in_flight.discard(task)
        if not task.cancelled() and task.exception() is not None:
            context.logger.warning(f"Frame handling failed: {task.exception()}")

    return callback


async def _handle_frame(
    runtime: RpcRuntime, connection: WebSocketConnection, raw: str | bytes | None,
    context: CallContext,
) -> None:
    call = runtime.dispatcher.parse_server_input(raw) if raw is not None else None
    if call is None:
        context.logger.debug("Invalid frame received")
        await _reply(runtime, connection, ApiFailure(InvalidInputError().to_error_info()))
        return

    envelope = await runtime.dispatcher.dispatch(call, context)
    if envelope is not None:
        await _reply(runtime, connection, envelope)


async def _reply(runtime: RpcRuntime, connection: WebSocketConnection, envelope: ApiReturn) -> None:
    try:
        data = runtime.codec.serialize(envelope.to_dict())
    except (TypeError, ValueError) as e:
        logger.error(f"Envelope serialization failed: {e}")
        failure = ApiFailure(InternalError(f"Response serialization failed: {e}").to_error_info(), envelope.sn)
        data = runtime.codec.serialize(failure.to_dict())
    await connection.write(data)
