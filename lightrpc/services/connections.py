"""Connection Directory — active logical connections for addressed and broadcast sends.

Invariants:
    - One record per conn_id; open() on a known id replaces the old record
    - close() on an unknown id is a no-op; close_connection() reports False
    - send_msg never raises: every failure is a SendResult(is_succ=False, err_msg)
    - Send order: connection lookup → message validation → pre_msg_send gate →
      serialize → handle.write
    - broadcast_msg is_succ iff every targeted connection succeeded

Design Decisions:
    - ConnectionHandle Protocol is the transport capability: the directory never
      knows whether bytes go to a WebSocket, a test double, or nowhere
    - on_connect / on_disconnect observe only: a failing hook cannot keep a
      connection open or closed
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol, runtime_checkable

from lightrpc.core.codec import Codec
from lightrpc.core.context import CallContext, create_call_context
from lightrpc.core.domain_types import ConnectionId, ServiceKind
from lightrpc.core.envelope import BroadcastResult, ConnectionSendReport, SendResult
from lightrpc.core.errors import (
    ConnectionNotFoundError, FlowCanceledError, InvalidMessageError,
)
from lightrpc.core.flows import FlowPipeline, FlowPoint
from lightrpc.core.registry import ServiceRegistry
from lightrpc.schemas.call import outgoing_msg_frame

logger = logging.getLogger(__name__)


@runtime_checkable
class ConnectionHandle(Protocol):
    """Transport capability for one logical connection."""

    @property
    def status(self) -> str: ...

    async def write(self, data: str | bytes) -> None: ...

    def close(self, reason: str | None = None) -> Any: ...


@dataclass
class ConnectionRecord:
    conn_id: ConnectionId
    client_ip: str
    handle: ConnectionHandle
    opened_at: float = field(default_factory=time.time)


class ConnectionDirectory:
    """Table of live connections plus addressed/broadcast message send."""

    def __init__(self, registry: ServiceRegistry, flows: FlowPipeline, codec: Codec):
        self.registry = registry
        self.flows = flows
        self.codec = codec
        self._connections: dict[ConnectionId, ConnectionRecord] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, conn_id: object) -> bool:
        return conn_id in self._connections

    def get(self, conn_id: str) -> ConnectionRecord | None:
        return self._connections.get(conn_id)

    def list_connections(self) -> list[dict]:
        return [
            {
                "id": record.conn_id,
                "ip": record.client_ip or "unknown",
                "status": getattr(record.handle, "status", None) or "unknown",
            }
            for record in self._connections.values()
        ]

    def _context(self, conn_id: str, client_ip: str) -> CallContext:
        return create_call_context(
            conn_id, client_ip, verbose=self.registry.options.debug,
        )

    # -- lifecycle ---------------------------------------------------------

    async def open(self, conn_id: str, client_ip: str, handle: ConnectionHandle) -> ConnectionRecord:
        if conn_id in self._connections:
            logger.warning(f"Connection id reused, replacing record: {conn_id}")
        record = ConnectionRecord(conn_id=conn_id, client_ip=client_ip, handle=handle)
        self._connections[conn_id] = record

        await self.flows.observe(
            FlowPoint.ON_CONNECT,
            {"conn_id": conn_id, "client_ip": client_ip},
            self._context(conn_id, client_ip),
        )
        self._debug(f"Connection established: {conn_id} from {client_ip}")
        return record

    async def close(self, conn_id: str, reason: str | None = None) -> None:
        record = self._connections.pop(conn_id, None)
        if record is None:
            return

        await self.flows.observe(
            FlowPoint.ON_DISCONNECT,
            {"conn_id": conn_id, "reason": reason},
            self._context(conn_id, record.client_ip),
        )
        self._debug(f"Connection closed: {conn_id}{f' ({reason})' if reason else ''}")

    async def close_connection(self, conn_id: str, reason: str | None = None) -> bool:
        """Ask the transport to close the connection, then forget it."""
        record = self._connections.get(conn_id)
        if record is None:
            return False

        try:
            result = record.handle.close(reason)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"Closing connection {conn_id} failed: {e}")
        await self.close(conn_id, reason)
        return True

    # -- sending -----------------------------------------------------------

    async def send_msg(self, conn_id: str, msg_name: str, msg: Any) -> SendResult:
        record = self._connections.get(conn_id)
        if record is None:
            return SendResult(False, ConnectionNotFoundError(conn_id).message)

        try:
            if not self.registry.validate_message(msg_name, msg):
                return SendResult(False, InvalidMessageError(msg_name).message)

            if self.flows.has_flow(FlowPoint.PRE_MSG_SEND):
                decision = await self.flows.gate(
                    FlowPoint.PRE_MSG_SEND,
                    {"msg_name": msg_name, "msg": msg, "conn_id": conn_id},
                    self._context(conn_id, record.client_ip),
                )
                if not decision.allowed:
                    err = FlowCanceledError(
                        "Message send", FlowPoint.PRE_MSG_SEND.value, decision.reason,
                    )
                    return SendResult(False, err.message)

            service_id = self.registry.get_service_id(msg_name, ServiceKind.MSG)
            data = self.codec.serialize(outgoing_msg_frame(msg_name, service_id, msg))
            await record.handle.write(data)
        except Exception as e:
            logger.error(
                f"Send message {msg_name} to {conn_id} failed: {e}",
                extra={"conn_id": conn_id, "service_name": msg_name},
            )
            return SendResult(False, str(e) or "Send message failed")

        return SendResult(True)

    async def broadcast_msg(
        self, msg_name: str, msg: Any, exclude: Iterable[str] | None = None,
    ) -> BroadcastResult:
        excluded = set(exclude or ())
        targets = [conn_id for conn_id in self._connections if conn_id not in excluded]

        outcomes = await asyncio.gather(*(
            self.send_msg(conn_id, msg_name, msg) for conn_id in targets
        ))
        results = [
            ConnectionSendReport(conn_id=conn_id, success=outcome.is_succ, error=outcome.err_msg)
            for conn_id, outcome in zip(targets, outcomes)
        ]

        failed = sum(1 for r in results if not r.success)
        return BroadcastResult(
            is_succ=failed == 0,
            err_msg=f"{failed} connections failed to receive message" if failed else None,
            results=results,
        )

    def _debug(self, message: str) -> None:
        if self.registry.options.debug:
            logger.debug(message)
