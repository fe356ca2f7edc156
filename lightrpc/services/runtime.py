"""RPC Runtime — explicit wiring of registry, flows, codec, dispatcher and directory.

Invariants:
    - One runtime = one id space: registry, dispatcher and directory share the
      same ProtocolOptions, FlowPipeline and Codec
    - status follows CLOSED → OPENING → OPENED → CLOSING → CLOSED, driven by the
      application lifespan

Design Decisions:
    - Factory function over a container framework: the graph is five objects
      (ADR: explicit over magic)
    - Thin delegating methods so application code registers services on the
      runtime without reaching into its parts
"""

from dataclasses import dataclass, field
from typing import Any, Iterable

from lightrpc.core.codec import Codec
from lightrpc.core.domain_types import ServerStatus
from lightrpc.core.envelope import BroadcastResult, SendResult
from lightrpc.core.flows import FlowPipeline
from lightrpc.core.options import ProtocolOptions
from lightrpc.core.registry import ServiceRegistry
from lightrpc.services.connections import ConnectionDirectory
from lightrpc.services.dispatcher import ApiHandler, Dispatcher, MsgHandler


@dataclass
class RpcRuntime:
    options: ProtocolOptions
    registry: ServiceRegistry
    flows: FlowPipeline
    codec: Codec
    dispatcher: Dispatcher
    directory: ConnectionDirectory
    status: ServerStatus = field(default=ServerStatus.CLOSED)

    def implement_api(self, api_name: str, handler: ApiHandler, *, req: Any = None, res: Any = None) -> int:
        return self.dispatcher.implement_api(api_name, handler, req=req, res=res)

    def listen_msg(self, msg_name: str, handler: MsgHandler, *, validator: Any = None) -> int:
        return self.dispatcher.listen_msg(msg_name, handler, validator=validator)

    def set_flows(self, **hooks) -> None:
        self.flows.set_flows(**hooks)

    async def send_msg(self, conn_id: str, msg_name: str, msg: Any) -> SendResult:
        return await self.directory.send_msg(conn_id, msg_name, msg)

    async def broadcast_msg(
        self, msg_name: str, msg: Any, exclude: Iterable[str] | None = None,
    ) -> BroadcastResult:
        return await self.directory.broadcast_msg(msg_name, msg, exclude)

    def server_info(self) -> dict:
        return {
            "status": self.status.value,
            "protocol": self.dispatcher.get_protocol_stats(),
            "connections": len(self.directory),
        }


def create_runtime(options: ProtocolOptions | None = None) -> RpcRuntime:
    """Build a fully wired runtime. Each call gets a fresh id space."""
    options = options or ProtocolOptions()
    registry = ServiceRegistry(options)
    flows = FlowPipeline()
    codec = Codec(options.serialization_mode)
    return RpcRuntime(
        options=options,
        registry=registry,
        flows=flows,
        codec=codec,
        dispatcher=Dispatcher(registry, flows, codec),
        directory=ConnectionDirectory(registry, flows, codec),
    )
