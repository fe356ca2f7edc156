"""Call Schemas — the wire frame and the parsed call descriptor handed to the dispatcher.

Invariants:
    - CallFrame.type is "api" or "msg"; serviceName is non-empty
    - sn, when present, is a non-negative int and is echoed on the API envelope
    - ParsedInput is what every transport hands the dispatcher, whatever the wire format

Design Decisions:
    - Wire keys stay camelCase (serviceName) via alias; Python attributes are snake_case
    - data is Any: payload shape is the registry validators' concern, not the frame's
"""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from lightrpc.core.domain_types import ServiceId, ServiceKind, ServiceName


class CallFrame(BaseModel):
    """{"type": "api"|"msg", "serviceName": str, "data": any, "sn"?: int}"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: ServiceKind
    service_name: str = Field(alias="serviceName", min_length=1)
    data: Any = None
    sn: int | None = Field(None, ge=0)


@dataclass(frozen=True)
class ParsedInput:
    kind: ServiceKind
    service_name: ServiceName
    data: Any = None
    sn: int | None = None
    service_id: ServiceId | None = None

    @classmethod
    def api(cls, service_name: str, data: Any = None, sn: int | None = None) -> "ParsedInput":
        return cls(kind=ServiceKind.API, service_name=service_name, data=data, sn=sn)

    @classmethod
    def msg(cls, service_name: str, data: Any = None) -> "ParsedInput":
        return cls(kind=ServiceKind.MSG, service_name=service_name, data=data)


def outgoing_msg_frame(msg_name: str, service_id: int | None, data: Any) -> dict:
    """Frame for a server-pushed message."""
    return {
        "type": ServiceKind.MSG.value,
        "serviceName": msg_name,
        "serviceId": service_id,
        "data": data,
    }
