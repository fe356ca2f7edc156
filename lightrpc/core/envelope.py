"""Result Envelopes — the uniform success/failure shape returned for every API call.

Invariants:
    - is_succ fully determines the shape: ApiSuccess has res, ApiFailure has err
    - sn (sequence number) is echoed on both shapes and omitted from the wire when None
    - Send/broadcast reports never raise; failures are data

Design Decisions:
    - Frozen dataclasses over dicts: one constructor per shape, no half-built envelopes
    - camelCase only at the wire boundary (to_dict); Python side stays snake_case
"""

from dataclasses import dataclass, field, replace
from typing import Any, ClassVar, Union


# Acknowledgement body written back for message calls over request/response transports.
MSG_ACK = {"success": True}


@dataclass(frozen=True)
class ErrorInfo:
    message: str
    code: str
    type: str

    def to_dict(self) -> dict:
        return {"message": self.message, "code": self.code, "type": self.type}


@dataclass(frozen=True)
class ApiSuccess:
    res: Any
    sn: int | None = None
    is_succ: ClassVar[bool] = True

    def with_sn(self, sn: int | None) -> "ApiSuccess":
        return replace(self, sn=sn)

    def to_dict(self) -> dict:
        body = {"isSucc": True, "res": self.res}
        if self.sn is not None:
            body["sn"] = self.sn
        return body


@dataclass(frozen=True)
class ApiFailure:
    err: ErrorInfo
    sn: int | None = None
    is_succ: ClassVar[bool] = False

    def with_sn(self, sn: int | None) -> "ApiFailure":
        return replace(self, sn=sn)

    def to_dict(self) -> dict:
        body = {"isSucc": False, "err": self.err.to_dict()}
        if self.sn is not None:
            body["sn"] = self.sn
        return body


ApiReturn = Union[ApiSuccess, ApiFailure]


def envelope_from_dict(body: dict) -> ApiReturn:
    """Rebuild an envelope from its wire form (client side, tests)."""
    sn = body.get("sn")
    if body.get("isSucc"):
        return ApiSuccess(res=body.get("res"), sn=sn)
    err = body.get("err") or {}
    return ApiFailure(
        err=ErrorInfo(
            message=err.get("message", ""),
            code=err.get("code", ""),
            type=err.get("type", ""),
        ),
        sn=sn,
    )


# ─── Send reports ────────────────────────────────────────────────

@dataclass(frozen=True)
class SendResult:
    is_succ: bool
    err_msg: str | None = None

    def to_dict(self) -> dict:
        body: dict = {"isSucc": self.is_succ}
        if self.err_msg is not None:
            body["errMsg"] = self.err_msg
        return body


@dataclass(frozen=True)
class ConnectionSendReport:
    conn_id: str
    success: bool
    error: str | None = None


@dataclass(frozen=True)
class BroadcastResult:
    is_succ: bool
    err_msg: str | None = None
    results: list[ConnectionSendReport] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    def to_dict(self) -> dict:
        body: dict = {
            "isSucc": self.is_succ,
            "results": [
                {"connId": r.conn_id, "success": r.success, "error": r.error}
                for r in self.results
            ],
        }
        if self.err_msg is not None:
            body["errMsg"] = self.err_msg
        return body
