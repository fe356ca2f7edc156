"""Error Hierarchy — typed exceptions that all collapse to one {message, code, type} shape.

Invariants:
    - Every error has a message (str), code (str), type ("ClientError" | "ServerError")
    - ClientError = the caller sent something invalid; ServerError = everything else
    - to_error_info() is the only way an exception becomes an envelope error
    - No exception crosses the dispatcher boundary uncaught

Design Decisions:
    - Single hierarchy with RpcError base: handlers raise it (or a subclass) to pass
      a domain code through verbatim (ADR: uniform error shape)
    - code/type stored as plain str: user handlers may invent their own codes,
      built-ins come from ErrorCode/ErrorType
    - http_status only matters to the HTTP binding; the envelope never carries it
"""

from enum import Enum

from lightrpc.core.envelope import ErrorInfo


class ErrorType(str, Enum):
    """Top-level error taxonomy."""
    CLIENT = "ClientError"
    SERVER = "ServerError"


class ErrorCode(str, Enum):
    """Built-in error codes produced by the dispatcher and directory."""
    INVALID_REQUEST = "INVALID_REQUEST"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    INVALID_MESSAGE = "INVALID_MESSAGE"
    INVALID_INPUT = "INVALID_INPUT"
    HANDLER_NOT_FOUND = "HANDLER_NOT_FOUND"
    FLOW_CANCELED = "FLOW_CANCELED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVER_ERROR = "SERVER_ERROR"
    CONNECTION_NOT_FOUND = "CONNECTION_NOT_FOUND"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"


class RpcError(Exception):
    """Base exception for every failure that reaches a caller."""

    def __init__(
        self,
        message: str,
        code: str = ErrorCode.SERVER_ERROR.value,
        type: str = ErrorType.SERVER.value,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = str(getattr(code, "value", code))
        self.type = str(getattr(type, "value", type))
        self.http_status = http_status

    def to_error_info(self) -> ErrorInfo:
        return ErrorInfo(message=self.message, code=self.code, type=self.type)

    def to_response(self, sn: int | None = None) -> dict:
        """Convert to the failure envelope wire shape."""
        body = {"isSucc": False, "err": self.to_error_info().to_dict()}
        if sn is not None:
            body["sn"] = sn
        return body


# ─── Client Errors (400-level) ──────────────────────────────────

class InvalidRequestError(RpcError):
    """Request payload rejected by its validator."""
    def __init__(self, api_name: str):
        super().__init__(
            f"Invalid request data for API: {api_name}",
            ErrorCode.INVALID_REQUEST, ErrorType.CLIENT, 400,
        )
        self.api_name = api_name


class InvalidInputError(RpcError):
    """Wire frame could not be decoded into a call."""
    def __init__(self, message: str = "Invalid input format"):
        super().__init__(
            message, ErrorCode.INVALID_INPUT, ErrorType.CLIENT, 400,
        )


# ─── Server Errors (500-level) ──────────────────────────────────

class InvalidResponseError(RpcError):
    """Handler returned a value its response validator rejects."""
    def __init__(self, api_name: str):
        super().__init__(
            f"Invalid response data for API: {api_name}",
            ErrorCode.INVALID_RESPONSE, ErrorType.SERVER, 500,
        )
        self.api_name = api_name


class InvalidMessageError(RpcError):
    """Outgoing or incoming message rejected by its validator."""
    def __init__(self, msg_name: str):
        super().__init__(
            f"Invalid message data for: {msg_name}",
            ErrorCode.INVALID_MESSAGE, ErrorType.SERVER, 500,
        )
        self.msg_name = msg_name


class HandlerNotFoundError(RpcError):
    """No handler implements the requested API."""
    def __init__(self, api_name: str):
        super().__init__(
            f"No handler found for API: {api_name}",
            ErrorCode.HANDLER_NOT_FOUND, ErrorType.SERVER, 500,
        )
        self.api_name = api_name


class FlowCanceledError(RpcError):
    """A gating flow hook rejected the operation."""
    def __init__(self, operation: str, point: str, reason: str | None = None):
        message = f"{operation} canceled by {point} flow"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message, ErrorCode.FLOW_CANCELED, ErrorType.SERVER, 500,
        )
        self.point = point
        self.reason = reason


class InternalError(RpcError):
    """Anonymous exception raised by a handler or hook."""
    def __init__(self, message: str = "Internal server error"):
        super().__init__(
            message or "Internal server error",
            ErrorCode.INTERNAL_ERROR, ErrorType.SERVER, 500,
        )


class ConnectionNotFoundError(RpcError):
    """Addressed send to a connection the directory does not track."""
    def __init__(self, conn_id: str):
        super().__init__(
            f"Connection not found: {conn_id}",
            ErrorCode.CONNECTION_NOT_FOUND, ErrorType.SERVER, 404,
        )
        self.conn_id = conn_id


class TransportWriteError(RpcError):
    """A connection handle could not deliver bytes."""
    def __init__(self, message: str, http_status: int = 500):
        super().__init__(
            message, ErrorCode.TRANSPORT_ERROR, ErrorType.SERVER, http_status,
        )


def transport_error_response(status_code: int, message: str) -> dict:
    """Envelope for transport-level failures (oversized body, bad path, ...)."""
    return {
        "isSucc": False,
        "err": {
            "message": message,
            "code": str(status_code),
            "type": ErrorType.SERVER.value,
        },
    }
