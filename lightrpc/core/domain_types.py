"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - ServiceId is a non-negative int drawn from one counter shared by api and msg
    - ServiceName and ConnectionId wrap str; never pass raw ids between layers
    - All valid states encoded as Enums, no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: compare equal to their wire strings ("api", "json", ...)
"""

from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

ServiceName = NewType("ServiceName", str)
ServiceId = NewType("ServiceId", int)
ConnectionId = NewType("ConnectionId", str)


# ─── Enums ───────────────────────────────────────────────────────

class ServiceKind(str, Enum):
    """The two independent service namespaces."""
    API = "api"
    MSG = "msg"


class SerializationMode(str, Enum):
    """Codec output selection. AUTO picks BINARY above a size threshold."""
    JSON = "json"
    BINARY = "binary"
    AUTO = "auto"


class ServerStatus(str, Enum):
    """Transport lifecycle states reported by the health route."""
    CLOSED = "CLOSED"
    OPENING = "OPENING"
    OPENED = "OPENED"
    CLOSING = "CLOSING"
