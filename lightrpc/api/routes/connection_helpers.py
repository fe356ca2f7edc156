"""Connection Helpers — ids and client addresses shared by the HTTP and WebSocket bindings.

Invariants:
    - Connection ids are "<transport>_<epoch ms>_<9 lowercase alphanumerics>"
    - Client IP precedence: X-Forwarded-For (first hop) → X-Real-IP → peer → "unknown"
"""

import random
import string
import time
from typing import Mapping

from starlette.datastructures import Address

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_connection_id(transport: str) -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{transport}_{int(time.time() * 1000)}_{suffix}"


def client_ip_from(headers: Mapping[str, str], peer: Address | None) -> str:
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if peer is not None and peer.host:
        return peer.host
    return "unknown"
