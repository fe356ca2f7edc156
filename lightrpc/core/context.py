"""Call Context — ephemeral per-invocation record handed to handlers and hooks.

Invariants:
    - One CallContext per call; never shared across calls or persisted
    - logger messages are prefixed with "[<conn_id>]" and carry conn_id as an extra field
    - Debug records are dropped unless the context was created with verbose=True

Design Decisions:
    - LoggerAdapter over a custom logger object: handlers use the stdlib API
      (info/warning/error/debug) and records flow through the normal handler chain
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any

CALL_LOGGER_NAME = "lightrpc.call"


class CallLogger(logging.LoggerAdapter):
    """Per-call logger: connection-prefixed, debug gated by `verbose`."""

    def __init__(self, logger: logging.Logger, conn_id: str, prefix: str = "", verbose: bool = False):
        super().__init__(logger, {"conn_id": conn_id})
        self.conn_id = conn_id
        self.prefix = prefix
        self.verbose = verbose

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("conn_id", self.conn_id)
        kwargs["extra"] = extra
        tag = f"{self.prefix} {self.conn_id}" if self.prefix else self.conn_id
        return f"[{tag}] {msg}", kwargs

    def isEnabledFor(self, level: int) -> bool:
        if level <= logging.DEBUG and not self.verbose:
            return False
        return super().isEnabledFor(level)


@dataclass
class CallContext:
    conn_id: str
    client_ip: str
    logger: CallLogger
    start_time: float = field(default_factory=time.time)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def elapsed_ms(self) -> float:
        return (time.time() - self.start_time) * 1000


def create_call_context(
    conn_id: str,
    client_ip: str = "unknown",
    *,
    extra: dict[str, Any] | None = None,
    verbose: bool = False,
    prefix: str = "",
) -> CallContext:
    """Build a fresh context with its own connection-scoped logger."""
    logger = CallLogger(
        logging.getLogger(CALL_LOGGER_NAME), conn_id, prefix=prefix, verbose=verbose,
    )
    return CallContext(
        conn_id=conn_id, client_ip=client_ip, logger=logger, extra=dict(extra or {}),
    )
