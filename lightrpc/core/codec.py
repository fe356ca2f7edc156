"""Codec — payload (de)serialization and encoding-mode selection.

Invariants:
    - deserialize(serialize(x)) == x for any JSON-representable x, in every mode
    - JSON mode returns str; BINARY mode returns bytes (the same text, UTF-8)
    - AUTO returns str when the JSON text is <= AUTO_BINARY_THRESHOLD chars, bytes above
    - NaN / Infinity are rejected (ValueError): they are not JSON

Design Decisions:
    - "binary" is UTF-8 JSON, not a compact codec: wire-compatible with existing
      clients; swapping in msgpack/protobuf would change the wire format
    - Compact separators + ensure_ascii=False: text length matches what JS clients
      measure for the same payload, so the AUTO boundary agrees on both sides
"""

import json
from typing import Any

from lightrpc.core.domain_types import SerializationMode

AUTO_BINARY_THRESHOLD = 1024


class Codec:
    """Stateless serializer bound to a default SerializationMode."""

    def __init__(self, mode: SerializationMode | str = SerializationMode.AUTO):
        self.mode = SerializationMode(mode)

    @staticmethod
    def to_text(data: Any) -> str:
        return json.dumps(
            data, separators=(",", ":"), ensure_ascii=False, allow_nan=False,
        )

    def resolve_mode(self, text: str, mode: SerializationMode | str | None = None) -> SerializationMode:
        """Pick the concrete mode (JSON or BINARY) for an already-encoded text."""
        mode = SerializationMode(mode) if mode is not None else self.mode
        if mode is SerializationMode.AUTO:
            if len(text) > AUTO_BINARY_THRESHOLD:
                return SerializationMode.BINARY
            return SerializationMode.JSON
        return mode

    def serialize(self, data: Any, mode: SerializationMode | str | None = None) -> str | bytes:
        text = self.to_text(data)
        if self.resolve_mode(text, mode) is SerializationMode.BINARY:
            return text.encode("utf-8")
        return text

    def deserialize(self, data: str | bytes | bytearray | memoryview) -> Any:
        if isinstance(data, str):
            return json.loads(data)
        return json.loads(bytes(data).decode("utf-8"))

    def encode(self, data: Any, mode: SerializationMode | str | None = None) -> bytes:
        """Serialize for a byte-oriented transport: always bytes on the wire."""
        out = self.serialize(data, mode)
        if isinstance(out, str):
            return out.encode("utf-8")
        return out
