"""Protocol Options — the configuration surface the core components read.

Invariants:
    - Options are fixed at construction; components never mutate them
    - serialization_mode is always a SerializationMode after __post_init__

Design Decisions:
    - Plain dataclass, not pydantic-settings: custom_validators holds callables that
      cannot come from the environment (config.Settings builds this object)
"""

from dataclasses import dataclass, field
from typing import Any

from lightrpc.core.domain_types import SerializationMode


@dataclass
class ProtocolOptions:
    enable_validation: bool = True
    debug: bool = False
    serialization_mode: SerializationMode = SerializationMode.AUTO
    # {service_name: {"req": fn, "res": fn, "msg": fn}}, consulted after explicit validators
    custom_validators: dict[str, dict[str, Any]] = field(default_factory=dict)
    # False → anonymous handler exceptions reported as "Internal server error"
    expose_internal_errors: bool = True

    def __post_init__(self) -> None:
        self.serialization_mode = SerializationMode(self.serialization_mode)
