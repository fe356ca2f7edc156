"""Service Registry — name↔id bookkeeping and per-service validators.

Invariants:
    - Ids come from one counter shared by the api and msg namespaces, starting at 0
    - Registration is idempotent by name: a known name returns its existing id and
      never advances the counter; validators on a repeated registration are ignored
    - Mappings are append-only; only reset() clears them
    - validate_* never raise: a failing or raising validator → False (debug log)
    - Fallback order: validation disabled → explicit validator → custom_validators
      map → accept all
    - custom_validators are coerced once at construction; a malformed entry
      raises TypeError/ValueError there, never during validation

Design Decisions:
    - Owned object passed to the dispatcher, not a module singleton: each runtime
      (and each test) gets its own id space
    - Registration is expected during a quiescent setup phase; no locking around
      the tables (single event loop, ADR: cooperative scheduling)
    - Explicit validators kept only while validation is enabled, so the published
      protocol never advertises checks that will not run
"""

import logging
from typing import Any

from lightrpc.core.domain_types import ServiceId, ServiceKind
from lightrpc.core.options import ProtocolOptions
from lightrpc.core.validators import (
    NO_VALIDATOR, ApiValidators, ServiceValidator, as_validator,
)

logger = logging.getLogger(__name__)


class ServiceRegistry:
    """Runtime protocol tables for one dispatcher."""

    def __init__(self, options: ProtocolOptions | None = None):
        self.options = options or ProtocolOptions()
        self._custom_validators = _resolve_custom_validators(self.options.custom_validators)
        self._init_tables()

    def _init_tables(self) -> None:
        self._api_name_to_id: dict[str, ServiceId] = {}
        self._id_to_api_name: dict[ServiceId, str] = {}
        self._msg_name_to_id: dict[str, ServiceId] = {}
        self._id_to_msg_name: dict[ServiceId, str] = {}
        self._next_id = 0
        self._api_validators: dict[str, ApiValidators] = {}
        self._msg_validators: dict[str, ServiceValidator] = {}

    @property
    def next_id(self) -> int:
        return self._next_id

    # -- registration ------------------------------------------------------

    def register_api(self, api_name: str, validators: ApiValidators | dict | None = None) -> ServiceId:
        """Register an API name; `validators` may be ApiValidators or {"req": .., "res": ..}."""
        _check_name(api_name)
        existing = self._api_name_to_id.get(api_name)
        if existing is not None:
            return existing

        service_id = self._allocate_id()
        self._api_name_to_id[api_name] = service_id
        self._id_to_api_name[service_id] = api_name

        if validators is not None and self.options.enable_validation:
            if isinstance(validators, dict):
                validators = ApiValidators.build(validators.get("req"), validators.get("res"))
            if validators.has_validator:
                self._api_validators[api_name] = validators

        self._debug(f"Registered API: {api_name} -> ID: {service_id}")
        return service_id

    def register_msg(self, msg_name: str, validator: Any = None) -> ServiceId:
        _check_name(msg_name)
        existing = self._msg_name_to_id.get(msg_name)
        if existing is not None:
            return existing

        service_id = self._allocate_id()
        self._msg_name_to_id[msg_name] = service_id
        self._id_to_msg_name[service_id] = msg_name

        if validator is not None and self.options.enable_validation:
            resolved = as_validator(validator)
            if resolved.has_validator:
                self._msg_validators[msg_name] = resolved

        self._debug(f"Registered message: {msg_name} -> ID: {service_id}")
        return service_id

    def _allocate_id(self) -> ServiceId:
        service_id = ServiceId(self._next_id)
        self._next_id += 1
        return service_id

    # -- lookup ------------------------------------------------------------

    def get_service_id(self, service_name: str, kind: ServiceKind | str) -> ServiceId | None:
        if ServiceKind(kind) is ServiceKind.API:
            return self._api_name_to_id.get(service_name)
        return self._msg_name_to_id.get(service_name)

    def get_service_name(self, service_id: int, kind: ServiceKind | str) -> str | None:
        if ServiceKind(kind) is ServiceKind.API:
            return self._id_to_api_name.get(service_id)
        return self._id_to_msg_name.get(service_id)

    def has_api(self, api_name: str) -> bool:
        return api_name in self._api_name_to_id

    def has_msg(self, msg_name: str) -> bool:
        return msg_name in self._msg_name_to_id

    def get_api_validators(self, api_name: str) -> ApiValidators | None:
        return self._api_validators.get(api_name)

    def get_msg_validator(self, msg_name: str) -> ServiceValidator:
        return self._msg_validators.get(msg_name, NO_VALIDATOR)

    # -- validation --------------------------------------------------------

    def validate_request(self, api_name: str, data: Any) -> bool:
        validators = self._api_validators.get(api_name)
        explicit = validators.req if validators else NO_VALIDATOR
        return self._validate(api_name, "req", explicit, data, "API request")

    def validate_response(self, api_name: str, data: Any) -> bool:
        validators = self._api_validators.get(api_name)
        explicit = validators.res if validators else NO_VALIDATOR
        return self._validate(api_name, "res", explicit, data, "API response")

    def validate_message(self, msg_name: str, data: Any) -> bool:
        explicit = self._msg_validators.get(msg_name, NO_VALIDATOR)
        return self._validate(msg_name, "msg", explicit, data, "Message")

    def _validate(
        self, name: str, direction: str, explicit: ServiceValidator,
        data: Any, label: str,
    ) -> bool:
        if not self.options.enable_validation:
            return True

        validator = explicit
        if not validator.has_validator:
            validator = self._custom_validators.get(name, {}).get(direction, NO_VALIDATOR)
            if not validator.has_validator:
                return True

        try:
            is_valid = validator.validate(data)
        except Exception as e:
            self._debug(f"{label} validator raised for {name}: {e}")
            return False
        if not is_valid:
            self._debug(f"{label} validation failed: {name} {data!r}")
        return is_valid

    # -- protocol descriptor -----------------------------------------------

    def get_service_map(self) -> dict:
        return {
            "apiName2Id": dict(self._api_name_to_id),
            "id2ApiName": dict(self._id_to_api_name),
            "msgName2Id": dict(self._msg_name_to_id),
            "id2MsgName": dict(self._id_to_msg_name),
            "nextId": self._next_id,
        }

    def get_protocol(self) -> dict:
        return {
            "apiNames": list(self._api_name_to_id),
            "msgNames": list(self._msg_name_to_id),
            "validators": {
                "api": {
                    name: {
                        "req": v.req.has_validator,
                        "res": v.res.has_validator,
                    }
                    for name, v in self._api_validators.items()
                },
                "msg": {name: True for name in self._msg_validators},
            },
        }

    def generate_compatible_protocol(self) -> dict:
        """Service table plus placeholder type entries an external layer can publish."""
        services = [
            {"id": service_id, "name": name, "type": ServiceKind.API.value}
            for name, service_id in self._api_name_to_id.items()
        ]
        services.extend(
            {"id": service_id, "name": name, "type": ServiceKind.MSG.value}
            for name, service_id in self._msg_name_to_id.items()
        )

        # Lightweight: no schemas, properties are inferred at runtime
        types: dict[str, dict] = {}
        for service in services:
            if service["type"] == ServiceKind.API.value:
                types[f"{service['name']}/Req"] = {"type": "Interface", "properties": []}
                types[f"{service['name']}/Res"] = {"type": "Interface", "properties": []}
            else:
                types[f"{service['name']}/Msg"] = {"type": "Interface", "properties": []}

        return {"services": services, "types": types}

    def get_stats(self) -> dict:
        return {
            "totalApis": len(self._api_name_to_id),
            "totalMsgs": len(self._msg_name_to_id),
            "totalServices": self._next_id,
            "validationEnabled": self.options.enable_validation,
            "serializationMode": self.options.serialization_mode.value,
        }

    def reset(self) -> None:
        """Drop every mapping and restart ids at 0. Setup/test use only."""
        self._init_tables()

    def _debug(self, message: str) -> None:
        if self.options.debug:
            logger.debug(message)


def _check_name(name: str) -> None:
    if not isinstance(name, str) or not name:
        raise ValueError("Service name must be a non-empty string")


CUSTOM_DIRECTIONS = ("req", "res", "msg")


def _resolve_custom_validators(custom: dict) -> dict[str, dict[str, ServiceValidator]]:
    """Coerce {name: {"req"|"res"|"msg": validator}} once; bad config fails here."""
    if not isinstance(custom, dict):
        raise TypeError("custom_validators must be a dict of {service_name: {direction: validator}}")

    resolved: dict[str, dict[str, ServiceValidator]] = {}
    for name, entry in custom.items():
        if not isinstance(entry, dict):
            raise TypeError(
                f"custom_validators[{name!r}] must be a dict keyed by 'req', 'res' or 'msg'",
            )
        unknown = set(entry) - set(CUSTOM_DIRECTIONS)
        if unknown:
            raise ValueError(f"custom_validators[{name!r}] has unknown directions: {sorted(unknown)}")
        try:
            resolved[name] = {direction: as_validator(v) for direction, v in entry.items()}
        except TypeError as e:
            raise TypeError(f"custom_validators[{name!r}]: {e}") from e
    return resolved
