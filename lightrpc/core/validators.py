"""Validators — per-service optional capability behind one strategy interface.

Invariants:
    - Every validator exposes has_validator (bool) and validate(data) -> bool
    - NO_VALIDATOR.has_validator is False and accepts everything; an explicit
      validator returning False is always distinguishable from "no validator"
    - ModelValidator never raises on invalid data: pydantic ValidationError → False

Design Decisions:
    - Protocol over ABC: user objects with the two members qualify without inheritance
    - as_validator() is the single coercion point: None, predicates, pydantic models
      and type annotations all become ServiceValidator
    - pydantic TypeAdapter for type-shaped validators: same engine as the API schemas
"""

from dataclasses import dataclass
from typing import Any, Callable, Protocol, get_origin, runtime_checkable

from pydantic import TypeAdapter, ValidationError


@runtime_checkable
class ServiceValidator(Protocol):
    """Structural contract for a payload validator bound to one service/direction."""
    has_validator: bool

    def validate(self, data: Any) -> bool: ...


class _NoValidator:
    """Absence of a validator: accept all."""
    has_validator = False

    def validate(self, data: Any) -> bool:
        return True

    def __repr__(self) -> str:
        return "NO_VALIDATOR"


NO_VALIDATOR = _NoValidator()


class PredicateValidator:
    """Wraps a plain `fn(data) -> bool`."""
    has_validator = True

    def __init__(self, predicate: Callable[[Any], Any]):
        self.predicate = predicate

    def validate(self, data: Any) -> bool:
        return bool(self.predicate(data))

    def __repr__(self) -> str:
        name = getattr(self.predicate, "__name__", repr(self.predicate))
        return f"PredicateValidator({name})"


class ModelValidator:
    """Validates data against a pydantic model or any type annotation."""
    has_validator = True

    def __init__(self, annotation: Any, strict: bool = False):
        self.annotation = annotation
        self.strict = strict
        self._adapter = TypeAdapter(annotation)

    def validate(self, data: Any) -> bool:
        try:
            self._adapter.validate_python(data, strict=self.strict)
        except ValidationError:
            return False
        return True

    def __repr__(self) -> str:
        name = getattr(self.annotation, "__name__", repr(self.annotation))
        return f"ModelValidator({name})"


def as_validator(candidate: Any) -> ServiceValidator:
    """Coerce None / predicate / model / annotation into a ServiceValidator."""
    if candidate is None:
        return NO_VALIDATOR
    if isinstance(candidate, ServiceValidator):
        return candidate
    # Classes are callable too: types must be checked before predicates
    if isinstance(candidate, type) or get_origin(candidate) is not None:
        return ModelValidator(candidate)
    if callable(candidate):
        return PredicateValidator(candidate)
    raise TypeError(f"Cannot use {candidate!r} as a validator")


@dataclass(frozen=True)
class ApiValidators:
    """Direction-scoped validators for one API: request and response independently."""
    req: ServiceValidator = NO_VALIDATOR
    res: ServiceValidator = NO_VALIDATOR

    @classmethod
    def build(cls, req: Any = None, res: Any = None) -> "ApiValidators":
        return cls(req=as_validator(req), res=as_validator(res))

    @property
    def has_validator(self) -> bool:
        return self.req.has_validator or self.res.has_validator
