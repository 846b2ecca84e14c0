"""Payload formats and field validators.

A *format* describes the shape of an Action payload or of a Store field.
It is compiled once, at build time, into an ordered tuple of
:class:`FieldValidator` objects; every later check works on that tuple.

Accepted formats::

    None                                  # no validation
    str, int, Kind.NUMBER, MyClass        # the whole payload ("root")
    FieldSpec(int, default=0)             # root with a default
    {"name": str,                         # field map
     "age": {"type": int, "default": 0},
     "when": FieldSpec(datetime)}

The explicit union (:class:`PrimitiveField`, :class:`CustomField`,
:class:`FieldSpec`, :class:`FieldMap`) may be used instead of the loose
forms; :func:`as_format` converts the latter into the former.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Optional, Union

from .errors import (
    InvalidFieldDefault,
    InvalidFieldType,
    InvalidFormat,
    NotEnoughFields,
    PayloadValidationFailed,
)
from .typeoracle import Kind, empty_value_of, is_constructor, is_of_type, is_primitive, kind_of, name_of

__all__ = [
    "MISSING",
    "Analysis",
    "PrimitiveField",
    "CustomField",
    "FieldSpec",
    "FieldMap",
    "FieldValidator",
    "PayloadFormat",
    "as_format",
    "compile_format",
    "sanitize",
]


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


class Analysis(Enum):
    VALID = 1
    INVALID = 2
    VALID_NEEDS_DEFAULT = 3


# ---------- explicit format union ----------


@dataclass(frozen=True, slots=True)
class PrimitiveField:
    kind: Kind


@dataclass(frozen=True, slots=True)
class CustomField:
    cls: type


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """Fully qualified field: a type plus an optional default."""

    type: Any
    default: Any = MISSING


@dataclass(frozen=True, slots=True)
class FieldMap:
    fields: Mapping[str, Any] = field(default_factory=dict)


Format = Union[PrimitiveField, CustomField, FieldSpec, FieldMap, None]


def _as_type_field(spec: Any) -> Union[PrimitiveField, CustomField, None]:
    kind = kind_of(spec)
    if kind is not None:
        return PrimitiveField(kind)
    if is_constructor(spec):
        return CustomField(spec)
    return None


def as_format(value: Any) -> Format:
    """Normalize a loose format into the explicit union."""
    if value is None or isinstance(value, (PrimitiveField, CustomField, FieldSpec, FieldMap)):
        return value
    typed = _as_type_field(value)
    if typed is not None:
        return typed
    if isinstance(value, Mapping):
        return FieldMap(dict(value))
    raise InvalidFormat(value)


# ---------- validators ----------


@dataclass(frozen=True, slots=True)
class FieldValidator:
    """Compiled rule for one payload field (``name`` is ``None`` for the root)."""

    type: Any
    default: Any = MISSING
    name: Optional[str] = None
    optional: bool = False

    @property
    def is_root(self) -> bool:
        return self.name is None

    @property
    def type_name(self) -> str:
        return name_of(self.type)

    def matches(self, value: Any) -> bool:
        return is_of_type(value, self.type)

    def accepts(self, value: Any) -> bool:
        """Like :meth:`matches`, but lets ``None`` through when it is the declared default."""
        if value is None:
            return self.optional and self.default is None
        return self.matches(value)

    def analyze(self, payload: Any) -> Analysis:
        if self.name is None:
            if payload is not None and self.matches(payload):
                return Analysis.VALID
            return Analysis.INVALID

        if not isinstance(payload, Mapping):
            return Analysis.INVALID
        if self.name in payload:
            return Analysis.VALID if self.accepts(payload[self.name]) else Analysis.INVALID
        return Analysis.VALID_NEEDS_DEFAULT if self.optional else Analysis.INVALID

    def fresh_default(self) -> Any:
        # mutable defaults must not be shared between payloads
        return copy.copy(self.default)

    def inject(self, payload: dict) -> None:
        payload[self.name] = self.fresh_default()

    @classmethod
    def from_type(cls, spec: Any, name: Optional[str] = None) -> "FieldValidator":
        if is_primitive(spec):
            return cls(type=spec, default=empty_value_of(spec), name=name, optional=False)
        if is_constructor(spec):
            # no inferable default for custom classes
            return cls(type=spec, default=MISSING, name=name, optional=False)
        raise InvalidFieldType(name, spec)

    @classmethod
    def from_spec(cls, spec: FieldSpec, name: Optional[str] = None) -> "FieldValidator":
        if not (is_primitive(spec.type) or is_constructor(spec.type)):
            raise InvalidFieldType(name, spec.type)
        if spec.default is MISSING:
            return cls(type=spec.type, default=MISSING, name=name, optional=False)
        if spec.default is not None and not is_of_type(spec.default, spec.type):
            raise InvalidFieldDefault(name, spec.default)
        return cls(type=spec.type, default=spec.default, name=name, optional=True)


def _field_validator(name: str, spec: Any) -> FieldValidator:
    if isinstance(spec, FieldSpec):
        return FieldValidator.from_spec(spec, name)
    if isinstance(spec, PrimitiveField):
        return FieldValidator.from_type(spec.kind, name)
    if isinstance(spec, CustomField):
        return FieldValidator.from_type(spec.cls, name)
    if is_primitive(spec) or is_constructor(spec):
        return FieldValidator.from_type(spec, name)
    if isinstance(spec, Mapping) and "type" in spec:
        return FieldValidator.from_spec(FieldSpec(spec["type"], spec.get("default", MISSING)), name)
    raise InvalidFieldType(name, spec)


def compile_format(value: Any) -> tuple[FieldValidator, ...]:
    """Compile a format into its validators. Pure; raises on malformed formats."""
    fmt = as_format(value)
    if fmt is None:
        return ()
    if isinstance(fmt, PrimitiveField):
        return (FieldValidator.from_type(fmt.kind),)
    if isinstance(fmt, CustomField):
        return (FieldValidator.from_type(fmt.cls),)
    if isinstance(fmt, FieldSpec):
        return (FieldValidator.from_spec(fmt),)

    validators = []
    for name, spec in fmt.fields.items():
        if not isinstance(name, str):
            raise InvalidFormat(value, message=f"field names must be strings, got {name!r}")
        validators.append(_field_validator(name, spec))
    if not validators:
        raise NotEnoughFields()
    return tuple(validators)


def sanitize(validators: tuple[FieldValidator, ...], payload: Any) -> Any:
    """Validate ``payload`` and fill in missing optional fields.

    Returns ``payload`` itself when nothing had to be injected, otherwise a
    shallow copy with the defaults added. The input is never modified.
    """
    patched: Optional[dict] = None
    for validator in validators:
        verdict = validator.analyze(payload)
        if verdict is Analysis.INVALID:
            raise PayloadValidationFailed(validator.name, validator.type_name)
        if verdict is Analysis.VALID_NEEDS_DEFAULT:
            if patched is None:
                patched = dict(payload)
            validator.inject(patched)
    return payload if patched is None else patched


class PayloadFormat:
    """Compiled payload format of an Action."""

    __slots__ = ("_validators", "source")

    def __init__(self, fmt: Any = None) -> None:
        self.source = fmt
        self._validators = compile_format(fmt)

    @property
    def validators(self) -> tuple[FieldValidator, ...]:
        return self._validators

    def sanitize(self, payload: Any) -> Any:
        return sanitize(self._validators, payload)

    def describe(self) -> list[str]:
        out = []
        for v in self._validators:
            label = v.name if v.name is not None else "<payload>"
            suffix = f" = {v.default!r}" if v.optional else ""
            out.append(f"{label}: {v.type_name}{suffix}")
        return out

    def __len__(self) -> int:
        return len(self._validators)

    def __bool__(self) -> bool:
        return bool(self._validators)

    def __iter__(self) -> Iterator[FieldValidator]:
        return iter(self._validators)

    def __repr__(self) -> str:
        return f"PayloadFormat({', '.join(self.describe())})"
