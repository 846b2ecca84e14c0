"""Classification of type specs and values.

A *type spec* is either a primitive :class:`Kind` (or one of the builtin
aliases listed in ``_ALIASES``) or any other class, which is then treated as
a constructor reference and checked with ``isinstance``.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from enum import Enum
from numbers import Real
from typing import Any, Callable, Optional

from .errors import InvalidFieldType

__all__ = [
    "Kind",
    "kind_of",
    "is_primitive",
    "is_constructor",
    "is_type_spec",
    "is_of_type",
    "empty_value_of",
    "name_of",
]


class Kind(str, Enum):
    STRING = "String"
    NUMBER = "Number"
    BOOLEAN = "Boolean"
    ARRAY = "Array"
    OBJECT = "Object"
    FUNCTION = "Function"


_ALIASES: dict[Any, Kind] = {
    str: Kind.STRING,
    int: Kind.NUMBER,
    float: Kind.NUMBER,
    bool: Kind.BOOLEAN,
    list: Kind.ARRAY,
    dict: Kind.OBJECT,
    callable: Kind.FUNCTION,
}


def _noop(*_args: Any, **_kwargs: Any) -> None:
    return None


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return math.isfinite(value)


_CHECKERS: dict[Kind, Callable[[Any], bool]] = {
    Kind.STRING: lambda v: isinstance(v, str),
    Kind.NUMBER: _is_number,
    Kind.BOOLEAN: lambda v: isinstance(v, bool),
    Kind.ARRAY: lambda v: isinstance(v, (list, tuple)),
    Kind.OBJECT: lambda v: isinstance(v, Mapping),
    Kind.FUNCTION: callable,
}

_EMPTY: dict[Kind, Callable[[], Any]] = {
    Kind.STRING: str,
    Kind.NUMBER: int,
    Kind.BOOLEAN: bool,
    Kind.ARRAY: list,
    Kind.OBJECT: dict,
    Kind.FUNCTION: lambda: _noop,
}


def kind_of(spec: Any) -> Optional[Kind]:
    """Return the primitive kind ``spec`` denotes, or ``None``."""
    if isinstance(spec, Kind):
        return spec
    try:
        return _ALIASES.get(spec)
    except TypeError:  # unhashable specs are never kinds
        return None


def is_primitive(spec: Any) -> bool:
    return kind_of(spec) is not None


def is_constructor(spec: Any) -> bool:
    return isinstance(spec, type) and not is_primitive(spec)


def is_type_spec(spec: Any) -> bool:
    return is_primitive(spec) or is_constructor(spec)


def is_of_type(value: Any, spec: Any) -> bool:
    kind = kind_of(spec)
    if kind is not None:
        return _CHECKERS[kind](value)
    if isinstance(spec, type):
        return isinstance(value, spec)
    raise InvalidFieldType(None, spec)


def empty_value_of(spec: Any) -> Any:
    """Fresh "empty" instance of a primitive kind (``""``, ``0``, ``[]`` ...)."""
    kind = kind_of(spec)
    if kind is None:
        raise InvalidFieldType(None, spec)
    return _EMPTY[kind]()


def name_of(spec: Any) -> str:
    kind = kind_of(spec)
    if kind is not None:
        return kind.value
    if isinstance(spec, type):
        return spec.__name__
    raise InvalidFieldType(None, spec)
