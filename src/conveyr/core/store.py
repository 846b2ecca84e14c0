"""Stores and store fields.

A :class:`StoreField` keeps one value, a revision counter and a list of
subscribers. Only holders of an authorized :class:`MutatorContext` may
change the value, and every committed change is pushed to the subscribers
synchronously, in the order they subscribed.

Subscribers come in two styles:

* *refresh* (:meth:`StoreField.notifies`) - ``target.force_update()`` or
  ``target()`` is called without arguments;
* *bind* (:meth:`StoreField.binds`) - ``target.set_state({slot: value})`` or
  ``target({slot: value})``.

A target exposing ``is_mounted()`` that returns false is skipped. An exception
raised by a subscriber is logged and does not stop the remaining ones.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from types import MethodType
from typing import Any, Callable, Dict, Iterator, Optional

from .authority import MutationAuthority, MutatorContext
from .errors import (
    FieldCollision,
    InvalidFieldType,
    InvalidMutator,
    InvalidMutatorResult,
    InvalidSubscriber,
    NoSuchField,
)
from .registry import Registry, validate_id
from .validation import MISSING, CustomField, FieldSpec, FieldValidator, PrimitiveField
from .typeoracle import is_type_spec

__all__ = ["StoreField", "Store", "StoreBuilder", "REFRESH", "BIND"]

_log = logging.getLogger(__name__)

REFRESH = "refresh"
BIND = "bind"


def _same(a: Any, b: Any) -> bool:
    return a is b or (isinstance(a, MethodType) and a == b)


def _is_mounted(target: Any) -> bool:
    probe = getattr(target, "is_mounted", None)
    return not callable(probe) or bool(probe())


@dataclass(slots=True)
class _Subscription:
    style: str
    target: Any
    slot: Optional[str] = None

    def deliver(self, value: Any) -> None:
        if self.style == REFRESH:
            refresh = getattr(self.target, "force_update", None)
            (refresh if callable(refresh) else self.target)()
        else:
            set_state = getattr(self.target, "set_state", None)
            (set_state if callable(set_state) else self.target)({self.slot: value})


class StoreField:
    __slots__ = ("_store", "_name", "_validator", "_value", "_revision", "_subs")

    def __init__(self, store: "Store", name: str, validator: Optional[FieldValidator], initial: Any = None) -> None:
        self._store = store
        self._name = name
        self._validator = validator
        self._value = initial
        self._revision = 0
        self._subs: list[_Subscription] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def store(self) -> "Store":
        return self._store

    @property
    def value(self) -> Any:
        return self._value

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def validator(self) -> Optional[FieldValidator]:
        return self._validator

    @property
    def type_name(self) -> Optional[str]:
        return self._validator.type_name if self._validator is not None else None

    def update(self, token: MutatorContext, mutator: Callable[[Any], Any]) -> Any:
        """Replace the value with ``mutator(value)`` on behalf of ``token``.

        Raises :class:`WriteAccessDenied`, :class:`InvalidMutator` or
        :class:`InvalidMutatorResult`; in every failing case the value and the
        revision stay as they were.
        """
        self._store.require_write(token, self._name)
        if not callable(mutator):
            raise InvalidMutator(self._store.id, self._name, mutator)

        new_value = mutator(self._value)
        if self._validator is not None and not self._validator.accepts(new_value):
            raise InvalidMutatorResult(self._store.id, self._name, self._validator.type_name, new_value)

        self._value = new_value
        self._revision += 1
        _log.debug(
            "store.commit",
            extra={"extra": {"store": self._store.id, "field": self._name, "revision": self._revision}},
        )
        self._notify(new_value)
        return new_value

    def _notify(self, value: Any) -> None:
        # the write is already committed; a failing subscriber must not hide it
        for sub in list(self._subs):
            try:
                if _is_mounted(sub.target):
                    sub.deliver(value)
            except Exception:
                _log.exception(
                    "store.subscriber_failed",
                    extra={"extra": {"store": self._store.id, "field": self._name, "target": repr(sub.target)}},
                )

    def _subscribe(self, sub: _Subscription) -> None:
        for i, current in enumerate(self._subs):
            if current.style == sub.style and _same(current.target, sub.target):
                self._subs[i] = sub
                return
        self._subs.append(sub)

    def notifies(self, target: Any) -> "StoreField":
        if not (callable(getattr(target, "force_update", None)) or callable(target)):
            raise InvalidSubscriber(target, message=f"{target!r} has no force_update() and is not callable")
        self._subscribe(_Subscription(REFRESH, target))
        return self

    def binds(self, target: Any, slot: str) -> "StoreField":
        if not isinstance(slot, str) or not slot:
            raise InvalidSubscriber(target, message=f"slot name must be a non-empty string, got {slot!r}")
        if not (callable(getattr(target, "set_state", None)) or callable(target)):
            raise InvalidSubscriber(target, message=f"{target!r} has no set_state() and is not callable")
        self._subscribe(_Subscription(BIND, target, slot))
        return self

    def unsubscribe(self, target: Any) -> None:
        self._subs = [s for s in self._subs if not _same(s.target, target)]

    @property
    def subscriber_count(self) -> int:
        return len(self._subs)

    def __repr__(self) -> str:
        return f"<StoreField {self._store.id}.{self._name} rev={self._revision} value={self._value!r}>"


class Store:
    def __init__(self, store_id: str, authority: MutationAuthority) -> None:
        self._id = store_id
        self._authority = authority
        self._fields: Dict[str, StoreField] = {}

    @property
    def id(self) -> str:
        return self._id

    @property
    def authority(self) -> MutationAuthority:
        return self._authority

    def _add_field(self, field: StoreField) -> None:
        self._fields[field.name] = field

    def field(self, name: str) -> StoreField:
        try:
            return self._fields[name]
        except KeyError:
            raise NoSuchField(self._id, name) from None

    def fields(self, *names: str) -> tuple[StoreField, ...]:
        if not names:
            return tuple(self._fields.values())
        return tuple(self.field(n) for n in names)

    def snapshot(self) -> dict[str, Any]:
        return {name: f.value for name, f in self._fields.items()}

    def authorize(self, token: MutatorContext) -> None:
        self._authority.authorize(self, token)

    def revoke(self, token: MutatorContext) -> None:
        self._authority.revoke(self, token)

    def is_authorized(self, token: Any) -> bool:
        return self._authority.is_authorized(self, token)

    def require_write(self, token: Any, field: Optional[str] = None) -> None:
        self._authority.require(self, token, field)

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __iter__(self) -> Iterator[StoreField]:
        return iter(list(self._fields.values()))

    def __repr__(self) -> str:
        return f"<Store {self._id} fields={list(self._fields)}>"


def _field_validator(name: str, spec: Any) -> Optional[FieldValidator]:
    if spec is None:
        return None
    if isinstance(spec, Mapping) and "type" in spec:
        spec = FieldSpec(spec["type"], spec.get("default", MISSING))
    if isinstance(spec, FieldSpec):
        validator = FieldValidator.from_spec(spec, name)
    elif isinstance(spec, PrimitiveField):
        validator = FieldValidator.from_type(spec.kind, name)
    elif isinstance(spec, CustomField):
        validator = FieldValidator.from_type(spec.cls, name)
    elif is_type_spec(spec):
        validator = FieldValidator.from_type(spec, name)
    else:
        raise InvalidFieldType(name, spec)
    # store fields validate whole values, like a root validator
    return dataclasses.replace(validator, name=None)


class StoreBuilder:
    def __init__(self, store_id: str, *, registry: Registry[Store], authority: MutationAuthority) -> None:
        self._id = registry.check(store_id)
        self._registry = registry
        self._authority = authority
        self._specs: Dict[str, Optional[FieldValidator]] = {}

    def defines_field(self, name: str, type_spec: Any = None) -> "StoreBuilder":
        validate_id("Field", name)
        if name in self._specs:
            raise FieldCollision(self._id, name)
        self._specs[name] = _field_validator(name, type_spec)
        return self

    def build(self) -> Store:
        store = Store(self._id, self._authority)
        for name, validator in self._specs.items():
            initial = None
            if validator is not None and validator.default is not MISSING:
                initial = validator.fresh_default()
            store._add_field(StoreField(store, name, validator, initial))
        self._registry.register(self._id, store)
        _log.debug("store.built", extra={"extra": {"store": self._id, "fields": list(self._specs)}})
        return store
