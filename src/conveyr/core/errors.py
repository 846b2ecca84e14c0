"""Exceptions raised by the Conveyr runtime.

Configuration and wiring problems are raised synchronously while the
application graph is being built. Failures that depend on run-time data
(handler timeouts, handler errors, denied store writes) surface through the
future returned by an Action or Service Endpoint invocation.
"""

from __future__ import annotations

from typing import Any, Optional

__all__ = [
    "ConveyrError",
    "ConfigError",
    "InvalidId",
    "EmptyId",
    "IllegalId",
    "DuplicateId",
    "NoSuchEntity",
    "InvalidFormat",
    "InvalidFieldType",
    "InvalidFieldDefault",
    "NotEnoughFields",
    "PayloadValidationFailed",
    "InvalidEndpoint",
    "InvalidMappingFunction",
    "CallTargetCollision",
    "NotEnoughCallTargets",
    "InvalidStore",
    "EndpointCollision",
    "NotEnoughEndpoints",
    "InvalidHandler",
    "DuplicateHandlerRole",
    "NoSuchEndpoint",
    "HandlerTimeout",
    "HandlerFailed",
    "FieldCollision",
    "NoSuchField",
    "InvalidSubscriber",
    "WriteAccessDenied",
    "InvalidMutator",
    "InvalidMutatorResult",
]


class ConveyrError(Exception):
    """Base class for every error raised by Conveyr."""


class ConfigError(ConveyrError, ValueError):
    """Raised when settings contain a value of the wrong shape."""

    def __init__(self, key: str, value: Any, *, message: str | None = None) -> None:
        self.key = key
        self.value = value
        super().__init__(message or f"invalid value for setting '{key}': {value!r}")


# ---------- ids ----------


class InvalidId(ConveyrError, ValueError):
    """Raised when an entity id is not a string."""

    def __init__(self, entity: str, value: Any, *, message: str | None = None) -> None:
        self.entity = entity
        self.value = value
        super().__init__(message or f"{entity} ids must be non-empty strings, got {value!r}")


class EmptyId(InvalidId):
    def __init__(self, entity: str) -> None:
        super().__init__(entity, "", message=f"{entity} ids must not be empty")


class IllegalId(InvalidId):
    def __init__(self, entity: str, value: str, separator: str) -> None:
        self.separator = separator
        super().__init__(entity, value, message=f"{entity} id {value!r} contains the reserved {separator!r} character")


class DuplicateId(ConveyrError, ValueError):
    def __init__(self, entity: str, value: str) -> None:
        self.entity = entity
        self.value = value
        super().__init__(f"{entity} with id {value!r} already exists")


class NoSuchEntity(ConveyrError, LookupError):
    def __init__(self, entity: str, value: str) -> None:
        self.entity = entity
        self.value = value
        super().__init__(f"no {entity} with id {value!r}")


# ---------- formats ----------


class InvalidFormat(ConveyrError, TypeError):
    """Raised when a payload format is neither a type nor a field map."""

    def __init__(self, value: Any = None, *, message: str | None = None) -> None:
        self.value = value
        super().__init__(
            message
            or f"a format must be a primitive kind, a class or a map of field specs, got {value!r}"
        )


class InvalidFieldType(ConveyrError, TypeError):
    def __init__(self, field_name: Optional[str], value: Any = None) -> None:
        self.field_name = field_name
        self.value = value
        where = f"field {field_name!r}" if field_name is not None else "the payload"
        super().__init__(f"{where} has an invalid type {value!r}: expected a primitive kind or a class")


class InvalidFieldDefault(ConveyrError, TypeError):
    def __init__(self, field_name: Optional[str], default: Any = None) -> None:
        self.field_name = field_name
        self.default = default
        where = f"field {field_name!r}" if field_name is not None else "the payload"
        super().__init__(f"{where} declares default {default!r} that does not match its type")


class NotEnoughFields(ConveyrError, ValueError):
    def __init__(self) -> None:
        super().__init__("a field map must declare at least one field")


class PayloadValidationFailed(ConveyrError, ValueError):
    """Raised synchronously by ``Action.invoke`` when the payload does not match its format."""

    def __init__(self, field_name: Optional[str], type_name: str) -> None:
        self.field_name = field_name
        self.type_name = type_name
        if field_name is None:
            text = f"payload must be a non-null value of type {type_name}"
        else:
            text = f"payload field {field_name!r} must be of type {type_name}"
        super().__init__(text)


# ---------- wiring ----------


class InvalidEndpoint(ConveyrError, TypeError):
    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(f"{value!r} is not a service endpoint")


class InvalidMappingFunction(ConveyrError, TypeError):
    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(f"payload mapping must be callable, got {value!r}")


class CallTargetCollision(ConveyrError, ValueError):
    def __init__(self, action_id: str, endpoint_id: str) -> None:
        self.action_id = action_id
        self.endpoint_id = endpoint_id
        super().__init__(f"action {action_id!r} already calls endpoint {endpoint_id!r}")


class NotEnoughCallTargets(ConveyrError, ValueError):
    def __init__(self, action_id: str) -> None:
        self.action_id = action_id
        super().__init__(f"action {action_id!r} must call at least one service endpoint")


class InvalidStore(ConveyrError, TypeError):
    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(f"{value!r} is not a store")


class EndpointCollision(ConveyrError, ValueError):
    def __init__(self, service_id: str, endpoint_id: str) -> None:
        self.service_id = service_id
        self.endpoint_id = endpoint_id
        super().__init__(f"service {service_id!r} already exposes endpoint {endpoint_id!r}")


class NotEnoughEndpoints(ConveyrError, ValueError):
    def __init__(self, service_id: str) -> None:
        self.service_id = service_id
        super().__init__(f"service {service_id!r} must expose at least one endpoint")


class InvalidHandler(ConveyrError, TypeError):
    def __init__(self, endpoint_id: str, *, message: str | None = None) -> None:
        self.endpoint_id = endpoint_id
        super().__init__(message or f"handler of endpoint {endpoint_id!r} must be callable")


class DuplicateHandlerRole(InvalidHandler):
    def __init__(self, endpoint_id: str, role: str, positions: tuple[int, int]) -> None:
        self.role = role
        self.positions = positions
        super().__init__(
            endpoint_id,
            message=(
                f"handler of endpoint {endpoint_id!r} declares the {role!r} role twice "
                f"(parameters {positions[0]} and {positions[1]})"
            ),
        )


# ---------- invocation ----------


class NoSuchEndpoint(ConveyrError, LookupError):
    def __init__(self, service_id: str, endpoint_id: str) -> None:
        self.service_id = service_id
        self.endpoint_id = endpoint_id
        super().__init__(f"service {service_id!r} has no endpoint {endpoint_id!r}")


class HandlerTimeout(ConveyrError, TimeoutError):
    def __init__(self, service_id: str, endpoint_id: str, timeout_ms: float) -> None:
        self.service_id = service_id
        self.endpoint_id = endpoint_id
        self.timeout_ms = timeout_ms
        super().__init__(
            f"handler of endpoint {service_id}/{endpoint_id} did not finish within {timeout_ms:g} ms"
        )


class HandlerFailed(ConveyrError, RuntimeError):
    """Wraps a non-exception value passed to a handler's ``done`` callback."""

    def __init__(self, reason: Any) -> None:
        self.reason = reason
        super().__init__(str(reason))


# ---------- stores ----------


class FieldCollision(ConveyrError, ValueError):
    def __init__(self, store_id: str, field_name: str) -> None:
        self.store_id = store_id
        self.field_name = field_name
        super().__init__(f"store {store_id!r} already defines field {field_name!r}")


class NoSuchField(ConveyrError, LookupError):
    def __init__(self, store_id: str, field_name: str) -> None:
        self.store_id = store_id
        self.field_name = field_name
        super().__init__(f"store {store_id!r} has no field {field_name!r}")


class InvalidSubscriber(ConveyrError, TypeError):
    def __init__(self, value: Any, *, message: str | None = None) -> None:
        self.value = value
        super().__init__(message or f"{value!r} cannot subscribe to a store field")


class WriteAccessDenied(ConveyrError, PermissionError):
    def __init__(self, store_id: str, field_name: Optional[str] = None) -> None:
        self.store_id = store_id
        self.field_name = field_name
        target = f"field {field_name!r} of store {store_id!r}" if field_name else f"store {store_id!r}"
        super().__init__(f"mutator context is not authorized to update {target}")


class InvalidMutator(ConveyrError, TypeError):
    def __init__(self, store_id: str, field_name: str, value: Any) -> None:
        self.store_id = store_id
        self.field_name = field_name
        self.value = value
        super().__init__(
            f"mutator for field {field_name!r} of store {store_id!r} must be callable, got {value!r}"
        )


class InvalidMutatorResult(ConveyrError, TypeError):
    def __init__(self, store_id: str, field_name: str, type_name: str, value: Any) -> None:
        self.store_id = store_id
        self.field_name = field_name
        self.type_name = type_name
        self.value = value
        super().__init__(
            f"field {field_name!r} of store {store_id!r} is of type {type_name}, "
            f"but the mutator returned {value!r}"
        )
