"""Handler argument resolution.

Service handlers ask for what they need by naming their parameters::

    def add_todo(mutator, payload, done): ...
    async def load(action_id, data): ...

:func:`resolve_arguments` reads the declared positional parameters once, at
registration time, and records the position of every known role. At call
time :meth:`ArgumentMap.frame` lays the values out in that order. Parameters
with unknown names get ``None``, unless they come after the last known role
and carry a default of their own: those are not passed, so the default holds.

Handlers whose parameter names cannot be relied on may pass an explicit
:class:`HandlerSignature` instead.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from .errors import DuplicateHandlerRole, InvalidHandler

__all__ = [
    "ROLES",
    "ROLE_SYNONYMS",
    "CompletionStyle",
    "ArgumentMap",
    "HandlerSignature",
    "parameter_names",
    "classify",
    "resolve_arguments",
    "completion_style",
]

ROLES = ("token", "action", "action_id", "payload", "done")

ROLE_SYNONYMS: dict[str, str] = {
    "context": "token",
    "mutator": "token",
    "mutatorcontext": "token",
    "storemutator": "token",
    "token": "token",
    "action": "action",
    "actionid": "action_id",
    "payload": "payload",
    "data": "payload",
    "done": "done",
    "callback": "done",
    "finish": "done",
}

_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


class CompletionStyle(str, Enum):
    SYNC = "sync"
    CALLBACK = "callback"
    ASYNC = "async"


@dataclass(frozen=True, slots=True)
class ArgumentMap:
    token: int = -1
    action: int = -1
    action_id: int = -1
    payload: int = -1
    done: int = -1
    total: int = 0

    def position(self, role: str) -> int:
        return getattr(self, role)

    def has(self, role: str) -> bool:
        return self.position(role) >= 0

    def roles(self) -> dict[str, int]:
        return {role: self.position(role) for role in ROLES if self.has(role)}

    def frame(self, **values: Any) -> list[Any]:
        """Lay out ``values`` (keyed by role) in declaration order."""
        args: list[Any] = [None] * self.total
        for role, value in values.items():
            pos = self.position(role)
            if pos >= 0:
                args[pos] = value
        return args


@dataclass(frozen=True, slots=True)
class HandlerSignature:
    """Explicit alternative to name-based resolution.

    Positions default to ``-1`` (role not wanted). ``total`` defaults to the
    smallest frame that fits every requested role.
    """

    token: int = -1
    action: int = -1
    action_id: int = -1
    payload: int = -1
    done: int = -1
    total: Optional[int] = None

    def to_map(self, endpoint_id: str = "?") -> ArgumentMap:
        wanted = {role: getattr(self, role) for role in ROLES if getattr(self, role) >= 0}
        seen: dict[int, str] = {}
        for role, pos in wanted.items():
            if pos in seen:
                raise InvalidHandler(
                    endpoint_id,
                    message=f"endpoint {endpoint_id!r}: roles {seen[pos]!r} and {role!r} share position {pos}",
                )
            seen[pos] = role
        needed = max(wanted.values(), default=-1) + 1
        total = needed if self.total is None else self.total
        if total < needed:
            raise InvalidHandler(
                endpoint_id,
                message=f"endpoint {endpoint_id!r}: signature total {total} is smaller than {needed}",
            )
        return ArgumentMap(total=total, **wanted)


def _positional(handler: Callable[..., Any]) -> list[inspect.Parameter]:
    try:
        sig = inspect.signature(handler)
    except (TypeError, ValueError) as exc:
        raise InvalidHandler(getattr(handler, "__name__", repr(handler)),
                             message=f"cannot read the signature of {handler!r}") from exc
    return [p for p in sig.parameters.values() if p.kind in _POSITIONAL]


def parameter_names(handler: Callable[..., Any]) -> list[str]:
    """Positional parameter names of ``handler`` (``self`` excluded for bound methods)."""
    return [p.name for p in _positional(handler)]


def classify(name: str) -> Optional[str]:
    return ROLE_SYNONYMS.get(name.replace("_", "").lower())


def resolve_arguments(handler: Callable[..., Any], endpoint_id: str = "?") -> ArgumentMap:
    params = _positional(handler)
    positions: dict[str, int] = {}
    total = 0
    for i, param in enumerate(params):
        role = classify(param.name)
        if role is None:
            if param.default is inspect.Parameter.empty:
                total = i + 1
            continue
        if role in positions:
            raise DuplicateHandlerRole(endpoint_id, role, (positions[role], i))
        positions[role] = i
        total = i + 1
    # trailing unknown parameters with defaults are left out of the frame
    return ArgumentMap(total=total, **positions)


def completion_style(handler: Callable[..., Any], arguments: ArgumentMap, endpoint_id: str = "?") -> CompletionStyle:
    is_async = inspect.iscoroutinefunction(handler) or inspect.iscoroutinefunction(
        getattr(handler, "__call__", None)
    )
    if arguments.has("done"):
        if is_async:
            raise InvalidHandler(
                endpoint_id,
                message=f"coroutine handler of endpoint {endpoint_id!r} must not also take a completion callback",
            )
        return CompletionStyle.CALLBACK
    return CompletionStyle.ASYNC if is_async else CompletionStyle.SYNC
