"""Actions: named, invokable events that fan out to service endpoints."""

from __future__ import annotations

import asyncio
import logging
from itertools import count
from typing import Any, Callable, Optional, Sequence

from conveyr.domain import ActionResult

from .completion import join
from .errors import CallTargetCollision, InvalidEndpoint, InvalidMappingFunction, NotEnoughCallTargets
from .registry import Registry
from .service import EndpointRef, ServiceEndpoint
from .validation import PayloadFormat

__all__ = ["CallTarget", "Action", "ActionTrigger", "ActionBuilder"]

_log = logging.getLogger(__name__)

# shared by every Action so instance ids never repeat within the process
_INSTANCE_IDS = count(1)

PayloadMapping = Callable[[Any], Any]


class CallTarget:
    __slots__ = ("endpoint", "mapping")

    def __init__(self, endpoint: ServiceEndpoint | EndpointRef, mapping: Optional[PayloadMapping] = None) -> None:
        if not isinstance(endpoint, (ServiceEndpoint, EndpointRef)):
            raise InvalidEndpoint(endpoint)
        if mapping is not None and not callable(mapping):
            raise InvalidMappingFunction(mapping)
        self.endpoint = endpoint
        self.mapping = mapping

    @property
    def key(self) -> tuple[str, str]:
        return (self.endpoint.service_id, self.endpoint.id)

    def map(self, payload: Any) -> Any:
        return payload if self.mapping is None else self.mapping(payload)

    def call(self, action_id: str, action: "Action", payload: Any) -> asyncio.Future:
        return self.endpoint.invoke(action_id, action, payload)

    def __repr__(self) -> str:
        return f"<CallTarget {self.key[0]}/{self.key[1]}{' mapped' if self.mapping else ''}>"


class Action:
    def __init__(
        self,
        action_id: str,
        call_targets: Sequence[CallTarget],
        payload_format: Optional[PayloadFormat] = None,
        *,
        on_complete: Optional[Callable[[ActionResult], None]] = None,
    ) -> None:
        self._id = action_id
        self._targets = tuple(call_targets)
        self._format = payload_format
        self._on_complete = on_complete
        self._last_instance_id: Optional[int] = None

    @property
    def id(self) -> str:
        return self._id

    @property
    def payload_format(self) -> Optional[PayloadFormat]:
        return self._format

    @property
    def call_targets(self) -> tuple[CallTarget, ...]:
        return self._targets

    @property
    def last_instance_id(self) -> Optional[int]:
        return self._last_instance_id

    def invoke(self, payload: Any = None) -> asyncio.Future:
        """Validate ``payload`` and call every target.

        :class:`PayloadValidationFailed` and errors raised by payload mappings
        propagate synchronously, before any endpoint runs. Everything that
        happens inside the endpoints is reported through the returned future,
        which succeeds once all targets succeed and fails with the first
        failure.
        """
        sanitized = self._format.sanitize(payload) if self._format else payload
        payloads = [target.map(sanitized) for target in self._targets]

        instance_id = next(_INSTANCE_IDS)
        self._last_instance_id = instance_id
        _log.debug("action.invoke", extra={"extra": {"action": self._id, "instance": instance_id}})

        futures = [target.call(self._id, self, p) for target, p in zip(self._targets, payloads)]
        result = futures[0] if len(futures) == 1 else join(futures)
        result.add_done_callback(lambda fut: self._finished(instance_id, fut))
        return result

    def _finished(self, instance_id: int, fut: asyncio.Future) -> None:
        error = asyncio.CancelledError() if fut.cancelled() else fut.exception()
        if error is None:
            _log.debug("action.completed", extra={"extra": {"action": self._id, "instance": instance_id}})
        else:
            _log.info(
                "action.failed",
                extra={"extra": {"action": self._id, "instance": instance_id, "error": repr(error)}},
            )
        if self._on_complete is not None:
            self._on_complete(ActionResult(self._id, instance_id, error))

    def __repr__(self) -> str:
        return f"<Action {self._id} targets={len(self._targets)}>"


class ActionTrigger:
    """Callable returned by :meth:`ActionBuilder.build`; ``trigger(p)`` is ``action.invoke(p)``."""

    __slots__ = ("_action",)

    def __init__(self, action: Action) -> None:
        self._action = action

    @property
    def action(self) -> Action:
        return self._action

    @property
    def id(self) -> str:
        return self._action.id

    def __call__(self, payload: Any = None) -> asyncio.Future:
        return self._action.invoke(payload)

    def __repr__(self) -> str:
        return f"<ActionTrigger {self._action.id}>"


class ActionBuilder:
    def __init__(
        self,
        action_id: str,
        *,
        registry: Registry[Action],
        on_complete: Optional[Callable[[ActionResult], None]] = None,
    ) -> None:
        self._id = registry.check(action_id)
        self._registry = registry
        self._on_complete = on_complete
        self._format: Optional[PayloadFormat] = None
        self._targets: list[CallTarget] = []

    def accepts_payload(self, fmt: Any) -> "ActionBuilder":
        self._format = PayloadFormat(fmt)
        return self

    def calls_endpoint(self, endpoint: ServiceEndpoint | EndpointRef, mapping: Optional[PayloadMapping] = None) -> "ActionBuilder":
        target = CallTarget(endpoint, mapping)
        if any(t.key == target.key for t in self._targets):
            raise CallTargetCollision(self._id, f"{target.key[0]}/{target.key[1]}")
        self._targets.append(target)
        return self

    def build(self) -> ActionTrigger:
        if not self._targets:
            raise NotEnoughCallTargets(self._id)
        fmt = self._format if self._format else None
        action = Action(self._id, self._targets, fmt, on_complete=self._on_complete)
        self._registry.register(self._id, action)
        return ActionTrigger(action)
