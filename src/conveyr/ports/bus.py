from __future__ import annotations
from typing import Any, Callable, Hashable, Protocol

Listener = Callable[[Any], Any]


class EventBus(Protocol):
    """Synchronous topic bus; topics are ids or tuples such as ``(action_id, "completed")``."""

    def subscribe(self, topic: Hashable, listener: Listener) -> None: ...
    def unsubscribe(self, topic: Hashable, listener: Listener) -> None: ...
    def once(self, topic: Hashable, listener: Listener) -> None: ...
    def emit(self, topic: Hashable, payload: Any = None) -> None: ...
