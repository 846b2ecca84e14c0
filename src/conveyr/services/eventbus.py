from __future__ import annotations
import asyncio
import logging
import time
from collections import defaultdict
from threading import RLock
from typing import Any, Awaitable, Callable, DefaultDict, Hashable, List

from conveyr.config import const
from conveyr.domain import Event
from conveyr.ports import EventBus

Handler = Callable[[Any], Any] | Callable[[Any], Awaitable[Any]]

_log = logging.getLogger(__name__)


def topic_name(topic: Hashable) -> str:
    """``("todo.add", "completed")`` -> ``"todo.add:completed"``."""
    if isinstance(topic, tuple):
        return const.ID_SEPARATOR.join(str(part) for part in topic)
    return str(topic)


class LocalEventBus(EventBus):
    """
    Синхронная шина по точному совпадению топиков.
    - subscribe(topic, listener) / unsubscribe / once
    - emit(topic, payload)
    Особенности:
      * топик "*" получает все события как Event(topic, payload, ts).
      * слушатели вызываются по порядку подписки, по снимку списка.
      * корутины планируются на текущем лупе (или выполняются блокирующе, если лупа нет).
    """

    def __init__(self) -> None:
        self._subs: DefaultDict[Hashable, List[Handler]] = defaultdict(list)
        self._lock = RLock()

    def subscribe(self, topic: Hashable, listener: Handler) -> None:
        with self._lock:
            self._subs[topic].append(listener)

    def unsubscribe(self, topic: Hashable, listener: Handler) -> None:
        with self._lock:
            handlers = self._subs.get(topic)
            if not handlers:
                return
            for i, h in enumerate(handlers):
                if h == listener or getattr(h, "__wrapped__", None) == listener:
                    del handlers[i]
                    break

    def once(self, topic: Hashable, listener: Handler) -> None:
        def _once(payload: Any) -> Any:
            self.unsubscribe(topic, _once)
            return listener(payload)

        _once.__wrapped__ = listener  # type: ignore[attr-defined]
        self.subscribe(topic, _once)

    def listeners(self, topic: Hashable) -> list[Handler]:
        with self._lock:
            return list(self._subs.get(topic, ()))

    def emit(self, topic: Hashable, payload: Any = None) -> None:
        with self._lock:
            direct = self._subs.get(topic, [])[:]
            wildcard = self._subs.get(const.WILDCARD_TOPIC, [])[:] if topic != const.WILDCARD_TOPIC else []
        for h in direct:
            self._deliver(h, payload)
        if wildcard:
            event = Event(topic=topic, payload=payload, ts=time.time())
            for h in wildcard:
                self._deliver(h, event)

    @staticmethod
    def _deliver(handler: Handler, arg: Any) -> None:
        res = handler(arg)
        if asyncio.iscoroutine(res):
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                asyncio.run(res)  # нет активного лупа, выполним синхронно
            else:
                loop.create_task(res)


def emit(bus: EventBus, topic: Hashable, payload: Any = None) -> None:
    _log.debug("bus.emit", extra={"extra": {"topic": topic_name(topic)}})
    bus.emit(topic, payload)
