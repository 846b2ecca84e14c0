"""Single-resolution completion and fan-out join on top of ``asyncio.Future``."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional, Sequence

from .errors import HandlerFailed

__all__ = ["Completion", "as_exception", "join"]


def as_exception(err: Any) -> BaseException:
    if isinstance(err, BaseException):
        return err
    return HandlerFailed(err)


class Completion:
    """Settles a future at most once.

    Both the handler's completion signal and the timeout timer hold the same
    ``Completion``; whichever calls :meth:`succeed` / :meth:`fail` first wins
    and every later call is a no-op that returns ``False``.
    """

    __slots__ = ("future", "_settled", "_cleanups")

    def __init__(self, future: asyncio.Future) -> None:
        self.future = future
        self._settled = False
        self._cleanups: list[Callable[[], Any]] = []

    def on_settle(self, cleanup: Callable[[], Any]) -> None:
        """Run ``cleanup`` when the first settlement happens (e.g. cancel a timer)."""
        self._cleanups.append(cleanup)

    @property
    def settled(self) -> bool:
        return self._settled

    def _claim(self) -> bool:
        if self._settled or self.future.done():
            self._settled = True
            return False
        self._settled = True
        for cleanup in self._cleanups:
            cleanup()
        return True

    def succeed(self, result: Any = None) -> bool:
        if not self._claim():
            return False
        self.future.set_result(result)
        return True

    def fail(self, err: Any) -> bool:
        if not self._claim():
            return False
        self.future.set_exception(as_exception(err))
        return True

    def cancel(self) -> bool:
        if not self._claim():
            return False
        self.future.cancel()
        return True

    def settle(self, err: Any = None) -> bool:
        """Node-style settle: ``None`` means success, anything else a failure."""
        if err is None:
            return self.succeed()
        return self.fail(err)


def join(futures: Sequence[asyncio.Future], *, loop: Optional[asyncio.AbstractEventLoop] = None) -> asyncio.Future:
    """Future that succeeds once every input succeeds and fails with the first failure."""
    loop = loop or asyncio.get_running_loop()
    outer = loop.create_future()
    completion = Completion(outer)
    pending = len(futures)
    if pending == 0:
        completion.succeed()
        return outer

    def _on_done(fut: asyncio.Future) -> None:
        nonlocal pending
        if fut.cancelled():
            completion.cancel()
            return
        err = fut.exception()
        if err is not None:
            completion.fail(err)
            return
        pending -= 1
        if pending == 0:
            completion.succeed()

    for fut in futures:
        fut.add_done_callback(_on_done)
    return outer
