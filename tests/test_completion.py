import asyncio

import pytest

from conveyr.core.completion import Completion, as_exception, join
from conveyr.core.errors import HandlerFailed

pytestmark = pytest.mark.asyncio


async def test_first_settlement_wins():
    fut = asyncio.get_running_loop().create_future()
    c = Completion(fut)
    assert c.succeed("ok")
    assert not c.fail(ValueError("late"))
    assert not c.settle()
    assert c.settled
    assert await fut == "ok"


async def test_cleanups_run_once_on_first_settlement():
    fut = asyncio.get_running_loop().create_future()
    c = Completion(fut)
    calls = []
    c.on_settle(lambda: calls.append("timer"))
    c.fail(RuntimeError("x"))
    c.succeed()
    assert calls == ["timer"]
    with pytest.raises(RuntimeError):
        await fut


async def test_settle_wraps_plain_values():
    fut = asyncio.get_running_loop().create_future()
    Completion(fut).settle("boom")
    err = fut.exception()
    assert isinstance(err, HandlerFailed)
    assert err.reason == "boom" and str(err) == "boom"
    assert as_exception(KeyError("k")).__class__ is KeyError


async def test_join_waits_for_all():
    loop = asyncio.get_running_loop()
    a, b = loop.create_future(), loop.create_future()
    outer = join([a, b])
    a.set_result(1)
    await asyncio.sleep(0)
    assert not outer.done()
    b.set_result(2)
    assert await outer is None


async def test_join_fails_with_first_failure():
    loop = asyncio.get_running_loop()
    a, b, c = loop.create_future(), loop.create_future(), loop.create_future()
    outer = join([a, b, c])
    b.set_exception(ValueError("boom"))
    a.set_exception(KeyError("second"))
    with pytest.raises(ValueError, match="boom"):
        await outer
    c.set_result(None)


async def test_join_of_nothing_succeeds():
    assert await join([]) is None


async def test_join_propagates_cancellation():
    loop = asyncio.get_running_loop()
    a = loop.create_future()
    outer = join([a, loop.create_future()])
    a.cancel()
    await asyncio.sleep(0)
    assert outer.cancelled()
