"""Actions: payload sanitizing, fan-out, join and completion events."""

from __future__ import annotations

import asyncio

import pytest

from conveyr.core.action import ActionTrigger
from conveyr.core.errors import (
    CallTargetCollision,
    DuplicateId,
    EmptyId,
    HandlerFailed,
    IllegalId,
    InvalidEndpoint,
    InvalidId,
    InvalidMappingFunction,
    NoSuchEndpoint,
    NotEnoughCallTargets,
    PayloadValidationFailed,
)
from conveyr.domain import ActionResult

pytestmark = pytest.mark.asyncio


@pytest.fixture
def recorder(runtime):
    """Service with two sync endpoints that record what they receive."""
    calls = []

    def first(payload):
        calls.append(("first", payload))

    def second(data):
        calls.append(("second", data))

    svc = (
        runtime.create_service("rec")
        .exposes_endpoint("first", first)
        .exposes_endpoint("second", second)
        .build()
    )
    return svc, calls


async def test_payload_defaults_reach_the_handler(runtime, recorder):
    svc, calls = recorder
    trigger = (
        runtime.create_action("person")
        .accepts_payload({"name": str, "age": {"type": int, "default": 0}})
        .calls_endpoint(svc.ref("first"))
        .build()
    )
    assert isinstance(trigger, ActionTrigger)
    await trigger({"name": "a"})
    assert calls == [("first", {"name": "a", "age": 0})]


async def test_invalid_payload_fails_before_any_target(runtime, recorder):
    svc, calls = recorder
    trigger = runtime.create_action("typed").accepts_payload({"n": int}).calls_endpoint(svc.ref("first")).build()
    with pytest.raises(PayloadValidationFailed):
        trigger({"n": "one"})
    assert calls == []


async def test_mappings_apply_per_target(runtime, recorder):
    svc, calls = recorder
    trigger = (
        runtime.create_action("split")
        .calls_endpoint(svc.ref("first"), lambda p: p["a"])
        .calls_endpoint(svc.endpoint("second"))
        .build()
    )
    await trigger({"a": 1, "b": 2})
    assert calls == [("first", 1), ("second", {"a": 1, "b": 2})]


async def test_mapping_errors_are_synchronous(runtime, recorder):
    svc, calls = recorder
    trigger = (
        runtime.create_action("broken")
        .calls_endpoint(svc.ref("second"))
        .calls_endpoint(svc.ref("first"), lambda p: p["missing"])
        .build()
    )
    with pytest.raises(KeyError):
        trigger({})
    assert calls == []


async def test_one_failing_target_fails_the_action(runtime):
    def ok(payload):
        pass

    def fails(payload, done):
        done("boom")

    svc = runtime.create_service("pair").exposes_endpoint("a", ok).exposes_endpoint("b", fails).build()
    trigger = runtime.create_action("both").calls_endpoint(svc.ref("a")).calls_endpoint(svc.ref("b")).build()
    with pytest.raises(HandlerFailed, match="boom"):
        await trigger()


async def test_action_waits_for_every_target(runtime):
    pending = []

    def slow(done):
        pending.append(done)

    svc = runtime.create_service("mixed").exposes_endpoint("slow", slow).exposes_endpoint("fast", lambda: None).build()
    fut = runtime.create_action("wait").calls_endpoint(svc.ref("slow")).calls_endpoint(svc.ref("fast")).build()()
    await asyncio.sleep(0)
    assert not fut.done()
    pending[0]()
    assert await fut is None


async def test_single_target_future_is_returned_directly(runtime):
    svc = runtime.create_service("one").exposes_endpoint("ep", lambda payload: None).build()
    trigger = runtime.create_action("solo").calls_endpoint(svc.ref("ep")).build()
    fut = trigger(1)
    assert fut.done()
    await fut


async def test_handlers_receive_the_action(runtime):
    seen = []

    def handler(action, action_id):
        seen.append((action, action_id))

    svc = runtime.create_service("who").exposes_endpoint("ep", handler).build()
    trigger = runtime.create_action("me").calls_endpoint(svc.ref("ep")).build()
    await trigger()
    assert seen == [(runtime.action("me"), "me")]
    assert trigger.action is runtime.action("me")


async def test_instance_ids_strictly_increase(runtime, recorder):
    svc, _ = recorder
    a = runtime.create_action("a").calls_endpoint(svc.ref("first")).build()
    b = runtime.create_action("b").calls_endpoint(svc.ref("second")).build()
    ids = []
    for trigger in (a, b, a, a, b):
        await trigger()
        ids.append(trigger.action.last_instance_id)
    assert ids == sorted(set(ids))


async def test_completion_events(runtime, recorder):
    svc, _ = recorder
    trigger = runtime.create_action("noted").accepts_payload({"n": int}).calls_endpoint(svc.ref("first")).build()
    results = []
    runtime.bus.subscribe(("noted", "completed"), results.append)

    await trigger({"n": 1})
    # the completion callback runs on the next loop iteration
    await asyncio.sleep(0)
    assert len(results) == 1
    result = results[0]
    assert isinstance(result, ActionResult)
    assert result.was_successful
    assert result.instance_id == trigger.action.last_instance_id


async def test_failed_completion_event_carries_the_error(runtime):
    def handler():
        raise RuntimeError("nope")

    svc = runtime.create_service("bad").exposes_endpoint("ep", handler).build()
    trigger = runtime.create_action("fails").calls_endpoint(svc.ref("ep")).build()
    results = []
    runtime.bus.subscribe(("fails", "completed"), results.append)
    with pytest.raises(RuntimeError):
        await trigger()
    await asyncio.sleep(0)
    assert not results[0].was_successful
    assert isinstance(results[0].error, RuntimeError)


async def test_dangling_endpoint_reference(runtime, recorder):
    svc, _ = recorder
    trigger = runtime.create_action("dangling").calls_endpoint(svc.ref("gone")).build()
    with pytest.raises(NoSuchEndpoint):
        await trigger()


async def test_builder_errors(runtime, recorder):
    svc, _ = recorder
    builder = runtime.create_action("x")
    with pytest.raises(NotEnoughCallTargets):
        builder.build()
    builder.calls_endpoint(svc.ref("first"))
    with pytest.raises(CallTargetCollision):
        builder.calls_endpoint(svc.endpoint("first"))
    with pytest.raises(InvalidEndpoint):
        builder.calls_endpoint("rec/first")
    with pytest.raises(InvalidMappingFunction):
        builder.calls_endpoint(svc.ref("second"), mapping=5)
    builder.build()

    with pytest.raises(DuplicateId):
        runtime.create_action("x")
    with pytest.raises(IllegalId):
        runtime.create_action("a:b")
    with pytest.raises(EmptyId):
        runtime.create_action("")
    with pytest.raises(InvalidId):
        runtime.create_action(5)
