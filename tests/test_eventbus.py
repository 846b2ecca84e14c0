# tests/test_eventbus.py
import asyncio
import logging

import pytest

from conveyr.domain import Event
from conveyr.services.eventbus import LocalEventBus, emit, topic_name
from conveyr.services.logging import attach_event_logger


def test_delivery_in_subscription_order():
    bus = LocalEventBus()
    seen = []
    bus.subscribe("t", lambda p: seen.append(("a", p)))
    bus.subscribe("t", lambda p: seen.append(("b", p)))
    bus.subscribe("other", lambda p: seen.append(("c", p)))
    bus.emit("t", 1)
    assert seen == [("a", 1), ("b", 1)]


def test_unsubscribe_during_emit_uses_snapshot():
    bus = LocalEventBus()
    seen = []

    def first(p):
        seen.append("first")
        bus.unsubscribe("t", second)

    def second(p):
        seen.append("second")

    bus.subscribe("t", first)
    bus.subscribe("t", second)
    bus.emit("t")
    bus.emit("t")
    assert seen == ["first", "second", "first"]


def test_once():
    bus = LocalEventBus()
    seen = []
    bus.once("t", seen.append)
    bus.emit("t", 1)
    bus.emit("t", 2)
    assert seen == [1]

    bus.once("t", seen.append)
    bus.unsubscribe("t", seen.append)
    bus.emit("t", 3)
    assert seen == [1]


def test_tuple_topics_and_wildcard():
    bus = LocalEventBus()
    direct, events = [], []
    bus.subscribe(("todo", "completed"), direct.append)
    bus.subscribe("*", events.append)
    emit(bus, ("todo", "completed"), {"ok": True})

    assert direct == [{"ok": True}]
    (event,) = events
    assert isinstance(event, Event)
    assert event.topic == ("todo", "completed")
    assert topic_name(event.topic) == "todo:completed"
    assert topic_name("plain") == "plain"


def test_coroutine_listener_without_loop():
    bus = LocalEventBus()
    seen = []

    async def listener(p):
        await asyncio.sleep(0)
        seen.append(p)

    bus.subscribe("t", listener)
    bus.emit("t", 5)
    assert seen == [5]


@pytest.mark.asyncio
async def test_coroutine_listener_is_scheduled_on_running_loop():
    bus = LocalEventBus()
    seen = []

    async def listener(p):
        seen.append(p)

    bus.subscribe("t", listener)
    bus.emit("t", 5)
    assert seen == []
    await asyncio.sleep(0)
    assert seen == [5]


def test_event_logger(caplog):
    bus = LocalEventBus()
    logger = logging.getLogger("tests.events")
    attach_event_logger(bus, logger)
    with caplog.at_level(logging.INFO, logger="tests.events"):
        bus.emit(("todo", "completed"), {"n": 1})
    (record,) = [r for r in caplog.records if r.name == "tests.events"]
    assert record.getMessage() == "event"
    assert record.extra["topic"] == "todo:completed"
    assert record.extra["payload"] == {"n": 1}
