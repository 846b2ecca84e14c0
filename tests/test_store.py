"""Store fields: authorization, revisions and subscribers."""

from __future__ import annotations

import logging

import pytest

from conveyr.core.authority import MutationAuthority, MutatorContext
from conveyr.core.errors import (
    FieldCollision,
    IllegalId,
    InvalidFieldType,
    InvalidMutator,
    InvalidMutatorResult,
    InvalidSubscriber,
    NoSuchField,
    WriteAccessDenied,
)
from conveyr.core.typeoracle import Kind
from conveyr.core.validation import FieldSpec
from conveyr.services.runtime import Runtime


class Component:
    def __init__(self, mounted: bool = True):
        self.mounted = mounted
        self.refreshes = 0
        self.state: dict = {}

    def is_mounted(self) -> bool:
        return self.mounted

    def force_update(self) -> None:
        self.refreshes += 1

    def set_state(self, patch: dict) -> None:
        self.state.update(patch)


@pytest.fixture
def counter(runtime):
    return runtime.create_store("s").defines_field("count", Kind.NUMBER).build()


@pytest.fixture
def token(runtime, counter):
    t = runtime.authority.issue("svc")
    counter.authorize(t)
    return t


def test_count_scenario(counter, token):
    field = counter.field("count")
    assert (field.value, field.revision) == (0, 0)

    field.update(token, lambda v: v + 1)
    assert (field.value, field.revision) == (1, 1)

    with pytest.raises(InvalidMutatorResult) as ei:
        field.update(token, lambda v: "x")
    assert ei.value.value == "x"
    assert (field.value, field.revision) == (1, 1)


def test_write_requires_authorized_token(runtime, counter):
    field = counter.field("count")
    t = runtime.authority.issue("svc")
    with pytest.raises(WriteAccessDenied):
        field.update(t, lambda v: v + 1)

    counter.authorize(t)
    counter.authorize(t)
    field.update(t, lambda v: v + 1)
    assert field.revision == 1

    counter.revoke(t)
    counter.revoke(t)
    with pytest.raises(WriteAccessDenied):
        field.update(t, lambda v: v + 1)
    assert (field.value, field.revision) == (1, 1)


def test_tokens_cannot_be_forged(runtime, counter, token):
    fake = MutatorContext("svc")
    assert not counter.is_authorized(fake)
    assert not counter.is_authorized(token.id)
    assert counter.is_authorized(token)
    # another authority knows nothing about this store's grants
    assert not MutationAuthority().is_authorized("s", token)


def test_shared_authority_keeps_same_named_stores_apart(settings):
    shared = MutationAuthority()
    first, second = Runtime(settings, authority=shared), Runtime(settings, authority=shared)
    mine = first.create_store("s").defines_field("n", Kind.NUMBER).build()
    theirs = second.create_store("s").defines_field("n", Kind.NUMBER).build()

    svc = first.create_service("writer").updates_stores(mine).exposes_endpoint("ep", lambda payload: None).build()
    mine.field("n").update(svc.token, lambda v: v + 1)
    assert mine.field("n").value == 1

    assert not theirs.is_authorized(svc.token)
    with pytest.raises(WriteAccessDenied):
        theirs.field("n").update(svc.token, lambda v: v + 1)
    assert theirs.field("n").revision == 0
    assert shared.tokens(theirs) == frozenset()


def test_authorization_is_checked_before_the_mutator(runtime, counter, token):
    with pytest.raises(WriteAccessDenied):
        counter.field("count").update(runtime.authority.issue("other"), "not callable")
    with pytest.raises(InvalidMutator):
        counter.field("count").update(token, "not callable")


def test_mutator_errors_leave_state_untouched(counter, token):
    def explode(_):
        raise ZeroDivisionError

    with pytest.raises(ZeroDivisionError):
        counter.field("count").update(token, explode)
    assert counter.field("count").revision == 0


def test_subscribers_are_notified_in_order_after_commit(counter, token):
    field = counter.field("count")
    seen = []
    field.notifies(lambda: seen.append(("refresh", field.revision)))
    field.binds(lambda patch: seen.append(("bind", patch)), "total")

    field.update(token, lambda v: v + 5)
    assert seen == [("refresh", 1), ("bind", {"total": 5})]


def test_failing_subscriber_does_not_undo_the_commit(counter, token, caplog):
    field = counter.field("count")
    seen = []

    def broken():
        raise RuntimeError("render failed")

    field.notifies(broken)
    field.binds(lambda patch: seen.append(patch), "total")

    with caplog.at_level(logging.ERROR, logger="conveyr.core.store"):
        assert field.update(token, lambda v: v + 1) == 1
    assert (field.value, field.revision) == (1, 1)
    assert seen == [{"total": 1}]
    assert any(r.getMessage() == "store.subscriber_failed" for r in caplog.records)


def test_component_subscribers(counter, token):
    field = counter.field("count")
    view = Component()
    field.notifies(view).binds(view, "count")
    assert field.subscriber_count == 2

    field.update(token, lambda v: v + 1)
    assert view.refreshes == 1
    assert view.state == {"count": 1}


def test_unmounted_subscribers_are_skipped(counter, token):
    field = counter.field("count")
    view = Component(mounted=False)
    field.notifies(view)
    field.update(token, lambda v: v + 1)
    assert view.refreshes == 0

    view.mounted = True
    field.update(token, lambda v: v + 1)
    assert view.refreshes == 1


def test_resubscribing_replaces_in_place(counter, token):
    field = counter.field("count")
    view = Component()
    field.binds(view, "a")
    field.binds(view, "b")
    assert field.subscriber_count == 1

    field.update(token, lambda v: v + 1)
    assert view.state == {"b": 1}

    field.unsubscribe(view)
    field.update(token, lambda v: v + 1)
    assert view.state == {"b": 1}
    assert field.subscriber_count == 0


def test_invalid_subscribers(counter):
    field = counter.field("count")
    with pytest.raises(InvalidSubscriber):
        field.notifies(42)
    with pytest.raises(InvalidSubscriber):
        field.binds(Component(), "")


def test_field_declarations(runtime, token):
    store = (
        runtime.create_store("profile")
        .defines_field("anything")
        .defines_field("greeting", {"type": str, "default": "hi"})
        .defines_field("nickname", FieldSpec(str, default=None))
        .defines_field("tags", list)
        .build()
    )
    assert store.snapshot() == {"anything": None, "greeting": "hi", "nickname": None, "tags": []}
    assert store.field("anything").type_name is None
    assert store.field("tags").type_name == "Array"

    store.authorize(token)
    store.field("anything").update(token, lambda _: object)
    store.field("nickname").update(token, lambda _: None)
    with pytest.raises(InvalidMutatorResult):
        store.field("greeting").update(token, lambda _: None)


def test_field_errors(runtime):
    builder = runtime.create_store("t").defines_field("a", int)
    with pytest.raises(FieldCollision):
        builder.defines_field("a", str)
    with pytest.raises(IllegalId):
        builder.defines_field("b:c")
    with pytest.raises(InvalidFieldType):
        builder.defines_field("d", 5)

    store = builder.build()
    assert "a" in store
    with pytest.raises(NoSuchField):
        store.field("missing")
    with pytest.raises(NoSuchField):
        store.fields("a", "missing")
