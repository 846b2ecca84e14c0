"""Services and their endpoints.

A Service groups named endpoints and owns one :class:`MutatorContext`
that the stores listed in :meth:`ServiceBuilder.updates_stores` accept.

Endpoint handlers complete in one of three ways, chosen from the handler
itself:

* **sync** - a plain function without a completion parameter; returning
  means success, raising means failure;
* **callback** - a plain function with a ``done``/``callback``/``finish``
  parameter; ``done()`` succeeds, ``done(err)`` fails;
* **async** - a coroutine function; its result or exception settles it.

Callback and async handlers race a timeout (``handler_timeout_ms``).
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, Optional

from .arguments import ArgumentMap, CompletionStyle, HandlerSignature, completion_style, resolve_arguments
from .authority import MutationAuthority, MutatorContext
from .completion import Completion
from .errors import (
    EndpointCollision,
    HandlerTimeout,
    InvalidHandler,
    InvalidStore,
    NoSuchEndpoint,
    NotEnoughEndpoints,
)
from .registry import Registry, validate_id
from .store import Store

__all__ = ["ServiceEndpoint", "EndpointRef", "Service", "ServiceBuilder"]

_log = logging.getLogger(__name__)


class ServiceEndpoint:
    def __init__(
        self,
        endpoint_id: str,
        service_id: str,
        token: MutatorContext,
        handler: Callable[..., Any],
        *,
        signature: Optional[HandlerSignature] = None,
        timeout_ms: float,
    ) -> None:
        if not callable(handler):
            raise InvalidHandler(endpoint_id)
        self._id = endpoint_id
        self._service_id = service_id
        self._token = token
        self._handler = handler
        self._timeout_ms = timeout_ms
        if signature is not None:
            self._arguments = signature.to_map(endpoint_id)
        else:
            self._arguments = resolve_arguments(handler, endpoint_id)
        self._style = completion_style(handler, self._arguments, endpoint_id)

    @property
    def id(self) -> str:
        return self._id

    @property
    def service_id(self) -> str:
        return self._service_id

    @property
    def arguments(self) -> ArgumentMap:
        return self._arguments

    @property
    def style(self) -> CompletionStyle:
        return self._style

    @property
    def timeout_ms(self) -> float:
        return self._timeout_ms

    def _log_failure(self, action_id: Optional[str], exc: BaseException) -> None:
        _log.warning(
            "endpoint.failed",
            extra={
                "extra": {
                    "service": self._service_id,
                    "endpoint": self._id,
                    "action": action_id,
                    "error": repr(exc),
                }
            },
        )

    def _expire(self, completion: Completion, action_id: Optional[str]) -> None:
        err = HandlerTimeout(self._service_id, self._id, self._timeout_ms)
        if completion.fail(err):
            self._log_failure(action_id, err)

    def invoke(self, action_id: Optional[str], action: Any, payload: Any) -> asyncio.Future:
        """Run the handler with a frame built from its argument map.

        Must be called with a running event loop. The returned future never
        settles twice: a late ``done`` after a timeout is ignored.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        completion = Completion(future)
        values: Dict[str, Any] = {
            "token": self._token,
            "action": action,
            "action_id": action_id,
            "payload": payload,
        }

        if self._style is not CompletionStyle.SYNC:
            timer = loop.call_later(self._timeout_ms / 1000.0, self._expire, completion, action_id)
            completion.on_settle(timer.cancel)

        if self._style is CompletionStyle.CALLBACK:

            def done(err: Any = None) -> None:
                if not completion.settle(err):
                    _log.debug("endpoint.late_done", extra={"extra": {"endpoint": self._id, "action": action_id}})
                elif err is not None:
                    self._log_failure(action_id, completion.future.exception())

            values["done"] = done

        args = self._arguments.frame(**values)
        try:
            result = self._handler(*args)
        except Exception as exc:
            if completion.fail(exc):
                self._log_failure(action_id, exc)
            return future

        if self._style is CompletionStyle.SYNC:
            completion.succeed()
        elif self._style is CompletionStyle.ASYNC:
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)

                def _finished(t: asyncio.Future) -> None:
                    if t.cancelled():
                        completion.cancel()
                        return
                    exc = t.exception()
                    if exc is None:
                        completion.succeed()
                    elif completion.fail(exc):
                        self._log_failure(action_id, exc)

                task.add_done_callback(_finished)
            else:
                completion.succeed()
        return future

    def __repr__(self) -> str:
        return f"<ServiceEndpoint {self._service_id}/{self._id} {self._style.value}>"


class EndpointRef:
    """Lazy reference to an endpoint by id, resolved on every invocation."""

    __slots__ = ("service", "endpoint_id")

    def __init__(self, service: "Service", endpoint_id: str) -> None:
        self.service = service
        self.endpoint_id = endpoint_id

    @property
    def id(self) -> str:
        return self.endpoint_id

    @property
    def service_id(self) -> str:
        return self.service.id

    def resolve(self) -> ServiceEndpoint:
        return self.service.endpoint(self.endpoint_id)

    def invoke(self, action_id: Optional[str], action: Any, payload: Any) -> asyncio.Future:
        return self.service.invoke(self.endpoint_id, action_id, action, payload)

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, EndpointRef)
            and other.service is self.service
            and other.endpoint_id == self.endpoint_id
        )

    def __hash__(self) -> int:
        return hash((id(self.service), self.endpoint_id))

    def __repr__(self) -> str:
        return f"<EndpointRef {self.service.id}/{self.endpoint_id}>"


class Service:
    def __init__(
        self,
        service_id: str,
        token: MutatorContext,
        endpoints: Dict[str, ServiceEndpoint],
        stores: tuple[Store, ...] = (),
    ) -> None:
        self._id = service_id
        self._token = token
        self._endpoints = dict(endpoints)
        self._stores = tuple(stores)

    @property
    def id(self) -> str:
        return self._id

    @property
    def token(self) -> MutatorContext:
        return self._token

    @property
    def stores(self) -> tuple[Store, ...]:
        return self._stores

    @property
    def endpoints(self) -> tuple[ServiceEndpoint, ...]:
        return tuple(self._endpoints.values())

    def endpoint(self, endpoint_id: str) -> ServiceEndpoint:
        try:
            return self._endpoints[endpoint_id]
        except KeyError:
            raise NoSuchEndpoint(self._id, endpoint_id) from None

    def ref(self, endpoint_id: str) -> EndpointRef:
        return EndpointRef(self, endpoint_id)

    def invoke(self, endpoint_id: str, action_id: Optional[str], action: Any, payload: Any) -> asyncio.Future:
        endpoint = self._endpoints.get(endpoint_id)
        if endpoint is None:
            future = asyncio.get_running_loop().create_future()
            future.set_exception(NoSuchEndpoint(self._id, endpoint_id))
            return future
        return endpoint.invoke(action_id, action, payload)

    def __repr__(self) -> str:
        return f"<Service {self._id} endpoints={list(self._endpoints)}>"


class ServiceBuilder:
    def __init__(
        self,
        service_id: str,
        *,
        registry: Registry[Service],
        authority: MutationAuthority,
        timeout_ms: float,
        stores: Optional[Registry[Store]] = None,
    ) -> None:
        self._id = registry.check(service_id)
        self._registry = registry
        self._authority = authority
        self._store_registry = stores
        self._timeout_ms = timeout_ms
        self._token = authority.issue(service_id)
        self._stores: tuple[Store, ...] = ()
        self._endpoints: Dict[str, ServiceEndpoint] = {}

    def _resolve_store(self, ref: Any) -> Store:
        if isinstance(ref, Store):
            return ref
        if isinstance(ref, str) and self._store_registry is not None and self._store_registry.has(ref):
            return self._store_registry.get(ref)
        raise InvalidStore(ref)

    def updates_stores(self, *stores: Any) -> "ServiceBuilder":
        self._stores = tuple(self._resolve_store(s) for s in stores)
        return self

    def exposes_endpoint(
        self,
        endpoint_id: str,
        handler: Callable[..., Any],
        *,
        signature: Optional[HandlerSignature] = None,
        timeout_ms: Optional[float] = None,
    ) -> "ServiceBuilder":
        validate_id("Endpoint", endpoint_id)
        if endpoint_id in self._endpoints:
            raise EndpointCollision(self._id, endpoint_id)
        self._endpoints[endpoint_id] = ServiceEndpoint(
            endpoint_id,
            self._id,
            self._token,
            handler,
            signature=signature,
            timeout_ms=self._timeout_ms if timeout_ms is None else timeout_ms,
        )
        return self

    def build(self) -> Service:
        if not self._endpoints:
            raise NotEnoughEndpoints(self._id)
        self._registry.check(self._id)
        for store in self._stores:
            store.authorize(self._token)
        service = Service(self._id, self._token, self._endpoints, self._stores)
        self._registry.register(self._id, service)
        _log.debug(
            "service.built",
            extra={"extra": {"service": self._id, "endpoints": list(self._endpoints), "stores": [s.id for s in self._stores]}},
        )
        return service
