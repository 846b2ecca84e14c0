# src/conveyr/services/runtime.py
from __future__ import annotations
import logging
from typing import Any, Dict, Optional

from conveyr.config import const
from conveyr.core.action import Action, ActionBuilder
from conveyr.core.authority import MutationAuthority
from conveyr.core.registry import Registry
from conveyr.core.service import Service, ServiceBuilder
from conveyr.core.store import Store, StoreBuilder
from conveyr.domain import ActionResult
from conveyr.ports import EventBus
from conveyr.services import eventbus
from conveyr.services.eventbus import LocalEventBus
from conveyr.services.settings import Settings


class Runtime:
    """Composition root: owns the registries, the mutation authority and the bus.

    Every Action, Service and Store is created through one of the
    ``create_*`` factories and lives as long as the Runtime does.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        bus: Optional[EventBus] = None,
        authority: Optional[MutationAuthority] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.bus: EventBus = bus if bus is not None else LocalEventBus()
        self.authority = authority if authority is not None else MutationAuthority()
        self.actions: Registry[Action] = Registry("Action")
        self.services: Registry[Service] = Registry("Service")
        self.stores: Registry[Store] = Registry("Store")
        self.log = logging.getLogger("conveyr.runtime")

    # ── factories ───────────────────────────────────────────────────────────

    def create_action(self, action_id: str) -> ActionBuilder:
        return ActionBuilder(action_id, registry=self.actions, on_complete=self._publish_result)

    def create_service(self, service_id: str) -> ServiceBuilder:
        return ServiceBuilder(
            service_id,
            registry=self.services,
            authority=self.authority,
            timeout_ms=self.settings.handler_timeout_ms,
            stores=self.stores,
        )

    def create_store(self, store_id: str) -> StoreBuilder:
        return StoreBuilder(store_id, registry=self.stores, authority=self.authority)

    # ── look-ups ────────────────────────────────────────────────────────────

    def action(self, action_id: str) -> Action:
        return self.actions.get(action_id)

    def service(self, service_id: str) -> Service:
        return self.services.get(service_id)

    def store(self, store_id: str) -> Store:
        return self.stores.get(store_id)

    def _publish_result(self, result: ActionResult) -> None:
        eventbus.emit(self.bus, (result.action_id, const.COMPLETED_TOPIC), result)

    def describe(self) -> Dict[str, Any]:
        """Plain-data view of everything registered, used by the CLI."""
        return {
            "actions": [
                {
                    "id": a.id,
                    "targets": [f"{t.key[0]}/{t.key[1]}" for t in a.call_targets],
                    "payload": a.payload_format.describe() if a.payload_format else [],
                }
                for a in self.actions
            ],
            "services": [
                {
                    "id": s.id,
                    "endpoints": [f"{e.id} ({e.style.value})" for e in s.endpoints],
                    "stores": [st.id for st in s.stores],
                }
                for s in self.services
            ],
            "stores": [
                {
                    "id": st.id,
                    "fields": [
                        {"name": f.name, "type": f.type_name, "revision": f.revision, "value": f.value}
                        for f in st
                    ],
                }
                for st in self.stores
            ],
        }

    def __repr__(self) -> str:
        return f"<Runtime actions={len(self.actions)} services={len(self.services)} stores={len(self.stores)}>"
