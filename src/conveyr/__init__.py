"""Conveyr: unidirectional data flow of actions, services and stores."""

from conveyr.core import *  # noqa: F401,F403
from conveyr.core import __all__ as _core_all
from conveyr.domain import ActionResult, Event
from conveyr.services.eventbus import LocalEventBus
from conveyr.services.runtime import Runtime
from conveyr.services.settings import Settings

__version__ = "0.1.0"

__all__ = [*_core_all, "ActionResult", "Event", "LocalEventBus", "Runtime", "Settings"]
