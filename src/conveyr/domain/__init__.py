from .types import Event, ActionResult

__all__ = ["Event", "ActionResult"]
