from .bus import EventBus, Listener

__all__ = ["EventBus", "Listener"]
