"""EventBus module."""

from .event_bus import EventBus, EventLogWriteError, IEventBus, Listener, Unsubscribe

__all__ = ["EventBus", "EventLogWriteError", "IEventBus", "Listener", "Unsubscribe"]
