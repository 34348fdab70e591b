"""Event notification layer: event log, webhook fan-out, order fulfillment."""

from .app import Application, IApplication
from .event_bus import EventBus, EventLogWriteError, IEventBus
from .fulfillment import FulfillmentScheduler, IFulfillmentScheduler, SchedulingError
from .models import (
    WILDCARD,
    DeliveryAttempt,
    DeliveryStatus,
    Environment,
    Event,
    EventType,
    ShipmentState,
    WebhookSubscription,
)
from .scheduler import AsyncioScheduler, IScheduler, TimerHandle, VirtualScheduler
from .storage import IStorage, Storage
from .webhooks import IWebhookRegistry, WebhookRegistry

__all__ = [
    # Application
    "Application",
    "IApplication",
    # Models
    "WILDCARD",
    "DeliveryAttempt",
    "DeliveryStatus",
    "Environment",
    "Event",
    "EventType",
    "ShipmentState",
    "WebhookSubscription",
    # Components
    "IStorage",
    "Storage",
    "IWebhookRegistry",
    "WebhookRegistry",
    "IEventBus",
    "EventBus",
    "EventLogWriteError",
    "IScheduler",
    "AsyncioScheduler",
    "VirtualScheduler",
    "TimerHandle",
    "IFulfillmentScheduler",
    "FulfillmentScheduler",
    "SchedulingError",
]
