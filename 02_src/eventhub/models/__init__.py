"""Core data models for the event notification layer."""

from .events import EVENT_SOURCE, WILDCARD, Environment, Event, EventType
from .webhooks import MASKED_SECRET, DeliveryAttempt, DeliveryStatus, WebhookSubscription
from .fulfillment import OrderCreatedPayload, ShipmentState, ShipmentUpdatedPayload

__all__ = [
    # Events
    "EVENT_SOURCE",
    "WILDCARD",
    "Environment",
    "Event",
    "EventType",
    # Webhooks
    "MASKED_SECRET",
    "DeliveryAttempt",
    "DeliveryStatus",
    "WebhookSubscription",
    # Fulfillment
    "OrderCreatedPayload",
    "ShipmentState",
    "ShipmentUpdatedPayload",
]
