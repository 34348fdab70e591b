"""Event-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

EVENT_SOURCE = "yoobe"

# Listener-only key: receives every event type
WILDCARD = "*"


class Environment(str, Enum):
    """Deployment namespaces that partition every store."""

    SANDBOX = "sandbox"
    LIVE = "live"


class EventType(str, Enum):
    """Known domain event types."""

    ORDER_CREATED = "order.created"
    ORDER_COMPLETED = "order.completed"
    SHIPMENT_UPDATED = "shipment.updated"
    POINTS_CREDIT = "points.credit"
    ACHIEVEMENT_UNLOCKED = "achievement.unlocked"


@dataclass(frozen=True)
class Event:
    """An immutable fact emitted through the EventBus."""

    id: str
    type: EventType
    source: str
    environment: Environment
    trace_id: str  # shared with every DeliveryAttempt it produced
    created_at: datetime
    payload: Any = field(default_factory=dict)
    status: str = "ok"
