"""Webhook subscription and delivery data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .events import Environment, Event, EventType

MASKED_SECRET = "whsec_**********"


class DeliveryStatus(str, Enum):
    """Outcome of a simulated delivery."""

    OK = "ok"
    FAILED = "failed"


@dataclass
class WebhookSubscription:
    """A registered interest in a subset of event types."""

    id: str
    url: str  # never actually dialed
    events: list[EventType]
    environment: Environment
    secret: str
    created_at: datetime
    is_active: bool = True

    @property
    def masked_secret(self) -> str:
        """Secret as shown to operators."""
        return MASKED_SECRET

    def matches(self, event: Event) -> bool:
        """Whether this subscription receives a delivery for ``event``."""
        return (
            self.is_active
            and event.environment == self.environment
            and event.type in self.events
        )


@dataclass(frozen=True)
class DeliveryAttempt:
    """One simulated attempt to notify one subscription about one event."""

    id: str
    webhook_id: str
    event_type: EventType
    environment: Environment
    status: DeliveryStatus
    last_attempt_at: datetime
    trace_id: str
    latency_ms: int
    response_code: int  # 200 on success, 500 on failure
    attempts: int = field(default=1)
