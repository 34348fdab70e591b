"""Shipment state machine and typed fulfillment payloads."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from .events import Environment


class ShipmentState(str, Enum):
    """Linear shipment lifecycle: pending -> packed -> shipped -> delivered."""

    PENDING = "pending"
    PACKED = "packed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"

    def next_state(self) -> "ShipmentState | None":
        """Immediate successor, or None for the terminal state."""
        order = list(ShipmentState)
        index = order.index(self)
        return order[index + 1] if index + 1 < len(order) else None

    def can_advance_to(self, target: "ShipmentState") -> bool:
        """Only the immediate successor is reachable; no skips, no regressions."""
        return self.next_state() is target

    @property
    def is_terminal(self) -> bool:
        return self.next_state() is None


@dataclass(frozen=True)
class OrderCreatedPayload:
    """Fields of an ``order.created`` payload the fulfillment flow needs."""

    order_id: str
    environment: Environment

    @classmethod
    def from_payload(cls, payload: Any) -> "OrderCreatedPayload | None":
        """
        Parse a raw payload; None when it is malformed.

        Storefront pages publish camelCase keys (``orderId``, ``env``), which
        are accepted as well.
        """
        if not isinstance(payload, dict):
            return None

        order_id = payload.get("order_id") or payload.get("orderId")
        raw_env = payload.get("environment") or payload.get("env")
        if not order_id or not raw_env:
            return None

        try:
            environment = Environment(raw_env)
        except ValueError:
            return None

        return cls(order_id=str(order_id), environment=environment)


@dataclass(frozen=True)
class ShipmentUpdatedPayload:
    """Payload of a ``shipment.updated`` event."""

    order_id: str
    status: ShipmentState
    timestamp: datetime
    extras: dict = field(default_factory=dict)  # e.g. tracking_code

    def to_payload(self) -> dict:
        return {
            "order_id": self.order_id,
            "status": self.status.value,
            **self.extras,
            "timestamp": self.timestamp.isoformat(),
        }
