"""Fulfillment module."""

from .fulfillment import (
    STAGE_STATES,
    TRACKING_URL,
    FulfillmentScheduler,
    FulfillmentTimer,
    IFulfillmentScheduler,
    SchedulingError,
)

__all__ = [
    "STAGE_STATES",
    "TRACKING_URL",
    "FulfillmentScheduler",
    "FulfillmentTimer",
    "IFulfillmentScheduler",
    "SchedulingError",
]
