"""FulfillmentScheduler: advances new orders through the shipment states."""

import asyncio
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
from typing import Protocol

from ..config import DEFAULT_STAGE_DELAYS, validate_stage_delays
from ..event_bus import IEventBus, Unsubscribe
from ..logging_config import get_logger, log_context
from ..models import (
    Environment,
    EventType,
    OrderCreatedPayload,
    ShipmentState,
    ShipmentUpdatedPayload,
)
from ..scheduler import IScheduler, TimerHandle
from ..storage import IStorage

logger = get_logger(__name__)

TRACKING_URL = "https://rastreio.com.br"

STAGE_STATES = (ShipmentState.PACKED, ShipmentState.SHIPPED, ShipmentState.DELIVERED)


class SchedulingError(RuntimeError):
    """A fulfillment sequence could not be scheduled."""


@dataclass
class FulfillmentTimer:
    """Bookkeeping for one order's pending stage timers."""

    order_id: str
    environment: Environment
    handles: list[TimerHandle] = field(default_factory=list)
    state: ShipmentState = ShipmentState.PENDING
    # Held by the running stage; later stages wait for it
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


class IFulfillmentScheduler(Protocol):
    """Drives orders from pending to delivered on a timer."""

    def schedule(self, order_id: str, environment: Environment) -> FulfillmentTimer:
        """Schedule the packed / shipped / delivered stages for an order."""
        ...

    def stop(self, order_id: str) -> bool:
        """Cancel the stages of an order that have not fired yet."""
        ...


class FulfillmentScheduler:
    """Schedules shipment-state transitions for each new order."""

    def __init__(
        self,
        event_bus: IEventBus,
        storage: IStorage,
        scheduler: IScheduler,
        stage_delays: tuple[float, ...] = DEFAULT_STAGE_DELAYS,
        rng: random.Random | None = None,
    ):
        self._event_bus = event_bus
        self._storage = storage
        self._scheduler = scheduler
        self._stage_delays = validate_stage_delays(tuple(stage_delays))
        self._rng = rng or random.Random()
        self._timers: dict[str, FulfillmentTimer] = {}
        self._unsubscribe: Unsubscribe | None = None

    async def start(self) -> None:
        """Subscribe to order.created."""
        if self._unsubscribe is None:
            self._unsubscribe = self._event_bus.subscribe(
                EventType.ORDER_CREATED, self._handle_order_created
            )
        logger.info("FulfillmentScheduler started")

    async def close(self) -> None:
        """Unsubscribe and cancel every pending sequence."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.cancel_all()

    async def _handle_order_created(self, payload: dict) -> None:
        trigger = OrderCreatedPayload.from_payload(payload)
        if trigger is None:
            logger.debug("Ignoring order.created without order_id/environment")
            return

        self.schedule(trigger.order_id, trigger.environment)

    def schedule(self, order_id: str, environment: Environment) -> FulfillmentTimer:
        """
        Schedule the packed / shipped / delivered stages for an order.

        An order that already has an active sequence keeps it.

        Raises:
            SchedulingError: if the underlying scheduler refused a timer.
        """
        existing = self._timers.get(order_id)
        if existing is not None:
            logger.warning(
                "Fulfillment already scheduled for order %s",
                order_id,
                extra=log_context(environment=environment, order_id=order_id),
            )
            return existing

        timer = FulfillmentTimer(order_id=order_id, environment=Environment(environment))
        try:
            for delay, state in zip(self._stage_delays, STAGE_STATES):
                timer.handles.append(
                    self._scheduler.call_later(delay, partial(self._advance, timer, state))
                )
        except Exception as e:
            for handle in timer.handles:
                handle.cancel()
            raise SchedulingError(f"Could not schedule fulfillment for order {order_id}") from e

        self._timers[order_id] = timer
        logger.info(
            "Scheduling fulfillment for order %s",
            order_id,
            extra=log_context(environment=environment, order_id=order_id),
        )
        return timer

    def stop(self, order_id: str) -> bool:
        """
        Cancel the stages of an order that have not fired yet.

        A stage that is already running completes. Returns False when the
        order had no active sequence.
        """
        timer = self._timers.pop(order_id, None)
        if timer is None:
            return False

        for handle in timer.handles:
            handle.cancel()
        logger.info(
            "Fulfillment stopped for order %s at %s",
            order_id,
            timer.state.value,
            extra=log_context(environment=timer.environment, order_id=order_id),
        )
        return True

    def cancel_all(self) -> None:
        """Stop every active sequence."""
        for order_id in list(self._timers):
            self.stop(order_id)

    def is_active(self, order_id: str) -> bool:
        return order_id in self._timers

    def state_of(self, order_id: str) -> ShipmentState | None:
        """Last state reached by an active sequence."""
        timer = self._timers.get(order_id)
        return timer.state if timer else None

    @property
    def active_orders(self) -> list[str]:
        return list(self._timers)

    def _stage_extras(self, state: ShipmentState) -> dict:
        if state is ShipmentState.SHIPPED:
            return {
                "tracking_code": f"TRK{self._rng.randrange(900000)}BR",
                "tracking_url": TRACKING_URL,
            }
        return {}

    async def _advance(self, timer: FulfillmentTimer, target: ShipmentState) -> None:
        """Timer callback for one stage."""
        async with timer.lock:
            await self._run_stage(timer, target)

    async def _run_stage(self, timer: FulfillmentTimer, target: ShipmentState) -> None:
        if self._timers.get(timer.order_id) is not timer:
            return
        if not timer.state.can_advance_to(target):
            logger.warning(
                "Skipping %s for order %s: sequence is at %s",
                target.value,
                timer.order_id,
                timer.state.value,
                extra=log_context(environment=timer.environment, order_id=timer.order_id),
            )
            if target.is_terminal:
                del self._timers[timer.order_id]
            return

        extras = self._stage_extras(target)
        now = datetime.now(timezone.utc)

        logger.info(
            "Updating order %s to status: %s",
            timer.order_id,
            target.value,
            extra=log_context(environment=timer.environment, order_id=timer.order_id),
        )
        try:
            order = await self._storage.update_order(
                timer.order_id,
                {"shipment": {"status": target.value, **extras, "updated_at": now.isoformat()}},
            )
        except Exception:
            logger.exception(
                "Failed to store %s for order %s; emitting shipment update anyway",
                target.value,
                timer.order_id,
                extra=log_context(environment=timer.environment, order_id=timer.order_id),
            )
        else:
            if order is None:
                logger.warning(
                    "Order %s not found in store; emitting shipment update anyway",
                    timer.order_id,
                    extra=log_context(environment=timer.environment, order_id=timer.order_id),
                )

        timer.state = target
        if target.is_terminal and self._timers.get(timer.order_id) is timer:
            del self._timers[timer.order_id]

        await self._event_bus.emit(
            timer.environment,
            EventType.SHIPMENT_UPDATED,
            ShipmentUpdatedPayload(
                order_id=timer.order_id,
                status=target,
                timestamp=now,
                extras=extras,
            ).to_payload(),
        )
