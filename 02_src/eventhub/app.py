"""Application bootstrap and lifecycle management."""

import os
import random
import uuid
from typing import Protocol

from .config import resolve_db_path, resolve_stage_delays
from .event_bus import EventBus
from .fulfillment import FulfillmentScheduler
from .logging_config import get_logger
from .models import Environment, Event, EventType
from .scheduler import AsyncioScheduler, IScheduler
from .storage import IStorage, Storage
from .webhooks import WebhookRegistry

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Reset data between demo runs."""
        ...


class Application:
    """Composition root: wires stores, bus and fulfillment together."""

    def __init__(
        self,
        db_path: str | None = None,
        scheduler: IScheduler | None = None,
        stage_delays: tuple[float, ...] | None = None,
        rng: random.Random | None = None,
    ):
        env_db_path = os.getenv("DATABASE_URL") if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)
        self._stage_delays = stage_delays or resolve_stage_delays()
        self._rng = rng

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._registry: WebhookRegistry | None = None
        self._event_bus: EventBus | None = None
        self._scheduler: IScheduler | None = scheduler
        self._fulfillment: FulfillmentScheduler | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Storage (no dependencies)
        self._storage = Storage(self._db_path)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. WebhookRegistry (depends on Storage)
        self._registry = WebhookRegistry(self._storage)

        # 3. EventBus (depends on Storage + WebhookRegistry)
        self._event_bus = EventBus(self._storage, self._registry, rng=self._rng)
        logger.info("EventBus initialized")

        # 4. Timer scheduler (wall clock unless one was injected)
        if self._scheduler is None:
            self._scheduler = AsyncioScheduler()

        # 5. FulfillmentScheduler (depends on EventBus, Storage, scheduler)
        self._fulfillment = FulfillmentScheduler(
            event_bus=self._event_bus,
            storage=self._storage,
            scheduler=self._scheduler,
            stage_delays=self._stage_delays,
            rng=self._rng,
        )
        await self._fulfillment.start()
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._fulfillment:
            await self._fulfillment.close()
        if self._scheduler:
            await self._scheduler.close()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    async def reset(self) -> None:
        """Cancel running fulfillment sequences and clear all stores."""
        if self._fulfillment:
            self._fulfillment.cancel_all()

        if self._storage:
            await self._storage.clear()
            logger.info("Storage cleared")

    async def place_order(
        self,
        environment: Environment | str,
        order_id: str | None = None,
        number: str | None = None,
        items: list[dict] | None = None,
    ) -> tuple[dict, Event | None]:
        """
        Demo checkout: save an order and emit order.created.

        Returns the stored order and the logged event.
        """
        env = Environment(environment)
        order_id = order_id or f"ord_{uuid.uuid4().hex[:10]}"
        number = number or f"R{uuid.uuid4().int % 10**9:09d}"

        order = await self.storage.save_order(
            order_id,
            env,
            {
                "number": number,
                "items": items or [],
                "shipment": {"status": "pending"},
            },
        )
        event = await self.event_bus.emit(
            env,
            EventType.ORDER_CREATED,
            {"order_id": order_id, "number": number, "environment": env.value},
        )
        return order, event

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def registry(self) -> WebhookRegistry:
        """Get webhook registry instance."""
        if not self._registry:
            raise RuntimeError("Application not started")
        return self._registry

    @property
    def event_bus(self) -> EventBus:
        """Get event bus instance."""
        if not self._event_bus:
            raise RuntimeError("Application not started")
        return self._event_bus

    @property
    def fulfillment(self) -> FulfillmentScheduler:
        """Get fulfillment scheduler instance."""
        if not self._fulfillment:
            raise RuntimeError("Application not started")
        return self._fulfillment
