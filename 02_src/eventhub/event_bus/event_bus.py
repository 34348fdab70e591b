"""EventBus: event log, simulated webhook fan-out and in-process listeners."""

import copy
import inspect
import random
import time
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Protocol

from ..config import DEFAULT_SUCCESS_RATE
from ..logging_config import get_logger, log_context
from ..models import (
    EVENT_SOURCE,
    WILDCARD,
    DeliveryAttempt,
    DeliveryStatus,
    Environment,
    Event,
    EventType,
    WebhookSubscription,
)
from ..storage import IStorage
from ..webhooks import IWebhookRegistry

logger = get_logger(__name__)


# Receives a copy of the payload, or {"event_type", "payload"} when subscribed to WILDCARD
Listener = Callable[[Any], Awaitable[None] | None]
Unsubscribe = Callable[[], None]

LATENCY_RANGE_MS = (100, 900)


class EventLogWriteError(RuntimeError):
    """The event log append failed; nothing was fanned out."""


class IEventBus(Protocol):
    """Publish/subscribe for domain events."""

    def subscribe(self, event_type: EventType | str, listener: Listener) -> Unsubscribe:
        """Register a listener; returns a callable that removes it."""
        ...

    async def emit(
        self,
        environment: Environment | str,
        event_type: EventType | str,
        payload: Any = None,
    ) -> Event | None:
        """Log the event, synthesize webhook deliveries, notify listeners."""
        ...


class _Registration:
    """Wraps a listener so each subscribe() call is removable on its own."""

    __slots__ = ("listener",)

    def __init__(self, listener: Listener):
        self.listener = listener


class EventBus:
    """In-memory pub/sub event bus with durable event and delivery logs."""

    def __init__(
        self,
        storage: IStorage,
        registry: IWebhookRegistry,
        rng: random.Random | None = None,
        success_rate: float = DEFAULT_SUCCESS_RATE,
    ):
        if not 0.0 <= success_rate <= 1.0:
            raise ValueError(f"success_rate must be within [0, 1], got {success_rate}")

        self._storage = storage
        self._registry = registry
        self._rng = rng or random.Random()
        self._success_rate = success_rate
        self._listeners: dict[str, list[_Registration]] = defaultdict(list)

        self._rejected_count = 0
        self._listener_error_counts: dict[str, int] = defaultdict(int)

    def subscribe(self, event_type: EventType | str, listener: Listener) -> Unsubscribe:
        """
        Register a listener for one event type or for WILDCARD.

        Raises:
            ValueError: if event_type is neither a known type nor WILDCARD.
        """
        key = event_type if event_type == WILDCARD else EventType(event_type).value
        registration = _Registration(listener)
        self._listeners[key].append(registration)

        def unsubscribe() -> None:
            registrations = self._listeners.get(key, [])
            for i, existing in enumerate(registrations):
                if existing is registration:
                    del registrations[i]
                    break

        return unsubscribe

    def listener_count(self, event_type: EventType | str) -> int:
        """Number of listeners registered for a type (or WILDCARD)."""
        key = getattr(event_type, "value", event_type)
        return len(self._listeners.get(key, []))

    @property
    def rejected_count(self) -> int:
        """Emits dropped because of an unknown environment or event type."""
        return self._rejected_count

    @property
    def listener_error_counts(self) -> dict[str, int]:
        """Listener failures per subscription key."""
        return dict(self._listener_error_counts)

    async def emit(
        self,
        environment: Environment | str,
        event_type: EventType | str,
        payload: Any = None,
    ) -> Event | None:
        """
        Log the event, synthesize webhook deliveries, notify listeners.

        The three phases run in that order and complete before returning.
        Unknown environments or event types are dropped with a warning and
        return None.

        Raises:
            EventLogWriteError: if the event could not be logged. No
                deliveries are synthesized and no listener is notified.
        """
        try:
            env = Environment(environment)
            etype = EventType(event_type)
        except (ValueError, TypeError):
            self._rejected_count += 1
            logger.warning(
                "Rejected event %r in %r: unknown environment or event type",
                getattr(event_type, "value", event_type),
                getattr(environment, "value", environment),
            )
            return None

        payload = payload if payload is not None else {}
        event = Event(
            id=f"evt_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}",
            type=etype,
            source=EVENT_SOURCE,
            environment=env,
            trace_id=f"tr_{uuid.uuid4().hex[:12]}",
            created_at=datetime.now(timezone.utc),
            payload=copy.copy(payload),
        )

        # 1. Event log
        try:
            await self._storage.save_event(event)
        except Exception as e:
            logger.error(
                "Failed to log %s event: %s",
                etype.value,
                e,
                extra=log_context(environment=env, trace_id=event.trace_id),
            )
            raise EventLogWriteError(
                f"Could not log {etype.value} event in {env.value}"
            ) from e

        logger.info(
            "Emitted %s",
            etype.value,
            extra=log_context(environment=env, event_id=event.id, trace_id=event.trace_id),
        )

        # 2. Simulated webhook deliveries
        await self._dispatch_deliveries(event)

        # 3. In-process listeners: type-specific first, then wildcard
        for registration in list(self._listeners.get(etype.value, [])):
            await self._notify(etype.value, registration.listener, copy.copy(event.payload))
        for registration in list(self._listeners.get(WILDCARD, [])):
            await self._notify(
                WILDCARD,
                registration.listener,
                {"event_type": etype.value, "payload": copy.copy(event.payload)},
            )

        return event

    async def _dispatch_deliveries(self, event: Event) -> None:
        try:
            webhooks = await self._registry.list_matching(event.environment, event.type)
        except Exception:
            logger.exception(
                "Could not resolve webhooks for %s",
                event.type.value,
                extra=log_context(environment=event.environment, trace_id=event.trace_id),
            )
            return

        for webhook in webhooks:
            if not webhook.matches(event):
                continue
            try:
                delivery = self._synthesize_delivery(event, webhook)
                await self._storage.save_delivery(delivery)
            except Exception:
                logger.exception(
                    "Delivery synthesis failed for webhook %s",
                    webhook.id,
                    extra=log_context(
                        environment=event.environment,
                        trace_id=event.trace_id,
                        webhook_id=webhook.id,
                    ),
                )
                continue

            logger.debug(
                "Delivery %s -> %s (%s)",
                delivery.id,
                webhook.url,
                delivery.status.value,
                extra=log_context(
                    environment=event.environment,
                    trace_id=event.trace_id,
                    webhook_id=webhook.id,
                ),
            )

    def _synthesize_delivery(
        self, event: Event, webhook: WebhookSubscription
    ) -> DeliveryAttempt:
        is_success = self._rng.random() < self._success_rate
        low, high = LATENCY_RANGE_MS
        return DeliveryAttempt(
            id=f"dlv_{int(time.time() * 1000)}_{webhook.id}_{uuid.uuid4().hex[:6]}",
            webhook_id=webhook.id,
            event_type=event.type,
            environment=event.environment,
            status=DeliveryStatus.OK if is_success else DeliveryStatus.FAILED,
            attempts=1,
            last_attempt_at=datetime.now(timezone.utc),
            trace_id=event.trace_id,
            latency_ms=self._rng.randrange(low, high),
            response_code=200 if is_success else 500,
        )

    async def _notify(self, key: str, listener: Listener, data: Any) -> None:
        try:
            result = listener(data)
            if inspect.isawaitable(result):
                await result
        except Exception:
            self._listener_error_counts[key] += 1
            logger.exception("Error in listener for %s", key)
