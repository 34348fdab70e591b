"""WebhookRegistry: CRUD over webhook subscriptions plus the matching query."""

import time
import uuid
from datetime import datetime, timezone
from typing import Iterable, Protocol

from ..logging_config import get_logger, log_context
from ..models import Environment, EventType, WebhookSubscription
from ..storage import IStorage

logger = get_logger(__name__)


class IWebhookRegistry(Protocol):
    """Per-environment set of webhook subscriptions."""

    async def list_matching(
        self, environment: Environment, event_type: EventType
    ) -> list[WebhookSubscription]:
        """Active subscriptions in environment that include event_type."""
        ...


class WebhookRegistry:
    """Webhook subscriptions backed by Storage."""

    def __init__(self, storage: IStorage):
        self._storage = storage

    async def register(
        self,
        environment: Environment | str,
        url: str,
        events: Iterable[EventType | str],
        is_active: bool = True,
    ) -> WebhookSubscription:
        """
        Register a new subscription.

        Raises:
            ValueError: on an empty url, an unknown environment, an unknown
                event type or an empty event list.
        """
        env = Environment(environment)
        if not url or not url.strip():
            raise ValueError("Webhook url must not be empty")

        event_types: list[EventType] = []
        for raw in events:
            event_type = EventType(raw)
            if event_type not in event_types:
                event_types.append(event_type)
        if not event_types:
            raise ValueError("Webhook must subscribe to at least one event type")

        webhook = WebhookSubscription(
            id=f"wh_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}",
            url=url.strip(),
            events=event_types,
            environment=env,
            secret=f"whsec_{uuid.uuid4().hex}",
            created_at=datetime.now(timezone.utc),
            is_active=is_active,
        )
        await self._storage.save_webhook(webhook)

        logger.info(
            "Webhook %s registered for %s",
            webhook.id,
            ", ".join(e.value for e in event_types),
            extra=log_context(environment=env, webhook_id=webhook.id),
        )
        return webhook

    async def delete(self, environment: Environment | str, webhook_id: str) -> bool:
        """Remove a subscription. Returns False if it did not exist."""
        deleted = await self._storage.delete_webhook(Environment(environment), webhook_id)
        if deleted:
            logger.info(
                "Webhook %s deleted",
                webhook_id,
                extra=log_context(environment=environment, webhook_id=webhook_id),
            )
        return deleted

    async def set_active(
        self, environment: Environment | str, webhook_id: str, is_active: bool
    ) -> bool:
        """Enable or disable a subscription. Returns False if it did not exist."""
        return await self._storage.set_webhook_active(
            Environment(environment), webhook_id, is_active
        )

    async def get(
        self, environment: Environment | str, webhook_id: str
    ) -> WebhookSubscription | None:
        """Get one subscription."""
        return await self._storage.get_webhook(Environment(environment), webhook_id)

    async def get_all(self, environment: Environment | str) -> list[WebhookSubscription]:
        """All subscriptions in an environment, oldest first."""
        return await self._storage.get_webhooks(Environment(environment))

    async def list_matching(
        self, environment: Environment, event_type: EventType
    ) -> list[WebhookSubscription]:
        """Active subscriptions in environment that include event_type."""
        webhooks = await self._storage.get_webhooks(environment)
        return [
            wh
            for wh in webhooks
            if wh.is_active and wh.environment == environment and event_type in wh.events
        ]
