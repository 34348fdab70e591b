"""SQLite storage implementation."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

import aiosqlite

from ..config import resolve_db_path
from ..models import (
    DeliveryAttempt,
    DeliveryStatus,
    Environment,
    Event,
    EventType,
    WebhookSubscription,
)


def _parse_ts(value: str) -> datetime:
    ts = datetime.fromisoformat(value)
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


class IStorage(Protocol):
    """Environment-scoped persistence for events, webhooks, deliveries and orders."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    # Event log
    async def save_event(self, event: Event) -> None:
        """Append an event to the event log."""
        ...

    async def get_events(
        self,
        environment: Environment,
        event_type: EventType | None = None,
        limit: int = 100,
    ) -> list[Event]:
        """Get events for an environment (newest first)."""
        ...

    # Webhook registry
    async def save_webhook(self, webhook: WebhookSubscription) -> None:
        """Insert or replace a webhook subscription."""
        ...

    async def get_webhook(
        self, environment: Environment, webhook_id: str
    ) -> WebhookSubscription | None:
        """Get one webhook subscription."""
        ...

    async def get_webhooks(self, environment: Environment) -> list[WebhookSubscription]:
        """Get all webhook subscriptions for an environment."""
        ...

    async def delete_webhook(self, environment: Environment, webhook_id: str) -> bool:
        """Delete a webhook subscription. Returns False if it did not exist."""
        ...

    async def set_webhook_active(
        self, environment: Environment, webhook_id: str, is_active: bool
    ) -> bool:
        """Toggle a subscription. Returns False if it did not exist."""
        ...

    # Delivery log
    async def save_delivery(self, delivery: DeliveryAttempt) -> None:
        """Append a delivery attempt to the delivery log."""
        ...

    async def get_deliveries(
        self,
        environment: Environment,
        trace_id: str | None = None,
        webhook_id: str | None = None,
        limit: int = 100,
    ) -> list[DeliveryAttempt]:
        """Get delivery attempts for an environment (newest first)."""
        ...

    # Orders
    async def save_order(
        self, order_id: str, environment: Environment, data: dict
    ) -> dict:
        """Insert or replace an order document."""
        ...

    async def get_order(self, order_id: str) -> dict | None:
        """Get an order document by ID."""
        ...

    async def update_order(self, order_id: str, fields: dict) -> dict | None:
        """Merge fields into an order. Returns None if the order does not exist."""
        ...

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        ...


class Storage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Initialize database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    # Event log
    async def save_event(self, event: Event) -> None:
        """Append an event to the event log."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT INTO events
            (id, environment, type, source, trace_id, status, payload, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                event.id,
                event.environment.value,
                event.type.value,
                event.source,
                event.trace_id,
                event.status,
                json.dumps(event.payload, default=str),
                event.created_at.isoformat(),
            ),
        )
        await conn.commit()

    async def get_events(
        self,
        environment: Environment,
        event_type: EventType | None = None,
        limit: int = 100,
    ) -> list[Event]:
        """Get events for an environment (newest first)."""
        conn = self._require_conn()

        conditions = ["environment = ?"]
        params: list[Any] = [Environment(environment).value]
        if event_type:
            conditions.append("type = ?")
            params.append(EventType(event_type).value)
        params.append(limit)

        cursor = await conn.execute(
            f"""
            SELECT id, type, source, environment, trace_id, created_at, payload, status
            FROM events
            WHERE {' AND '.join(conditions)}
            ORDER BY seq DESC
            LIMIT ?
            """,
            params,
        )
        rows = await cursor.fetchall()

        return [
            Event(
                id=row[0],
                type=EventType(row[1]),
                source=row[2],
                environment=Environment(row[3]),
                trace_id=row[4],
                created_at=_parse_ts(row[5]),
                payload=json.loads(row[6]),
                status=row[7],
            )
            for row in rows
        ]

    # Webhook registry
    async def save_webhook(self, webhook: WebhookSubscription) -> None:
        """Insert or replace a webhook subscription."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT OR REPLACE INTO webhooks
            (id, environment, url, events, secret, is_active, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                webhook.id,
                webhook.environment.value,
                webhook.url,
                json.dumps([e.value for e in webhook.events]),
                webhook.secret,
                int(webhook.is_active),
                webhook.created_at.isoformat(),
            ),
        )
        await conn.commit()

    @staticmethod
    def _row_to_webhook(row) -> WebhookSubscription:
        return WebhookSubscription(
            id=row[0],
            environment=Environment(row[1]),
            url=row[2],
            events=[EventType(e) for e in json.loads(row[3])],
            secret=row[4],
            is_active=bool(row[5]),
            created_at=_parse_ts(row[6]),
        )

    async def get_webhook(
        self, environment: Environment, webhook_id: str
    ) -> WebhookSubscription | None:
        """Get one webhook subscription."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT id, environment, url, events, secret, is_active, created_at
            FROM webhooks
            WHERE environment = ? AND id = ?
            """,
            (Environment(environment).value, webhook_id),
        )
        row = await cursor.fetchone()

        if not row:
            return None

        return self._row_to_webhook(row)

    async def get_webhooks(self, environment: Environment) -> list[WebhookSubscription]:
        """Get all webhook subscriptions for an environment."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT id, environment, url, events, secret, is_active, created_at
            FROM webhooks
            WHERE environment = ?
            ORDER BY created_at ASC
            """,
            (Environment(environment).value,),
        )
        rows = await cursor.fetchall()

        return [self._row_to_webhook(row) for row in rows]

    async def delete_webhook(self, environment: Environment, webhook_id: str) -> bool:
        """Delete a webhook subscription. Returns False if it did not exist."""
        conn = self._require_conn()

        cursor = await conn.execute(
            "DELETE FROM webhooks WHERE environment = ? AND id = ?",
            (Environment(environment).value, webhook_id),
        )
        await conn.commit()
        return cursor.rowcount > 0

    async def set_webhook_active(
        self, environment: Environment, webhook_id: str, is_active: bool
    ) -> bool:
        """Toggle a subscription. Returns False if it did not exist."""
        conn = self._require_conn()

        cursor = await conn.execute(
            "UPDATE webhooks SET is_active = ? WHERE environment = ? AND id = ?",
            (int(is_active), Environment(environment).value, webhook_id),
        )
        await conn.commit()
        return cursor.rowcount > 0

    # Delivery log
    async def save_delivery(self, delivery: DeliveryAttempt) -> None:
        """Append a delivery attempt to the delivery log."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT INTO deliveries
            (id, environment, webhook_id, event_type, status, attempts,
             last_attempt_at, trace_id, latency_ms, response_code)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                delivery.id,
                delivery.environment.value,
                delivery.webhook_id,
                delivery.event_type.value,
                delivery.status.value,
                delivery.attempts,
                delivery.last_attempt_at.isoformat(),
                delivery.trace_id,
                delivery.latency_ms,
                delivery.response_code,
            ),
        )
        await conn.commit()

    async def get_deliveries(
        self,
        environment: Environment,
        trace_id: str | None = None,
        webhook_id: str | None = None,
        limit: int = 100,
    ) -> list[DeliveryAttempt]:
        """Get delivery attempts for an environment (newest first)."""
        conn = self._require_conn()

        conditions = ["environment = ?"]
        params: list[Any] = [Environment(environment).value]
        if trace_id:
            conditions.append("trace_id = ?")
            params.append(trace_id)
        if webhook_id:
            conditions.append("webhook_id = ?")
            params.append(webhook_id)
        params.append(limit)

        cursor = await conn.execute(
            f"""
            SELECT id, webhook_id, event_type, environment, status, attempts,
                   last_attempt_at, trace_id, latency_ms, response_code
            FROM deliveries
            WHERE {' AND '.join(conditions)}
            ORDER BY seq DESC
            LIMIT ?
            """,
            params,
        )
        rows = await cursor.fetchall()

        return [
            DeliveryAttempt(
                id=row[0],
                webhook_id=row[1],
                event_type=EventType(row[2]),
                environment=Environment(row[3]),
                status=DeliveryStatus(row[4]),
                attempts=row[5],
                last_attempt_at=_parse_ts(row[6]),
                trace_id=row[7],
                latency_ms=row[8],
                response_code=row[9],
            )
            for row in rows
        ]

    # Orders
    async def save_order(
        self, order_id: str, environment: Environment, data: dict
    ) -> dict:
        """Insert or replace an order document."""
        conn = self._require_conn()

        now = datetime.now(timezone.utc).isoformat()
        await conn.execute(
            """
            INSERT OR REPLACE INTO orders (id, environment, data, updated_at)
            VALUES (?, ?, ?, ?)
            """,
            (order_id, Environment(environment).value, json.dumps(data, default=str), now),
        )
        await conn.commit()

        return {
            **data,
            "id": order_id,
            "environment": Environment(environment).value,
            "updated_at": now,
        }

    async def get_order(self, order_id: str) -> dict | None:
        """Get an order document by ID."""
        conn = self._require_conn()

        cursor = await conn.execute(
            "SELECT id, environment, data, updated_at FROM orders WHERE id = ?",
            (order_id,),
        )
        row = await cursor.fetchone()

        if not row:
            return None

        return {
            **json.loads(row[2]),
            "id": row[0],
            "environment": row[1],
            "updated_at": row[3],
        }

    async def update_order(self, order_id: str, fields: dict) -> dict | None:
        """Merge fields into an order. Returns None if the order does not exist."""
        conn = self._require_conn()

        cursor = await conn.execute(
            "SELECT environment, data FROM orders WHERE id = ?", (order_id,)
        )
        row = await cursor.fetchone()

        if not row:
            return None

        data = {**json.loads(row[1]), **fields}
        data.pop("id", None)
        data.pop("environment", None)
        data.pop("updated_at", None)
        return await self.save_order(order_id, Environment(row[0]), data)

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        conn = self._require_conn()

        tables = [
            "events",
            "webhooks",
            "deliveries",
            "orders",
        ]

        for table in tables:
            await conn.execute(f"DELETE FROM {table}")

        await conn.commit()
