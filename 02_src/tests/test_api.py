"""Tests for the HTTP API."""

import random
from unittest.mock import AsyncMock

import httpx
import pytest_asyncio

from eventhub.api import create_fastapi_app
from eventhub.api.routes.control import set_sim_instance
from eventhub.app import Application
from eventhub.scheduler import VirtualScheduler


@pytest_asyncio.fixture
async def application():
    """Started application on virtual time."""
    app = Application(
        db_path=":memory:",
        scheduler=VirtualScheduler(),
        stage_delays=(10.0, 25.0, 45.0),
        rng=random.Random(5),
    )
    await app.start()
    yield app
    await app.stop()


@pytest_asyncio.fixture
async def client(application):
    """HTTP client bound to the FastAPI app (lifespan not run)."""
    fastapi_app = create_fastapi_app(application)
    transport = httpx.ASGITransport(app=fastapi_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


class TestEventRoutes:
    """Tests for /api/{environment}/events and deliveries."""

    async def test_emit_and_list_events(self, client):
        """Test a manual emit shows up in the event log."""
        response = await client.post(
            "/api/sandbox/events",
            json={"event_type": "points.credit", "payload": {"user_id": "u1"}},
        )
        assert response.status_code == 200
        emitted = response.json()
        assert emitted["type"] == "points.credit"
        assert emitted["trace_id"].startswith("tr_")

        response = await client.get("/api/sandbox/events")
        assert response.status_code == 200
        events = response.json()
        assert [e["id"] for e in events] == [emitted["id"]]
        assert events[0]["payload"] == {"user_id": "u1"}

    async def test_emit_list_payload(self, client):
        """Test that array payloads round-trip through the event log."""
        response = await client.post(
            "/api/sandbox/events",
            json={"event_type": "achievement.unlocked", "payload": [{"name": "first_order"}]},
        )
        assert response.status_code == 200

        events = (await client.get("/api/sandbox/events")).json()
        assert events[0]["payload"] == [{"name": "first_order"}]

    async def test_emit_unknown_type(self, client):
        """Test that unknown event types are reported as 400."""
        response = await client.post(
            "/api/sandbox/events", json={"event_type": "celebration.test"}
        )
        assert response.status_code == 400

    async def test_unknown_environment(self, client):
        """Test that the environment path parameter is validated."""
        response = await client.get("/api/staging/events")
        assert response.status_code == 422

    async def test_filter_events_by_type(self, client):
        """Test the event_type query filter."""
        await client.post("/api/live/events", json={"event_type": "order.completed"})
        await client.post("/api/live/events", json={"event_type": "points.credit"})

        response = await client.get("/api/live/events", params={"event_type": "points.credit"})
        assert [e["type"] for e in response.json()] == ["points.credit"]

    async def test_deliveries_for_trace(self, client):
        """Test deliveries are listed with the emitting trace."""
        await client.post(
            "/api/sandbox/webhooks",
            json={"url": "https://example.com/hook", "events": ["order.completed"]},
        )
        emitted = (
            await client.post("/api/sandbox/events", json={"event_type": "order.completed"})
        ).json()

        response = await client.get(
            "/api/sandbox/deliveries", params={"trace_id": emitted["trace_id"]}
        )
        assert response.status_code == 200
        deliveries = response.json()
        assert len(deliveries) == 1
        assert deliveries[0]["trace_id"] == emitted["trace_id"]
        assert deliveries[0]["attempts"] == 1
        assert deliveries[0]["response_code"] in (200, 500)


class TestWebhookRoutes:
    """Tests for /api/{environment}/webhooks."""

    async def test_create_and_list_webhook(self, client):
        """Test registering a webhook masks its secret."""
        response = await client.post(
            "/api/sandbox/webhooks",
            json={"url": "https://example.com/hook", "events": ["order.created"]},
        )
        assert response.status_code == 201
        webhook = response.json()
        assert webhook["secret_masked"] == "whsec_**********"
        assert "secret" not in webhook

        response = await client.get("/api/sandbox/webhooks")
        assert [wh["id"] for wh in response.json()] == [webhook["id"]]

    async def test_create_webhook_invalid_event(self, client):
        """Test that unknown event types are rejected."""
        response = await client.post(
            "/api/sandbox/webhooks",
            json={"url": "https://example.com/hook", "events": ["order.teleported"]},
        )
        assert response.status_code == 400

    async def test_toggle_and_delete_webhook(self, client):
        """Test PATCH and DELETE."""
        webhook = (
            await client.post(
                "/api/sandbox/webhooks",
                json={"url": "https://example.com/hook", "events": ["order.created"]},
            )
        ).json()

        response = await client.patch(
            f"/api/sandbox/webhooks/{webhook['id']}", json={"is_active": False}
        )
        assert response.status_code == 200
        assert response.json()["is_active"] is False

        response = await client.delete(f"/api/sandbox/webhooks/{webhook['id']}")
        assert response.json() == {"status": "ok"}

        response = await client.delete(f"/api/sandbox/webhooks/{webhook['id']}")
        assert response.status_code == 404

    async def test_toggle_unknown_webhook(self, client):
        """Test PATCH on a missing webhook."""
        response = await client.patch("/api/sandbox/webhooks/missing", json={"is_active": True})
        assert response.status_code == 404

    async def test_toggle_webhook_deleted_concurrently(self, client, application):
        """Test PATCH when the webhook disappears before it is read back."""
        webhook = (
            await client.post(
                "/api/sandbox/webhooks",
                json={"url": "https://example.com/hook", "events": ["order.created"]},
            )
        ).json()
        application.registry.get = AsyncMock(return_value=None)

        response = await client.patch(
            f"/api/sandbox/webhooks/{webhook['id']}", json={"is_active": False}
        )
        assert response.status_code == 404


class TestOrderRoutes:
    """Tests for demo orders and fulfillment control."""

    async def test_create_order_and_progress(self, client, application):
        """Test an order created over HTTP advances on the scheduler."""
        response = await client.post(
            "/api/sandbox/orders", json={"order_id": "o1", "items": [{"sku": "MUG-001"}]}
        )
        assert response.status_code == 201
        body = response.json()
        assert body["order"]["id"] == "o1"
        assert body["trace_id"].startswith("tr_")

        await application._scheduler.advance(10)

        response = await client.get("/api/orders/o1")
        assert response.status_code == 200
        assert response.json()["shipment"]["status"] == "packed"

    async def test_stop_fulfillment(self, client, application):
        """Test stopping an order's remaining stages."""
        await client.post("/api/sandbox/orders", json={"order_id": "o1"})
        await application._scheduler.advance(10)

        response = await client.post("/api/orders/o1/fulfillment/stop")
        assert response.json() == {"order_id": "o1", "stopped": True}

        await application._scheduler.advance(60)
        order = (await client.get("/api/orders/o1")).json()
        assert order["shipment"]["status"] == "packed"

        response = await client.post("/api/orders/o1/fulfillment/stop")
        assert response.json()["stopped"] is False

    async def test_get_missing_order(self, client):
        """Test 404 for unknown orders."""
        response = await client.get("/api/orders/missing")
        assert response.status_code == 404


class TestControlRoutes:
    """Tests for /api/control."""

    async def test_reset(self, client):
        """Test that reset clears the logs."""
        await client.post("/api/sandbox/events", json={"event_type": "points.credit"})

        response = await client.post("/api/control/reset")
        assert response.json() == {"status": "ok"}

        response = await client.get("/api/sandbox/events")
        assert response.json() == []

    async def test_sim_not_configured(self, client):
        """Test SIM control without a SIM instance."""
        set_sim_instance(None)

        response = await client.post("/api/control/sim/start")
        assert response.status_code == 404
