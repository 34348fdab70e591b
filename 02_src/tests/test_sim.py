"""Tests for the demo traffic generator."""

import asyncio
import json
import random

import httpx

from sim import Sim


def make_client(requests, status_code=201):
    """AsyncClient whose transport records requests and fakes the orders API."""

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        order_id = f"ord_{len(requests)}"
        return httpx.Response(
            status_code, json={"order": {"id": order_id}, "trace_id": "tr_x"}
        )

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestSim:
    """Tests for Sim."""

    async def test_places_orders_until_limit(self):
        """Test that the SIM stops after max_orders."""
        requests = []
        client = make_client(requests)
        sim = Sim(
            api_url="http://test",
            interval=(0, 0),
            max_orders=3,
            client=client,
            rng=random.Random(1),
        )

        await sim.start()
        await asyncio.wait_for(sim._task, timeout=1)

        assert sim.orders_placed == ["ord_1", "ord_2", "ord_3"]
        assert all(r.url.path == "/api/sandbox/orders" for r in requests)
        body = json.loads(requests[0].content)
        assert 1 <= len(body["items"]) <= 3

        await sim.stop()
        await client.aclose()

    async def test_failed_requests_are_not_counted(self):
        """Test that non-201 responses are logged, not recorded."""
        requests = []
        client = make_client(requests, status_code=500)
        sim = Sim(api_url="http://test", interval=(0, 0), client=client)

        await sim.start()
        await asyncio.sleep(0.05)
        await sim.stop()

        assert requests
        assert sim.orders_placed == []
        await client.aclose()

    async def test_stop_without_start(self):
        """Test that stop() is safe on an idle SIM."""
        sim = Sim()
        await sim.stop()
