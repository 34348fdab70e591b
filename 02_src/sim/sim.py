"""SIM implementation - demo checkout traffic against the HTTP API."""

import asyncio
import random
from typing import Protocol

import httpx

from eventhub.logging_config import get_logger

logger = get_logger(__name__)

DEMO_PRODUCTS = [
    {"sku": "MUG-001", "name": "Caneca Térmica", "price": 79.9},
    {"sku": "HOOD-002", "name": "Moletom Corporativo", "price": 189.0},
    {"sku": "BTL-003", "name": "Garrafa Inox", "price": 99.5},
    {"sku": "NBK-004", "name": "Caderno Executivo", "price": 45.0},
]


class ISim(Protocol):
    """Generate demo orders."""

    async def start(self) -> None:
        """Start placing orders in the background."""
        ...

    async def stop(self) -> None:
        """Stop placing orders."""
        ...


class Sim:
    """Places demo orders in the sandbox at random intervals."""

    def __init__(
        self,
        api_url: str = "http://localhost:8000",
        environment: str = "sandbox",
        interval: tuple[float, float] = (3.0, 8.0),
        max_orders: int | None = None,
        client: httpx.AsyncClient | None = None,
        rng: random.Random | None = None,
    ):
        self._api_url = api_url
        self._environment = environment
        self._interval = interval
        self._max_orders = max_orders
        self._client = client
        self._owns_client = client is None
        self._rng = rng or random.Random()
        self._running = False
        self._task: asyncio.Task | None = None
        self.orders_placed: list[str] = []

    async def start(self) -> None:
        """Start placing orders in the background."""
        if self._running:
            return

        self._running = True
        if self._client is None:
            self._client = httpx.AsyncClient()
            self._owns_client = True

        self._task = asyncio.create_task(self._run_scenario())

    async def stop(self) -> None:
        """Stop placing orders."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _run_scenario(self) -> None:
        """Place orders until stopped or max_orders is reached."""
        try:
            while self._running:
                if self._max_orders is not None and len(self.orders_placed) >= self._max_orders:
                    break

                await self._place_order()
                await asyncio.sleep(self._rng.uniform(*self._interval))

        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error("SIM scenario error: %s", e)
        finally:
            self._running = False
            logger.info("SIM finished after %d orders", len(self.orders_placed))

    def _random_items(self) -> list[dict]:
        products = self._rng.sample(DEMO_PRODUCTS, k=self._rng.randint(1, 3))
        return [{**p, "quantity": self._rng.randint(1, 3)} for p in products]

    async def _place_order(self) -> None:
        """POST one order to the API."""
        if not self._client:
            return

        try:
            response = await self._client.post(
                f"{self._api_url}/api/{self._environment}/orders",
                json={"items": self._random_items()},
                timeout=10.0,
            )

            if response.status_code == 201:
                data = response.json()
                order_id = data["order"]["id"]
                self.orders_placed.append(order_id)
                logger.info("SIM: placed order %s (trace %s)", order_id, data.get("trace_id"))
            else:
                logger.error(
                    "SIM: Error placing order: %s",
                    response.status_code,
                )

        except httpx.HTTPError as e:
            logger.error("SIM: Failed to place order: %s", e)
