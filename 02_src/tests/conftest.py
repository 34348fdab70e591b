"""Pytest configuration and fixtures."""

import random
import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from eventhub.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def registry(storage):
    """Create WebhookRegistry with storage."""
    from eventhub.webhooks import WebhookRegistry

    return WebhookRegistry(storage)


@pytest.fixture
def event_bus(storage, registry):
    """Create EventBus with a seeded RNG."""
    from eventhub.event_bus import EventBus

    return EventBus(storage, registry, rng=random.Random(42))


@pytest.fixture
def virtual_scheduler():
    """Create a scheduler driven by virtual time."""
    from eventhub.scheduler import VirtualScheduler

    return VirtualScheduler()


@pytest_asyncio.fixture
async def fulfillment(event_bus, storage, virtual_scheduler):
    """Create a started FulfillmentScheduler on virtual time (10s / 25s / 45s)."""
    from eventhub.fulfillment import FulfillmentScheduler

    fs = FulfillmentScheduler(
        event_bus=event_bus,
        storage=storage,
        scheduler=virtual_scheduler,
        stage_delays=(10.0, 25.0, 45.0),
        rng=random.Random(7),
    )
    await fs.start()
    yield fs
    await fs.close()


@pytest_asyncio.fixture
async def order(storage):
    """Create a stored sandbox order o1."""
    from eventhub.models import Environment

    return await storage.save_order(
        "o1", Environment.SANDBOX, {"number": "R100", "items": []}
    )
