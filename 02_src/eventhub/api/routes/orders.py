"""Demo order API routes."""

from typing import Any

from pydantic import BaseModel, Field
from fastapi import APIRouter, HTTPException

from ...app import IApplication
from ...event_bus import EventLogWriteError
from ...models import Environment


class OrderCreateRequest(BaseModel):
    """Request model for a demo checkout."""

    order_id: str | None = None
    number: str | None = None
    items: list[dict[str, Any]] = Field(default_factory=list)


class OrderResponse(BaseModel):
    """Response model for a demo checkout."""

    order: dict[str, Any]
    trace_id: str | None = None


class StopResponse(BaseModel):
    """Response model for stopping fulfillment."""

    order_id: str
    stopped: bool


def create_orders_router(app: IApplication) -> APIRouter:
    """Create demo orders router."""
    router = APIRouter(prefix="/api", tags=["orders"])

    @router.post("/{environment}/orders", response_model=OrderResponse, status_code=201)
    async def create_order(environment: Environment, request: OrderCreateRequest) -> dict:
        """Create an order and emit order.created."""
        try:
            order, event = await app.place_order(
                environment,
                order_id=request.order_id,
                number=request.number,
                items=request.items,
            )
        except EventLogWriteError as e:
            raise HTTPException(status_code=500, detail=str(e))
        return {"order": order, "trace_id": event.trace_id if event else None}

    @router.get("/orders/{order_id}")
    async def get_order(order_id: str) -> dict:
        """Get an order including its shipment sub-record."""
        order = await app.storage.get_order(order_id)
        if order is None:
            raise HTTPException(status_code=404, detail="Order not found")
        return order

    @router.post("/orders/{order_id}/fulfillment/stop", response_model=StopResponse)
    async def stop_fulfillment(order_id: str) -> dict:
        """Cancel the shipment stages of an order that have not fired yet."""
        stopped = app.fulfillment.stop(order_id)
        return {"order_id": order_id, "stopped": stopped}

    return router
