"""Event log and delivery log API routes."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field
from fastapi import APIRouter, HTTPException, Query

from ...app import IApplication
from ...event_bus import EventLogWriteError
from ...models import DeliveryAttempt, Environment, Event, EventType


class EmitRequest(BaseModel):
    """Request model for a manual test emit."""

    event_type: str
    payload: Any = Field(default_factory=dict)


class EventResponse(BaseModel):
    """Response model for an event log entry."""

    id: str
    type: str
    source: str
    environment: str
    trace_id: str
    created_at: datetime
    status: str
    payload: Any


class DeliveryResponse(BaseModel):
    """Response model for a delivery attempt."""

    id: str
    webhook_id: str
    event_type: str
    status: str
    attempts: int
    last_attempt_at: datetime
    trace_id: str
    latency_ms: int
    response_code: int


def event_to_dict(event: Event) -> dict:
    return {
        "id": event.id,
        "type": event.type.value,
        "source": event.source,
        "environment": event.environment.value,
        "trace_id": event.trace_id,
        "created_at": event.created_at.isoformat(),
        "status": event.status,
        "payload": event.payload,
    }


def delivery_to_dict(delivery: DeliveryAttempt) -> dict:
    return {
        "id": delivery.id,
        "webhook_id": delivery.webhook_id,
        "event_type": delivery.event_type.value,
        "status": delivery.status.value,
        "attempts": delivery.attempts,
        "last_attempt_at": delivery.last_attempt_at.isoformat(),
        "trace_id": delivery.trace_id,
        "latency_ms": delivery.latency_ms,
        "response_code": delivery.response_code,
    }


def create_events_router(app: IApplication) -> APIRouter:
    """Create event log router."""
    router = APIRouter(prefix="/api/{environment}", tags=["events"])

    @router.get("/events", response_model=list[EventResponse])
    async def get_events(
        environment: Environment,
        event_type: EventType | None = Query(None, description="Filter by event type"),
        limit: int = Query(100, ge=1, le=1000),
    ) -> list[dict]:
        """Get the event log, newest first."""
        try:
            events = await app.storage.get_events(
                environment, event_type=event_type, limit=limit
            )
            return [event_to_dict(e) for e in events]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("/events", response_model=EventResponse)
    async def emit_event(environment: Environment, request: EmitRequest) -> dict:
        """Emit a test event through the EventBus."""
        try:
            event = await app.event_bus.emit(
                environment, request.event_type, request.payload
            )
        except EventLogWriteError as e:
            raise HTTPException(status_code=500, detail=str(e))

        if event is None:
            raise HTTPException(
                status_code=400, detail=f"Unknown event type: {request.event_type}"
            )
        return event_to_dict(event)

    @router.get("/deliveries", response_model=list[DeliveryResponse])
    async def get_deliveries(
        environment: Environment,
        trace_id: str | None = Query(None, description="Filter by trace ID"),
        webhook_id: str | None = Query(None, description="Filter by webhook"),
        limit: int = Query(100, ge=1, le=1000),
    ) -> list[dict]:
        """Get webhook delivery attempts, newest first."""
        try:
            deliveries = await app.storage.get_deliveries(
                environment, trace_id=trace_id, webhook_id=webhook_id, limit=limit
            )
            return [delivery_to_dict(d) for d in deliveries]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    return router
