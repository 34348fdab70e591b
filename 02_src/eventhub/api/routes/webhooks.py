"""Webhook registry API routes."""

from datetime import datetime

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException

from ...app import IApplication
from ...models import Environment, WebhookSubscription


class WebhookCreateRequest(BaseModel):
    """Request model for registering a webhook."""

    url: str
    events: list[str]
    is_active: bool = True


class WebhookUpdateRequest(BaseModel):
    """Request model for toggling a webhook."""

    is_active: bool


class WebhookResponse(BaseModel):
    """Response model for a webhook subscription (secret masked)."""

    id: str
    url: str
    events: list[str]
    environment: str
    is_active: bool
    secret_masked: str
    created_at: datetime


class StatusResponse(BaseModel):
    """Response model for status."""

    status: str


def webhook_to_dict(webhook: WebhookSubscription) -> dict:
    return {
        "id": webhook.id,
        "url": webhook.url,
        "events": [e.value for e in webhook.events],
        "environment": webhook.environment.value,
        "is_active": webhook.is_active,
        "secret_masked": webhook.masked_secret,
        "created_at": webhook.created_at.isoformat(),
    }


def create_webhooks_router(app: IApplication) -> APIRouter:
    """Create webhook registry router."""
    router = APIRouter(prefix="/api/{environment}/webhooks", tags=["webhooks"])

    @router.get("", response_model=list[WebhookResponse])
    async def list_webhooks(environment: Environment) -> list[dict]:
        """List webhook subscriptions."""
        webhooks = await app.registry.get_all(environment)
        return [webhook_to_dict(wh) for wh in webhooks]

    @router.post("", response_model=WebhookResponse, status_code=201)
    async def create_webhook(
        environment: Environment, request: WebhookCreateRequest
    ) -> dict:
        """Register a webhook subscription."""
        try:
            webhook = await app.registry.register(
                environment, request.url, request.events, is_active=request.is_active
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return webhook_to_dict(webhook)

    @router.patch("/{webhook_id}", response_model=WebhookResponse)
    async def update_webhook(
        environment: Environment, webhook_id: str, request: WebhookUpdateRequest
    ) -> dict:
        """Enable or disable a webhook subscription."""
        updated = await app.registry.set_active(environment, webhook_id, request.is_active)
        if not updated:
            raise HTTPException(status_code=404, detail="Webhook not found")
        webhook = await app.registry.get(environment, webhook_id)
        if webhook is None:
            raise HTTPException(status_code=404, detail="Webhook not found")
        return webhook_to_dict(webhook)

    @router.delete("/{webhook_id}", response_model=StatusResponse)
    async def delete_webhook(environment: Environment, webhook_id: str) -> dict:
        """Remove a webhook subscription."""
        if not await app.registry.delete(environment, webhook_id):
            raise HTTPException(status_code=404, detail="Webhook not found")
        return {"status": "ok"}

    return router
