"""Webhook registry module."""

from .registry import IWebhookRegistry, WebhookRegistry

__all__ = ["IWebhookRegistry", "WebhookRegistry"]
