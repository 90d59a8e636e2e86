"""Outbound webhooks: event styles, per-type drivers and the dispatcher."""

from app.services.webhooks.dispatcher import WebhookDispatcher, webhook_dispatcher

__all__ = ["WebhookDispatcher", "webhook_dispatcher"]
