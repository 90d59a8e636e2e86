"""
Invoicerr Backend — Webhook Service
=====================================

What:  Company-scoped CRUD over outbound webhooks.
How:   The signing secret is generated on create when the caller gives
       none and is only ever returned by the create call; list and get
       responses leave it out (see schemas/webhook.py).
"""

import logging
from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NotFoundError, ValidationError
from app.models.company import Company
from app.models.enums import WebhookEvent, WebhookType
from app.models.integration import Webhook
from app.services.webhooks import webhook_dispatcher
from app.utils.formatting import generate_webhook_secret
from app.utils.ids import as_uuid
from app.utils.serialization import serialize_model

logger = logging.getLogger(__name__)


def normalize_events(events: Any) -> List[str]:
    """Validate event names and return them as plain strings, de-duplicated."""
    names = []
    for event in events or []:
        try:
            name = WebhookEvent(event).value
        except ValueError:
            raise ValidationError(f"Unknown webhook event: {event}", field="events")
        if name not in names:
            names.append(name)
    return names


def webhook_payload(company: Company, webhook: Webhook) -> Dict[str, Any]:
    return {"company": serialize_model(company), "webhook": serialize_model(webhook, exclude=("secret",))}


class WebhookService:

    def options(self) -> Dict[str, List[str]]:
        return {
            "types": [t.value for t in WebhookType],
            "events": [e.value for e in WebhookEvent],
        }

    async def list(self, db: AsyncSession, company: Company) -> List[Webhook]:
        result = await db.execute(
            select(Webhook).where(Webhook.company_id == company.id).order_by(Webhook.created_at.desc())
        )
        return list(result.scalars().all())

    async def get(self, db: AsyncSession, company: Company, webhook_id: Any) -> Webhook:
        result = await db.execute(
            select(Webhook).where(Webhook.id == as_uuid(webhook_id), Webhook.company_id == company.id)
        )
        webhook = result.scalar_one_or_none()
        if webhook is None:
            raise NotFoundError(resource="Webhook", resource_id=str(webhook_id))
        return webhook

    async def create(self, db: AsyncSession, company: Company, data: Dict[str, Any]) -> Webhook:
        webhook = Webhook(
            company_id=company.id,
            url=data["url"],
            type=WebhookType(data.get("type") or WebhookType.GENERIC),
            events=normalize_events(data.get("events")),
            secret=data.get("secret") or generate_webhook_secret(),
        )
        db.add(webhook)
        await db.flush()
        logger.info("Webhook %s (%s) created for company %s", webhook.id, webhook.type.value, company.id)

        await webhook_dispatcher.safe_dispatch(
            db, WebhookEvent.WEBHOOK_CREATED, webhook_payload(company, webhook)
        )
        return webhook

    async def update(
        self,
        db: AsyncSession,
        company: Company,
        webhook_id: Any,
        data: Dict[str, Any],
    ) -> Webhook:
        webhook = await self.get(db, company, webhook_id)
        if data.get("url"):
            webhook.url = data["url"]
        if data.get("type"):
            webhook.type = WebhookType(data["type"])
        if data.get("events") is not None:
            webhook.events = normalize_events(data["events"])
        if data.get("secret"):
            webhook.secret = data["secret"]
        await db.flush()
        logger.info("Webhook %s updated", webhook.id)

        await webhook_dispatcher.safe_dispatch(
            db, WebhookEvent.WEBHOOK_UPDATED, webhook_payload(company, webhook)
        )
        return webhook

    async def delete(self, db: AsyncSession, company: Company, webhook_id: Any) -> Dict[str, str]:
        webhook = await self.get(db, company, webhook_id)
        payload = webhook_payload(company, webhook)
        await db.delete(webhook)
        await db.flush()
        logger.info("Webhook %s deleted", webhook.id)

        await webhook_dispatcher.safe_dispatch(db, WebhookEvent.WEBHOOK_DELETED, payload)
        return {"message": "Webhook deleted successfully"}


# ── Singleton Instance ────────────────────────────────────────────────────
webhook_service = WebhookService()
