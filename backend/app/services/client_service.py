"""
Invoicerr Backend — Client Service
====================================

What:  CRUD and search over a company's clients.
How:   Every query is scoped to the company resolved by the company guard.
       Deleting a client only deactivates it: quotes and invoices keep
       referencing it.

Required fields by client type:
    COMPANY     name
    INDIVIDUAL  contact_firstname and contact_lastname
"""

import logging
from typing import Any, Dict, List

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NotFoundError, ValidationError
from app.models.client import Client
from app.models.company import Company
from app.models.enums import ClientType, WebhookEvent
from app.services.webhooks import webhook_dispatcher
from app.utils.ids import as_uuid
from app.utils.pagination import PAGE_SIZE, page_count, page_offset
from app.utils.serialization import serialize_model

logger = logging.getLogger(__name__)


def validate_client_fields(client_type: ClientType, data: Dict[str, Any]) -> None:
    if ClientType(client_type) == ClientType.COMPANY:
        if not (data.get("name") or "").strip():
            raise ValidationError("Name is required for company clients", field="name")
    else:
        if not (data.get("contact_firstname") or "").strip() or not (
            data.get("contact_lastname") or ""
        ).strip():
            raise ValidationError(
                "First name and last name are required for individual clients",
                field="contact_firstname",
            )


class ClientService:

    async def get_clients(self, db: AsyncSession, company: Company, page: int = 1) -> Dict[str, Any]:
        base = select(Client).where(Client.company_id == company.id, Client.is_active.is_(True))

        total = (
            await db.execute(select(func.count()).select_from(base.subquery()))
        ).scalar() or 0
        result = await db.execute(
            base.order_by(Client.created_at.desc()).offset(page_offset(page)).limit(PAGE_SIZE)
        )
        return {"page_count": page_count(total), "clients": list(result.scalars().all())}

    async def search_clients(self, db: AsyncSession, company: Company, query: str) -> List[Client]:
        stmt = select(Client).where(Client.company_id == company.id, Client.is_active.is_(True))
        query = (query or "").strip()
        if query:
            pattern = f"%{query}%"
            stmt = stmt.where(
                or_(
                    Client.name.ilike(pattern),
                    Client.contact_firstname.ilike(pattern),
                    Client.contact_lastname.ilike(pattern),
                    Client.contact_email.ilike(pattern),
                )
            )
        result = await db.execute(stmt.order_by(Client.name.asc()).limit(PAGE_SIZE))
        return list(result.scalars().all())

    async def get_client(self, db: AsyncSession, company: Company, client_id: Any) -> Client:
        """Tenant-scoped lookup; another company's client is reported as missing."""
        result = await db.execute(
            select(Client).where(Client.id == as_uuid(client_id), Client.company_id == company.id)
        )
        client = result.scalar_one_or_none()
        if client is None:
            raise NotFoundError(resource="Client", resource_id=str(client_id))
        return client

    async def create_client(self, db: AsyncSession, company: Company, data: Dict[str, Any]) -> Client:
        client_type = ClientType(data.get("type") or ClientType.COMPANY)
        validate_client_fields(client_type, data)

        client = Client(company_id=company.id, **{**data, "type": client_type})
        db.add(client)
        await db.flush()
        logger.info("Client %s created for company %s", client.id, company.id)

        await webhook_dispatcher.safe_dispatch(
            db,
            WebhookEvent.CLIENT_CREATED,
            {"company": serialize_model(company), "client": serialize_model(client)},
        )
        return client

    async def edit_client(
        self,
        db: AsyncSession,
        company: Company,
        client_id: Any,
        data: Dict[str, Any],
    ) -> Client:
        client = await self.get_client(db, company, client_id)
        was_active = client.is_active

        merged = {
            "name": client.name,
            "contact_firstname": client.contact_firstname,
            "contact_lastname": client.contact_lastname,
            **data,
        }
        validate_client_fields(data.get("type") or client.type, merged)

        for field, value in data.items():
            if field in ("id", "company_id", "created_at"):
                continue
            setattr(client, field, value)
        await db.flush()
        logger.info("Client %s updated", client.id)

        payload = {"company": serialize_model(company), "client": serialize_model(client)}
        await webhook_dispatcher.safe_dispatch(db, WebhookEvent.CLIENT_UPDATED, payload)
        if client.is_active != was_active:
            event = WebhookEvent.CLIENT_ACTIVATED if client.is_active else WebhookEvent.CLIENT_DEACTIVATED
            await webhook_dispatcher.safe_dispatch(db, event, payload)
        return client

    async def delete_client(self, db: AsyncSession, company: Company, client_id: Any) -> Client:
        client = await self.get_client(db, company, client_id)
        client.is_active = False
        await db.flush()
        logger.info("Client %s deactivated", client.id)

        await webhook_dispatcher.safe_dispatch(
            db,
            WebhookEvent.CLIENT_DELETED,
            {"company": serialize_model(company), "client": serialize_model(client)},
        )
        return client


# ── Singleton Instance ────────────────────────────────────────────────────
client_service = ClientService()
