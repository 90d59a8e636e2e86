"""
Invoicerr Backend — Payment Method Service
============================================

What:  CRUD over the payment instructions a company prints on documents
       (IBAN for a bank transfer, PayPal address, ...).
How:   Soft delete only: quotes, invoices and receipts keep their
       payment_method_id after the method is retired.
"""

import logging
from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NotFoundError
from app.models.client import PaymentMethod
from app.models.company import Company
from app.models.enums import PaymentMethodType, WebhookEvent
from app.services.webhooks import webhook_dispatcher
from app.utils.ids import as_uuid
from app.utils.serialization import serialize_model

logger = logging.getLogger(__name__)


class PaymentMethodService:

    async def create(self, db: AsyncSession, company: Company, data: Dict[str, Any]) -> PaymentMethod:
        method = PaymentMethod(
            company_id=company.id,
            name=data["name"],
            details=data.get("details") or "",
            type=PaymentMethodType(data.get("type") or PaymentMethodType.BANK_TRANSFER),
        )
        db.add(method)
        await db.flush()
        logger.info("Payment method %s created for company %s", method.id, company.id)

        await webhook_dispatcher.safe_dispatch(
            db,
            WebhookEvent.PAYMENT_METHOD_CREATED,
            {"company": serialize_model(company), "payment_method": serialize_model(method)},
        )
        return method

    async def find_all(self, db: AsyncSession, company: Company) -> List[PaymentMethod]:
        result = await db.execute(
            select(PaymentMethod)
            .where(PaymentMethod.company_id == company.id, PaymentMethod.is_active.is_(True))
            .order_by(PaymentMethod.created_at.desc())
        )
        return list(result.scalars().all())

    async def find_one(self, db: AsyncSession, company: Company, method_id: Any) -> PaymentMethod:
        result = await db.execute(
            select(PaymentMethod).where(
                PaymentMethod.id == as_uuid(method_id),
                PaymentMethod.company_id == company.id,
            )
        )
        method = result.scalar_one_or_none()
        if method is None:
            raise NotFoundError(resource="Payment method", resource_id=str(method_id))
        return method

    async def update(
        self,
        db: AsyncSession,
        company: Company,
        method_id: Any,
        data: Dict[str, Any],
    ) -> PaymentMethod:
        method = await self.find_one(db, company, method_id)
        was_active = method.is_active

        for field in ("name", "details", "type", "is_active"):
            if field in data and data[field] is not None:
                setattr(method, field, data[field])
        await db.flush()
        logger.info("Payment method %s updated", method.id)

        payload = {"company": serialize_model(company), "payment_method": serialize_model(method)}
        await webhook_dispatcher.safe_dispatch(db, WebhookEvent.PAYMENT_METHOD_UPDATED, payload)
        if method.is_active != was_active:
            event = (
                WebhookEvent.PAYMENT_METHOD_ACTIVATED
                if method.is_active
                else WebhookEvent.PAYMENT_METHOD_DEACTIVATED
            )
            await webhook_dispatcher.safe_dispatch(db, event, payload)
        return method

    async def soft_delete(self, db: AsyncSession, company: Company, method_id: Any) -> PaymentMethod:
        method = await self.find_one(db, company, method_id)
        method.is_active = False
        await db.flush()
        logger.info("Payment method %s deactivated", method.id)

        await webhook_dispatcher.safe_dispatch(
            db,
            WebhookEvent.PAYMENT_METHOD_DELETED,
            {"company": serialize_model(company), "payment_method": serialize_model(method)},
        )
        return method


# ── Singleton Instance ────────────────────────────────────────────────────
payment_method_service = PaymentMethodService()
