"""
Invoicerr Backend — Recurring Invoice Service
===============================================

What:  Invoice templates that produce a real invoice on a schedule.
Why:   Retainers and subscriptions bill the same lines every period.
How:   `next_invoice_date` is the only scheduling state. generate_due_invoices()
       picks every template whose date has come, creates the invoice through
       invoice_service (so numbering, totals and webhooks behave exactly like
       a manual invoice) and advances the date by the frequency step.

Frequency steps (python-dateutil relativedelta, month-end safe):
    WEEKLY +1w, BIWEEKLY +2w, MONTHLY +1m, BIMONTHLY +2m, QUARTERLY +3m,
    QUADMONTHLY +4m, SEMIANNUALLY +6m, ANNUALLY +1y
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ExternalServiceError, NotFoundError
from app.models.company import Company
from app.models.enums import RecurrenceFrequency, WebhookEvent
from app.models.recurring_invoice import RecurringInvoice, RecurringInvoiceItem
from app.services.client_service import client_service
from app.services.invoice_service import invoice_service
from app.services.line_items import apply_totals, build_items
from app.services.quote_service import resolve_payment_method
from app.services.webhooks import webhook_dispatcher
from app.utils.dates import ensure_aware, utcnow
from app.utils.financial import is_vat_exempt
from app.utils.ids import as_uuid
from app.utils.pagination import PAGE_SIZE, page_count, page_offset
from app.utils.serialization import serialize_model

logger = logging.getLogger(__name__)

FREQUENCY_STEPS = {
    RecurrenceFrequency.WEEKLY: relativedelta(weeks=1),
    RecurrenceFrequency.BIWEEKLY: relativedelta(weeks=2),
    RecurrenceFrequency.MONTHLY: relativedelta(months=1),
    RecurrenceFrequency.BIMONTHLY: relativedelta(months=2),
    RecurrenceFrequency.QUARTERLY: relativedelta(months=3),
    RecurrenceFrequency.QUADMONTHLY: relativedelta(months=4),
    RecurrenceFrequency.SEMIANNUALLY: relativedelta(months=6),
    RecurrenceFrequency.ANNUALLY: relativedelta(years=1),
}

_SCHEDULE_FIELDS = ("frequency", "count", "until", "auto_send", "notes", "currency", "payment_details")


def calculate_next_date(date: datetime, frequency: RecurrenceFrequency) -> datetime:
    return date + FREQUENCY_STEPS[RecurrenceFrequency(frequency)]


def recurring_payload(company: Company, recurring: RecurringInvoice) -> Dict[str, Any]:
    return {
        "company": serialize_model(company),
        "client": serialize_model(recurring.__dict__.get("client")),
        "recurring_invoice": serialize_model(recurring),
    }


class RecurringInvoiceService:

    async def list(self, db: AsyncSession, company: Company, page: int = 1) -> Dict[str, Any]:
        base = select(RecurringInvoice).where(RecurringInvoice.company_id == company.id)
        total = (
            await db.execute(select(func.count()).select_from(base.subquery()))
        ).scalar() or 0
        result = await db.execute(
            base.order_by(RecurringInvoice.created_at.desc())
            .offset(page_offset(page))
            .limit(PAGE_SIZE)
        )
        return {"page_count": page_count(total), "recurring_invoices": list(result.scalars().all())}

    async def get(self, db: AsyncSession, company: Company, recurring_id: Any) -> RecurringInvoice:
        result = await db.execute(
            select(RecurringInvoice).where(
                RecurringInvoice.id == as_uuid(recurring_id),
                RecurringInvoice.company_id == company.id,
            )
        )
        recurring = result.scalar_one_or_none()
        if recurring is None:
            raise NotFoundError(resource="Recurring invoice", resource_id=str(recurring_id))
        return recurring

    async def create(self, db: AsyncSession, company: Company, data: Dict[str, Any]) -> RecurringInvoice:
        client = await client_service.get_client(db, company, data["client_id"])
        method = await resolve_payment_method(db, company, data.get("payment_method_id"))
        vat_exempt = is_vat_exempt(company)

        recurring = RecurringInvoice(
            company_id=company.id,
            client_id=client.id,
            frequency=RecurrenceFrequency(data.get("frequency") or RecurrenceFrequency.MONTHLY),
            count=data.get("count"),
            until=data.get("until"),
            auto_send=bool(data.get("auto_send")),
            next_invoice_date=data.get("start_date") or utcnow(),
            notes=data.get("notes") or "",
            currency=data.get("currency") or client.currency or company.currency,
            payment_method_id=method.id if method else None,
            payment_details=data.get("payment_details"),
            items=build_items(RecurringInvoiceItem, data.get("items") or [], vat_exempt),
        )
        recurring.company = company
        recurring.client = client
        recurring.payment_method_ref = method
        apply_totals(recurring, data.get("discount_rate"), vat_exempt)

        db.add(recurring)
        await db.flush()
        logger.info(
            "Recurring invoice %s created (%s, next %s)",
            recurring.id,
            recurring.frequency.value,
            recurring.next_invoice_date,
        )

        await webhook_dispatcher.safe_dispatch(
            db, WebhookEvent.RECURRING_INVOICE_CREATED, recurring_payload(company, recurring)
        )
        return recurring

    async def update(
        self,
        db: AsyncSession,
        company: Company,
        recurring_id: Any,
        data: Dict[str, Any],
    ) -> RecurringInvoice:
        recurring = await self.get(db, company, recurring_id)
        vat_exempt = is_vat_exempt(company)

        if data.get("client_id") and as_uuid(data["client_id"]) != recurring.client_id:
            client = await client_service.get_client(db, company, data["client_id"])
            recurring.client_id = client.id
            recurring.client = client
        if data.get("payment_method_id"):
            method = await resolve_payment_method(db, company, data["payment_method_id"])
            recurring.payment_method_id = method.id
            recurring.payment_method_ref = method
        for field in _SCHEDULE_FIELDS:
            if field in data and data[field] is not None:
                setattr(recurring, field, data[field])
        if data.get("start_date"):
            recurring.next_invoice_date = data["start_date"]

        if data.get("items") is not None:
            recurring.items = build_items(RecurringInvoiceItem, data["items"], vat_exempt)
        discount = data["discount_rate"] if data.get("discount_rate") is not None else recurring.discount_rate
        apply_totals(recurring, discount, vat_exempt)

        await db.flush()
        logger.info("Recurring invoice %s updated", recurring.id)

        await webhook_dispatcher.safe_dispatch(
            db, WebhookEvent.RECURRING_INVOICE_UPDATED, recurring_payload(company, recurring)
        )
        return recurring

    async def delete(self, db: AsyncSession, company: Company, recurring_id: Any) -> Dict[str, str]:
        recurring = await self.get(db, company, recurring_id)
        payload = recurring_payload(company, recurring)
        await db.delete(recurring)
        await db.flush()
        logger.info("Recurring invoice %s deleted", recurring.id)

        await webhook_dispatcher.safe_dispatch(db, WebhookEvent.RECURRING_INVOICE_DELETED, payload)
        return {"message": "Recurring invoice deleted successfully"}

    # ── Generation ────────────────────────────────────────────────────────

    def is_exhausted(self, recurring: RecurringInvoice, now: datetime) -> bool:
        if recurring.count is not None and recurring.generated_count >= recurring.count:
            return True
        until = ensure_aware(recurring.until)
        return until is not None and until < now

    async def generate_invoice(self, db: AsyncSession, recurring: RecurringInvoice) -> Any:
        company = recurring.company
        data = {
            "client_id": recurring.client_id,
            "recurring_invoice_id": recurring.id,
            "notes": recurring.notes,
            "currency": recurring.currency,
            "discount_rate": recurring.discount_rate,
            "payment_method_id": recurring.payment_method_id,
            "payment_details": recurring.payment_details,
            "items": [serialize_model(item) for item in recurring.items],
        }
        invoice = await invoice_service.create_invoice(db, company, data)

        issued_on = ensure_aware(recurring.next_invoice_date)
        recurring.last_invoice_date = issued_on
        recurring.next_invoice_date = calculate_next_date(issued_on, recurring.frequency)
        recurring.generated_count = (recurring.generated_count or 0) + 1
        await db.flush()

        payload = {**recurring_payload(company, recurring), "invoice": serialize_model(invoice)}
        await webhook_dispatcher.safe_dispatch(db, WebhookEvent.RECURRING_INVOICE_GENERATED, payload)

        if recurring.auto_send:
            try:
                outcome = await invoice_service.send_invoice(db, company, invoice.id)
            except ExternalServiceError as e:
                logger.error("Auto-send of invoice %s failed: %s", invoice.id, e.message)
                return invoice
            if outcome["success"]:
                await webhook_dispatcher.safe_dispatch(
                    db, WebhookEvent.RECURRING_INVOICE_AUTO_SENT, payload
                )
        return invoice

    async def generate_due_invoices(self, db: AsyncSession, now: Optional[datetime] = None) -> int:
        """
        Create the invoices that are due, across all companies.

        One failing template is logged and skipped; the others still run.
        Returns the number of invoices generated.
        """
        now = now or utcnow()
        result = await db.execute(
            select(RecurringInvoice).where(
                RecurringInvoice.next_invoice_date.is_not(None),
                RecurringInvoice.next_invoice_date <= now,
            )
        )
        generated = 0
        for recurring in result.scalars().all():
            if self.is_exhausted(recurring, now):
                logger.debug("Recurring invoice %s has reached its limit", recurring.id)
                continue
            try:
                async with db.begin_nested():
                    invoice = await self.generate_invoice(db, recurring)
            except Exception as e:
                logger.error("Recurring invoice %s failed to generate: %s", recurring.id, str(e), exc_info=True)
                continue
            generated += 1
            logger.info("Recurring invoice %s generated invoice %s", recurring.id, invoice.id)

        if generated:
            logger.info("Generated %d recurring invoices", generated)
        return generated


# ── Singleton Instance ────────────────────────────────────────────────────
recurring_invoice_service = RecurringInvoiceService()
