"""
Invoicerr Backend — Invoice Service
=====================================

What:  Invoices: listing with status stats, search, create/edit/delete,
       conversion from quotes, payment, sending, credit notes and the
       overdue sweep.
Why:   The invoice is the legally relevant document; everything else in the
       app either leads to one or pays one.
How:   Same write path as quotes: server-side totals, per-company numbers,
       relationships assigned on the instance. Storage uploads and webhook
       dispatch never fail the operation that triggered them.

Credit notes:
    A credit note is an invoice with negative unit prices and totals, a
    "CN-{year}-{number:04}" raw number and a notes block carrying the
    reason, the [CREDIT_NOTE] marker, the original number, the correction
    code and the original invoice id.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import NotFoundError, ValidationError
from app.models.client import Client
from app.models.company import Company
from app.models.enums import InvoiceStatus, MailTemplateType, WebhookEvent
from app.models.invoice import CREDIT_NOTE_MARKER, Invoice, InvoiceItem
from app.models.quote import Quote
from app.services.client_service import client_service
from app.services.company_service import company_service
from app.services.line_items import apply_totals, build_items, sync_items
from app.services.mail_service import mail_service
from app.services.plugin_service import plugin_service
from app.services.quote_service import quote_service, resolve_payment_method
from app.services.webhooks import webhook_dispatcher
from app.utils.dates import ensure_aware, utcnow
from app.utils.financial import is_vat_exempt
from app.utils.formatting import render_template
from app.utils.ids import as_uuid
from app.utils.numbering import assign_number, backfill_raw_numbers, next_number
from app.utils.pagination import PAGE_SIZE, page_count, page_offset
from app.utils.serialization import serialize_model

logger = logging.getLogger(__name__)

DEFAULT_DUE_DAYS = 14

# Statuses an invoice can still become overdue from
_OPEN_STATUSES = (InvoiceStatus.UNPAID, InvoiceStatus.SENT)


def invoice_payload(company: Company, invoice: Invoice) -> Dict[str, Any]:
    return {
        "company": serialize_model(company),
        "client": serialize_model(invoice.__dict__.get("client")),
        "invoice": serialize_model(invoice),
    }


def credit_note_notes(original: Invoice, correction_code: str, reason: Optional[str]) -> str:
    lines = [
        reason or "",
        CREDIT_NOTE_MARKER,
        f"Original Invoice: {original.raw_number or original.number}",
        f"Correction Code: {correction_code}",
        f"Original Invoice ID: {original.id}",
    ]
    return "\n".join(line for line in lines if line)


class InvoiceService:

    # ── Queries ───────────────────────────────────────────────────────────

    async def status_counts(self, db: AsyncSession, company: Company) -> Dict[str, int]:
        result = await db.execute(
            select(Invoice.status, func.count())
            .where(Invoice.company_id == company.id, Invoice.is_active.is_(True))
            .group_by(Invoice.status)
        )
        counts = {InvoiceStatus(status): count for status, count in result.all()}
        return {
            "total": sum(counts.values()),
            "unpaid": counts.get(InvoiceStatus.UNPAID, 0),
            "sent": counts.get(InvoiceStatus.SENT, 0),
            "paid": counts.get(InvoiceStatus.PAID, 0),
            "overdue": counts.get(InvoiceStatus.OVERDUE, 0),
        }

    async def get_invoices(self, db: AsyncSession, company: Company, page: int = 1) -> Dict[str, Any]:
        await backfill_raw_numbers(db, Invoice, company)

        stats = await self.status_counts(db, company)
        result = await db.execute(
            select(Invoice)
            .where(Invoice.company_id == company.id, Invoice.is_active.is_(True))
            .order_by(Invoice.created_at.desc())
            .offset(page_offset(page))
            .limit(PAGE_SIZE)
        )
        return {
            "page_count": page_count(stats["total"]),
            "invoices": list(result.scalars().all()),
            "stats": stats,
        }

    async def search_invoices(self, db: AsyncSession, company: Company, query: str) -> List[Invoice]:
        stmt = select(Invoice).where(Invoice.company_id == company.id, Invoice.is_active.is_(True))
        query = (query or "").strip()
        if query:
            pattern = f"%{query}%"
            stmt = (
                stmt.join(Client, Invoice.client_id == Client.id)
                .outerjoin(Quote, Invoice.quote_id == Quote.id)
                .where(
                    or_(
                        Quote.title.ilike(pattern),
                        Client.name.ilike(pattern),
                        Client.contact_firstname.ilike(pattern),
                        Client.contact_lastname.ilike(pattern),
                        Invoice.raw_number.ilike(pattern),
                    )
                )
            )
        result = await db.execute(stmt.order_by(Invoice.number.asc()).limit(PAGE_SIZE))
        return list(result.scalars().all())

    async def get_invoice_by_id(self, db: AsyncSession, company: Company, invoice_id: Any) -> Invoice:
        result = await db.execute(
            select(Invoice).where(Invoice.id == as_uuid(invoice_id), Invoice.company_id == company.id)
        )
        invoice = result.scalar_one_or_none()
        if invoice is None:
            raise NotFoundError(resource="Invoice", resource_id=str(invoice_id))
        return invoice

    # ── Create / Edit / Delete ────────────────────────────────────────────

    async def create_invoice(
        self,
        db: AsyncSession,
        company: Company,
        data: Dict[str, Any],
        event: WebhookEvent = WebhookEvent.INVOICE_CREATED,
    ) -> Invoice:
        client = await client_service.get_client(db, company, data["client_id"])
        method = await resolve_payment_method(db, company, data.get("payment_method_id"))
        vat_exempt = is_vat_exempt(company)
        quote = data.get("quote")
        if quote is None and data.get("quote_id"):
            quote = await quote_service.get_quote(db, company, data["quote_id"])

        invoice = Invoice(
            company_id=company.id,
            client_id=client.id,
            quote_id=quote.id if quote else None,
            recurring_invoice_id=(
                as_uuid(data["recurring_invoice_id"]) if data.get("recurring_invoice_id") else None
            ),
            notes=data.get("notes") or "",
            due_date=data.get("due_date") or utcnow() + timedelta(days=DEFAULT_DUE_DAYS),
            currency=data.get("currency") or client.currency or company.currency,
            payment_method_id=method.id if method else None,
            payment_method=data.get("payment_method") or (method.name if method else None),
            payment_details=data.get("payment_details"),
            status=InvoiceStatus.UNPAID,
            items=build_items(InvoiceItem, data.get("items") or [], vat_exempt),
        )
        invoice.company = company
        invoice.client = client
        invoice.payment_method_ref = method
        invoice.quote = quote
        apply_totals(invoice, data.get("discount_rate"), vat_exempt)

        await assign_number(db, invoice, company)
        db.add(invoice)
        await db.flush()
        logger.info("Invoice %s (%s) created for client %s", invoice.id, invoice.raw_number, client.id)

        await webhook_dispatcher.safe_dispatch(db, event, invoice_payload(company, invoice))
        return invoice

    async def edit_invoice(
        self,
        db: AsyncSession,
        company: Company,
        invoice_id: Any,
        data: Dict[str, Any],
    ) -> Invoice:
        invoice = await self.get_invoice_by_id(db, company, invoice_id)
        vat_exempt = is_vat_exempt(company)

        if data.get("client_id") and as_uuid(data["client_id"]) != invoice.client_id:
            client = await client_service.get_client(db, company, data["client_id"])
            invoice.client_id = client.id
            invoice.client = client
        if data.get("payment_method_id"):
            method = await resolve_payment_method(db, company, data["payment_method_id"])
            invoice.payment_method_id = method.id
            invoice.payment_method_ref = method
            invoice.payment_method = method.name

        for field in ("notes", "currency", "due_date", "payment_method", "payment_details"):
            if field in data and data[field] is not None:
                setattr(invoice, field, data[field])

        if data.get("items") is not None:
            sync_items(invoice, InvoiceItem, data["items"], vat_exempt)
        discount = data["discount_rate"] if data.get("discount_rate") is not None else invoice.discount_rate
        apply_totals(invoice, discount, vat_exempt)

        await db.flush()
        logger.info("Invoice %s updated", invoice.id)

        await webhook_dispatcher.safe_dispatch(
            db, WebhookEvent.INVOICE_UPDATED, invoice_payload(company, invoice)
        )
        return invoice

    async def delete_invoice(self, db: AsyncSession, company: Company, invoice_id: Any) -> Invoice:
        invoice = await self.get_invoice_by_id(db, company, invoice_id)
        invoice.is_active = False
        await db.flush()
        logger.info("Invoice %s deactivated", invoice.id)

        await webhook_dispatcher.safe_dispatch(
            db, WebhookEvent.INVOICE_DELETED, invoice_payload(company, invoice)
        )
        return invoice

    async def create_invoice_from_quote(self, db: AsyncSession, company: Company, quote_id: Any) -> Invoice:
        quote = await quote_service.get_quote(db, company, quote_id)
        data = {
            "client_id": quote.client_id,
            "quote_id": quote.id,
            "quote": quote,
            "notes": quote.notes,
            "currency": quote.currency,
            "discount_rate": quote.discount_rate,
            "payment_method_id": quote.payment_method_id,
            "payment_details": quote.payment_details,
            "items": [serialize_model(item) for item in quote.items],
        }
        invoice = await self.create_invoice(
            db, company, data, event=WebhookEvent.INVOICE_CREATED_FROM_QUOTE
        )
        logger.info("Invoice %s created from quote %s", invoice.id, quote.id)
        return invoice

    # ── Payment & Sending ─────────────────────────────────────────────────

    async def mark_invoice_as_paid(self, db: AsyncSession, company: Company, invoice_id: Any) -> Invoice:
        invoice = await self.get_invoice_by_id(db, company, invoice_id)
        invoice.status = InvoiceStatus.PAID
        invoice.paid_at = utcnow()
        await db.flush()
        logger.info("Invoice %s marked as paid", invoice.id)

        payload = invoice_payload(company, invoice)
        await webhook_dispatcher.safe_dispatch(db, WebhookEvent.INVOICE_MARKED_AS_PAID, payload)

        record = {**payload, "items": [serialize_model(i) for i in invoice.items]}
        try:
            await plugin_service.upload_paid_invoice(db, invoice.id, record)
        except Exception as e:
            logger.error("Failed to upload paid invoice %s: %s", invoice.id, str(e))
        return invoice

    async def send_invoice(self, db: AsyncSession, company: Company, invoice_id: Any) -> Dict[str, Any]:
        invoice = await self.get_invoice_by_id(db, company, invoice_id)
        email = (invoice.client.contact_email or "").strip()
        if not email:
            logger.warning("Invoice %s not sent: client %s has no email", invoice.id, invoice.client_id)
            return {"success": False, "message": "Client has no email configured; invoice not sent"}

        template = await company_service.get_mail_template(db, company, MailTemplateType.INVOICE)
        variables = {
            "APP_URL": settings.app_url,
            "INVOICE_NUMBER": invoice.raw_number or str(invoice.number),
            "COMPANY_NAME": company.name,
            "CLIENT_NAME": invoice.client.display_name,
        }
        sent = await mail_service.send_mail(
            email,
            render_template(template.subject, variables),
            render_template(template.body, variables),
        )

        if invoice.status == InvoiceStatus.UNPAID:
            invoice.status = InvoiceStatus.SENT
        await db.flush()
        logger.info("Invoice %s sent to %s (mail delivered: %s)", invoice.id, email, sent)

        await webhook_dispatcher.safe_dispatch(
            db, WebhookEvent.INVOICE_SENT, invoice_payload(company, invoice)
        )
        return {"success": True, "message": "Invoice sent successfully"}

    # ── Corrections ───────────────────────────────────────────────────────

    def get_modification_options(self, invoice: Invoice) -> Dict[str, Any]:
        """Which correction paths are open for an invoice, and which to suggest."""
        is_paid = invoice.status == InvoiceStatus.PAID
        is_cancelled = not invoice.is_active
        can_edit_directly = not is_paid and not is_cancelled

        def option(option_id: str, available: bool, reason: Optional[str]) -> Dict[str, Any]:
            return {"id": option_id, "available": available, "reason": None if available else reason}

        options = [
            option("direct_edit", can_edit_directly, "Invoice is paid or cancelled"),
            option("credit_note", not is_cancelled, "Invoice is cancelled"),
            option("corrective_invoice", not is_cancelled, "Invoice is cancelled"),
            option(
                "void_and_reissue",
                not is_paid and not is_cancelled,
                "Invoice is already paid" if is_paid else "Invoice is cancelled",
            ),
            option(
                "cancel",
                not is_paid and not is_cancelled,
                "Invoice is already paid" if is_paid else "Invoice is already cancelled",
            ),
        ]
        return {
            "invoice_id": invoice.id,
            "invoice_number": invoice.raw_number or str(invoice.number),
            "invoice_status": invoice.status,
            "options": options,
            "recommended_option": "direct_edit" if can_edit_directly else "credit_note",
        }

    async def create_credit_note(
        self,
        db: AsyncSession,
        company: Company,
        invoice_id: Any,
        correction_code: str,
        reason: Optional[str],
        items: List[Dict[str, Any]],
    ) -> Invoice:
        """
        Credit some or all of an invoice's lines.

        Raises:
            NotFoundError: the original invoice does not exist
            ValidationError: an item is not on the original, or its credit
                quantity exceeds the original quantity
        """
        original = await self.get_invoice_by_id(db, company, invoice_id)
        originals = {str(item.id): item for item in original.items}

        credit_items = []
        for index, credit in enumerate(items):
            source = originals.get(str(credit["original_item_id"]))
            if source is None:
                raise ValidationError(
                    f"Item with id {credit['original_item_id']} not found in original invoice",
                    field="items",
                )
            if float(credit["quantity"]) > source.quantity:
                raise ValidationError(
                    f"Credit quantity cannot exceed original quantity for item {source.description}",
                    field="items",
                )
            credit_items.append(
                InvoiceItem(
                    description=source.description,
                    quantity=float(credit["quantity"]),
                    unit_price=-source.unit_price,
                    vat_rate=source.vat_rate,
                    type=source.type,
                    order=index,
                )
            )

        total_ht = sum(i.quantity * i.unit_price for i in credit_items)
        total_vat = sum(i.quantity * i.unit_price * i.vat_rate / 100 for i in credit_items)
        now = utcnow()
        number = await next_number(db, Invoice, company.id)

        credit_note = Invoice(
            company_id=company.id,
            client_id=original.client_id,
            number=number,
            raw_number=f"CN-{now.year}-{number:04d}",
            currency=original.currency,
            notes=credit_note_notes(original, correction_code, reason),
            status=InvoiceStatus.SENT,
            due_date=now,
            total_ht=round(total_ht, 2),
            total_vat=round(total_vat, 2),
            total_ttc=round(total_ht + total_vat, 2),
            items=credit_items,
        )
        credit_note.company = company
        credit_note.client = original.client
        credit_note.payment_method_ref = None
        credit_note.quote = None
        db.add(credit_note)
        await db.flush()
        logger.info(
            "Credit note %s (%s) created for invoice %s",
            credit_note.id,
            credit_note.raw_number,
            original.id,
        )

        payload = invoice_payload(company, credit_note)
        payload["original_invoice_id"] = str(original.id)
        await webhook_dispatcher.safe_dispatch(db, WebhookEvent.INVOICE_CREDIT_NOTE_CREATED, payload)
        return credit_note

    # ── Background ────────────────────────────────────────────────────────

    async def mark_overdue_invoices(self, db: AsyncSession, now: Optional[datetime] = None) -> int:
        """
        Flag open invoices whose due date has passed. Runs across all companies.

        Credit notes are settled documents: they never become overdue.
        """
        now = now or utcnow()
        result = await db.execute(
            select(Invoice).where(
                Invoice.is_active.is_(True),
                ~Invoice.is_credit_note,
                Invoice.status.in_(_OPEN_STATUSES),
                Invoice.due_date.is_not(None),
                Invoice.due_date < now,
            )
        )
        invoices = [
            i for i in result.scalars().all()
            if ensure_aware(i.due_date) < now and not i.is_credit_note
        ]
        for invoice in invoices:
            invoice.status = InvoiceStatus.OVERDUE
        if not invoices:
            return 0

        await db.flush()
        logger.info("Marked %d invoices as overdue", len(invoices))
        for invoice in invoices:
            await webhook_dispatcher.safe_dispatch(
                db, WebhookEvent.INVOICE_OVERDUE, invoice_payload(invoice.company, invoice)
            )
        return len(invoices)


# ── Singleton Instance ────────────────────────────────────────────────────
invoice_service = InvoiceService()
