"""
Invoicerr Backend — Receipt Service
=====================================

What:  Receipts: money received against an invoice, broken down per
       invoice line.
Why:   The sum of an invoice's receipts decides whether it is PAID.
How:   Receipts carry no company_id; every query joins the invoice and
       filters on invoice.company_id. After each create/edit/delete the
       invoice status is re-derived by check_invoice_after_receipt().
"""

import logging
from typing import Any, Dict, List

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import NotFoundError, ValidationError
from app.models.client import Client
from app.models.company import Company
from app.models.enums import InvoiceStatus, MailTemplateType, WebhookEvent
from app.models.invoice import Invoice
from app.models.receipt import Receipt, ReceiptItem
from app.services.company_service import company_service
from app.services.invoice_service import invoice_service
from app.services.mail_service import mail_service
from app.services.quote_service import resolve_payment_method
from app.services.webhooks import webhook_dispatcher
from app.utils.dates import utcnow
from app.utils.formatting import render_template
from app.utils.ids import as_uuid
from app.utils.numbering import assign_number, backfill_raw_numbers
from app.utils.pagination import PAGE_SIZE, page_count, page_offset
from app.utils.serialization import serialize_model

logger = logging.getLogger(__name__)


def receipt_payload(company: Company, receipt: Receipt) -> Dict[str, Any]:
    invoice = receipt.__dict__.get("invoice")
    return {
        "company": serialize_model(company),
        "client": serialize_model(invoice.__dict__.get("client")) if invoice is not None else None,
        "invoice": serialize_model(invoice),
        "receipt": serialize_model(receipt),
    }


def line_amount(item: Any) -> float:
    """Amount due on one invoice line, VAT included."""
    return round(item.quantity * item.unit_price * (1 + (item.vat_rate or 0) / 100), 2)


class ReceiptService:

    def _scoped(self, company: Company):
        return (
            select(Receipt)
            .join(Invoice, Receipt.invoice_id == Invoice.id)
            .where(Invoice.company_id == company.id)
        )

    async def get_receipts(self, db: AsyncSession, company: Company, page: int = 1) -> Dict[str, Any]:
        await backfill_raw_numbers(db, Receipt, company)

        total = (
            await db.execute(
                select(func.count(Receipt.id))
                .join(Invoice, Receipt.invoice_id == Invoice.id)
                .where(Invoice.company_id == company.id)
            )
        ).scalar() or 0
        result = await db.execute(
            self._scoped(company)
            .order_by(Receipt.created_at.desc())
            .offset(page_offset(page))
            .limit(PAGE_SIZE)
        )
        return {
            "page_count": page_count(total),
            "receipts": list(result.scalars().all()),
            "stats": {"total": total},
        }

    async def search_receipts(self, db: AsyncSession, company: Company, query: str) -> List[Receipt]:
        stmt = self._scoped(company)
        query = (query or "").strip()
        if query:
            pattern = f"%{query}%"
            stmt = stmt.join(Client, Invoice.client_id == Client.id).where(
                or_(
                    Receipt.raw_number.ilike(pattern),
                    Invoice.raw_number.ilike(pattern),
                    Client.name.ilike(pattern),
                    Client.contact_firstname.ilike(pattern),
                    Client.contact_lastname.ilike(pattern),
                )
            )
        result = await db.execute(stmt.order_by(Receipt.number.asc()).limit(PAGE_SIZE))
        return list(result.scalars().all())

    async def get_receipt(self, db: AsyncSession, company: Company, receipt_id: Any) -> Receipt:
        result = await db.execute(self._scoped(company).where(Receipt.id == as_uuid(receipt_id)))
        receipt = result.scalar_one_or_none()
        if receipt is None:
            raise NotFoundError(resource="Receipt", resource_id=str(receipt_id))
        return receipt

    # ── Invoice Status ────────────────────────────────────────────────────

    async def check_invoice_after_receipt(self, db: AsyncSession, invoice: Invoice) -> Invoice:
        """
        PAID when the receipts cover total_ttc; a PAID invoice that is no
        longer covered goes back to UNPAID.
        """
        paid = (
            await db.execute(
                select(func.coalesce(func.sum(Receipt.total_paid), 0)).where(
                    Receipt.invoice_id == invoice.id
                )
            )
        ).scalar() or 0

        if paid >= invoice.total_ttc:
            if invoice.status != InvoiceStatus.PAID:
                invoice.status = InvoiceStatus.PAID
                invoice.paid_at = utcnow()
                logger.info("Invoice %s fully paid by receipts (%.2f)", invoice.id, paid)
        elif invoice.status == InvoiceStatus.PAID:
            invoice.status = InvoiceStatus.UNPAID
            invoice.paid_at = None
            logger.info("Invoice %s no longer covered by receipts (%.2f)", invoice.id, paid)
        await db.flush()
        return invoice

    # ── Create / Edit / Delete ────────────────────────────────────────────

    def _build_items(self, invoice: Invoice, items: List[Dict[str, Any]]) -> List[ReceiptItem]:
        lines = {str(item.id): item for item in invoice.items}
        built = []
        for data in items:
            line = lines.get(str(data["invoice_item_id"]))
            if line is None:
                raise ValidationError(
                    f"Item with id {data['invoice_item_id']} does not belong to invoice "
                    f"{invoice.raw_number or invoice.number}",
                    field="items",
                )
            item = ReceiptItem(invoice_item_id=line.id, amount_paid=float(data.get("amount_paid") or 0))
            item.invoice_item = line
            built.append(item)
        return built

    async def create_receipt(
        self,
        db: AsyncSession,
        company: Company,
        data: Dict[str, Any],
        event: WebhookEvent = WebhookEvent.RECEIPT_CREATED,
    ) -> Receipt:
        invoice = await invoice_service.get_invoice_by_id(db, company, data["invoice_id"])
        method = await resolve_payment_method(db, company, data.get("payment_method_id"))
        items = self._build_items(invoice, data.get("items") or [])

        receipt = Receipt(
            invoice_id=invoice.id,
            total_paid=round(sum(i.amount_paid for i in items), 2),
            payment_method_id=method.id if method else None,
            payment_method=data.get("payment_method") or (method.name if method else None),
            payment_details=data.get("payment_details"),
            items=items,
        )
        receipt.invoice = invoice
        receipt.payment_method_ref = method

        await assign_number(db, receipt, company)
        db.add(receipt)
        await db.flush()
        logger.info("Receipt %s (%s) created for invoice %s", receipt.id, receipt.raw_number, invoice.id)

        await webhook_dispatcher.safe_dispatch(db, event, receipt_payload(company, receipt))
        await self.check_invoice_after_receipt(db, invoice)
        return receipt

    async def create_receipt_from_invoice(self, db: AsyncSession, company: Company, invoice_id: Any) -> Receipt:
        """A receipt paying every line of the invoice in full."""
        invoice = await invoice_service.get_invoice_by_id(db, company, invoice_id)
        data = {
            "invoice_id": invoice.id,
            "payment_method_id": invoice.payment_method_id,
            "payment_method": invoice.payment_method,
            "payment_details": invoice.payment_details,
            "items": [
                {"invoice_item_id": item.id, "amount_paid": line_amount(item)} for item in invoice.items
            ],
        }
        return await self.create_receipt(
            db, company, data, event=WebhookEvent.RECEIPT_CREATED_FROM_INVOICE
        )

    async def edit_receipt(
        self,
        db: AsyncSession,
        company: Company,
        receipt_id: Any,
        data: Dict[str, Any],
    ) -> Receipt:
        receipt = await self.get_receipt(db, company, receipt_id)
        invoice = receipt.invoice

        if data.get("items") is not None:
            receipt.items = self._build_items(invoice, data["items"])
            receipt.total_paid = round(sum(i.amount_paid for i in receipt.items), 2)
        if data.get("payment_method_id"):
            method = await resolve_payment_method(db, company, data["payment_method_id"])
            receipt.payment_method_id = method.id
            receipt.payment_method_ref = method
            receipt.payment_method = method.name
        for field in ("payment_method", "payment_details"):
            if data.get(field) is not None:
                setattr(receipt, field, data[field])

        await db.flush()
        logger.info("Receipt %s updated", receipt.id)

        await webhook_dispatcher.safe_dispatch(
            db, WebhookEvent.RECEIPT_UPDATED, receipt_payload(company, receipt)
        )
        await self.check_invoice_after_receipt(db, invoice)
        return receipt

    async def delete_receipt(self, db: AsyncSession, company: Company, receipt_id: Any) -> Dict[str, str]:
        receipt = await self.get_receipt(db, company, receipt_id)
        invoice = receipt.invoice
        payload = receipt_payload(company, receipt)

        await db.delete(receipt)
        await db.flush()
        logger.info("Receipt %s deleted", receipt.id)

        await self.check_invoice_after_receipt(db, invoice)
        await webhook_dispatcher.safe_dispatch(db, WebhookEvent.RECEIPT_DELETED, payload)
        return {"message": "Receipt deleted successfully"}

    # ── Sending ───────────────────────────────────────────────────────────

    async def send_receipt_by_email(self, db: AsyncSession, company: Company, receipt_id: Any) -> Dict[str, Any]:
        receipt = await self.get_receipt(db, company, receipt_id)
        client = receipt.invoice.client
        email = (client.contact_email or "").strip()
        if not email:
            logger.warning("Receipt %s not sent: client %s has no email", receipt.id, client.id)
            return {"success": False, "message": "Client has no email configured; receipt not sent"}

        template = await company_service.get_mail_template(db, company, MailTemplateType.RECEIPT)
        variables = {
            "APP_URL": settings.app_url,
            "RECEIPT_NUMBER": receipt.raw_number or str(receipt.number),
            "COMPANY_NAME": company.name,
            "CLIENT_NAME": client.display_name,
        }
        sent = await mail_service.send_mail(
            email,
            render_template(template.subject, variables),
            render_template(template.body, variables),
        )
        logger.info("Receipt %s sent to %s (mail delivered: %s)", receipt.id, email, sent)

        await webhook_dispatcher.safe_dispatch(
            db, WebhookEvent.RECEIPT_SENT, receipt_payload(company, receipt)
        )
        return {"success": True, "message": "Receipt sent successfully"}


# ── Singleton Instance ────────────────────────────────────────────────────
receipt_service = ReceiptService()
