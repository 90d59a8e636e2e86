"""
Invoicerr Backend — Quote Service
===================================

What:  Quotes: listing with status stats, search, create/edit/delete,
       signature and sending.
Why:   The quote is where the commercial workflow starts; an accepted
       (signed) quote becomes an invoice.
How:   Totals are recomputed server-side on every write; the client never
       sends totals. Numbers are assigned per company. Relationships the
       response needs (client, company, payment method) are assigned on the
       instance so nothing lazy-loads after a flush.

Status lifecycle:
    DRAFT → SENT (send_quote) → SIGNED (mark_quote_as_signed)
    any edit deactivates the pending signature requests
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import NotFoundError
from app.models.client import Client, PaymentMethod
from app.models.company import Company
from app.models.enums import MailTemplateType, QuoteStatus, WebhookEvent
from app.models.quote import Quote, QuoteItem, Signature
from app.services.client_service import client_service
from app.services.company_service import company_service
from app.services.line_items import apply_totals, build_items, sync_items
from app.services.mail_service import mail_service
from app.services.payment_method_service import payment_method_service
from app.services.plugin_service import plugin_service
from app.services.webhooks import webhook_dispatcher
from app.utils.dates import utcnow
from app.utils.financial import is_vat_exempt
from app.utils.formatting import render_template
from app.utils.ids import as_uuid
from app.utils.numbering import assign_number, backfill_raw_numbers
from app.utils.pagination import PAGE_SIZE, page_count, page_offset
from app.utils.serialization import serialize_model

logger = logging.getLogger(__name__)


async def resolve_payment_method(
    db: AsyncSession, company: Company, method_id: Any
) -> Optional[PaymentMethod]:
    if not method_id:
        return None
    return await payment_method_service.find_one(db, company, method_id)


def quote_payload(company: Company, quote: Quote) -> Dict[str, Any]:
    return {
        "company": serialize_model(company),
        "client": serialize_model(quote.__dict__.get("client")),
        "quote": serialize_model(quote),
    }


class QuoteService:

    async def status_counts(self, db: AsyncSession, company: Company) -> Dict[str, int]:
        result = await db.execute(
            select(Quote.status, func.count())
            .where(Quote.company_id == company.id, Quote.is_active.is_(True))
            .group_by(Quote.status)
        )
        counts = {QuoteStatus(status): count for status, count in result.all()}
        return {
            "total": sum(counts.values()),
            "draft": counts.get(QuoteStatus.DRAFT, 0),
            "sent": counts.get(QuoteStatus.SENT, 0),
            "signed": counts.get(QuoteStatus.SIGNED, 0),
            "expired": counts.get(QuoteStatus.EXPIRED, 0),
        }

    async def get_quotes(self, db: AsyncSession, company: Company, page: int = 1) -> Dict[str, Any]:
        await backfill_raw_numbers(db, Quote, company)

        stats = await self.status_counts(db, company)
        result = await db.execute(
            select(Quote)
            .where(Quote.company_id == company.id, Quote.is_active.is_(True))
            .order_by(Quote.created_at.desc())
            .offset(page_offset(page))
            .limit(PAGE_SIZE)
        )
        return {
            "page_count": page_count(stats["total"]),
            "quotes": list(result.scalars().all()),
            "stats": stats,
        }

    async def search_quotes(self, db: AsyncSession, company: Company, query: str) -> List[Quote]:
        stmt = select(Quote).where(Quote.company_id == company.id, Quote.is_active.is_(True))
        query = (query or "").strip()
        if query:
            pattern = f"%{query}%"
            stmt = stmt.join(Client, Quote.client_id == Client.id).where(
                or_(
                    Quote.title.ilike(pattern),
                    Quote.raw_number.ilike(pattern),
                    Client.name.ilike(pattern),
                    Client.contact_firstname.ilike(pattern),
                    Client.contact_lastname.ilike(pattern),
                )
            )
        result = await db.execute(stmt.order_by(Quote.number.asc()).limit(PAGE_SIZE))
        return list(result.scalars().all())

    async def get_quote(self, db: AsyncSession, company: Company, quote_id: Any) -> Quote:
        result = await db.execute(
            select(Quote).where(Quote.id == as_uuid(quote_id), Quote.company_id == company.id)
        )
        quote = result.scalar_one_or_none()
        if quote is None:
            raise NotFoundError(resource="Quote", resource_id=str(quote_id))
        return quote

    async def create_quote(self, db: AsyncSession, company: Company, data: Dict[str, Any]) -> Quote:
        client = await client_service.get_client(db, company, data["client_id"])
        method = await resolve_payment_method(db, company, data.get("payment_method_id"))
        vat_exempt = is_vat_exempt(company)

        quote = Quote(
            company_id=company.id,
            client_id=client.id,
            title=data.get("title") or "",
            notes=data.get("notes") or "",
            valid_until=data.get("valid_until"),
            currency=data.get("currency") or client.currency or company.currency,
            payment_method_id=method.id if method else None,
            payment_details=data.get("payment_details"),
            status=QuoteStatus.DRAFT,
            items=build_items(QuoteItem, data.get("items") or [], vat_exempt),
            signatures=[],
        )
        quote.company = company
        quote.client = client
        quote.payment_method_ref = method
        apply_totals(quote, data.get("discount_rate"), vat_exempt)

        await assign_number(db, quote, company)
        db.add(quote)
        await db.flush()
        logger.info("Quote %s (%s) created for client %s", quote.id, quote.raw_number, client.id)

        await webhook_dispatcher.safe_dispatch(
            db, WebhookEvent.QUOTE_CREATED, quote_payload(company, quote)
        )
        return quote

    async def edit_quote(
        self,
        db: AsyncSession,
        company: Company,
        quote_id: Any,
        data: Dict[str, Any],
    ) -> Quote:
        quote = await self.get_quote(db, company, quote_id)
        vat_exempt = is_vat_exempt(company)

        if data.get("client_id") and as_uuid(data["client_id"]) != quote.client_id:
            client = await client_service.get_client(db, company, data["client_id"])
            quote.client_id = client.id
            quote.client = client
        if data.get("payment_method_id"):
            method = await resolve_payment_method(db, company, data["payment_method_id"])
            quote.payment_method_id = method.id
            quote.payment_method_ref = method

        for field in ("title", "notes", "currency", "valid_until", "payment_details"):
            if field in data and data[field] is not None:
                setattr(quote, field, data[field])

        if data.get("items") is not None:
            sync_items(quote, QuoteItem, data["items"], vat_exempt)
        discount = data["discount_rate"] if data.get("discount_rate") is not None else quote.discount_rate
        apply_totals(quote, discount, vat_exempt)

        # Signature requests were issued for the previous content
        await db.execute(
            update(Signature)
            .where(Signature.quote_id == quote.id, Signature.is_active.is_(True))
            .values(is_active=False)
        )
        await db.flush()
        logger.info("Quote %s updated", quote.id)

        await webhook_dispatcher.safe_dispatch(
            db, WebhookEvent.QUOTE_UPDATED, quote_payload(company, quote)
        )
        return quote

    async def delete_quote(self, db: AsyncSession, company: Company, quote_id: Any) -> Quote:
        quote = await self.get_quote(db, company, quote_id)
        quote.is_active = False
        await db.flush()
        logger.info("Quote %s deactivated", quote.id)

        await webhook_dispatcher.safe_dispatch(
            db, WebhookEvent.QUOTE_DELETED, quote_payload(company, quote)
        )
        return quote

    async def mark_quote_as_signed(self, db: AsyncSession, company: Company, quote_id: Any) -> Quote:
        quote = await self.get_quote(db, company, quote_id)
        now = utcnow()
        quote.status = QuoteStatus.SIGNED
        quote.signed_at = now
        await db.execute(
            update(Signature)
            .where(Signature.quote_id == quote.id, Signature.is_active.is_(True))
            .values(signed_at=now)
        )
        await db.flush()
        logger.info("Quote %s marked as signed", quote.id)

        payload = quote_payload(company, quote)
        await webhook_dispatcher.safe_dispatch(db, WebhookEvent.QUOTE_SIGNED, payload)

        record = {**payload, "items": [serialize_model(i) for i in quote.items]}
        try:
            urls = await plugin_service.upload_signed_quote(db, quote.id, record)
        except Exception as e:
            logger.error("Failed to upload signed quote %s: %s", quote.id, str(e))
        else:
            if urls:
                logger.info("Signed quote %s uploaded to %d provider(s)", quote.id, len(urls))
        return quote

    async def send_quote(self, db: AsyncSession, company: Company, quote_id: Any) -> Dict[str, Any]:
        """
        Mail a signature request for the quote to the client.

        Returns {success, message}; a client without email is reported,
        not raised.
        """
        quote = await self.get_quote(db, company, quote_id)
        email = (quote.client.contact_email or "").strip()
        if not email:
            logger.warning("Quote %s not sent: client %s has no email", quote.id, quote.client_id)
            return {"success": False, "message": "Client has no email configured; quote not sent"}

        await db.execute(
            update(Signature)
            .where(Signature.quote_id == quote.id, Signature.is_active.is_(True))
            .values(is_active=False)
        )
        signature = Signature(id=uuid.uuid4(), quote_id=quote.id, is_active=True)
        db.add(signature)

        template = await company_service.get_mail_template(db, company, MailTemplateType.SIGNATURE_REQUEST)
        variables = {
            "APP_URL": settings.app_url,
            "SIGNATURE_NUMBER": quote.raw_number or str(quote.number),
            "SIGNATURE_ID": str(signature.id),
            "SIGNATURE_URL": f"{settings.app_url}/signature/{signature.id}",
        }
        sent = await mail_service.send_mail(
            email,
            render_template(template.subject, variables),
            render_template(template.body, variables),
        )

        quote.status = QuoteStatus.SENT
        await db.flush()
        logger.info("Quote %s sent to %s (mail delivered: %s)", quote.id, email, sent)

        await webhook_dispatcher.safe_dispatch(
            db, WebhookEvent.QUOTE_SENT, quote_payload(company, quote)
        )
        return {"success": True, "message": "Quote sent successfully"}


# ── Singleton Instance ────────────────────────────────────────────────────
quote_service = QuoteService()
