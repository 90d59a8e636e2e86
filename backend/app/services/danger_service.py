"""
Invoicerr Backend — Danger Zone Service
=========================================

What:  Irreversible company operations: wipe the company's business data,
       or delete the company altogether.
Why:   Both are one click away in settings; a code mailed to the owner
       makes sure the click was meant.
How:   request_otp() mails an 8-digit code valid 10 minutes. Codes live in
       process memory, keyed by (user, company), and are used once.
       Deletes run child-first as bulk DELETEs so nothing depends on the
       database enforcing ON DELETE CASCADE (SQLite does not by default).

What a reset removes:
    receipts, invoices (credit notes included), recurring invoices,
    signatures, quotes, clients and payment methods
What a company deletion removes on top:
    webhooks, invitation codes, mail templates, PDF config, memberships
    and the company row
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ExternalServiceError, ValidationError
from app.models.client import Client, PaymentMethod
from app.models.company import Company, InvitationCode, MailTemplate, PDFConfig, UserCompany
from app.models.enums import MailTemplateType
from app.models.integration import Webhook
from app.models.invoice import Invoice, InvoiceItem
from app.models.quote import Quote, QuoteItem, Signature
from app.models.receipt import Receipt, ReceiptItem
from app.models.recurring_invoice import RecurringInvoice, RecurringInvoiceItem
from app.models.user import User
from app.services.company_service import company_service
from app.services.mail_service import mail_service
from app.utils.formatting import render_template
from app.utils.otp import generate_otp, hash_otp, otp_expired, otp_expiry, otp_matches

logger = logging.getLogger(__name__)

OTP_SEND_FAILED = "Failed to send OTP email. Please check your SMTP configuration."


class DangerService:

    def __init__(self):
        # (user_id, company_id) → (code digest, expiry)
        self._otps: Dict[Tuple[uuid.UUID, uuid.UUID], Tuple[str, datetime]] = {}

    async def request_otp(self, db: AsyncSession, user: User, company: Company) -> Dict[str, Any]:
        """
        Mail a confirmation code to the requesting user.

        Raises:
            ValidationError: mail is not configured or delivery failed
        """
        code = generate_otp()
        template = await company_service.get_mail_template(db, company, MailTemplateType.VERIFICATION_CODE)
        variables = {"OTP_CODE": f"{code[:4]}-{code[4:]}"}
        try:
            sent = await mail_service.send_mail(
                user.email,
                render_template(template.subject, variables),
                render_template(template.body, variables),
            )
        except ExternalServiceError as e:
            logger.error("Failed to send danger zone code to user %s: %s", user.id, e.message)
            raise ValidationError(OTP_SEND_FAILED) from e
        if not sent:
            raise ValidationError(OTP_SEND_FAILED)

        self._otps[(user.id, company.id)] = (hash_otp(code), otp_expiry())
        logger.info("Danger zone code sent to user %s for company %s", user.id, company.id)
        return {"message": "OTP sent successfully"}

    def _consume_otp(self, user: User, company: Company, otp: Optional[str]) -> None:
        if not otp:
            raise ValidationError("OTP is required for this action", field="otp")

        key = (user.id, company.id)
        digest, expires_at = self._otps.get(key, (None, None))
        if otp_expired(expires_at) or not otp_matches(otp, digest):
            logger.warning("Invalid or expired danger zone code from user %s for company %s",
                           user.id, company.id)
            raise ValidationError("Invalid or expired OTP", field="otp")
        del self._otps[key]

    async def _delete_business_data(self, db: AsyncSession, company_id: uuid.UUID) -> int:
        invoice_ids = select(Invoice.id).where(Invoice.company_id == company_id)
        receipt_ids = select(Receipt.id).where(Receipt.invoice_id.in_(invoice_ids))
        recurring_ids = select(RecurringInvoice.id).where(RecurringInvoice.company_id == company_id)
        quote_ids = select(Quote.id).where(Quote.company_id == company_id)

        statements = (
            delete(ReceiptItem).where(ReceiptItem.receipt_id.in_(receipt_ids)),
            delete(Receipt).where(Receipt.invoice_id.in_(invoice_ids)),
            delete(InvoiceItem).where(InvoiceItem.invoice_id.in_(invoice_ids)),
            delete(Invoice).where(Invoice.company_id == company_id),
            delete(RecurringInvoiceItem).where(RecurringInvoiceItem.recurring_invoice_id.in_(recurring_ids)),
            delete(RecurringInvoice).where(RecurringInvoice.company_id == company_id),
            delete(Signature).where(Signature.quote_id.in_(quote_ids)),
            delete(QuoteItem).where(QuoteItem.quote_id.in_(quote_ids)),
            delete(Quote).where(Quote.company_id == company_id),
            delete(Client).where(Client.company_id == company_id),
            delete(PaymentMethod).where(PaymentMethod.company_id == company_id),
        )
        removed = 0
        for statement in statements:
            result = await db.execute(statement.execution_options(synchronize_session=False))
            removed += max(result.rowcount or 0, 0)
        return removed

    async def reset_company_data(
        self, db: AsyncSession, user: User, company: Company, otp: Optional[str]
    ) -> Dict[str, Any]:
        """Delete the company's documents, clients and payment methods; keep the company."""
        self._consume_otp(user, company, otp)
        removed = await self._delete_business_data(db, company.id)
        logger.info("Company %s data reset by user %s (%d rows)", company.id, user.id, removed)
        return {"message": "Company data reset successfully"}

    async def delete_company(
        self, db: AsyncSession, user: User, company: Company, otp: Optional[str]
    ) -> Dict[str, Any]:
        """Delete the company, its settings and memberships, and all of its data."""
        self._consume_otp(user, company, otp)
        company_id = company.id
        removed = await self._delete_business_data(db, company_id)

        for model in (Webhook, InvitationCode, MailTemplate, PDFConfig, UserCompany):
            result = await db.execute(
                delete(model)
                .where(model.company_id == company_id)
                .execution_options(synchronize_session=False)
            )
            removed += max(result.rowcount or 0, 0)

        await db.execute(
            delete(Company).where(Company.id == company_id).execution_options(synchronize_session=False)
        )
        logger.warning("Company %s deleted by user %s (%d rows)", company_id, user.id, removed)
        return {"message": "Company deleted successfully"}


# ── Singleton Instance ────────────────────────────────────────────────────
danger_service = DangerService()
