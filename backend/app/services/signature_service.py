"""
Invoicerr Backend — Signature Service
=======================================

What:  The public signing flow behind the link mailed with a quote:
       look up a signature request, mail a one-time code to the client,
       and sign the quote with that code.
Why:   Clients sign without an account; possession of the client mailbox
       (the link, then the code) is the proof of identity.
How:   A signature request is created by sending the quote. The code is
       8 digits, valid 10 minutes, stored as a SHA-256 digest on the
       signature row. A valid code marks the quote SIGNED through
       quote_service.mark_quote_as_signed.

Lifecycle of a request:
    active, unsigned → code sent (generate_otp) → signed (sign_quote)
    sending the quote again or editing it deactivates older requests
    MAX_OTP_ATTEMPTS wrong codes burn the pending code
"""

import logging
from typing import Any, Dict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import NotFoundError, ValidationError
from app.models.company import Company
from app.models.enums import MailTemplateType, WebhookEvent
from app.models.quote import Signature
from app.services.company_service import company_service
from app.services.mail_service import mail_service
from app.services.quote_service import quote_payload, quote_service
from app.services.webhooks import webhook_dispatcher
from app.utils.dates import utcnow
from app.utils.formatting import render_template
from app.utils.ids import as_uuid
from app.utils.otp import generate_otp, hash_otp, otp_expired, otp_expiry, otp_matches
from app.utils.serialization import serialize_model

logger = logging.getLogger(__name__)

MAX_OTP_ATTEMPTS = 5


def signature_payload(signature: Signature) -> Dict[str, Any]:
    quote = signature.quote
    return {
        **quote_payload(quote.company, quote),
        "signature": serialize_model(signature, exclude=("otp_digest",)),
    }


class SignatureService:

    async def get_signature(self, db: AsyncSession, signature_id: Any) -> Signature:
        """Any signature by id; the quote, its client and company come with it."""
        try:
            key = as_uuid(signature_id)
        except ValueError:
            raise NotFoundError(resource="Signature", resource_id=str(signature_id))
        signature = await db.get(Signature, key)
        if signature is None:
            raise NotFoundError(resource="Signature", resource_id=str(signature_id))
        return signature

    async def _get_pending(self, db: AsyncSession, signature_id: Any) -> Signature:
        signature = await self.get_signature(db, signature_id)
        if signature.signed_at is not None:
            raise ValidationError("This quote has already been signed")
        if not signature.is_active:
            raise ValidationError("This signature request is no longer valid")
        return signature

    async def create_signature(self, db: AsyncSession, company: Company, quote_id: Any) -> Signature:
        """
        Open a signature request by sending the quote to its client.

        Raises:
            NotFoundError: the quote does not belong to the company
            ValidationError: the client has no email address
        """
        outcome = await quote_service.send_quote(db, company, quote_id)
        if not outcome["success"]:
            raise ValidationError(outcome["message"], field="quote_id")

        result = await db.execute(
            select(Signature)
            .where(Signature.quote_id == as_uuid(quote_id), Signature.is_active.is_(True))
            .order_by(Signature.created_at.desc())
            .limit(1)
        )
        return result.scalar_one()

    async def generate_otp(self, db: AsyncSession, signature_id: Any) -> Dict[str, Any]:
        """
        Mail a fresh verification code to the quote's client.

        Raises:
            NotFoundError: unknown signature
            ValidationError: already signed, inactive, no client email,
                or mail is not configured on this instance
            ExternalServiceError: the SMTP server failed
        """
        signature = await self._get_pending(db, signature_id)
        quote = signature.quote
        email = (quote.client.contact_email or "").strip()
        if not email:
            raise ValidationError("The client has no email address to send the code to")

        code = generate_otp()
        signature.otp_digest = hash_otp(code)
        signature.otp_expires_at = otp_expiry()
        signature.otp_attempts = 0

        template = await company_service.get_mail_template(
            db, quote.company, MailTemplateType.VERIFICATION_CODE
        )
        variables = {"APP_URL": settings.app_url, "OTP_CODE": f"{code[:4]}-{code[4:]}"}
        sent = await mail_service.send_mail(
            email,
            render_template(template.subject, variables),
            render_template(template.body, variables),
        )
        if not sent:
            raise ValidationError("Failed to send the verification code. Email is not configured.")

        await db.flush()
        logger.info("Verification code sent for signature %s", signature.id)

        await webhook_dispatcher.safe_dispatch(
            db, WebhookEvent.SIGNATURE_OTP_SENT, signature_payload(signature)
        )
        return {"success": True, "message": "Verification code sent"}

    async def sign_quote(self, db: AsyncSession, signature_id: Any, otp_code: str) -> Dict[str, Any]:
        """
        Check the code and mark the quote as signed.

        A wrong code counts an attempt, committed before raising so the
        request's rollback keeps it; after MAX_OTP_ATTEMPTS the code is dropped.

        Raises:
            ValidationError: no pending code, expired or wrong code
        """
        signature = await self._get_pending(db, signature_id)
        if not signature.otp_digest or otp_expired(signature.otp_expires_at):
            raise ValidationError("The verification code has expired. Request a new one.", field="otp_code")

        if not otp_matches(otp_code, signature.otp_digest):
            signature.otp_attempts = (signature.otp_attempts or 0) + 1
            if signature.otp_attempts >= MAX_OTP_ATTEMPTS:
                signature.otp_digest = None
                signature.otp_expires_at = None
                logger.warning("Verification code of signature %s burned after %d attempts",
                               signature.id, signature.otp_attempts)
            await db.commit()
            raise ValidationError("Invalid verification code", field="otp_code")

        signature.otp_digest = None
        signature.otp_expires_at = None
        signature.signed_at = utcnow()
        quote = signature.quote
        await quote_service.mark_quote_as_signed(db, quote.company, quote.id)
        logger.info("Quote %s signed through signature %s", quote.id, signature.id)

        await webhook_dispatcher.safe_dispatch(
            db, WebhookEvent.SIGNATURE_COMPLETED, signature_payload(signature)
        )
        return {"success": True, "message": "Quote signed successfully"}


# ── Singleton Instance ────────────────────────────────────────────────────
signature_service = SignatureService()
