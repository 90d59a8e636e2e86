"""
Invoicerr Backend — Mail Service
==================================

What:  Sends transactional mail (invoices, receipts, quotes) over SMTP and
       holds the default per-company templates.
Why:   Sending a document to a client is the last step of most workflows;
       SMTP servers drop connections often enough to deserve retries.
How:   smtplib is blocking, so each send runs in a worker thread
       (asyncio.to_thread) wrapped in tenacity retry.

Failure Semantics:
    SMTP not configured  → send_mail() returns False, nothing is attempted
    SMTP fails 3 times   → ExternalServiceError (502 at the API)
"""

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Dict

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from app.config import settings
from app.exceptions import ExternalServiceError
from app.models.enums import MailTemplateType

logger = logging.getLogger(__name__)

_FOOTER = (
    '<hr><p style="font-size: 12px; color: #666;">'
    "This email was sent from {{APP_URL}}</p>"
)

# Seeded for every company; companies edit their own copies
DEFAULT_MAIL_TEMPLATES: Dict[MailTemplateType, Dict[str, str]] = {
    MailTemplateType.SIGNATURE_REQUEST: {
        "subject": "Please sign document #{{SIGNATURE_NUMBER}}",
        "body": (
            "<h2>Document Signature Required</h2><p>Hello,</p>"
            "<p>You have been requested to sign the following document:</p>"
            "<p><strong>Document:</strong> {{SIGNATURE_NUMBER}}<br>"
            "<strong>Signature ID:</strong> {{SIGNATURE_ID}}</p>"
            '<p><a href="{{SIGNATURE_URL}}">Sign Document</a></p>'
            "<p>Best regards,<br>The Invoicerr Team</p>" + _FOOTER
        ),
    },
    MailTemplateType.VERIFICATION_CODE: {
        "subject": "Your verification code",
        "body": (
            "<p>Hello,</p><p>Here is your verification code:</p>"
            "<p><strong>{{OTP_CODE}}</strong></p>"
            "<p>This code will expire in 10 minutes.</p>"
            "<p>If you didn't request this code, please ignore this email.</p>"
            "<p>Best regards,<br>The Invoicerr Team</p>"
        ),
    },
    MailTemplateType.INVOICE: {
        "subject": "Invoice #{{INVOICE_NUMBER}} from {{COMPANY_NAME}}",
        "body": (
            "<p>Dear {{CLIENT_NAME}},</p>"
            "<p>Please find attached the invoice #{{INVOICE_NUMBER}} from {{COMPANY_NAME}}.</p>"
            "<p>Thank you for your business!</p>"
            "<p>Best regards,<br>{{COMPANY_NAME}}</p>" + _FOOTER
        ),
    },
    MailTemplateType.RECEIPT: {
        "subject": "Receipt #{{RECEIPT_NUMBER}} from {{COMPANY_NAME}}",
        "body": (
            "<p>Dear {{CLIENT_NAME}},</p>"
            "<p>Please find attached the receipt #{{RECEIPT_NUMBER}} from {{COMPANY_NAME}}.</p>"
            "<p>Thank you for your business!</p>"
            "<p>Best regards,<br>{{COMPANY_NAME}}</p>" + _FOOTER
        ),
    },
}


class MailService:

    def build_message(self, to: str, subject: str, html_body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = settings.smtp_from
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(html_body, subtype="html")
        return message

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as smtp:
            if settings.smtp_use_tls:
                smtp.starttls()
            if settings.smtp_user:
                smtp.login(settings.smtp_user, settings.smtp_password)
            smtp.send_message(message)

    @retry(
        retry=retry_if_exception_type((smtplib.SMTPException, OSError)),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _send_with_retry(self, message: EmailMessage) -> None:
        await asyncio.to_thread(self._deliver, message)

    async def send_mail(self, to: str, subject: str, html_body: str) -> bool:
        """
        Send one HTML mail.

        Returns:
            True when delivered, False when SMTP is not configured.

        Raises:
            ExternalServiceError: the SMTP server failed after all retries
        """
        if not settings.smtp_configured:
            logger.warning("SMTP is not configured; mail to %s not sent", to)
            return False

        message = self.build_message(to, subject, html_body)
        try:
            await self._send_with_retry(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send mail to %s: %s", to, str(e))
            raise ExternalServiceError(
                message="The email could not be sent. Please try again later.",
                service="smtp",
                context={"error": str(e)},
            ) from e

        logger.info("Mail sent to %s: %s", to, subject)
        return True


# ── Singleton Instance ────────────────────────────────────────────────────
mail_service = MailService()
