"""
Invoicerr Backend — Company Service
=====================================

What:  Company (tenant) settings, PDF configuration, mail templates,
       company creation and the user's list of companies.
Why:   The company carries everything that makes documents look like they
       come from it: numbering formats, currency, VAT status, labels, logo.
How:   Related rows (pdf_config, mail_templates) are queried explicitly
       rather than through relationships, because async sessions cannot
       lazy-load. Missing defaults are created on first read.

Logo Upload Security:
    1. Size check against settings.max_logo_size
    2. Content type from the file's magic bytes (python-magic), never from
       the client-declared type or filename
    3. Only PNG, JPEG and SVG are accepted
    Accepted logos are stored as a data URL on the PDF config.
"""

import base64
import logging
import uuid
from typing import Any, Dict, List

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import FileStorageError, NotFoundError, PermissionDeniedError, ValidationError
from app.models.company import Company, MailTemplate, PDFConfig, UserCompany
from app.models.enums import MailTemplateType, UserRole, WebhookEvent
from app.models.user import User
from app.services.mail_service import DEFAULT_MAIL_TEMPLATES
from app.services.membership_service import membership_service
from app.services.webhooks import webhook_dispatcher
from app.utils.ids import as_uuid
from app.utils.serialization import serialize_model

logger = logging.getLogger(__name__)

ALLOWED_LOGO_TYPES = {"image/png", "image/jpeg", "image/svg+xml"}

# Sample values shown next to each template in the settings UI
_SAMPLE_VARIABLES: Dict[MailTemplateType, Dict[str, str]] = {
    MailTemplateType.SIGNATURE_REQUEST: {
        "SIGNATURE_NUMBER": "QUOTE-2025-0001",
    },
    MailTemplateType.VERIFICATION_CODE: {"OTP_CODE": "1234-5678"},
    MailTemplateType.INVOICE: {"INVOICE_NUMBER": "INV-2025-0001", "CLIENT_NAME": "Acme"},
    MailTemplateType.RECEIPT: {"RECEIPT_NUMBER": "REC-2025-0001", "CLIENT_NAME": "Acme"},
}

_PDF_CONFIG_SKIP = {"id", "company_id"}


def template_display_name(template_type: MailTemplateType) -> str:
    """SIGNATURE_REQUEST → "Signature Request"."""
    return MailTemplateType(template_type).value.replace("_", " ").title()


def detect_mime(content: bytes) -> str:
    """Content type from magic bytes."""
    import magic

    return magic.from_buffer(content, mime=True)


class CompanyService:

    # ── Company Info ──────────────────────────────────────────────────────

    async def ensure_mail_templates(self, db: AsyncSession, company: Company) -> List[MailTemplate]:
        result = await db.execute(select(MailTemplate).where(MailTemplate.company_id == company.id))
        templates = list(result.scalars().all())
        present = {t.type for t in templates}

        for template_type, defaults in DEFAULT_MAIL_TEMPLATES.items():
            if template_type in present:
                continue
            template = MailTemplate(
                company_id=company.id,
                type=template_type,
                subject=defaults["subject"],
                body=defaults["body"],
            )
            db.add(template)
            templates.append(template)
            logger.info("Created default %s template for company %s", template_type.value, company.id)

        if len(templates) != len(present):
            await db.flush()
        return templates

    async def get_company_info(self, db: AsyncSession, company: Company) -> Company:
        await self.ensure_mail_templates(db, company)
        return company

    async def edit_company_info(self, db: AsyncSession, company: Company, data: Dict[str, Any]) -> Company:
        for field, value in data.items():
            if field in ("id", "created_at", "updated_at"):
                continue
            setattr(company, field, value)
        await db.flush()
        logger.info("Company %s updated (%s)", company.id, ", ".join(sorted(data)))

        await webhook_dispatcher.safe_dispatch(
            db, WebhookEvent.COMPANY_UPDATED, {"company": serialize_model(company)}
        )
        return company

    async def get_company(self, db: AsyncSession, company_id: Any) -> Company:
        company = await db.get(Company, as_uuid(company_id))
        if company is None:
            raise NotFoundError(resource="Company", resource_id=str(company_id))
        return company

    # ── PDF Config ────────────────────────────────────────────────────────

    async def get_pdf_config(self, db: AsyncSession, company: Company) -> PDFConfig:
        result = await db.execute(select(PDFConfig).where(PDFConfig.company_id == company.id))
        config = result.scalar_one_or_none()
        if config is None:
            config = PDFConfig(company_id=company.id)
            db.add(config)
            await db.flush()
            logger.info("Created default PDF config for company %s", company.id)
        return config

    async def edit_pdf_config(self, db: AsyncSession, company: Company, data: Dict[str, Any]) -> PDFConfig:
        config = await self.get_pdf_config(db, company)
        for field, value in data.items():
            if field in _PDF_CONFIG_SKIP:
                continue
            setattr(config, field, value)
        await db.flush()
        logger.info("PDF config updated for company %s", company.id)

        await webhook_dispatcher.safe_dispatch(
            db,
            WebhookEvent.COMPANY_PDF_CONFIG_UPDATED,
            {"company": serialize_model(company), "config": serialize_model(config, exclude=("logo_b64",))},
        )
        return config

    async def upload_logo(self, db: AsyncSession, company: Company, content: bytes) -> PDFConfig:
        """
        Validate a logo and store it on the PDF config.

        Raises:
            ValidationError: empty, too large, or not PNG/JPEG/SVG
            FileStorageError: type detection failed
        """
        if not content:
            raise ValidationError("The uploaded logo is empty", field="file")
        if len(content) > settings.max_logo_size:
            max_kb = settings.max_logo_size // 1024
            raise ValidationError(
                f"Logo size exceeds maximum of {max_kb}KB",
                field="file",
                context={"actual_size": len(content)},
            )

        try:
            mime_type = detect_mime(content)
        except (ImportError, OSError) as e:
            logger.error("Logo type detection failed: %s", str(e))
            raise FileStorageError(
                message="Could not verify file type. Please try again.",
                context={"error": str(e)},
            )

        if mime_type not in ALLOWED_LOGO_TYPES:
            raise ValidationError(
                f"Logo content type '{mime_type}' is not supported. Use PNG, JPEG or SVG.",
                field="file",
                context={"detected_mime": mime_type},
            )

        encoded = base64.b64encode(content).decode("ascii")
        return await self.edit_pdf_config(
            db,
            company,
            {"logo_b64": f"data:{mime_type};base64,{encoded}", "include_logo": True},
        )

    # ── Company Creation ──────────────────────────────────────────────────

    async def create_company(self, db: AsyncSession, user: User, data: Dict[str, Any]) -> Company:
        company = Company(**data)
        db.add(company)
        await db.flush()

        db.add(PDFConfig(company_id=company.id))
        await self.ensure_mail_templates(db, company)
        await membership_service.add_membership(db, user.id, company.id, UserRole.OWNER)
        logger.info("Company %s created by user %s", company.id, user.id)

        await webhook_dispatcher.safe_dispatch(
            db, WebhookEvent.COMPANY_CREATED, {"company": serialize_model(company)}
        )
        return company

    # ── Email Templates ───────────────────────────────────────────────────

    async def get_email_templates(self, db: AsyncSession, company: Company) -> List[Dict[str, Any]]:
        templates = await self.ensure_mail_templates(db, company)
        entries = []
        for template in sorted(templates, key=lambda t: t.type.value):
            variables = {"APP_URL": settings.app_url, **_SAMPLE_VARIABLES.get(template.type, {})}
            if template.type == MailTemplateType.SIGNATURE_REQUEST:
                sample_id = str(uuid.uuid4())
                variables["SIGNATURE_ID"] = sample_id
                variables["SIGNATURE_URL"] = f"{settings.app_url}/signature/{sample_id}"
            if template.type in (MailTemplateType.INVOICE, MailTemplateType.RECEIPT):
                variables["COMPANY_NAME"] = company.name
            entries.append(
                {
                    "id": template.id,
                    "type": template.type,
                    "name": template_display_name(template.type),
                    "subject": template.subject,
                    "body": template.body,
                    "variables": variables,
                }
            )
        return entries

    async def get_mail_template(
        self,
        db: AsyncSession,
        company: Company,
        template_type: MailTemplateType,
    ) -> MailTemplate:
        templates = await self.ensure_mail_templates(db, company)
        return next(t for t in templates if t.type == template_type)

    async def update_email_template(
        self,
        db: AsyncSession,
        company: Company,
        template_id: Any,
        subject: str,
        body: str,
    ) -> MailTemplate:
        result = await db.execute(
            select(MailTemplate).where(
                MailTemplate.id == as_uuid(template_id),
                MailTemplate.company_id == company.id,
            )
        )
        template = result.scalar_one_or_none()
        if template is None:
            raise ValidationError(f"Email template with id {template_id} not found")

        template.subject = subject
        template.body = body
        await db.flush()
        logger.info("Mail template %s updated for company %s", template.type.value, company.id)

        await webhook_dispatcher.safe_dispatch(
            db,
            WebhookEvent.COMPANY_EMAIL_TEMPLATE_UPDATED,
            {"company": serialize_model(company), "template": serialize_model(template)},
        )
        return template

    # ── Memberships ───────────────────────────────────────────────────────

    async def get_user_companies(self, db: AsyncSession, user: User) -> List[Dict[str, Any]]:
        result = await db.execute(
            select(UserCompany)
            .where(UserCompany.user_id == user.id)
            .order_by(UserCompany.is_default.desc(), UserCompany.joined_at.asc())
        )
        return [
            {
                "company_id": m.company.id,
                "company_name": m.company.name,
                "country": m.company.country,
                "currency": m.company.currency,
                "role": m.role,
                "joined_at": m.joined_at,
                "is_default": m.is_default,
            }
            for m in result.scalars().all()
        ]

    async def set_default_company(self, db: AsyncSession, user: User, company_id: Any) -> Dict[str, Any]:
        membership = await membership_service.get_membership(db, user.id, company_id)
        if membership is None:
            raise PermissionDeniedError("You do not have access to this company")

        await db.execute(
            update(UserCompany)
            .where(UserCompany.user_id == user.id, UserCompany.id != membership.id)
            .values(is_default=False)
        )
        membership.is_default = True
        await db.flush()
        logger.info("User %s default company is now %s", user.id, membership.company_id)
        return {"success": True, "company_id": membership.company_id}

    async def switch_company(self, db: AsyncSession, user: User, company_id: Any) -> Dict[str, Any]:
        return await self.set_default_company(db, user, company_id)


# ── Singleton Instance ────────────────────────────────────────────────────
company_service = CompanyService()
