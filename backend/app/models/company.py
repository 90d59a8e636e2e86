"""
Invoicerr Backend — Company (Tenant) Models
=============================================

What:  The tenant root (`companies`) and everything hanging directly off it:
       PDF configuration, mail templates, memberships and invitation codes.
Why:   Every business row (client, quote, invoice...) carries a company_id;
       the company guard resolves one of these per request.
How:   Numbering formats and starting numbers live on the company so each
       tenant controls its own document numbers.

Numbering fields:
    quote/invoice/receipt_number_format: pattern with {year}, {month},
        {day} and {number[:pad]} placeholders (see app.utils.numbering)
    quote/invoice/receipt_starting_number: offset applied to the sequence,
        so a tenant migrating from another tool can continue at 1042
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.enums import MailTemplateType, UserRole, db_enum
from app.utils.dates import utcnow


class Company(Base):
    __tablename__ = "companies"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    legal_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    founded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")
    vat: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    exempt_vat: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    address: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    postal_code: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    city: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    country: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    phone: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    identifiers: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    date_format: Mapped[str] = mapped_column(String(32), nullable=False, default="dd/MM/yyyy")
    invoice_pdf_format: Mapped[str] = mapped_column(String(32), nullable=False, default="pdf")

    quote_starting_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    quote_number_format: Mapped[str] = mapped_column(
        String(100), nullable=False, default="Q-{year}-{number:4}"
    )
    invoice_starting_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    invoice_number_format: Mapped[str] = mapped_column(
        String(100), nullable=False, default="INV-{year}-{number:4}"
    )
    receipt_starting_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    receipt_number_format: Mapped[str] = mapped_column(
        String(100), nullable=False, default="R-{year}-{number:4}"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    # PDFConfig.company is a label column, hence the company_ref back-reference
    pdf_config: Mapped[Optional["PDFConfig"]] = relationship(
        back_populates="company_ref", uselist=False, cascade="all, delete-orphan"
    )
    members: Mapped[List["UserCompany"]] = relationship(
        back_populates="company", cascade="all, delete-orphan"
    )
    mail_templates: Mapped[List["MailTemplate"]] = relationship(
        back_populates="company", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Company(id={self.id}, name={self.name!r})>"


class PDFConfig(Base):
    """Rendering preferences consumed by the (external) PDF layer."""

    __tablename__ = "pdf_configs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("companies.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    font_family: Mapped[str] = mapped_column(String(100), nullable=False, default="Inter")
    padding: Mapped[float] = mapped_column(Float, nullable=False, default=40)
    primary_color: Mapped[str] = mapped_column(String(16), nullable=False, default="#0ea5e9")
    secondary_color: Mapped[str] = mapped_column(String(16), nullable=False, default="#f3f4f6")
    include_logo: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    logo_b64: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ── Labels ────────────────────────────────────────────────────────────
    company: Mapped[str] = mapped_column(String(100), nullable=False, default="Company")
    invoice: Mapped[str] = mapped_column(String(100), nullable=False, default="Invoice")
    quote: Mapped[str] = mapped_column(String(100), nullable=False, default="Quote")
    receipt: Mapped[str] = mapped_column(String(100), nullable=False, default="Receipt")
    date: Mapped[str] = mapped_column(String(100), nullable=False, default="Date")
    due_date: Mapped[str] = mapped_column(String(100), nullable=False, default="Due date")
    bill_to: Mapped[str] = mapped_column(String(100), nullable=False, default="Bill to")
    description: Mapped[str] = mapped_column(String(100), nullable=False, default="Description")
    quantity: Mapped[str] = mapped_column(String(100), nullable=False, default="Quantity")
    unit_price: Mapped[str] = mapped_column(String(100), nullable=False, default="Unit price")
    vat_rate: Mapped[str] = mapped_column(String(100), nullable=False, default="VAT rate")
    total: Mapped[str] = mapped_column(String(100), nullable=False, default="Total")
    total_ht: Mapped[str] = mapped_column(String(100), nullable=False, default="Total excl. tax")
    total_vat: Mapped[str] = mapped_column(String(100), nullable=False, default="VAT")
    total_ttc: Mapped[str] = mapped_column(String(100), nullable=False, default="Total incl. tax")
    payment_method: Mapped[str] = mapped_column(
        String(100), nullable=False, default="Payment method"
    )
    payment_details: Mapped[str] = mapped_column(
        String(100), nullable=False, default="Payment details"
    )
    notes: Mapped[str] = mapped_column(String(100), nullable=False, default="Notes")
    valid_until: Mapped[str] = mapped_column(String(100), nullable=False, default="Valid until")

    company_ref: Mapped[Company] = relationship(back_populates="pdf_config")


class MailTemplate(Base):
    """Per-company subject/body with {{VARIABLE}} placeholders."""

    __tablename__ = "mail_templates"
    __table_args__ = (UniqueConstraint("company_id", "type", name="uq_mail_template_type"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[MailTemplateType] = mapped_column(db_enum(MailTemplateType), nullable=False)
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)

    company: Mapped[Company] = relationship(back_populates="mail_templates")


class UserCompany(Base):
    """Membership of a user in a company, with the role they hold there."""

    __tablename__ = "user_companies"
    __table_args__ = (UniqueConstraint("user_id", "company_id", name="uq_user_company"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[UserRole] = mapped_column(
        db_enum(UserRole), nullable=False, default=UserRole.ACCOUNTANT
    )
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    user: Mapped["User"] = relationship(back_populates="companies", lazy="joined")  # noqa: F821
    company: Mapped[Company] = relationship(back_populates="members", lazy="joined")


class InvitationCode(Base):
    """
    Single-use registration/join code.

    company_id NULL means an instance-level invitation (permits sign-up
    only); otherwise redeeming it also adds a membership with `role`.
    """

    __tablename__ = "invitation_codes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)
    company_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("companies.id", ondelete="CASCADE"), nullable=True, index=True
    )
    role: Mapped[UserRole] = mapped_column(
        db_enum(UserRole), nullable=False, default=UserRole.ACCOUNTANT
    )
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    used_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    company: Mapped[Optional[Company]] = relationship(lazy="joined")
