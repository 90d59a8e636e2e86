"""
Invoicerr Backend — Invoice Models
====================================

What:  Invoices (`invoices`) and their line items (`invoice_items`).
Why:   The billing document. Receipts pay it; credit notes negate it.
How:   Same numbering scheme as quotes: per-company `number` plus the
       formatted `raw_number`. Credit notes are invoices with negative
       totals, a "CN-" raw number and a [CREDIT_NOTE] marker in notes.

Status lifecycle:
    UNPAID → SENT (mailed) → PAID (marked, or receipts cover total_ttc)
    UNPAID/SENT → OVERDUE (due date passed, background scheduler)
    PAID → UNPAID when receipts are removed and no longer cover the total
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
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
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.client import Client, PaymentMethod
from app.models.company import Company
from app.models.enums import InvoiceStatus, db_enum
from app.models.line_item import LineItemMixin
from app.models.quote import Quote
from app.utils.dates import utcnow

CREDIT_NOTE_MARKER = "[CREDIT_NOTE]"


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("company_id", "number", name="uq_invoice_company_number"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clients.id"), nullable=False, index=True
    )
    quote_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("quotes.id", ondelete="SET NULL"), nullable=True
    )
    recurring_invoice_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("recurring_invoices.id", ondelete="SET NULL"), nullable=True
    )

    number: Mapped[int] = mapped_column(Integer, nullable=False)
    raw_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    status: Mapped[InvoiceStatus] = mapped_column(
        db_enum(InvoiceStatus), nullable=False, default=InvoiceStatus.UNPAID
    )
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    discount_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    total_ht: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    total_vat: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    total_ttc: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")

    payment_method_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("payment_methods.id", ondelete="SET NULL"), nullable=True
    )
    # Free-text label kept for documents created before payment methods existed
    payment_method: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payment_details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    company: Mapped[Company] = relationship(lazy="joined")
    client: Mapped[Client] = relationship(lazy="joined")
    quote: Mapped[Optional[Quote]] = relationship(lazy="selectin")
    payment_method_ref: Mapped[Optional[PaymentMethod]] = relationship(lazy="joined")
    items: Mapped[List["InvoiceItem"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.order",
        lazy="selectin",
    )

    @hybrid_property
    def is_credit_note(self) -> bool:
        return CREDIT_NOTE_MARKER in (self.notes or "")

    @is_credit_note.expression
    def is_credit_note(cls):
        # autoescape: "_" in the marker is a LIKE wildcard
        return cls.notes.contains(CREDIT_NOTE_MARKER, autoescape=True)


class InvoiceItem(LineItemMixin, Base):
    __tablename__ = "invoice_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )

    invoice: Mapped[Invoice] = relationship(back_populates="items")
