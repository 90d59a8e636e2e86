"""
Invoicerr Backend — Recurring Invoice Models
==============================================

What:  Invoice templates generated on a schedule (`recurring_invoices`) and
       their line items (`recurring_invoice_items`).
Why:   Subscriptions and retainers: the same invoice every month/quarter.
How:   `next_invoice_date` drives the generator. `count` caps the number of
       generated invoices, `until` caps the date; either may be NULL.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.client import Client, PaymentMethod
from app.models.company import Company
from app.models.enums import RecurrenceFrequency, db_enum
from app.models.line_item import LineItemMixin
from app.utils.dates import utcnow


class RecurringInvoice(Base):
    __tablename__ = "recurring_invoices"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clients.id"), nullable=False, index=True
    )

    frequency: Mapped[RecurrenceFrequency] = mapped_column(
        db_enum(RecurrenceFrequency), nullable=False, default=RecurrenceFrequency.MONTHLY
    )
    count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    auto_send: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    next_invoice_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    last_invoice_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    generated_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    discount_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    total_ht: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    total_vat: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    total_ttc: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")

    payment_method_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("payment_methods.id", ondelete="SET NULL"), nullable=True
    )
    payment_details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    company: Mapped[Company] = relationship(lazy="joined")
    client: Mapped[Client] = relationship(lazy="joined")
    payment_method_ref: Mapped[Optional[PaymentMethod]] = relationship(lazy="joined")
    items: Mapped[List["RecurringInvoiceItem"]] = relationship(
        back_populates="recurring_invoice",
        cascade="all, delete-orphan",
        order_by="RecurringInvoiceItem.order",
        lazy="selectin",
    )


class RecurringInvoiceItem(LineItemMixin, Base):
    __tablename__ = "recurring_invoice_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    recurring_invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("recurring_invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    recurring_invoice: Mapped[RecurringInvoice] = relationship(back_populates="items")
