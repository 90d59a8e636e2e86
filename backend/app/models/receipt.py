"""
Invoicerr Backend — Receipt Models
====================================

What:  Payment receipts (`receipts`) and the amounts they allocate to
       individual invoice lines (`receipt_items`).
Why:   Receipts record money actually received against an invoice; their
       sum decides whether the invoice is PAID.
How:   A receipt has no company_id of its own. Tenant scoping always goes
       through `invoice.company_id`, and so does numbering.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.client import PaymentMethod
from app.models.invoice import Invoice, InvoiceItem
from app.utils.dates import utcnow


class Receipt(Base):
    __tablename__ = "receipts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )

    number: Mapped[int] = mapped_column(Integer, nullable=False)
    raw_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    total_paid: Mapped[float] = mapped_column(Float, nullable=False, default=0)

    payment_method_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("payment_methods.id", ondelete="SET NULL"), nullable=True
    )
    payment_method: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payment_details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    invoice: Mapped[Invoice] = relationship(lazy="joined")
    payment_method_ref: Mapped[Optional[PaymentMethod]] = relationship(lazy="joined")
    items: Mapped[List["ReceiptItem"]] = relationship(
        back_populates="receipt", cascade="all, delete-orphan", lazy="selectin"
    )


class ReceiptItem(Base):
    __tablename__ = "receipt_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    receipt_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("receipts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    invoice_item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("invoice_items.id", ondelete="CASCADE"), nullable=False
    )
    amount_paid: Mapped[float] = mapped_column(Float, nullable=False, default=0)

    receipt: Mapped[Receipt] = relationship(back_populates="items")
    invoice_item: Mapped[InvoiceItem] = relationship(lazy="joined")
