"""
Invoicerr Backend — Quote Models
==================================

What:  Quotes (`quotes`), their line items (`quote_items`) and signature
       requests (`signatures`).
Why:   A quote is the commercial proposal an invoice is later created from.
How:   `number` is the per-company sequence; `raw_number` is the formatted
       display number ("Q-2025-0007") filled by the numbering helpers.

Eager loading:
    company, client and payment method are loaded with the quote (joined)
    and items with a second SELECT (selectin). Async sessions cannot
    lazy-load, and every quote response needs all four.
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
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.client import Client, PaymentMethod
from app.models.company import Company
from app.models.enums import QuoteStatus, db_enum
from app.models.line_item import LineItemMixin
from app.utils.dates import utcnow


class Quote(Base):
    __tablename__ = "quotes"
    __table_args__ = (UniqueConstraint("company_id", "number", name="uq_quote_company_number"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clients.id"), nullable=False, index=True
    )

    number: Mapped[int] = mapped_column(Integer, nullable=False)
    raw_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    status: Mapped[QuoteStatus] = mapped_column(
        db_enum(QuoteStatus), nullable=False, default=QuoteStatus.DRAFT
    )
    valid_until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
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

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    company: Mapped[Company] = relationship(lazy="joined")
    client: Mapped[Client] = relationship(lazy="joined")
    payment_method_ref: Mapped[Optional[PaymentMethod]] = relationship(lazy="joined")
    items: Mapped[List["QuoteItem"]] = relationship(
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteItem.order",
        lazy="selectin",
    )
    signatures: Mapped[List["Signature"]] = relationship(
        back_populates="quote", cascade="all, delete-orphan"
    )


class QuoteItem(LineItemMixin, Base):
    __tablename__ = "quote_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    quote_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True
    )

    quote: Mapped[Quote] = relationship(back_populates="items")


class Signature(Base):
    """A signature request sent for a quote; only one is active at a time."""

    __tablename__ = "signatures"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    quote_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    provider: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    external_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    # SHA-256 of the pending verification code; cleared once used
    otp_digest: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    otp_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    otp_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    quote: Mapped[Quote] = relationship(back_populates="signatures", lazy="joined")
