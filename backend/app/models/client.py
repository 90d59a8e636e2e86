"""
Invoicerr Backend — Client & Payment Method Models
====================================================

What:  Customers of a company (`clients`) and the payment instructions the
       company prints on its documents (`payment_methods`).
Why:   Both are tenant-owned reference data referenced by quotes, invoices
       and receipts.
How:   Soft delete through `is_active`; documents keep pointing at inactive
       rows so history stays intact.

Client naming:
    COMPANY clients are addressed by `name`.
    INDIVIDUAL clients are addressed by "contact_firstname contact_lastname".
    `Client.display_name` applies that rule everywhere (mails, webhooks,
    search results).
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.enums import ClientType, PaymentMethodType, db_enum
from app.utils.dates import utcnow


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    identifiers: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    founded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    type: Mapped[ClientType] = mapped_column(
        db_enum(ClientType), nullable=False, default=ClientType.COMPANY
    )

    contact_firstname: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    contact_lastname: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    contact_email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    contact_phone: Mapped[str] = mapped_column(String(50), nullable=False, default="")

    address: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    address_line2: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    postal_code: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    city: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    state: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    country: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    currency: Mapped[Optional[str]] = mapped_column(String(3), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    @property
    def display_name(self) -> str:
        if self.type == ClientType.COMPANY:
            return self.name or "N/A"
        full = f"{self.contact_firstname} {self.contact_lastname}".strip()
        return full or "N/A"


class PaymentMethod(Base):
    __tablename__ = "payment_methods"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    details: Mapped[str] = mapped_column(Text, nullable=False, default="")
    type: Mapped[PaymentMethodType] = mapped_column(
        db_enum(PaymentMethodType), nullable=False, default=PaymentMethodType.BANK_TRANSFER
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
