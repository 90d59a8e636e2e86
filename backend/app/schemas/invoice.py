"""
Invoicerr Backend — Invoice Schemas
=====================================

Includes the correction workflow: modification options and credit notes.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.enums import InvoiceStatus, QuoteStatus
from app.schemas.client import ClientResponse
from app.schemas.line_item import LineItemIn, LineItemResponse
from app.schemas.payment_method import PaymentMethodResponse


# ═══════════════════════════════════════════════════════════════════════════
# Requests
# ═══════════════════════════════════════════════════════════════════════════

class InvoiceCreate(BaseModel):
    client_id: uuid.UUID
    quote_id: Optional[uuid.UUID] = None
    due_date: Optional[datetime] = Field(default=None, description="Defaults to 14 days from now")
    notes: str = ""
    discount_rate: float = 0
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    payment_method_id: Optional[uuid.UUID] = None
    payment_method: Optional[str] = Field(default=None, max_length=255)
    payment_details: Optional[str] = None
    items: List[LineItemIn] = Field(default_factory=list)


class InvoiceUpdate(BaseModel):
    client_id: Optional[uuid.UUID] = None
    due_date: Optional[datetime] = None
    notes: Optional[str] = None
    discount_rate: Optional[float] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    payment_method_id: Optional[uuid.UUID] = None
    payment_method: Optional[str] = Field(default=None, max_length=255)
    payment_details: Optional[str] = None
    items: Optional[List[LineItemIn]] = None


class InvoiceIdRequest(BaseModel):
    id: uuid.UUID


class CreateFromQuoteRequest(BaseModel):
    quote_id: uuid.UUID


class CreditNoteItem(BaseModel):
    original_item_id: uuid.UUID
    quantity: float = Field(gt=0)


class CreditNoteRequest(BaseModel):
    correction_code: str = Field(min_length=1, max_length=64)
    reason: Optional[str] = None
    items: List[CreditNoteItem] = Field(min_length=1)


# ═══════════════════════════════════════════════════════════════════════════
# Responses
# ═══════════════════════════════════════════════════════════════════════════

class QuoteReference(BaseModel):
    id: uuid.UUID
    raw_number: Optional[str] = None
    title: str
    status: QuoteStatus

    model_config = {"from_attributes": True}


class InvoiceSummary(BaseModel):
    """Invoice without items; used by receipts and the dashboard."""
    id: uuid.UUID
    number: int
    raw_number: Optional[str] = None
    status: InvoiceStatus
    due_date: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    total_ttc: float
    currency: str
    client: ClientResponse
    created_at: datetime

    model_config = {"from_attributes": True}


class InvoiceResponse(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    client_id: uuid.UUID
    quote_id: Optional[uuid.UUID] = None
    recurring_invoice_id: Optional[uuid.UUID] = None
    number: int
    raw_number: Optional[str] = None
    status: InvoiceStatus
    due_date: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    notes: str
    discount_rate: float
    total_ht: float
    total_vat: float
    total_ttc: float
    currency: str
    payment_method_id: Optional[uuid.UUID] = None
    payment_method: Optional[str] = None
    payment_details: Optional[str] = None
    is_active: bool
    is_credit_note: bool
    created_at: datetime
    updated_at: datetime
    client: ClientResponse
    quote: Optional[QuoteReference] = None
    payment_method_info: Optional[PaymentMethodResponse] = Field(
        default=None, validation_alias="payment_method_ref"
    )
    items: List[LineItemResponse] = []

    model_config = {"from_attributes": True}


class InvoiceStats(BaseModel):
    total: int
    unpaid: int
    sent: int
    paid: int
    overdue: int


class InvoiceListResponse(BaseModel):
    page_count: int
    invoices: List[InvoiceResponse]
    stats: InvoiceStats


class ModificationOption(BaseModel):
    id: str = Field(description="direct_edit, credit_note, corrective_invoice, void_and_reissue, cancel")
    available: bool
    reason: Optional[str] = Field(default=None, description="Why the option is unavailable")


class ModificationOptionsResponse(BaseModel):
    invoice_id: uuid.UUID
    invoice_number: str
    invoice_status: InvoiceStatus
    options: List[ModificationOption]
    recommended_option: str
