"""Recurring invoice (invoice template) schemas."""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.enums import RecurrenceFrequency
from app.schemas.client import ClientResponse
from app.schemas.line_item import LineItemIn, LineItemResponse


class RecurringInvoiceCreate(BaseModel):
    client_id: uuid.UUID
    frequency: RecurrenceFrequency = RecurrenceFrequency.MONTHLY
    start_date: Optional[datetime] = Field(default=None, description="First invoice date; defaults to now")
    count: Optional[int] = Field(default=None, ge=1, description="Stop after this many invoices")
    until: Optional[datetime] = Field(default=None, description="Stop after this date")
    auto_send: bool = False
    notes: str = ""
    discount_rate: float = 0
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    payment_method_id: Optional[uuid.UUID] = None
    payment_details: Optional[str] = None
    items: List[LineItemIn] = Field(default_factory=list)


class RecurringInvoiceUpdate(BaseModel):
    client_id: Optional[uuid.UUID] = None
    frequency: Optional[RecurrenceFrequency] = None
    start_date: Optional[datetime] = None
    count: Optional[int] = Field(default=None, ge=1)
    until: Optional[datetime] = None
    auto_send: Optional[bool] = None
    notes: Optional[str] = None
    discount_rate: Optional[float] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    payment_method_id: Optional[uuid.UUID] = None
    payment_details: Optional[str] = None
    items: Optional[List[LineItemIn]] = None


class RecurringInvoiceResponse(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    client_id: uuid.UUID
    frequency: RecurrenceFrequency
    count: Optional[int] = None
    until: Optional[datetime] = None
    auto_send: bool
    next_invoice_date: Optional[datetime] = None
    last_invoice_date: Optional[datetime] = None
    generated_count: int
    notes: str
    discount_rate: float
    total_ht: float
    total_vat: float
    total_ttc: float
    currency: str
    payment_method_id: Optional[uuid.UUID] = None
    payment_details: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    client: ClientResponse
    items: List[LineItemResponse] = []

    model_config = {"from_attributes": True}


class RecurringInvoiceListResponse(BaseModel):
    page_count: int
    recurring_invoices: List[RecurringInvoiceResponse]


class RecurringRunResponse(BaseModel):
    generated: int
    overdue: int
