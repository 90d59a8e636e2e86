"""
Invoicerr Backend — Quote Schemas
===================================

Totals are computed server-side from the items and the discount rate;
clients never send total_ht / total_vat / total_ttc.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.enums import QuoteStatus
from app.schemas.client import ClientResponse
from app.schemas.line_item import LineItemIn, LineItemResponse
from app.schemas.payment_method import PaymentMethodResponse


class QuoteCreate(BaseModel):
    client_id: uuid.UUID
    title: str = Field(default="", max_length=255)
    valid_until: Optional[datetime] = None
    notes: str = ""
    discount_rate: float = Field(default=0, description="Percentage, clamped to 0..100")
    currency: Optional[str] = Field(
        default=None,
        min_length=3,
        max_length=3,
        description="Falls back to the client's currency, then the company's",
    )
    payment_method_id: Optional[uuid.UUID] = None
    payment_details: Optional[str] = None
    items: List[LineItemIn] = Field(default_factory=list)


class QuoteUpdate(BaseModel):
    client_id: Optional[uuid.UUID] = None
    title: Optional[str] = Field(default=None, max_length=255)
    valid_until: Optional[datetime] = None
    notes: Optional[str] = None
    discount_rate: Optional[float] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    payment_method_id: Optional[uuid.UUID] = None
    payment_details: Optional[str] = None
    items: Optional[List[LineItemIn]] = None


class QuoteIdRequest(BaseModel):
    id: uuid.UUID


class QuoteResponse(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    client_id: uuid.UUID
    number: int
    raw_number: Optional[str] = None
    title: str
    status: QuoteStatus
    valid_until: Optional[datetime] = None
    signed_at: Optional[datetime] = None
    notes: str
    discount_rate: float
    total_ht: float
    total_vat: float
    total_ttc: float
    currency: str
    payment_method_id: Optional[uuid.UUID] = None
    payment_details: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
    client: ClientResponse
    payment_method: Optional[PaymentMethodResponse] = Field(
        default=None, validation_alias="payment_method_ref"
    )
    items: List[LineItemResponse] = []

    model_config = {"from_attributes": True}


class QuoteStats(BaseModel):
    total: int
    draft: int
    sent: int
    signed: int
    expired: int


class QuoteListResponse(BaseModel):
    page_count: int
    quotes: List[QuoteResponse]
    stats: QuoteStats
