"""Receipt schemas. A receipt allocates amounts to lines of one invoice."""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.schemas.invoice import InvoiceSummary
from app.schemas.payment_method import PaymentMethodResponse


class ReceiptItemIn(BaseModel):
    invoice_item_id: uuid.UUID
    amount_paid: float = Field(ge=0)


class ReceiptCreate(BaseModel):
    invoice_id: uuid.UUID
    items: List[ReceiptItemIn] = Field(default_factory=list)
    payment_method_id: Optional[uuid.UUID] = None
    payment_method: Optional[str] = Field(default=None, max_length=255)
    payment_details: Optional[str] = None


class ReceiptUpdate(BaseModel):
    items: Optional[List[ReceiptItemIn]] = None
    payment_method_id: Optional[uuid.UUID] = None
    payment_method: Optional[str] = Field(default=None, max_length=255)
    payment_details: Optional[str] = None


class ReceiptIdRequest(BaseModel):
    id: uuid.UUID


class ReceiptItemResponse(BaseModel):
    id: uuid.UUID
    invoice_item_id: uuid.UUID
    amount_paid: float

    model_config = {"from_attributes": True}


class ReceiptResponse(BaseModel):
    id: uuid.UUID
    invoice_id: uuid.UUID
    number: int
    raw_number: Optional[str] = None
    total_paid: float
    payment_method_id: Optional[uuid.UUID] = None
    payment_method: Optional[str] = None
    payment_details: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    invoice: InvoiceSummary
    payment_method_info: Optional[PaymentMethodResponse] = Field(
        default=None, validation_alias="payment_method_ref"
    )
    items: List[ReceiptItemResponse] = []

    model_config = {"from_attributes": True}


class ReceiptStats(BaseModel):
    total: int


class ReceiptListResponse(BaseModel):
    page_count: int
    receipts: List[ReceiptResponse]
    stats: ReceiptStats
