"""
Invoicerr Backend — Signature Schemas
=======================================

The public signing page sees the quote it signs, the issuing company's
name and the client's name; nothing else about either.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import AliasPath, BaseModel, Field

from app.models.enums import QuoteStatus
from app.schemas.line_item import LineItemResponse


class SignatureCreate(BaseModel):
    quote_id: uuid.UUID


class SignRequest(BaseModel):
    otp_code: str = Field(min_length=1, max_length=32, description="Dashes and spaces are ignored")


class SignedQuote(BaseModel):
    id: uuid.UUID
    number: int
    raw_number: Optional[str] = None
    title: str
    status: QuoteStatus
    valid_until: Optional[datetime] = None
    signed_at: Optional[datetime] = None
    total_ht: float
    total_vat: float
    total_ttc: float
    currency: str
    company_name: str = Field(validation_alias=AliasPath("company", "name"))
    client_name: str = Field(validation_alias=AliasPath("client", "name"))
    items: List[LineItemResponse] = []

    model_config = {"from_attributes": True}


class SignatureResponse(BaseModel):
    id: uuid.UUID
    quote_id: uuid.UUID
    is_active: bool
    signed_at: Optional[datetime] = None
    otp_expires_at: Optional[datetime] = None
    created_at: datetime
    quote: SignedQuote

    model_config = {"from_attributes": True}
