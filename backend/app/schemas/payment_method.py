"""Payment method schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.models.enums import PaymentMethodType


class PaymentMethodCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    details: str = ""
    type: Optional[PaymentMethodType] = None


class PaymentMethodUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    details: Optional[str] = None
    type: Optional[PaymentMethodType] = None
    is_active: Optional[bool] = None


class PaymentMethodResponse(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    name: str
    details: str
    type: PaymentMethodType
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
