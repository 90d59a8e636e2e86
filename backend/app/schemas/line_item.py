"""Line items shared by quotes, invoices and recurring invoices."""

import uuid
from typing import Optional

from pydantic import BaseModel, Field

from app.models.enums import ItemType


class LineItemIn(BaseModel):
    """
    One line of a document body.

    On edit, an `id` matching an existing line updates it; lines without a
    matching id are created and existing lines left out are removed.
    """
    id: Optional[uuid.UUID] = None
    description: str = ""
    quantity: float = Field(default=1, ge=0)
    unit_price: float = 0
    vat_rate: float = Field(default=0, ge=0, le=100, description="Percentage, e.g. 20")
    type: ItemType = ItemType.SERVICE
    order: int = 0


class LineItemResponse(BaseModel):
    id: uuid.UUID
    description: str
    quantity: float
    unit_price: float
    vat_rate: float
    type: ItemType
    order: int

    model_config = {"from_attributes": True}
