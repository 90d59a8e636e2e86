"""Client schemas."""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from app.models.enums import ClientType


class ClientBase(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255, description="Required for COMPANY clients")
    description: Optional[str] = None
    identifiers: Optional[Dict[str, str]] = None
    founded_at: Optional[datetime] = None
    type: Optional[ClientType] = None
    contact_firstname: Optional[str] = Field(default=None, max_length=100)
    contact_lastname: Optional[str] = Field(default=None, max_length=100)
    contact_email: Optional[str] = Field(default=None, max_length=255)
    contact_phone: Optional[str] = Field(default=None, max_length=50)
    address: Optional[str] = Field(default=None, max_length=255)
    address_line2: Optional[str] = Field(default=None, max_length=255)
    postal_code: Optional[str] = Field(default=None, max_length=20)
    city: Optional[str] = Field(default=None, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    country: Optional[str] = Field(default=None, max_length=100)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)


class ClientCreate(ClientBase):
    pass


class ClientUpdate(ClientBase):
    is_active: Optional[bool] = None


class ClientResponse(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    name: str
    display_name: str
    description: str
    identifiers: Dict[str, str] = {}
    founded_at: Optional[datetime] = None
    type: ClientType
    contact_firstname: str
    contact_lastname: str
    contact_email: str
    contact_phone: str
    address: str
    address_line2: Optional[str] = None
    postal_code: str
    city: str
    state: Optional[str] = None
    country: str
    currency: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ClientListResponse(BaseModel):
    page_count: int
    clients: List[ClientResponse]
