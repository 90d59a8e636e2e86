"""
Invoicerr Backend — Company Schemas
=====================================

Request/response models for the tenant itself: company info, PDF
configuration, mail templates and the caller's memberships.
"""

import uuid
from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field

from app.models.enums import MailTemplateType, UserRole


# ═══════════════════════════════════════════════════════════════════════════
# Company
# ═══════════════════════════════════════════════════════════════════════════

class CompanyBase(BaseModel):
    description: Optional[str] = None
    legal_id: Optional[str] = Field(default=None, max_length=100)
    founded_at: Optional[datetime] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3, description="ISO 4217 code")
    vat: Optional[str] = Field(default=None, max_length=100)
    exempt_vat: Optional[bool] = None
    address: Optional[str] = Field(default=None, max_length=255)
    postal_code: Optional[str] = Field(default=None, max_length=20)
    city: Optional[str] = Field(default=None, max_length=100)
    country: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=50)
    email: Optional[str] = Field(default=None, max_length=255)
    identifiers: Optional[Dict[str, str]] = None
    date_format: Optional[str] = Field(default=None, max_length=32)
    invoice_pdf_format: Optional[str] = Field(default=None, max_length=32)
    quote_starting_number: Optional[int] = Field(default=None, ge=1)
    quote_number_format: Optional[str] = Field(default=None, max_length=100)
    invoice_starting_number: Optional[int] = Field(default=None, ge=1)
    invoice_number_format: Optional[str] = Field(default=None, max_length=100)
    receipt_starting_number: Optional[int] = Field(default=None, ge=1)
    receipt_number_format: Optional[str] = Field(default=None, max_length=100)


class CompanyCreate(CompanyBase):
    """
    Body of POST /api/company.

    The creator becomes OWNER; the company becomes their default when it is
    their first membership.
    """
    name: str = Field(min_length=1, max_length=255)


class CompanyUpdate(CompanyBase):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)


class CompanyResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    legal_id: Optional[str] = None
    founded_at: Optional[datetime] = None
    currency: str
    vat: Optional[str] = None
    exempt_vat: bool
    address: str
    postal_code: str
    city: str
    country: str
    phone: str
    email: str
    identifiers: Dict[str, str] = {}
    date_format: str
    invoice_pdf_format: str
    quote_starting_number: int
    quote_number_format: str
    invoice_starting_number: int
    invoice_number_format: str
    receipt_starting_number: int
    receipt_number_format: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ═══════════════════════════════════════════════════════════════════════════
# PDF Config
# ═══════════════════════════════════════════════════════════════════════════

class PDFConfigUpdate(BaseModel):
    font_family: Optional[str] = Field(default=None, max_length=100)
    padding: Optional[float] = Field(default=None, ge=0)
    primary_color: Optional[str] = Field(default=None, max_length=16)
    secondary_color: Optional[str] = Field(default=None, max_length=16)
    include_logo: Optional[bool] = None
    logo_b64: Optional[str] = None
    company: Optional[str] = None
    invoice: Optional[str] = None
    quote: Optional[str] = None
    receipt: Optional[str] = None
    date: Optional[str] = None
    due_date: Optional[str] = None
    bill_to: Optional[str] = None
    description: Optional[str] = None
    quantity: Optional[str] = None
    unit_price: Optional[str] = None
    vat_rate: Optional[str] = None
    total: Optional[str] = None
    total_ht: Optional[str] = None
    total_vat: Optional[str] = None
    total_ttc: Optional[str] = None
    payment_method: Optional[str] = None
    payment_details: Optional[str] = None
    notes: Optional[str] = None
    valid_until: Optional[str] = None


class PDFConfigResponse(PDFConfigUpdate):
    id: uuid.UUID
    company_id: uuid.UUID

    model_config = {"from_attributes": True}


# ═══════════════════════════════════════════════════════════════════════════
# Mail Templates
# ═══════════════════════════════════════════════════════════════════════════

class EmailTemplateResponse(BaseModel):
    id: uuid.UUID
    type: MailTemplateType
    name: str = Field(description='Display name, e.g. "Signature Request"')
    subject: str
    body: str
    variables: Dict[str, str] = Field(
        default_factory=dict,
        description="Sample values for the {{VARIABLE}} placeholders",
    )


class EmailTemplateUpdate(BaseModel):
    template_id: uuid.UUID
    subject: str = Field(min_length=1, max_length=255)
    body: str = Field(min_length=1)


class MailTemplateResponse(BaseModel):
    id: uuid.UUID
    type: MailTemplateType
    subject: str
    body: str

    model_config = {"from_attributes": True}


# ═══════════════════════════════════════════════════════════════════════════
# Memberships
# ═══════════════════════════════════════════════════════════════════════════

class UserCompanyResponse(BaseModel):
    company_id: uuid.UUID
    company_name: str
    country: str
    currency: str
    role: UserRole
    joined_at: datetime
    is_default: bool


class SwitchCompanyRequest(BaseModel):
    company_id: uuid.UUID


class SwitchCompanyResponse(BaseModel):
    success: bool
    company_id: uuid.UUID


class MemberResponse(BaseModel):
    id: uuid.UUID
    email: str
    firstname: str
    lastname: str
    role: UserRole
    is_default: bool
    joined_at: datetime


class MemberRoleUpdate(BaseModel):
    role: UserRole
