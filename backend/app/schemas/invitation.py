"""Invitation code schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.models.enums import UserRole


class InvitationCreate(BaseModel):
    """
    company_id omitted: an instance-level code that only permits sign-up.
    With company_id, redeeming the code also adds a membership with `role`.
    """
    company_id: Optional[uuid.UUID] = None
    role: UserRole = UserRole.ACCOUNTANT
    expires_in_days: Optional[int] = Field(default=None, ge=1, le=365)
    email: Optional[str] = Field(default=None, max_length=255)


class InvitationResponse(BaseModel):
    id: uuid.UUID
    code: str
    company_id: Optional[uuid.UUID] = None
    role: UserRole
    email: Optional[str] = None
    created_by_id: uuid.UUID
    used_by_id: Optional[uuid.UUID] = None
    used_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class InvitationCodeRequest(BaseModel):
    code: str = Field(min_length=1, max_length=32)


class JoinCompanyResponse(BaseModel):
    success: bool
    company_id: uuid.UUID
    company_name: Optional[str] = None
    role: UserRole
