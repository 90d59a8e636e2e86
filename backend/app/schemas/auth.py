"""Sign-up, sign-in and profile schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from app.models.enums import UserRole


class SignUpRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    firstname: str = Field(default="", max_length=100)
    lastname: str = Field(default="", max_length=100)
    invitation_code: Optional[str] = Field(default=None, max_length=32)


class SignInRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class UserResponse(BaseModel):
    id: uuid.UUID
    email: str
    firstname: str
    lastname: str
    is_system_admin: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class SessionResponse(BaseModel):
    """Returned by sign-up and sign-in; the token is also set as a cookie."""
    token: str
    expires_at: datetime
    user: UserResponse


class CanRegisterResponse(BaseModel):
    allowed: bool
    requires_code: bool
    message: Optional[str] = None
    company_id: Optional[uuid.UUID] = None
    company_name: Optional[str] = None
    role: Optional[UserRole] = None


class ProfileUpdateRequest(BaseModel):
    firstname: Optional[str] = Field(default=None, max_length=100)
    lastname: Optional[str] = Field(default=None, max_length=100)


class PasswordUpdateRequest(BaseModel):
    current_password: str
    new_password: str = Field(min_length=8, max_length=128)
