"""Super-admin schemas."""

import uuid
from datetime import datetime
from typing import List

from pydantic import BaseModel

from app.models.enums import UserRole


class SystemStatsResponse(BaseModel):
    total_users: int
    total_companies: int
    total_invoices: int
    total_quotes: int
    total_clients: int
    system_admin_count: int


class UserMembership(BaseModel):
    company_id: uuid.UUID
    company_name: str
    role: UserRole
    joined_at: datetime
    is_default: bool


class AdminUserResponse(BaseModel):
    id: uuid.UUID
    email: str
    firstname: str
    lastname: str
    is_system_admin: bool
    created_at: datetime
    companies: List[UserMembership]


class CompanyMember(BaseModel):
    user_id: uuid.UUID
    email: str
    firstname: str
    lastname: str
    role: UserRole
    joined_at: datetime


class AdminCompanyResponse(BaseModel):
    id: uuid.UUID
    name: str
    country: str
    currency: str
    created_at: datetime
    users: List[CompanyMember]


class SystemAdminChangeResponse(BaseModel):
    success: bool
    user_id: uuid.UUID
    is_system_admin: bool


class AddUserToCompanyRequest(BaseModel):
    user_id: uuid.UUID
    role: UserRole = UserRole.ACCOUNTANT


class AddUserToCompanyResponse(BaseModel):
    success: bool
    user_id: uuid.UUID
    company_id: uuid.UUID
    company_name: str
    role: UserRole


class UpdateUserRoleRequest(BaseModel):
    role: UserRole


class UpdateUserRoleResponse(BaseModel):
    success: bool
    user_id: uuid.UUID
    company_id: uuid.UUID
    role: UserRole


class DeleteCompanyResponse(BaseModel):
    success: bool
    deleted_company: str
