"""
Invoicerr Backend — Admin Routes
==================================

Instance-wide administration. Every route requires a super administrator
(require_super_admin); none of them needs a company context.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.guards import require_super_admin
from app.models.user import User
from app.schemas.admin import (
    AddUserToCompanyRequest,
    AddUserToCompanyResponse,
    AdminCompanyResponse,
    AdminUserResponse,
    DeleteCompanyResponse,
    SystemAdminChangeResponse,
    SystemStatsResponse,
    UpdateUserRoleRequest,
    UpdateUserRoleResponse,
)
from app.schemas.common import ERRORS_COMMON, SuccessResponse
from app.schemas.recurring_invoice import RecurringRunResponse
from app.services.admin_service import admin_service
from app.services.invoice_service import invoice_service
from app.services.recurring_invoice_service import recurring_invoice_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"], responses=ERRORS_COMMON)


@router.get("/stats", response_model=SystemStatsResponse, summary="Instance-wide counts")
async def get_system_stats(
    user: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await admin_service.system_stats(db)


@router.get("/users", response_model=List[AdminUserResponse], summary="All users with their companies")
async def list_users(
    user: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
):
    return await admin_service.list_users(db)


@router.get("/companies", response_model=List[AdminCompanyResponse], summary="All companies with their users")
async def list_companies(
    user: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
):
    return await admin_service.list_companies(db)


@router.post("/users/{user_id}/grant-admin", response_model=SystemAdminChangeResponse, summary="Grant system admin")
async def grant_system_admin(
    user_id: str,
    user: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await admin_service.grant_system_admin(db, user_id)


@router.post("/users/{user_id}/revoke-admin", response_model=SystemAdminChangeResponse, summary="Revoke system admin")
async def revoke_system_admin(
    user_id: str,
    user: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await admin_service.revoke_system_admin(db, user, user_id)


@router.post(
    "/companies/{company_id}/users",
    response_model=AddUserToCompanyResponse,
    status_code=201,
    summary="Add a user to a company",
)
async def add_user_to_company(
    company_id: str,
    body: AddUserToCompanyRequest,
    user: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await admin_service.add_user_to_company(db, body.user_id, company_id, body.role)


@router.delete("/companies/{company_id}/users/{user_id}", response_model=SuccessResponse, summary="Remove a user from a company")
async def remove_user_from_company(
    company_id: str,
    user_id: str,
    user: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await admin_service.remove_user_from_company(db, user_id, company_id)


@router.patch(
    "/companies/{company_id}/users/{user_id}/role",
    response_model=UpdateUserRoleResponse,
    summary="Change a user's role in a company",
)
async def update_user_role(
    company_id: str,
    user_id: str,
    body: UpdateUserRoleRequest,
    user: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await admin_service.update_user_role(db, user_id, company_id, body.role)


@router.delete("/companies/{company_id}", response_model=DeleteCompanyResponse, summary="Delete a company and its data")
async def delete_company(
    company_id: str,
    user: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await admin_service.delete_company(db, company_id)


@router.post(
    "/recurring-invoices/run",
    response_model=RecurringRunResponse,
    summary="Generate due recurring invoices and flag overdue invoices now",
)
async def run_recurring_invoices(
    user: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    generated = await recurring_invoice_service.generate_due_invoices(db)
    overdue = await invoice_service.mark_overdue_invoices(db)
    logger.info("Manual scheduler run by %s: %d generated, %d overdue", user.id, generated, overdue)
    return {"generated": generated, "overdue": overdue}
