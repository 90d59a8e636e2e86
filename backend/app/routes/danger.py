"""
Invoicerr Backend — Danger Zone Routes
========================================

Owner-only, code-confirmed destruction of the current company's data.

Endpoints:
    POST   /api/danger/otp         mail a confirmation code to the caller
    POST   /api/danger/reset/app   {"otp": ...} wipe documents, clients, payment methods
    POST   /api/danger/reset/all   {"otp": ...} delete the company itself
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.guards import CompanyContext, get_current_user, require_roles
from app.models.enums import UserRole
from app.models.user import User
from app.schemas.common import ERRORS_COMMON, MessageResponse
from app.schemas.danger import DangerConfirm
from app.services.danger_service import danger_service

router = APIRouter(prefix="/api/danger", tags=["Danger Zone"])


@router.post("/otp", response_model=MessageResponse, responses=ERRORS_COMMON, summary="Mail a confirmation code")
async def request_otp(
    user: User = Depends(get_current_user),
    ctx: CompanyContext = Depends(require_roles(UserRole.OWNER)),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await danger_service.request_otp(db, user, ctx.company)


@router.post("/reset/app", response_model=MessageResponse, responses=ERRORS_COMMON, summary="Reset company data")
async def reset_company_data(
    body: DangerConfirm,
    user: User = Depends(get_current_user),
    ctx: CompanyContext = Depends(require_roles(UserRole.OWNER)),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await danger_service.reset_company_data(db, user, ctx.company, body.otp)


@router.post("/reset/all", response_model=MessageResponse, responses=ERRORS_COMMON, summary="Delete the company")
async def delete_company(
    body: DangerConfirm,
    user: User = Depends(get_current_user),
    ctx: CompanyContext = Depends(require_roles(UserRole.OWNER)),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await danger_service.delete_company(db, user, ctx.company, body.otp)
