"""
Invoicerr Backend — Invitation Routes
=======================================

Public: can-register, is-first-user and validate (used by the sign-up page).
Everything else needs a session.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.guards import CompanyContext, get_current_user, require_company
from app.models.user import User
from app.schemas.auth import CanRegisterResponse
from app.schemas.common import ERRORS_AUTH, ERRORS_COMMON, ErrorResponse, SuccessResponse
from app.schemas.invitation import (
    InvitationCodeRequest,
    InvitationCreate,
    InvitationResponse,
    JoinCompanyResponse,
)
from app.services.auth_service import auth_service
from app.services.membership_service import membership_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/invitations", tags=["Invitations"])


@router.get("/can-register", response_model=CanRegisterResponse, summary="Check whether sign-up is allowed")
async def can_register(
    code: Optional[str] = Query(default=None, description="Invitation code to check"),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await auth_service.can_register(db, code)


@router.get("/is-first-user", summary="True until the first account exists")
async def is_first_user(db: AsyncSession = Depends(get_db_session)) -> dict:
    return {"is_first_user": await auth_service.is_first_user(db)}


@router.post(
    "/validate",
    response_model=InvitationResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Code used or expired"},
        404: {"model": ErrorResponse, "description": "Unknown code"},
    },
    summary="Look up an invitation code",
)
async def validate_invitation(
    body: InvitationCodeRequest,
    db: AsyncSession = Depends(get_db_session),
):
    return await membership_service.get_invitation_by_code(db, body.code)


@router.post(
    "",
    response_model=InvitationResponse,
    status_code=201,
    responses=ERRORS_COMMON,
    summary="Create an invitation code",
)
async def create_invitation(
    body: InvitationCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return await membership_service.create_invitation(
        db,
        user,
        company_id=body.company_id,
        role=body.role,
        expires_in_days=body.expires_in_days,
        email=body.email,
    )


@router.post(
    "/join",
    response_model=JoinCompanyResponse,
    responses=ERRORS_COMMON,
    summary="Join a company with an invitation code",
)
async def join_company(
    body: InvitationCodeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await membership_service.accept_invitation(db, body.code, user)


@router.get("", response_model=List[InvitationResponse], responses=ERRORS_AUTH, summary="Invitations I created")
async def list_invitations(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return await membership_service.list_invitations(db, user)


@router.get(
    "/company",
    response_model=List[InvitationResponse],
    responses=ERRORS_COMMON,
    summary="Invitations of the current company",
)
async def list_company_invitations(
    ctx: CompanyContext = Depends(require_company),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return await membership_service.list_company_invitations(db, ctx.company_id, user)


@router.delete(
    "/{invitation_id}",
    response_model=SuccessResponse,
    responses=ERRORS_COMMON,
    summary="Delete an unused invitation",
)
async def delete_invitation(
    invitation_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await membership_service.delete_invitation(db, invitation_id, user)
