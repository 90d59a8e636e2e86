"""
Invoicerr Backend — Company Routes
====================================

What:  Company creation, company info and settings (PDF, mail templates,
       logo), the caller's companies and company membership management.
How:   Settings routes resolve the company with require_company. The
       company-switching and membership routes use the legacy tenant
       resolution (resolve_tenant / require_permission), which tolerates
       users who have no company yet.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, File, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.exceptions import ValidationError
from app.guards import (
    CompanyContext,
    TenantContext,
    get_current_user,
    require_company,
    require_permission,
    require_roles,
    resolve_tenant,
)
from app.models.enums import UserRole
from app.models.user import User
from app.schemas.common import ERRORS_AUTH, ERRORS_COMMON, SuccessResponse
from app.schemas.company import (
    CompanyCreate,
    CompanyResponse,
    CompanyUpdate,
    EmailTemplateResponse,
    EmailTemplateUpdate,
    MailTemplateResponse,
    MemberResponse,
    MemberRoleUpdate,
    PDFConfigResponse,
    PDFConfigUpdate,
    SwitchCompanyRequest,
    SwitchCompanyResponse,
    UserCompanyResponse,
)
from app.services.company_service import company_service
from app.services.membership_service import membership_service
from app.utils.sse import sse_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/company", tags=["Company"])

require_admin = require_roles(UserRole.ADMIN)


def _tenant_company_id(tenant: TenantContext):
    if tenant.company_id is None:
        raise ValidationError("Company ID is required", field="company_id")
    return tenant.company_id


# ── Company ───────────────────────────────────────────────────────────────

@router.post(
    "",
    response_model=CompanyResponse,
    status_code=201,
    responses=ERRORS_AUTH,
    summary="Create a company; the caller becomes its OWNER",
)
async def create_company(
    body: CompanyCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return await company_service.create_company(db, user, body.model_dump(exclude_none=True))


@router.get("/info", response_model=CompanyResponse, responses=ERRORS_COMMON, summary="Current company")
async def get_company_info(
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await company_service.get_company_info(db, ctx.company)


@router.get("/info/sse", summary="Current company as a server-sent event stream")
async def get_company_info_sse(request: Request, ctx: CompanyContext = Depends(require_company)):
    async def snapshot(session: AsyncSession):
        company = await company_service.get_company(session, ctx.company_id)
        return CompanyResponse.model_validate(company)

    return sse_response(request, snapshot)


@router.post("/info", response_model=CompanyResponse, responses=ERRORS_COMMON, summary="Edit company info")
async def edit_company_info(
    body: CompanyUpdate,
    ctx: CompanyContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    return await company_service.edit_company_info(db, ctx.company, body.model_dump(exclude_unset=True))


# ── PDF & Logo ────────────────────────────────────────────────────────────

@router.get("/pdf-template", response_model=PDFConfigResponse, responses=ERRORS_COMMON, summary="PDF settings")
async def get_pdf_config(
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await company_service.get_pdf_config(db, ctx.company)


@router.post("/pdf-template", response_model=PDFConfigResponse, responses=ERRORS_COMMON, summary="Edit PDF settings")
async def edit_pdf_config(
    body: PDFConfigUpdate,
    ctx: CompanyContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    return await company_service.edit_pdf_config(db, ctx.company, body.model_dump(exclude_unset=True))


@router.post(
    "/logo",
    response_model=PDFConfigResponse,
    responses=ERRORS_COMMON,
    summary="Upload the company logo (PNG, JPEG or SVG)",
)
async def upload_logo(
    file: UploadFile = File(..., description="Logo image"),
    ctx: CompanyContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    content = await file.read()
    return await company_service.upload_logo(db, ctx.company, content)


# ── Email Templates ───────────────────────────────────────────────────────

@router.get(
    "/email-templates",
    response_model=List[EmailTemplateResponse],
    responses=ERRORS_COMMON,
    summary="Mail templates with sample variables",
)
async def get_email_templates(
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await company_service.get_email_templates(db, ctx.company)


@router.put("/email-templates", response_model=MailTemplateResponse, responses=ERRORS_COMMON, summary="Edit a mail template")
async def update_email_template(
    body: EmailTemplateUpdate,
    ctx: CompanyContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    return await company_service.update_email_template(
        db, ctx.company, body.template_id, body.subject, body.body
    )


# ── My Companies ──────────────────────────────────────────────────────────

@router.get(
    "/my-companies",
    response_model=List[UserCompanyResponse],
    responses=ERRORS_AUTH,
    summary="Companies the caller belongs to, default first",
)
async def get_user_companies(
    tenant: TenantContext = Depends(resolve_tenant),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return await company_service.get_user_companies(db, user)


@router.post(
    "/switch",
    response_model=SwitchCompanyResponse,
    responses=ERRORS_AUTH,
    summary="Make a company the caller's default",
)
async def switch_company(
    body: SwitchCompanyRequest,
    tenant: TenantContext = Depends(resolve_tenant),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await company_service.switch_company(db, user, body.company_id)


# ── Members ───────────────────────────────────────────────────────────────

@router.get(
    "/members",
    response_model=List[MemberResponse],
    responses=ERRORS_COMMON,
    summary="Members of the current company",
)
async def get_company_members(
    tenant: TenantContext = Depends(require_permission(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db_session),
):
    return await membership_service.get_company_members(db, _tenant_company_id(tenant))


@router.delete(
    "/members/{member_id}",
    response_model=SuccessResponse,
    responses=ERRORS_COMMON,
    summary="Remove a member",
)
async def remove_member(
    member_id: str,
    tenant: TenantContext = Depends(require_permission(UserRole.ADMIN)),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse:
    await membership_service.remove_member(db, _tenant_company_id(tenant), member_id, user)
    return SuccessResponse(success=True, message="Member removed")


@router.patch(
    "/members/{member_id}/role",
    response_model=MemberResponse,
    responses=ERRORS_COMMON,
    summary="Change a member's role",
)
async def update_member_role(
    member_id: str,
    body: MemberRoleUpdate,
    tenant: TenantContext = Depends(require_permission(UserRole.ADMIN)),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    member = await membership_service.update_member_role(
        db, _tenant_company_id(tenant), member_id, body.role, user
    )
    return {
        "id": member.user.id,
        "email": member.user.email,
        "firstname": member.user.firstname,
        "lastname": member.user.lastname,
        "role": member.role,
        "is_default": member.is_default,
        "joined_at": member.joined_at,
    }
