"""
Invoicerr Backend — Company Guard
===================================

What:  Resolves which company (tenant) a request acts on and checks the
       caller belongs to it.
Why:   Services receive an already-authorized Company and never trust a
       company id coming from the client.
How:   company id sources, first match wins:
         1. X-Company-Id header
         2. `company_id` path parameter
         3. `companyId` / `company_id` query parameter
         4. the caller's default membership
       The result is a CompanyContext stored on request.state and returned
       to the route.

System admins get a virtual SYSTEM_ADMIN membership on any company.
Routes that must work without a company (listing my companies, creating
the first one) simply do not depend on require_company.
"""

import logging
import uuid
from typing import Any, NamedTuple, Optional

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.exceptions import PermissionDeniedError, ValidationError
from app.guards.auth import get_current_user
from app.models.company import Company, UserCompany
from app.models.enums import UserRole
from app.models.user import User
from app.services.membership_service import membership_service

logger = logging.getLogger(__name__)

COMPANY_ID_REQUIRED = (
    "Company ID is required. Provide it via X-Company-Id header, "
    "route parameter, or query parameter."
)


class CompanyContext(NamedTuple):
    company_id: uuid.UUID
    company: Company
    user_company: Optional[UserCompany]
    role: UserRole


def requested_company_id(request: Request) -> Optional[str]:
    return (
        request.headers.get("x-company-id")
        or request.path_params.get("company_id")
        or request.query_params.get("companyId")
        or request.query_params.get("company_id")
        or None
    )


async def _default_membership(db: AsyncSession, user: User) -> Optional[UserCompany]:
    result = await db.execute(
        select(UserCompany).where(
            UserCompany.user_id == user.id,
            UserCompany.is_default.is_(True),
        )
    )
    return result.scalars().first()


def _parse_company_id(raw: Any) -> uuid.UUID:
    if isinstance(raw, uuid.UUID):
        return raw
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        raise ValidationError("Company not found", field="company_id")


async def resolve_company_context(
    db: AsyncSession,
    user: User,
    company_id: Optional[Any],
) -> CompanyContext:
    """
    Raises:
        ValidationError: no company id and no default, or unknown company (400)
        PermissionDeniedError: caller is not a member (403)
    """
    if not company_id:
        default = await _default_membership(db, user)
        if default is None:
            raise ValidationError(COMPANY_ID_REQUIRED, field="company_id")
        company_id = default.company_id

    company_uuid = _parse_company_id(company_id)
    company = await db.get(Company, company_uuid)
    if company is None:
        raise ValidationError("Company not found", field="company_id")

    if user.is_system_admin:
        membership = await membership_service.get_membership(db, user.id, company_uuid)
        return CompanyContext(company_uuid, company, membership, UserRole.SYSTEM_ADMIN)

    membership = await membership_service.get_membership(db, user.id, company_uuid)
    if membership is None:
        logger.warning("User %s denied access to company %s", user.id, company_uuid)
        raise PermissionDeniedError("You do not have access to this company")

    return CompanyContext(company_uuid, company, membership, membership.role)


async def require_company(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> CompanyContext:
    context = await resolve_company_context(db, user, requested_company_id(request))
    request.state.company_context = context
    return context
