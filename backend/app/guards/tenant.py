"""
Invoicerr Backend — Tenant Context (legacy company resolution)
================================================================

What:  The older, more forgiving way of picking a company for a request,
       kept for the company-switching endpoints and membership routes.
Why:   Unlike require_company it never fails for a user without a company:
       it auto-selects, auto-links or lets the request through for
       onboarding.
How:   The resolved TenantContext is stored in a ContextVar so services
       and query helpers (company_filter) can read it without threading it
       through every call. The token returned by set_tenant_context() is
       reset when the dependency finishes.

Resolution:
    super admin                       → company_id=None (sees everything)
    /api/company/{my-companies,info,switch}
                                      → requested id (or default), unchecked
    header / query / path / default   → must be a member, else 401
    nothing at all                    → first membership, else auto-link via
                                        ensure_user_has_company(), else
                                        onboarding with company_id=None
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Any, AsyncIterator, Callable, List, NamedTuple, Optional

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.exceptions import AuthenticationError, PermissionDeniedError
from app.guards.auth import get_current_user
from app.models.company import Company, InvitationCode, UserCompany
from app.models.enums import ROLE_HIERARCHY, UserRole
from app.models.user import User
from app.services.membership_service import membership_service
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)

SKIP_COMPANY_CHECK_PATHS = (
    "/api/company/my-companies",
    "/api/company/info",
    "/api/company/switch",
)


class TenantContext(NamedTuple):
    """Immutable tenant context for a request."""

    user_id: uuid.UUID
    company_id: Optional[uuid.UUID]
    is_super_admin: bool
    role: Optional[UserRole]


# None means no tenant context (system operations, background jobs)
_current_tenant: ContextVar[Optional[TenantContext]] = ContextVar(
    "current_tenant",
    default=None,
)


def get_current_tenant() -> Optional[TenantContext]:
    return _current_tenant.get()


def get_current_company_id() -> Optional[uuid.UUID]:
    ctx = _current_tenant.get()
    return ctx.company_id if ctx else None


def set_tenant_context(context: Optional[TenantContext]):
    return _current_tenant.set(context)


def reset_tenant_context(token) -> None:
    _current_tenant.reset(token)


def can_access_company(company_id: Any) -> bool:
    ctx = _current_tenant.get()
    if ctx is None:
        return False
    if ctx.is_super_admin:
        return True
    return ctx.company_id is not None and str(ctx.company_id) == str(company_id)


def company_filter(model: Any) -> List[Any]:
    """
    WHERE clauses restricting `model` to the current company.

    Empty for super admins and for requests without a company, so
    `select(Client).where(*company_filter(Client))` works in every case.
    """
    ctx = _current_tenant.get()
    if ctx is None or ctx.is_super_admin or ctx.company_id is None:
        return []
    return [model.company_id == ctx.company_id]


def _to_uuid(raw: Any) -> Optional[uuid.UUID]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, uuid.UUID):
        return raw
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        raise AuthenticationError("You do not have access to this company")


async def _memberships(db: AsyncSession, user: User) -> List[UserCompany]:
    result = await db.execute(
        select(UserCompany)
        .where(UserCompany.user_id == user.id)
        .order_by(UserCompany.is_default.desc(), UserCompany.joined_at.asc())
    )
    return list(result.scalars().all())


async def ensure_user_has_company(db: AsyncSession, user: User) -> Optional[UserCompany]:
    """
    Link a company-less user to a company.

    Prefers an unused company invitation addressed to the user's email,
    otherwise joins the oldest company. The instance's first user becomes
    OWNER, anyone else ADMIN. Returns None when no company exists yet.
    """
    first = await membership_service.get_first_user(db)
    role = UserRole.OWNER if first is not None and first.id == user.id else UserRole.ADMIN

    result = await db.execute(
        select(InvitationCode)
        .where(
            InvitationCode.email == user.email,
            InvitationCode.company_id.is_not(None),
            InvitationCode.used_at.is_(None),
        )
        .order_by(InvitationCode.created_at.asc())
        .limit(1)
    )
    invitation = result.scalar_one_or_none()
    if invitation is not None:
        invitation.used_at = utcnow()
        invitation.used_by_id = user.id
        logger.info("Linking user %s to company %s via invitation", user.id, invitation.company_id)
        return await membership_service.add_membership(db, user.id, invitation.company_id, role)

    result = await db.execute(select(Company).order_by(Company.created_at.asc()).limit(1))
    company = result.scalar_one_or_none()
    if company is None:
        return None

    logger.info("Linking user %s to existing company %s as %s", user.id, company.id, role.value)
    return await membership_service.add_membership(db, user.id, company.id, role)


async def build_tenant_context(
    db: AsyncSession,
    user: User,
    path: str,
    requested: Optional[Any],
) -> TenantContext:
    if await membership_service.is_super_admin(db, user):
        return TenantContext(user.id, None, True, UserRole.SYSTEM_ADMIN)

    company_id = _to_uuid(requested)
    memberships = await _memberships(db, user)

    if any(path.startswith(p) for p in SKIP_COMPANY_CHECK_PATHS):
        if company_id is None and memberships:
            company_id = memberships[0].company_id
        role = next((m.role for m in memberships if m.company_id == company_id), None)
        return TenantContext(user.id, company_id, False, role)

    if company_id is None:
        if not memberships:
            linked = await ensure_user_has_company(db, user)
            if linked is None:
                logger.info("User %s has no company; allowing onboarding", user.id)
                return TenantContext(user.id, None, False, None)
            memberships = [linked]
        company_id = memberships[0].company_id
        logger.debug("Auto-selected company %s for user %s", company_id, user.id)

    membership = next((m for m in memberships if m.company_id == company_id), None)
    if membership is None:
        logger.warning("User %s has no access to company %s", user.id, company_id)
        raise AuthenticationError("You do not have access to this company")

    return TenantContext(user.id, company_id, False, membership.role)


async def resolve_tenant(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> AsyncIterator[TenantContext]:
    requested = (
        request.headers.get("x-company-id")
        or request.query_params.get("companyId")
        or request.path_params.get("company_id")
    )
    context = await build_tenant_context(db, user, request.url.path, requested)
    request.state.tenant = context
    token = set_tenant_context(context)
    try:
        yield context
    finally:
        reset_tenant_context(token)


def require_permission(*roles: UserRole) -> Callable:
    """Legacy role check over the tenant context; same hierarchy as require_roles."""

    async def dependency(context: TenantContext = Depends(resolve_tenant)) -> TenantContext:
        if not roles or context.is_super_admin:
            return context
        user_level = ROLE_HIERARCHY.get(context.role, 0) if context.role else 0
        if user_level < min(ROLE_HIERARCHY[UserRole(r)] for r in roles):
            raise PermissionDeniedError(
                f"Insufficient permissions. Required roles: "
                f"{', '.join(UserRole(r).value for r in roles)}. "
                f"Your role: {context.role.value if context.role else 'none'}"
            )
        return context

    return dependency
