"""
Invoicerr Backend — Role Guards
=================================

What:  Authorization on top of the company context: per-company roles and
       the instance-wide super administrator.
How:   Roles are ordered (SYSTEM_ADMIN 4 > OWNER 3 > ADMIN 2 > ACCOUNTANT 1).
       require_roles(ADMIN, OWNER) lets through anyone at or above the
       LOWEST listed level, so listing ADMIN already admits OWNER.

Usage:
    @router.delete("/clients/{client_id}", dependencies=[Depends(require_roles(UserRole.ADMIN))])
"""

from typing import Callable, Optional, Sequence

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.exceptions import PermissionDeniedError
from app.guards.auth import get_current_user
from app.guards.company import CompanyContext, require_company
from app.models.enums import ROLE_HIERARCHY, UserRole
from app.models.user import User
from app.services.membership_service import membership_service


def check_roles(
    user: User,
    context: Optional[CompanyContext],
    required: Sequence[UserRole],
) -> None:
    """Raise PermissionDeniedError unless the caller's role satisfies `required`."""
    if not required:
        return
    if user.is_system_admin:
        return
    if context is None:
        raise PermissionDeniedError(
            "Company context is required. Apply CompanyGuard before RoleGuard."
        )

    user_level = ROLE_HIERARCHY.get(context.role, 0)
    min_required = min(ROLE_HIERARCHY[UserRole(r)] for r in required)
    if user_level < min_required:
        raise PermissionDeniedError(
            f"Insufficient permissions. Required roles: "
            f"{', '.join(UserRole(r).value for r in required)}. "
            f"Your role: {context.role.value}"
        )


def require_roles(*roles: UserRole) -> Callable:
    """Dependency factory: company context plus a minimum role."""

    async def dependency(
        user: User = Depends(get_current_user),
        context: CompanyContext = Depends(require_company),
    ) -> CompanyContext:
        check_roles(user, context, roles)
        return context

    return dependency


async def require_super_admin(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    if not await membership_service.is_super_admin(db, user):
        raise PermissionDeniedError("This action requires super administrator privileges")
    request.state.is_super_admin = True
    return user
