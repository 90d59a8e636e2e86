"""
Invoicerr Backend — Admin Service
===================================

What:  Instance-wide administration for system administrators: statistics,
       user and company listings, system-admin grants and membership
       management across companies.
Why:   Support and self-hosting operators need to fix memberships without
       being members of every company.
How:   Routes guard access with require_super_admin; this service only
       enforces the invariants that hold regardless of who acts:
         - at least one system admin remains, and nobody revokes themself
         - every company keeps at least one OWNER
"""

import logging
from typing import Any, Dict, List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.client import Client
from app.models.company import Company, UserCompany
from app.models.enums import UserRole
from app.models.invoice import Invoice
from app.models.quote import Quote
from app.models.user import User
from app.services.membership_service import membership_service
from app.utils.ids import as_uuid

logger = logging.getLogger(__name__)


class AdminService:

    async def _count(self, db: AsyncSession, model: type, *where: Any) -> int:
        result = await db.execute(select(func.count()).select_from(model).where(*where))
        return result.scalar() or 0

    async def _get_user(self, db: AsyncSession, user_id: Any) -> User:
        user = await db.get(User, as_uuid(user_id))
        if user is None:
            raise NotFoundError(resource="User", resource_id=str(user_id))
        return user

    async def _get_company(self, db: AsyncSession, company_id: Any) -> Company:
        company = await db.get(Company, as_uuid(company_id))
        if company is None:
            raise NotFoundError(resource="Company", resource_id=str(company_id))
        return company

    async def _require_membership(self, db: AsyncSession, user_id: Any, company_id: Any) -> UserCompany:
        membership = await membership_service.get_membership(db, user_id, company_id)
        if membership is None:
            raise ValidationError("User is not a member of this company")
        return membership

    # ── Overview ──────────────────────────────────────────────────────────

    async def system_stats(self, db: AsyncSession) -> Dict[str, int]:
        return {
            "total_users": await self._count(db, User),
            "total_companies": await self._count(db, Company),
            "total_invoices": await self._count(db, Invoice, Invoice.is_active.is_(True)),
            "total_quotes": await self._count(db, Quote, Quote.is_active.is_(True)),
            "total_clients": await self._count(db, Client, Client.is_active.is_(True)),
            "system_admin_count": await self._count(db, User, User.is_system_admin.is_(True)),
        }

    async def list_users(self, db: AsyncSession) -> List[Dict[str, Any]]:
        users = (await db.execute(select(User).order_by(User.created_at.desc()))).scalars().all()
        memberships = (await db.execute(select(UserCompany))).scalars().all()

        by_user: Dict[Any, List[Dict[str, Any]]] = {}
        for m in memberships:
            by_user.setdefault(m.user_id, []).append(
                {
                    "company_id": m.company_id,
                    "company_name": m.company.name,
                    "role": m.role,
                    "joined_at": m.joined_at,
                    "is_default": m.is_default,
                }
            )
        return [
            {
                "id": user.id,
                "email": user.email,
                "firstname": user.firstname,
                "lastname": user.lastname,
                "is_system_admin": user.is_system_admin,
                "created_at": user.created_at,
                "companies": by_user.get(user.id, []),
            }
            for user in users
        ]

    async def list_companies(self, db: AsyncSession) -> List[Dict[str, Any]]:
        companies = (await db.execute(select(Company).order_by(Company.created_at.desc()))).scalars().all()
        memberships = (await db.execute(select(UserCompany))).scalars().all()

        by_company: Dict[Any, List[Dict[str, Any]]] = {}
        for m in memberships:
            by_company.setdefault(m.company_id, []).append(
                {
                    "user_id": m.user_id,
                    "email": m.user.email,
                    "firstname": m.user.firstname,
                    "lastname": m.user.lastname,
                    "role": m.role,
                    "joined_at": m.joined_at,
                }
            )
        return [
            {
                "id": company.id,
                "name": company.name,
                "country": company.country,
                "currency": company.currency,
                "created_at": company.created_at,
                "users": by_company.get(company.id, []),
            }
            for company in companies
        ]

    # ── System Admins ─────────────────────────────────────────────────────

    async def grant_system_admin(self, db: AsyncSession, target_user_id: Any) -> Dict[str, Any]:
        user = await self._get_user(db, target_user_id)
        if user.is_system_admin:
            raise ValidationError("User is already a system administrator")

        user.is_system_admin = True
        await db.flush()
        logger.info("System admin granted to user %s", user.id)
        return {"success": True, "user_id": user.id, "is_system_admin": True}

    async def revoke_system_admin(self, db: AsyncSession, acting_user: User, target_user_id: Any) -> Dict[str, Any]:
        if str(acting_user.id) == str(target_user_id):
            raise ValidationError("You cannot revoke your own system administrator privileges")

        user = await self._get_user(db, target_user_id)
        if not user.is_system_admin:
            raise ValidationError("User is not a system administrator")
        if await self._count(db, User, User.is_system_admin.is_(True)) <= 1:
            raise ValidationError("Cannot revoke the last system administrator")

        user.is_system_admin = False
        await db.flush()
        logger.info("System admin revoked from user %s by %s", user.id, acting_user.id)
        return {"success": True, "user_id": user.id, "is_system_admin": False}

    # ── Memberships ───────────────────────────────────────────────────────

    async def add_user_to_company(
        self,
        db: AsyncSession,
        user_id: Any,
        company_id: Any,
        role: UserRole = UserRole.ACCOUNTANT,
    ) -> Dict[str, Any]:
        if UserRole(role) == UserRole.SYSTEM_ADMIN:
            raise ValidationError("SYSTEM_ADMIN cannot be assigned as a company role", field="role")
        user = await self._get_user(db, user_id)
        company = await self._get_company(db, company_id)
        if await membership_service.get_membership(db, user.id, company.id) is not None:
            raise ConflictError("User is already a member of this company")

        membership = await membership_service.add_membership(db, user.id, company.id, UserRole(role))
        return {
            "success": True,
            "user_id": user.id,
            "company_id": company.id,
            "company_name": company.name,
            "role": membership.role,
        }

    async def remove_user_from_company(self, db: AsyncSession, user_id: Any, company_id: Any) -> Dict[str, bool]:
        membership = await self._require_membership(db, user_id, company_id)
        if membership.role == UserRole.OWNER and await membership_service.count_owners(db, company_id) <= 1:
            raise ValidationError("Cannot remove the last owner from a company")

        was_default = membership.is_default
        await db.delete(membership)
        await db.flush()
        logger.info("User %s removed from company %s by admin", user_id, company_id)

        if was_default:
            result = await db.execute(
                select(UserCompany)
                .where(UserCompany.user_id == as_uuid(user_id))
                .order_by(UserCompany.joined_at.asc())
                .limit(1)
            )
            replacement = result.scalar_one_or_none()
            if replacement is not None:
                replacement.is_default = True
                await db.flush()
        return {"success": True}

    async def update_user_role(
        self,
        db: AsyncSession,
        user_id: Any,
        company_id: Any,
        role: UserRole,
    ) -> Dict[str, Any]:
        role = UserRole(role)
        if role == UserRole.SYSTEM_ADMIN:
            raise ValidationError("SYSTEM_ADMIN cannot be assigned as a company role", field="role")
        membership = await self._require_membership(db, user_id, company_id)
        if (
            membership.role == UserRole.OWNER
            and role != UserRole.OWNER
            and await membership_service.count_owners(db, company_id) <= 1
        ):
            raise ValidationError("Cannot demote the last owner of a company")

        membership.role = role
        await db.flush()
        logger.info("User %s is now %s in company %s", user_id, role.value, company_id)
        return {"success": True, "user_id": membership.user_id, "company_id": membership.company_id, "role": role}

    async def delete_company(self, db: AsyncSession, company_id: Any) -> Dict[str, Any]:
        company = await self._get_company(db, company_id)
        name = company.name
        await db.delete(company)
        await db.flush()
        logger.warning("Company %s (%s) deleted by system admin", company_id, name)
        return {"success": True, "deleted_company": name}


# ── Singleton Instance ────────────────────────────────────────────────────
admin_service = AdminService()
