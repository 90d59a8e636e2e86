"""
Invoicerr Backend — Membership & Invitation Service
=====================================================

What:  Who belongs to which company, with which role, and how new people
       get in (invitation codes).
Why:   Membership is the input of every tenant and role guard; mistakes
       here are cross-tenant data leaks, so every rule lives in one place.
How:   UserCompany rows hold (user, company, role, is_default). Invitation
       codes are single-use; a company-bound code adds a membership when
       redeemed, an instance-level code only permits sign-up.

Role rules:
    - Only OWNER/ADMIN members (or a system admin) manage members and
      invitations
    - Nobody assigns or invites a role above their own level
    - A company always keeps at least one OWNER
"""

import logging
import secrets
import string
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.models.company import InvitationCode, UserCompany
from app.models.enums import ROLE_HIERARCHY, UserRole
from app.models.user import User
from app.utils.dates import ensure_aware, utcnow
from app.utils.ids import as_uuid

logger = logging.getLogger(__name__)

INVITATION_CODE_ALPHABET = string.ascii_uppercase + string.digits
INVITATION_CODE_LENGTH = 16

MANAGER_ROLES = (UserRole.OWNER, UserRole.ADMIN)


def generate_invitation_code() -> str:
    return "".join(secrets.choice(INVITATION_CODE_ALPHABET) for _ in range(INVITATION_CODE_LENGTH))


def invitation_problem(invitation: Optional[InvitationCode], now: Optional[datetime] = None) -> Optional[str]:
    """Why an invitation cannot be redeemed, or None when it can."""
    if invitation is None:
        return "Invalid invitation code"
    if invitation.used_at is not None:
        return "This invitation code has already been used"
    expires_at = ensure_aware(invitation.expires_at)
    if expires_at is not None and expires_at < (now or utcnow()):
        return "This invitation code has expired"
    return None


class MembershipService:

    # ── Lookups ───────────────────────────────────────────────────────────

    async def get_membership(
        self,
        db: AsyncSession,
        user_id: Any,
        company_id: Any,
    ) -> Optional[UserCompany]:
        result = await db.execute(
            select(UserCompany).where(
                UserCompany.user_id == as_uuid(user_id),
                UserCompany.company_id == as_uuid(company_id),
            )
        )
        return result.scalar_one_or_none()

    async def count_memberships(self, db: AsyncSession, user_id: Any) -> int:
        result = await db.execute(
            select(func.count()).select_from(UserCompany).where(UserCompany.user_id == as_uuid(user_id))
        )
        return result.scalar() or 0

    async def get_first_user(self, db: AsyncSession) -> Optional[User]:
        result = await db.execute(select(User).order_by(User.created_at.asc()).limit(1))
        return result.scalar_one_or_none()

    async def is_super_admin(self, db: AsyncSession, user: User) -> bool:
        """Flagged system admins, and the oldest account of the instance."""
        if user.is_system_admin:
            return True
        first = await self.get_first_user(db)
        return first is not None and first.id == user.id

    async def add_membership(
        self,
        db: AsyncSession,
        user_id: Any,
        company_id: Any,
        role: UserRole,
    ) -> UserCompany:
        """Create a membership; the user's first one becomes their default."""
        is_first = await self.count_memberships(db, user_id) == 0
        membership = UserCompany(
            user_id=as_uuid(user_id),
            company_id=as_uuid(company_id),
            role=role,
            is_default=is_first,
        )
        db.add(membership)
        await db.flush()
        logger.info("User %s joined company %s as %s", user_id, company_id, role.value)
        return membership

    async def _acting_level(self, db: AsyncSession, company_id: Any, acting_user: User) -> int:
        if acting_user.is_system_admin:
            return ROLE_HIERARCHY[UserRole.SYSTEM_ADMIN]
        membership = await self.get_membership(db, acting_user.id, company_id)
        if membership is None:
            return 0
        return ROLE_HIERARCHY.get(membership.role, 0)

    async def count_owners(self, db: AsyncSession, company_id: Any) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(UserCompany)
            .where(
                UserCompany.company_id == as_uuid(company_id),
                UserCompany.role == UserRole.OWNER,
            )
        )
        return result.scalar() or 0

    # ── Members ───────────────────────────────────────────────────────────

    async def get_company_members(self, db: AsyncSession, company_id: Any) -> List[Dict[str, Any]]:
        result = await db.execute(
            select(UserCompany)
            .where(UserCompany.company_id == as_uuid(company_id))
            .order_by(UserCompany.joined_at.asc())
        )
        return [
            {
                "id": m.user.id,
                "email": m.user.email,
                "firstname": m.user.firstname,
                "lastname": m.user.lastname,
                "role": m.role,
                "is_default": m.is_default,
                "joined_at": m.joined_at,
            }
            for m in result.scalars().all()
        ]

    async def remove_member(
        self,
        db: AsyncSession,
        company_id: Any,
        member_id: Any,
        acting_user: User,
    ) -> None:
        """
        Remove a member from a company.

        Raises:
            ValidationError: removing yourself, or the last owner
            PermissionDeniedError: acting user is not OWNER/ADMIN
            NotFoundError: the user is not a member
        """
        if str(member_id) == str(acting_user.id):
            raise ValidationError("You cannot remove yourself from the company")

        if await self._acting_level(db, company_id, acting_user) < ROLE_HIERARCHY[UserRole.ADMIN]:
            raise PermissionDeniedError("Only company owners and admins can remove members")

        member = await self.get_membership(db, member_id, company_id)
        if member is None:
            raise NotFoundError(resource="Member", message="Member not found in this company")

        if member.role == UserRole.OWNER and await self.count_owners(db, company_id) <= 1:
            raise ValidationError("Cannot remove the last owner of the company")

        await db.delete(member)
        await db.flush()
        logger.info("Member %s removed from company %s by %s", member_id, company_id, acting_user.id)

    async def update_member_role(
        self,
        db: AsyncSession,
        company_id: Any,
        member_id: Any,
        role: UserRole,
        acting_user: User,
    ) -> UserCompany:
        role = UserRole(role)
        if role == UserRole.SYSTEM_ADMIN:
            raise ValidationError("SYSTEM_ADMIN cannot be assigned as a company role", field="role")

        acting_level = await self._acting_level(db, company_id, acting_user)
        if acting_level < ROLE_HIERARCHY[UserRole.ADMIN]:
            raise PermissionDeniedError("Only company owners and admins can update member roles")
        if ROLE_HIERARCHY[role] > acting_level:
            raise PermissionDeniedError("You cannot assign a role higher than your own")

        member = await self.get_membership(db, member_id, company_id)
        if member is None:
            raise NotFoundError(resource="Member", message="Member not found in this company")

        if (
            member.role == UserRole.OWNER
            and role != UserRole.OWNER
            and await self.count_owners(db, company_id) <= 1
        ):
            raise ValidationError("Cannot change the role of the last owner of the company")

        member.role = role
        await db.flush()
        logger.info("Member %s of company %s is now %s", member_id, company_id, role.value)
        return member

    # ── Invitations ───────────────────────────────────────────────────────

    async def get_invitation(self, db: AsyncSession, code: str) -> Optional[InvitationCode]:
        result = await db.execute(select(InvitationCode).where(InvitationCode.code == code))
        return result.scalar_one_or_none()

    async def create_invitation(
        self,
        db: AsyncSession,
        user: User,
        company_id: Optional[Any] = None,
        role: UserRole = UserRole.ACCOUNTANT,
        expires_in_days: Optional[int] = None,
        email: Optional[str] = None,
    ) -> InvitationCode:
        role = UserRole(role or UserRole.ACCOUNTANT)

        if company_id is not None:
            membership = await self.get_membership(db, user.id, company_id)
            if membership is None and not user.is_system_admin:
                raise ValidationError("You do not have access to this company")

            if not user.is_system_admin and membership.role not in MANAGER_ROLES:
                raise ValidationError("You do not have permission to invite users to this company")

            creator_level = (
                ROLE_HIERARCHY[UserRole.SYSTEM_ADMIN]
                if user.is_system_admin
                else ROLE_HIERARCHY[membership.role]
            )
            if ROLE_HIERARCHY[role] > creator_level:
                raise ValidationError("You cannot invite someone with a higher role than your own")

        invitation = InvitationCode(
            code=generate_invitation_code(),
            company_id=as_uuid(company_id) if company_id is not None else None,
            role=role,
            email=email,
            created_by_id=user.id,
            expires_at=utcnow() + timedelta(days=expires_in_days) if expires_in_days else None,
        )
        db.add(invitation)
        await db.flush()
        logger.info(
            "Invitation %s created by %s (company=%s, role=%s)",
            invitation.id, user.id, company_id, role.value,
        )
        return invitation

    async def use_invitation(self, db: AsyncSession, code: str, user: User) -> InvitationCode:
        """
        Redeem a code during sign-up.

        Raises:
            NotFoundError: unknown code
            ValidationError: used or expired
        """
        invitation = await self.get_invitation(db, code)
        if invitation is None:
            raise NotFoundError(resource="Invitation", message="Invitation code not found")
        problem = invitation_problem(invitation)
        if problem:
            raise ValidationError(problem, field="invitation_code")

        invitation.used_at = utcnow()
        invitation.used_by_id = user.id

        if invitation.company_id is not None:
            existing = await self.get_membership(db, user.id, invitation.company_id)
            if existing is None:
                await self.add_membership(db, user.id, invitation.company_id, invitation.role)

        await db.flush()
        logger.info("Invitation %s used by %s", invitation.id, user.id)
        return invitation

    async def accept_invitation(self, db: AsyncSession, code: str, user: User) -> Dict[str, Any]:
        """Signed-in variant of use_invitation; the code must be company-bound."""
        invitation = await self.get_invitation(db, code)
        if invitation is None:
            raise NotFoundError(resource="Invitation", message="Invitation not found")
        problem = invitation_problem(invitation)
        if problem:
            raise ValidationError(problem)
        if invitation.company_id is None:
            raise ValidationError("This invitation is not for a specific company")

        if await self.get_membership(db, user.id, invitation.company_id) is not None:
            raise ValidationError("You are already a member of this company")

        invitation.used_at = utcnow()
        invitation.used_by_id = user.id
        await self.add_membership(db, user.id, invitation.company_id, invitation.role)

        return {
            "success": True,
            "company_id": invitation.company_id,
            "company_name": invitation.company.name if invitation.company else None,
            "role": invitation.role,
        }

    async def list_invitations(self, db: AsyncSession, user: User) -> List[InvitationCode]:
        result = await db.execute(
            select(InvitationCode)
            .where(InvitationCode.created_by_id == user.id)
            .order_by(InvitationCode.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_company_invitations(
        self,
        db: AsyncSession,
        company_id: Any,
        user: User,
    ) -> List[InvitationCode]:
        if await self._acting_level(db, company_id, user) < ROLE_HIERARCHY[UserRole.ADMIN]:
            raise ValidationError("You do not have permission to view company invitations")

        result = await db.execute(
            select(InvitationCode)
            .where(InvitationCode.company_id == as_uuid(company_id))
            .order_by(InvitationCode.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_invitation_by_code(self, db: AsyncSession, code: str) -> InvitationCode:
        """Public lookup used by the join page."""
        invitation = await self.get_invitation(db, code)
        if invitation is None:
            raise NotFoundError(resource="Invitation", message="Invitation not found")
        problem = invitation_problem(invitation)
        if problem:
            raise ValidationError(problem)
        return invitation

    async def delete_invitation(self, db: AsyncSession, invitation_id: Any, user: User) -> Dict[str, bool]:
        """Creators delete their unused codes; company OWNER/ADMIN delete any unused one."""
        invitation = await db.get(InvitationCode, as_uuid(invitation_id))
        if invitation is None or invitation.used_at is not None:
            raise NotFoundError(resource="Invitation", message="Invitation not found or already used")

        allowed = invitation.created_by_id == user.id
        if not allowed and invitation.company_id is not None:
            level = await self._acting_level(db, invitation.company_id, user)
            allowed = level >= ROLE_HIERARCHY[UserRole.ADMIN]
        if not allowed:
            raise NotFoundError(resource="Invitation", message="Invitation not found or already used")

        await db.delete(invitation)
        await db.flush()
        logger.info("Invitation %s deleted by %s", invitation_id, user.id)
        return {"success": True}


# ── Singleton Instance ────────────────────────────────────────────────────
membership_service = MembershipService()
