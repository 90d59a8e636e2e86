"""
Invoicerr Backend — Admin Service Tests
=========================================

What we test:
    ✅ System admin grants: no double grant, no self-revoke, never the last admin
    ✅ Company roles: SYSTEM_ADMIN is never a company role
    ✅ Every company keeps one OWNER (remove and demote)
    ✅ Removing a default membership promotes another company to default
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from app.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.company import UserCompany
from app.models.enums import UserRole
from app.services.admin_service import AdminService

from factories import make_user, result_with


def owner_membership(user, company, role=UserRole.OWNER, is_default=False):
    return UserCompany(
        id=uuid4(),
        user_id=user.id,
        company_id=company.id,
        role=role,
        is_default=is_default,
        joined_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
    )


class TestSystemAdmins:

    def setup_method(self):
        self.service = AdminService()

    @pytest.mark.asyncio
    async def test_grant(self, mock_db_session, user):
        mock_db_session.get.return_value = user
        outcome = await self.service.grant_system_admin(mock_db_session, user.id)
        assert user.is_system_admin is True
        assert outcome["is_system_admin"] is True

    @pytest.mark.asyncio
    async def test_grant_twice(self, mock_db_session, admin_user):
        mock_db_session.get.return_value = admin_user
        with pytest.raises(ValidationError, match="already"):
            await self.service.grant_system_admin(mock_db_session, admin_user.id)

    @pytest.mark.asyncio
    async def test_grant_unknown_user(self, mock_db_session):
        with pytest.raises(NotFoundError):
            await self.service.grant_system_admin(mock_db_session, uuid4())

    @pytest.mark.asyncio
    async def test_cannot_revoke_self(self, mock_db_session, admin_user):
        with pytest.raises(ValidationError, match="your own"):
            await self.service.revoke_system_admin(mock_db_session, admin_user, admin_user.id)

    @pytest.mark.asyncio
    async def test_last_admin_kept(self, mock_db_session, admin_user):
        target = make_user(is_system_admin=True)
        mock_db_session.get.return_value = target
        mock_db_session.execute.return_value = result_with(scalar=1)

        with pytest.raises(ValidationError, match="last system administrator"):
            await self.service.revoke_system_admin(mock_db_session, admin_user, target.id)
        assert target.is_system_admin is True

    @pytest.mark.asyncio
    async def test_revoke(self, mock_db_session, admin_user):
        target = make_user(is_system_admin=True)
        mock_db_session.get.return_value = target
        mock_db_session.execute.return_value = result_with(scalar=2)

        await self.service.revoke_system_admin(mock_db_session, admin_user, target.id)
        assert target.is_system_admin is False


class TestMemberships:

    def setup_method(self):
        self.service = AdminService()

    @pytest.mark.asyncio
    async def test_system_admin_is_not_a_company_role(self, mock_db_session, user, company):
        with pytest.raises(ValidationError, match="SYSTEM_ADMIN"):
            await self.service.add_user_to_company(mock_db_session, user.id, company.id, UserRole.SYSTEM_ADMIN)

    @pytest.mark.asyncio
    async def test_add_existing_member(self, mock_db_session, user, company, membership):
        mock_db_session.get = AsyncMock(side_effect=[user, company])
        with patch("app.services.admin_service.membership_service") as members:
            members.get_membership = AsyncMock(return_value=membership)
            with pytest.raises(ConflictError):
                await self.service.add_user_to_company(mock_db_session, user.id, company.id)

    @pytest.mark.asyncio
    async def test_remove_last_owner(self, mock_db_session, user, company):
        with patch("app.services.admin_service.membership_service") as members:
            members.get_membership = AsyncMock(return_value=owner_membership(user, company))
            members.count_owners = AsyncMock(return_value=1)
            with pytest.raises(ValidationError, match="last owner"):
                await self.service.remove_user_from_company(mock_db_session, user.id, company.id)
        mock_db_session.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_remove_promotes_next_default(self, mock_db_session, user, company):
        removed = owner_membership(user, company, role=UserRole.ADMIN, is_default=True)
        replacement = owner_membership(user, company, role=UserRole.ACCOUNTANT)
        mock_db_session.execute.return_value = result_with(one=replacement)
        with patch("app.services.admin_service.membership_service") as members:
            members.get_membership = AsyncMock(return_value=removed)
            await self.service.remove_user_from_company(mock_db_session, user.id, company.id)

        mock_db_session.delete.assert_awaited_once_with(removed)
        assert replacement.is_default is True

    @pytest.mark.asyncio
    async def test_demote_last_owner(self, mock_db_session, user, company):
        with patch("app.services.admin_service.membership_service") as members:
            members.get_membership = AsyncMock(return_value=owner_membership(user, company))
            members.count_owners = AsyncMock(return_value=1)
            with pytest.raises(ValidationError, match="last owner"):
                await self.service.update_user_role(mock_db_session, user.id, company.id, UserRole.ADMIN)

    @pytest.mark.asyncio
    async def test_update_role(self, mock_db_session, user, company):
        member = owner_membership(user, company, role=UserRole.ACCOUNTANT)
        with patch("app.services.admin_service.membership_service") as members:
            members.get_membership = AsyncMock(return_value=member)
            outcome = await self.service.update_user_role(
                mock_db_session, user.id, company.id, UserRole.ADMIN
            )

        assert member.role == UserRole.ADMIN
        assert outcome["role"] == UserRole.ADMIN

    @pytest.mark.asyncio
    async def test_not_a_member(self, mock_db_session, user, company):
        with patch("app.services.admin_service.membership_service") as members:
            members.get_membership = AsyncMock(return_value=None)
            with pytest.raises(ValidationError, match="not a member"):
                await self.service.update_user_role(mock_db_session, user.id, company.id, UserRole.ADMIN)
