"""
Invoicerr Backend — Membership & Invitation Service Unit Tests
===============================================================

What we test:
    ✅ invitation_problem(): unknown, used, expired, valid
    ✅ Invitation creation respects the creator's role
    ✅ Redeeming a company-bound code adds a membership
    ✅ Member removal / role changes keep at least one OWNER
"""

from datetime import timedelta
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from app.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.models.company import InvitationCode, UserCompany
from app.models.enums import UserRole
from app.services.membership_service import (
    INVITATION_CODE_LENGTH,
    MembershipService,
    generate_invitation_code,
    invitation_problem,
)
from app.utils.dates import utcnow

from factories import make_user, result_with


def _invitation(company_id=None, **overrides):
    fields = dict(
        id=uuid4(),
        code="ABCDEFGH12345678",
        company_id=company_id,
        role=UserRole.ACCOUNTANT,
        created_by_id=uuid4(),
        used_at=None,
        expires_at=None,
    )
    fields.update(overrides)
    return InvitationCode(**fields)


def _member(user_id, company_id, role):
    return UserCompany(id=uuid4(), user_id=user_id, company_id=company_id, role=role, is_default=False)


class TestInvitationProblem:

    def test_unknown(self):
        assert invitation_problem(None) == "Invalid invitation code"

    def test_used(self):
        assert "already been used" in invitation_problem(_invitation(used_at=utcnow()))

    def test_expired(self):
        expired = _invitation(expires_at=utcnow() - timedelta(days=1))
        assert "expired" in invitation_problem(expired)

    def test_valid(self):
        assert invitation_problem(_invitation(expires_at=utcnow() + timedelta(days=1))) is None


def test_generated_codes():
    code = generate_invitation_code()
    assert len(code) == INVITATION_CODE_LENGTH
    assert code.isalnum() and code.upper() == code


class TestCreateInvitation:

    def setup_method(self):
        self.service = MembershipService()

    @pytest.mark.asyncio
    async def test_instance_invitation(self, mock_db_session, user):
        invitation = await self.service.create_invitation(mock_db_session, user, expires_in_days=7)

        assert invitation.company_id is None
        assert invitation.expires_at > utcnow()
        mock_db_session.add.assert_called_once_with(invitation)

    @pytest.mark.asyncio
    async def test_accountant_cannot_invite(self, mock_db_session, user, company):
        mock_db_session.execute.return_value = result_with(
            one=_member(user.id, company.id, UserRole.ACCOUNTANT)
        )
        with pytest.raises(ValidationError, match="permission to invite"):
            await self.service.create_invitation(mock_db_session, user, company.id)

    @pytest.mark.asyncio
    async def test_admin_cannot_invite_owner(self, mock_db_session, user, company):
        mock_db_session.execute.return_value = result_with(
            one=_member(user.id, company.id, UserRole.ADMIN)
        )
        with pytest.raises(ValidationError, match="higher role"):
            await self.service.create_invitation(
                mock_db_session, user, company.id, role=UserRole.OWNER
            )

    @pytest.mark.asyncio
    async def test_non_member_cannot_invite(self, mock_db_session, user, company):
        mock_db_session.execute.return_value = result_with(one=None)
        with pytest.raises(ValidationError, match="do not have access"):
            await self.service.create_invitation(mock_db_session, user, company.id)

    @pytest.mark.asyncio
    async def test_owner_invites_admin(self, mock_db_session, user, company):
        mock_db_session.execute.return_value = result_with(
            one=_member(user.id, company.id, UserRole.OWNER)
        )
        invitation = await self.service.create_invitation(
            mock_db_session, user, company.id, role=UserRole.ADMIN, email="new@acme.test"
        )
        assert invitation.company_id == company.id
        assert invitation.role == UserRole.ADMIN


class TestUseInvitation:

    def setup_method(self):
        self.service = MembershipService()

    @pytest.mark.asyncio
    async def test_unknown_code(self, mock_db_session, user):
        mock_db_session.execute.return_value = result_with(one=None)
        with pytest.raises(NotFoundError):
            await self.service.use_invitation(mock_db_session, "NOPE", user)

    @pytest.mark.asyncio
    async def test_company_code_adds_membership(self, mock_db_session, user, company):
        invitation = _invitation(company.id, role=UserRole.ADMIN)
        mock_db_session.execute = AsyncMock(
            side_effect=[
                result_with(one=invitation),  # get_invitation
                result_with(one=None),  # existing membership
                result_with(scalar=0),  # count_memberships
            ]
        )
        await self.service.use_invitation(mock_db_session, invitation.code, user)

        assert invitation.used_by_id == user.id
        membership = mock_db_session.add.call_args.args[0]
        assert membership.role == UserRole.ADMIN
        assert membership.is_default is True

    @pytest.mark.asyncio
    async def test_used_code_rejected(self, mock_db_session, user):
        mock_db_session.execute.return_value = result_with(one=_invitation(used_at=utcnow()))
        with pytest.raises(ValidationError):
            await self.service.use_invitation(mock_db_session, "USED", user)

    @pytest.mark.asyncio
    async def test_accept_requires_company_code(self, mock_db_session, user):
        mock_db_session.execute.return_value = result_with(one=_invitation(None))
        with pytest.raises(ValidationError, match="not for a specific company"):
            await self.service.accept_invitation(mock_db_session, "CODE", user)


class TestMembers:

    def setup_method(self):
        self.service = MembershipService()

    @pytest.mark.asyncio
    async def test_cannot_remove_yourself(self, mock_db_session, user, company):
        with pytest.raises(ValidationError, match="remove yourself"):
            await self.service.remove_member(mock_db_session, company.id, user.id, user)

    @pytest.mark.asyncio
    async def test_accountant_cannot_remove(self, mock_db_session, user, company):
        mock_db_session.execute.return_value = result_with(
            one=_member(user.id, company.id, UserRole.ACCOUNTANT)
        )
        with pytest.raises(PermissionDeniedError):
            await self.service.remove_member(mock_db_session, company.id, uuid4(), user)

    @pytest.mark.asyncio
    async def test_last_owner_cannot_be_removed(self, mock_db_session, user, company):
        other = uuid4()
        mock_db_session.execute = AsyncMock(
            side_effect=[
                result_with(one=_member(user.id, company.id, UserRole.OWNER)),
                result_with(one=_member(other, company.id, UserRole.OWNER)),
                result_with(scalar=1),
            ]
        )
        with pytest.raises(ValidationError, match="last owner"):
            await self.service.remove_member(mock_db_session, company.id, other, user)
        mock_db_session.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_admin_removes_accountant(self, mock_db_session, user, company):
        other = uuid4()
        target = _member(other, company.id, UserRole.ACCOUNTANT)
        mock_db_session.execute = AsyncMock(
            side_effect=[
                result_with(one=_member(user.id, company.id, UserRole.ADMIN)),
                result_with(one=target),
            ]
        )
        await self.service.remove_member(mock_db_session, company.id, other, user)
        mock_db_session.delete.assert_awaited_once_with(target)

    @pytest.mark.asyncio
    async def test_system_admin_role_not_assignable(self, mock_db_session, user, company):
        with pytest.raises(ValidationError, match="SYSTEM_ADMIN"):
            await self.service.update_member_role(
                mock_db_session, company.id, uuid4(), UserRole.SYSTEM_ADMIN, user
            )

    @pytest.mark.asyncio
    async def test_admin_cannot_promote_to_owner(self, mock_db_session, user, company):
        mock_db_session.execute.return_value = result_with(
            one=_member(user.id, company.id, UserRole.ADMIN)
        )
        with pytest.raises(PermissionDeniedError, match="higher than your own"):
            await self.service.update_member_role(
                mock_db_session, company.id, uuid4(), UserRole.OWNER, user
            )

    @pytest.mark.asyncio
    async def test_owner_demotes_other_owner(self, mock_db_session, user, company):
        other = uuid4()
        target = _member(other, company.id, UserRole.OWNER)
        mock_db_session.execute = AsyncMock(
            side_effect=[
                result_with(one=_member(user.id, company.id, UserRole.OWNER)),
                result_with(one=target),
                result_with(scalar=2),
            ]
        )
        updated = await self.service.update_member_role(
            mock_db_session, company.id, other, UserRole.ADMIN, user
        )
        assert updated.role == UserRole.ADMIN


class TestSuperAdmin:

    def setup_method(self):
        self.service = MembershipService()

    @pytest.mark.asyncio
    async def test_flagged_user(self, mock_db_session, admin_user):
        assert await self.service.is_super_admin(mock_db_session, admin_user)
        mock_db_session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_oldest_user(self, mock_db_session, user):
        mock_db_session.execute.return_value = result_with(one=user)
        assert await self.service.is_super_admin(mock_db_session, user)

    @pytest.mark.asyncio
    async def test_regular_user(self, mock_db_session, user):
        mock_db_session.execute.return_value = result_with(one=make_user())
        assert not await self.service.is_super_admin(mock_db_session, user)
