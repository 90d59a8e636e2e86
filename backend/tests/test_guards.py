"""
Invoicerr Backend — Guard Tests
=================================

What:  Tests for company resolution, role checks and the tenant context.
Why:   Guards are the tenant boundary; a bug here leaks one company's
       invoices to another.

What we test:
    ✅ Company id from header, default membership, or nothing (400)
    ✅ Non-members are refused (403), system admins get a virtual role
    ✅ Role hierarchy: listing ADMIN admits OWNER, refuses ACCOUNTANT
    ✅ Tenant context: super admin, onboarding, auto-select, no access
    ✅ company_filter() scoping and can_access_company()
    ✅ Company-less users: invitation first, then the oldest company
    ✅ require_permission() over the tenant context
"""

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from app.exceptions import AuthenticationError, PermissionDeniedError, ValidationError
from app.guards.auth import extract_token
from app.guards.company import CompanyContext, requested_company_id, resolve_company_context
from app.guards.roles import check_roles
from app.guards.tenant import (
    TenantContext,
    build_tenant_context,
    can_access_company,
    company_filter,
    ensure_user_has_company,
    require_permission,
    reset_tenant_context,
    set_tenant_context,
)
from app.models.client import Client
from app.models.company import InvitationCode, UserCompany
from app.models.enums import UserRole

from factories import make_company, make_user, result_with


def _request(headers=None, path_params=None, query=None, cookies=None):
    return SimpleNamespace(
        headers=headers or {},
        path_params=path_params or {},
        query_params=query or {},
        cookies=cookies or {},
    )


class TestExtractToken:

    def test_bearer_header(self):
        assert extract_token(_request(headers={"authorization": "Bearer abc"})) == "abc"

    def test_cookie_fallback(self):
        from app.config import settings

        request = _request(cookies={settings.session_cookie_name: "from-cookie"})
        assert extract_token(request) == "from-cookie"

    def test_other_scheme_ignored(self):
        assert extract_token(_request(headers={"authorization": "Basic xyz"})) is None


class TestRequestedCompanyId:

    def test_header_wins(self):
        request = _request(headers={"x-company-id": "h"}, query={"companyId": "q"})
        assert requested_company_id(request) == "h"

    def test_query_variants(self):
        assert requested_company_id(_request(query={"companyId": "a"})) == "a"
        assert requested_company_id(_request(query={"company_id": "b"})) == "b"

    def test_nothing(self):
        assert requested_company_id(_request()) is None


class TestResolveCompanyContext:

    @pytest.mark.asyncio
    async def test_member_gets_their_role(self, mock_db_session, user, company, membership):
        mock_db_session.get.return_value = company
        with patch("app.guards.company.membership_service") as mock_membership:
            mock_membership.get_membership = AsyncMock(return_value=membership)
            context = await resolve_company_context(mock_db_session, user, str(company.id))

        assert context.company is company
        assert context.role == UserRole.OWNER

    @pytest.mark.asyncio
    async def test_default_membership_used_without_id(self, mock_db_session, user, company, membership):
        mock_db_session.execute.return_value = result_with(one=membership)
        mock_db_session.get.return_value = company
        with patch("app.guards.company.membership_service") as mock_membership:
            mock_membership.get_membership = AsyncMock(return_value=membership)
            context = await resolve_company_context(mock_db_session, user, None)

        assert context.company_id == company.id

    @pytest.mark.asyncio
    async def test_no_company_at_all(self, mock_db_session, user):
        mock_db_session.execute.return_value = result_with(one=None)
        with pytest.raises(ValidationError, match="Company ID is required"):
            await resolve_company_context(mock_db_session, user, None)

    @pytest.mark.asyncio
    async def test_malformed_id(self, mock_db_session, user):
        with pytest.raises(ValidationError, match="Company not found"):
            await resolve_company_context(mock_db_session, user, "not-a-uuid")

    @pytest.mark.asyncio
    async def test_unknown_company(self, mock_db_session, user):
        mock_db_session.get.return_value = None
        with pytest.raises(ValidationError, match="Company not found"):
            await resolve_company_context(mock_db_session, user, str(uuid4()))

    @pytest.mark.asyncio
    async def test_non_member_refused(self, mock_db_session, user, company):
        mock_db_session.get.return_value = company
        with patch("app.guards.company.membership_service") as mock_membership:
            mock_membership.get_membership = AsyncMock(return_value=None)
            with pytest.raises(PermissionDeniedError):
                await resolve_company_context(mock_db_session, user, str(company.id))

    @pytest.mark.asyncio
    async def test_system_admin_gets_virtual_role(self, mock_db_session, admin_user, company):
        mock_db_session.get.return_value = company
        with patch("app.guards.company.membership_service") as mock_membership:
            mock_membership.get_membership = AsyncMock(return_value=None)
            context = await resolve_company_context(mock_db_session, admin_user, company.id)

        assert context.role == UserRole.SYSTEM_ADMIN
        assert context.user_company is None


class TestCheckRoles:

    def _context(self, role):
        company = make_company()
        return CompanyContext(company.id, company, None, role)

    def test_owner_passes_admin_requirement(self, user):
        check_roles(user, self._context(UserRole.OWNER), [UserRole.ADMIN])

    def test_lowest_listed_role_is_the_bar(self, user):
        check_roles(user, self._context(UserRole.ADMIN), [UserRole.OWNER, UserRole.ADMIN])

    def test_accountant_refused(self, user):
        with pytest.raises(PermissionDeniedError, match="Your role: ACCOUNTANT"):
            check_roles(user, self._context(UserRole.ACCOUNTANT), [UserRole.ADMIN])

    def test_system_admin_bypasses(self, admin_user):
        check_roles(admin_user, None, [UserRole.OWNER])

    def test_missing_context(self, user):
        with pytest.raises(PermissionDeniedError, match="Company context is required"):
            check_roles(user, None, [UserRole.ADMIN])

    def test_no_requirement(self, user):
        check_roles(user, None, [])


class TestBuildTenantContext:

    def _membership(self, user, company_id, role=UserRole.ADMIN):
        return UserCompany(
            id=uuid4(),
            user_id=user.id,
            company_id=company_id,
            role=role,
            is_default=True,
            joined_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        )

    @pytest.mark.asyncio
    async def test_super_admin(self, mock_db_session, user):
        with patch("app.guards.tenant.membership_service") as mock_membership:
            mock_membership.is_super_admin = AsyncMock(return_value=True)
            context = await build_tenant_context(mock_db_session, user, "/api/clients", None)

        assert context.is_super_admin is True
        assert context.company_id is None

    @pytest.mark.asyncio
    async def test_auto_selects_first_membership(self, mock_db_session, user):
        company_id = uuid4()
        mock_db_session.execute.return_value = result_with(many=[self._membership(user, company_id)])
        with patch("app.guards.tenant.membership_service") as mock_membership:
            mock_membership.is_super_admin = AsyncMock(return_value=False)
            context = await build_tenant_context(mock_db_session, user, "/api/clients", None)

        assert context.company_id == company_id
        assert context.role == UserRole.ADMIN

    @pytest.mark.asyncio
    async def test_requested_company_without_membership(self, mock_db_session, user):
        mock_db_session.execute.return_value = result_with(many=[self._membership(user, uuid4())])
        with patch("app.guards.tenant.membership_service") as mock_membership:
            mock_membership.is_super_admin = AsyncMock(return_value=False)
            with pytest.raises(AuthenticationError):
                await build_tenant_context(mock_db_session, user, "/api/clients", str(uuid4()))

    @pytest.mark.asyncio
    async def test_onboarding_without_companies(self, mock_db_session, user):
        mock_db_session.execute.return_value = result_with(many=[], one=None)
        with patch("app.guards.tenant.membership_service") as mock_membership:
            mock_membership.is_super_admin = AsyncMock(return_value=False)
            mock_membership.get_first_user = AsyncMock(return_value=make_user())
            context = await build_tenant_context(mock_db_session, user, "/api/clients", None)

        assert context.company_id is None
        assert context.role is None

    @pytest.mark.asyncio
    async def test_skip_paths_do_not_check_membership(self, mock_db_session, user):
        requested = uuid4()
        mock_db_session.execute.return_value = result_with(many=[])
        with patch("app.guards.tenant.membership_service") as mock_membership:
            mock_membership.is_super_admin = AsyncMock(return_value=False)
            context = await build_tenant_context(
                mock_db_session, user, "/api/company/switch", str(requested)
            )

        assert context.company_id == requested
        assert context.role is None


class TestCompanyFilter:

    def test_scoped_to_current_company(self):
        company_id = uuid4()
        token = set_tenant_context(TenantContext(uuid4(), company_id, False, UserRole.ADMIN))
        try:
            clauses = company_filter(Client)
        finally:
            reset_tenant_context(token)
        assert len(clauses) == 1

    def test_super_admin_unscoped(self):
        token = set_tenant_context(TenantContext(uuid4(), None, True, UserRole.SYSTEM_ADMIN))
        try:
            assert company_filter(Client) == []
        finally:
            reset_tenant_context(token)

    def test_no_context(self):
        assert company_filter(MagicMock()) == []

    def test_can_access_company(self):
        company_id = uuid4()
        token = set_tenant_context(TenantContext(uuid4(), company_id, False, UserRole.ACCOUNTANT))
        try:
            assert can_access_company(company_id) is True
            assert can_access_company(str(company_id)) is True
            assert can_access_company(uuid4()) is False
        finally:
            reset_tenant_context(token)
        assert can_access_company(company_id) is False


class TestEnsureUserHasCompany:

    def _invitation(self, user, company_id):
        return InvitationCode(
            id=uuid4(),
            code="JOIN-1234",
            email=user.email,
            company_id=company_id,
            created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        )

    @pytest.mark.asyncio
    async def test_invitation_wins(self, mock_db_session, user):
        invitation = self._invitation(user, uuid4())
        mock_db_session.execute.return_value = result_with(one=invitation)
        with patch("app.guards.tenant.membership_service") as mock_membership:
            mock_membership.get_first_user = AsyncMock(return_value=make_user())
            mock_membership.add_membership = AsyncMock(return_value="linked")
            linked = await ensure_user_has_company(mock_db_session, user)

        assert linked == "linked"
        assert invitation.used_by_id == user.id
        assert invitation.used_at is not None
        mock_membership.add_membership.assert_awaited_once_with(
            mock_db_session, user.id, invitation.company_id, UserRole.ADMIN
        )

    @pytest.mark.asyncio
    async def test_first_user_owns_oldest_company(self, mock_db_session, user, company):
        mock_db_session.execute = AsyncMock(side_effect=[result_with(one=None), result_with(one=company)])
        with patch("app.guards.tenant.membership_service") as mock_membership:
            mock_membership.get_first_user = AsyncMock(return_value=user)
            mock_membership.add_membership = AsyncMock()
            await ensure_user_has_company(mock_db_session, user)

        mock_membership.add_membership.assert_awaited_once_with(
            mock_db_session, user.id, company.id, UserRole.OWNER
        )

    @pytest.mark.asyncio
    async def test_later_users_join_as_admin(self, mock_db_session, user, company):
        mock_db_session.execute = AsyncMock(side_effect=[result_with(one=None), result_with(one=company)])
        with patch("app.guards.tenant.membership_service") as mock_membership:
            mock_membership.get_first_user = AsyncMock(return_value=make_user())
            mock_membership.add_membership = AsyncMock()
            await ensure_user_has_company(mock_db_session, user)

        assert mock_membership.add_membership.await_args.args[3] == UserRole.ADMIN

    @pytest.mark.asyncio
    async def test_no_company_yet(self, mock_db_session, user):
        mock_db_session.execute.return_value = result_with(one=None)
        with patch("app.guards.tenant.membership_service") as mock_membership:
            mock_membership.get_first_user = AsyncMock(return_value=user)
            mock_membership.add_membership = AsyncMock()
            assert await ensure_user_has_company(mock_db_session, user) is None

        mock_membership.add_membership.assert_not_awaited()


class TestRequirePermission:

    @pytest.mark.asyncio
    async def test_owner_passes_admin_requirement(self):
        context = TenantContext(uuid4(), uuid4(), False, UserRole.OWNER)
        assert await require_permission(UserRole.ADMIN)(context=context) is context

    @pytest.mark.asyncio
    async def test_accountant_refused(self):
        context = TenantContext(uuid4(), uuid4(), False, UserRole.ACCOUNTANT)
        with pytest.raises(PermissionDeniedError, match="Your role: ACCOUNTANT"):
            await require_permission(UserRole.ADMIN)(context=context)

    @pytest.mark.asyncio
    async def test_onboarding_user_has_no_role(self):
        context = TenantContext(uuid4(), None, False, None)
        with pytest.raises(PermissionDeniedError, match="Your role: none"):
            await require_permission(UserRole.ACCOUNTANT)(context=context)

    @pytest.mark.asyncio
    async def test_super_admin_and_no_requirement(self):
        admin = TenantContext(uuid4(), None, True, UserRole.SYSTEM_ADMIN)
        assert await require_permission(UserRole.OWNER)(context=admin) is admin
        nobody = TenantContext(uuid4(), None, False, None)
        assert await require_permission()(context=nobody) is nobody
