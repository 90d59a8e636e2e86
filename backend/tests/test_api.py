"""
Invoicerr Backend — API Endpoint Tests
========================================

What:  Tests for the HTTP layer: routing, guards, error envelopes, headers.
How:   HTTPX AsyncClient against the ASGI app with the DB session mocked
       and the auth/company dependencies overridden (see conftest.py).

What we test:
    ✅ GET /health responds without authentication
    ✅ Missing session → 401 envelope with request_id
    ✅ Company-scoped list and 404 envelope
    ✅ Role guard: ACCOUNTANT cannot delete (403)
    ✅ X-Request-ID echoed / generated
    ✅ Sign-in returns the token and sets the session cookie
    ✅ Signature pages are public and never expose the code digest
    ✅ Danger zone: OWNER only, confirmation code required
"""

from datetime import timedelta
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from app.config import settings
from app.exceptions import AuthenticationError
from app.guards.auth import get_current_user
from app.guards.company import CompanyContext, require_company
from app.main import app
from app.models.enums import UserRole
from app.models.user import UserSession
from app.utils.dates import utcnow

from factories import make_quote, make_signature, result_with


def _use_company(company, membership, role=UserRole.OWNER):
    app.dependency_overrides[require_company] = lambda: CompanyContext(
        company.id, company, membership, role
    )


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] in ("healthy", "unhealthy")
        assert "uptime_seconds" in body


class TestErrors:

    @pytest.mark.asyncio
    async def test_unauthenticated(self, test_client):
        app.dependency_overrides.pop(get_current_user)

        response = await test_client.get("/api/auth/me")

        assert response.status_code == 401
        body = response.json()
        assert body["error"] == "unauthorized"
        assert body["request_id"] == response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, test_client):
        response = await test_client.get("/api/auth/me", headers={"X-Request-ID": "trace-123"})
        assert response.headers["X-Request-ID"] == "trace-123"

    @pytest.mark.asyncio
    async def test_oversized_request_id_replaced(self, test_client):
        response = await test_client.get("/api/auth/me", headers={"X-Request-ID": "x" * 200})
        assert len(response.headers["X-Request-ID"]) == 8


class TestClientsApi:

    @pytest.mark.asyncio
    async def test_list(self, test_client, mock_db_session, company, membership, client):
        _use_company(company, membership)
        mock_db_session.execute = AsyncMock(
            side_effect=[result_with(scalar=1), result_with(many=[client])]
        )

        response = await test_client.get("/api/clients")

        assert response.status_code == 200
        body = response.json()
        assert body["page_count"] == 1
        assert body["clients"][0]["display_name"] == "Globex"
        assert body["clients"][0]["updated_at"].startswith("2025-01-02")

    @pytest.mark.asyncio
    async def test_not_found_envelope(self, test_client, mock_db_session, company, membership):
        _use_company(company, membership)
        mock_db_session.execute.return_value = result_with(one=None)

        response = await test_client.get(f"/api/clients/{uuid4()}")

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "not_found"
        assert "Client" in body["message"]

    @pytest.mark.asyncio
    async def test_accountant_cannot_delete(self, test_client, mock_db_session, company, membership, client):
        _use_company(company, membership, role=UserRole.ACCOUNTANT)

        response = await test_client.delete(f"/api/clients/{client.id}")

        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"
        mock_db_session.execute.assert_not_awaited()


class TestAuthApi:

    @pytest.mark.asyncio
    async def test_sign_in_sets_cookie(self, test_client, user):
        session = UserSession(
            id=uuid4(), token="tok-123", user_id=user.id, expires_at=utcnow() + timedelta(hours=1)
        )
        session.user = user
        with patch("app.routes.auth.auth_service") as mock_auth:
            mock_auth.sign_in = AsyncMock(return_value=session)
            response = await test_client.post(
                "/api/auth/sign-in", json={"email": "ada@example.com", "password": "pw"}
            )

        assert response.status_code == 200
        assert response.json()["token"] == "tok-123"
        assert response.json()["user"]["email"] == user.email
        assert response.cookies.get(settings.session_cookie_name) == "tok-123"

    @pytest.mark.asyncio
    async def test_sign_in_failure(self, test_client):
        with patch("app.routes.auth.auth_service") as mock_auth:
            mock_auth.sign_in = AsyncMock(side_effect=AuthenticationError("Invalid email or password"))
            response = await test_client.post(
                "/api/auth/sign-in", json={"email": "ada@example.com", "password": "nope"}
            )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_me(self, test_client, user):
        response = await test_client.get("/api/auth/me")
        assert response.status_code == 200
        assert response.json()["id"] == str(user.id)


class TestSignaturesApi:

    @pytest.mark.asyncio
    async def test_public_lookup(self, test_client, mock_db_session, company, client):
        app.dependency_overrides.pop(get_current_user)
        signature = make_signature(make_quote(company, client), otp_digest="f" * 64)
        mock_db_session.get.return_value = signature

        response = await test_client.get(f"/api/signatures/{signature.id}")

        assert response.status_code == 200
        body = response.json()
        assert body["quote"]["company_name"] == "Acme SARL"
        assert body["quote"]["client_name"] == client.name
        assert "otp_digest" not in body

    @pytest.mark.asyncio
    async def test_unknown_signature(self, test_client):
        app.dependency_overrides.pop(get_current_user)
        response = await test_client.post(f"/api/signatures/{uuid4()}/sign", json={"otp_code": "1234-5678"})
        assert response.status_code == 404


class TestDangerApi:

    @pytest.mark.asyncio
    async def test_owner_only(self, test_client, mock_db_session, company, membership):
        _use_company(company, membership, role=UserRole.ADMIN)

        response = await test_client.post("/api/danger/otp")

        assert response.status_code == 403
        mock_db_session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_code_required(self, test_client, mock_db_session, company, membership):
        _use_company(company, membership)

        response = await test_client.post("/api/danger/reset/app", json={})

        assert response.status_code == 400
        assert response.json()["message"] == "OTP is required for this action"
        mock_db_session.execute.assert_not_awaited()
