"""
Invoicerr Backend — Middleware Tests
======================================

What we test:
    ✅ Rate limit key: client IP, whatever credentials are sent
    ✅ Health, docs and SSE streams are not counted
    ✅ Over-limit requests get a 429 envelope with Retry-After
"""

from types import SimpleNamespace
from unittest.mock import patch
from uuid import uuid4

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from app.config import settings
from app.middleware.rate_limit import RateLimitMiddleware, is_exempt, rate_limit_key


def _request(headers=None, cookies=None, host="10.0.0.7"):
    return SimpleNamespace(
        headers=headers or {},
        cookies=cookies or {},
        client=SimpleNamespace(host=host),
    )


class TestRateLimitKey:

    def test_anonymous_uses_ip(self):
        assert rate_limit_key(_request()) == "ip:10.0.0.7"

    def test_bearer_token_ignored(self):
        key = rate_limit_key(_request(headers={"authorization": "Bearer tok-1"}))
        assert key == "ip:10.0.0.7"

    def test_cookie_ignored(self):
        key = rate_limit_key(_request(cookies={settings.session_cookie_name: "tok-1"}))
        assert key == "ip:10.0.0.7"

    def test_no_client(self):
        request = _request()
        request.client = None
        assert rate_limit_key(request) == "ip:unknown"


@pytest.mark.parametrize(
    "path, exempt",
    [
        ("/health", True),
        ("/docs", True),
        ("/api/invoices/sse", True),
        ("/api/invoices", False),
        ("/api/auth/sign-in", False),
    ],
)
def test_is_exempt(path, exempt):
    assert is_exempt(path) is exempt


class TestRateLimitMiddleware:

    def _app(self):
        mini = FastAPI()
        mini.add_middleware(RateLimitMiddleware)

        @mini.get("/api/ping")
        async def ping():
            return {"ok": True}

        @mini.get("/health")
        async def health():
            return {"ok": True}

        return mini

    @pytest.mark.asyncio
    async def test_limit_enforced(self):
        limited = SimpleNamespace(
            rate_limit_requests=2,
            rate_limit_window=60,
            session_cookie_name=settings.session_cookie_name,
        )
        with patch("app.middleware.rate_limit.settings", limited):
            transport = ASGITransport(app=self._app())
            async with AsyncClient(transport=transport, base_url="http://test") as http:
                assert (await http.get("/api/ping")).status_code == 200
                assert (await http.get("/api/ping")).status_code == 200
                blocked = await http.get("/api/ping")
                # exempt paths keep working
                assert (await http.get("/health")).status_code == 200
                # a made-up token does not buy a fresh budget
                forged = await http.get("/api/ping", headers={"Authorization": f"Bearer {uuid4()}"})

        assert blocked.status_code == 429
        assert blocked.json()["error"] == "rate_limit_exceeded"
        assert 1 <= int(blocked.headers["Retry-After"]) <= 61
        assert forged.status_code == 429
