"""
Invoicerr Backend — Request Logging Middleware
================================================

What:  One access log line per HTTP request, with duration and tenant context.
How:   Logs after the response is produced. The auth and company guards leave
       `request.state.user` and the company context behind, so the line
       names who acted and in which company.
When:  After RequestIDMiddleware (uses request ID for correlation).

Log line:
    GET /api/invoices 200 12.4ms [a1b2c3d4] from 10.0.0.7 user=<uuid> company=<uuid>

What we log vs what we DON'T log (privacy):
    ✅ Log: method, path, status, duration, IP, request ID, user/company IDs
    ❌ Don't log: request bodies (client addresses, amounts), cookies, tokens
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.middleware.request_id import request_id_var

logger = logging.getLogger("invoicerr.access")

# Polled by uptime checks; would drown out real traffic
QUIET_PATHS = {"/health"}


def _state_ids(request: Request):
    user = getattr(request.state, "user", None)
    tenant = getattr(request.state, "company_context", None) or getattr(request.state, "tenant", None)
    user_id = str(user.id) if user is not None else "-"
    company_id = getattr(tenant, "company_id", None)
    return user_id, str(company_id) if company_id else "-"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs method, path, status and duration of each request.

    Level follows the status: 5xx → ERROR, 4xx → WARNING, else INFO.
    For SSE streams the duration covers the time to the first byte only.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = getattr(request.client, "host", "unknown") if request.client else "unknown"
        rid = request_id_var.get("")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        user_id, company_id = _state_ids(request)
        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s user=%s company=%s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            user_id,
            company_id,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
                "user_id": user_id,
                "company_id": company_id,
            },
        )

        return response
