"""
Invoicerr Backend — FastAPI Application Factory
=================================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes app configuration, middleware registration, route mounting,
       and lifecycle management in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn app.main:app).

Application Architecture:
    ┌─────────────────────────────────────────────────────────────┐
    │                       FastAPI App                           │
    │                                                             │
    │  Middleware Chain:                                          │
    │  RateLimit → RequestID → Logging → GZip → CORS              │
    │                                                             │
    │  Routes:                                                    │
    │  /api/auth  /api/invitations  /api/company  /api/clients    │
    │  /api/quotes  /api/signatures  /api/invoices  /api/receipts │
    │  /api/recurring-invoices  /api/payment-methods              │
    │  /api/webhooks  /api/plugins  /api/dashboard  /api/stats    │
    │  /api/admin  /api/danger  /health                           │
    │                                                             │
    │  Exception Handlers:                                        │
    │  Validation→400 │ Auth→401 │ Permission→403 │ NotFound→404  │
    │  Conflict→409 │ RateLimit→429 │ External→502 │ Circuit→503  │
    └─────────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Validate configuration (logged, never fatal)
    3. Create the storage directory
    4. Start the recurring-invoice scheduler

    Shutdown:
    1. Stop the scheduler
    2. Dispose database engine (close all connections)
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from app import __version__
from app.config import settings
from app.database import dispose_engine
from app.exceptions import (
    InvoicerrError,
    ValidationError,
    AuthenticationError,
    PermissionDeniedError,
    NotFoundError,
    ConflictError,
    ExternalServiceError,
    CircuitBreakerOpenError,
    DatabaseError,
    RateLimitExceededError,
    FileStorageError,
)
from app.middleware.request_id import RequestIDMiddleware, request_id_var
from app.middleware.logging import RequestLoggingMiddleware
from app.middleware.rate_limit import RateLimitMiddleware
from app.routes import (
    admin,
    auth,
    clients,
    company,
    danger,
    dashboard,
    health,
    invitations,
    invoices,
    payment_methods,
    plugins,
    quotes,
    receipts,
    recurring_invoices,
    signatures,
    webhooks,
)
from app.services.scheduler import start_scheduler, stop_scheduler
from app.services.webhooks.dispatcher import register_webhook_hooks, webhook_dispatcher
from app.utils.numbering import register_numbering_hooks

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Request IDs are added to messages by the middleware and handlers.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries log every operation at DEBUG/INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Code before yield runs on startup, code after yield on shutdown."""
    setup_logging()
    logger.info("=" * 60)
    logger.info("Invoicerr Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Health checks and the API keep working; sending mail will not
        logger.error("Configuration error: %s", str(e))

    storage = Path(settings.storage_root)
    storage.mkdir(parents=True, exist_ok=True)
    logger.info("Storage directory: %s", storage.resolve())

    scheduler_task = start_scheduler()

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("Invoicerr Backend shutting down...")
    await stop_scheduler(scheduler_task)
    await webhook_dispatcher.drain()
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(
    status_code: int,
    error: str,
    exc: InvoicerrError,
    include_details: bool = True,
    headers: dict = None,
) -> JSONResponse:
    content = {
        "error": error,
        "message": exc.message,
        "request_id": request_id_var.get(""),
    }
    if include_details:
        content["details"] = exc.context
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the application's exceptions to HTTP status codes.

    Handler hierarchy:
        ValidationError         → 400 Bad Request
        AuthenticationError     → 401 Unauthorized
        PermissionDeniedError   → 403 Forbidden
        NotFoundError           → 404 Not Found
        ConflictError           → 409 Conflict
        RateLimitExceededError  → 429 Too Many Requests
        ExternalServiceError    → 502 Bad Gateway
        CircuitBreakerOpenError → 503 Service Unavailable
        FileStorageError        → 500 Internal Server Error
        DatabaseError           → 500 Internal Server Error
        InvoicerrError (base)   → 500 Internal Server Error
        Exception (fallback)    → 500 Internal Server Error

    Responses never carry stack traces, SQL or file paths; those are logged.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, "validation_error", exc)

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        return _error_response(401, "unauthorized", exc, include_details=False)

    @app.exception_handler(PermissionDeniedError)
    async def handle_permission_denied(request: Request, exc: PermissionDeniedError):
        logger.warning(
            "[%s] Permission denied on %s %s: %s",
            request_id_var.get(""),
            request.method,
            request.url.path,
            exc.message,
        )
        return _error_response(403, "forbidden", exc)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, "not_found", exc, include_details=False)

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        return _error_response(409, "conflict", exc)

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return _error_response(
            429,
            "rate_limit_exceeded",
            exc,
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(ExternalServiceError)
    async def handle_external_service_error(request: Request, exc: ExternalServiceError):
        logger.error(
            "[%s] External service error (%s): %s",
            request_id_var.get(""),
            exc.service,
            exc.message,
        )
        return _error_response(502, "external_service_error", exc, include_details=False)

    @app.exception_handler(CircuitBreakerOpenError)
    async def handle_circuit_open(request: Request, exc: CircuitBreakerOpenError):
        return _error_response(
            503,
            "service_unavailable",
            exc,
            headers={"Retry-After": str(exc.recovery_time)},
        )

    @app.exception_handler(FileStorageError)
    async def handle_file_storage_error(request: Request, exc: FileStorageError):
        logger.error("[%s] File storage error: %s | %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(500, "server_error", exc, include_details=False)

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("[%s] Database error: %s | %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(500, "server_error", exc, include_details=False)

    @app.exception_handler(InvoicerrError)
    async def handle_invoicerr_error(request: Request, exc: InvoicerrError):
        logger.error("[%s] Application error: %s", request_id_var.get(""), exc.message)
        return _error_response(500, "server_error", exc, include_details=False)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again or contact support.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """Assemble middleware, exception handlers and routers into a new app."""
    app = FastAPI(
        title="Invoicerr API",
        description=(
            "Multi-tenant invoicing: clients, quotes, invoices, receipts, "
            "recurring invoices, webhooks and storage plugins."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Raw numbers are rendered from the company format on every flush
    register_numbering_hooks()
    register_webhook_hooks()

    # ── Register Middleware ───────────────────────────────────────────────
    # Executes in reverse order of addition: RateLimit runs first
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(invitations.router)
    app.include_router(company.router)
    app.include_router(clients.router)
    app.include_router(quotes.router)
    app.include_router(signatures.router)
    app.include_router(invoices.router)
    app.include_router(receipts.router)
    app.include_router(recurring_invoices.router)
    app.include_router(payment_methods.router)
    app.include_router(webhooks.router)
    app.include_router(plugins.router)
    app.include_router(dashboard.router)
    app.include_router(admin.router)
    app.include_router(danger.router)

    return app


# uvicorn expects `app.main:app`
app = create_app()
