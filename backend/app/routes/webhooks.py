"""
Invoicerr Backend — Webhook Routes
====================================

What:  Company-scoped CRUD over outbound webhooks, plus the public inbound
       endpoint plugins receive provider callbacks on.
How:   POST /api/webhooks/{plugin_id} has no auth dependency. It answers
       with {success, message, data} and turns any failure into a 500 with
       {success: false} instead of the standard error body, since the
       caller is a third-party provider, not our frontend.
"""

import logging
from typing import Any, List

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.guards import CompanyContext, require_company, require_roles
from app.models.enums import UserRole
from app.schemas.common import ERRORS_COMMON, MessageResponse, PluginWebhookResponse
from app.schemas.webhook import (
    WebhookCreate,
    WebhookCreatedResponse,
    WebhookOptionsResponse,
    WebhookResponse,
    WebhookUpdate,
)
from app.services.plugin_service import plugin_service
from app.services.webhook_service import webhook_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["Webhooks"])

require_admin = require_roles(UserRole.ADMIN)


@router.get("/options", response_model=WebhookOptionsResponse, summary="Supported webhook types and events")
async def webhook_options(ctx: CompanyContext = Depends(require_company)) -> dict:
    return webhook_service.options()


@router.get("", response_model=List[WebhookResponse], responses=ERRORS_COMMON, summary="List webhooks")
async def list_webhooks(
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await webhook_service.list(db, ctx.company)


@router.get("/{webhook_id}", response_model=WebhookResponse, responses=ERRORS_COMMON, summary="Get a webhook")
async def get_webhook(
    webhook_id: str,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await webhook_service.get(db, ctx.company, webhook_id)


@router.post(
    "",
    response_model=WebhookCreatedResponse,
    status_code=201,
    responses=ERRORS_COMMON,
    summary="Create a webhook; the response is the only one carrying the secret",
)
async def create_webhook(
    body: WebhookCreate,
    ctx: CompanyContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    return await webhook_service.create(db, ctx.company, body.model_dump())


@router.patch("/{webhook_id}", response_model=WebhookResponse, responses=ERRORS_COMMON, summary="Edit a webhook")
async def update_webhook(
    webhook_id: str,
    body: WebhookUpdate,
    ctx: CompanyContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    return await webhook_service.update(db, ctx.company, webhook_id, body.model_dump(exclude_unset=True))


@router.delete("/{webhook_id}", response_model=MessageResponse, responses=ERRORS_COMMON, summary="Delete a webhook")
async def delete_webhook(
    webhook_id: str,
    ctx: CompanyContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await webhook_service.delete(db, ctx.company, webhook_id)


# ── Inbound (public) ──────────────────────────────────────────────────────

@router.post(
    "/{plugin_id}",
    response_model=PluginWebhookResponse,
    responses={500: {"model": PluginWebhookResponse, "description": "Webhook processing failed"}},
    summary="Provider callback for a plugin",
)
async def handle_plugin_webhook(
    plugin_id: str,
    body: Any = Body(default=None),
    db: AsyncSession = Depends(get_db_session),
):
    try:
        result = await plugin_service.handle_plugin_webhook(db, plugin_id, body)
    except Exception as e:
        logger.error("Error processing webhook for plugin %s: %s", plugin_id, str(e), exc_info=True)
        await db.rollback()
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Webhook processing failed", "error": str(e)},
        )
    return {"success": True, "message": "Webhook processed successfully", "data": result}
