"""
Invoicerr Backend — Plugin Routes
===================================

Plugins are instance-wide (one storage setup serves every company), so
listing needs a session and changing them needs a super administrator.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.guards import get_current_user, require_super_admin
from app.models.user import User
from app.schemas.common import ERRORS_COMMON
from app.schemas.plugin import PluginConfigureRequest, PluginResponse, PluginToggleRequest
from app.services.plugin_service import plugin_service
from app.services.plugins import PROVIDERS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/plugins", tags=["Plugins"])


@router.get("", response_model=List[PluginResponse], responses=ERRORS_COMMON, summary="Available plugins")
async def list_plugins(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    return await plugin_service.list_plugins(db)


@router.put("/toggle", response_model=PluginResponse, responses=ERRORS_COMMON, summary="Activate or deactivate a plugin")
async def toggle_plugin(
    body: PluginToggleRequest,
    user: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    plugin = await plugin_service.toggle(db, body.plugin_id, body.active)
    return _plugin_view(plugin)


@router.post("/configure", response_model=PluginResponse, responses=ERRORS_COMMON, summary="Validate and store plugin configuration")
async def configure_plugin(
    body: PluginConfigureRequest,
    user: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    plugin = await plugin_service.configure(db, body.plugin_id, body.config)
    return _plugin_view(plugin)


def _plugin_view(plugin) -> dict:
    return {
        "id": plugin.id,
        "name": plugin.name,
        "description": PROVIDERS[plugin.id].description,
        "type": plugin.type,
        "is_active": plugin.is_active,
        "config": plugin.config or {},
    }
