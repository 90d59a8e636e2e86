"""
Invoicerr Backend — Plugin Service
====================================

What:  Activation, configuration and use of provider plugins.
Why:   Storage and signing are optional integrations an administrator turns
       on per instance; business code only asks for "the active storage
       providers" and never imports a concrete provider.
How:   app.services.plugins.PROVIDERS is the registry of provider classes.
       A `plugins` row per registry entry stores is_active and config; rows
       are created lazily (inactive) the first time plugins are listed or
       addressed.

Storage fan-out:
    upload_to_storage_providers() sends one file to every active storage
    provider. A failing provider is logged and skipped; the caller gets the
    URLs of the uploads that worked (possibly none).
"""

import json
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NotFoundError
from app.models.enums import PluginType, WebhookEvent
from app.models.integration import Plugin
from app.services.plugins import PROVIDERS, Provider, StorageProvider
from app.services.webhooks import webhook_dispatcher
from app.utils.serialization import serialize_model

logger = logging.getLogger(__name__)


class PluginService:

    def build_provider(self, plugin: Plugin) -> Provider:
        provider_cls = PROVIDERS.get(plugin.id)
        if provider_cls is None:
            raise NotFoundError(resource="Plugin", resource_id=plugin.id)
        return provider_cls(plugin.config)

    async def _get_or_create(self, db: AsyncSession, plugin_id: str) -> Plugin:
        provider_cls = PROVIDERS.get(plugin_id)
        if provider_cls is None:
            raise NotFoundError(resource="Plugin", resource_id=plugin_id)

        plugin = await db.get(Plugin, plugin_id)
        if plugin is None:
            plugin = Plugin(
                id=provider_cls.id,
                type=provider_cls.type,
                name=provider_cls.name,
                is_active=False,
                config={},
            )
            db.add(plugin)
            await db.flush()
            logger.info("Registered plugin %s (%s)", plugin.id, plugin.type.value)
        return plugin

    async def list_plugins(self, db: AsyncSession) -> List[Dict[str, Any]]:
        plugins = []
        for plugin_id, provider_cls in PROVIDERS.items():
            plugin = await self._get_or_create(db, plugin_id)
            plugins.append(
                {
                    "id": plugin.id,
                    "name": plugin.name,
                    "description": provider_cls.description,
                    "type": plugin.type,
                    "is_active": plugin.is_active,
                    "config": plugin.config or {},
                }
            )
        return plugins

    async def configure(
        self,
        db: AsyncSession,
        plugin_id: str,
        config: Dict[str, Any],
    ) -> Plugin:
        """
        Validate and store a plugin's configuration.

        Raises:
            NotFoundError: unknown plugin id
            ValidationError: the provider rejected the configuration
        """
        plugin = await self._get_or_create(db, plugin_id)
        provider = PROVIDERS[plugin_id](config)
        await provider.validate_plugin(config)

        plugin.config = dict(config)
        await db.flush()
        logger.info("Plugin %s configured", plugin_id)

        await webhook_dispatcher.safe_dispatch(
            db,
            WebhookEvent.PLUGIN_CONFIGURED,
            {"plugin": serialize_model(plugin, exclude=("config",))},
        )
        return plugin

    async def toggle(
        self,
        db: AsyncSession,
        plugin_id: str,
        active: Optional[bool] = None,
    ) -> Plugin:
        """Set is_active (or flip it when `active` is None)."""
        plugin = await self._get_or_create(db, plugin_id)
        plugin.is_active = (not plugin.is_active) if active is None else active
        await db.flush()
        logger.info("Plugin %s %s", plugin_id, "activated" if plugin.is_active else "deactivated")

        event = WebhookEvent.PLUGIN_ACTIVATED if plugin.is_active else WebhookEvent.PLUGIN_DEACTIVATED
        await webhook_dispatcher.safe_dispatch(
            db, event, {"plugin": serialize_model(plugin, exclude=("config",))}
        )
        return plugin

    async def get_providers_by_type(
        self,
        db: AsyncSession,
        plugin_type: PluginType,
    ) -> List[Provider]:
        result = await db.execute(
            select(Plugin).where(Plugin.type == plugin_type, Plugin.is_active.is_(True))
        )
        providers = []
        for plugin in result.scalars().all():
            if plugin.id not in PROVIDERS:
                logger.warning("Active plugin %s has no provider implementation", plugin.id)
                continue
            providers.append(self.build_provider(plugin))
        return providers

    async def upload_to_storage_providers(
        self,
        db: AsyncSession,
        filename: str,
        content: bytes,
        mime_type: str = "application/pdf",
    ) -> List[str]:
        providers = await self.get_providers_by_type(db, PluginType.STORAGE)
        if not providers:
            logger.warning("No active storage providers; upload of %s skipped", filename)
            return []

        urls = []
        for provider in providers:
            if not isinstance(provider, StorageProvider):
                continue
            try:
                url = await provider.upload_file(filename, content, mime_type)
            except Exception as e:
                logger.error("Upload of %s to %s failed: %s", filename, provider.name, str(e))
                continue
            logger.info("Uploaded %s to %s: %s", filename, provider.name, url)
            urls.append(url)
        return urls

    async def upload_json_record(
        self,
        db: AsyncSession,
        key: str,
        record: Dict[str, Any],
    ) -> List[str]:
        content = json.dumps(record, indent=2, default=str).encode("utf-8")
        return await self.upload_to_storage_providers(db, key, content, "application/json")

    async def upload_signed_quote(
        self, db: AsyncSession, quote_id: Any, record: Dict[str, Any]
    ) -> List[str]:
        return await self.upload_json_record(
            db, f"signed-quotes/{quote_id}/quote-{quote_id}.json", record
        )

    async def upload_paid_invoice(
        self, db: AsyncSession, invoice_id: Any, record: Dict[str, Any]
    ) -> List[str]:
        return await self.upload_json_record(
            db, f"paid-invoices/{invoice_id}/invoice-{invoice_id}.json", record
        )

    async def handle_plugin_webhook(
        self,
        db: AsyncSession,
        plugin_id: str,
        body: Any,
    ) -> Any:
        """
        Forward an inbound provider callback to its plugin.

        Raises:
            NotFoundError: unknown or inactive plugin
        """
        plugin = await db.get(Plugin, plugin_id)
        if plugin is None or not plugin.is_active:
            raise NotFoundError(resource="Plugin", resource_id=plugin_id)

        provider = self.build_provider(plugin)
        result = await provider.handle_webhook(body)

        await webhook_dispatcher.safe_dispatch(
            db,
            WebhookEvent.PLUGIN_WEBHOOK_RECEIVED,
            {"plugin": serialize_model(plugin, exclude=("config",))},
        )
        return result


# ── Singleton Instance ────────────────────────────────────────────────────
plugin_service = PluginService()
