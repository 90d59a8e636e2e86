"""
Invoicerr Backend — Plugin Service & Local Storage Tests
==========================================================

What we test:
    ✅ LocalStorageProvider writes under its directory and refuses "../" keys
    ✅ Configuration is validated before it is stored
    ✅ Storage fan-out skips failing providers
    ✅ Signed quotes / paid invoices land under their fixed keys
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from app.exceptions import NotFoundError, ValidationError
from app.models.enums import PluginType, WebhookEvent
from app.models.integration import Plugin
from app.services.plugin_service import PluginService
from app.services.plugins import LocalStorageProvider

from factories import result_with


def local_plugin(path, active=True):
    return Plugin(
        id="local",
        type=PluginType.STORAGE,
        name="Local Storage",
        is_active=active,
        config={"storage_path": str(path)},
    )


class TestLocalStorageProvider:

    @pytest.mark.asyncio
    async def test_upload_writes_file(self, tmp_path):
        provider = LocalStorageProvider({"storage_path": str(tmp_path)})
        url = await provider.upload_file("paid-invoices/1/invoice-1.json", b"{}", "application/json")

        assert url == "/storage/paid-invoices/1/invoice-1.json"
        assert (tmp_path / "paid-invoices" / "1" / "invoice-1.json").read_bytes() == b"{}"

    @pytest.mark.asyncio
    async def test_key_cannot_escape(self, tmp_path):
        provider = LocalStorageProvider({"storage_path": str(tmp_path / "store")})
        with pytest.raises(ValidationError, match="escapes"):
            await provider.upload_file("../outside.txt", b"x", "text/plain")
        assert not (tmp_path / "outside.txt").exists()

    @pytest.mark.asyncio
    async def test_delete_missing_file_is_quiet(self, tmp_path):
        provider = LocalStorageProvider({"storage_path": str(tmp_path)})
        await provider.delete_file("never-written.json")

    @pytest.mark.asyncio
    async def test_validate_requires_path(self):
        with pytest.raises(ValidationError, match="Storage path is required"):
            await LocalStorageProvider().validate_plugin({})


class TestPluginService:

    def setup_method(self):
        self.service = PluginService()

    @pytest.mark.asyncio
    async def test_list_registers_missing_rows(self, mock_db_session):
        mock_db_session.get.return_value = None
        plugins = await self.service.list_plugins(mock_db_session)

        assert [p["id"] for p in plugins] == ["local"]
        assert plugins[0]["is_active"] is False
        mock_db_session.add.assert_called_once()

    @pytest.mark.asyncio
    async def test_unknown_plugin(self, mock_db_session):
        with pytest.raises(NotFoundError):
            await self.service.toggle(mock_db_session, "dropbox")

    @pytest.mark.asyncio
    async def test_configure_validates_first(self, mock_db_session, tmp_path):
        plugin = local_plugin(tmp_path, active=False)
        mock_db_session.get.return_value = plugin
        with pytest.raises(ValidationError):
            await self.service.configure(mock_db_session, "local", {"storage_path": ""})
        assert plugin.config == {"storage_path": str(tmp_path)}

    @pytest.mark.asyncio
    async def test_configure_stores_config(self, mock_db_session, tmp_path):
        plugin = local_plugin(tmp_path, active=False)
        mock_db_session.get.return_value = plugin
        target = tmp_path / "documents"
        with patch("app.services.plugin_service.webhook_dispatcher") as mock_webhooks:
            mock_webhooks.safe_dispatch = AsyncMock()
            await self.service.configure(mock_db_session, "local", {"storage_path": str(target)})

        assert plugin.config["storage_path"] == str(target)
        assert target.is_dir()
        payload = mock_webhooks.safe_dispatch.await_args.args[2]
        assert "config" not in payload["plugin"]

    @pytest.mark.asyncio
    async def test_toggle_flips(self, mock_db_session, tmp_path):
        plugin = local_plugin(tmp_path, active=False)
        mock_db_session.get.return_value = plugin
        with patch("app.services.plugin_service.webhook_dispatcher") as mock_webhooks:
            mock_webhooks.safe_dispatch = AsyncMock()
            await self.service.toggle(mock_db_session, "local")

        assert plugin.is_active is True
        assert mock_webhooks.safe_dispatch.await_args.args[1] == WebhookEvent.PLUGIN_ACTIVATED

    @pytest.mark.asyncio
    async def test_no_active_storage(self, mock_db_session):
        mock_db_session.execute.return_value = result_with(many=[])
        assert await self.service.upload_to_storage_providers(mock_db_session, "a.pdf", b"%PDF") == []

    @pytest.mark.asyncio
    async def test_failing_provider_skipped(self, mock_db_session):
        working = MagicMock(spec=LocalStorageProvider)
        working.name = "Working"
        working.upload_file = AsyncMock(return_value="/storage/a.pdf")
        broken = MagicMock(spec=LocalStorageProvider)
        broken.name = "Broken"
        broken.upload_file = AsyncMock(side_effect=OSError("disk full"))

        with patch.object(self.service, "get_providers_by_type", AsyncMock(return_value=[broken, working])):
            urls = await self.service.upload_to_storage_providers(mock_db_session, "a.pdf", b"%PDF")

        assert urls == ["/storage/a.pdf"]

    @pytest.mark.asyncio
    async def test_signed_quote_key(self, mock_db_session, tmp_path):
        mock_db_session.execute.return_value = result_with(many=[local_plugin(tmp_path)])
        quote_id = uuid4()

        urls = await self.service.upload_signed_quote(mock_db_session, quote_id, {"quote": {"id": str(quote_id)}})

        key = f"signed-quotes/{quote_id}/quote-{quote_id}.json"
        assert urls == [f"/storage/{key}"]
        assert json.loads((tmp_path / key).read_text())["quote"]["id"] == str(quote_id)

    @pytest.mark.asyncio
    async def test_inbound_webhook_needs_active_plugin(self, mock_db_session, tmp_path):
        mock_db_session.get.return_value = local_plugin(tmp_path, active=False)
        with pytest.raises(NotFoundError):
            await self.service.handle_plugin_webhook(mock_db_session, "local", {})
