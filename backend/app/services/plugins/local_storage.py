"""
Invoicerr Backend — Local Storage Provider
============================================

What:  Stores files under a directory on the server's own disk.
Why:   Works out of the box with no external account; the default for
       self-hosted instances.
How:   Async writes with aiofiles under `config["storage_path"]`
       (settings.storage_root when unset). Keys are relative paths such as
       "signed-quotes/<id>/quote-<id>.json"; the returned URL is
       "/storage/<key>".

Path safety:
    Keys are built by the application, but the resolved path is still
    checked to stay inside the storage directory so a "../" key can never
    write elsewhere.
"""

import logging
from pathlib import Path
from typing import Any, Dict

import aiofiles

from app.config import settings
from app.exceptions import FileStorageError, ValidationError
from app.services.plugins.base import StorageProvider

logger = logging.getLogger(__name__)


class LocalStorageProvider(StorageProvider):
    id = "local"
    name = "Local Storage"
    description = "Store files in a local directory"

    @property
    def storage_path(self) -> Path:
        return Path(self.config.get("storage_path") or settings.storage_root).resolve()

    def _resolve(self, key: str) -> Path:
        root = self.storage_path
        path = (root / key).resolve()
        if root != path and root not in path.parents:
            raise ValidationError(
                message="Storage key escapes the storage directory",
                field="key",
                context={"key": key},
            )
        return path

    async def upload_file(self, key: str, content: bytes, mime_type: str) -> str:
        path = self._resolve(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store %s at %s: %s", key, path, str(e))
            raise FileStorageError(
                message=f"Failed to upload file: {key}",
                context={"path": str(path), "os_error": str(e)},
            )
        logger.info("Stored %s (%d bytes, %s)", key, len(content), mime_type)
        return f"/storage/{key}"

    async def delete_file(self, key: str) -> None:
        path = self._resolve(key)
        try:
            path.unlink()
        except FileNotFoundError:
            logger.debug("Delete skipped, file already gone: %s", key)
        except OSError as e:
            raise FileStorageError(
                message=f"Failed to delete file: {key}",
                context={"path": str(path), "os_error": str(e)},
            )

    async def get_signed_url(self, key: str, expires_in: int = 3600) -> str:
        return f"/storage/{key}"

    async def validate_plugin(self, config: Dict[str, Any]) -> bool:
        storage_path = (config or {}).get("storage_path")
        if not storage_path:
            raise ValidationError(message="Storage path is required", field="storage_path")
        try:
            Path(storage_path).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ValidationError(
                message=f"Unable to access storage path: {e}",
                field="storage_path",
            )
        return True
