"""
Invoicerr Backend — Provider Plugin Interfaces
================================================

What:  Abstract base classes for the two kinds of provider plugins:
       storage (where generated documents go) and signing (who collects
       signatures on quotes).
Why:   Business code asks "every active storage provider" for an upload and
       never knows whether the bytes land on disk, S3 or a DMS.
How:   A provider is built from its Plugin row's `config` dict. Concrete
       providers register themselves in app.services.plugins.PROVIDERS
       under their plugin id ("local", ...).

Contract:
    - validate_plugin(config) raises ValidationError with a user-facing
      message when the config cannot work; it returns True otherwise
    - upload_file() returns a URL (or path) the frontend can use
    - handle_webhook() receives the raw JSON body POSTed to
      /api/webhooks/{plugin_id} and returns whatever the caller should see
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from app.models.enums import PluginType


class Provider(ABC):
    """Common identity and configuration of a provider plugin."""

    id: str = ""
    name: str = ""
    description: str = ""
    type: PluginType

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = dict(config or {})

    @abstractmethod
    async def validate_plugin(self, config: Dict[str, Any]) -> bool:
        ...

    async def handle_webhook(self, body: Dict[str, Any]) -> Any:
        """Providers without an inbound webhook simply acknowledge it."""
        return None


class StorageProvider(Provider):
    type = PluginType.STORAGE

    @abstractmethod
    async def upload_file(self, key: str, content: bytes, mime_type: str) -> str:
        ...

    @abstractmethod
    async def delete_file(self, key: str) -> None:
        ...

    async def get_signed_url(self, key: str, expires_in: int = 3600) -> str:
        return key


class SigningProvider(Provider):
    type = PluginType.SIGNING

    @abstractmethod
    async def request_signature(
        self,
        document_id: str,
        title: str,
        file_url: str,
        signers: List[str],
    ) -> str:
        """Start a signature request and return the provider's request id."""
        ...

    @abstractmethod
    async def handle_webhook(self, body: Dict[str, Any]) -> Any:
        ...
