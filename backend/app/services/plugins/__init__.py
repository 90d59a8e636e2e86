"""Provider plugins: the in-code registry of storage and signing providers."""

from typing import Dict, Type

from app.services.plugins.base import Provider, SigningProvider, StorageProvider
from app.services.plugins.local_storage import LocalStorageProvider

# Plugin id → provider class; Plugin rows are created lazily from this
PROVIDERS: Dict[str, Type[Provider]] = {
    LocalStorageProvider.id: LocalStorageProvider,
}

__all__ = [
    "PROVIDERS",
    "Provider",
    "SigningProvider",
    "StorageProvider",
    "LocalStorageProvider",
]
