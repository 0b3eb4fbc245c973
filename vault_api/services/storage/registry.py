"""
Storage adapter registry

Resolves a provider tag to an adapter instance. The provider for new items
comes from settings at call time; existing items always resolve through
their own recorded tag.
"""

import logging
import threading
from typing import Dict, Optional

from vault_api.config import get_settings
from .base import StorageAdapter, StorageConfigurationError
from .gcs import GCSStorageAdapter
from .s3 import S3StorageAdapter

logger = logging.getLogger(__name__)

ADAPTER_CLASSES = {
    GCSStorageAdapter.provider: GCSStorageAdapter,
    S3StorageAdapter.provider: S3StorageAdapter,
}

_adapters: Dict[str, StorageAdapter] = {}
_adapters_lock = threading.Lock()


def get_storage_adapter(provider: Optional[str] = None) -> StorageAdapter:
    """
    Get the adapter for ``provider`` (default: the configured provider)

    Raises:
        StorageConfigurationError: If the provider tag is unknown
    """
    provider = provider or get_settings().storage_provider
    adapter_cls = ADAPTER_CLASSES.get(provider)
    if adapter_cls is None:
        raise StorageConfigurationError(f"Unknown storage provider: {provider}")

    with _adapters_lock:
        adapter = _adapters.get(provider)
        if adapter is None:
            adapter = adapter_cls()
            _adapters[provider] = adapter
            logger.debug(f"Storage adapter created for provider {provider}")
        return adapter


def reset_storage_adapters() -> None:
    """Drop cached adapters so the next lookup re-reads settings"""
    with _adapters_lock:
        _adapters.clear()
