"""
Object storage adapters

Public API:
- StorageAdapter interface and StorageError
- GCSStorageAdapter (primary managed backend), S3StorageAdapter (S3-compatible)
- get_storage_adapter() registry and build_object_key()
"""

from .base import (
    StorageAdapter,
    StorageError,
    StorageConfigurationError,
    build_object_key,
)
from .gcs import GCSStorageAdapter
from .s3 import S3StorageAdapter
from .registry import get_storage_adapter, reset_storage_adapters

__all__ = [
    "StorageAdapter",
    "StorageError",
    "StorageConfigurationError",
    "build_object_key",
    "GCSStorageAdapter",
    "S3StorageAdapter",
    "get_storage_adapter",
    "reset_storage_adapters",
]
