"""
Storage Adapter interface

A storage adapter issues time-limited signed URLs for direct client upload
and download, and deletes objects. Adapters never see file contents; the
vault only stores metadata and the object key.
"""

import re
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional


class StorageError(Exception):
    """Base exception for storage backend operations."""
    pass


class StorageConfigurationError(StorageError):
    """The backend is not properly configured."""
    pass


class StorageAdapter(ABC):
    """Uniform capability set of an object-storage backend"""

    #: Provider tag recorded on every item created through this adapter
    provider: str = ""

    @abstractmethod
    def generate_upload_url(
        self,
        key: str,
        content_type: str,
        ttl_seconds: int,
        metadata: Optional[Dict[str, str]] = None
    ) -> str:
        """Return a URL that accepts a single PUT of ``key`` until it expires."""

    @abstractmethod
    def generate_download_url(self, key: str, ttl_seconds: int) -> str:
        """Return a URL that serves a GET of ``key`` until it expires."""

    @abstractmethod
    def delete_object(self, key: str) -> None:
        """Delete ``key``. Deleting a missing object is not an error."""


def _safe_key_segment(value: str) -> str:
    return re.sub(r"[^a-zA-Z0-9._-]", "_", value)


def build_object_key(user_id: str, file_name: str, parent_id: Optional[str] = None) -> str:
    """
    Build the object key for a new upload

    Format: ``vault/{user_id}/{parent_id or "root"}/{epoch_ms}_{file_name}``
    """
    timestamp = int(time.time() * 1000)
    folder = _safe_key_segment(parent_id) if parent_id else "root"
    return f"vault/{_safe_key_segment(user_id)}/{folder}/{timestamp}_{_safe_key_segment(file_name)}"
