"""
Shared pytest fixtures for vault tests.

Provides:
- Settings pointing at a temporary data directory
- A SQLite item store
- Recording storage adapters standing in for the cloud backends
- A VaultService wired to all of the above
"""

from typing import Dict, List, Optional, Tuple

import pytest

from vault_api.config import VaultSettings
from vault_api.services.storage import StorageAdapter, StorageError
from vault_api.services.vault.core import VaultService
from vault_api.services.vault.store import ItemStore

OWNER = "user-alice"
OTHER = "user-bob"
THIRD = "user-carol"


class RecordingStorageAdapter(StorageAdapter):
    """In-test adapter that records calls and can be told to fail"""

    def __init__(self, provider: str):
        self.provider = provider
        self.fail = False
        self.upload_calls: List[Tuple[str, str, int, Optional[Dict[str, str]]]] = []
        self.download_calls: List[Tuple[str, int]] = []
        self.deleted: List[str] = []

    def generate_upload_url(self, key, content_type, ttl_seconds, metadata=None):
        if self.fail:
            raise StorageError("backend unavailable")
        self.upload_calls.append((key, content_type, ttl_seconds, metadata))
        return f"https://{self.provider}.example/upload/{key}?ttl={ttl_seconds}"

    def generate_download_url(self, key, ttl_seconds):
        if self.fail:
            raise StorageError("backend unavailable")
        self.download_calls.append((key, ttl_seconds))
        return f"https://{self.provider}.example/download/{key}?n={len(self.download_calls)}"

    def delete_object(self, key):
        if self.fail:
            raise StorageError("backend unavailable")
        self.deleted.append(key)


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the environment and the working directory"""
    return VaultSettings(
        _env_file=None,
        data_dir=tmp_path / "vault_data",
        storage_provider="gcs",
        debug=True,
    )


@pytest.fixture
def store(settings):
    return ItemStore(settings.vault_db)


@pytest.fixture
def adapters():
    return {
        "gcs": RecordingStorageAdapter("gcs"),
        "s3": RecordingStorageAdapter("s3"),
    }


@pytest.fixture
def service(settings, store, adapters):
    return VaultService(settings=settings, store=store, adapter_factory=lambda provider: adapters[provider])


@pytest.fixture
def upload(service):
    """Pre-create and finalize a file; returns the stored item"""

    def _upload(user_id=OWNER, name="report.pdf", parent_id=None, size=1024, mime_type="application/pdf"):
        session = service.get_upload_signed_url(user_id, name, mime_type, size, parent_id)
        service.add_vault_file(user_id, item_id=session.item_id, size=size)
        return service.store.get(session.item_id)

    return _upload
