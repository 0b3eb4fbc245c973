"""
Tests for two-phase uploads (pre-create and finalize)
"""

import pytest

from vault_api.errors import (
    AlreadyExistsError,
    InternalError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
    ResourceExhaustedError,
)
from vault_api.services.vault.schemas import Capability
from vault_api.services.vault.store import ItemFilter

from conftest import OWNER, OTHER


def all_items(store):
    return store.query(ItemFilter(is_deleted=None))


class TestRequestUpload:
    """Tests for get_upload_signed_url"""

    def test_creates_pending_item_after_url(self, service, adapters):
        session = service.get_upload_signed_url(OWNER, "report.pdf", "application/pdf", 2048)

        assert session.storage_provider == "gcs"
        assert session.parent_path_in_vault == ""
        assert session.signed_url.startswith("https://gcs.example/upload/")

        key, content_type, ttl, metadata = adapters["gcs"].upload_calls[0]
        assert key == session.storage_path
        assert key.startswith(f"vault/{OWNER}/root/") and key.endswith("_report.pdf")
        assert content_type == "application/pdf"
        assert ttl == 300
        assert metadata["owner"] == OWNER

        item = service.store.get(session.item_id)
        assert item.path == "/report.pdf"
        assert item.is_pending_upload
        assert item.cached_upload_url == session.signed_url
        assert item.cached_upload_url_expiry == session.expires_at
        assert item.file_type == "document"
        assert item.size == 2048

    def test_inside_folder(self, service):
        docs = service.create_folder(OWNER, "Docs")
        session = service.get_upload_signed_url(OWNER, "a.png", "image/png", 1, parent_id=docs.id)
        assert session.parent_path_in_vault == "/Docs"
        assert f"/{docs.id}/" in session.storage_path
        assert service.store.get(session.item_id).path == "/Docs/a.png"

    def test_uses_configured_provider(self, service, settings, adapters):
        settings.storage_provider = "s3"
        session = service.get_upload_signed_url(OWNER, "a.png", "image/png", 1)
        assert session.storage_provider == "s3"
        assert adapters["s3"].upload_calls and not adapters["gcs"].upload_calls

    def test_missing_parent_persists_nothing(self, service, adapters):
        with pytest.raises(NotFoundError):
            service.get_upload_signed_url(OWNER, "a.pdf", "application/pdf", 1, parent_id="no-such-folder")
        assert all_items(service.store) == []
        assert adapters["gcs"].upload_calls == []

    def test_storage_failure_persists_nothing(self, service, adapters):
        adapters["gcs"].fail = True
        with pytest.raises(InternalError):
            service.get_upload_signed_url(OWNER, "a.pdf", "application/pdf", 1)
        assert all_items(service.store) == []

    def test_disallowed_mime_type(self, service):
        with pytest.raises(InvalidArgumentError):
            service.get_upload_signed_url(OWNER, "page.html", "text/html", 1)

    def test_oversized_file(self, service, settings):
        with pytest.raises(InvalidArgumentError):
            service.get_upload_signed_url(OWNER, "big.zip", "application/zip", settings.max_file_size_bytes + 1)

    def test_quota_exceeded(self, service, settings, upload):
        settings.storage_quota_bytes = 1500
        upload(size=1000)
        with pytest.raises(ResourceExhaustedError):
            service.get_upload_signed_url(OWNER, "more.pdf", "application/pdf", 600)

    def test_encrypted_requires_key(self, service):
        with pytest.raises(InvalidArgumentError):
            service.get_upload_signed_url(OWNER, "a.pdf", "application/pdf", 1, is_encrypted=True)

    def test_name_collision(self, service, upload):
        upload(name="a.pdf")
        with pytest.raises(AlreadyExistsError):
            service.get_upload_signed_url(OWNER, "a.pdf", "application/pdf", 1)

    def test_parent_must_be_writable(self, service):
        docs = service.create_folder(OWNER, "Docs")
        service.share_item(OWNER, docs.id, OTHER, Capability.READ)
        with pytest.raises(PermissionDeniedError):
            service.get_upload_signed_url(OTHER, "a.pdf", "application/pdf", 1, parent_id=docs.id)

    def test_writer_upload_belongs_to_folder_owner(self, service):
        docs = service.create_folder(OWNER, "Docs")
        service.share_item(OWNER, docs.id, OTHER, Capability.WRITE)

        session = service.get_upload_signed_url(OTHER, "a.pdf", "application/pdf", 1, parent_id=docs.id)
        item = service.store.get(session.item_id)
        assert item.user_id == OWNER
        assert item.created_by == OTHER
        assert OTHER in item.permissions.can_write

        service.add_vault_file(OTHER, item_id=session.item_id, size=1)
        assert not service.store.get(session.item_id).is_pending_upload


class TestFinalizeUpload:
    """Tests for add_vault_file"""

    def test_clears_cached_url_and_sets_metadata(self, service):
        session = service.get_upload_signed_url(OWNER, "a.pdf", "application/pdf", 10)
        result = service.add_vault_file(
            OWNER, item_id=session.item_id, size=12, mime_type="application/pdf",
            is_encrypted=True, encryption_key_id="key-1",
        )

        assert result.id == session.item_id
        assert result.is_encrypted is True
        item = service.store.get(session.item_id)
        assert item.cached_upload_url is None
        assert item.cached_upload_url_expiry is None
        assert item.size == 12
        assert item.encryption_key_id == "key-1"
        assert item.encrypted_by == OWNER

    def test_finalize_twice_is_harmless(self, service):
        session = service.get_upload_signed_url(OWNER, "a.pdf", "application/pdf", 10)
        service.add_vault_file(OWNER, item_id=session.item_id, size=10)
        version = service.store.get(session.item_id).version

        again = service.add_vault_file(OWNER, item_id=session.item_id, size=10)

        assert again.id == session.item_id
        item = service.store.get(session.item_id)
        assert item.version == version
        assert not item.is_pending_upload

    def test_growing_size_is_charged_against_quota(self, service, settings):
        settings.storage_quota_bytes = 1000
        ids = [
            service.get_upload_signed_url(OWNER, f"{n}.pdf", "application/pdf", 0).item_id
            for n in range(3)
        ]
        service.add_vault_file(OWNER, item_id=ids[0], size=1000)

        with pytest.raises(ResourceExhaustedError) as exc_info:
            service.add_vault_file(OWNER, item_id=ids[1], size=1000)

        assert exc_info.value.details["used"] == 1000
        assert service.store.get(ids[1]).is_pending_upload
        assert service.store.total_size(OWNER) == 1000

    def test_declared_size_is_not_charged_twice(self, service, settings):
        settings.storage_quota_bytes = 1000
        session = service.get_upload_signed_url(OWNER, "a.pdf", "application/pdf", 800)
        service.add_vault_file(OWNER, item_id=session.item_id, size=900)
        assert service.store.total_size(OWNER) == 900

    def test_missing_item(self, service):
        with pytest.raises(NotFoundError):
            service.add_vault_file(OWNER, item_id="no-such-item")

    def test_deleted_item_cannot_be_finalized(self, service):
        session = service.get_upload_signed_url(OWNER, "a.pdf", "application/pdf", 10)
        service.delete_item(OWNER, session.item_id)
        with pytest.raises(NotFoundError):
            service.add_vault_file(OWNER, item_id=session.item_id)

    def test_folder_cannot_be_finalized(self, service):
        docs = service.create_folder(OWNER, "Docs")
        with pytest.raises(InvalidArgumentError):
            service.add_vault_file(OWNER, item_id=docs.id)

    def test_requires_write_access(self, service):
        session = service.get_upload_signed_url(OWNER, "a.pdf", "application/pdf", 10)
        with pytest.raises(PermissionDeniedError):
            service.add_vault_file(OTHER, item_id=session.item_id)

    def test_inline_creation(self, service):
        result = service.add_vault_file(
            OWNER, name="scan.png", storage_path=f"vault/{OWNER}/root/1_scan.png",
            size=5, mime_type="image/png",
        )
        item = service.store.get(result.id)
        assert item.path == "/scan.png"
        assert item.storage_provider == "gcs"
        assert not item.is_pending_upload
        assert item.file_type == "image"

    def test_inline_creation_rejects_foreign_storage_path(self, service):
        with pytest.raises(InvalidArgumentError):
            service.add_vault_file(
                OWNER, name="scan.png", storage_path=f"vault/{OTHER}/root/1_scan.png",
                size=5, mime_type="image/png",
            )
