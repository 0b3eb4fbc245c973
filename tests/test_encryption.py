"""
Tests for per-file encryption metadata records
"""

import pytest

from vault_api.errors import InvalidArgumentError, NotFoundError, PermissionDeniedError
from vault_api.services.vault.schemas import Capability, EncryptionMetadata, KeyDerivationParams

from conftest import OWNER, OTHER, THIRD


def streaming_metadata(**overrides):
    data = dict(
        streaming_mode=True,
        header_base64="aGVhZGVy",
        encrypted_file_url="vault/user-alice/root/1_report.pdf",
        encryption_key_id="key-1",
        algorithm="xchacha20poly1305",
        key_derivation_params=KeyDerivationParams(salt="c2FsdA", iterations=3, mem_limit=65536),
    )
    data.update(overrides)
    return EncryptionMetadata(**data)


class TestStoreEncryptionMetadata:

    def test_store_and_fetch(self, service, upload):
        report = upload(name="report.pdf")
        stored = service.store_encryption_metadata(OWNER, report.id, streaming_metadata())

        assert stored.item_id == report.id
        assert stored.user_id == OWNER
        fetched = service.get_encryption_metadata(OWNER, report.id)
        assert fetched.encryption_metadata.header_base64 == "aGVhZGVy"
        assert fetched.encryption_metadata.key_derivation_params.iterations == 3
        assert fetched.encryption_metadata.chunk_urls is None

    def test_replacing_keeps_created_at(self, service, upload):
        report = upload(name="report.pdf")
        first = service.store_encryption_metadata(OWNER, report.id, streaming_metadata())
        second = service.store_encryption_metadata(
            OWNER, report.id,
            EncryptionMetadata(header_url="h", chunk_urls=["c0", "c1"], encryption_key_id="key-2"),
        )

        assert second.created_at == first.created_at
        assert second.updated_at >= first.updated_at
        assert second.encryption_metadata.chunk_urls == ["c0", "c1"]
        assert second.encryption_metadata.streaming_mode is None

    def test_only_owner_stores(self, service, upload):
        report = upload(name="report.pdf")
        service.share_item(OWNER, report.id, OTHER, Capability.WRITE)
        with pytest.raises(PermissionDeniedError):
            service.store_encryption_metadata(OTHER, report.id, streaming_metadata())

    def test_folders_rejected(self, service):
        docs = service.create_folder(OWNER, "Docs")
        with pytest.raises(InvalidArgumentError):
            service.store_encryption_metadata(OWNER, docs.id, streaming_metadata())

    def test_deleted_item(self, service, upload):
        report = upload(name="report.pdf")
        service.delete_item(OWNER, report.id)
        with pytest.raises(NotFoundError):
            service.store_encryption_metadata(OWNER, report.id, streaming_metadata())

    def test_audited(self, service, upload):
        report = upload(name="report.pdf")
        service.store_encryption_metadata(OWNER, report.id, streaming_metadata())
        entry = next(
            e for e in service.get_audit_logs(OWNER) if e.action == "store_encryption_metadata"
        )
        assert entry.item_id == report.id
        assert entry.details["streaming_mode"] is True


class TestGetEncryptionMetadata:

    def test_reader_may_fetch(self, service, upload):
        report = upload(name="report.pdf")
        service.store_encryption_metadata(OWNER, report.id, streaming_metadata())
        service.share_item(OWNER, report.id, OTHER, Capability.READ)
        assert service.get_encryption_metadata(OTHER, report.id).user_id == OWNER

    def test_stranger_denied(self, service, upload):
        report = upload(name="report.pdf")
        service.store_encryption_metadata(OWNER, report.id, streaming_metadata())
        with pytest.raises(PermissionDeniedError):
            service.get_encryption_metadata(THIRD, report.id)

    def test_missing_record(self, service, upload):
        report = upload(name="report.pdf")
        with pytest.raises(NotFoundError) as exc_info:
            service.get_encryption_metadata(OWNER, report.id)
        assert exc_info.value.message == "Encryption metadata not found"

    def test_hidden_once_item_deleted(self, service, upload):
        report = upload(name="report.pdf")
        service.store_encryption_metadata(OWNER, report.id, streaming_metadata())
        service.delete_item(OWNER, report.id)
        with pytest.raises(NotFoundError):
            service.get_encryption_metadata(OWNER, report.id)
