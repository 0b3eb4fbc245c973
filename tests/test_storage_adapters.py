"""
Tests for the object storage adapters
"""

import re
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from google.api_core import exceptions as gcloud_exceptions

from vault_api.config import VaultSettings
from vault_api.services.storage import (
    GCSStorageAdapter,
    S3StorageAdapter,
    StorageConfigurationError,
    StorageError,
    build_object_key,
    get_storage_adapter,
    reset_storage_adapters,
)


@pytest.fixture
def storage_settings(tmp_path):
    return VaultSettings(
        _env_file=None,
        data_dir=tmp_path,
        gcs_bucket_name="vault-primary",
        s3_bucket_name="vault-secondary",
    )


class TestBuildObjectKey:

    def test_root_key(self):
        key = build_object_key("user-alice", "report.pdf")
        assert re.fullmatch(r"vault/user-alice/root/\d{13}_report\.pdf", key)

    def test_folder_key(self):
        key = build_object_key("user-alice", "report.pdf", "folder-123")
        assert key.startswith("vault/user-alice/folder-123/")

    def test_unsafe_characters_replaced(self):
        key = build_object_key("user/../x", "my report.pdf")
        assert key.startswith("vault/user_.._x/root/")
        assert key.endswith("_my_report.pdf")


class TestS3StorageAdapter:

    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.generate_presigned_url.return_value = "https://s3.example/signed"
        return client

    @pytest.fixture
    def adapter(self, storage_settings, client):
        return S3StorageAdapter(settings=storage_settings, client=client)

    def test_upload_url(self, adapter, client):
        url = adapter.generate_upload_url("vault/u/root/1_a.pdf", "application/pdf", 300, {"owner": "u"})

        assert url == "https://s3.example/signed"
        client.generate_presigned_url.assert_called_once_with(
            "put_object",
            Params={
                "Bucket": "vault-secondary",
                "Key": "vault/u/root/1_a.pdf",
                "ContentType": "application/pdf",
                "Metadata": {"owner": "u"},
            },
            ExpiresIn=300,
            HttpMethod="PUT",
        )

    def test_download_url(self, adapter, client):
        adapter.generate_download_url("vault/u/root/1_a.pdf", 3600)
        client.generate_presigned_url.assert_called_once_with(
            "get_object",
            Params={"Bucket": "vault-secondary", "Key": "vault/u/root/1_a.pdf"},
            ExpiresIn=3600,
        )

    def test_delete(self, adapter, client):
        adapter.delete_object("vault/u/root/1_a.pdf")
        client.delete_object.assert_called_once_with(Bucket="vault-secondary", Key="vault/u/root/1_a.pdf")

    def test_client_errors_wrapped(self, adapter, client):
        error = ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "DeleteObject")
        client.delete_object.side_effect = error
        client.generate_presigned_url.side_effect = error
        with pytest.raises(StorageError):
            adapter.delete_object("k")
        with pytest.raises(StorageError):
            adapter.generate_upload_url("k", "text/plain", 60)

    def test_missing_bucket(self, tmp_path):
        adapter = S3StorageAdapter(settings=VaultSettings(_env_file=None, data_dir=tmp_path, s3_bucket_name=""))
        with pytest.raises(StorageConfigurationError):
            adapter.generate_download_url("k", 60)


class TestGCSStorageAdapter:

    @pytest.fixture
    def client(self):
        return MagicMock()

    @pytest.fixture
    def blob(self, client):
        blob = client.bucket.return_value.blob.return_value
        blob.generate_signed_url.return_value = "https://storage.googleapis.com/signed"
        return blob

    @pytest.fixture
    def adapter(self, storage_settings, client):
        return GCSStorageAdapter(settings=storage_settings, client=client)

    def test_upload_url(self, adapter, client, blob):
        url = adapter.generate_upload_url("vault/u/root/1_a.pdf", "application/pdf", 300, {"owner": "u"})

        assert url == "https://storage.googleapis.com/signed"
        client.bucket.assert_called_with("vault-primary")
        client.bucket.return_value.blob.assert_called_with("vault/u/root/1_a.pdf")
        blob.generate_signed_url.assert_called_once_with(
            version="v4",
            expiration=timedelta(seconds=300),
            method="PUT",
            content_type="application/pdf",
            headers={"x-goog-meta-owner": "u"},
        )

    def test_download_url(self, adapter, blob):
        adapter.generate_download_url("k", 3600)
        blob.generate_signed_url.assert_called_once_with(
            version="v4",
            expiration=timedelta(seconds=3600),
            method="GET",
        )

    def test_signing_errors_wrapped(self, adapter, blob):
        blob.generate_signed_url.side_effect = gcloud_exceptions.Forbidden("no signing key")
        with pytest.raises(StorageError):
            adapter.generate_download_url("k", 60)

    def test_delete_missing_object_is_ok(self, adapter, blob):
        blob.delete.side_effect = gcloud_exceptions.NotFound("gone")
        adapter.delete_object("k")

    def test_delete_failure_wrapped(self, adapter, blob):
        blob.delete.side_effect = gcloud_exceptions.ServiceUnavailable("down")
        with pytest.raises(StorageError):
            adapter.delete_object("k")

    def test_missing_bucket(self, tmp_path):
        adapter = GCSStorageAdapter(settings=VaultSettings(_env_file=None, data_dir=tmp_path, gcs_bucket_name=""))
        with pytest.raises(StorageConfigurationError):
            adapter.generate_upload_url("k", "text/plain", 60)


class TestRegistry:

    @pytest.fixture(autouse=True)
    def clean_registry(self):
        reset_storage_adapters()
        yield
        reset_storage_adapters()

    def test_resolves_and_caches(self):
        adapter = get_storage_adapter("s3")
        assert isinstance(adapter, S3StorageAdapter)
        assert get_storage_adapter("s3") is adapter
        assert isinstance(get_storage_adapter("gcs"), GCSStorageAdapter)

    def test_unknown_provider(self):
        with pytest.raises(StorageConfigurationError):
            get_storage_adapter("ftp")

    def test_reset(self):
        adapter = get_storage_adapter("gcs")
        reset_storage_adapters()
        assert get_storage_adapter("gcs") is not adapter
