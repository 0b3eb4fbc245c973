"""
Google Cloud Storage Adapter

Primary managed backend for the vault, issuing V4 signed URLs.

Configuration via environment variables:
- VAULT_GCS_BUCKET_NAME=my-bucket
- VAULT_GCS_PROJECT=my-project (optional)
- VAULT_GCS_CREDENTIALS_FILE=/path/to/service-account.json (optional, ADC if empty)
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional, Dict, Any

from google.api_core import exceptions as gcloud_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import storage

from vault_api.config import VaultSettings, get_settings
from .base import StorageAdapter, StorageError, StorageConfigurationError

logger = logging.getLogger(__name__)


class GCSStorageAdapter(StorageAdapter):
    """Google Cloud Storage adapter using V4 signed URLs"""

    provider = "gcs"

    def __init__(self, settings: Optional[VaultSettings] = None, client: Any = None):
        self._settings = settings or get_settings()
        self._client = client

    @property
    def bucket_name(self) -> str:
        return self._settings.gcs_bucket_name

    def _get_client(self):
        """Get or create the storage client."""
        if self._client is not None:
            return self._client

        if not self.bucket_name:
            raise StorageConfigurationError(
                "Cloud Storage is not configured. Set VAULT_GCS_BUCKET_NAME=your-bucket"
            )

        project = self._settings.gcs_project or None
        try:
            if self._settings.gcs_credentials_file:
                self._client = storage.Client.from_service_account_json(
                    self._settings.gcs_credentials_file, project=project
                )
            else:
                self._client = storage.Client(project=project)
        except (auth_exceptions.GoogleAuthError, OSError) as e:
            raise StorageConfigurationError(f"Cloud Storage credentials unavailable: {e}") from e

        logger.info(f"Cloud Storage client initialized for bucket: {self.bucket_name}")
        return self._client

    def _blob(self, key: str):
        return self._get_client().bucket(self.bucket_name).blob(key)

    def generate_upload_url(
        self,
        key: str,
        content_type: str,
        ttl_seconds: int,
        metadata: Optional[Dict[str, str]] = None
    ) -> str:
        """
        Generate a V4 signed PUT URL.

        Metadata is bound into the signature as ``x-goog-meta-*`` headers,
        so the uploading client must send the same headers.
        """
        headers = {f"x-goog-meta-{k}": str(v) for k, v in (metadata or {}).items()}
        try:
            return self._blob(key).generate_signed_url(
                version="v4",
                expiration=timedelta(seconds=ttl_seconds),
                method="PUT",
                content_type=content_type,
                headers=headers or None,
            )
        except (gcloud_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError, ValueError) as e:
            logger.error(f"Failed to generate Cloud Storage upload URL for {key}: {e}")
            raise StorageError(f"Upload URL generation failed: {e}") from e

    def generate_download_url(self, key: str, ttl_seconds: int) -> str:
        """Generate a V4 signed GET URL."""
        try:
            return self._blob(key).generate_signed_url(
                version="v4",
                expiration=timedelta(seconds=ttl_seconds),
                method="GET",
            )
        except (gcloud_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError, ValueError) as e:
            logger.error(f"Failed to generate Cloud Storage download URL for {key}: {e}")
            raise StorageError(f"Download URL generation failed: {e}") from e

    def delete_object(self, key: str) -> None:
        """Delete an object; a missing object counts as deleted."""
        try:
            self._blob(key).delete()
            logger.info(f"Deleted Cloud Storage object: {key}")
        except gcloud_exceptions.NotFound:
            logger.debug(f"Cloud Storage object already absent: {key}")
        except gcloud_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to delete Cloud Storage object {key}: {e}")
            raise StorageError(f"Delete failed: {e}") from e
