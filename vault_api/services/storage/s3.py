"""
S3-Compatible Storage Adapter

Secondary backend for the vault. Works with AWS S3 and S3-compatible
services (Backblaze B2, MinIO, LocalStack) through boto3 presigned URLs.

Configuration via environment variables:
- VAULT_S3_BUCKET_NAME=my-bucket
- VAULT_S3_REGION=us-east-1
- VAULT_S3_ACCESS_KEY_ID=xxx (optional, uses IAM roles if empty)
- VAULT_S3_SECRET_ACCESS_KEY=xxx (optional)
- VAULT_S3_ENDPOINT_URL=https://s3.us-west-004.backblazeb2.com (for B2/MinIO)
"""

from __future__ import annotations

import logging
from typing import Optional, Dict, Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from vault_api.config import VaultSettings, get_settings
from .base import StorageAdapter, StorageError, StorageConfigurationError

logger = logging.getLogger(__name__)


class S3StorageAdapter(StorageAdapter):
    """
    S3-compatible storage adapter.

    The boto3 client is created lazily on first use so that a process
    configured for the primary backend never needs S3 credentials.
    """

    provider = "s3"

    def __init__(self, settings: Optional[VaultSettings] = None, client: Any = None):
        self._settings = settings or get_settings()
        self._client = client

    @property
    def bucket_name(self) -> str:
        return self._settings.s3_bucket_name

    def _get_client(self):
        """Get or create the boto3 S3 client."""
        if self._client is not None:
            return self._client

        if not self.bucket_name:
            raise StorageConfigurationError(
                "S3 storage is not configured. Set VAULT_S3_BUCKET_NAME=your-bucket"
            )

        client_kwargs: Dict[str, Any] = {
            "service_name": "s3",
            "region_name": self._settings.s3_region,
            "config": Config(
                signature_version="s3v4",
                retries={"max_attempts": 3, "mode": "adaptive"}
            )
        }

        if self._settings.s3_access_key_id and self._settings.s3_secret_access_key:
            client_kwargs["aws_access_key_id"] = self._settings.s3_access_key_id
            client_kwargs["aws_secret_access_key"] = self._settings.s3_secret_access_key
            logger.debug("Using explicit S3 credentials")
        else:
            logger.debug("Using IAM role/instance profile for S3 credentials")

        if self._settings.s3_endpoint_url:
            client_kwargs["endpoint_url"] = self._settings.s3_endpoint_url
            logger.info(f"Using custom S3 endpoint: {self._settings.s3_endpoint_url}")

        self._client = boto3.client(**client_kwargs)
        logger.info(f"S3 client initialized for bucket: {self.bucket_name}")
        return self._client

    def generate_upload_url(
        self,
        key: str,
        content_type: str,
        ttl_seconds: int,
        metadata: Optional[Dict[str, str]] = None
    ) -> str:
        """
        Generate a presigned PUT URL.

        Args:
            key: Object key
            content_type: Content type the client must send
            ttl_seconds: URL lifetime
            metadata: Object metadata stored with the upload

        Returns:
            Presigned URL string

        Raises:
            StorageError: If URL generation fails
        """
        client = self._get_client()
        params: Dict[str, Any] = {
            "Bucket": self.bucket_name,
            "Key": key,
            "ContentType": content_type,
        }
        if metadata:
            params["Metadata"] = {k: str(v) for k, v in metadata.items()}

        try:
            return client.generate_presigned_url(
                "put_object",
                Params=params,
                ExpiresIn=ttl_seconds,
                HttpMethod="PUT"
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to generate S3 upload URL for {key}: {e}")
            raise StorageError(f"Upload URL generation failed: {e}") from e

    def generate_download_url(self, key: str, ttl_seconds: int) -> str:
        """Generate a presigned GET URL."""
        client = self._get_client()
        try:
            return client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket_name, "Key": key},
                ExpiresIn=ttl_seconds
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to generate S3 download URL for {key}: {e}")
            raise StorageError(f"Download URL generation failed: {e}") from e

    def delete_object(self, key: str) -> None:
        """Delete an object. S3 reports success for missing keys."""
        client = self._get_client()
        try:
            client.delete_object(Bucket=self.bucket_name, Key=key)
            logger.info(f"Deleted S3 object: {key}")
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to delete S3 object {key}: {e}")
            raise StorageError(f"Delete failed: {e}") from e
