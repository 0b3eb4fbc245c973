"""
Unified Configuration Management for the Vault API

Consolidates all configuration into a single source of truth using Pydantic BaseSettings.
All settings can be overridden via environment variables with VAULT_ prefix.

Usage:
    from vault_api.config import get_settings

    settings = get_settings()
    print(settings.storage_provider)
    print(settings.vault_db)
"""

from pathlib import Path
from typing import List, Literal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_ALLOWED_MIME_TYPES = [
    # Images
    "image/jpeg", "image/png", "image/gif", "image/webp",
    "image/bmp", "image/svg+xml", "image/tiff",
    # Videos
    "video/mp4", "video/mpeg", "video/quicktime", "video/x-msvideo",
    "video/x-ms-wmv", "video/webm", "video/ogg",
    # Audio
    "audio/mpeg", "audio/wav", "audio/mp4", "audio/ogg", "audio/webm",
    "audio/x-m4a", "audio/flac",
    # Documents
    "application/pdf", "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "text/plain", "text/csv", "application/rtf",
    # Archives
    "application/zip", "application/x-rar-compressed", "application/x-tar",
    "application/gzip", "application/x-7z-compressed",
    # Structured data
    "application/json", "application/xml", "text/xml",
]


class VaultSettings(BaseSettings):
    """
    Unified configuration for the Vault API

    All settings can be overridden via environment variables with VAULT_ prefix.
    Example: VAULT_STORAGE_PROVIDER=s3
    """

    model_config = SettingsConfigDict(
        env_prefix="VAULT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================
    # SYSTEM SETTINGS
    # ============================================

    environment: Literal["development", "production", "testing"] = Field(
        default="development",
        description="Application environment"
    )

    debug: bool = Field(
        default=True,
        description="Include technical details in error responses"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    log_json: bool = Field(
        default=False,
        description="Emit structured JSON log lines"
    )

    api_host: str = Field(
        default="localhost",
        description="API server host"
    )

    api_port: int = Field(
        default=8000,
        description="API server port"
    )

    cors_allowed_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:4200"],
        description="Origins allowed to call the API from a browser"
    )

    # ============================================
    # DATA DIRECTORY
    # ============================================

    data_dir: Path = Field(
        default=Path(".vault_data"),
        description="Directory holding the SQLite item store"
    )

    # ============================================
    # OBJECT STORAGE
    # ============================================

    storage_provider: Literal["gcs", "s3"] = Field(
        default="gcs",
        description="Backend used for new items: gcs (primary managed) or s3 (S3-compatible)"
    )

    gcs_bucket_name: str = Field(
        default="",
        description="Google Cloud Storage bucket name"
    )

    gcs_project: str = Field(
        default="",
        description="Google Cloud project (empty uses the environment default)"
    )

    gcs_credentials_file: str = Field(
        default="",
        description="Service account JSON file (empty uses application default credentials)"
    )

    s3_bucket_name: str = Field(
        default="",
        description="S3-compatible bucket name"
    )

    s3_region: str = Field(
        default="us-east-1",
        description="S3 region"
    )

    s3_access_key_id: str = Field(
        default="",
        description="S3 access key ID (optional, uses IAM roles if empty)"
    )

    s3_secret_access_key: str = Field(
        default="",
        description="S3 secret access key (optional)"
    )

    s3_endpoint_url: str = Field(
        default="",
        description="Custom endpoint for S3-compatible services (Backblaze B2, MinIO)"
    )

    # ============================================
    # SIGNED URLS
    # ============================================

    upload_url_ttl_seconds: int = Field(
        default=300,
        ge=1,
        description="Lifetime of pre-create upload URLs"
    )

    download_url_ttl_seconds: int = Field(
        default=3600,
        ge=1,
        description="Lifetime of download URLs"
    )

    download_url_min_remaining_seconds: int = Field(
        default=300,
        ge=0,
        description="Reuse a cached download URL only if it stays valid this long"
    )

    # ============================================
    # UPLOAD POLICY
    # ============================================

    max_file_size_bytes: int = Field(
        default=100 * 1024 * 1024,
        ge=1,
        description="Maximum size of a single file"
    )

    storage_quota_bytes: int = Field(
        default=5 * 1024 * 1024 * 1024,
        ge=0,
        description="Per-user total of non-deleted file sizes"
    )

    allowed_mime_types: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_MIME_TYPES),
        description="MIME types accepted for upload"
    )

    # ============================================
    # TREE MAINTENANCE
    # ============================================

    max_update_depth: int = Field(
        default=10,
        ge=1,
        description="Deepest descendant level a rename, move or delete may touch"
    )

    max_update_items: int = Field(
        default=1000,
        ge=1,
        description="Most descendants a single rename, move or delete may touch"
    )

    delete_objects_on_delete: bool = Field(
        default=True,
        description="Remove stored objects once their items are soft-deleted"
    )

    # ============================================
    # SHARE LINKS
    # ============================================

    share_link_base_url: str = Field(
        default="http://localhost:4200",
        description="Base URL of public share pages"
    )

    share_link_password_iterations: int = Field(
        default=100_000,
        ge=1,
        description="PBKDF2-SHA512 iterations for share-link passwords"
    )

    @field_validator("allowed_mime_types")
    @classmethod
    def normalize_mime_types(cls, value: List[str]) -> List[str]:
        return [mime.strip().lower() for mime in value if mime and mime.strip()]

    @property
    def vault_db(self) -> Path:
        """Path of the vault item store database"""
        return self.data_dir / "vault.db"


@lru_cache()
def get_settings() -> VaultSettings:
    """
    Get cached settings instance

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload configuration.
    """
    return VaultSettings()
