"""
Vault Service Package

Hierarchical, access-controlled file and folder metadata in front of
signed-URL object storage.

Public API:
- Schemas: VaultItem, VaultItemView, AccessLevel, Capability, etc.
- Core: VaultService class, get_vault_service()
- Store: ItemStore, ItemFilter
- Access: resolve_access(), require_access()
- Paths: compute_path(), propagate_rename()

Usage:
    from vault_api.services.vault import get_vault_service
    from vault_api.services.vault.schemas import VaultItem
"""

# Re-export schemas
from .schemas import (
    AccessLevel,
    Capability,
    ItemPermissions,
    ItemType,
    VaultItem,
    VaultItemView,
    UploadSession,
    FinalizeResult,
    DeleteResult,
    DownloadUrl,
    SharingInfo,
    StorageInfo,
    ShareLink,
    ShareLinkAccess,
    AuditLogEntry,
    EncryptionMetadata,
    ItemEncryptionMetadata,
)

# Re-export store
from .store import ItemStore, ItemFilter, ItemUpdate

# Re-export access and path helpers
from .access import resolve_access, require_access
from .paths import MAX_UPDATE_DEPTH, compute_path, propagate_rename

# Re-export core
from .core import VaultService, get_vault_service

__all__ = [
    # Schemas
    "AccessLevel",
    "Capability",
    "ItemPermissions",
    "ItemType",
    "VaultItem",
    "VaultItemView",
    "UploadSession",
    "FinalizeResult",
    "DeleteResult",
    "DownloadUrl",
    "SharingInfo",
    "StorageInfo",
    "ShareLink",
    "ShareLinkAccess",
    "AuditLogEntry",
    "EncryptionMetadata",
    "ItemEncryptionMetadata",
    # Store
    "ItemStore",
    "ItemFilter",
    "ItemUpdate",
    # Access / paths
    "resolve_access",
    "require_access",
    "MAX_UPDATE_DEPTH",
    "compute_path",
    "propagate_rename",
    # Core
    "VaultService",
    "get_vault_service",
]
