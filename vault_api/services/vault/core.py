"""
Vault Service Core Logic

Orchestrates every vault operation: folder creation, two-phase uploads,
listing, rename, move, soft delete, sharing, share links, downloads,
trash and usage reporting.

Access model:
- Owners have full control of their items
- Other principals act only through explicit per-item grants
- Soft-deleted items are invisible to everyone but their owner
- File contents never pass through the service; clients talk to the
  storage backend through short-lived signed URLs
"""

import logging
import threading
import uuid
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from vault_api.config import VaultSettings, get_settings
from vault_api.errors import InternalError, InvalidArgumentError, NotFoundError, PermissionDeniedError
from vault_api.services.storage import StorageAdapter, StorageError, get_storage_adapter
from vault_api.structured_logger import log_with_context
from . import audit
from . import encryption as encryption_mod
from . import sharing as sharing_mod
from . import share_links as share_links_mod
from . import uploads as uploads_mod
from .access import (
    child_ownership,
    get_live_item,
    require_access,
    resolve_access,
    resolve_writable_parent,
)
from .paths import (
    compute_path,
    ensure_unique_name,
    is_same_or_descendant_path,
    propagate_rename,
    walk_descendants,
)
from .sanitization import require_item_id, sanitize_file_name, sanitize_folder_name
from .schemas import (
    AccessLevel,
    AuditLogEntry,
    Capability,
    DeleteResult,
    DownloadUrl,
    EncryptionMetadata,
    FileTypeUsage,
    FinalizeResult,
    ItemEncryptionMetadata,
    ItemType,
    SharingInfo,
    ShareLink,
    ShareLinkAccess,
    StorageInfo,
    UploadSession,
    VaultItem,
    VaultItemView,
)
from .store import ItemFilter, ItemStore, ItemUpdate, utcnow

logger = logging.getLogger(__name__)

FILE_TYPES = ("image", "video", "audio", "document", "other")


class VaultService:
    """
    Vault storage service

    Args:
        settings: Configuration (defaults to get_settings())
        store: Item store (defaults to SQLite at settings.vault_db)
        adapter_factory: provider tag or None -> StorageAdapter
    """

    def __init__(
        self,
        settings: Optional[VaultSettings] = None,
        store: Optional[ItemStore] = None,
        adapter_factory: Optional[Callable[[Optional[str]], StorageAdapter]] = None
    ):
        self.settings = settings or get_settings()
        self.store = store or ItemStore(self.settings.vault_db)
        self._adapter_factory = adapter_factory or get_storage_adapter
        logger.info("Vault service initialized")

    def storage_adapter(self, provider: Optional[str] = None) -> StorageAdapter:
        """Adapter for ``provider``; None selects the currently configured backend"""
        try:
            return self._adapter_factory(provider or self.settings.storage_provider)
        except StorageError as e:
            logger.error(f"Storage backend {provider or self.settings.storage_provider} unavailable: {e}")
            raise InternalError("Storage backend unavailable") from e

    # ===== Folders =====

    def create_folder(self, user_id: str, name: str, parent_id: Optional[str] = None) -> VaultItem:
        """
        Create a folder at the root or inside a writable folder.

        Raises:
            InvalidArgumentError: Bad name, or parent is a file
            NotFoundError: Parent missing or deleted
            PermissionDeniedError: Caller cannot write to the parent
            AlreadyExistsError: A sibling already has the name
        """
        folder_name = sanitize_folder_name(name)
        parent = resolve_writable_parent(self.store, user_id, parent_id)
        owner_id, shared_with, permissions = child_ownership(parent, user_id)
        ensure_unique_name(self.store, owner_id, parent_id, folder_name)

        now = utcnow()
        folder = VaultItem(
            id=str(uuid.uuid4()),
            user_id=owner_id,
            type=ItemType.FOLDER,
            name=folder_name,
            parent_id=parent_id,
            path=compute_path(folder_name, parent),
            shared_with=shared_with,
            permissions=permissions,
            created_by=user_id,
            created_at=now,
            updated_at=now,
        )
        self.store.create(folder)

        logger.info(f"Folder {folder.id} created at {folder.path} by {user_id}")
        audit.log_event(self.store, user_id, audit.CREATE_FOLDER, folder.id, {"path": folder.path})
        return folder

    # ===== Uploads =====

    def get_upload_signed_url(
        self,
        user_id: str,
        file_name: str,
        mime_type: str,
        file_size: int,
        parent_id: Optional[str] = None,
        is_encrypted: bool = False,
        encryption_key_id: Optional[str] = None
    ) -> UploadSession:
        return uploads_mod.request_upload(
            self, user_id, file_name, mime_type, file_size,
            parent_id, is_encrypted, encryption_key_id
        )

    def add_vault_file(
        self,
        user_id: str,
        item_id: Optional[str] = None,
        name: Optional[str] = None,
        parent_id: Optional[str] = None,
        storage_path: Optional[str] = None,
        size: Optional[int] = None,
        mime_type: Optional[str] = None,
        is_encrypted: bool = False,
        encryption_key_id: Optional[str] = None
    ) -> FinalizeResult:
        return uploads_mod.finalize_upload(
            self, user_id, item_id, name, parent_id, storage_path,
            size, mime_type, is_encrypted, encryption_key_id
        )

    # ===== Listing =====

    def get_items(self, user_id: str, parent_id: Optional[str] = None) -> List[VaultItemView]:
        """
        Live items under ``parent_id`` (root when None) that the caller owns
        or that are shared with them, folders first, then by name.
        """
        base = dict(parent_id=parent_id, root_only=parent_id is None, is_deleted=False)
        owned = self.store.query(ItemFilter(user_id=user_id, **base))
        shared = self.store.query(ItemFilter(shared_with=user_id, **base))

        merged: Dict[str, VaultItem] = {item.id: item for item in owned}
        for item in shared:
            merged.setdefault(item.id, item)

        views = [
            VaultItemView.for_principal(item, resolve_access(item, user_id))
            for item in merged.values()
        ]
        views.sort(key=lambda v: (v.type != ItemType.FOLDER, v.name.lower(), v.name))
        return views

    def get_item(self, user_id: str, item_id: str) -> VaultItemView:
        item = get_live_item(self.store, item_id)
        level = require_access(item, user_id, AccessLevel.READ)
        return VaultItemView.for_principal(item, level)

    def get_deleted_items(self, user_id: str, limit: int = 100) -> List[VaultItem]:
        """The caller's soft-deleted items, most recently deleted first"""
        return self.store.query(ItemFilter(
            user_id=user_id, is_deleted=True, order_by="deleted_at_desc", limit=limit
        ))

    # ===== Rename / move =====

    def rename_item(self, user_id: str, item_id: str, new_name: str) -> VaultItem:
        """
        Rename an item and rewrite the paths of all its descendants.

        Raises:
            NotFoundError: Item missing or deleted
            PermissionDeniedError: Caller lacks write access
            AlreadyExistsError: A sibling already has the name
            ResourceExhaustedError: Subtree exceeds the update ceiling
            ConcurrentModificationError: Item or a descendant changed meanwhile
        """
        item = get_live_item(self.store, item_id)
        require_access(item, user_id, AccessLevel.WRITE)

        name = sanitize_folder_name(new_name) if item.is_folder else sanitize_file_name(new_name)
        if name == item.name:
            return item

        ensure_unique_name(self.store, item.user_id, item.parent_id, name, exclude_id=item.id)
        new_path = compute_path(name, self._parent_of(item))
        old_path = item.path

        propagate_rename(
            self.store, item, {"name": name}, new_path,
            self.settings.max_update_depth, self.settings.max_update_items
        )

        log_with_context(logger, "info", f"Item {item.id} renamed by {user_id}", {
            "item_id": item.id, "old_path": old_path, "new_path": new_path,
        })
        audit.log_event(self.store, user_id, audit.RENAME, item.id, {
            "old_name": item.name, "new_name": name,
        })
        return self.store.get(item.id)

    def move_item(self, user_id: str, item_id: str, new_parent_id: Optional[str]) -> VaultItem:
        """
        Move an item under another folder of the same owner, or to the root.

        Raises:
            NotFoundError: Item or destination missing or deleted
            PermissionDeniedError: Caller cannot write the item or destination,
                or the destination belongs to another owner
            InvalidArgumentError: Destination is a file or inside the item itself
            AlreadyExistsError: Destination already holds the name
        """
        item = get_live_item(self.store, item_id)
        require_access(item, user_id, AccessLevel.WRITE)

        if new_parent_id == item.parent_id:
            return item

        destination = None
        if new_parent_id is not None:
            destination = resolve_writable_parent(self.store, user_id, new_parent_id)
            if destination.user_id != item.user_id:
                raise PermissionDeniedError(
                    "Items can only be moved within their owner's vault",
                    details={"item_id": item.id, "parent_id": new_parent_id}
                )
            if destination.id == item.id or is_same_or_descendant_path(destination.path, item.path):
                raise InvalidArgumentError(
                    "A folder cannot be moved into itself or its own subfolder",
                    details={"item_id": item.id, "parent_id": new_parent_id}
                )

        ensure_unique_name(self.store, item.user_id, new_parent_id, item.name, exclude_id=item.id)
        new_path = compute_path(item.name, destination)
        old_path = item.path

        propagate_rename(
            self.store, item, {"parent_id": new_parent_id}, new_path,
            self.settings.max_update_depth, self.settings.max_update_items
        )

        log_with_context(logger, "info", f"Item {item.id} moved by {user_id}", {
            "item_id": item.id, "old_path": old_path, "new_path": new_path,
        })
        audit.log_event(self.store, user_id, audit.MOVE, item.id, {
            "old_parent_id": item.parent_id, "new_parent_id": new_parent_id,
        })
        return self.store.get(item.id)

    def _parent_of(self, item: VaultItem) -> Optional[VaultItem]:
        if item.parent_id is None:
            return None
        parent = self.store.get(item.parent_id)
        if parent is None:
            logger.error(f"Item {item.id} references missing parent {item.parent_id}")
            raise InternalError("Folder tree is inconsistent", details={"item_id": item.id})
        return parent

    # ===== Delete =====

    def delete_item(self, user_id: str, item_id: str) -> DeleteResult:
        """
        Soft-delete an item and every live descendant in one transaction.

        Only the owner may delete. Deleting an already-deleted item is a
        no-op for its owner.
        """
        item = self.store.get(require_item_id(item_id))
        if item is None or (item.is_deleted and item.user_id != user_id):
            raise NotFoundError("Vault item not found", details={"item_id": item_id})
        if item.user_id != user_id:
            raise PermissionDeniedError("Only the owner can delete this item", details={"item_id": item_id})
        if item.is_deleted:
            return DeleteResult(item_id=item.id, deleted_count=0)

        subtree = [item] + [
            child for child, _depth in walk_descendants(
                self.store, item, self.settings.max_update_depth, self.settings.max_update_items
            )
        ]
        now = utcnow()
        self.store.apply_batch([
            ItemUpdate(node.id, node.version, {"is_deleted": True, "deleted_at": now})
            for node in subtree
        ])

        deleted_ids = [node.id for node in subtree]
        revoked = share_links_mod.revoke_links_for_items(self, deleted_ids)
        if self.settings.delete_objects_on_delete:
            self._delete_objects(subtree)

        log_with_context(logger, "info", f"Item {item.id} soft-deleted by {user_id}", {
            "item_id": item.id, "deleted_count": len(subtree),
        })
        audit.log_event(self.store, user_id, audit.SOFT_DELETE, item.id, {
            "path": item.path, "deleted_count": len(subtree), "revoked_links": revoked,
        })
        return DeleteResult(item_id=item.id, deleted_count=len(subtree))

    def _delete_objects(self, items: List[VaultItem]) -> None:
        """Remove stored objects of deleted files; metadata is already committed"""
        for node in items:
            if node.type != ItemType.FILE or not node.storage_path or not node.storage_provider:
                continue
            try:
                self.storage_adapter(node.storage_provider).delete_object(node.storage_path)
            except (StorageError, InternalError) as e:
                logger.warning(f"Stored object of deleted item {node.id} not removed: {e}")

    # ===== Downloads =====

    def get_download_url(self, user_id: str, item_id: str) -> DownloadUrl:
        """
        Signed download URL for a finalized file the caller can read.

        A cached URL is reused while it stays valid for at least
        ``download_url_min_remaining_seconds``.
        """
        item = get_live_item(self.store, item_id)
        require_access(item, user_id, AccessLevel.READ)
        if item.type != ItemType.FILE:
            raise InvalidArgumentError("Folders cannot be downloaded")
        if item.is_pending_upload or not item.storage_path:
            raise InvalidArgumentError("The upload of this file is not finished")

        now = utcnow()
        min_remaining = timedelta(seconds=self.settings.download_url_min_remaining_seconds)
        if item.cached_download_url and item.cached_download_url_expiry \
                and item.cached_download_url_expiry - now >= min_remaining:
            url, expires_at = item.cached_download_url, item.cached_download_url_expiry
        else:
            ttl = self.settings.download_url_ttl_seconds
            try:
                url = self.storage_adapter(item.storage_provider).generate_download_url(item.storage_path, ttl)
            except StorageError as e:
                logger.error(f"Download URL generation failed for item {item.id}: {e}")
                raise InternalError("Could not prepare the download") from e
            expires_at = now + timedelta(seconds=ttl)
            self.store.update(
                item.id,
                {"cached_download_url": url, "cached_download_url_expiry": expires_at},
                touch=False
            )

        audit.log_event(self.store, user_id, audit.DOWNLOAD, item.id, {"name": item.name})
        return DownloadUrl(
            item_id=item.id,
            download_url=url,
            expires_at=expires_at,
            name=item.name,
            mime_type=item.mime_type,
            size=item.size,
        )

    # ===== Sharing =====

    def share_item(
        self,
        user_id: str,
        item_id: str,
        principal_id: str,
        capability: Capability = Capability.READ
    ) -> VaultItem:
        return sharing_mod.share_item(self, user_id, item_id, principal_id, capability)

    def unshare_item(self, user_id: str, item_id: str, principal_id: str) -> VaultItem:
        return sharing_mod.unshare_item(self, user_id, item_id, principal_id)

    def update_item_permissions(
        self,
        user_id: str,
        item_id: str,
        grants: Dict[str, Optional[Capability]]
    ) -> VaultItem:
        return sharing_mod.update_item_permissions(self, user_id, item_id, grants)

    def get_item_sharing_info(self, user_id: str, item_id: str) -> SharingInfo:
        return sharing_mod.get_item_sharing_info(self, user_id, item_id)

    # ===== Share links =====

    def create_share_link(
        self,
        user_id: str,
        item_id: str,
        expires_at: Optional[datetime] = None,
        allow_download: bool = True,
        password: Optional[str] = None,
        max_access_count: Optional[int] = None
    ) -> ShareLink:
        return share_links_mod.create_share_link(
            self, user_id, item_id, expires_at, allow_download, password, max_access_count
        )

    def list_share_links(self, user_id: str, item_id: str) -> List[ShareLink]:
        return share_links_mod.list_share_links(self, user_id, item_id)

    def access_share_link(
        self,
        share_id: str,
        password: Optional[str] = None,
        accessor_id: Optional[str] = None
    ) -> ShareLinkAccess:
        return share_links_mod.access_share_link(self, share_id, password, accessor_id)

    def revoke_share_link(self, user_id: str, share_id: str) -> None:
        share_links_mod.revoke_share_link(self, user_id, share_id)

    # ===== Encryption metadata =====

    def store_encryption_metadata(
        self,
        user_id: str,
        item_id: str,
        metadata: EncryptionMetadata
    ) -> ItemEncryptionMetadata:
        return encryption_mod.store_encryption_metadata(self, user_id, item_id, metadata)

    def get_encryption_metadata(self, user_id: str, item_id: str) -> ItemEncryptionMetadata:
        return encryption_mod.get_encryption_metadata(self, user_id, item_id)

    # ===== Reporting =====

    def get_storage_info(self, user_id: str) -> StorageInfo:
        """Usage totals of the caller's live items against the quota"""
        by_type, folder_count = self.store.usage_by_file_type(user_id)
        breakdown = {file_type: FileTypeUsage() for file_type in FILE_TYPES}
        for file_type, (count, size) in by_type.items():
            bucket = breakdown.setdefault(file_type if file_type in breakdown else "other", FileTypeUsage())
            bucket.count += count
            bucket.size += size

        total_used = sum(usage.size for usage in breakdown.values())
        quota = self.settings.storage_quota_bytes
        return StorageInfo(
            total_used=total_used,
            file_count=sum(usage.count for usage in breakdown.values()),
            folder_count=folder_count,
            by_file_type=breakdown,
            quota=quota,
            available=max(quota - total_used, 0),
            percent_used=round(total_used / quota * 100) if quota else 100,
        )

    def get_audit_logs(self, user_id: str, limit: int = 100) -> List[AuditLogEntry]:
        return audit.get_audit_logs(self.store, user_id, limit)

    def find_stale_pending_uploads(
        self,
        before: Optional[datetime] = None,
        limit: int = 500
    ) -> List[VaultItem]:
        """
        Pending uploads whose signed URL expired before ``before`` (default now).

        For the external cleanup job; the service never removes them itself.
        """
        return self.store.query(ItemFilter(
            is_deleted=False,
            pending_upload=True,
            upload_expired_before=before or utcnow(),
            order_by="created_at",
            limit=limit,
        ))


# Singleton instance
_vault_service: Optional[VaultService] = None
_vault_service_lock = threading.Lock()


def get_vault_service() -> VaultService:
    """Get the singleton vault service instance"""
    global _vault_service
    if _vault_service is None:
        with _vault_service_lock:
            if _vault_service is None:
                _vault_service = VaultService()
    return _vault_service
