"""
Vault Upload Sessions

Two-phase file upload:

1. request_upload validates the request, obtains a short-lived signed PUT
   URL from the configured backend, and only then persists a pending item
   carrying the cached URL. A backend failure leaves no item behind.
2. finalize_upload clears the cached URL and records the final size,
   MIME type and encryption metadata. Finalizing twice is harmless.
"""

import logging
import uuid
from datetime import timedelta
from typing import Any, Dict, Optional

from vault_api.errors import InternalError, InvalidArgumentError, ResourceExhaustedError
from vault_api.services.storage import StorageError, build_object_key
from . import audit
from .access import child_ownership, get_live_item, require_access, resolve_writable_parent
from .paths import compute_path, ensure_unique_name
from .sanitization import classify_file_type, sanitize_file_name, sanitize_mime_type
from .schemas import AccessLevel, FinalizeResult, ItemType, UploadSession, VaultItem
from .store import utcnow

logger = logging.getLogger(__name__)


def _validate_mime_type(service, mime_type: Any) -> str:
    sanitized = sanitize_mime_type(mime_type)
    if sanitized not in service.settings.allowed_mime_types:
        raise InvalidArgumentError(
            f"File type not allowed: {mime_type}",
            details={"mime_type": mime_type}
        )
    return sanitized


def _validate_size(service, size: Optional[int]) -> Optional[int]:
    if size is None:
        return None
    if not isinstance(size, int) or isinstance(size, bool) or size < 0:
        raise InvalidArgumentError("File size must be a non-negative integer")
    limit = service.settings.max_file_size_bytes
    if size > limit:
        raise InvalidArgumentError(
            f"File exceeds the maximum size of {limit} bytes",
            details={"size": size, "max_size": limit}
        )
    return size


def _validate_encryption(is_encrypted: bool, encryption_key_id: Optional[str]) -> None:
    if is_encrypted and not encryption_key_id:
        raise InvalidArgumentError("Encrypted files require an encryption key id")


def _check_quota(service, owner_id: str, size: Optional[int]) -> None:
    if not size:
        return
    quota = service.settings.storage_quota_bytes
    used = service.store.total_size(owner_id)
    if used + size > quota:
        raise ResourceExhaustedError(
            "Storage quota exceeded",
            details={"used": used, "requested": size, "quota": quota}
        )


def request_upload(
    service,
    user_id: str,
    file_name: str,
    mime_type: str,
    size: int,
    parent_id: Optional[str] = None,
    is_encrypted: bool = False,
    encryption_key_id: Optional[str] = None
) -> UploadSession:
    """
    Pre-create a file item and issue a signed upload URL.

    Args:
        service: VaultService instance
        user_id: Calling principal
        file_name: Client-side file name (sanitized here)
        mime_type: Declared content type
        size: Declared size in bytes
        parent_id: Destination folder, None for root
        is_encrypted: Client encrypts before upload
        encryption_key_id: Key used by the client when encrypted

    Returns:
        UploadSession with the signed URL and the new item id

    Raises:
        InvalidArgumentError: Bad name, type, size or encryption data
        NotFoundError: Parent folder missing
        PermissionDeniedError: Caller cannot write to the parent
        AlreadyExistsError: A sibling already has the name
        ResourceExhaustedError: Storage quota exceeded
        InternalError: The storage backend failed (no item is persisted)
    """
    name = sanitize_file_name(file_name)
    content_type = _validate_mime_type(service, mime_type)
    size = _validate_size(service, size)
    _validate_encryption(is_encrypted, encryption_key_id)

    parent = resolve_writable_parent(service.store, user_id, parent_id)
    owner_id, shared_with, permissions = child_ownership(parent, user_id)
    path = compute_path(name, parent)
    ensure_unique_name(service.store, owner_id, parent_id, name)
    _check_quota(service, owner_id, size)

    adapter = service.storage_adapter()
    storage_path = build_object_key(owner_id, name, parent_id)
    ttl = service.settings.upload_url_ttl_seconds
    metadata = {
        "owner": owner_id,
        "uploaded-by": user_id,
        "encrypted": "true" if is_encrypted else "false",
    }
    try:
        signed_url = adapter.generate_upload_url(storage_path, content_type, ttl, metadata)
    except StorageError as e:
        logger.error(f"Upload URL generation failed for user {user_id}: {e}")
        raise InternalError("Could not prepare the upload") from e

    now = utcnow()
    expires_at = now + timedelta(seconds=ttl)
    item = VaultItem(
        id=str(uuid.uuid4()),
        user_id=owner_id,
        type=ItemType.FILE,
        name=name,
        parent_id=parent_id,
        path=path,
        storage_provider=adapter.provider,
        storage_path=storage_path,
        size=size,
        mime_type=content_type,
        file_type=classify_file_type(content_type),
        cached_upload_url=signed_url,
        cached_upload_url_expiry=expires_at,
        is_encrypted=is_encrypted,
        encryption_key_id=encryption_key_id if is_encrypted else None,
        encrypted_by=user_id if is_encrypted else None,
        shared_with=shared_with,
        permissions=permissions,
        created_by=user_id,
        created_at=now,
        updated_at=now,
    )
    service.store.create(item)

    logger.info(f"Upload session created: item {item.id} for user {user_id} via {adapter.provider}")
    audit.log_event(service.store, user_id, audit.REQUEST_UPLOAD, item.id, {
        "name": name, "size": size, "storage_provider": adapter.provider,
    })

    return UploadSession(
        signed_url=signed_url,
        item_id=item.id,
        storage_provider=adapter.provider,
        storage_path=storage_path,
        parent_path_in_vault=parent.path if parent else "",
        is_encrypted=is_encrypted,
        expires_at=expires_at,
    )


def finalize_upload(
    service,
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
    """
    Mark an upload complete.

    With ``item_id`` the pre-created item is finalized; without it a file
    item is created directly from ``name`` and ``storage_path``.

    Raises:
        NotFoundError: Item missing or deleted
        PermissionDeniedError: Caller lacks write access
        InvalidArgumentError: Item is a folder, or bad metadata
    """
    if item_id is None:
        return _create_finalized(
            service, user_id, name, parent_id, storage_path,
            size, mime_type, is_encrypted, encryption_key_id
        )

    item = get_live_item(service.store, item_id)
    if item.type != ItemType.FILE:
        raise InvalidArgumentError("Only files can be finalized", details={"item_id": item_id})
    require_access(item, user_id, AccessLevel.WRITE)

    changes: Dict[str, Any] = {
        "cached_upload_url": None,
        "cached_upload_url_expiry": None,
    }
    size = _validate_size(service, size)
    if size is not None:
        changes["size"] = size
    if mime_type is not None:
        content_type = _validate_mime_type(service, mime_type)
        changes["mime_type"] = content_type
        changes["file_type"] = classify_file_type(content_type)
    if is_encrypted:
        _validate_encryption(is_encrypted, encryption_key_id)
        changes.update({
            "is_encrypted": True,
            "encryption_key_id": encryption_key_id,
            "encrypted_by": user_id,
        })

    # total_size already counts the size recorded when the upload was requested
    if size is not None and size > (item.size or 0):
        _check_quota(service, item.user_id, size - (item.size or 0))

    pending = {key: value for key, value in changes.items() if getattr(item, key) != value}
    if not pending:
        logger.debug(f"Upload {item_id} already finalized")
        return FinalizeResult(id=item.id, is_encrypted=item.is_encrypted)

    updated = service.store.update(item.id, pending, expected_version=item.version)

    logger.info(f"Upload finalized: item {item.id} by user {user_id}")
    audit.log_event(service.store, user_id, audit.FINALIZE_UPLOAD, item.id, {
        "size": updated.size, "is_encrypted": updated.is_encrypted,
    })
    return FinalizeResult(id=updated.id, is_encrypted=updated.is_encrypted)


def _create_finalized(
    service,
    user_id: str,
    name: Optional[str],
    parent_id: Optional[str],
    storage_path: Optional[str],
    size: Optional[int],
    mime_type: Optional[str],
    is_encrypted: bool,
    encryption_key_id: Optional[str]
) -> FinalizeResult:
    """Create an already-uploaded file item in one step"""
    file_name = sanitize_file_name(name)
    content_type = _validate_mime_type(service, mime_type)
    size = _validate_size(service, size)
    _validate_encryption(is_encrypted, encryption_key_id)

    parent = resolve_writable_parent(service.store, user_id, parent_id)
    owner_id, shared_with, permissions = child_ownership(parent, user_id)

    allowed_prefixes = (f"vault/{owner_id}/", f"vault/{user_id}/")
    if not storage_path or not isinstance(storage_path, str) or not storage_path.startswith(allowed_prefixes):
        raise InvalidArgumentError("Storage path is missing or outside the caller's vault")

    path = compute_path(file_name, parent)
    ensure_unique_name(service.store, owner_id, parent_id, file_name)
    _check_quota(service, owner_id, size)

    now = utcnow()
    item = VaultItem(
        id=str(uuid.uuid4()),
        user_id=owner_id,
        type=ItemType.FILE,
        name=file_name,
        parent_id=parent_id,
        path=path,
        storage_provider=service.settings.storage_provider,
        storage_path=storage_path,
        size=size,
        mime_type=content_type,
        file_type=classify_file_type(content_type),
        is_encrypted=is_encrypted,
        encryption_key_id=encryption_key_id if is_encrypted else None,
        encrypted_by=user_id if is_encrypted else None,
        shared_with=shared_with,
        permissions=permissions,
        created_by=user_id,
        created_at=now,
        updated_at=now,
    )
    service.store.create(item)

    logger.info(f"File item {item.id} created directly by user {user_id}")
    audit.log_event(service.store, user_id, audit.FINALIZE_UPLOAD, item.id, {
        "name": file_name, "size": size, "inline": True,
    })
    return FinalizeResult(id=item.id, is_encrypted=is_encrypted)
