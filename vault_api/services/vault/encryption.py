"""
Vault Encryption Metadata

Per-file record of client-side encryption parameters, kept beside the
item. Only the owner writes it; anyone who can read the item can fetch it.
"""

import logging
from typing import Optional

from vault_api.errors import InvalidArgumentError, NotFoundError, PermissionDeniedError
from . import audit
from .access import get_live_item, require_access
from .schemas import AccessLevel, EncryptionMetadata, ItemEncryptionMetadata, ItemType
from .store import utcnow

logger = logging.getLogger(__name__)


def _load(service, item_id: str) -> Optional[ItemEncryptionMetadata]:
    conn = service.store.connect()
    try:
        row = conn.execute("""
            SELECT item_id, user_id, metadata, created_at, updated_at
            FROM vault_encryption_metadata WHERE item_id = ?
        """, (item_id,)).fetchone()
    finally:
        conn.close()
    if row is None:
        return None
    return ItemEncryptionMetadata(
        item_id=row["item_id"],
        user_id=row["user_id"],
        encryption_metadata=EncryptionMetadata.model_validate_json(row["metadata"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def store_encryption_metadata(
    service,
    user_id: str,
    item_id: str,
    metadata: EncryptionMetadata
) -> ItemEncryptionMetadata:
    """
    Create or replace the encryption record of a file (owner only).

    Raises:
        NotFoundError: Item missing or deleted
        InvalidArgumentError: Item is a folder
        PermissionDeniedError: Caller is not the owner
    """
    item = get_live_item(service.store, item_id)
    if item.user_id != user_id:
        raise PermissionDeniedError(
            "Only the owner can store encryption metadata",
            details={"item_id": item.id}
        )
    if item.type != ItemType.FILE:
        raise InvalidArgumentError("Only files carry encryption metadata", details={"item_id": item.id})

    now = utcnow().isoformat()
    conn = service.store.connect()
    try:
        conn.execute("""
            INSERT INTO vault_encryption_metadata (item_id, user_id, metadata, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(item_id) DO UPDATE SET
                metadata = excluded.metadata,
                updated_at = excluded.updated_at
        """, (item.id, user_id, metadata.model_dump_json(), now, now))
        conn.commit()
    except Exception as e:
        conn.rollback()
        logger.error(f"Failed to store encryption metadata for item {item.id}: {e}")
        raise
    finally:
        conn.close()

    logger.info(f"Stored encryption metadata for item {item.id}")
    audit.log_event(service.store, user_id, audit.STORE_ENCRYPTION_METADATA, item.id, {
        "algorithm": metadata.algorithm,
        "streaming_mode": metadata.streaming_mode,
    })
    return _load(service, item.id)


def get_encryption_metadata(service, user_id: str, item_id: str) -> ItemEncryptionMetadata:
    """
    Fetch the encryption record of an item the caller can read.

    Raises:
        NotFoundError: Item missing or deleted, or no record stored
        PermissionDeniedError: Caller lacks read access
    """
    item = get_live_item(service.store, item_id)
    require_access(item, user_id, AccessLevel.READ)

    record = _load(service, item.id)
    if record is None:
        raise NotFoundError("Encryption metadata not found", details={"item_id": item.id})
    return record
