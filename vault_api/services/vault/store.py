"""
Vault Item Store

SQLite persistence for vault items. Every query predicate the service
needs (owner, parent, deletion flag, shared-with membership, sibling name)
is evaluated by SQLite, so no caller ever filters records in memory.

Writes are guarded by a per-row ``version``: a write that names an
expected version fails with ConcurrentModificationError when the row has
moved on. ``apply_batch`` applies a whole rename/move/delete write set in
one transaction.
"""

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from vault_api.db.utils import get_sqlite_connection
from vault_api.errors import ConcurrentModificationError, NotFoundError, AlreadyExistsError
from .schemas import ItemPermissions, ItemType, VaultItem

logger = logging.getLogger(__name__)

ITEM_COLUMNS = (
    "id", "user_id", "type", "name", "parent_id", "path",
    "is_deleted", "deleted_at",
    "storage_provider", "storage_path", "size", "mime_type", "file_type",
    "cached_upload_url", "cached_upload_url_expiry",
    "cached_download_url", "cached_download_url_expiry",
    "is_encrypted", "encryption_key_id", "encrypted_by",
    "shared_with", "can_read", "can_write",
    "created_by", "created_at", "updated_at", "version",
)

_BOOL_COLUMNS = {"is_deleted", "is_encrypted"}
_JSON_COLUMNS = {"shared_with", "can_read", "can_write"}

_ORDERINGS = {
    "name": "name COLLATE NOCASE ASC",
    "created_at": "created_at ASC",
    "deleted_at_desc": "deleted_at DESC",
}


def utcnow() -> datetime:
    return datetime.now(UTC)


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC).isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    return value


@dataclass
class ItemFilter:
    """Store-level query predicates; unset fields do not constrain"""
    user_id: Optional[str] = None
    parent_id: Optional[str] = None
    root_only: bool = False
    is_deleted: Optional[bool] = False
    shared_with: Optional[str] = None
    name: Optional[str] = None
    item_type: Optional[ItemType] = None
    exclude_id: Optional[str] = None
    pending_upload: Optional[bool] = None
    upload_expired_before: Optional[datetime] = None
    order_by: str = "name"
    limit: Optional[int] = None


@dataclass
class ItemUpdate:
    """One row of a batched write"""
    item_id: str
    expected_version: Optional[int]
    changes: Dict[str, Any] = field(default_factory=dict)


class ItemStore:
    """SQLite-backed store of VaultItem records"""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()
        logger.info(f"Vault item store ready at {self.db_path}")

    def connect(self) -> sqlite3.Connection:
        return get_sqlite_connection(self.db_path, check_same_thread=False)

    def _init_db(self):
        """Initialize SQLite database"""
        conn = self.connect()
        try:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS vault_items (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    type TEXT NOT NULL CHECK (type IN ('file', 'folder')),
                    name TEXT NOT NULL,
                    parent_id TEXT,
                    path TEXT NOT NULL,
                    is_deleted INTEGER NOT NULL DEFAULT 0,
                    deleted_at TEXT,
                    storage_provider TEXT,
                    storage_path TEXT,
                    size INTEGER,
                    mime_type TEXT,
                    file_type TEXT,
                    cached_upload_url TEXT,
                    cached_upload_url_expiry TEXT,
                    cached_download_url TEXT,
                    cached_download_url_expiry TEXT,
                    is_encrypted INTEGER NOT NULL DEFAULT 0,
                    encryption_key_id TEXT,
                    encrypted_by TEXT,
                    shared_with TEXT NOT NULL DEFAULT '[]',
                    can_read TEXT NOT NULL DEFAULT '[]',
                    can_write TEXT NOT NULL DEFAULT '[]',
                    created_by TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    version INTEGER NOT NULL DEFAULT 1
                );

                CREATE INDEX IF NOT EXISTS idx_vault_items_owner_parent
                    ON vault_items(user_id, parent_id, is_deleted);
                CREATE INDEX IF NOT EXISTS idx_vault_items_parent
                    ON vault_items(parent_id, is_deleted);
                CREATE INDEX IF NOT EXISTS idx_vault_items_pending
                    ON vault_items(cached_upload_url_expiry)
                    WHERE cached_upload_url IS NOT NULL;
                CREATE UNIQUE INDEX IF NOT EXISTS idx_vault_items_live_name
                    ON vault_items(user_id, COALESCE(parent_id, ''), name)
                    WHERE is_deleted = 0;

                CREATE TABLE IF NOT EXISTS vault_share_links (
                    id TEXT PRIMARY KEY,
                    item_id TEXT NOT NULL,
                    owner_id TEXT NOT NULL,
                    allow_download INTEGER NOT NULL DEFAULT 1,
                    password_hash TEXT,
                    expires_at TEXT,
                    max_access_count INTEGER,
                    access_count INTEGER NOT NULL DEFAULT 0,
                    is_revoked INTEGER NOT NULL DEFAULT 0,
                    revoked_at TEXT,
                    last_accessed_at TEXT,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_vault_share_links_item
                    ON vault_share_links(item_id);

                CREATE TABLE IF NOT EXISTS vault_audit_log (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    action TEXT NOT NULL,
                    item_id TEXT,
                    details TEXT NOT NULL DEFAULT '{}',
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_vault_audit_user
                    ON vault_audit_log(user_id, created_at);

                CREATE TABLE IF NOT EXISTS vault_encryption_metadata (
                    item_id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    metadata TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
            """)
            conn.commit()
        finally:
            conn.close()

    # ===== Row mapping =====

    @staticmethod
    def _row_to_item(row: sqlite3.Row) -> VaultItem:
        data = dict(row)
        for column in _JSON_COLUMNS:
            data[column] = json.loads(data[column] or "[]")
        for column in _BOOL_COLUMNS:
            data[column] = bool(data[column])
        data["permissions"] = ItemPermissions(
            can_read=data.pop("can_read"),
            can_write=data.pop("can_write"),
        )
        return VaultItem(**data)

    @staticmethod
    def _encode_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
        """Translate VaultItem field changes into column values"""
        encoded: Dict[str, Any] = {}
        for key, value in changes.items():
            if key == "permissions":
                perms = value if isinstance(value, ItemPermissions) else ItemPermissions(**value)
                encoded["can_read"] = json.dumps(perms.can_read)
                encoded["can_write"] = json.dumps(perms.can_write)
            elif key in _JSON_COLUMNS:
                encoded[key] = json.dumps(list(value))
            elif key in ITEM_COLUMNS and key not in ("id", "version", "created_at"):
                encoded[key] = _encode(value)
            else:
                raise ValueError(f"Column cannot be updated: {key}")
        return encoded

    # ===== Contract =====

    def create(self, item: VaultItem) -> VaultItem:
        """Insert a new item record"""
        values = self._encode_changes(item.model_dump(exclude={"id", "version", "created_at"}))
        values.update({
            "id": item.id,
            "version": item.version,
            "created_at": _encode(item.created_at),
        })
        columns = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)

        conn = self.connect()
        try:
            conn.execute(
                f"INSERT INTO vault_items ({columns}) VALUES ({placeholders})",
                tuple(values.values())
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            conn.rollback()
            raise AlreadyExistsError(
                f"Item {item.id} or a live sibling named '{item.name}' already exists",
                details={"item_id": item.id, "name": item.name, "parent_id": item.parent_id}
            ) from e
        except Exception as e:
            conn.rollback()
            logger.error(f"Failed to create vault item: {e}")
            raise
        finally:
            conn.close()

        logger.debug(f"Created vault item {item.id} at {item.path}")
        return item

    def get(self, item_id: str) -> Optional[VaultItem]:
        """Fetch an item by id, deleted or not"""
        conn = self.connect()
        try:
            row = conn.execute("SELECT * FROM vault_items WHERE id = ?", (item_id,)).fetchone()
        finally:
            conn.close()
        return self._row_to_item(row) if row else None

    def update(
        self,
        item_id: str,
        changes: Dict[str, Any],
        expected_version: Optional[int] = None,
        touch: bool = True
    ) -> VaultItem:
        """
        Apply a partial update to one item.

        Args:
            item_id: Item to update
            changes: VaultItem field -> new value
            expected_version: Fail unless the row is still at this version
            touch: Bump version and updated_at (False for cache-only writes)

        Returns:
            The updated item

        Raises:
            NotFoundError: If the item does not exist
            ConcurrentModificationError: If the version check fails
        """
        self.apply_batch([ItemUpdate(item_id, expected_version, changes)], touch=touch)
        item = self.get(item_id)
        if item is None:
            raise NotFoundError(f"Vault item {item_id} not found")
        return item

    def apply_batch(self, updates: Iterable[ItemUpdate], touch: bool = True) -> int:
        """
        Apply every update in one transaction; all rows change or none do.

        Returns:
            Number of rows written
        """
        updates = list(updates)
        if not updates:
            return 0

        now = _encode(utcnow())
        conn = self.connect()
        try:
            for update in updates:
                values = self._encode_changes(update.changes)
                assignments = [f"{column} = ?" for column in values]
                params: List[Any] = list(values.values())
                if touch:
                    assignments.extend(["version = version + 1", "updated_at = ?"])
                    params.append(now)
                if not assignments:
                    continue

                sql = f"UPDATE vault_items SET {', '.join(assignments)} WHERE id = ?"
                params.append(update.item_id)
                if update.expected_version is not None:
                    sql += " AND version = ?"
                    params.append(update.expected_version)

                cursor = conn.execute(sql, params)
                if cursor.rowcount == 0:
                    exists = conn.execute(
                        "SELECT 1 FROM vault_items WHERE id = ?", (update.item_id,)
                    ).fetchone()
                    if exists is None:
                        raise NotFoundError(f"Vault item {update.item_id} not found")
                    raise ConcurrentModificationError(
                        f"Vault item {update.item_id} was modified concurrently",
                        details={"item_id": update.item_id}
                    )
            conn.commit()
        except sqlite3.IntegrityError as e:
            conn.rollback()
            raise AlreadyExistsError(
                "An item with this name already exists in the destination folder"
            ) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

        return len(updates)

    def query(self, item_filter: ItemFilter) -> List[VaultItem]:
        """Return items matching every set predicate of ``item_filter``"""
        clauses, params = self._where(item_filter)
        sql = "SELECT * FROM vault_items"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY " + _ORDERINGS.get(item_filter.order_by, _ORDERINGS["name"])
        if item_filter.limit is not None:
            sql += " LIMIT ?"
            params.append(item_filter.limit)

        conn = self.connect()
        try:
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()
        return [self._row_to_item(row) for row in rows]

    def soft_delete(self, item_id: str, expected_version: Optional[int] = None) -> VaultItem:
        """Mark a single item deleted; deleting a deleted item is a no-op"""
        item = self.get(item_id)
        if item is None:
            raise NotFoundError(f"Vault item {item_id} not found")
        if item.is_deleted:
            return item
        return self.update(
            item_id,
            {"is_deleted": True, "deleted_at": utcnow()},
            expected_version=expected_version
        )

    # ===== Aggregates =====

    def usage_by_file_type(self, user_id: str) -> Tuple[Dict[str, Tuple[int, int]], int]:
        """
        Summarize a user's non-deleted items.

        Returns:
            ({file_type: (count, bytes)}, folder_count)
        """
        conn = self.connect()
        try:
            rows = conn.execute("""
                SELECT COALESCE(file_type, 'other') AS file_type,
                       COUNT(*) AS item_count,
                       COALESCE(SUM(size), 0) AS total_size
                FROM vault_items
                WHERE user_id = ? AND is_deleted = 0 AND type = 'file'
                GROUP BY COALESCE(file_type, 'other')
            """, (user_id,)).fetchall()
            folder_count = conn.execute("""
                SELECT COUNT(*) FROM vault_items
                WHERE user_id = ? AND is_deleted = 0 AND type = 'folder'
            """, (user_id,)).fetchone()[0]
        finally:
            conn.close()
        return {row["file_type"]: (row["item_count"], row["total_size"]) for row in rows}, folder_count

    def total_size(self, user_id: str) -> int:
        conn = self.connect()
        try:
            row = conn.execute("""
                SELECT COALESCE(SUM(size), 0) FROM vault_items
                WHERE user_id = ? AND is_deleted = 0 AND type = 'file'
            """, (user_id,)).fetchone()
        finally:
            conn.close()
        return int(row[0])

    @staticmethod
    def _where(item_filter: ItemFilter) -> Tuple[List[str], List[Any]]:
        clauses: List[str] = []
        params: List[Any] = []

        if item_filter.user_id is not None:
            clauses.append("user_id = ?")
            params.append(item_filter.user_id)
        if item_filter.root_only:
            clauses.append("parent_id IS NULL")
        elif item_filter.parent_id is not None:
            clauses.append("parent_id = ?")
            params.append(item_filter.parent_id)
        if item_filter.is_deleted is not None:
            clauses.append("is_deleted = ?")
            params.append(int(item_filter.is_deleted))
        if item_filter.shared_with is not None:
            clauses.append(
                "EXISTS (SELECT 1 FROM json_each(vault_items.shared_with) WHERE json_each.value = ?)"
            )
            params.append(item_filter.shared_with)
        if item_filter.name is not None:
            clauses.append("name = ?")
            params.append(item_filter.name)
        if item_filter.item_type is not None:
            clauses.append("type = ?")
            params.append(_encode(item_filter.item_type))
        if item_filter.exclude_id is not None:
            clauses.append("id != ?")
            params.append(item_filter.exclude_id)
        if item_filter.pending_upload is True:
            clauses.append("cached_upload_url IS NOT NULL")
        elif item_filter.pending_upload is False:
            clauses.append("cached_upload_url IS NULL")
        if item_filter.upload_expired_before is not None:
            clauses.append("cached_upload_url_expiry < ?")
            params.append(_encode(item_filter.upload_expired_before))

        return clauses, params
