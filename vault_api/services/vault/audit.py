"""
Vault Audit Log

Records who did what to which item. Audit writes never fail the
operation being audited; a failed write is logged and dropped.
"""

import json
import logging
import sqlite3
import uuid
from typing import Any, Dict, List, Optional

from .schemas import AuditLogEntry
from .store import ItemStore, utcnow

logger = logging.getLogger(__name__)

# Actions
CREATE_FOLDER = "create_folder"
REQUEST_UPLOAD = "request_upload"
FINALIZE_UPLOAD = "finalize_upload"
RENAME = "rename"
MOVE = "move"
SOFT_DELETE = "soft_delete"
SHARE = "share"
REVOKE_ACCESS = "revoke_access"
UPDATE_PERMISSIONS = "update_permissions"
DOWNLOAD = "download"
CREATE_SHARE_LINK = "create_share_link"
ACCESS_SHARE_LINK = "access_share_link"
REVOKE_SHARE_LINK = "revoke_share_link"
STORE_ENCRYPTION_METADATA = "store_encryption_metadata"


def log_event(
    store: ItemStore,
    user_id: str,
    action: str,
    item_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
) -> None:
    """
    Append an audit entry

    Args:
        store: Item store whose database holds the audit table
        user_id: Acting principal
        action: One of the action constants
        item_id: Affected item, if any
        details: Extra JSON-serializable context
    """
    conn = None
    try:
        conn = store.connect()
        conn.execute("""
            INSERT INTO vault_audit_log (id, user_id, action, item_id, details, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """, (
            str(uuid.uuid4()),
            user_id,
            action,
            item_id,
            json.dumps(details or {}, default=str),
            utcnow().isoformat(),
        ))
        conn.commit()
    except sqlite3.Error as e:
        if conn is not None:
            conn.rollback()
        logger.error(f"Failed to write audit entry {action} for item {item_id}: {e}")
    finally:
        if conn is not None:
            conn.close()


def get_audit_logs(store: ItemStore, user_id: str, limit: int = 100) -> List[AuditLogEntry]:
    """Audit entries written by ``user_id``, newest first"""
    conn = store.connect()
    try:
        rows = conn.execute("""
            SELECT id, user_id, action, item_id, details, created_at
            FROM vault_audit_log
            WHERE user_id = ?
            ORDER BY created_at DESC
            LIMIT ?
        """, (user_id, limit)).fetchall()
    finally:
        conn.close()

    return [
        AuditLogEntry(
            id=row["id"],
            user_id=row["user_id"],
            action=row["action"],
            item_id=row["item_id"],
            details=json.loads(row["details"] or "{}"),
            created_at=row["created_at"],
        )
        for row in rows
    ]
