"""
Vault Share Links

Public links to a single file, with optional password, expiry and access
limit. Links are created and revoked by the item owner; opening a link
issues a download URL under the owner's rights.
"""

import hashlib
import hmac
import logging
import secrets
import sqlite3
from datetime import datetime, timedelta, UTC
from typing import List, Optional

from vault_api.errors import (
    InternalError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
)
from vault_api.services.storage import StorageError
from . import audit
from .access import get_live_item
from .sanitization import sanitize_share_password, validate_share_id
from .schemas import ItemType, ShareLink, ShareLinkAccess
from .store import utcnow

logger = logging.getLogger(__name__)


def hash_share_password(password: str, iterations: int, salt: Optional[bytes] = None) -> str:
    """Return ``salt_hex:hash_hex`` using PBKDF2-SHA512"""
    salt = salt or secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha512", password.encode("utf-8"), salt, iterations)
    return f"{salt.hex()}:{digest.hex()}"


def verify_share_password(password: str, stored: str, iterations: int) -> bool:
    try:
        salt_hex, digest_hex = stored.split(":", 1)
        salt = bytes.fromhex(salt_hex)
    except ValueError:
        logger.error("Malformed share-link password hash")
        return False
    candidate = hash_share_password(password, iterations, salt).split(":", 1)[1]
    return hmac.compare_digest(candidate, digest_hex)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _row_to_link(service, row: sqlite3.Row) -> ShareLink:
    return ShareLink(
        id=row["id"],
        item_id=row["item_id"],
        owner_id=row["owner_id"],
        share_link=f"{service.settings.share_link_base_url.rstrip('/')}/vault/share/{row['id']}",
        allow_download=bool(row["allow_download"]),
        has_password=row["password_hash"] is not None,
        expires_at=row["expires_at"],
        max_access_count=row["max_access_count"],
        access_count=row["access_count"],
        is_revoked=bool(row["is_revoked"]),
        created_at=row["created_at"],
    )


def _get_link_row(service, share_id: str) -> Optional[sqlite3.Row]:
    conn = service.store.connect()
    try:
        return conn.execute("SELECT * FROM vault_share_links WHERE id = ?", (share_id,)).fetchone()
    finally:
        conn.close()


def create_share_link(
    service,
    user_id: str,
    item_id: str,
    expires_at: Optional[datetime] = None,
    allow_download: bool = True,
    password: Optional[str] = None,
    max_access_count: Optional[int] = None
) -> ShareLink:
    """
    Create a public share link for a file the caller owns.

    Args:
        service: VaultService instance
        user_id: Owner creating the link
        item_id: File to share
        expires_at: Optional expiry (must be in the future)
        allow_download: Whether opening the link yields a download URL
        password: Optional password, stored as a salted PBKDF2 hash
        max_access_count: Optional number of times the link may be opened

    Returns:
        ShareLink (without the password hash)
    """
    item = get_live_item(service.store, item_id)
    if item.user_id != user_id:
        raise PermissionDeniedError("Only the owner can create share links", details={"item_id": item_id})
    if item.type != ItemType.FILE:
        raise InvalidArgumentError("Only files can be shared by link")
    if item.is_pending_upload:
        raise InvalidArgumentError("The upload of this file is not finished")

    expires_at = _as_utc(expires_at)
    if expires_at is not None and expires_at <= utcnow():
        raise InvalidArgumentError("Expiry must be in the future")
    if max_access_count is not None and max_access_count < 1:
        raise InvalidArgumentError("Access limit must be at least 1")

    password = sanitize_share_password(password)
    password_hash = (
        hash_share_password(password, service.settings.share_link_password_iterations)
        if password else None
    )

    share_id = secrets.token_urlsafe(24)
    now = utcnow()

    conn = service.store.connect()
    try:
        conn.execute("""
            INSERT INTO vault_share_links (
                id, item_id, owner_id, allow_download, password_hash,
                expires_at, max_access_count, access_count, is_revoked, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, 0, 0, ?)
        """, (
            share_id, item.id, user_id, int(allow_download), password_hash,
            expires_at.isoformat() if expires_at else None,
            max_access_count, now.isoformat(),
        ))
        conn.commit()
    except Exception as e:
        conn.rollback()
        logger.error(f"Failed to create share link: {e}")
        raise
    finally:
        conn.close()

    logger.info(f"Share link created for item {item.id} by {user_id}")
    audit.log_event(service.store, user_id, audit.CREATE_SHARE_LINK, item.id, {
        "share_id": share_id,
        "has_password": password_hash is not None,
        "expires_at": expires_at,
        "max_access_count": max_access_count,
    })
    return _row_to_link(service, _get_link_row(service, share_id))


def list_share_links(service, user_id: str, item_id: str) -> List[ShareLink]:
    """Active share links of an item the caller owns"""
    item = get_live_item(service.store, item_id)
    if item.user_id != user_id:
        raise PermissionDeniedError("Only the owner can list share links", details={"item_id": item_id})

    conn = service.store.connect()
    try:
        rows = conn.execute("""
            SELECT * FROM vault_share_links
            WHERE item_id = ? AND is_revoked = 0
            ORDER BY created_at DESC
        """, (item_id,)).fetchall()
    finally:
        conn.close()
    return [_row_to_link(service, row) for row in rows]


def access_share_link(
    service,
    share_id: str,
    password: Optional[str] = None,
    accessor_id: Optional[str] = None
) -> ShareLinkAccess:
    """
    Open a share link.

    Checks revocation, expiry, password and access limit, counts the
    access, and issues a download URL when the link allows it.

    Raises:
        InvalidArgumentError: Malformed share id
        NotFoundError: Unknown link, or the file was deleted
        PermissionDeniedError: Revoked, expired, wrong password or limit reached
    """
    if not validate_share_id(share_id):
        raise InvalidArgumentError("Invalid share link")

    row = _get_link_row(service, share_id)
    if row is None:
        raise NotFoundError("Share link not found")
    if row["is_revoked"]:
        raise PermissionDeniedError("Share link has been revoked")
    expires_at = _as_utc(datetime.fromisoformat(row["expires_at"])) if row["expires_at"] else None
    if expires_at is not None and expires_at <= utcnow():
        raise PermissionDeniedError("Share link has expired")
    if row["password_hash"]:
        supplied = sanitize_share_password(password)
        if not supplied or not verify_share_password(
            supplied, row["password_hash"], service.settings.share_link_password_iterations
        ):
            logger.warning(f"Wrong password for share link {share_id}")
            raise PermissionDeniedError("Incorrect password")

    item = get_live_item(service.store, row["item_id"])

    # Access is counted only once the download URL is ready
    download_url = None
    url_expires_at = None
    if row["allow_download"]:
        ttl = service.settings.download_url_ttl_seconds
        try:
            download_url = service.storage_adapter(item.storage_provider).generate_download_url(
                item.storage_path, ttl
            )
        except StorageError as e:
            logger.error(f"Share link download URL failed for item {item.id}: {e}")
            raise InternalError("Could not prepare the download") from e
        url_expires_at = utcnow() + timedelta(seconds=ttl)

    conn = service.store.connect()
    try:
        cursor = conn.execute("""
            UPDATE vault_share_links
            SET access_count = access_count + 1, last_accessed_at = ?
            WHERE id = ? AND is_revoked = 0
              AND (max_access_count IS NULL OR access_count < max_access_count)
        """, (utcnow().isoformat(), share_id))
        conn.commit()
    except Exception as e:
        conn.rollback()
        logger.error(f"Failed to count share link access: {e}")
        raise
    finally:
        conn.close()
    if cursor.rowcount == 0:
        raise PermissionDeniedError("Share link access limit reached")

    audit.log_event(service.store, row["owner_id"], audit.ACCESS_SHARE_LINK, item.id, {
        "share_id": share_id, "accessor_id": accessor_id,
    })
    return ShareLinkAccess(
        item_id=item.id,
        name=item.name,
        size=item.size,
        mime_type=item.mime_type,
        download_url=download_url,
        expires_at=url_expires_at,
    )


def revoke_share_link(service, user_id: str, share_id: str) -> None:
    """Revoke a link the caller owns; revoking twice is a no-op"""
    if not validate_share_id(share_id):
        raise InvalidArgumentError("Invalid share link")
    row = _get_link_row(service, share_id)
    if row is None:
        raise NotFoundError("Share link not found")
    if row["owner_id"] != user_id:
        raise PermissionDeniedError("Only the owner can revoke this share link")
    if row["is_revoked"]:
        return

    conn = service.store.connect()
    try:
        conn.execute(
            "UPDATE vault_share_links SET is_revoked = 1, revoked_at = ? WHERE id = ?",
            (utcnow().isoformat(), share_id)
        )
        conn.commit()
    except Exception as e:
        conn.rollback()
        logger.error(f"Failed to revoke share link: {e}")
        raise
    finally:
        conn.close()

    logger.info(f"Share link {share_id} revoked by {user_id}")
    audit.log_event(service.store, user_id, audit.REVOKE_SHARE_LINK, row["item_id"], {"share_id": share_id})


def revoke_links_for_items(service, item_ids: List[str]) -> int:
    """Revoke every live link of the given items (used when items are deleted)"""
    if not item_ids:
        return 0
    placeholders = ", ".join("?" for _ in item_ids)
    conn = service.store.connect()
    try:
        cursor = conn.execute(
            f"UPDATE vault_share_links SET is_revoked = 1, revoked_at = ? "
            f"WHERE is_revoked = 0 AND item_id IN ({placeholders})",
            (utcnow().isoformat(), *item_ids)
        )
        conn.commit()
    except Exception as e:
        conn.rollback()
        logger.error(f"Failed to revoke share links of deleted items: {e}")
        raise
    finally:
        conn.close()
    return cursor.rowcount
