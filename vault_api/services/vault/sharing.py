"""
Vault Sharing Logic

Per-principal grants on items. Only the owner may change grants.
``shared_with`` and the permission lists are always written together in
a single version-guarded update, so a principal never appears in one
without the other.
"""

import logging
from typing import Dict, List, Optional, Tuple

from vault_api.errors import InvalidArgumentError, PermissionDeniedError
from . import audit
from .access import get_live_item, require_access
from .schemas import (
    AccessLevel,
    Capability,
    ItemPermissions,
    SharedPrincipal,
    SharingInfo,
    VaultItem,
)

logger = logging.getLogger(__name__)


def _require_owner(item: VaultItem, user_id: str, action: str) -> None:
    if item.user_id != user_id:
        logger.warning(f"User {user_id} attempted to {action} item {item.id} they do not own")
        raise PermissionDeniedError(
            f"Only the owner can {action} this item",
            details={"item_id": item.id}
        )


def _parse_capability(capability) -> Capability:
    try:
        return Capability(capability)
    except ValueError as e:
        raise InvalidArgumentError(
            f"Unknown capability: {capability}",
            details={"allowed": [c.value for c in Capability]}
        ) from e


def _validate_principal(item: VaultItem, principal_id: str) -> str:
    if not principal_id or not isinstance(principal_id, str) or not principal_id.strip():
        raise InvalidArgumentError("Principal id is required")
    principal_id = principal_id.strip()
    if principal_id == item.user_id:
        raise InvalidArgumentError("The owner already has full access")
    return principal_id


def _with_grant(
    item: VaultItem,
    principal_id: str,
    capability: Optional[Capability],
    replace: bool
) -> Tuple[List[str], ItemPermissions]:
    """
    Grants of ``item`` after setting ``principal_id`` to ``capability``.

    With ``replace`` False grants only widen (a read share never removes an
    existing write grant). ``capability`` None removes the principal.
    """
    shared_with = [p for p in item.shared_with if p != principal_id]
    can_read = [p for p in item.permissions.can_read if p != principal_id]
    can_write = [p for p in item.permissions.can_write if p != principal_id]

    had_write = principal_id in item.permissions.can_write
    if capability is not None:
        shared_with.append(principal_id)
        can_read.append(principal_id)
        if capability == Capability.WRITE or (had_write and not replace):
            can_write.append(principal_id)

    return shared_with, ItemPermissions(can_read=can_read, can_write=can_write)


def share_item(
    service,
    user_id: str,
    item_id: str,
    principal_id: str,
    capability: Capability = Capability.READ
) -> VaultItem:
    """
    Grant ``principal_id`` read or write access to an item.

    Write implies read. Sharing again with a narrower capability keeps the
    wider grant; use update_item_permissions to downgrade.

    Raises:
        NotFoundError: Item missing or deleted
        PermissionDeniedError: Caller is not the owner
        InvalidArgumentError: Bad principal or capability
    """
    item = get_live_item(service.store, item_id)
    _require_owner(item, user_id, "share")
    principal_id = _validate_principal(item, principal_id)
    capability = _parse_capability(capability)

    shared_with, permissions = _with_grant(item, principal_id, capability, replace=False)
    updated = service.store.update(
        item.id,
        {"shared_with": shared_with, "permissions": permissions},
        expected_version=item.version
    )

    logger.info(f"Item {item.id} shared with {principal_id} ({capability.value}) by {user_id}")
    audit.log_event(service.store, user_id, audit.SHARE, item.id, {
        "principal_id": principal_id, "capability": capability.value,
    })
    return updated


def unshare_item(service, user_id: str, item_id: str, principal_id: str) -> VaultItem:
    """Remove every grant ``principal_id`` holds on an item (idempotent)"""
    item = get_live_item(service.store, item_id)
    _require_owner(item, user_id, "unshare")
    principal_id = _validate_principal(item, principal_id)

    if principal_id not in item.shared_with and principal_id not in item.permissions.can_read \
            and principal_id not in item.permissions.can_write:
        return item

    shared_with, permissions = _with_grant(item, principal_id, None, replace=True)
    updated = service.store.update(
        item.id,
        {"shared_with": shared_with, "permissions": permissions},
        expected_version=item.version
    )

    logger.info(f"Access of {principal_id} to item {item.id} revoked by {user_id}")
    audit.log_event(service.store, user_id, audit.REVOKE_ACCESS, item.id, {
        "principal_id": principal_id,
    })
    return updated


def update_item_permissions(
    service,
    user_id: str,
    item_id: str,
    grants: Dict[str, Optional[Capability]]
) -> VaultItem:
    """
    Set the exact capability of several principals in one write.

    Args:
        grants: principal_id -> read/write, or None to revoke
    """
    item = get_live_item(service.store, item_id)
    _require_owner(item, user_id, "change permissions of")
    if not grants:
        raise InvalidArgumentError("No permission changes supplied")

    working = item
    for principal_id, capability in grants.items():
        principal_id = _validate_principal(item, principal_id)
        parsed = _parse_capability(capability) if capability is not None else None
        shared_with, permissions = _with_grant(working, principal_id, parsed, replace=True)
        working = working.model_copy(update={"shared_with": shared_with, "permissions": permissions})

    updated = service.store.update(
        item.id,
        {"shared_with": working.shared_with, "permissions": working.permissions},
        expected_version=item.version
    )

    logger.info(f"Permissions of item {item.id} updated for {len(grants)} principals by {user_id}")
    audit.log_event(service.store, user_id, audit.UPDATE_PERMISSIONS, item.id, {
        "grants": {p: (c.value if isinstance(c, Capability) else c) for p, c in grants.items()},
    })
    return updated


def get_item_sharing_info(service, user_id: str, item_id: str) -> SharingInfo:
    """Owner and grants of an item, visible to anyone with read access"""
    item = get_live_item(service.store, item_id)
    level = require_access(item, user_id, AccessLevel.READ)

    shares = [
        SharedPrincipal(
            principal_id=principal_id,
            permission=Capability.WRITE if principal_id in item.permissions.can_write else Capability.READ,
        )
        for principal_id in item.shared_with
    ]
    return SharingInfo(
        item_id=item.id,
        owner_id=item.user_id,
        is_owner=level == AccessLevel.OWNER,
        shares=shares,
    )
