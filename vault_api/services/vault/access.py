"""
Vault Access Control

Resolves a principal's effective access level on an item and guards
operations against it.

Rules:
- The owner (item.user_id) always resolves to OWNER
- Soft-deleted items resolve to NONE for everyone else
- A principal absent from shared_with resolves to NONE, whatever the
  permission lists say
- Shared principals resolve to WRITE when listed in can_write, READ when
  listed in can_read, NONE otherwise
"""

import logging
from typing import List, Optional, Tuple

from vault_api.errors import InvalidArgumentError, NotFoundError, PermissionDeniedError
from .sanitization import require_item_id
from .schemas import AccessLevel, ItemPermissions, VaultItem
from .store import ItemStore

logger = logging.getLogger(__name__)


def resolve_access(item: VaultItem, principal_id: str) -> AccessLevel:
    """Return the effective access level of ``principal_id`` on ``item``"""
    if item.user_id == principal_id:
        return AccessLevel.OWNER
    if item.is_deleted:
        return AccessLevel.NONE
    if principal_id not in item.shared_with:
        return AccessLevel.NONE
    if principal_id in item.permissions.can_write:
        return AccessLevel.WRITE
    if principal_id in item.permissions.can_read:
        return AccessLevel.READ
    return AccessLevel.NONE


def require_access(item: VaultItem, principal_id: str, required: AccessLevel) -> AccessLevel:
    """
    Check that ``principal_id`` holds at least ``required`` on ``item``.

    Returns:
        The resolved access level

    Raises:
        PermissionDeniedError: If the access level is insufficient
    """
    level = resolve_access(item, principal_id)
    if not level.satisfies(required):
        logger.warning(
            f"Access denied: user {principal_id} has {level.value} on item {item.id}, "
            f"needs {required.value}"
        )
        raise PermissionDeniedError(
            f"{required.value.capitalize()} access required for this item",
            details={"item_id": item.id, "access_level": level.value}
        )
    return level


def get_live_item(store: ItemStore, item_id: str) -> VaultItem:
    """Fetch an item that exists and is not soft-deleted"""
    item = store.get(require_item_id(item_id))
    if item is None or item.is_deleted:
        raise NotFoundError("Vault item not found", details={"item_id": item_id})
    return item


def resolve_writable_parent(
    store: ItemStore,
    principal_id: str,
    parent_id: Optional[str]
) -> Optional[VaultItem]:
    """
    Resolve the folder a new item will be created in.

    Returns:
        The parent folder, or None for the root

    Raises:
        NotFoundError: Parent missing or deleted
        InvalidArgumentError: Parent is not a folder
        PermissionDeniedError: Caller cannot write to the parent
    """
    if parent_id is None:
        return None

    parent = store.get(require_item_id(parent_id, "parent id"))
    if parent is None or parent.is_deleted:
        raise NotFoundError("Parent folder not found", details={"parent_id": parent_id})
    if not parent.is_folder:
        raise InvalidArgumentError("Parent must be a folder", details={"parent_id": parent_id})
    require_access(parent, principal_id, AccessLevel.WRITE)
    return parent


def child_ownership(
    parent: Optional[VaultItem],
    principal_id: str
) -> Tuple[str, List[str], ItemPermissions]:
    """
    Ownership and grants for a new child of ``parent`` created by ``principal_id``.

    A child always belongs to its folder's owner and starts with the
    folder's grants, so a collaborator keeps write access to what they
    created. Later changes to the folder's grants are not cascaded.
    """
    if parent is None:
        return principal_id, [], ItemPermissions()
    return (
        parent.user_id,
        list(parent.shared_with),
        parent.permissions.model_copy(deep=True),
    )
