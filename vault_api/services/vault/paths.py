"""
Vault Path Synchronization

Every item stores its materialized path. When a folder is renamed or
moved, every live descendant's path is rewritten. The write set is
collected with an explicit work queue bounded by a depth and a size
ceiling, and applied in one transaction: exceeding a ceiling fails the
whole operation before anything is written.
"""

import logging
from collections import deque
from typing import Dict, Iterator, List, Optional, Tuple

from vault_api.errors import AlreadyExistsError, InternalError, ResourceExhaustedError
from .schemas import VaultItem
from .store import ItemFilter, ItemStore, ItemUpdate

logger = logging.getLogger(__name__)

# Default depth ceiling for descendant traversal
MAX_UPDATE_DEPTH = 10

# Default node ceiling for descendant traversal
MAX_UPDATE_ITEMS = 1000


def compute_path(name: str, parent: Optional[VaultItem] = None) -> str:
    """Path of an item called ``name`` inside ``parent`` (None for root)"""
    if parent is None:
        return f"/{name}"
    return f"{parent.path}/{name}"


def is_same_or_descendant_path(path: str, ancestor_path: str) -> bool:
    """True when ``path`` is ``ancestor_path`` or lies beneath it"""
    return path == ancestor_path or path.startswith(ancestor_path + "/")


def ensure_unique_name(
    store: ItemStore,
    owner_id: str,
    parent_id: Optional[str],
    name: str,
    exclude_id: Optional[str] = None
) -> None:
    """
    Reject a name already used by a live sibling.

    Raises:
        AlreadyExistsError: If a sibling with ``name`` exists
    """
    siblings = store.query(ItemFilter(
        user_id=owner_id,
        parent_id=parent_id,
        root_only=parent_id is None,
        is_deleted=False,
        name=name,
        exclude_id=exclude_id,
        limit=1,
    ))
    if siblings:
        raise AlreadyExistsError(
            f"An item named '{name}' already exists in this folder",
            details={"name": name, "parent_id": parent_id, "existing_id": siblings[0].id}
        )


def walk_descendants(
    store: ItemStore,
    root: VaultItem,
    max_depth: int = MAX_UPDATE_DEPTH,
    max_items: int = MAX_UPDATE_ITEMS
) -> Iterator[Tuple[VaultItem, int]]:
    """
    Yield (descendant, depth) for every live descendant of ``root``, breadth first.

    Children of ``root`` have depth 1. Files are never expanded.

    Raises:
        ResourceExhaustedError: If the subtree is deeper than ``max_depth``
            or larger than ``max_items``
        InternalError: If the parent links form a cycle
    """
    if not root.is_folder:
        return

    queue = deque([(root.id, 1)])
    visited = {root.id}
    count = 0

    while queue:
        folder_id, depth = queue.popleft()
        children = store.query(ItemFilter(parent_id=folder_id, is_deleted=False))
        if not children:
            continue
        if depth > max_depth:
            raise ResourceExhaustedError(
                f"Folder tree is deeper than {max_depth} levels",
                details={"item_id": root.id, "max_depth": max_depth}
            )
        for child in children:
            if child.id in visited:
                logger.error(f"Cycle detected under folder {root.id} at item {child.id}")
                raise InternalError("Folder tree is inconsistent", details={"item_id": child.id})
            visited.add(child.id)
            count += 1
            if count > max_items:
                raise ResourceExhaustedError(
                    f"Folder tree has more than {max_items} items",
                    details={"item_id": root.id, "max_items": max_items}
                )
            yield child, depth
            if child.is_folder:
                queue.append((child.id, depth + 1))


def plan_path_updates(
    store: ItemStore,
    item: VaultItem,
    new_path: str,
    max_depth: int = MAX_UPDATE_DEPTH,
    max_items: int = MAX_UPDATE_ITEMS
) -> List[ItemUpdate]:
    """Version-guarded path rewrites for every live descendant of ``item``"""
    new_paths: Dict[str, str] = {item.id: new_path}
    updates: List[ItemUpdate] = []

    for child, _depth in walk_descendants(store, item, max_depth, max_items):
        child_path = f"{new_paths[child.parent_id]}/{child.name}"
        new_paths[child.id] = child_path
        if child_path != child.path:
            updates.append(ItemUpdate(child.id, child.version, {"path": child_path}))

    return updates


def propagate_rename(
    store: ItemStore,
    item: VaultItem,
    changes: Dict,
    new_path: str,
    max_depth: int = MAX_UPDATE_DEPTH,
    max_items: int = MAX_UPDATE_ITEMS
) -> int:
    """
    Write ``changes`` (including the new path) to ``item`` and rewrite its subtree.

    The item and all descendants are updated in one transaction, each row
    guarded by the version read while planning.

    Returns:
        Number of descendants whose path changed
    """
    descendant_updates = plan_path_updates(store, item, new_path, max_depth, max_items)
    root_update = ItemUpdate(item.id, item.version, {**changes, "path": new_path})
    store.apply_batch([root_update] + descendant_updates)

    if descendant_updates:
        logger.info(
            f"Rewrote {len(descendant_updates)} descendant paths under {item.id}: "
            f"{item.path} -> {new_path}"
        )
    return len(descendant_updates)
