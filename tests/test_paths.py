"""
Tests for materialized path maintenance
"""

from datetime import datetime, UTC

import pytest

from vault_api.errors import AlreadyExistsError, ConcurrentModificationError, ResourceExhaustedError
from vault_api.services.vault.paths import (
    compute_path,
    ensure_unique_name,
    is_same_or_descendant_path,
    plan_path_updates,
    propagate_rename,
    walk_descendants,
)
from vault_api.services.vault.schemas import ItemType, VaultItem

from conftest import OWNER


def add(store, item_id, name, parent=None, item_type=ItemType.FOLDER, **overrides):
    now = datetime.now(UTC)
    item = VaultItem(
        id=item_id,
        user_id=OWNER,
        type=item_type,
        name=name,
        parent_id=parent.id if parent else None,
        path=compute_path(name, parent),
        created_at=now,
        updated_at=now,
        **overrides,
    )
    return store.create(item)


def build_chain(store, depth):
    """Folders /L0/L1/.../L{depth-1}; returns the list from the top"""
    chain = []
    parent = None
    for level in range(depth):
        parent = add(store, f"level-{level:06d}", f"L{level}", parent)
        chain.append(parent)
    return chain


class TestComputePath:

    def test_root_item(self):
        assert compute_path("Docs") == "/Docs"

    def test_child_item(self, store):
        parent = add(store, "docs-00000001", "Docs")
        assert compute_path("a.txt", parent) == "/Docs/a.txt"

    def test_descendant_prefix_check(self):
        assert is_same_or_descendant_path("/Docs", "/Docs")
        assert is_same_or_descendant_path("/Docs/Sub", "/Docs")
        assert not is_same_or_descendant_path("/Docs2", "/Docs")
        assert not is_same_or_descendant_path("/Other", "/Docs")


class TestEnsureUniqueName:

    def test_collision_among_siblings(self, store):
        add(store, "docs-00000001", "Docs")
        with pytest.raises(AlreadyExistsError):
            ensure_unique_name(store, OWNER, None, "Docs")

    def test_same_name_in_other_folder_allowed(self, store):
        docs = add(store, "docs-00000001", "Docs")
        add(store, "inner-0000001", "Inner", docs)
        ensure_unique_name(store, OWNER, None, "Inner")

    def test_deleted_sibling_does_not_collide(self, store):
        add(store, "docs-00000001", "Docs", is_deleted=True)
        ensure_unique_name(store, OWNER, None, "Docs")

    def test_self_excluded(self, store):
        add(store, "docs-00000001", "Docs")
        ensure_unique_name(store, OWNER, None, "Docs", exclude_id="docs-00000001")


class TestWalkDescendants:

    def test_breadth_first_with_depths(self, store):
        docs = add(store, "docs-00000001", "Docs")
        sub = add(store, "sub-000000001", "Sub", docs)
        add(store, "file-00000001", "a.txt", docs, ItemType.FILE)
        add(store, "file-00000002", "b.txt", sub, ItemType.FILE)

        walked = [(item.id, depth) for item, depth in walk_descendants(store, docs)]
        assert walked == [("file-00000001", 1), ("sub-000000001", 1), ("file-00000002", 2)]

    def test_file_has_no_descendants(self, store):
        f = add(store, "file-00000001", "a.txt", item_type=ItemType.FILE)
        assert list(walk_descendants(store, f)) == []

    def test_skips_deleted_descendants(self, store):
        docs = add(store, "docs-00000001", "Docs")
        add(store, "gone-00000001", "Gone", docs, is_deleted=True)
        assert list(walk_descendants(store, docs)) == []

    def test_depth_ceiling(self, store):
        chain = build_chain(store, 5)
        with pytest.raises(ResourceExhaustedError):
            list(walk_descendants(store, chain[0], max_depth=3))
        assert len(list(walk_descendants(store, chain[0], max_depth=4))) == 4

    def test_size_ceiling(self, store):
        docs = add(store, "docs-00000001", "Docs")
        for n in range(4):
            add(store, f"file-0000000{n}", f"{n}.txt", docs, ItemType.FILE)
        with pytest.raises(ResourceExhaustedError):
            list(walk_descendants(store, docs, max_items=3))


class TestPropagateRename:

    def test_rewrites_whole_subtree(self, store):
        docs = add(store, "docs-00000001", "Docs")
        sub = add(store, "sub-000000001", "Sub", docs)
        add(store, "file-00000001", "a.txt", sub, ItemType.FILE)

        touched = propagate_rename(store, docs, {"name": "Documents"}, "/Documents")

        assert touched == 2
        assert store.get("docs-00000001").path == "/Documents"
        assert store.get("sub-000000001").path == "/Documents/Sub"
        assert store.get("file-00000001").path == "/Documents/Sub/a.txt"

    def test_ceiling_leaves_everything_unchanged(self, store):
        chain = build_chain(store, 5)
        with pytest.raises(ResourceExhaustedError):
            propagate_rename(store, chain[0], {"name": "Top"}, "/Top", max_depth=2)
        assert store.get(chain[0].id).path == "/L0"
        assert store.get(chain[-1].id).path == "/L0/L1/L2/L3/L4"

    def test_concurrent_change_aborts_all(self, store):
        docs = add(store, "docs-00000001", "Docs")
        sub = add(store, "sub-000000001", "Sub", docs)
        stale_docs = store.get(docs.id)
        store.update(sub.id, {"name": "Sub"})

        updates = plan_path_updates(store, stale_docs, "/Documents")
        assert [u.item_id for u in updates] == ["sub-000000001"]

        store.update(docs.id, {"name": "Docs"})
        with pytest.raises(ConcurrentModificationError):
            propagate_rename(store, stale_docs, {"name": "Documents"}, "/Documents")
        assert store.get(sub.id).path == "/Docs/Sub"
