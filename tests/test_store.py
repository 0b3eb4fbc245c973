"""
Tests for the SQLite item store
"""

import sqlite3
from datetime import datetime, timedelta, UTC

import pytest

from vault_api.errors import ConcurrentModificationError, NotFoundError, AlreadyExistsError
from vault_api.services.vault.schemas import ItemPermissions, ItemType, VaultItem
from vault_api.services.vault.store import ItemFilter, ItemStore, ItemUpdate

from conftest import OWNER, OTHER


def make_item(item_id, name, parent_id=None, path=None, user_id=OWNER, **overrides):
    now = datetime.now(UTC)
    data = dict(
        id=item_id,
        user_id=user_id,
        type=ItemType.FOLDER,
        name=name,
        parent_id=parent_id,
        path=path or f"/{name}",
        created_at=now,
        updated_at=now,
    )
    data.update(overrides)
    return VaultItem(**data)


class TestItemStoreInit:

    def test_creates_tables(self, settings):
        ItemStore(settings.vault_db)
        conn = sqlite3.connect(settings.vault_db)
        tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        conn.close()
        assert {"vault_items", "vault_share_links", "vault_audit_log"} <= tables

    def test_reopening_keeps_data(self, settings, store):
        store.create(make_item("folder-0000001", "Docs"))
        assert ItemStore(settings.vault_db).get("folder-0000001").name == "Docs"


class TestCreateAndGet:

    def test_round_trips_all_fields(self, store):
        expiry = datetime.now(UTC) + timedelta(minutes=5)
        item = make_item(
            "file-00000001", "a.pdf",
            type=ItemType.FILE,
            storage_provider="s3",
            storage_path="vault/u/root/1_a.pdf",
            size=10,
            mime_type="application/pdf",
            cached_upload_url="https://x",
            cached_upload_url_expiry=expiry,
            is_encrypted=True,
            encryption_key_id="key-1",
            shared_with=[OTHER],
            permissions=ItemPermissions(can_read=[OTHER], can_write=[OTHER]),
        )
        store.create(item)

        loaded = store.get("file-00000001")
        assert loaded.type == ItemType.FILE
        assert loaded.storage_provider == "s3"
        assert loaded.is_encrypted is True
        assert loaded.shared_with == [OTHER]
        assert loaded.permissions.can_write == [OTHER]
        assert loaded.cached_upload_url_expiry == expiry
        assert loaded.is_pending_upload
        assert loaded.version == 1

    def test_get_missing_returns_none(self, store):
        assert store.get("nope") is None

    def test_duplicate_id_rejected(self, store):
        store.create(make_item("folder-0000001", "Docs"))
        with pytest.raises(AlreadyExistsError):
            store.create(make_item("folder-0000001", "Other"))

    def test_live_sibling_name_rejected(self, store):
        store.create(make_item("folder-0000001", "Docs"))
        with pytest.raises(AlreadyExistsError):
            store.create(make_item("folder-0000002", "Docs"))
        assert store.get("folder-0000002") is None

    def test_sibling_names_scoped_by_owner_parent_and_deletion(self, store):
        store.create(make_item("folder-0000001", "Docs", is_deleted=True, deleted_at=datetime.now(UTC)))
        store.create(make_item("folder-0000002", "Docs"))
        store.create(make_item("folder-0000003", "Docs", user_id=OTHER))
        store.create(make_item("folder-0000004", "Docs", parent_id="folder-0000002", path="/Docs/Docs"))
        assert store.get("folder-0000004").parent_id == "folder-0000002"


class TestUpdate:

    def test_update_bumps_version(self, store):
        store.create(make_item("folder-0000001", "Docs"))
        updated = store.update("folder-0000001", {"name": "Documents", "path": "/Documents"})
        assert updated.name == "Documents"
        assert updated.version == 2

    def test_stale_version_rejected(self, store):
        store.create(make_item("folder-0000001", "Docs"))
        store.update("folder-0000001", {"name": "A"})
        with pytest.raises(ConcurrentModificationError):
            store.update("folder-0000001", {"name": "B"}, expected_version=1)
        assert store.get("folder-0000001").name == "A"

    def test_missing_item(self, store):
        with pytest.raises(NotFoundError):
            store.update("nope", {"name": "x"})

    def test_untouched_update_keeps_version(self, store):
        store.create(make_item("folder-0000001", "Docs"))
        updated = store.update("folder-0000001", {"cached_download_url": "https://d"}, touch=False)
        assert updated.version == 1
        assert updated.cached_download_url == "https://d"

    def test_unknown_column_rejected(self, store):
        store.create(make_item("folder-0000001", "Docs"))
        with pytest.raises(ValueError):
            store.update("folder-0000001", {"bogus": 1})


class TestApplyBatch:

    def test_all_or_nothing(self, store):
        store.create(make_item("folder-0000001", "A"))
        store.create(make_item("folder-0000002", "B"))

        with pytest.raises(ConcurrentModificationError):
            store.apply_batch([
                ItemUpdate("folder-0000001", 1, {"path": "/X"}),
                ItemUpdate("folder-0000002", 99, {"path": "/Y"}),
            ])

        assert store.get("folder-0000001").path == "/A"
        assert store.get("folder-0000002").path == "/B"

    def test_empty_batch(self, store):
        assert store.apply_batch([]) == 0

    def test_rename_into_live_sibling_rolls_back(self, store):
        store.create(make_item("folder-0000001", "A"))
        store.create(make_item("folder-0000002", "B"))

        with pytest.raises(AlreadyExistsError):
            store.apply_batch([
                ItemUpdate("folder-0000001", 1, {"path": "/A2"}),
                ItemUpdate("folder-0000002", 1, {"name": "A", "path": "/A"}),
            ])

        assert store.get("folder-0000001").path == "/A"
        assert store.get("folder-0000002").name == "B"


class TestQuery:

    @pytest.fixture
    def tree(self, store):
        store.create(make_item("root-a-000001", "Alpha"))
        store.create(make_item("root-b-000001", "beta"))
        store.create(make_item("child-0000001", "Inner", parent_id="root-a-000001", path="/Alpha/Inner"))
        store.create(make_item("gone-00000001", "Gone", is_deleted=True, deleted_at=datetime.now(UTC)))
        store.create(make_item(
            "theirs-000001", "Shared", user_id=OTHER,
            shared_with=[OWNER], permissions=ItemPermissions(can_read=[OWNER]),
        ))
        return store

    def test_root_items_of_owner(self, tree):
        names = [i.name for i in tree.query(ItemFilter(user_id=OWNER, root_only=True))]
        assert names == ["Alpha", "beta"]

    def test_children_of_parent(self, tree):
        items = tree.query(ItemFilter(parent_id="root-a-000001"))
        assert [i.id for i in items] == ["child-0000001"]

    def test_deleted_filter(self, tree):
        items = tree.query(ItemFilter(user_id=OWNER, is_deleted=True))
        assert [i.id for i in items] == ["gone-00000001"]

    def test_shared_with_membership(self, tree):
        items = tree.query(ItemFilter(shared_with=OWNER))
        assert [i.id for i in items] == ["theirs-000001"]
        assert tree.query(ItemFilter(shared_with="nobody")) == []

    def test_name_and_exclusion(self, tree):
        assert len(tree.query(ItemFilter(user_id=OWNER, root_only=True, name="Alpha"))) == 1
        assert tree.query(ItemFilter(
            user_id=OWNER, root_only=True, name="Alpha", exclude_id="root-a-000001"
        )) == []

    def test_limit(self, tree):
        assert len(tree.query(ItemFilter(user_id=OWNER, limit=1))) == 1

    def test_pending_uploads_expired(self, store):
        past = datetime.now(UTC) - timedelta(minutes=10)
        future = datetime.now(UTC) + timedelta(minutes=10)
        store.create(make_item("old-000000001", "old.txt", type=ItemType.FILE,
                               cached_upload_url="u", cached_upload_url_expiry=past))
        store.create(make_item("new-000000001", "new.txt", type=ItemType.FILE,
                               cached_upload_url="u", cached_upload_url_expiry=future))
        store.create(make_item("done-00000001", "done.txt", type=ItemType.FILE))

        stale = store.query(ItemFilter(pending_upload=True, upload_expired_before=datetime.now(UTC)))
        assert [i.id for i in stale] == ["old-000000001"]


class TestSoftDeleteAndUsage:

    def test_soft_delete_idempotent(self, store):
        store.create(make_item("folder-0000001", "Docs"))
        first = store.soft_delete("folder-0000001")
        second = store.soft_delete("folder-0000001")
        assert first.is_deleted and second.is_deleted
        assert first.deleted_at == second.deleted_at
        assert store.get("folder-0000001") is not None

    def test_usage_by_file_type(self, store):
        store.create(make_item("f1-0000000001", "a.png", type=ItemType.FILE, size=100, file_type="image"))
        store.create(make_item("f2-0000000001", "b.png", type=ItemType.FILE, size=50, file_type="image"))
        store.create(make_item("f3-0000000001", "c.bin", type=ItemType.FILE, size=7))
        store.create(make_item("folder-0000001", "Docs"))

        usage, folders = store.usage_by_file_type(OWNER)
        assert usage["image"] == (2, 150)
        assert usage["other"] == (1, 7)
        assert folders == 1
        assert store.total_size(OWNER) == 157
