import json

import pytest

from formatter_core.domain.exceptions import ErrorCode, SchemaVersionError
from formatter_core.domain.store_schema import StoreKey
from formatter_core.infrastructure.storage import migrations
from formatter_core.infrastructure.storage.json_store import JsonSettingsStore
from formatter_core.infrastructure.storage.migrations import LATEST_SCHEMA_VERSION, migrate


def _open(root) -> JsonSettingsStore:
    return JsonSettingsStore(root=root, name="test-store").open()


def test_fresh_store_migrates_from_0_to_1(tmp_path):
    store = _open(tmp_path)
    assert store.get(StoreKey.SCHEMA_VERSION) == 0
    assert migrate(store) == 1
    assert store.get(StoreKey.SCHEMA_VERSION) == 1 == LATEST_SCHEMA_VERSION


def test_migration_is_idempotent(tmp_path):
    store = _open(tmp_path)
    migrate(store)
    content = store.path.read_text(encoding="utf-8")
    assert migrate(store) == 0
    assert store.get(StoreKey.SCHEMA_VERSION) == 1
    assert store.path.read_text(encoding="utf-8") == content


def test_store_without_version_key_starts_at_0(tmp_path):
    (tmp_path / "test-store.json").write_text(json.dumps({"history": []}), encoding="utf-8")
    store = _open(tmp_path)
    assert migrate(store) == 1
    assert store.get(StoreKey.SCHEMA_VERSION) == 1


def test_newer_store_version_is_fatal(tmp_path):
    (tmp_path / "test-store.json").write_text(json.dumps({"schemaVersion": 99}), encoding="utf-8")
    store = _open(tmp_path)
    with pytest.raises(SchemaVersionError) as exc_info:
        migrate(store)
    assert exc_info.value.code == ErrorCode.STORAGE_ERROR
    assert exc_info.value.details == {"storedVersion": 99, "latestVersion": LATEST_SCHEMA_VERSION}
    assert store.get(StoreKey.SCHEMA_VERSION) == 99


def test_steps_run_in_ascending_order_exactly_once(tmp_path, monkeypatch):
    applied = []

    def step(version):
        def _run(store):
            # 每一步执行时，存储中的版本号恰好是该步的起点
            assert store.get(StoreKey.SCHEMA_VERSION) == version
            applied.append(version)

        return _run

    monkeypatch.setattr(migrations, "MIGRATIONS", {0: step(0), 1: step(1), 2: step(2)})
    monkeypatch.setattr(migrations, "LATEST_SCHEMA_VERSION", 3)

    store = _open(tmp_path)
    store.set(StoreKey.SCHEMA_VERSION, 1)
    assert migrate(store) == 2
    assert applied == [1, 2]
    assert store.get(StoreKey.SCHEMA_VERSION) == 3
    assert migrate(store) == 0
    assert applied == [1, 2]
