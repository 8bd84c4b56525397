"""Local and in-memory storage provider tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from refine_page.core.config import Settings
from refine_page.core.errors import ConfigError
from refine_page.db.kv import MAX_KEYS_PER_QUERY
from refine_page.models.snapshot import ExportData
from refine_page.storage import (
    HttpStorageProvider,
    LocalStorageProvider,
    MemoryStorageProvider,
    create_provider,
)
from refine_page.storage.local import INDEX_KEY, snapshot_key


@pytest.fixture(params=["local", "memory"])
def provider(request, tmp_path: Path):
    if request.param == "local":
        instance = LocalStorageProvider(tmp_path / "kv.db", viewer_url_base="https://viewer.test/viewer.html")
    else:
        instance = MemoryStorageProvider()
    yield instance
    instance.close()


def test_missing_snapshot_is_none(provider) -> None:
    assert provider.get_snapshot("missing") is None
    assert provider.update_snapshot("missing", {"status": "approved"}) is None


def test_save_get_delete(provider, snapshot_factory) -> None:
    snapshot = snapshot_factory("a")
    provider.save_snapshot(snapshot)
    assert provider.get_snapshot("a") == snapshot
    provider.delete_snapshot("a")
    assert provider.get_snapshot("a") is None
    assert provider.get_all_snapshot_summaries() == []


def test_newest_first_ordering(provider, snapshot_factory) -> None:
    for snapshot_id, captured in (("jan", "2024-01-01"), ("mar", "2024-03-01"), ("feb", "2024-02-01")):
        provider.save_snapshot(snapshot_factory(snapshot_id, capturedAt=captured))
    assert [s.id for s in provider.get_all_snapshot_summaries()] == ["mar", "feb", "jan"]
    assert [s.id for s in provider.get_all_snapshots()] == ["mar", "feb", "jan"]


def test_update_merges_and_bumps(provider, snapshot_factory) -> None:
    provider.save_snapshot(snapshot_factory("a"))
    updated = provider.update_snapshot("a", {"tags": ["x"], "status": "needs_revision"})
    assert updated is not None
    assert updated.tags == ["x"]
    assert updated.status == "needs_revision"
    assert updated.captured_at == "2024-01-01T00:00:00.000Z"
    assert updated.updated_at != "2024-01-01T00:00:00.000Z"
    assert provider.get_snapshot("a") == updated


def test_import_is_idempotent(provider, snapshot_factory) -> None:
    data = ExportData(snapshots=[snapshot_factory("x").model_dump()])
    first = provider.import_data(data)
    second = provider.import_data(data)
    assert (first.imported, first.skipped) == (1, 0)
    assert (second.imported, second.skipped) == (0, 1)


def test_export_contains_every_snapshot(provider, snapshot_factory) -> None:
    provider.save_snapshot(snapshot_factory("a"))
    provider.save_snapshot(snapshot_factory("b", capturedAt="2024-06-01"))
    exported = provider.export_all_data()
    assert exported.version == "1.0.0"
    assert [s.id for s in exported.snapshots] == ["b", "a"]
    assert exported.snapshots[0].html == snapshot_factory("b").html


def test_local_viewer_urls_and_assets(tmp_path: Path, snapshot_factory) -> None:
    provider = LocalStorageProvider(
        tmp_path / "kv.db",
        assets_base_url="https://assets.test/",
        viewer_url_base="https://viewer.test/viewer.html",
    )
    provider.save_snapshot(snapshot_factory("a"))
    exported = provider.export_all_data().to_wire()
    assert exported["snapshots"][0]["viewerUrl"] == "https://viewer.test/viewer.html?id=a"
    assert provider.get_asset_url("icons/logo.png") == "https://assets.test/icons/logo.png"
    assert LocalStorageProvider(tmp_path / "other.db").get_asset_url("x") is None
    provider.close()


def test_dangling_index_entry_is_not_found(tmp_path: Path, snapshot_factory) -> None:
    provider = LocalStorageProvider(tmp_path / "kv.db")
    provider.save_snapshot(snapshot_factory("kept"))
    # Index written but the record write never happened
    provider.store.set(INDEX_KEY, ["kept", "ghost"])
    assert provider.get_snapshot("ghost") is None
    assert [s.id for s in provider.get_all_snapshot_summaries()] == ["kept"]
    assert [s.id for s in provider.get_all_snapshots()] == ["kept"]
    provider.close()


def test_unreadable_record_is_skipped(tmp_path: Path, snapshot_factory) -> None:
    provider = LocalStorageProvider(tmp_path / "kv.db")
    provider.save_snapshot(snapshot_factory("good"))
    provider.store.set(snapshot_key("bad"), {"id": "bad"})
    provider.store.set(INDEX_KEY, ["good", "bad"])
    assert provider.get_snapshot("bad") is None
    assert [s.id for s in provider.get_all_snapshots()] == ["good"]
    provider.close()


def test_large_index_is_read_in_batches(tmp_path: Path, snapshot_factory) -> None:
    provider = LocalStorageProvider(tmp_path / "kv.db")
    record = snapshot_factory("template").to_wire()
    ids = [f"snap-{number:04d}" for number in range(2 * MAX_KEYS_PER_QUERY + 1)]
    for snapshot_id in ids:
        provider.store.set(snapshot_key(snapshot_id), {**record, "id": snapshot_id})
    provider.store.set(INDEX_KEY, ids)

    keys = [snapshot_key(snapshot_id) for snapshot_id in ids]
    assert len(provider.store.get_many(keys + ["missing"])) == len(ids)
    assert {s.id for s in provider.get_all_snapshots()} == set(ids)

    provider.store.remove(keys)
    assert provider.store.get_many(keys) == {}
    provider.close()


def test_local_persists_across_instances(tmp_path: Path, snapshot_factory) -> None:
    first = LocalStorageProvider(tmp_path / "kv.db")
    first.save_snapshot(snapshot_factory("a"))
    first.close()
    second = LocalStorageProvider(tmp_path / "kv.db")
    assert second.get_snapshot("a") is not None
    second.close()


def test_memory_asset_url() -> None:
    assert MemoryStorageProvider().get_asset_url("a/b.css") == "/a/b.css"


def test_providers_are_writable(provider) -> None:
    assert provider.is_read_only is False


def test_create_provider(tmp_path: Path) -> None:
    local = create_provider(Settings(db_path=tmp_path / "f.db"))
    assert isinstance(local, LocalStorageProvider)
    local.close()
    assert isinstance(create_provider(Settings(provider="memory")), MemoryStorageProvider)

    remote = create_provider(Settings(provider="http", http_base_url="https://data.test"))
    assert isinstance(remote, HttpStorageProvider)
    assert remote.is_read_only is True
    writable = create_provider(Settings(provider="http", http_base_url="https://data.test", http_writable=True))
    assert writable.is_read_only is False

    with pytest.raises(ConfigError):
        create_provider(Settings(provider="http"))
