"""SQLite key-value storage provider.

Layout: ``snapshotIndex`` holds the list of ids in save order and
``snapshot_<id>`` holds each record in wire form. The record and the index
are written separately, so an id may be indexed without a record; reads treat
such ids as absent.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from pydantic import ValidationError

from refine_page.core.logging import get_logger
from refine_page.core.metrics import PROVIDER_READ_FAILURES, SNAPSHOTS_STORED
from refine_page.db.kv import KeyValueStore
from refine_page.db.sqlite import SQLiteDatabase
from refine_page.models.snapshot import Snapshot, SnapshotSummary
from refine_page.storage.base import StorageProvider, newest_first

logger = get_logger(__name__)

INDEX_KEY = "snapshotIndex"


def snapshot_key(snapshot_id: str) -> str:
    return f"snapshot_{snapshot_id}"


class LocalStorageProvider(StorageProvider):
    type = "local"

    def __init__(
        self,
        db_path: Path,
        assets_base_url: str | None = None,
        viewer_url_base: str | None = None,
        extension_id: str | None = None,
    ) -> None:
        self.database = SQLiteDatabase(db_path)
        self.store = KeyValueStore(self.database)
        self.assets_base_url = assets_base_url
        self.viewer_url_base = viewer_url_base
        self._extension_id = extension_id

    def _index(self) -> list[str]:
        index = self.store.get(INDEX_KEY, [])
        return [str(item) for item in index] if isinstance(index, list) else []

    def _load(self, snapshot_id: str, raw: Any) -> Snapshot | None:
        try:
            return Snapshot.model_validate(raw)
        except ValidationError:
            PROVIDER_READ_FAILURES.labels(provider=self.type, operation="get_snapshot").inc()
            logger.warning("Stored snapshot is not readable", extra={"ctx_snapshot_id": snapshot_id})
            return None

    def get_snapshot(self, snapshot_id: str) -> Snapshot | None:
        raw = self.store.get(snapshot_key(snapshot_id))
        if raw is None:
            return None
        return self._load(snapshot_id, raw)

    def get_all_snapshot_summaries(self) -> list[SnapshotSummary]:
        return [snapshot.summarize() for snapshot in self.get_all_snapshots()]

    def get_all_snapshots(self) -> list[Snapshot]:
        index = self._index()
        records = self.store.get_many([snapshot_key(snapshot_id) for snapshot_id in index])
        snapshots = []
        for snapshot_id in index:
            raw = records.get(snapshot_key(snapshot_id))
            if raw is None:
                continue
            snapshot = self._load(snapshot_id, raw)
            if snapshot is not None:
                snapshots.append(snapshot)
        return newest_first(snapshots)

    def save_snapshot(self, snapshot: Snapshot) -> None:
        self.store.set(snapshot_key(snapshot.id), snapshot.to_wire())
        index = self._index()
        if snapshot.id not in index:
            index.append(snapshot.id)
            self.store.set(INDEX_KEY, index)
        SNAPSHOTS_STORED.set(len(index))

    def update_snapshot(self, snapshot_id: str, updates: Mapping[str, Any]) -> Snapshot | None:
        existing = self.get_snapshot(snapshot_id)
        if existing is None:
            return None
        updated = existing.apply_updates(updates)
        self.save_snapshot(updated)
        return updated

    def delete_snapshot(self, snapshot_id: str) -> None:
        self.store.remove(snapshot_key(snapshot_id))
        index = [item for item in self._index() if item != snapshot_id]
        self.store.set(INDEX_KEY, index)
        SNAPSHOTS_STORED.set(len(index))

    def viewer_url(self, snapshot_id: str) -> str | None:
        if not self.viewer_url_base:
            return None
        return f"{self.viewer_url_base}?id={snapshot_id}"

    def extension_id(self) -> str | None:
        return self._extension_id

    def get_asset_url(self, asset_path: str) -> str | None:
        if not self.assets_base_url:
            return None
        return f"{self.assets_base_url.rstrip('/')}/{asset_path.lstrip('/')}"

    def close(self) -> None:
        self.database.close()


__all__ = ["INDEX_KEY", "snapshot_key", "LocalStorageProvider"]
