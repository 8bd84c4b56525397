"""In-process storage provider, used as a test double and for throwaway sessions."""

from __future__ import annotations

from typing import Any, Mapping

from refine_page.models.snapshot import Snapshot, SnapshotSummary
from refine_page.storage.base import StorageProvider, newest_first


class MemoryStorageProvider(StorageProvider):
    type = "memory"

    def __init__(self) -> None:
        self._snapshots: dict[str, Snapshot] = {}

    def get_snapshot(self, snapshot_id: str) -> Snapshot | None:
        return self._snapshots.get(snapshot_id)

    def get_all_snapshot_summaries(self) -> list[SnapshotSummary]:
        return [snapshot.summarize() for snapshot in self.get_all_snapshots()]

    def get_all_snapshots(self) -> list[Snapshot]:
        return newest_first(self._snapshots.values())

    def save_snapshot(self, snapshot: Snapshot) -> None:
        self._snapshots[snapshot.id] = snapshot

    def update_snapshot(self, snapshot_id: str, updates: Mapping[str, Any]) -> Snapshot | None:
        existing = self._snapshots.get(snapshot_id)
        if existing is None:
            return None
        updated = existing.apply_updates(updates)
        self._snapshots[snapshot_id] = updated
        return updated

    def delete_snapshot(self, snapshot_id: str) -> None:
        self._snapshots.pop(snapshot_id, None)

    def get_asset_url(self, asset_path: str) -> str | None:
        return f"/{asset_path.lstrip('/')}"

    def clear(self) -> None:
        self._snapshots.clear()


__all__ = ["MemoryStorageProvider"]
