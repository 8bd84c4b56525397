"""Storage provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, Literal, Mapping, TypeVar

from refine_page.core.logging import get_logger
from refine_page.models.snapshot import (
    ExportData,
    ExportedSnapshot,
    ImportResult,
    Snapshot,
    SnapshotSummary,
)
from refine_page.utils.time import timestamp_sort_key

logger = get_logger(__name__)

ProviderType = Literal["local", "http", "memory"]

_Record = TypeVar("_Record", Snapshot, SnapshotSummary)


def newest_first(records: Iterable[_Record]) -> list[_Record]:
    """Sort by ``captured_at`` descending; unreadable timestamps go last."""
    return sorted(records, key=lambda record: timestamp_sort_key(record.captured_at), reverse=True)


class StorageProvider(ABC):
    """Persistence for snapshots.

    Read paths never raise for absent or unreachable data: a missing snapshot
    is ``None`` and a failed listing is ``[]``. Writes on a read-only provider
    raise :class:`refine_page.core.errors.ReadOnlyProviderError`.
    """

    type: ProviderType

    @property
    def is_read_only(self) -> bool:
        return False

    @abstractmethod
    def get_snapshot(self, snapshot_id: str) -> Snapshot | None: ...

    @abstractmethod
    def get_all_snapshot_summaries(self) -> list[SnapshotSummary]: ...

    @abstractmethod
    def save_snapshot(self, snapshot: Snapshot) -> None: ...

    @abstractmethod
    def update_snapshot(self, snapshot_id: str, updates: Mapping[str, Any]) -> Snapshot | None: ...

    @abstractmethod
    def delete_snapshot(self, snapshot_id: str) -> None: ...

    @abstractmethod
    def get_asset_url(self, asset_path: str) -> str | None: ...

    def get_all_snapshots(self) -> list[Snapshot]:
        """Fetch every listed snapshot; items that fail to load are left out."""
        snapshots: list[Snapshot] = []
        for summary in self.get_all_snapshot_summaries():
            try:
                snapshot = self.get_snapshot(summary.id)
            except Exception:  # noqa: BLE001
                logger.exception("Dropping snapshot from batch", extra={"ctx_snapshot_id": summary.id})
                continue
            if snapshot is not None:
                snapshots.append(snapshot)
        return newest_first(snapshots)

    def viewer_url(self, snapshot_id: str) -> str | None:
        return None

    def extension_id(self) -> str | None:
        return None

    def export_all_data(self) -> ExportData:
        exported = [
            ExportedSnapshot(**snapshot.model_dump(), viewer_url=self.viewer_url(snapshot.id))
            for snapshot in self.get_all_snapshots()
        ]
        return ExportData(extension_id=self.extension_id(), snapshots=exported)

    def import_data(self, data: ExportData) -> ImportResult:
        """Save snapshots whose id is not stored yet; existing ids are skipped."""
        result = ImportResult()
        for exported in data.snapshots:
            if self.get_snapshot(exported.id) is not None:
                result.skipped += 1
                continue
            self.save_snapshot(as_snapshot(exported))
            result.imported += 1
        logger.info(
            "Import finished",
            extra={"ctx_imported": result.imported, "ctx_skipped": result.skipped, "ctx_provider": self.type},
        )
        return result

    def close(self) -> None:
        """Release backing resources."""


def as_snapshot(record: Snapshot) -> Snapshot:
    """Drop packing-only fields such as ``viewer_url``."""
    if type(record) is Snapshot:
        return record
    return Snapshot.model_validate(record.model_dump(exclude={"viewer_url", "html_file"}))


__all__ = ["ProviderType", "StorageProvider", "newest_first", "as_snapshot"]
