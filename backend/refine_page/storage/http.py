"""Remote storage provider reading JSON documents over HTTP.

The remote side serves an index document (``{baseUrl}/index.json`` unless
configured) and one JSON document per snapshot (``{baseUrl}/snapshots/{id}.json``
unless configured). Writes are delegated to callbacks; without all three the
provider is read-only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

import requests
from pydantic import ValidationError

from refine_page.core.errors import ReadOnlyProviderError
from refine_page.core.logging import get_logger
from refine_page.core.metrics import PROVIDER_READ_FAILURES
from refine_page.models.snapshot import ExportData, ImportResult, Snapshot, SnapshotSummary
from refine_page.storage.base import StorageProvider, newest_first
from refine_page.utils.time import utc_now_iso

logger = get_logger(__name__)

SaveCallback = Callable[[Snapshot], None]
UpdateCallback = Callable[[str, Mapping[str, Any]], Snapshot | None]
DeleteCallback = Callable[[str], None]

_READ_ERRORS = (requests.RequestException, ValueError, ValidationError)


@dataclass(slots=True)
class HttpStorageConfig:
    base_url: str
    index_url: str | None = None
    snapshot_url_pattern: str | None = None
    assets_base_url: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    timeout: float = 30.0
    on_save: SaveCallback | None = None
    on_update: UpdateCallback | None = None
    on_delete: DeleteCallback | None = None

    def snapshot_url(self, snapshot_id: str) -> str:
        if self.snapshot_url_pattern:
            return self.snapshot_url_pattern.replace("{id}", snapshot_id)
        return f"{self.base_url.rstrip('/')}/snapshots/{snapshot_id}.json"

    def resolved_index_url(self) -> str:
        return self.index_url or f"{self.base_url.rstrip('/')}/index.json"


class HttpStorageProvider(StorageProvider):
    type = "http"

    def __init__(self, config: HttpStorageConfig, session: requests.Session | None = None) -> None:
        self.config = config
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json", **config.headers})
        self._cache: dict[str, Snapshot] = {}
        self._index_cache: list[SnapshotSummary] | None = None

    @property
    def is_read_only(self) -> bool:
        return not (self.config.on_save and self.config.on_update and self.config.on_delete)

    def _read_failed(self, operation: str) -> None:
        PROVIDER_READ_FAILURES.labels(provider=self.type, operation=operation).inc()

    def get_snapshot(self, snapshot_id: str) -> Snapshot | None:
        if snapshot_id in self._cache:
            return self._cache[snapshot_id]
        url = self.config.snapshot_url(snapshot_id)
        try:
            response = self.session.get(url, timeout=self.config.timeout)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            snapshot = Snapshot.model_validate(response.json())
        except _READ_ERRORS:
            self._read_failed("get_snapshot")
            logger.exception(
                "Failed to fetch snapshot",
                extra={"ctx_snapshot_id": snapshot_id, "ctx_url": url},
            )
            return None
        self._cache[snapshot_id] = snapshot
        return snapshot

    def get_all_snapshot_summaries(self) -> list[SnapshotSummary]:
        if self._index_cache is not None:
            return list(self._index_cache)
        url = self.config.resolved_index_url()
        try:
            response = self.session.get(url, timeout=self.config.timeout)
            response.raise_for_status()
            payload = response.json()
            items = payload.get("snapshots", []) if isinstance(payload, Mapping) else payload
            summaries = [_to_summary(item) for item in items or []]
        except (*_READ_ERRORS, AttributeError, TypeError, KeyError):
            self._read_failed("get_all_snapshot_summaries")
            logger.exception("Failed to fetch snapshot index", extra={"ctx_url": url})
            return []
        self._index_cache = newest_first(summaries)
        return list(self._index_cache)

    def save_snapshot(self, snapshot: Snapshot) -> None:
        if self.is_read_only:
            raise ReadOnlyProviderError("save")
        self.config.on_save(snapshot)
        self.clear_cache()
        self._cache[snapshot.id] = snapshot

    def update_snapshot(self, snapshot_id: str, updates: Mapping[str, Any]) -> Snapshot | None:
        if self.is_read_only:
            raise ReadOnlyProviderError("update")
        updated = self.config.on_update(snapshot_id, updates)
        self.clear_cache()
        if updated is not None:
            self._cache[snapshot_id] = updated
        return updated

    def delete_snapshot(self, snapshot_id: str) -> None:
        if self.is_read_only:
            raise ReadOnlyProviderError("delete")
        self.config.on_delete(snapshot_id)
        self.clear_cache()

    def viewer_url(self, snapshot_id: str) -> str | None:
        return f"{self.config.base_url.rstrip('/')}/viewer.html?id={snapshot_id}"

    def import_data(self, data: ExportData) -> ImportResult:
        if self.is_read_only:
            raise ReadOnlyProviderError("import")
        return super().import_data(data)

    def get_asset_url(self, asset_path: str) -> str | None:
        if self.config.assets_base_url:
            return f"{self.config.assets_base_url.rstrip('/')}/{asset_path.lstrip('/')}"
        return f"/{asset_path.lstrip('/')}"

    def clear_cache(self) -> None:
        self._cache.clear()
        self._index_cache = None

    def preload_snapshot(self, snapshot: Snapshot) -> None:
        self._cache[snapshot.id] = snapshot

    def preload_index(self, summaries: list[SnapshotSummary]) -> None:
        self._index_cache = list(summaries)

    def close(self) -> None:
        self.session.close()


def _to_summary(item: Mapping[str, Any]) -> SnapshotSummary:
    if "title" in item:
        return SnapshotSummary.model_validate(item)
    # Minimal {id, url} entries get placeholder values until the record is fetched
    now = utc_now_iso()
    return SnapshotSummary(
        id=item["id"],
        url=item.get("url") or "",
        title=item["id"],
        status="pending",
        captured_at=now,
        updated_at=now,
    )


def rest_write_callbacks(config: HttpStorageConfig, session: requests.Session) -> dict[str, Callable[..., Any]]:
    """Write callbacks issuing PUT/PATCH/DELETE against each snapshot URL.

    Use with ``dataclasses.replace(config, **rest_write_callbacks(config, session))``.
    """

    def on_save(snapshot: Snapshot) -> None:
        response = session.put(config.snapshot_url(snapshot.id), json=snapshot.to_wire(), timeout=config.timeout)
        response.raise_for_status()

    def on_update(snapshot_id: str, updates: Mapping[str, Any]) -> Snapshot | None:
        response = session.patch(config.snapshot_url(snapshot_id), json=_jsonable(updates), timeout=config.timeout)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return Snapshot.model_validate(response.json())

    def on_delete(snapshot_id: str) -> None:
        response = session.delete(config.snapshot_url(snapshot_id), timeout=config.timeout)
        if response.status_code != 404:
            response.raise_for_status()

    return {"on_save": on_save, "on_update": on_update, "on_delete": on_delete}


def _jsonable(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(by_alias=True, exclude_none=True)
    if isinstance(value, Mapping):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


__all__ = ["HttpStorageConfig", "HttpStorageProvider", "rest_write_callbacks"]
