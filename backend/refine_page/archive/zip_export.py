"""ZIP bundles of snapshots.

Layout::

    index.json          manifest: every snapshot field except html, plus htmlFile
    html/<id>.html      one document per snapshot
"""

from __future__ import annotations

import io
import zipfile
from pathlib import Path
from typing import IO, Any, Sequence

import orjson
from pydantic import ValidationError

from refine_page.core.errors import ArchiveFormatError
from refine_page.core.logging import get_logger
from refine_page.models.snapshot import (
    EXPORT_VERSION,
    ExportData,
    ExportedSnapshot,
    Snapshot,
    ZipExportData,
    ZipIndexSnapshot,
)
from refine_page.utils.time import utc_now_iso

logger = get_logger(__name__)

INDEX_FILE = "index.json"


def html_file_for(snapshot_id: str) -> str:
    return f"html/{snapshot_id}.html"


def to_zip_index_snapshot(snapshot: Snapshot, viewer_url_base: str | None = None) -> ZipIndexSnapshot:
    data = snapshot.model_dump(exclude={"html", "viewer_url"})
    return ZipIndexSnapshot(
        **data,
        html_file=html_file_for(snapshot.id),
        viewer_url=f"{viewer_url_base}?id={snapshot.id}" if viewer_url_base else None,
    )


def to_zip_export_data(
    snapshots: Sequence[Snapshot],
    viewer_url_base: str | None = None,
    exporter_id: str | None = None,
    exported_at: str | None = None,
) -> ZipExportData:
    return ZipExportData(
        version=EXPORT_VERSION,
        exported_at=exported_at or utc_now_iso(),
        extension_id=exporter_id,
        snapshots=[to_zip_index_snapshot(snapshot, viewer_url_base) for snapshot in snapshots],
    )


def write_zip_export(
    snapshots: Sequence[Snapshot],
    target: str | Path | IO[bytes],
    viewer_url_base: str | None = None,
    exporter_id: str | None = None,
    exported_at: str | None = None,
) -> None:
    """Stream a bundle to a path or writable binary file object."""
    manifest = to_zip_export_data(snapshots, viewer_url_base, exporter_id, exported_at)
    with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(INDEX_FILE, orjson.dumps(manifest.to_wire(), option=orjson.OPT_INDENT_2))
        for snapshot in snapshots:
            archive.writestr(html_file_for(snapshot.id), snapshot.html.encode("utf-8"))
    logger.info("Wrote ZIP export", extra={"ctx_snapshots": len(snapshots)})


def create_zip_export(
    snapshots: Sequence[Snapshot],
    viewer_url_base: str | None = None,
    exporter_id: str | None = None,
    exported_at: str | None = None,
) -> bytes:
    buffer = io.BytesIO()
    write_zip_export(snapshots, buffer, viewer_url_base, exporter_id, exported_at)
    return buffer.getvalue()


def parse_zip_export(source: bytes | str | Path | IO[bytes]) -> ExportData:
    """Read a bundle back into export data.

    Manifest entries whose html file is absent are skipped. A source that is
    not a ZIP, or has no readable ``index.json``, raises
    :class:`ArchiveFormatError`.
    """
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)
    try:
        archive = zipfile.ZipFile(source)
    except (zipfile.BadZipFile, OSError) as exc:
        raise ArchiveFormatError(f"Invalid ZIP: {exc}") from exc

    with archive:
        names = set(archive.namelist())
        if INDEX_FILE not in names:
            raise ArchiveFormatError("Invalid ZIP: missing index.json")
        try:
            manifest = orjson.loads(archive.read(INDEX_FILE))
        except orjson.JSONDecodeError as exc:
            raise ArchiveFormatError(f"Invalid ZIP: index.json is not valid JSON ({exc})") from exc
        if not isinstance(manifest, dict) or not isinstance(manifest.get("snapshots", []), list):
            raise ArchiveFormatError("Invalid ZIP: index.json has no snapshot list")

        exported: list[ExportedSnapshot] = []
        for entry in manifest.get("snapshots", []):
            if not isinstance(entry, dict) or "id" not in entry:
                raise ArchiveFormatError("Invalid ZIP: manifest entry without id")
            html_file = entry.get("htmlFile") or html_file_for(entry["id"])
            if html_file not in names:
                logger.warning("Skipping entry without html file", extra={"ctx_snapshot_id": entry["id"]})
                continue
            html = archive.read(html_file).decode("utf-8", errors="replace")
            exported.append(_exported_snapshot(entry, html))

    try:
        return ExportData(
            version=manifest.get("version") or EXPORT_VERSION,
            exported_at=manifest.get("exportedAt") or utc_now_iso(),
            extension_id=manifest.get("extensionId"),
            snapshots=exported,
        )
    except ValidationError as exc:
        raise ArchiveFormatError(f"Invalid ZIP: {exc}") from exc


def _exported_snapshot(entry: dict[str, Any], html: str) -> ExportedSnapshot:
    record = {key: value for key, value in entry.items() if key != "htmlFile"}
    record["html"] = html
    try:
        return ExportedSnapshot.model_validate(record)
    except ValidationError as exc:
        raise ArchiveFormatError(f"Invalid ZIP: snapshot {entry['id']} is malformed ({exc})") from exc


__all__ = [
    "INDEX_FILE",
    "html_file_for",
    "to_zip_index_snapshot",
    "to_zip_export_data",
    "create_zip_export",
    "write_zip_export",
    "parse_zip_export",
]
