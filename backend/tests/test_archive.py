"""ZIP bundle tests."""

from __future__ import annotations

import io
import zipfile

import orjson
import pytest

from refine_page.archive.zip_export import (
    INDEX_FILE,
    create_zip_export,
    html_file_for,
    parse_zip_export,
    write_zip_export,
)
from refine_page.core.errors import ArchiveFormatError
from refine_page.storage import MemoryStorageProvider


def _zip(files: dict[str, bytes | str]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def test_layout(snapshot_factory) -> None:
    payload = create_zip_export(
        [snapshot_factory("a"), snapshot_factory("b")],
        viewer_url_base="https://viewer.test/viewer.html",
        exporter_id="ext-1",
        exported_at="2024-05-05T00:00:00.000Z",
    )
    with zipfile.ZipFile(io.BytesIO(payload)) as archive:
        assert sorted(archive.namelist()) == ["html/a.html", "html/b.html", INDEX_FILE]
        raw_manifest = archive.read(INDEX_FILE)
        manifest = orjson.loads(raw_manifest)
        assert archive.read("html/b.html").decode("utf-8") == snapshot_factory("b").html

    assert b'\n  "version": "1.0.0"' in raw_manifest
    assert manifest["exportedAt"] == "2024-05-05T00:00:00.000Z"
    assert manifest["extensionId"] == "ext-1"
    first = manifest["snapshots"][0]
    assert first["htmlFile"] == "html/a.html"
    assert first["viewerUrl"] == "https://viewer.test/viewer.html?id=a"
    assert "html" not in first


def test_pack_then_unpack(snapshot_factory, text_annotation) -> None:
    snapshots = [
        snapshot_factory("a", annotations={"text": [text_annotation.to_wire()], "region": []}),
        snapshot_factory("b", tags=["x"]),
    ]
    data = parse_zip_export(create_zip_export(snapshots))
    assert [snapshot.id for snapshot in data.snapshots] == ["a", "b"]
    assert data.snapshots[0].html == snapshots[0].html
    assert data.snapshots[0].annotations.text[0].selected_text == "Breaking News"
    assert data.snapshots[1].tags == ["x"]


def test_write_to_path(tmp_path, snapshot_factory) -> None:
    target = tmp_path / "bundle.zip"
    write_zip_export([snapshot_factory("a")], target)
    assert [snapshot.id for snapshot in parse_zip_export(target).snapshots] == ["a"]


def test_missing_index_is_rejected() -> None:
    with pytest.raises(ArchiveFormatError, match="missing index.json"):
        parse_zip_export(_zip({"html/a.html": "<p>a</p>"}))


@pytest.mark.parametrize(
    "source",
    [
        b"not a zip at all",
        _zip({INDEX_FILE: "{broken"}),
        _zip({INDEX_FILE: "[1, 2]"}),
        _zip({INDEX_FILE: '{"snapshots": [{"url": "no id"}]}', "html/x.html": ""}),
    ],
)
def test_invalid_archives_are_rejected(source: bytes) -> None:
    with pytest.raises(ArchiveFormatError):
        parse_zip_export(source)


def test_entries_without_html_are_skipped(snapshot_factory) -> None:
    entries = [
        snapshot_factory(snapshot_id).model_dump(by_alias=True, exclude={"html"}, exclude_none=True)
        for snapshot_id in ("kept", "lost")
    ]
    payload = _zip(
        {
            INDEX_FILE: orjson.dumps({"version": "1.0.0", "snapshots": entries}),
            html_file_for("kept"): "<p>kept</p>",
        }
    )
    data = parse_zip_export(payload)
    assert [snapshot.id for snapshot in data.snapshots] == ["kept"]
    assert data.snapshots[0].html == "<p>kept</p>"


def test_html_file_may_be_custom(snapshot_factory) -> None:
    entry = snapshot_factory("a").model_dump(by_alias=True, exclude={"html"}, exclude_none=True)
    entry["htmlFile"] = "pages/first.html"
    payload = _zip({INDEX_FILE: orjson.dumps({"snapshots": [entry]}), "pages/first.html": "<p>first</p>"})
    data = parse_zip_export(payload)
    assert data.version == "1.0.0"
    assert data.snapshots[0].html == "<p>first</p>"


def test_import_into_provider_is_idempotent(snapshot_factory) -> None:
    payload = create_zip_export([snapshot_factory("a"), snapshot_factory("b")])
    provider = MemoryStorageProvider()
    provider.save_snapshot(snapshot_factory("a"))
    result = provider.import_data(parse_zip_export(payload))
    assert (result.imported, result.skipped) == (1, 1)
    restored = provider.get_snapshot("b")
    assert restored is not None
    assert type(restored).__name__ == "Snapshot"
