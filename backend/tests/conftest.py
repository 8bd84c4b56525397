"""Test fixtures for refine-page."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset cached settings and environment between tests."""
    monkeypatch.setenv("RFP_DB_PATH", str(tmp_path / "store.db"))
    monkeypatch.delenv("RFP_CONFIG", raising=False)
    monkeypatch.delenv("RFP_PROVIDER", raising=False)

    from refine_page.core.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def make_snapshot(snapshot_id: str = "snap-1", **overrides):
    from refine_page.models.snapshot import Snapshot

    data = {
        "id": snapshot_id,
        "url": f"https://example.com/{snapshot_id}",
        "title": f"Page {snapshot_id}",
        "html": f"<!DOCTYPE html>\n<html><head></head><body><p>{snapshot_id}</p></body></html>",
        "viewport": {"width": 1280, "height": 800},
        "capturedAt": "2024-01-01T00:00:00.000Z",
        "updatedAt": "2024-01-01T00:00:00.000Z",
    }
    data.update(overrides)
    return Snapshot.model_validate(data)


@pytest.fixture
def snapshot_factory():
    return make_snapshot


@pytest.fixture
def text_annotation():
    from refine_page.models.snapshot import TextAnnotation

    return TextAnnotation.model_validate(
        {
            "id": "t1",
            "type": "relevant",
            "startOffset": 12,
            "endOffset": 27,
            "selectedText": "Breaking News",
            "selector": {"type": "xpath", "value": "/html/body/p[1]"},
            "createdAt": "2024-02-03T10:00:00.000Z",
            "updatedAt": "2024-02-03T10:05:00.000Z",
        }
    )


@pytest.fixture
def region_annotation():
    from refine_page.models.snapshot import RegionAnnotation

    return RegionAnnotation.model_validate(
        {
            "id": "r1",
            "type": "answer",
            "bounds": {"x": 10, "y": 20, "width": 100, "height": 50},
            "createdAt": "2024-02-03T11:00:00.000Z",
            "updatedAt": "2024-02-03T11:00:00.000Z",
        }
    )
