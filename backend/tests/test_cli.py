"""CLI tests with the backend stubbed out."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
import requests
from typer.testing import CliRunner

from refine_page.cli import main as cli

runner = CliRunner()


class _Response:
    def __init__(self, status_code: int = 200, payload: Any = None, content: bytes = b"") -> None:
        self.status_code = status_code
        self.ok = status_code < 400
        self._payload = payload
        self.content = content
        self.text = json.dumps(payload)

    def json(self) -> Any:
        return self._payload


@pytest.fixture
def calls(monkeypatch: pytest.MonkeyPatch) -> list[tuple[str, str, dict]]:
    recorded: list[tuple[str, str, dict]] = []
    responses: dict[tuple[str, str], _Response] = {
        ("POST", "/capture"): _Response(200, {"type": "CAPTURE_COMPLETE", "payload": {"snapshotId": "s1"}}),
        ("GET", "/snapshots/missing"): _Response(404, {"detail": "Snapshot not found"}),
        ("GET", "/export.zip"): _Response(200, None, content=b"PK\x05\x06" + b"\x00" * 18),
        ("POST", "/import"): _Response(200, {"imported": 1, "skipped": 0}),
    }

    def fake_request(method: str, url: str, timeout: float, **kwargs: Any) -> _Response:
        path = url.split("5180", 1)[-1]
        recorded.append((method, url, kwargs))
        return responses.get((method, path), _Response(200, []))

    monkeypatch.setattr(requests, "request", fake_request)
    monkeypatch.delenv("RFP_HOST", raising=False)
    return recorded


def test_capture_sends_capture_message(calls) -> None:
    result = runner.invoke(cli.app, ["capture", "https://example.com", "--tag", "a", "--tag", "b"])
    assert result.exit_code == 0
    method, url, kwargs = calls[0]
    assert (method, url) == ("POST", "http://127.0.0.1:5180/capture")
    assert kwargs["json"] == {"type": "CAPTURE_PAGE", "url": "https://example.com", "tags": ["a", "b"]}
    assert '"snapshotId": "s1"' in result.stdout


def test_host_from_environment(calls, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RFP_HOST", "http://backend.test:5180/")
    runner.invoke(cli.app, ["list"])
    assert calls[0][1] == "http://backend.test:5180/snapshots"


def test_failed_request_exits_non_zero(calls) -> None:
    result = runner.invoke(cli.app, ["show", "missing"])
    assert result.exit_code == 1


def test_export_zip_writes_bytes(calls, tmp_path: Path) -> None:
    target = tmp_path / "bundle.zip"
    result = runner.invoke(cli.app, ["export", str(target)])
    assert result.exit_code == 0
    assert target.read_bytes().startswith(b"PK")


def test_import_json(calls, tmp_path: Path) -> None:
    source = tmp_path / "export.json"
    source.write_text(json.dumps({"snapshots": []}), encoding="utf-8")
    result = runner.invoke(cli.app, ["import", str(source)])
    assert result.exit_code == 0
    assert calls[0][2]["json"] == {"snapshots": []}
    assert '"imported": 1' in result.stdout
