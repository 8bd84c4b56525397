"""Settings loading tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from refine_page.core.config import Settings, get_settings


def test_defaults_use_env_db_path(tmp_path: Path) -> None:
    settings = get_settings()
    assert settings.provider == "local"
    assert settings.db_path == tmp_path / "store.db"
    assert settings.http_writable is False


def test_yaml_sections_are_flattened(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config = tmp_path / "config.yaml"
    config.write_text(
        """
storage:
  provider: http
http:
  base_url: https://data.test/refine
  headers:
    Authorization: Bearer abc
  timeout: 5
  writable: true
capture:
  timeout_seconds: 12
  viewport_width: 1440
export:
  viewer_url_base: https://viewer.test/viewer.html
logging:
  level: DEBUG
  json: false
""",
        encoding="utf-8",
    )
    monkeypatch.delenv("RFP_DB_PATH")
    settings = Settings.from_yaml(config)
    assert settings.provider == "http"
    assert settings.http_base_url == "https://data.test/refine"
    assert settings.http_headers == {"Authorization": "Bearer abc"}
    assert settings.http_timeout == 5
    assert settings.http_writable is True
    assert settings.capture_timeout_s == 12
    assert settings.capture_viewport_width == 1440
    assert settings.viewer_url_base == "https://viewer.test/viewer.html"
    assert settings.log_level == "DEBUG"
    assert settings.log_json is False


def test_env_overrides_yaml(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config = tmp_path / "config.yaml"
    config.write_text("storage:\n  provider: http\n", encoding="utf-8")
    monkeypatch.setenv("RFP_CONFIG", str(config))
    monkeypatch.setenv("RFP_PROVIDER", "memory")
    monkeypatch.setenv("RFP_HTTP_HEADERS", '{"X-Token": "t"}')
    get_settings.cache_clear()
    settings = get_settings()
    assert settings.provider == "memory"
    assert settings.http_headers == {"X-Token": "t"}


def test_unknown_provider_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RFP_PROVIDER", "s3")
    with pytest.raises(ValidationError):
        Settings.from_yaml()
