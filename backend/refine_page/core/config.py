"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping

import orjson
import yaml
from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "RFP_"
DEFAULT_CONFIG_PATH = Path("~/.config/refine-page/config.yaml")

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("storage", "provider"): "provider",
    ("storage", "db_path"): "db_path",
    ("storage", "assets_base_url"): "assets_base_url",
    ("http", "base_url"): "http_base_url",
    ("http", "index_url"): "http_index_url",
    ("http", "snapshot_url_pattern"): "http_snapshot_url_pattern",
    ("http", "assets_base_url"): "http_assets_base_url",
    ("http", "headers"): "http_headers",
    ("http", "timeout"): "http_timeout",
    ("http", "writable"): "http_writable",
    ("capture", "timeout_seconds"): "capture_timeout_s",
    ("capture", "viewport_width"): "capture_viewport_width",
    ("capture", "viewport_height"): "capture_viewport_height",
    ("capture", "headless"): "capture_headless",
    ("export", "viewer_url_base"): "viewer_url_base",
    ("logging", "level"): "log_level",
    ("logging", "json"): "log_json",
}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    provider: Literal["local", "http", "memory"] = "local"
    db_path: Path = Field(default=Path.home() / ".refine-page" / "store.db")
    assets_base_url: str | None = None
    viewer_url_base: str | None = None
    http_base_url: str | None = None
    http_index_url: str | None = None
    http_snapshot_url_pattern: str | None = None
    http_assets_base_url: str | None = None
    http_headers: dict[str, str] = Field(default_factory=dict)
    http_timeout: float = 30.0
    http_writable: bool = False
    capture_timeout_s: int = 30
    capture_viewport_width: int = 1280
    capture_viewport_height: int = 800
    capture_headless: bool = True
    log_level: str = "INFO"
    log_json: bool = True

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("db_path", mode="before")
    @classmethod
    def _expand_db_path(cls, value: Any) -> Path:
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise TypeError("db_path must be a path or string")

    @field_validator("http_headers", mode="before")
    @classmethod
    def _parse_headers(cls, value: Any) -> Any:
        # RFP_HTTP_HEADERS arrives as a JSON object string
        if isinstance(value, str):
            return orjson.loads(value) if value.strip() else {}
        return value

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Load YAML config and overlay env vars; fall back to defaults."""
        config_path = cls._resolve_config_path(path)
        data: dict[str, Any] = {}
        if config_path and config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            data.update(_flatten_yaml(raw))
        data.update(_load_env_overrides())
        return cls(**data)

    @staticmethod
    def _resolve_config_path(path: Path | None) -> Path | None:
        if path is not None:
            return path.expanduser()
        env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        resolved_default = DEFAULT_CONFIG_PATH.expanduser()
        return resolved_default if resolved_default.exists() else None


def _flatten_yaml(raw: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> dict[str, Any]:
    """Flatten nested YAML configuration to Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        next_prefix = prefix + (key,)
        mapped_key = _YAML_KEY_MAP.get(next_prefix)
        if mapped_key:
            # http.headers is itself a mapping and must not be flattened further
            flat[mapped_key] = value
        elif isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, prefix=next_prefix))
        elif key in Settings.model_fields:
            flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map environment variables with RFP_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields:
            overrides[field_name] = value
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor for dependency injection."""
    return Settings.from_yaml()


__all__ = ["Settings", "get_settings"]
