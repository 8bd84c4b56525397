"""Storage providers and the settings-driven factory."""

from __future__ import annotations

import dataclasses

import requests

from refine_page.core.config import Settings
from refine_page.core.errors import ConfigError
from refine_page.storage.base import StorageProvider, newest_first
from refine_page.storage.http import HttpStorageConfig, HttpStorageProvider, rest_write_callbacks
from refine_page.storage.local import LocalStorageProvider
from refine_page.storage.memory import MemoryStorageProvider


def create_provider(settings: Settings) -> StorageProvider:
    """Build the provider selected by ``settings.provider``."""
    if settings.provider == "memory":
        return MemoryStorageProvider()
    if settings.provider == "http":
        if not settings.http_base_url:
            raise ConfigError("provider 'http' requires http_base_url")
        config = HttpStorageConfig(
            base_url=settings.http_base_url,
            index_url=settings.http_index_url,
            snapshot_url_pattern=settings.http_snapshot_url_pattern,
            assets_base_url=settings.http_assets_base_url,
            headers=dict(settings.http_headers),
            timeout=settings.http_timeout,
        )
        session = requests.Session()
        if settings.http_writable:
            config = dataclasses.replace(config, **rest_write_callbacks(config, session))
        return HttpStorageProvider(config, session=session)
    return LocalStorageProvider(
        settings.db_path,
        assets_base_url=settings.assets_base_url,
        viewer_url_base=settings.viewer_url_base,
    )


__all__ = [
    "StorageProvider",
    "LocalStorageProvider",
    "HttpStorageConfig",
    "HttpStorageProvider",
    "MemoryStorageProvider",
    "create_provider",
    "newest_first",
    "rest_write_callbacks",
]
