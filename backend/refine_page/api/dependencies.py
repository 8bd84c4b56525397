"""Shared FastAPI dependencies.

The storage provider and capture service live on ``app.state``; they are
created at startup and dropped at shutdown.
"""

from __future__ import annotations

from fastapi import FastAPI, Request

from refine_page.core.config import Settings, get_settings
from refine_page.snapshot.capture import PageCapturer, SnapshotCaptureService
from refine_page.storage import StorageProvider, create_provider


def init_state(app: FastAPI, settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    app.state.settings = settings
    if getattr(app.state, "provider", None) is None:
        app.state.provider = create_provider(settings)
    if getattr(app.state, "capture_service", None) is None:
        app.state.capture_service = SnapshotCaptureService(app.state.provider, PageCapturer(settings))


def reset_state(app: FastAPI) -> None:
    provider = getattr(app.state, "provider", None)
    if provider is not None:
        provider.close()
    app.state.provider = None
    app.state.capture_service = None
    app.state.settings = None


def get_app_settings(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    return settings or get_settings()


def get_provider(request: Request) -> StorageProvider:
    if getattr(request.app.state, "provider", None) is None:
        init_state(request.app)
    return request.app.state.provider


def get_capture_service(request: Request) -> SnapshotCaptureService:
    if getattr(request.app.state, "capture_service", None) is None:
        init_state(request.app)
    return request.app.state.capture_service


__all__ = [
    "init_state",
    "reset_state",
    "get_app_settings",
    "get_provider",
    "get_capture_service",
]
