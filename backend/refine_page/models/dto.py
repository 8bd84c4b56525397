"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from pydantic import Field

from refine_page.models.snapshot import Viewport, WireModel


class SnapshotCreateRequest(WireModel):
    url: str
    title: str
    html: str = Field(description="Raw captured document; inert-ified before storage")
    viewport: Viewport = Field(default_factory=lambda: Viewport(width=1280, height=800))
    tags: list[str] = Field(default_factory=list)
    extra_styles: list[str] = Field(default_factory=list, description="CSS collected from the live page")
    mhtml: bool = Field(default=False, description="Treat html as an MHTML package")


class DeleteResponse(WireModel):
    status: str
    deleted: int


class AnnotatorEventResponse(WireModel):
    changed: bool
    annotations: list[dict] = Field(default_factory=list)
    selected_id: str | None = None


__all__ = [
    "SnapshotCreateRequest",
    "DeleteResponse",
    "AnnotatorEventResponse",
]
