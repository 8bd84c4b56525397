"""Snapshot CRUD and annotation routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import ValidationError

from refine_page.annotations.codec import to_interchange_many
from refine_page.annotations.messages import AnnotatorSession, parse_event
from refine_page.api.dependencies import get_provider
from refine_page.models.dto import AnnotatorEventResponse, DeleteResponse, SnapshotCreateRequest
from refine_page.snapshot.capture import build_snapshot
from refine_page.snapshot.inertify import MHTML_PROFILE, SINGLE_FILE_PROFILE, inertify
from refine_page.snapshot.mhtml import mhtml_to_html
from refine_page.storage import StorageProvider

router = APIRouter()


def _require(provider: StorageProvider, snapshot_id: str):
    snapshot = provider.get_snapshot(snapshot_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Snapshot not found")
    return snapshot


@router.get("", summary="List snapshot summaries, newest first")
def list_snapshots(provider: StorageProvider = Depends(get_provider)) -> list[dict[str, Any]]:
    return [summary.to_wire() for summary in provider.get_all_snapshot_summaries()]


@router.post("", status_code=201, summary="Store a captured document as a snapshot")
def create_snapshot(
    request: SnapshotCreateRequest,
    provider: StorageProvider = Depends(get_provider),
) -> dict[str, Any]:
    if request.mhtml:
        document = mhtml_to_html(request.html)
        html = inertify(document.html, request.extra_styles, profile=MHTML_PROFILE, base_url=document.base_url)
    else:
        html = inertify(request.html, request.extra_styles, profile=SINGLE_FILE_PROFILE)
    snapshot = build_snapshot(request.url, request.title, html, request.viewport, tags=request.tags)
    provider.save_snapshot(snapshot)
    return snapshot.summarize().to_wire()


@router.get("/{snapshot_id}", summary="Fetch a full snapshot")
def get_snapshot(snapshot_id: str, provider: StorageProvider = Depends(get_provider)) -> dict[str, Any]:
    return _require(provider, snapshot_id).to_wire()


@router.patch("/{snapshot_id}", summary="Merge a partial update into a snapshot")
def update_snapshot(
    snapshot_id: str,
    updates: dict[str, Any] = Body(...),
    provider: StorageProvider = Depends(get_provider),
) -> dict[str, Any]:
    try:
        updated = provider.update_snapshot(snapshot_id, updates)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_url=False)) from exc
    if updated is None:
        raise HTTPException(status_code=404, detail="Snapshot not found")
    return updated.to_wire()


@router.delete("/{snapshot_id}", response_model=DeleteResponse, summary="Delete a snapshot")
def delete_snapshot(snapshot_id: str, provider: StorageProvider = Depends(get_provider)) -> DeleteResponse:
    _require(provider, snapshot_id)
    provider.delete_snapshot(snapshot_id)
    return DeleteResponse(status="ok", deleted=1)


@router.get("/{snapshot_id}/annotations", summary="Annotations as W3C Web Annotations")
def list_annotations(snapshot_id: str, provider: StorageProvider = Depends(get_provider)) -> list[dict[str, Any]]:
    return to_interchange_many(_require(provider, snapshot_id))


@router.post("/{snapshot_id}/events", response_model=AnnotatorEventResponse, summary="Apply an annotator event")
def apply_event(
    snapshot_id: str,
    event: dict[str, Any] = Body(...),
    provider: StorageProvider = Depends(get_provider),
) -> AnnotatorEventResponse:
    snapshot = _require(provider, snapshot_id)
    try:
        parsed = parse_event(event)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_url=False)) from exc

    session = AnnotatorSession(snapshot)
    updated = session.apply(parsed)
    if updated is not None:
        stored = provider.update_snapshot(snapshot_id, {"annotations": updated.annotations})
        if stored is not None:
            session.snapshot = stored
    return AnnotatorEventResponse(
        changed=updated is not None,
        annotations=to_interchange_many(session.snapshot),
        selected_id=session.selected_id,
    )


__all__ = ["router"]
