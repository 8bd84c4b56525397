"""Bulk export/import routes (JSON and ZIP)."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request, Response
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from refine_page.api.dependencies import get_app_settings, get_provider
from refine_page.archive.zip_export import create_zip_export, parse_zip_export
from refine_page.core.config import Settings
from refine_page.models.snapshot import ExportData
from refine_page.storage import StorageProvider
from refine_page.utils.time import utc_now

router = APIRouter()


@router.get("/export", summary="Export every snapshot as JSON")
def export_json(provider: StorageProvider = Depends(get_provider)) -> dict[str, Any]:
    return provider.export_all_data().to_wire()


@router.post("/import", summary="Import snapshots from a JSON export")
def import_json(
    payload: dict[str, Any] = Body(...),
    provider: StorageProvider = Depends(get_provider),
) -> dict[str, Any]:
    try:
        data = ExportData.model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_url=False)) from exc
    return provider.import_data(data).to_wire()


@router.get("/export.zip", summary="Export every snapshot as a ZIP bundle")
def export_zip(
    provider: StorageProvider = Depends(get_provider),
    settings: Settings = Depends(get_app_settings),
) -> Response:
    content = create_zip_export(
        provider.get_all_snapshots(),
        viewer_url_base=settings.viewer_url_base,
    )
    filename = f"refine-page-export-{utc_now():%Y-%m-%d}.zip"
    return Response(
        content=content,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import.zip", summary="Import snapshots from a ZIP bundle sent as the request body")
async def import_zip(request: Request, provider: StorageProvider = Depends(get_provider)) -> dict[str, Any]:
    body = await request.body()
    data = await run_in_threadpool(parse_zip_export, body)
    result = await run_in_threadpool(provider.import_data, data)
    return result.to_wire()


__all__ = ["router"]
