"""Capture route."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from refine_page.api.dependencies import get_capture_service
from refine_page.snapshot.capture import CaptureFailed, CaptureRequest, SnapshotCaptureService

router = APIRouter()


@router.post("/capture", summary="Capture a page and store it as a snapshot")
def capture_page(
    request: CaptureRequest,
    service: SnapshotCaptureService = Depends(get_capture_service),
) -> Any:
    message = service.handle(request)
    if isinstance(message, CaptureFailed):
        return JSONResponse(status_code=422, content=message.to_wire())
    return message.to_wire()


__all__ = ["router"]
