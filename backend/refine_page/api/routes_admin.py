"""Administrative routes for refine-page."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from refine_page.api.dependencies import get_provider
from refine_page.core.metrics import metrics_response
from refine_page.storage import StorageProvider

router = APIRouter()


@router.get("/health", summary="Liveness check")
def health(provider: StorageProvider = Depends(get_provider)) -> dict[str, object]:
    return {"ok": True, "provider": provider.type, "readOnly": provider.is_read_only}


@router.get("/metrics", summary="Prometheus metrics")
def get_metrics():
    return metrics_response()


__all__ = ["router"]
