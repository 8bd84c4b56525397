"""FastAPI application setup for refine-page."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from refine_page.api.dependencies import init_state, reset_state
from refine_page.api.routes_admin import router as admin_router
from refine_page.api.routes_archive import router as archive_router
from refine_page.api.routes_capture import router as capture_router
from refine_page.api.routes_snapshots import router as snapshots_router
from refine_page.core.config import get_settings
from refine_page.core.errors import (
    ArchiveFormatError,
    CaptureError,
    ConfigError,
    ReadOnlyProviderError,
)
from refine_page.core.logging import configure_logging, get_logger

_settings = get_settings()
configure_logging(_settings.log_level, use_json=_settings.log_json)
logger = get_logger(__name__)

app = FastAPI(
    title="refine-page",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(snapshots_router, prefix="/snapshots", tags=["snapshots"])
app.include_router(archive_router, prefix="", tags=["archive"])
app.include_router(capture_router, prefix="", tags=["capture"])
app.include_router(admin_router, prefix="", tags=["admin"])


@app.on_event("startup")
async def startup() -> None:
    """Create the storage provider for this process."""
    init_state(app, get_settings())
    logger.info("Storage provider ready", extra={"ctx_provider": app.state.provider.type})


@app.on_event("shutdown")
async def shutdown() -> None:
    reset_state(app)


@app.exception_handler(ReadOnlyProviderError)
async def read_only_handler(request: Request, exc: ReadOnlyProviderError) -> JSONResponse:
    return JSONResponse(status_code=405, content={"detail": str(exc), "operation": exc.operation})


@app.exception_handler(ArchiveFormatError)
async def archive_handler(request: Request, exc: ArchiveFormatError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(CaptureError)
async def capture_handler(request: Request, exc: CaptureError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"type": "CAPTURE_ERROR", "payload": {"error": str(exc)}})


@app.exception_handler(ConfigError)
async def config_handler(request: Request, exc: ConfigError) -> JSONResponse:
    logger.error("Configuration error: %s", exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})
