"""Capture pipeline: live page to stored, inert snapshot.

Capture runs as an ordered chain of strategies. The MHTML strategy goes
through Chromium's ``Page.captureSnapshot``; when it fails the DOM strategy
serializes ``page.content()``. Either way the result is inert-ified with the
extra styles collected from the live page before capture started.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Literal, Protocol, Sequence

from pydantic import Field

from refine_page.core.config import Settings
from refine_page.core.errors import CaptureError, ReadOnlyProviderError
from refine_page.core.logging import get_logger
from refine_page.core.metrics import CAPTURE_DURATION, CAPTURES_TOTAL
from refine_page.models.snapshot import Snapshot, Viewport, WireModel
from refine_page.snapshot.inertify import MHTML_PROFILE, SINGLE_FILE_PROFILE, inertify
from refine_page.snapshot.mhtml import mhtml_to_html
from refine_page.snapshot.styles import STYLE_PROBE_SCRIPT, ProbedDocument, collect_extra_styles
from refine_page.storage.base import StorageProvider
from refine_page.utils.ids import new_snapshot_id
from refine_page.utils.time import utc_now_iso

logger = get_logger(__name__)

UNCAPTURABLE_PREFIXES = (
    "chrome://",
    "chrome-extension://",
    "edge://",
    "about:",
    "devtools://",
)

CaptureStrategy = tuple[str, Callable[[], str]]


class CaptureRequest(WireModel):
    type: Literal["CAPTURE_PAGE"] = "CAPTURE_PAGE"
    url: str
    tags: list[str] = Field(default_factory=list)


class CaptureCompletePayload(WireModel):
    snapshot_id: str
    strategy: str


class CaptureComplete(WireModel):
    type: Literal["CAPTURE_COMPLETE"] = "CAPTURE_COMPLETE"
    payload: CaptureCompletePayload


class CaptureErrorPayload(WireModel):
    error: str


class CaptureFailed(WireModel):
    type: Literal["CAPTURE_ERROR"] = "CAPTURE_ERROR"
    payload: CaptureErrorPayload


@dataclass(slots=True)
class CaptureOutcome:
    """Inert HTML tagged with the strategy that produced it."""

    strategy: str
    html: str
    failures: list[tuple[str, str]] = field(default_factory=list)


@dataclass(slots=True)
class CapturedPage:
    url: str
    title: str
    viewport: Viewport
    outcome: CaptureOutcome


class Capturer(Protocol):
    def capture(self, url: str) -> CapturedPage: ...


def ensure_capturable(url: str) -> None:
    if not url or url.strip().lower().startswith(UNCAPTURABLE_PREFIXES):
        raise CaptureError("Cannot capture browser internal pages")


def run_capture_chain(strategies: Sequence[CaptureStrategy]) -> CaptureOutcome:
    """Run strategies in order until one returns HTML.

    Raises :class:`CaptureError` listing every failure when none succeeds.
    """
    failures: list[tuple[str, str]] = []
    for name, produce in strategies:
        try:
            html = produce()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Capture strategy %s failed: %s", name, exc)
            failures.append((name, str(exc) or exc.__class__.__name__))
            continue
        return CaptureOutcome(strategy=name, html=html, failures=failures)
    detail = "; ".join(f"{name}: {message}" for name, message in failures) or "no capture strategy configured"
    raise CaptureError(f"All capture strategies failed ({detail})")


def build_snapshot(
    url: str,
    title: str,
    html: str,
    viewport: Viewport,
    tags: Sequence[str] = (),
) -> Snapshot:
    now = utc_now_iso()
    return Snapshot(
        id=new_snapshot_id(),
        url=url,
        title=title,
        html=html,
        viewport=viewport,
        status="pending",
        captured_at=now,
        updated_at=now,
        tags=list(tags),
    )


class PageCapturer:
    """Drives a headless Chromium through Playwright's sync API."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def capture(self, url: str) -> CapturedPage:
        ensure_capturable(url)
        try:
            from playwright.sync_api import Error as PlaywrightError
            from playwright.sync_api import sync_playwright
        except ImportError as exc:
            raise CaptureError(f"Playwright unavailable for capture: {exc}") from exc

        with sync_playwright() as playwright:
            browser = playwright.chromium.launch(headless=self.settings.capture_headless)
            try:
                page = browser.new_page(
                    viewport={
                        "width": self.settings.capture_viewport_width,
                        "height": self.settings.capture_viewport_height,
                    }
                )
                try:
                    page.goto(url, wait_until="load", timeout=self.settings.capture_timeout_s * 1000)
                except PlaywrightError as exc:
                    raise CaptureError(f"Navigation to {url} failed: {exc}") from exc

                title = page.title() or url
                size = page.evaluate("() => ({width: window.innerWidth, height: window.innerHeight})")
                viewport = Viewport(width=size["width"], height=size["height"])
                try:
                    probe = page.evaluate(STYLE_PROBE_SCRIPT)
                except PlaywrightError as exc:
                    logger.warning("Style probe failed for %s: %s", url, exc)
                    probe = None
                extra_styles = collect_extra_styles(ProbedDocument.from_probe(probe))
                captured_at = utc_now_iso()

                def via_mhtml() -> str:
                    session = page.context.new_cdp_session(page)
                    try:
                        result = session.send("Page.captureSnapshot", {"format": "mhtml"})
                    finally:
                        session.detach()
                    document = mhtml_to_html(result["data"])
                    return inertify(
                        document.html,
                        extra_styles,
                        profile=MHTML_PROFILE,
                        captured_at=captured_at,
                        base_url=document.base_url or page.url,
                    )

                def via_dom() -> str:
                    return inertify(
                        page.content(),
                        extra_styles,
                        profile=SINGLE_FILE_PROFILE,
                        captured_at=captured_at,
                    )

                outcome = run_capture_chain([("mhtml", via_mhtml), ("dom", via_dom)])
                return CapturedPage(url=page.url or url, title=title, viewport=viewport, outcome=outcome)
            finally:
                browser.close()


class SnapshotCaptureService:
    """Answers capture requests with a stored snapshot id or an error message."""

    def __init__(self, provider: StorageProvider, capturer: Capturer) -> None:
        self.provider = provider
        self.capturer = capturer

    def handle(self, request: CaptureRequest) -> CaptureComplete | CaptureFailed:
        started = time.perf_counter()
        try:
            ensure_capturable(request.url)
            page = self.capturer.capture(request.url)
            snapshot = build_snapshot(
                url=page.url,
                title=page.title,
                html=page.outcome.html,
                viewport=page.viewport,
                tags=request.tags,
            )
            self.provider.save_snapshot(snapshot)
        except (CaptureError, ReadOnlyProviderError) as exc:
            CAPTURES_TOTAL.labels(strategy="none", status="error").inc()
            logger.error("Capture failed: %s", exc, extra={"ctx_url": request.url})
            return CaptureFailed(payload=CaptureErrorPayload(error=str(exc)))
        except Exception as exc:  # noqa: BLE001
            CAPTURES_TOTAL.labels(strategy="none", status="error").inc()
            logger.exception("Capture crashed", extra={"ctx_url": request.url})
            return CaptureFailed(payload=CaptureErrorPayload(error=str(exc) or exc.__class__.__name__))
        finally:
            CAPTURE_DURATION.observe(time.perf_counter() - started)

        CAPTURES_TOTAL.labels(strategy=page.outcome.strategy, status="ok").inc()
        logger.info(
            "Snapshot saved",
            extra={
                "ctx_snapshot_id": snapshot.id,
                "ctx_strategy": page.outcome.strategy,
                "ctx_size_kb": round(len(snapshot.html) / 1024, 1),
            },
        )
        return CaptureComplete(
            payload=CaptureCompletePayload(snapshot_id=snapshot.id, strategy=page.outcome.strategy)
        )


__all__ = [
    "UNCAPTURABLE_PREFIXES",
    "CaptureRequest",
    "CaptureComplete",
    "CaptureFailed",
    "CaptureOutcome",
    "CapturedPage",
    "Capturer",
    "ensure_capturable",
    "run_capture_chain",
    "build_snapshot",
    "PageCapturer",
    "SnapshotCaptureService",
]
