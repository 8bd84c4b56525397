"""Prometheus metrics instrumentation."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

CAPTURES_TOTAL = Counter(
    "refine_captures_total",
    "Capture attempts by producing strategy and outcome",
    labelnames=("strategy", "status"),
    registry=REGISTRY,
)

CAPTURE_DURATION = Histogram(
    "refine_capture_duration_seconds",
    "Wall time of the capture pipeline",
    registry=REGISTRY,
)

PROVIDER_READ_FAILURES = Counter(
    "refine_provider_read_failures_total",
    "Read-path failures downgraded to empty results",
    labelnames=("provider", "operation"),
    registry=REGISTRY,
)

SNAPSHOTS_STORED = Gauge(
    "refine_snapshots_stored",
    "Number of snapshot ids in the local index",
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "CAPTURES_TOTAL",
    "CAPTURE_DURATION",
    "PROVIDER_READ_FAILURES",
    "SNAPSHOTS_STORED",
    "metrics_response",
]
