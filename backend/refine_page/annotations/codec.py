"""Mapping between stored annotations and the W3C Web Annotation shape.

Text annotations become a ``TextQuoteSelector`` and region annotations a
media-fragment ``FragmentSelector`` (``xywh=percent:x,y,w,h``). The
``x-refine-page`` extension block tells the two apart and carries the fields
the W3C selectors have no slot for, so decoding an encoded annotation gives
back an equal record.
"""

from __future__ import annotations

import math
import re
from typing import Any, Mapping

from pydantic import ValidationError

from refine_page.core.logging import get_logger
from refine_page.models.snapshot import (
    Bounds,
    RegionAnnotation,
    Snapshot,
    TextAnnotation,
    TextSelector,
)

logger = get_logger(__name__)

ANNO_CONTEXT = "http://www.w3.org/ns/anno.jsonld"
MEDIA_FRAGMENTS = "http://www.w3.org/TR/media-frags/"
EXTENSION_KEY = "x-refine-page"

_NUMBER = r"[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?"
FRAGMENT_RE = re.compile(rf"^xywh=percent:({_NUMBER}),({_NUMBER}),({_NUMBER}),({_NUMBER})$")

Annotation = TextAnnotation | RegionAnnotation


def format_fragment(bounds: Bounds) -> str:
    parts = (bounds.x, bounds.y, bounds.width, bounds.height)
    return "xywh=percent:" + ",".join(_format_number(value) for value in parts)


def parse_fragment(value: str) -> Bounds | None:
    """Parse ``xywh=percent:x,y,w,h``; anything else yields ``None``."""
    match = FRAGMENT_RE.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        return None
    numbers = [float(group) for group in match.groups()]
    if not all(math.isfinite(n) for n in numbers):
        return None
    try:
        return Bounds(x=numbers[0], y=numbers[1], width=numbers[2], height=numbers[3])
    except ValidationError:
        return None


def to_interchange(annotation: Annotation, snapshot_id: str) -> dict[str, Any]:
    """Encode a stored annotation as a W3C Web Annotation."""
    if isinstance(annotation, TextAnnotation):
        selector: dict[str, Any] = {
            "type": "TextQuoteSelector",
            "exact": annotation.selected_text,
        }
        extension: dict[str, Any] = {
            "annotationType": "text",
            "startOffset": annotation.start_offset,
            "endOffset": annotation.end_offset,
            "selector": annotation.selector.to_wire(),
        }
    else:
        selector = {
            "type": "FragmentSelector",
            "conformsTo": MEDIA_FRAGMENTS,
            "value": format_fragment(annotation.bounds),
        }
        extension = {"annotationType": "region"}
        if annotation.target_selector is not None:
            extension["targetSelector"] = annotation.target_selector

    return {
        "@context": ANNO_CONTEXT,
        "id": annotation.id,
        "type": "Annotation",
        "body": {
            "type": "TextualBody",
            "purpose": "tagging",
            "value": annotation.type,
        },
        "target": {
            "source": snapshot_id,
            "selector": selector,
        },
        "created": annotation.created_at,
        "modified": annotation.updated_at,
        EXTENSION_KEY: extension,
    }


def from_interchange(data: Mapping[str, Any]) -> Annotation | None:
    """Decode a W3C Web Annotation; ``None`` when it cannot be read faithfully."""
    try:
        return _decode(data)
    except (ValidationError, KeyError, TypeError, ValueError, AttributeError) as exc:
        logger.debug("Undecodable web annotation %s: %s", _safe_id(data), exc)
        return None


def to_interchange_many(snapshot: Snapshot) -> list[dict[str, Any]]:
    """All annotations of a snapshot, text first, in creation order."""
    annotations: list[Annotation] = [*snapshot.annotations.text, *snapshot.annotations.region]
    return [to_interchange(annotation, snapshot.id) for annotation in annotations]


def _decode(data: Mapping[str, Any]) -> Annotation | None:
    body = _first(data["body"])
    target = data["target"]
    extension = data.get(EXTENSION_KEY) or {}
    selectors = target["selector"]
    selectors = list(selectors) if isinstance(selectors, (list, tuple)) else [selectors]

    kind = extension.get("annotationType")
    if kind is None:
        kind = _infer_kind(selectors)

    if kind == "text":
        selector = _find_selector(selectors, "TextQuoteSelector")
        if selector is None:
            return None
        return TextAnnotation(
            id=data["id"],
            type=body["value"],
            start_offset=extension.get("startOffset", 0),
            end_offset=extension.get("endOffset", 0),
            selected_text=selector["exact"],
            selector=TextSelector.model_validate(
                extension.get("selector") or {"type": "text-position", "value": "0:0"}
            ),
            created_at=data["created"],
            updated_at=data["modified"],
        )

    if kind == "region":
        selector = _find_selector(selectors, "FragmentSelector")
        if selector is None:
            return None
        bounds = parse_fragment(selector.get("value"))
        if bounds is None:
            return None
        return RegionAnnotation(
            id=data["id"],
            type=body["value"],
            bounds=bounds,
            target_selector=extension.get("targetSelector"),
            created_at=data["created"],
            updated_at=data["modified"],
        )

    return None


def _infer_kind(selectors: list[Mapping[str, Any]]) -> str | None:
    for selector in selectors:
        if selector.get("type") == "TextQuoteSelector":
            return "text"
        if selector.get("type") == "FragmentSelector":
            return "region"
    return None


def _find_selector(selectors: list[Mapping[str, Any]], selector_type: str) -> Mapping[str, Any] | None:
    for selector in selectors:
        if isinstance(selector, Mapping) and selector.get("type") == selector_type:
            return selector
    return None


def _first(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return value[0]
    return value


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _safe_id(data: Any) -> Any:
    return data.get("id") if isinstance(data, Mapping) else None


__all__ = [
    "ANNO_CONTEXT",
    "MEDIA_FRAGMENTS",
    "EXTENSION_KEY",
    "format_fragment",
    "parse_fragment",
    "to_interchange",
    "from_interchange",
    "to_interchange_many",
]
