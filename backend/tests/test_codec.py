"""Web annotation codec tests."""

from __future__ import annotations

import copy

import pytest

from refine_page.annotations.codec import (
    ANNO_CONTEXT,
    MEDIA_FRAGMENTS,
    format_fragment,
    from_interchange,
    parse_fragment,
    to_interchange,
    to_interchange_many,
)
from refine_page.models.snapshot import Bounds, RegionAnnotation


def test_text_annotation_encodes_quote_selector(text_annotation) -> None:
    encoded = to_interchange(text_annotation, "snap-1")
    assert encoded["@context"] == ANNO_CONTEXT
    assert encoded["type"] == "Annotation"
    assert encoded["body"] == {"type": "TextualBody", "purpose": "tagging", "value": "relevant"}
    assert encoded["target"]["source"] == "snap-1"
    assert encoded["target"]["selector"] == {"type": "TextQuoteSelector", "exact": "Breaking News"}
    assert encoded["x-refine-page"]["annotationType"] == "text"
    assert encoded["created"] == text_annotation.created_at
    assert encoded["modified"] == text_annotation.updated_at


def test_region_annotation_encodes_fragment(region_annotation) -> None:
    encoded = to_interchange(region_annotation, "snap-1")
    selector = encoded["target"]["selector"]
    assert selector["type"] == "FragmentSelector"
    assert selector["conformsTo"] == MEDIA_FRAGMENTS
    assert selector["value"] == "xywh=percent:10,20,100,50"
    assert encoded["body"]["value"] == "answer"
    assert encoded["x-refine-page"]["annotationType"] == "region"


def test_round_trip_text(text_annotation) -> None:
    assert from_interchange(to_interchange(text_annotation, "s")) == text_annotation


def test_round_trip_region(region_annotation) -> None:
    assert from_interchange(to_interchange(region_annotation, "s")) == region_annotation


def test_round_trip_fractional_bounds() -> None:
    annotation = RegionAnnotation(
        id="r2",
        type="relevant",
        bounds=Bounds(x=12.345, y=0.5, width=33.33, height=99.99),
        target_selector="#hero img",
        created_at="2024-01-01T00:00:00.000Z",
        updated_at="2024-01-01T00:00:00.000Z",
    )
    decoded = from_interchange(to_interchange(annotation, "s"))
    assert decoded == annotation
    assert decoded.bounds.x == pytest.approx(12.345)


@pytest.mark.parametrize(
    "value",
    [
        "invalid-format",
        "xywh=10,20,30,40",
        "xywh=percent:10,20,30",
        "xywh=percent:10,20,30,40,50",
        "xywh=percent:a,20,30,40",
        "xywh=pixel:10,20,30,40",
        "xywh=percent:10,20,30,140",
    ],
)
def test_bad_fragment_decodes_to_none(region_annotation, value: str) -> None:
    encoded = to_interchange(region_annotation, "s")
    encoded["target"]["selector"]["value"] = value
    assert from_interchange(encoded) is None


def test_missing_extension_falls_back_to_selector_type(text_annotation) -> None:
    encoded = to_interchange(text_annotation, "s")
    del encoded["x-refine-page"]
    decoded = from_interchange(encoded)
    assert decoded is not None
    assert decoded.selected_text == "Breaking News"
    assert decoded.start_offset == 0
    assert decoded.end_offset == 0
    assert decoded.selector.type == "text-position"


def test_list_shaped_body_and_selector(region_annotation) -> None:
    encoded = to_interchange(region_annotation, "s")
    encoded["body"] = [copy.deepcopy(encoded["body"])]
    encoded["target"]["selector"] = [{"type": "CssSelector", "value": "img"}, encoded["target"]["selector"]]
    assert from_interchange(encoded) == region_annotation


def test_unknown_body_value_is_rejected(text_annotation) -> None:
    encoded = to_interchange(text_annotation, "s")
    encoded["body"]["value"] = "commenting"
    assert from_interchange(encoded) is None


def test_garbage_input_is_rejected() -> None:
    assert from_interchange({}) is None
    assert from_interchange({"body": {}, "target": {}}) is None


def test_fragment_helpers() -> None:
    assert format_fragment(Bounds(x=0, y=0, width=50.5, height=100)) == "xywh=percent:0,0,50.5,100"
    assert parse_fragment(" xywh=percent:1,2,3,4 ") == Bounds(x=1, y=2, width=3, height=4)
    assert parse_fragment(None) is None


def test_to_interchange_many_lists_text_then_region(snapshot_factory, text_annotation, region_annotation) -> None:
    snapshot = snapshot_factory(
        annotations={"text": [text_annotation.to_wire()], "region": [region_annotation.to_wire()]}
    )
    encoded = to_interchange_many(snapshot)
    assert [item["id"] for item in encoded] == ["t1", "r1"]
    assert all(item["target"]["source"] == snapshot.id for item in encoded)
