"""Extra style collection tests."""

from __future__ import annotations

from refine_page.core.errors import StyleSheetAccessError
from refine_page.snapshot.styles import (
    ProbedDocument,
    ProbedShadowRoot,
    ProbedSheet,
    collect_extra_styles,
    custom_properties,
)


class ForbiddenSheet:
    def css_text(self) -> str:
        raise StyleSheetAccessError("cross-origin")


def test_collection_order_and_dedup() -> None:
    shared = ".btn { color: blue; }"
    document = ProbedDocument(
        adopted=[ProbedSheet(text=shared), ProbedSheet(text=".doc { margin: 0; }"), ProbedSheet(text=shared)],
        roots=[
            ProbedShadowRoot(
                styles=[":host { display: block; }", shared],
                adopted=[ProbedSheet(text=".inner { padding: 1px; }")],
                children=[ProbedShadowRoot(styles=[":host { display: block; }", ".deep { top: 0; }"])],
            ),
        ],
        root_style="--brand: #f00; color: black",
        body_style="--gap: 4px;",
    )
    assert collect_extra_styles(document) == [
        shared,
        ".doc { margin: 0; }",
        ":host { display: block; }",
        ".inner { padding: 1px; }",
        ".deep { top: 0; }",
        ":root { --brand: #f00; }",
        "body { --gap: 4px; }",
    ]


def test_unreadable_sheets_are_skipped() -> None:
    document = ProbedDocument(
        adopted=[ProbedSheet(error="SecurityError"), ProbedSheet(text="a { b: c; }")],
        roots=[ProbedShadowRoot(adopted=[ProbedSheet(error="SecurityError")])],
    )
    assert collect_extra_styles(document) == ["a { b: c; }"]


def test_protocol_implementations_may_raise() -> None:
    class Document:
        def adopted_style_sheets(self):
            return [ForbiddenSheet()]

        def shadow_roots(self):
            return []

        def inline_style(self, target):
            return ""

    assert collect_extra_styles(Document()) == []


def test_from_probe_payload() -> None:
    payload = {
        "adopted": [{"cssText": ".a { x: 1; }"}, {"error": "SecurityError: blocked"}],
        "shadowRoots": [
            {"styles": [".b { y: 2; }"], "adopted": [], "shadowRoots": [{"styles": [".c { z: 3; }"]}]},
        ],
        "rootStyle": "--one: 1",
        "bodyStyle": "",
    }
    document = ProbedDocument.from_probe(payload)
    assert collect_extra_styles(document) == [
        ".a { x: 1; }",
        ".b { y: 2; }",
        ".c { z: 3; }",
        ":root { --one: 1; }",
    ]


def test_empty_probe() -> None:
    assert collect_extra_styles(ProbedDocument.from_probe(None)) == []


def test_custom_properties_parsing() -> None:
    assert custom_properties("color: red; --a: 1; --b:  calc(1px + 2px) ;--empty: ;") == [
        "--a: 1;",
        "--b: calc(1px + 2px);",
    ]
    assert custom_properties(None) == []


def test_custom_properties_keep_semicolons_inside_values() -> None:
    style = (
        '--icon: url("data:image/svg+xml;base64,AAAA"); color: red; '
        "--label: 'a;b'; --bg: url(data:image/png;base64,BBBB)"
    )
    assert custom_properties(style) == [
        '--icon: url("data:image/svg+xml;base64,AAAA");',
        "--label: 'a;b';",
        "--bg: url(data:image/png;base64,BBBB);",
    ]
    document = ProbedDocument(root_style='--icon: url("data:image/svg+xml;base64,AAAA"); color: red')
    assert collect_extra_styles(document) == [':root { --icon: url("data:image/svg+xml;base64,AAAA"); }']
