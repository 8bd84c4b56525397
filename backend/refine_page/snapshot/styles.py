"""Collect style state that a page holds only in memory.

Constructed style sheets (``document.adoptedStyleSheets``), shadow-tree styles
and custom properties set on ``<html>``/``<body>`` through script are lost by
every serializer. They are read from the live page strictly before capture and
handed to :func:`refine_page.snapshot.inertify.inertify` as extra style blocks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Literal, Mapping, Protocol, Sequence

from refine_page.core.errors import StyleSheetAccessError
from refine_page.core.logging import get_logger

logger = get_logger(__name__)

InlineTarget = Literal["root", "body"]

# Runs in the page through Playwright's ``page.evaluate``; the return value is
# the input of ``ProbedDocument.from_probe``.
STYLE_PROBE_SCRIPT = """
() => {
  const readSheet = (sheet) => {
    try {
      return { cssText: Array.from(sheet.cssRules).map((rule) => rule.cssText).join('\\n') };
    } catch (error) {
      return { error: String(error) };
    }
  };
  const readRoot = (root) => ({
    styles: Array.from(root.querySelectorAll('style')).map((el) => el.textContent || ''),
    adopted: Array.from(root.adoptedStyleSheets || []).map(readSheet),
    shadowRoots: collectShadowRoots(root),
  });
  const collectShadowRoots = (root) => {
    const found = [];
    for (const el of root.querySelectorAll('*')) {
      if (el.shadowRoot) found.push(readRoot(el.shadowRoot));
    }
    return found;
  };
  return {
    adopted: Array.from(document.adoptedStyleSheets || []).map(readSheet),
    shadowRoots: collectShadowRoots(document),
    rootStyle: document.documentElement.getAttribute('style') || '',
    bodyStyle: document.body ? document.body.getAttribute('style') || '' : '',
  };
}
"""


class StyleSheetHandle(Protocol):
    def css_text(self) -> str:
        """Return the sheet's CSS or raise :class:`StyleSheetAccessError`."""


class ShadowRootHandle(Protocol):
    def style_elements(self) -> Sequence[str]: ...

    def adopted_style_sheets(self) -> Sequence[StyleSheetHandle]: ...

    def shadow_roots(self) -> Sequence["ShadowRootHandle"]: ...


class LiveDocument(Protocol):
    def adopted_style_sheets(self) -> Sequence[StyleSheetHandle]: ...

    def shadow_roots(self) -> Sequence[ShadowRootHandle]: ...

    def inline_style(self, target: InlineTarget) -> str: ...


def collect_extra_styles(document: LiveDocument) -> list[str]:
    """Return extra CSS blocks in application order.

    Document-level adopted sheets come first, then shadow-tree styles depth
    first, then custom properties declared inline on the root and body.
    Identical CSS text is kept once. Unreadable sheets are skipped.
    """
    collected: list[str] = []
    seen: set[str] = set()

    def add(css: str) -> None:
        if css and css.strip() and css not in seen:
            seen.add(css)
            collected.append(css)

    for sheet in document.adopted_style_sheets():
        add(_read_sheet(sheet))

    def walk(roots: Iterable[ShadowRootHandle]) -> None:
        for root in roots:
            for css in root.style_elements():
                add(css)
            for sheet in root.adopted_style_sheets():
                add(_read_sheet(sheet))
            walk(root.shadow_roots())

    walk(document.shadow_roots())

    for target, selector in (("root", ":root"), ("body", "body")):
        declarations = custom_properties(document.inline_style(target))
        if declarations:
            add(f"{selector} {{ {' '.join(declarations)} }}")

    return collected


def custom_properties(style_attribute: str | None) -> list[str]:
    """``--name: value;`` declarations from an inline style attribute."""
    if not style_attribute:
        return []
    declarations: list[str] = []
    for chunk in _split_declarations(style_attribute):
        name, sep, value = chunk.partition(":")
        name = name.strip()
        if sep and name.startswith("--") and value.strip():
            declarations.append(f"{name}: {value.strip()};")
    return declarations


def _split_declarations(style_attribute: str) -> list[str]:
    """Split on ``;`` outside quotes and parentheses (``data:`` URLs carry ``;base64``)."""
    chunks: list[str] = []
    current: list[str] = []
    quote: str | None = None
    depth = 0
    escaped = False
    for char in style_attribute:
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif quote:
            if char == quote:
                quote = None
        elif char in "\"'":
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth = max(depth - 1, 0)
        elif char == ";" and depth == 0:
            chunks.append("".join(current))
            current = []
            continue
        current.append(char)
    chunks.append("".join(current))
    return chunks


def _read_sheet(sheet: StyleSheetHandle) -> str:
    try:
        return sheet.css_text()
    except StyleSheetAccessError as exc:
        logger.debug("Skipping unreadable style sheet: %s", exc)
        return ""


@dataclass(slots=True)
class ProbedSheet:
    text: str | None = None
    error: str | None = None

    def css_text(self) -> str:
        if self.error is not None or self.text is None:
            raise StyleSheetAccessError(self.error or "style sheet rules are not readable")
        return self.text

    @classmethod
    def from_probe(cls, data: Mapping[str, Any]) -> "ProbedSheet":
        return cls(text=data.get("cssText"), error=data.get("error"))


@dataclass(slots=True)
class ProbedShadowRoot:
    styles: list[str] = field(default_factory=list)
    adopted: list[ProbedSheet] = field(default_factory=list)
    children: list["ProbedShadowRoot"] = field(default_factory=list)

    def style_elements(self) -> Sequence[str]:
        return self.styles

    def adopted_style_sheets(self) -> Sequence[ProbedSheet]:
        return self.adopted

    def shadow_roots(self) -> Sequence["ProbedShadowRoot"]:
        return self.children

    @classmethod
    def from_probe(cls, data: Mapping[str, Any]) -> "ProbedShadowRoot":
        return cls(
            styles=[str(css) for css in data.get("styles") or []],
            adopted=[ProbedSheet.from_probe(sheet) for sheet in data.get("adopted") or []],
            children=[cls.from_probe(child) for child in data.get("shadowRoots") or []],
        )


@dataclass(slots=True)
class ProbedDocument:
    """Snapshot of live style state returned by :data:`STYLE_PROBE_SCRIPT`."""

    adopted: list[ProbedSheet] = field(default_factory=list)
    roots: list[ProbedShadowRoot] = field(default_factory=list)
    root_style: str = ""
    body_style: str = ""

    def adopted_style_sheets(self) -> Sequence[ProbedSheet]:
        return self.adopted

    def shadow_roots(self) -> Sequence[ProbedShadowRoot]:
        return self.roots

    def inline_style(self, target: InlineTarget) -> str:
        return self.root_style if target == "root" else self.body_style

    @classmethod
    def from_probe(cls, data: Mapping[str, Any] | None) -> "ProbedDocument":
        data = data or {}
        return cls(
            adopted=[ProbedSheet.from_probe(sheet) for sheet in data.get("adopted") or []],
            roots=[ProbedShadowRoot.from_probe(root) for root in data.get("shadowRoots") or []],
            root_style=data.get("rootStyle") or "",
            body_style=data.get("bodyStyle") or "",
        )


__all__ = [
    "STYLE_PROBE_SCRIPT",
    "StyleSheetHandle",
    "ShadowRootHandle",
    "LiveDocument",
    "collect_extra_styles",
    "custom_properties",
    "ProbedSheet",
    "ProbedShadowRoot",
    "ProbedDocument",
]
