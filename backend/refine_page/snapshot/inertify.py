"""Turn a captured document into an inert, self-contained snapshot document.

Both capture paths share :func:`inertify`; the :class:`InertProfile` passed in
decides the extra rules of the MIME-package path (base URL, resource cleaning).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from bs4 import BeautifulSoup, Doctype, Tag

from refine_page.utils.time import utc_now_iso

DOCTYPE = "<!DOCTYPE html>\n"

CONTENT_SECURITY_POLICY = (
    "default-src 'self' data: blob:; "
    "script-src 'none'; "
    "style-src 'unsafe-inline' data: blob:; "
    "font-src data: blob:; "
    "img-src 'self' data: blob:; "
    "frame-src 'none'; "
    "object-src 'none';"
)

INERT_CSS = (
    "a[data-original-href], area[data-original-href] "
    "{ cursor: default !important; pointer-events: none !important; }\n"
    "button:disabled, input:disabled, select:disabled, textarea:disabled { opacity: 0.7; }"
)

SNAPSHOT_MARKER = "refine-page-snapshot"
TRANSPARENT_GIF = "data:image/gif;base64,R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7"

FORM_CONTROLS = ("button", "input", "select", "textarea")
LINK_TAGS = ("a", "area")
LINK_ATTRIBUTES = ("href", "xlink:href")

_EXTERNAL_URL_RE = re.compile(r"url\s*\(\s*(['\"]?)(?!data:|blob:)([^)'\"]+)\1\s*\)", re.IGNORECASE)
_SCRIPT_URL_RE = re.compile(r"^\s*(?:javascript|vbscript):", re.IGNORECASE)
_INLINE_URL_PREFIXES = ("data:", "blob:")


@dataclass(slots=True, frozen=True)
class InertProfile:
    """Variant switches for one capture path."""

    name: str
    set_base_url: bool = False
    clean_external_resources: bool = False


SINGLE_FILE_PROFILE = InertProfile(name="single-file")
MHTML_PROFILE = InertProfile(name="mhtml", set_base_url=True, clean_external_resources=True)


def inertify(
    raw_html: str,
    extra_styles: Iterable[str] = (),
    profile: InertProfile = SINGLE_FILE_PROFILE,
    captured_at: str | None = None,
    base_url: str | None = None,
) -> str:
    """Return ``raw_html`` with every executable and interactive capability removed.

    The result always starts with ``<!DOCTYPE html>`` followed by the serialized
    ``<html>`` element. Malformed input is parsed permissively and never raises.
    """
    soup = BeautifulSoup(raw_html or "", "html.parser")
    html, head = _ensure_skeleton(soup)

    _remove_executable_elements(soup)
    _neutralize_links(soup)
    _neutralize_forms(soup)
    _strip_script_attributes(soup)

    if profile.clean_external_resources:
        _clean_external_resources(soup)

    csp = soup.new_tag(
        "meta",
        attrs={"http-equiv": "Content-Security-Policy", "content": CONTENT_SECURITY_POLICY},
    )
    head.insert(0, csp)
    if profile.set_base_url and base_url:
        for existing in soup.find_all("base"):
            existing.decompose()
        head.insert(1, soup.new_tag("base", attrs={"href": base_url}))

    head.append(
        soup.new_tag(
            "meta",
            attrs={
                "name": SNAPSHOT_MARKER,
                "content": "true",
                "data-captured-at": captured_at or utc_now_iso(),
            },
        )
    )
    head.append(_style_tag(soup, INERT_CSS, "inert"))
    for css in extra_styles:
        if css and css.strip():
            head.append(_style_tag(soup, css, "extra"))

    return DOCTYPE + str(html)


def _ensure_skeleton(soup: BeautifulSoup) -> tuple[Tag, Tag]:
    for node in list(soup.contents):
        if isinstance(node, Doctype):
            node.extract()

    html = soup.find("html")
    if html is None:
        html = soup.new_tag("html")
        for node in list(soup.contents):
            html.append(node.extract())
        soup.append(html)
    else:
        # html.parser keeps nodes found after </html> as siblings of the root
        strays = [node for node in soup.contents if node is not html]
        target = html.find("body") or html
        for node in strays:
            target.append(node.extract())

    head = html.find("head")
    if head is None:
        head = soup.new_tag("head")
        html.insert(0, head)
    return html, head


def _remove_executable_elements(soup: BeautifulSoup) -> None:
    for element in soup.find_all(["script", "noscript"]):
        element.decompose()
    for meta in soup.find_all("meta"):
        if str(meta.get("http-equiv", "")).strip().lower() == "refresh":
            meta.decompose()


def _neutralize_links(soup: BeautifulSoup) -> None:
    for link in soup.find_all(LINK_TAGS):
        for attribute in LINK_ATTRIBUTES:
            if attribute not in link.attrs:
                continue
            target = link.attrs.pop(attribute)
            link.attrs.setdefault("data-original-href", target)


def _neutralize_forms(soup: BeautifulSoup) -> None:
    for form in soup.find_all("form"):
        if "action" in form.attrs:
            form["data-original-action"] = form.attrs.pop("action")
    for control in soup.find_all(FORM_CONTROLS):
        control.attrs.pop("formaction", None)
        control["disabled"] = ""


def _strip_script_attributes(soup: BeautifulSoup) -> None:
    for element in soup.find_all(True):
        for name in list(element.attrs):
            if name.lower().startswith("on"):
                del element.attrs[name]
                continue
            value = element.attrs[name]
            if isinstance(value, str) and _SCRIPT_URL_RE.match(value):
                del element.attrs[name]


def _clean_external_resources(soup: BeautifulSoup) -> None:
    for style in soup.find_all("style"):
        text = style.get_text()
        cleaned = _EXTERNAL_URL_RE.sub("url()", text)
        if cleaned != text:
            style.string = cleaned
    for element in soup.find_all(style=True):
        element["style"] = _EXTERNAL_URL_RE.sub("url()", element["style"])
    for link in soup.find_all("link"):
        rel = link.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()
        if "stylesheet" in [value.lower() for value in rel] and not _is_inline(link.get("href")):
            link.decompose()
    for image in soup.find_all("img"):
        src = image.get("src")
        if src and not _is_inline(src):
            image["data-original-src"] = src
            image["src"] = TRANSPARENT_GIF
            image.attrs.pop("srcset", None)


def _is_inline(url: str | None) -> bool:
    return bool(url) and url.strip().lower().startswith(_INLINE_URL_PREFIXES)


def _style_tag(soup: BeautifulSoup, css: str, origin: str) -> Tag:
    tag = soup.new_tag("style", attrs={"data-refine-page": origin})
    # Style text is serialized raw, so "</style>" inside it would end the element
    tag.string = css.replace("</", "<\\/")
    return tag


__all__ = [
    "CONTENT_SECURITY_POLICY",
    "INERT_CSS",
    "SNAPSHOT_MARKER",
    "TRANSPARENT_GIF",
    "InertProfile",
    "SINGLE_FILE_PROFILE",
    "MHTML_PROFILE",
    "inertify",
]
