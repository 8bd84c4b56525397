"""MHTML (``multipart/related``) to single-file HTML conversion."""

from __future__ import annotations

import base64
import re
from dataclasses import dataclass, field
from email import message_from_bytes, policy
from email.message import EmailMessage
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from refine_page.core.errors import CaptureError
from refine_page.core.logging import get_logger

logger = get_logger(__name__)

_CSS_URL_RE = re.compile(r"url\(\s*(['\"]?)([^)'\"]+)\1\s*\)", re.IGNORECASE)
_IMAGE_SOURCES = (
    ("img", "src"),
    ("source", "src"),
    ("video", "poster"),
    ("input", "src"),
)


@dataclass(slots=True)
class MhtmlResource:
    location: str
    content_type: str
    data: bytes

    @property
    def is_css(self) -> bool:
        return "css" in self.content_type


@dataclass(slots=True)
class MhtmlDocument:
    html: str
    title: str | None = None
    base_url: str | None = None


@dataclass(slots=True)
class _Package:
    html: str
    base_url: str | None
    subject: str | None
    resources: dict[str, MhtmlResource] = field(default_factory=dict)


def mhtml_to_html(mhtml: str | bytes) -> MhtmlDocument:
    """Inline every packaged resource and return the HTML document."""
    package = _parse_package(mhtml)
    soup = BeautifulSoup(package.html, "html.parser")
    base = package.base_url or ""

    for link in soup.find_all("link", href=True):
        rel = link.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()
        if "stylesheet" not in [value.lower() for value in rel]:
            continue
        resource = _find_resource(package.resources, base, link["href"])
        if resource is None:
            logger.debug("Stylesheet not packaged in MHTML", extra={"ctx_url": link["href"]})
            continue
        style = soup.new_tag("style")
        media = link.get("media")
        if media:
            style["media"] = media
        style.string = _resolve_css(package.resources, resource, set())
        link.replace_with(style)

    for tag_name, attribute in _IMAGE_SOURCES:
        for element in soup.find_all(tag_name, attrs={attribute: True}):
            if tag_name == "input" and str(element.get("type", "")).lower() != "image":
                continue
            resource = _find_resource(package.resources, base, element[attribute])
            if resource is not None:
                element[attribute] = _data_url(resource.content_type, resource.data)

    for style in soup.find_all("style"):
        text = style.get_text()
        resolved = _replace_css_references(package.resources, base, text, set())
        if resolved != text:
            style.string = resolved
    for element in soup.find_all(style=True):
        element["style"] = _replace_css_references(package.resources, base, element["style"], set())

    title = soup.title.get_text().strip() if soup.title else None
    return MhtmlDocument(html=str(soup), title=title or package.subject, base_url=package.base_url)


def _parse_package(mhtml: str | bytes) -> _Package:
    raw = mhtml.encode("utf-8") if isinstance(mhtml, str) else mhtml
    message = message_from_bytes(raw, policy=policy.default)
    if not message.is_multipart():
        raise CaptureError("MHTML package is not multipart")

    html_text: str | None = None
    html_location: str | None = None
    resources: dict[str, MhtmlResource] = {}
    for part in message.walk():
        if part.is_multipart():
            continue
        content_type = part.get_content_type()
        payload = part.get_payload(decode=True) or b""
        location = str(part.get("Content-Location") or "").strip()
        if html_text is None and content_type == "text/html":
            html_text = payload.decode(part.get_content_charset() or "utf-8", errors="replace")
            html_location = location
            continue
        _register(resources, part, MhtmlResource(location or "", content_type, payload))

    if html_text is None:
        raise CaptureError("MHTML package has no text/html part")

    subject = message.get("Subject")
    return _Package(
        html=html_text,
        base_url=str(message.get("Snapshot-Content-Location") or "").strip() or html_location or None,
        subject=str(subject) if subject else None,
        resources=resources,
    )


def _register(resources: dict[str, MhtmlResource], part: EmailMessage, resource: MhtmlResource) -> None:
    if resource.location:
        resources[resource.location] = resource
    content_id = part.get("Content-ID")
    if content_id:
        resources[f"cid:{str(content_id).strip('<>')}"] = resource


def _find_resource(resources: dict[str, MhtmlResource], base: str, reference: str) -> MhtmlResource | None:
    reference = reference.strip().strip("'\"")
    if not reference or reference.startswith(("data:", "blob:")):
        return None
    if reference in resources:
        return resources[reference]
    absolute = urljoin(base, reference) if base else reference
    if absolute in resources:
        return resources[absolute]
    filename = reference.split("?")[0].rsplit("/", 1)[-1]
    if len(filename) > 3:
        for location, resource in resources.items():
            if location.endswith("/" + filename):
                return resource
    return None


def _resolve_css(resources: dict[str, MhtmlResource], resource: MhtmlResource, visiting: set[str]) -> str:
    css = resource.data.decode("utf-8", errors="replace")
    return _replace_css_references(resources, resource.location, css, visiting | {resource.location})


def _replace_css_references(
    resources: dict[str, MhtmlResource],
    base: str,
    css: str,
    visiting: set[str],
) -> str:
    def replace(match: re.Match[str]) -> str:
        resource = _find_resource(resources, base, match.group(2))
        if resource is None or (resource.location and resource.location in visiting):
            return match.group(0)
        if resource.is_css:
            data = _resolve_css(resources, resource, visiting).encode("utf-8")
        else:
            data = resource.data
        return f"url('{_data_url(resource.content_type, data)}')"

    return _CSS_URL_RE.sub(replace, css)


def _data_url(content_type: str, data: bytes) -> str:
    return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"


__all__ = ["MhtmlDocument", "MhtmlResource", "mhtml_to_html"]
