"""Snapshot records and their wire shapes.

Attributes are snake_case in Python and camelCase on the wire, which is the
contract shared by every storage backend, the archive manifest and the remote
JSON documents. Dump with ``to_wire()`` (or ``model_dump(by_alias=True,
exclude_none=True)``) whenever a record leaves the process.
"""

from __future__ import annotations

from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from refine_page.utils.time import utc_now_iso

AnnotationType = Literal["relevant", "answer"]
SnapshotStatus = Literal["pending", "approved", "declined", "needs_revision"]

EXPORT_VERSION = "1.0.0"

# Fields that updateSnapshot must never rewrite.
IMMUTABLE_FIELDS = frozenset({"id", "capturedAt"})


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Viewport(WireModel):
    width: int
    height: int


class Bounds(WireModel):
    """Rectangle in percent of the page width/height."""

    x: float = Field(ge=0, le=100)
    y: float = Field(ge=0, le=100)
    width: float = Field(ge=0, le=100)
    height: float = Field(ge=0, le=100)


class TextSelector(WireModel):
    type: Literal["xpath", "css", "text-position"]
    value: str


class TextAnnotation(WireModel):
    id: str
    type: AnnotationType
    start_offset: int
    end_offset: int
    selected_text: str
    selector: TextSelector
    created_at: str
    updated_at: str


class RegionAnnotation(WireModel):
    id: str
    type: AnnotationType
    bounds: Bounds
    target_selector: str | None = None
    created_at: str
    updated_at: str


class Annotations(WireModel):
    text: list[TextAnnotation] = Field(default_factory=list)
    region: list[RegionAnnotation] = Field(default_factory=list)

    def ids(self) -> set[str]:
        return {a.id for a in self.text} | {a.id for a in self.region}


class QuestionEvaluation(WireModel):
    answer_correctness: Literal["correct", "incorrect", "partial"] | None = None
    answer_in_page: Literal["yes", "no", "unclear"] | None = None
    page_quality: Literal["good", "broken", "partial"] | None = None


class Question(WireModel):
    id: str
    query: str
    expected_answer: str = ""
    annotation_ids: list[str] = Field(default_factory=list)
    evaluation: QuestionEvaluation = Field(default_factory=QuestionEvaluation)
    created_at: str
    updated_at: str


class ElementMark(WireModel):
    id: str
    label: str
    name: str
    tag_name: str
    text_preview: str
    selector: str
    bounds: dict[str, float]
    created_at: str
    updated_at: str


class AnnotationCount(WireModel):
    text: int = 0
    region: int = 0


class SnapshotSummary(WireModel):
    """Listing record without the html payload."""

    id: str
    url: str
    title: str
    status: SnapshotStatus
    captured_at: str
    updated_at: str
    tags: list[str] = Field(default_factory=list)
    annotation_count: AnnotationCount = Field(default_factory=AnnotationCount)
    question_count: int = 0


class SnapshotMetadata(WireModel):
    """Every snapshot field except ``html``."""

    id: str
    url: str
    title: str
    viewport: Viewport
    annotations: Annotations = Field(default_factory=Annotations)
    element_marks: list[ElementMark] | None = None
    questions: list[Question] = Field(default_factory=list)
    status: SnapshotStatus = "pending"
    review_notes: str | None = None
    captured_at: str
    updated_at: str
    tags: list[str] = Field(default_factory=list)

    def summarize(self) -> SnapshotSummary:
        return SnapshotSummary(
            id=self.id,
            url=self.url,
            title=self.title,
            status=self.status,
            captured_at=self.captured_at,
            updated_at=self.updated_at,
            tags=list(self.tags),
            annotation_count=AnnotationCount(
                text=len(self.annotations.text),
                region=len(self.annotations.region),
            ),
            question_count=len(self.questions),
        )


class Snapshot(SnapshotMetadata):
    html: str

    def metadata(self) -> dict[str, Any]:
        """Wire form without ``html``."""
        data = self.to_wire()
        data.pop("html", None)
        data.pop("viewerUrl", None)
        return data

    def apply_updates(self, updates: Mapping[str, Any]) -> "Snapshot":
        """Return a copy with ``updates`` merged in and ``updatedAt`` bumped.

        Keys may be snake_case or camelCase. ``id`` and ``capturedAt`` are ignored.
        """
        data = self.to_wire()
        for key, value in updates.items():
            wire_key = to_camel(key) if "_" in key else key
            if wire_key in IMMUTABLE_FIELDS:
                continue
            data[wire_key] = _to_wire_value(value)
        data["updatedAt"] = utc_now_iso()
        return type(self).model_validate(data)


class ExportedSnapshot(Snapshot):
    viewer_url: str | None = None


class ZipIndexSnapshot(SnapshotMetadata):
    html_file: str
    viewer_url: str | None = None


class ExportData(WireModel):
    version: str = EXPORT_VERSION
    exported_at: str = Field(default_factory=utc_now_iso)
    extension_id: str | None = None
    snapshots: list[ExportedSnapshot] = Field(default_factory=list)


class ZipExportData(WireModel):
    version: str = EXPORT_VERSION
    exported_at: str = Field(default_factory=utc_now_iso)
    extension_id: str | None = None
    snapshots: list[ZipIndexSnapshot] = Field(default_factory=list)


class ImportResult(WireModel):
    imported: int = 0
    skipped: int = 0


def _to_wire_value(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, exclude_none=True)
    if isinstance(value, (list, tuple)):
        return [_to_wire_value(item) for item in value]
    if isinstance(value, dict):
        return {key: _to_wire_value(item) for key, item in value.items()}
    return value


__all__ = [
    "AnnotationType",
    "SnapshotStatus",
    "EXPORT_VERSION",
    "Viewport",
    "Bounds",
    "TextSelector",
    "TextAnnotation",
    "RegionAnnotation",
    "Annotations",
    "QuestionEvaluation",
    "Question",
    "ElementMark",
    "AnnotationCount",
    "SnapshotSummary",
    "SnapshotMetadata",
    "Snapshot",
    "ExportedSnapshot",
    "ZipIndexSnapshot",
    "ExportData",
    "ZipExportData",
    "ImportResult",
]
