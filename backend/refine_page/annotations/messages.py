"""Message contract with the embedded annotator.

Commands flow into the annotator (load a document, pick a tool, load or
remove annotations); events flow back out when the user creates, deletes or
clicks an annotation. Annotations travel in W3C Web Annotation form.
"""

from __future__ import annotations

import copy
from typing import Annotated, Any, Literal, Union

from pydantic import Field, TypeAdapter

from refine_page.annotations.codec import (
    ANNO_CONTEXT,
    Annotation,
    from_interchange,
    to_interchange,
    to_interchange_many,
)
from refine_page.core.logging import get_logger
from refine_page.models.snapshot import Annotations, Snapshot, TextAnnotation, WireModel
from refine_page.utils.text import normalize, split_joined_words
from refine_page.utils.time import utc_now_iso

logger = get_logger(__name__)

Tool = Literal["select", "relevant", "answer"]
WebAnnotation = dict[str, Any]


class HtmlPayload(WireModel):
    html: str


class AnnotationIdPayload(WireModel):
    annotation_id: str


class LoadHtml(WireModel):
    type: Literal["LOAD_HTML"] = "LOAD_HTML"
    payload: HtmlPayload


class SetTool(WireModel):
    type: Literal["SET_TOOL"] = "SET_TOOL"
    payload: Tool


class LoadAnnotations(WireModel):
    type: Literal["LOAD_ANNOTATIONS"] = "LOAD_ANNOTATIONS"
    payload: list[WebAnnotation] = Field(default_factory=list)


class ClearAnnotations(WireModel):
    type: Literal["CLEAR_ANNOTATIONS"] = "CLEAR_ANNOTATIONS"


class RemoveAnnotation(WireModel):
    type: Literal["REMOVE_ANNOTATION"] = "REMOVE_ANNOTATION"
    payload: AnnotationIdPayload


class ScrollToAnnotation(WireModel):
    type: Literal["SCROLL_TO_ANNOTATION"] = "SCROLL_TO_ANNOTATION"
    payload: AnnotationIdPayload


AnnotatorCommand = Annotated[
    Union[LoadHtml, SetTool, LoadAnnotations, ClearAnnotations, RemoveAnnotation, ScrollToAnnotation],
    Field(discriminator="type"),
]


class CreatedPayload(WireModel):
    annotation: WebAnnotation
    tool: Tool
    index: int | None = None


class DeletedPayload(WireModel):
    annotation: WebAnnotation


class AnnotationCreated(WireModel):
    type: Literal["ANNOTATION_CREATED"] = "ANNOTATION_CREATED"
    payload: CreatedPayload


class AnnotationDeleted(WireModel):
    type: Literal["ANNOTATION_DELETED"] = "ANNOTATION_DELETED"
    payload: DeletedPayload


class AnnotationClicked(WireModel):
    type: Literal["ANNOTATION_CLICKED"] = "ANNOTATION_CLICKED"
    payload: AnnotationIdPayload


AnnotatorEvent = Annotated[
    Union[AnnotationCreated, AnnotationDeleted, AnnotationClicked],
    Field(discriminator="type"),
]

_COMMANDS: TypeAdapter[AnnotatorCommand] = TypeAdapter(AnnotatorCommand)
_EVENTS: TypeAdapter[AnnotatorEvent] = TypeAdapter(AnnotatorEvent)


def parse_command(data: Any) -> AnnotatorCommand:
    return _COMMANDS.validate_python(data)


def parse_event(data: Any) -> AnnotatorEvent:
    return _EVENTS.validate_python(data)


class AnnotatorSession:
    """State of one annotator attached to one snapshot.

    ``apply`` returns the updated snapshot whenever an event changed its
    annotations, and ``None`` otherwise; persisting it is up to the caller.
    """

    def __init__(self, snapshot: Snapshot, tool: Tool = "select") -> None:
        self.snapshot = snapshot
        self.tool: Tool = tool
        self.selected_id: str | None = None
        self.quotes: dict[str, str] = {}

    def open(self) -> list[LoadHtml | SetTool | LoadAnnotations]:
        annotations = to_interchange_many(self.snapshot)
        self._remember_quotes(self.snapshot.annotations.text)
        return [
            LoadHtml(payload=HtmlPayload(html=self.snapshot.html)),
            SetTool(payload=self.tool),
            LoadAnnotations(payload=annotations),
        ]

    def set_tool(self, tool: Tool) -> SetTool:
        self.tool = tool
        return SetTool(payload=tool)

    def scroll_to(self, annotation_id: str) -> ScrollToAnnotation:
        return ScrollToAnnotation(payload=AnnotationIdPayload(annotation_id=annotation_id))

    def remove(self, annotation_id: str) -> tuple[RemoveAnnotation, Snapshot]:
        self._drop(annotation_id)
        return RemoveAnnotation(payload=AnnotationIdPayload(annotation_id=annotation_id)), self.snapshot

    def clear(self) -> tuple[ClearAnnotations, Snapshot]:
        self.snapshot = self.snapshot.apply_updates({"annotations": Annotations()})
        self.quotes.clear()
        self.selected_id = None
        return ClearAnnotations(), self.snapshot

    def apply(self, event: AnnotatorEvent) -> Snapshot | None:
        if isinstance(event, AnnotationClicked):
            self.selected_id = event.payload.annotation_id
            return None
        if isinstance(event, AnnotationDeleted):
            annotation_id = event.payload.annotation.get("id")
            if not annotation_id or annotation_id not in self.snapshot.annotations.ids():
                return None
            self._drop(annotation_id)
            return self.snapshot

        tool = event.payload.tool
        if tool == "select":
            logger.debug("Ignoring annotation created in select mode")
            return None
        annotation = from_interchange(self._prepare(event.payload.annotation, tool))
        if annotation is None:
            logger.warning(
                "Discarding undecodable annotation",
                extra={"ctx_snapshot_id": self.snapshot.id},
            )
            return None
        self._store(annotation)
        return self.snapshot

    def reset(self) -> None:
        self.tool = "select"
        self.selected_id = None
        self.quotes.clear()

    def export(self) -> list[WebAnnotation]:
        return [to_interchange(annotation, self.snapshot.id) for annotation in self._all()]

    def _prepare(self, data: WebAnnotation, tool: Tool) -> WebAnnotation:
        prepared = copy.deepcopy(data)
        now = utc_now_iso()
        prepared.setdefault("@context", ANNO_CONTEXT)
        prepared.setdefault("type", "Annotation")
        prepared.setdefault("created", now)
        prepared.setdefault("modified", prepared["created"])
        prepared["body"] = {"type": "TextualBody", "purpose": "tagging", "value": tool}
        target = prepared.setdefault("target", {})
        target.setdefault("source", self.snapshot.id)
        selectors = target.get("selector")
        for selector in selectors if isinstance(selectors, list) else [selectors]:
            if isinstance(selector, dict) and selector.get("type") == "TextQuoteSelector":
                selector["exact"] = split_joined_words(normalize(str(selector.get("exact", ""))))
        return prepared

    def _store(self, annotation: Annotation) -> None:
        if annotation.id in self.snapshot.annotations.ids():
            self._drop(annotation.id)
        current = self.snapshot.annotations
        if isinstance(annotation, TextAnnotation):
            updated = Annotations(text=[*current.text, annotation], region=list(current.region))
            self.quotes[annotation.id] = annotation.selected_text
        else:
            updated = Annotations(text=list(current.text), region=[*current.region, annotation])
        self.snapshot = self.snapshot.apply_updates({"annotations": updated})

    def _drop(self, annotation_id: str) -> None:
        current = self.snapshot.annotations
        updated = Annotations(
            text=[a for a in current.text if a.id != annotation_id],
            region=[a for a in current.region if a.id != annotation_id],
        )
        self.snapshot = self.snapshot.apply_updates({"annotations": updated})
        self.quotes.pop(annotation_id, None)
        if self.selected_id == annotation_id:
            self.selected_id = None

    def _remember_quotes(self, annotations: list[TextAnnotation]) -> None:
        for annotation in annotations:
            self.quotes[annotation.id] = annotation.selected_text

    def _all(self) -> list[Annotation]:
        return [*self.snapshot.annotations.text, *self.snapshot.annotations.region]


__all__ = [
    "Tool",
    "LoadHtml",
    "SetTool",
    "LoadAnnotations",
    "ClearAnnotations",
    "RemoveAnnotation",
    "ScrollToAnnotation",
    "AnnotatorCommand",
    "AnnotationCreated",
    "AnnotationDeleted",
    "AnnotationClicked",
    "AnnotatorEvent",
    "parse_command",
    "parse_event",
    "AnnotatorSession",
]
