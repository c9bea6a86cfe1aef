from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, model_validator

from readlater.anchoring import Anchor, Annotation, DocumentRecord, HighlightColor


class DocumentCreateRequest(BaseModel):
    title: str = Field(..., min_length=1)
    source_url: Optional[str] = None
    markup: str


class HighlightCreateRequest(BaseModel):
    """Offsets are optional; highlights without them are located by quote at render time."""

    document_id: str
    quote: str = Field(..., min_length=1)
    global_start: Optional[int] = Field(None, ge=0)
    global_end: Optional[int] = Field(None, ge=0)
    color: HighlightColor = HighlightColor.YELLOW

    @model_validator(mode="after")
    def check_offsets(self):
        if (self.global_start is None) != (self.global_end is None):
            raise ValueError("global_start and global_end must be given together")
        if self.global_start is not None and self.global_end <= self.global_start:
            raise ValueError("global_end must be greater than global_start")
        return self


class HighlightUpdateRequest(BaseModel):
    id: str
    color: HighlightColor


class AnnotationRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)


def annotation_payload(annotation: Optional[Annotation]) -> Optional[dict]:
    if annotation is None:
        return None
    return {
        "id": annotation.id,
        "content": annotation.content,
        "created_at": annotation.created_at,
        "updated_at": annotation.updated_at,
    }


def anchor_payload(anchor: Anchor) -> dict:
    return {
        "id": anchor.id,
        "document_id": anchor.document_id,
        "quote": anchor.quote,
        "global_start": anchor.global_start,
        "global_end": anchor.global_end,
        "color": anchor.color,
        "created_at": anchor.created_at,
        "annotation": annotation_payload(anchor.annotation),
    }


def document_payload(document: DocumentRecord) -> dict:
    return {
        "id": document.id,
        "title": document.title,
        "source_url": document.source_url,
        "created_at": document.created_at,
    }
