from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException

from readlater.anchoring import PersistenceError

from api.dependencies import get_repo, schedule_reindex
from api.schemas import (
    AnnotationRequest,
    HighlightCreateRequest,
    HighlightUpdateRequest,
    anchor_payload,
    annotation_payload,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/highlights", tags=["highlights"])


def _document_id_of(anchor_id: str) -> str:
    anchor = get_repo().get_anchor(anchor_id)
    if not anchor:
        raise HTTPException(status_code=404, detail=f"Highlight not found: {anchor_id}")
    return anchor.document_id


@router.get("")
def list_highlights(document_id: str):
    repo = get_repo()
    if not repo.get_document(document_id):
        raise HTTPException(status_code=404, detail=f"Document not found: {document_id}")
    return {"success": True, "highlights": [anchor_payload(a) for a in repo.load_anchors(document_id)]}


@router.post("")
def create_highlight(body: HighlightCreateRequest, background_tasks: BackgroundTasks):
    try:
        anchor = get_repo().create_anchor(
            body.document_id,
            body.quote,
            body.global_start,
            body.global_end,
            body.color,
        )
    except PersistenceError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    schedule_reindex(background_tasks, body.document_id)
    return {"success": True, "highlight": anchor_payload(anchor)}


@router.put("")
def update_highlight(body: HighlightUpdateRequest, background_tasks: BackgroundTasks):
    document_id = _document_id_of(body.id)
    try:
        get_repo().update_anchor_color(body.id, body.color)
    except PersistenceError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    schedule_reindex(background_tasks, document_id)
    return {"success": True}


@router.delete("")
def delete_highlight(id: str, background_tasks: BackgroundTasks):
    document_id = _document_id_of(id)
    try:
        get_repo().delete_anchor(id)
    except PersistenceError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    schedule_reindex(background_tasks, document_id)
    return {"success": True}


@router.put("/{anchor_id}/annotation")
def save_annotation(anchor_id: str, body: AnnotationRequest, background_tasks: BackgroundTasks):
    document_id = _document_id_of(anchor_id)
    try:
        annotation = get_repo().save_annotation(anchor_id, body.content)
    except PersistenceError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    schedule_reindex(background_tasks, document_id)
    return {"success": True, "annotation": annotation_payload(annotation)}


@router.delete("/{anchor_id}/annotation")
def delete_annotation(anchor_id: str, background_tasks: BackgroundTasks):
    document_id = _document_id_of(anchor_id)
    try:
        get_repo().delete_annotation(anchor_id)
    except PersistenceError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    schedule_reindex(background_tasks, document_id)
    return {"success": True}
