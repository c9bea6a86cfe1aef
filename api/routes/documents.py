from __future__ import annotations

from fastapi import APIRouter, HTTPException

from readlater.anchoring import DocumentRecord, PersistenceError, canonical_text, parse_markup

from api.dependencies import build_document_id, get_indexer, get_renderer, get_repo, get_storage
from api.schemas import DocumentCreateRequest, document_payload

router = APIRouter(prefix="/documents", tags=["documents"])


def _get_document_or_404(document_id: str) -> DocumentRecord:
    document = get_repo().get_document(document_id)
    if not document:
        raise HTTPException(status_code=404, detail=f"Document not found: {document_id}")
    return document


def _load_markup_or_404(document_id: str) -> str:
    try:
        return get_repo().load_raw_markup(document_id)
    except PersistenceError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.post("")
def create_document(body: DocumentCreateRequest):
    repo = get_repo()
    document_id = build_document_id(body.title)
    if repo.get_document(document_id):
        raise HTTPException(status_code=409, detail=f"Document already exists: {document_id}")

    markup_path = get_storage().write_markup(document_id, body.markup)
    repo.save_document(
        DocumentRecord(
            id=document_id,
            title=body.title,
            source_url=body.source_url,
            markup_path=str(markup_path),
        )
    )
    return {"document_id": document_id}


@router.get("")
def list_documents():
    return [document_payload(d) for d in get_repo().list_documents()]


@router.get("/{document_id}")
def get_document(document_id: str):
    return document_payload(_get_document_or_404(document_id))


@router.get("/{document_id}/text")
def get_document_text(document_id: str):
    _get_document_or_404(document_id)
    markup = _load_markup_or_404(document_id)
    return {"document_id": document_id, "text": canonical_text(parse_markup(markup))}


@router.get("/{document_id}/rendered")
def get_rendered_document(document_id: str):
    _get_document_or_404(document_id)
    markup = _load_markup_or_404(document_id)
    anchors = get_repo().load_anchors(document_id)
    return {
        "document_id": document_id,
        "html": get_renderer().render(markup, anchors),
        "highlight_count": len(anchors),
    }


@router.get("/{document_id}/search")
def search_document(document_id: str, query: str, limit: int = 20):
    if not query or not query.strip():
        raise HTTPException(status_code=400, detail="Query must not be empty")
    _get_document_or_404(document_id)
    hits = get_indexer().search(query, document_id=document_id, limit=limit)
    return {"hits": hits}
