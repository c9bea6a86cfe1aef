from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

from whoosh import index
from whoosh.fields import ID, NUMERIC, TEXT, Schema
from whoosh.qparser import MultifieldParser
from whoosh.query import Term

from .models import Anchor


class WhooshIndexer:
    """
    File-system backed Whoosh index of highlight quotes and their notes.
    Re-indexing a document first deletes its existing entries.
    """

    def __init__(self, index_dir: Path):
        self.index_dir = index_dir
        self.index_dir.mkdir(parents=True, exist_ok=True)
        self.schema = Schema(
            document_id=ID(stored=True),
            anchor_id=ID(stored=True, unique=True),
            global_start=NUMERIC(stored=True, sortable=True),
            color=ID(stored=True),
            quote=TEXT(stored=True),
            note=TEXT(stored=True),
        )
        if index.exists_in(self.index_dir):
            self.ix = index.open_dir(self.index_dir)
        else:
            self.ix = index.create_in(self.index_dir, self.schema)

    def index_document(self, document_id: str, anchors: Iterable[Anchor]) -> None:
        writer = self.ix.writer()
        writer.delete_by_term("document_id", document_id)
        for anchor in anchors:
            writer.add_document(
                document_id=document_id,
                anchor_id=anchor.id,
                global_start=anchor.global_start if anchor.global_start is not None else -1,
                color=str(getattr(anchor.color, "value", anchor.color)),
                quote=anchor.quote or "",
                note=anchor.annotation.content if anchor.annotation else "",
            )
        writer.commit()

    def delete_document(self, document_id: str) -> None:
        writer = self.ix.writer()
        writer.delete_by_term("document_id", document_id)
        writer.commit()

    def search(self, query_str: str, document_id: Optional[str] = None, limit: int = 10):
        """
        Return a list of plain dicts so callers are safe after the searcher closes.
        """
        qp = MultifieldParser(["quote", "note"], schema=self.schema)
        q = qp.parse(query_str)
        with self.ix.searcher() as searcher:
            doc_filter = Term("document_id", document_id) if document_id else None
            results = searcher.search(q, limit=limit, filter=doc_filter)
            hits = []
            for hit in results:
                fields = hit.fields()
                hits.append(
                    {
                        "document_id": fields.get("document_id"),
                        "anchor_id": fields.get("anchor_id"),
                        "global_start": fields.get("global_start"),
                        "color": fields.get("color"),
                        "quote": fields.get("quote"),
                        "note": fields.get("note"),
                    }
                )
            return hits
