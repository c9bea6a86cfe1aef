from __future__ import annotations

import uuid
from copy import deepcopy
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from sqlalchemy import Column, DateTime, Enum, Integer, String, Text, create_engine, delete, select, update
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .errors import PersistenceError
from .models import Anchor, Annotation, DocumentRecord, HighlightColor

Base = declarative_base()


class DocumentModel(Base):
    __tablename__ = "documents"
    id = Column(String, primary_key=True)
    title = Column(String)
    source_url = Column(String)
    markup_path = Column(String)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)


class AnchorModel(Base):
    __tablename__ = "highlights"
    id = Column(String, primary_key=True)
    document_id = Column(String, index=True)
    quote = Column(Text)
    global_start = Column(Integer, nullable=True)
    global_end = Column(Integer, nullable=True)
    color = Column(Enum(HighlightColor))
    created_at = Column(DateTime)


class AnnotationModel(Base):
    __tablename__ = "annotations"
    id = Column(String, primary_key=True)
    anchor_id = Column(String, index=True, unique=True)
    document_id = Column(String, index=True)
    content = Column(Text)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)


def validate_anchor_input(quote: str, global_start: Optional[int], global_end: Optional[int]) -> None:
    if not quote or not quote.strip():
        raise ValueError("Anchor quote must not be empty")
    if (global_start is None) != (global_end is None):
        raise ValueError("Anchor offsets must be given together")
    if global_start is not None and (global_start < 0 or global_end <= global_start):
        raise ValueError(f"Invalid anchor offsets [{global_start}, {global_end})")


def read_markup_file(document: DocumentRecord) -> str:
    path = Path(document.markup_path)
    if not path.exists():
        raise PersistenceError(f"Markup file missing for document {document.id}: {path}")
    return path.read_text(encoding="utf-8")


class AnchorRepository:
    """
    Persistence boundary for documents, anchors and annotations. Lookups of
    missing rows raise PersistenceError; invalid input raises ValueError.
    """

    # Documents
    def save_document(self, document: DocumentRecord) -> None:
        raise NotImplementedError

    def get_document(self, document_id: str) -> Optional[DocumentRecord]:
        raise NotImplementedError

    def list_documents(self) -> List[DocumentRecord]:
        raise NotImplementedError

    def load_raw_markup(self, document_id: str) -> str:
        document = self.get_document(document_id)
        if document is None:
            raise PersistenceError(f"Document not found: {document_id}")
        return read_markup_file(document)

    # Anchors
    def load_anchors(self, document_id: str) -> List[Anchor]:
        raise NotImplementedError

    def get_anchor(self, anchor_id: str) -> Optional[Anchor]:
        raise NotImplementedError

    def create_anchor(
        self,
        document_id: str,
        quote: str,
        global_start: Optional[int],
        global_end: Optional[int],
        color: HighlightColor,
    ) -> Anchor:
        raise NotImplementedError

    def update_anchor_color(self, anchor_id: str, color: HighlightColor) -> None:
        raise NotImplementedError

    def delete_anchor(self, anchor_id: str) -> None:
        raise NotImplementedError

    # Annotations
    def save_annotation(self, anchor_id: str, content: str) -> Annotation:
        raise NotImplementedError

    def delete_annotation(self, anchor_id: str) -> None:
        raise NotImplementedError


class InMemoryAnchorRepository(AnchorRepository):
    """
    In-memory store for local runs and tests. Keeps copies of dataclasses to
    avoid cross-mutation between calls.
    """

    def __init__(self):
        self.documents: Dict[str, DocumentRecord] = {}
        self.anchors: Dict[str, Anchor] = {}
        self.annotations: Dict[str, Annotation] = {}

    def _clone(self, obj):
        return deepcopy(obj)

    def _with_annotation(self, anchor: Anchor) -> Anchor:
        clone = self._clone(anchor)
        annotation = self.annotations.get(anchor.id)
        clone.annotation = self._clone(annotation) if annotation else None
        return clone

    def save_document(self, document: DocumentRecord) -> None:
        self.documents[document.id] = self._clone(document)

    def get_document(self, document_id: str) -> Optional[DocumentRecord]:
        document = self.documents.get(document_id)
        return self._clone(document) if document else None

    def list_documents(self) -> List[DocumentRecord]:
        return sorted((self._clone(d) for d in self.documents.values()), key=lambda d: d.created_at)

    def load_anchors(self, document_id: str) -> List[Anchor]:
        anchors = [self._with_annotation(a) for a in self.anchors.values() if a.document_id == document_id]
        return sorted(anchors, key=lambda a: (a.created_at, a.id))

    def get_anchor(self, anchor_id: str) -> Optional[Anchor]:
        anchor = self.anchors.get(anchor_id)
        return self._with_annotation(anchor) if anchor else None

    def create_anchor(
        self,
        document_id: str,
        quote: str,
        global_start: Optional[int],
        global_end: Optional[int],
        color: HighlightColor,
    ) -> Anchor:
        validate_anchor_input(quote, global_start, global_end)
        if document_id not in self.documents:
            raise PersistenceError(f"Document not found: {document_id}")
        anchor = Anchor(
            id=str(uuid.uuid4()),
            document_id=document_id,
            quote=quote,
            global_start=global_start,
            global_end=global_end,
            color=HighlightColor(color),
        )
        self.anchors[anchor.id] = self._clone(anchor)
        return anchor

    def update_anchor_color(self, anchor_id: str, color: HighlightColor) -> None:
        anchor = self.anchors.get(anchor_id)
        if not anchor:
            raise PersistenceError(f"Highlight not found: {anchor_id}")
        anchor.color = HighlightColor(color)

    def delete_anchor(self, anchor_id: str) -> None:
        if self.anchors.pop(anchor_id, None) is None:
            raise PersistenceError(f"Highlight not found: {anchor_id}")
        self.annotations.pop(anchor_id, None)

    def save_annotation(self, anchor_id: str, content: str) -> Annotation:
        anchor = self.anchors.get(anchor_id)
        if not anchor:
            raise PersistenceError(f"Highlight not found: {anchor_id}")
        if not content or not content.strip():
            raise ValueError("Annotation content must not be empty")
        existing = self.annotations.get(anchor_id)
        if existing:
            existing.content = content.strip()
            existing.updated_at = datetime.utcnow()
            return self._clone(existing)
        annotation = Annotation(
            id=str(uuid.uuid4()),
            anchor_id=anchor_id,
            document_id=anchor.document_id,
            content=content.strip(),
        )
        self.annotations[anchor_id] = self._clone(annotation)
        return annotation

    def delete_annotation(self, anchor_id: str) -> None:
        if self.annotations.pop(anchor_id, None) is None:
            raise PersistenceError(f"Annotation not found for highlight {anchor_id}")


class SqlAlchemyAnchorRepository(AnchorRepository):
    """
    SQL-backed repository using SQLAlchemy. Works with SQLite/Postgres URLs.
    """

    def __init__(self, database_url: str):
        self.engine = create_engine(database_url, future=True)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False, future=True)

    def _session(self) -> Session:
        return self.SessionLocal()

    def _to_annotation(self, model: Optional[AnnotationModel]) -> Optional[Annotation]:
        if model is None:
            return None
        return Annotation(
            id=model.id,
            anchor_id=model.anchor_id,
            document_id=model.document_id,
            content=model.content,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _to_anchor(self, model: AnchorModel, annotation: Optional[AnnotationModel]) -> Anchor:
        return Anchor(
            id=model.id,
            document_id=model.document_id,
            quote=model.quote,
            global_start=model.global_start,
            global_end=model.global_end,
            color=model.color,
            created_at=model.created_at,
            annotation=self._to_annotation(annotation),
        )

    def _to_document(self, model: DocumentModel) -> DocumentRecord:
        return DocumentRecord(
            id=model.id,
            title=model.title,
            source_url=model.source_url,
            markup_path=model.markup_path,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    # region Documents
    def save_document(self, document: DocumentRecord) -> None:
        with self._session() as session:
            model = DocumentModel(
                id=document.id,
                title=document.title,
                source_url=document.source_url,
                markup_path=document.markup_path,
                created_at=document.created_at,
                updated_at=document.updated_at,
            )
            session.merge(model)
            session.commit()

    def get_document(self, document_id: str) -> Optional[DocumentRecord]:
        with self._session() as session:
            model = session.get(DocumentModel, document_id)
            return self._to_document(model) if model else None

    def list_documents(self) -> List[DocumentRecord]:
        with self._session() as session:
            stmt = select(DocumentModel).order_by(DocumentModel.created_at)
            return [self._to_document(m) for m in session.execute(stmt).scalars().all()]

    # endregion

    # region Anchors
    def load_anchors(self, document_id: str) -> List[Anchor]:
        with self._session() as session:
            stmt = (
                select(AnchorModel)
                .where(AnchorModel.document_id == document_id)
                .order_by(AnchorModel.created_at, AnchorModel.id)
            )
            models = session.execute(stmt).scalars().all()
            notes_stmt = select(AnnotationModel).where(AnnotationModel.document_id == document_id)
            notes = {n.anchor_id: n for n in session.execute(notes_stmt).scalars().all()}
            return [self._to_anchor(m, notes.get(m.id)) for m in models]

    def get_anchor(self, anchor_id: str) -> Optional[Anchor]:
        with self._session() as session:
            model = session.get(AnchorModel, anchor_id)
            if not model:
                return None
            note = session.execute(
                select(AnnotationModel).where(AnnotationModel.anchor_id == anchor_id)
            ).scalar_one_or_none()
            return self._to_anchor(model, note)

    def create_anchor(
        self,
        document_id: str,
        quote: str,
        global_start: Optional[int],
        global_end: Optional[int],
        color: HighlightColor,
    ) -> Anchor:
        validate_anchor_input(quote, global_start, global_end)
        with self._session() as session:
            if session.get(DocumentModel, document_id) is None:
                raise PersistenceError(f"Document not found: {document_id}")
            model = AnchorModel(
                id=str(uuid.uuid4()),
                document_id=document_id,
                quote=quote,
                global_start=global_start,
                global_end=global_end,
                color=HighlightColor(color),
                created_at=datetime.utcnow(),
            )
            session.add(model)
            session.commit()
            return self._to_anchor(model, None)

    def update_anchor_color(self, anchor_id: str, color: HighlightColor) -> None:
        with self._session() as session:
            stmt = update(AnchorModel).where(AnchorModel.id == anchor_id).values(color=HighlightColor(color))
            result = session.execute(stmt)
            if result.rowcount == 0:
                raise PersistenceError(f"Highlight not found: {anchor_id}")
            session.commit()

    def delete_anchor(self, anchor_id: str) -> None:
        with self._session() as session:
            result = session.execute(delete(AnchorModel).where(AnchorModel.id == anchor_id))
            if result.rowcount == 0:
                raise PersistenceError(f"Highlight not found: {anchor_id}")
            session.execute(delete(AnnotationModel).where(AnnotationModel.anchor_id == anchor_id))
            session.commit()

    # endregion

    # region Annotations
    def save_annotation(self, anchor_id: str, content: str) -> Annotation:
        if not content or not content.strip():
            raise ValueError("Annotation content must not be empty")
        with self._session() as session:
            anchor = session.get(AnchorModel, anchor_id)
            if anchor is None:
                raise PersistenceError(f"Highlight not found: {anchor_id}")
            model = session.execute(
                select(AnnotationModel).where(AnnotationModel.anchor_id == anchor_id)
            ).scalar_one_or_none()
            now = datetime.utcnow()
            if model is None:
                model = AnnotationModel(
                    id=str(uuid.uuid4()),
                    anchor_id=anchor_id,
                    document_id=anchor.document_id,
                    content=content.strip(),
                    created_at=now,
                    updated_at=now,
                )
                session.add(model)
            else:
                model.content = content.strip()
                model.updated_at = now
            session.commit()
            return self._to_annotation(model)

    def delete_annotation(self, anchor_id: str) -> None:
        with self._session() as session:
            result = session.execute(delete(AnnotationModel).where(AnnotationModel.anchor_id == anchor_id))
            if result.rowcount == 0:
                raise PersistenceError(f"Annotation not found for highlight {anchor_id}")
            session.commit()

    # endregion
