from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass
class StoragePaths:
    root: Path

    def document_dir(self, document_id: str) -> Path:
        return self.root / "documents" / str(document_id)

    def markup_path(self, document_id: str) -> Path:
        return self.document_dir(document_id) / "content.html"


class LocalDocumentStorage:
    """
    Keeps the sanitized article markup of each document on disk. The stored
    markup is the canonical source that anchor offsets refer to.
    """

    def __init__(self, storage_paths: StoragePaths):
        self.paths = storage_paths

    def ensure_base_dirs(self, document_id: str) -> None:
        self.paths.document_dir(document_id).mkdir(parents=True, exist_ok=True)

    def write_markup(self, document_id: str, markup: str) -> Path:
        self.ensure_base_dirs(document_id)
        target = self.paths.markup_path(document_id)
        target.write_text(markup, encoding="utf-8")
        return target
