from __future__ import annotations

import hashlib
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from fastapi import BackgroundTasks

from readlater.anchoring import (
    AnchorRepository,
    HighlightRenderer,
    IndexJobConfig,
    LocalDocumentStorage,
    RQJobQueue,
    SqlAlchemyAnchorRepository,
    StoragePaths,
    WhooshIndexer,
)

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///./data/readlater.db"


def _database_url() -> str:
    return os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)


def _whoosh_dir() -> str:
    return os.getenv("WHOOSH_DIR", "./data/whoosh")


@lru_cache(maxsize=1)
def get_repo() -> AnchorRepository:
    return SqlAlchemyAnchorRepository(_database_url())


@lru_cache(maxsize=1)
def get_storage() -> LocalDocumentStorage:
    root = Path(os.getenv("DOCUMENT_STORAGE_ROOT", "./data"))
    return LocalDocumentStorage(StoragePaths(root))


@lru_cache(maxsize=1)
def get_indexer() -> WhooshIndexer:
    return WhooshIndexer(Path(_whoosh_dir()))


@lru_cache(maxsize=1)
def get_job_queue() -> Optional[RQJobQueue]:
    redis_url = os.getenv("REDIS_URL")
    if not redis_url:
        return None
    return RQJobQueue(redis_url=redis_url)


def is_strict() -> bool:
    return os.getenv("READLATER_STRICT", "0").strip().lower() in ("1", "true", "yes")


def get_renderer() -> HighlightRenderer:
    return HighlightRenderer(strict=is_strict())


def reset_caches() -> None:
    for factory in (get_repo, get_storage, get_indexer, get_job_queue):
        factory.cache_clear()


def reindex_document(document_id: str) -> None:
    anchors = get_repo().load_anchors(document_id)
    get_indexer().index_document(document_id, anchors)


def schedule_reindex(background_tasks: BackgroundTasks, document_id: str) -> None:
    queue = get_job_queue()
    if queue is not None:
        config = IndexJobConfig(database_url=_database_url(), whoosh_index_dir=_whoosh_dir())
        queue.enqueue_index_job(document_id, config)
        return
    background_tasks.add_task(reindex_document, document_id)


def build_document_id(title: str) -> str:
    normalized = title.strip().lower()
    slug = "".join(ch if ch.isalnum() else "-" for ch in normalized).strip("-") or "document"
    digest = hashlib.md5(normalized.encode("utf-8")).hexdigest()[:8]
    return f"{slug}-{digest}"
