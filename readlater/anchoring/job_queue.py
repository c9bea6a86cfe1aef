from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from redis import Redis
from rq import Queue

from .indexing import WhooshIndexer
from .repository import SqlAlchemyAnchorRepository

logger = logging.getLogger(__name__)


@dataclass
class IndexJobConfig:
    database_url: str
    whoosh_index_dir: str


def run_index_job(document_id: str, config: IndexJobConfig) -> int:
    """
    RQ task entrypoint. Rebuilds the search index entries of one document
    from the highlights currently stored for it.
    """
    repo = SqlAlchemyAnchorRepository(config.database_url)
    indexer = WhooshIndexer(Path(config.whoosh_index_dir))
    anchors = repo.load_anchors(document_id)
    indexer.index_document(document_id, anchors)
    logger.info("Indexed %s highlights for document %s", len(anchors), document_id)
    return len(anchors)


class RQJobQueue:
    """
    Redis-backed job queue using RQ. Jobs are consumed by a standard
    `rq worker highlight-index` process.
    """

    def __init__(self, redis_url: str = "redis://localhost:6379/0", queue_name: str = "highlight-index"):
        self.redis = Redis.from_url(redis_url)
        self.queue = Queue(queue_name, connection=self.redis)

    def enqueue_index_job(self, document_id: str, config: IndexJobConfig):
        return self.queue.enqueue(run_index_job, document_id, config)
