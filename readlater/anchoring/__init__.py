"""
Anchoring subsystem exports.
"""

from .controller import DocumentAnchorController
from .dispatcher import InteractionDispatcher, closest_marker, find_marker
from .errors import (
    AnchoringError,
    AnchoringInvariantError,
    PersistenceError,
    UnresolvableSelectionError,
    WrapError,
)
from .events import (
    AnchorActivated,
    AnchorCreated,
    AnchorFocusRequested,
    AnchorsRefreshRequested,
    EventBus,
)
from .indexing import WhooshIndexer
from .job_queue import IndexJobConfig, RQJobQueue, run_index_job
from .models import (
    COLOR_MAP,
    Anchor,
    AnchorDraft,
    AnchorState,
    Annotation,
    BBox,
    DocumentRecord,
    HighlightColor,
    TrackedAnchor,
)
from .projection import (
    TextRange,
    TextRun,
    canonical_text,
    child_nodes,
    global_offset_of,
    iter_text_runs,
    parse_markup,
    range_from_global_offsets,
    serialize_markup,
)
from .recovery import resolve_offsets
from .renderer import HighlightRenderer, render_highlights
from .repository import AnchorRepository, InMemoryAnchorRepository, SqlAlchemyAnchorRepository
from .selection import SelectionSpan, convert_selection
from .storage import LocalDocumentStorage, StoragePaths

__all__ = [
    "COLOR_MAP",
    "Anchor",
    "AnchorActivated",
    "AnchorCreated",
    "AnchorDraft",
    "AnchorFocusRequested",
    "AnchorRepository",
    "AnchorState",
    "AnchoringError",
    "AnchoringInvariantError",
    "AnchorsRefreshRequested",
    "Annotation",
    "BBox",
    "DocumentAnchorController",
    "DocumentRecord",
    "EventBus",
    "HighlightColor",
    "HighlightRenderer",
    "InMemoryAnchorRepository",
    "IndexJobConfig",
    "InteractionDispatcher",
    "LocalDocumentStorage",
    "PersistenceError",
    "RQJobQueue",
    "SelectionSpan",
    "SqlAlchemyAnchorRepository",
    "StoragePaths",
    "TextRange",
    "TextRun",
    "TrackedAnchor",
    "UnresolvableSelectionError",
    "WhooshIndexer",
    "WrapError",
    "canonical_text",
    "child_nodes",
    "closest_marker",
    "convert_selection",
    "find_marker",
    "global_offset_of",
    "iter_text_runs",
    "parse_markup",
    "range_from_global_offsets",
    "render_highlights",
    "resolve_offsets",
    "run_index_job",
    "serialize_markup",
]
