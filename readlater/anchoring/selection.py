from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from lxml import etree

from .errors import UnresolvableSelectionError
from .models import AnchorDraft
from .projection import Node, TextRun, canonical_text, child_nodes, global_offset_of, is_element, iter_text_runs

logger = logging.getLogger(__name__)

Endpoint = Tuple[TextRun, int]


@dataclass
class SelectionSpan:
    """
    A live user selection. Each container is either a text run (offset is a
    character offset) or an element (offset is an index into `child_nodes`).
    """

    start_container: Node
    start_offset: int
    end_container: Node
    end_offset: int


def _first_run(node: Node) -> Optional[TextRun]:
    if isinstance(node, TextRun):
        return node
    if not is_element(node):
        return None
    return next(iter_text_runs(node), None)


def _last_run(node: Node) -> Optional[TextRun]:
    if isinstance(node, TextRun):
        return node
    if not is_element(node):
        return None
    last = None
    for run in iter_text_runs(node):
        last = run
    return last


def normalize_start(container: Node, offset: int) -> Optional[Endpoint]:
    if isinstance(container, TextRun):
        return container, offset
    if not isinstance(container, etree._Element):
        return None
    nodes = child_nodes(container)
    direct = nodes[offset] if 0 <= offset < len(nodes) else None
    if isinstance(direct, TextRun):
        return direct, 0
    run = _first_run(direct if direct is not None else container)
    return (run, 0) if run is not None else None


def normalize_end(container: Node, offset: int) -> Optional[Endpoint]:
    if isinstance(container, TextRun):
        return container, offset
    if not isinstance(container, etree._Element):
        return None
    nodes = child_nodes(container)
    index = max(0, offset - 1)
    direct = nodes[index] if index < len(nodes) else None
    if isinstance(direct, TextRun):
        return direct, len(direct)
    run = _last_run(direct if direct is not None else container)
    return (run, len(run)) if run is not None else None


def convert_selection(
    root: etree._Element,
    selection: SelectionSpan,
    quote: Optional[str] = None,
) -> AnchorDraft:
    """
    Turn a selection inside `root` into a durable anchor draft.

    Raises UnresolvableSelectionError when either endpoint cannot be
    normalized to a text run under root, or when the resulting offsets do
    not satisfy end > start. No partial draft is ever returned.
    """
    start = normalize_start(selection.start_container, selection.start_offset)
    end = normalize_end(selection.end_container, selection.end_offset)
    if start is None or end is None:
        raise UnresolvableSelectionError("Selection endpoints do not resolve to text runs")

    global_start = global_offset_of(root, *start)
    global_end = global_offset_of(root, *end)
    if global_start is None or global_end is None or global_end <= global_start:
        raise UnresolvableSelectionError(
            f"Selection offsets are not usable (start={global_start}, end={global_end})"
        )

    if quote is None:
        quote = canonical_text(root)[global_start:global_end]
    if not quote.strip():
        raise UnresolvableSelectionError("Selection has no quotable text")

    logger.debug("Converted selection to [%s, %s)", global_start, global_end)
    return AnchorDraft(quote=quote, global_start=global_start, global_end=global_end)
