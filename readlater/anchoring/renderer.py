from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Sequence

from lxml import etree, html

from .errors import AnchoringInvariantError, WrapError
from .models import COLOR_MAP, Anchor, HighlightColor
from .projection import TextRun, canonical_text, is_element, iter_text_runs, parse_markup, serialize_markup
from .recovery import resolve_offsets

logger = logging.getLogger(__name__)

MARKER_TAG = "mark"
MARKER_ID_ATTR = "data-highlight-id"
MARKER_ID_PREFIX = "highlight-"

# Text inside these elements is not rendered as markup, so a marker there would be visible as text.
RAW_TEXT_TAGS = frozenset(
    {"script", "style", "textarea", "title", "xmp", "iframe", "noembed", "noframes", "noscript", "plaintext"}
)
# These only accept specific children; browsers hoist anything else out of them.
STRUCTURAL_TAGS = frozenset(
    {"table", "thead", "tbody", "tfoot", "tr", "colgroup", "select", "optgroup", "ul", "ol", "dl", "head", "html"}
)


@dataclass
class ResolvedAnchor:
    anchor: Anchor
    start: int
    end: int


@dataclass
class Segment:
    run: TextRun
    start_offset: int
    end_offset: int


def marker_id(anchor_id: str, segment_index: int = 0) -> str:
    if segment_index == 0:
        return f"{MARKER_ID_PREFIX}{anchor_id}"
    return f"{MARKER_ID_PREFIX}{anchor_id}-{segment_index}"


def css_color(color) -> str:
    try:
        return COLOR_MAP[HighlightColor(color)]
    except ValueError:
        return str(color)


def resolve_anchors(anchors: Iterable[Anchor], projection: str) -> List[ResolvedAnchor]:
    """
    Effective offsets for every renderable anchor, ordered by start and then
    by creation time. Anchors that cannot be located are left out.
    """
    resolved: List[ResolvedAnchor] = []
    for anchor in anchors:
        offsets = resolve_offsets(anchor, projection)
        if offsets is None:
            continue
        resolved.append(ResolvedAnchor(anchor, *offsets))
    resolved.sort(key=lambda item: (item.start, item.anchor.created_at))
    return resolved


def collect_segments(root: etree._Element, start: int, end: int) -> List[Segment]:
    segments: List[Segment] = []
    acc = 0
    for run in iter_text_runs(root):
        length = len(run)
        node_start, node_end = acc, acc + length
        if length:
            overlap_start = max(start, node_start)
            overlap_end = min(end, node_end)
            if overlap_start < overlap_end:
                segments.append(Segment(run, overlap_start - node_start, overlap_end - node_start))
        acc = node_end
        if acc >= end:
            break
    return segments


def _split_run(run: TextRun, start: int, end: int, marker: etree._Element) -> None:
    value = run.value
    host = run.host
    marker.text = value[start:end]
    marker.tail = value[end:] or None
    setattr(run.element, run.slot, value[:start] or None)
    if run.slot == "text":
        host.insert(0, marker)
    else:
        host.insert(host.index(run.element) + 1, marker)


def _host_for(run: TextRun) -> etree._Element:
    host = run.host
    if host is None or not is_element(host):
        raise WrapError(f"Text run has no element host ({run.slot})")
    if host.tag in RAW_TEXT_TAGS:
        raise WrapError(f"Cannot place a marker inside <{host.tag}>")
    return host


def _surround(segment: Segment, marker: etree._Element) -> None:
    host = _host_for(segment.run)
    if host.tag in STRUCTURAL_TAGS:
        raise WrapError(f"<{host.tag}> does not accept inline markers")
    length = len(segment.run)
    if not 0 <= segment.start_offset < segment.end_offset <= length:
        raise WrapError(
            f"Segment [{segment.start_offset}, {segment.end_offset}) does not fit run of length {length}"
        )
    _split_run(segment.run, segment.start_offset, segment.end_offset, marker)


def _extract_and_reinsert(segment: Segment, marker: etree._Element) -> None:
    host = _host_for(segment.run)
    value = segment.run.value
    start = max(0, min(segment.start_offset, len(value)))
    end = max(0, min(segment.end_offset, len(value)))
    if start >= end:
        raise WrapError("Segment collapsed after clamping")
    if host.tag in STRUCTURAL_TAGS and not value[start:end].strip():
        raise WrapError(f"Whitespace-only segment inside <{host.tag}>")
    _split_run(segment.run, start, end, marker)


class HighlightRenderer:
    """
    Projects stored anchors onto freshly parsed markup.

    Every call parses the raw markup into a new tree, so the input string and
    the anchor list are never mutated. Wrapping a slice of a text run in a
    marker keeps the text length and order unchanged, which means offsets
    computed against the original projection stay valid for every anchor.
    Overlapping anchors produce nested markers.
    """

    def __init__(self, marker_tag: str = MARKER_TAG, strict: bool = False):
        self.marker_tag = marker_tag
        self.strict = strict

    def render(self, raw_markup: str, anchors: Sequence[Anchor]) -> str:
        if not raw_markup:
            return ""
        if not anchors:
            return raw_markup

        try:
            root = parse_markup(raw_markup)
        except (etree.ParserError, ValueError) as exc:
            logger.warning("Could not parse markup for highlighting: %s", exc)
            return raw_markup

        projection = canonical_text(root)
        for item in resolve_anchors(anchors, projection):
            try:
                self._apply(root, item)
            except AnchoringInvariantError:
                if self.strict:
                    raise
                logger.exception("Skipping anchor %s after invariant violation", item.anchor.id)

        if self.strict and canonical_text(root) != projection:
            raise AnchoringInvariantError("Markers changed the canonical projection")
        return serialize_markup(root)

    def _apply(self, root: etree._Element, item: ResolvedAnchor) -> None:
        segments = collect_segments(root, item.start, item.end)
        covered = sum(seg.end_offset - seg.start_offset for seg in segments)
        if covered != item.end - item.start:
            raise AnchoringInvariantError(
                f"Anchor {item.anchor.id} covers {covered} of {item.end - item.start} characters"
            )

        # Last to first, so an earlier segment's run is untouched when it is wrapped.
        for index in range(len(segments) - 1, -1, -1):
            segment = segments[index]
            marker = self._make_marker(item.anchor, index)
            try:
                _surround(segment, marker)
            except WrapError as exc:
                logger.debug("Surround failed for anchor %s segment %s: %s", item.anchor.id, index, exc)
                try:
                    _extract_and_reinsert(segment, marker)
                except WrapError as fallback_exc:
                    logger.warning(
                        "Failed to highlight anchor %s segment %s: %s", item.anchor.id, index, fallback_exc
                    )

    def _make_marker(self, anchor: Anchor, segment_index: int) -> etree._Element:
        marker = html.Element(self.marker_tag)
        marker.set("id", marker_id(anchor.id, segment_index))
        marker.set(MARKER_ID_ATTR, anchor.id)
        marker.set(
            "style",
            f"background-color: {css_color(anchor.color)} !important; "
            "padding: 0 2px; border-radius: 2px; cursor: pointer; display: inline",
        )
        return marker


def render_highlights(raw_markup: str, anchors: Sequence[Anchor], strict: bool = False) -> str:
    return HighlightRenderer(strict=strict).render(raw_markup, anchors)
