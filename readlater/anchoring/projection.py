from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Union

from lxml import etree, html

from .errors import AnchoringInvariantError

logger = logging.getLogger(__name__)

ROOT_TAG = "div"


@dataclass(frozen=True)
class TextRun:
    """
    One text slot of an lxml element. lxml keeps the text before an element's
    first child in `element.text` and the text after an element in
    `element.tail`; together these slots play the role of DOM text nodes.
    """

    element: etree._Element
    slot: str  # "text" or "tail"

    @property
    def value(self) -> str:
        return getattr(self.element, self.slot) or ""

    @property
    def host(self) -> Optional[etree._Element]:
        """The element whose child list this run belongs to."""
        if self.slot == "text":
            return self.element
        return self.element.getparent()

    def __len__(self) -> int:
        return len(self.value)


@dataclass
class TextRange:
    start_run: TextRun
    start_offset: int
    end_run: TextRun
    end_offset: int


Node = Union[TextRun, etree._Element]


def is_element(node) -> bool:
    # Comments and processing instructions have a callable tag.
    return isinstance(node, etree._Element) and isinstance(node.tag, str)


def parse_markup(markup: str) -> html.HtmlElement:
    """
    Parse raw markup into a fresh tree under a synthetic <div> root.
    Every call returns a new, disposable tree.
    """
    if not markup or not markup.strip():
        root = html.Element(ROOT_TAG)
        root.text = markup or None
        return root
    return html.fragment_fromstring(markup, create_parent=ROOT_TAG)


def serialize_markup(root: etree._Element) -> str:
    """Serialize the inner markup of a root produced by `parse_markup`."""
    rendered = html.tostring(root, encoding="unicode", with_tail=False)
    open_tag, close_tag = f"<{ROOT_TAG}>", f"</{ROOT_TAG}>"
    if not (rendered.startswith(open_tag) and rendered.endswith(close_tag)):
        raise AnchoringInvariantError(f"Unexpected root serialization: {rendered[:40]!r}")
    return rendered[len(open_tag) : len(rendered) - len(close_tag)]


def iter_text_runs(root: etree._Element) -> Iterator[TextRun]:
    """
    Yield every text run under root in document order. Empty runs are
    yielded too; they contribute zero length. The tail of root itself lies
    outside the tree and is never yielded.
    """
    if is_element(root) and root.text is not None:
        yield TextRun(root, "text")
    for child in root:
        if is_element(child):
            yield from iter_text_runs(child)
        if child.tail is not None:
            yield TextRun(child, "tail")


def canonical_text(root: etree._Element) -> str:
    return "".join(run.value for run in iter_text_runs(root))


def child_nodes(element: etree._Element) -> List[Node]:
    """DOM-style child list: text runs and child elements interleaved."""
    nodes: List[Node] = []
    if element.text is not None:
        nodes.append(TextRun(element, "text"))
    for child in element:
        nodes.append(child)
        if child.tail is not None:
            nodes.append(TextRun(child, "tail"))
    return nodes


def global_offset_of(root: etree._Element, target: TextRun, local_offset: int) -> Optional[int]:
    acc = 0
    for run in iter_text_runs(root):
        length = len(run)
        if run == target:
            return acc + min(max(local_offset, 0), length)
        acc += length
    return None


def range_from_global_offsets(root: etree._Element, start: int, end: int) -> Optional[TextRange]:
    """
    Map [start, end) back onto text runs. The start run is the run holding
    the character at `start`; the end run is the run holding the character
    just before `end`. Returns None for empty or negative ranges and for
    ranges past the end of the projection.
    """
    if start < 0 or end < 0 or end <= start:
        return None
    acc = 0
    start_run: Optional[TextRun] = None
    start_offset = 0
    for run in iter_text_runs(root):
        length = len(run)
        if length:
            if start_run is None and acc <= start < acc + length:
                start_run = run
                start_offset = start - acc
            if start_run is not None and acc < end <= acc + length:
                return TextRange(start_run, start_offset, run, end - acc)
        acc += length
    logger.debug("Range [%s, %s) not reachable in projection of length %s", start, end, acc)
    return None
