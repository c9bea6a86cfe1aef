from __future__ import annotations

import logging
from copy import deepcopy
from typing import List, Optional

from lxml import etree

from .errors import PersistenceError, UnresolvableSelectionError
from .events import AnchorCreated, AnchorFocusRequested, AnchorsRefreshRequested, EventBus
from .models import Anchor, AnchorState, Annotation, HighlightColor, TrackedAnchor, is_temp_id, new_temp_id
from .projection import parse_markup
from .renderer import HighlightRenderer
from .repository import AnchorRepository
from .selection import SelectionSpan, convert_selection

logger = logging.getLogger(__name__)


class DocumentAnchorController:
    """
    Owns the anchor list of the open document.

    Creation is optimistic: `begin_create` applies a pending anchor under a
    temporary id right away, `finish_create` performs the persistence round
    trip and then either swaps in the server id at the same list position or
    rolls the anchor back. Opening another document while a creation is in
    flight makes its result stale; stale results are discarded.

    Every mutation publishes AnchorsRefreshRequested. The controller listens
    for it and reloads from the repository, keeping pending anchors and the
    current order of known ones.
    """

    def __init__(
        self,
        repository: AnchorRepository,
        bus: Optional[EventBus] = None,
        renderer: Optional[HighlightRenderer] = None,
    ):
        self.repo = repository
        self.bus = bus or EventBus()
        self.renderer = renderer or HighlightRenderer()
        self.document_id: Optional[str] = None
        self.raw_markup = ""
        self._generation = 0
        self._tracked: List[TrackedAnchor] = []
        self._unsubscribe = self.bus.subscribe(AnchorsRefreshRequested, self._on_refresh)

    def close(self) -> None:
        """Stop listening for refresh requests on the bus."""
        self._unsubscribe()

    # region Document
    def open_document(self, document_id: str) -> None:
        self._generation += 1
        self.document_id = document_id
        self.raw_markup = self.repo.load_raw_markup(document_id)
        self._tracked = [
            TrackedAnchor(anchor=a, state=AnchorState.CONFIRMED, generation=self._generation)
            for a in self.repo.load_anchors(document_id)
        ]
        logger.info("Opened document %s with %s highlights", document_id, len(self._tracked))

    def reload(self) -> None:
        if self.document_id is None:
            return
        loaded = {a.id: a for a in self.repo.load_anchors(self.document_id)}
        merged: List[TrackedAnchor] = []
        for tracked in self._tracked:
            if tracked.state == AnchorState.PENDING:
                merged.append(tracked)
            elif tracked.anchor.id in loaded:
                tracked.anchor = loaded.pop(tracked.anchor.id)
                merged.append(tracked)
        for anchor in loaded.values():
            merged.append(TrackedAnchor(anchor=anchor, state=AnchorState.CONFIRMED, generation=self._generation))
        self._tracked = merged

    def _on_refresh(self, event: AnchorsRefreshRequested) -> None:
        if event.document_id and event.document_id != self.document_id:
            return
        self.reload()

    def _request_refresh(self) -> None:
        self.bus.publish(AnchorsRefreshRequested(document_id=self.document_id or ""))

    # endregion

    # region Views
    def snapshot(self) -> List[Anchor]:
        """Copies of the current known anchors, pending ones included."""
        return [deepcopy(t.anchor) for t in self._tracked if t.state != AnchorState.ROLLED_BACK]

    def tracked(self) -> List[TrackedAnchor]:
        return list(self._tracked)

    def render(self) -> str:
        return self.renderer.render(self.raw_markup, self.snapshot())

    def content_tree(self) -> etree._Element:
        """A fresh tree of the raw markup, for building selections against."""
        return parse_markup(self.raw_markup)

    def _find(self, anchor_id: str) -> Optional[TrackedAnchor]:
        return next((t for t in self._tracked if t.anchor.id == anchor_id), None)

    # endregion

    # region Creation
    def begin_create(
        self,
        root: etree._Element,
        selection: SelectionSpan,
        color: HighlightColor = HighlightColor.YELLOW,
        quote: Optional[str] = None,
    ) -> Optional[TrackedAnchor]:
        if self.document_id is None:
            raise RuntimeError("No document is open")
        try:
            draft = convert_selection(root, selection, quote)
        except UnresolvableSelectionError as exc:
            logger.warning("Cannot compute highlight range, not creating highlight: %s", exc)
            return None

        anchor = Anchor(
            id=new_temp_id(),
            document_id=self.document_id,
            quote=draft.quote,
            global_start=draft.global_start,
            global_end=draft.global_end,
            color=HighlightColor(color),
        )
        tracked = TrackedAnchor(anchor=anchor, temp_id=anchor.id, generation=self._generation)
        self._tracked.insert(0, tracked)
        self.bus.publish(AnchorCreated(anchor=deepcopy(anchor)))
        return tracked

    def finish_create(self, tracked: TrackedAnchor) -> Optional[Anchor]:
        pending = tracked.anchor
        try:
            persisted = self.repo.create_anchor(
                pending.document_id,
                pending.quote,
                pending.global_start,
                pending.global_end,
                pending.color,
            )
        except Exception as exc:  # noqa: BLE001
            tracked.state = AnchorState.ROLLED_BACK
            if tracked.generation == self._generation and tracked in self._tracked:
                self._tracked.remove(tracked)
                self._request_refresh()
            logger.warning("Creating highlight %s failed, rolled back: %s", tracked.temp_id, exc)
            if isinstance(exc, PersistenceError):
                raise
            raise PersistenceError(f"Failed to create highlight: {exc}") from exc

        if tracked.generation != self._generation or tracked not in self._tracked:
            tracked.state = AnchorState.ROLLED_BACK
            logger.info("Discarding highlight %s created for a document that is no longer open", persisted.id)
            return None

        tracked.anchor = persisted
        tracked.state = AnchorState.CONFIRMED
        self._request_refresh()
        return deepcopy(persisted)

    def create_from_selection(
        self,
        root: etree._Element,
        selection: SelectionSpan,
        color: HighlightColor = HighlightColor.YELLOW,
        quote: Optional[str] = None,
    ) -> Optional[Anchor]:
        tracked = self.begin_create(root, selection, color, quote)
        if tracked is None:
            return None
        return self.finish_create(tracked)

    # endregion

    # region Mutation
    def recolor(self, anchor_id: str, color: HighlightColor) -> None:
        tracked = self._find(anchor_id)
        if tracked is None:
            raise KeyError(anchor_id)
        previous = tracked.anchor.color
        tracked.anchor.color = HighlightColor(color)
        if is_temp_id(anchor_id):
            # Persisted with the new colour once creation finishes.
            self._request_refresh()
            return
        try:
            self.repo.update_anchor_color(anchor_id, color)
        except Exception as exc:  # noqa: BLE001
            tracked.anchor.color = previous
            self._request_refresh()
            raise PersistenceError(f"Failed to update highlight {anchor_id}: {exc}") from exc
        self._request_refresh()

    def delete(self, anchor_id: str) -> None:
        tracked = self._find(anchor_id)
        if tracked is None:
            raise KeyError(anchor_id)
        if is_temp_id(anchor_id):
            raise ValueError(f"Highlight {anchor_id} is still being created")
        position = self._tracked.index(tracked)
        self._tracked.remove(tracked)
        try:
            self.repo.delete_anchor(anchor_id)
        except Exception as exc:  # noqa: BLE001
            self._tracked.insert(position, tracked)
            self._request_refresh()
            raise PersistenceError(f"Failed to delete highlight {anchor_id}: {exc}") from exc
        self._request_refresh()

    def annotate(self, anchor_id: str, content: str) -> Annotation:
        tracked = self._find(anchor_id)
        if tracked is None:
            raise KeyError(anchor_id)
        annotation = self.repo.save_annotation(anchor_id, content)
        tracked.anchor.annotation = annotation
        self.bus.publish(AnchorFocusRequested(anchor_id=anchor_id))
        self._request_refresh()
        return annotation

    # endregion
