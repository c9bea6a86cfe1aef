from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, DefaultDict, List, Type, TypeVar, Union

from .models import Anchor, BBox, HighlightColor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnchorCreated:
    """Fired right after optimistic creation, before persistence confirms."""

    anchor: Anchor


@dataclass(frozen=True)
class AnchorsRefreshRequested:
    document_id: str = ""


@dataclass(frozen=True)
class AnchorFocusRequested:
    anchor_id: str


@dataclass(frozen=True)
class AnchorActivated:
    anchor_id: str
    bounding_region: BBox
    color: HighlightColor
    quote: str


AnchorEvent = Union[AnchorCreated, AnchorsRefreshRequested, AnchorFocusRequested, AnchorActivated]
EVENT_TYPES = (AnchorCreated, AnchorsRefreshRequested, AnchorFocusRequested, AnchorActivated)

E = TypeVar("E", AnchorCreated, AnchorsRefreshRequested, AnchorFocusRequested, AnchorActivated)


class EventBus:
    """
    Synchronous in-process bus for anchor events. Handlers are keyed by event
    class and run in subscription order; a failing handler is logged and the
    remaining handlers still run.
    """

    def __init__(self):
        self._handlers: DefaultDict[type, List[Callable]] = defaultdict(list)

    def subscribe(self, event_type: Type[E], handler: Callable[[E], None]) -> Callable[[], None]:
        if event_type not in EVENT_TYPES:
            raise TypeError(f"Unknown event type: {event_type!r}")
        self._handlers[event_type].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers[event_type]:
                self._handlers[event_type].remove(handler)

        return unsubscribe

    def publish(self, event: AnchorEvent) -> None:
        if not isinstance(event, EVENT_TYPES):
            raise TypeError(f"Unknown event: {event!r}")
        for handler in list(self._handlers[type(event)]):
            try:
                handler(event)
            except Exception:  # noqa: BLE001
                logger.exception("Handler %r failed for %s", handler, type(event).__name__)
