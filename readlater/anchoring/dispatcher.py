from __future__ import annotations

import logging
from typing import Optional, Sequence

from lxml import etree

from .events import AnchorActivated, AnchorFocusRequested, EventBus
from .models import Anchor, BBox
from .projection import is_element
from .renderer import MARKER_ID_ATTR, marker_id

logger = logging.getLogger(__name__)


def closest_marker(element: Optional[etree._Element]) -> Optional[etree._Element]:
    """The innermost marker at or above `element`."""
    while element is not None:
        if is_element(element) and element.get(MARKER_ID_ATTR):
            return element
        element = element.getparent()
    return None


def find_marker(root: etree._Element, anchor_id: str) -> Optional[etree._Element]:
    """The scroll target of an anchor: the marker of its first segment."""
    target = marker_id(anchor_id)
    for element in root.iter():
        if is_element(element) and element.get("id") == target:
            return element
    return None


class InteractionDispatcher:
    """
    Resolves activation of a rendered marker back to its anchor and tells
    companion panels about it. Never mutates anchors or markup.
    """

    def __init__(self, bus: EventBus):
        self.bus = bus

    def activate(
        self,
        element: etree._Element,
        anchors: Sequence[Anchor],
        bounding_region: BBox,
    ) -> Optional[AnchorActivated]:
        marker = closest_marker(element)
        if marker is None:
            return None
        anchor_id = marker.get(MARKER_ID_ATTR)
        anchor = next((a for a in anchors if a.id == anchor_id), None)
        if anchor is None:
            logger.debug("Activated marker for unknown anchor %s", anchor_id)
            return None

        event = AnchorActivated(
            anchor_id=anchor.id,
            bounding_region=bounding_region,
            color=anchor.color,
            quote=anchor.quote or "".join(marker.itertext()),
        )
        self.bus.publish(event)
        self.bus.publish(AnchorFocusRequested(anchor_id=anchor.id))
        return event
