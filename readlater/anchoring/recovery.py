from __future__ import annotations

import logging
from typing import Optional, Tuple

from .models import Anchor

logger = logging.getLogger(__name__)


def _is_offset(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def stored_offsets_usable(anchor: Anchor, projection_length: int) -> bool:
    start, end = anchor.global_start, anchor.global_end
    if not (_is_offset(start) and _is_offset(end)):
        return False
    return 0 <= start < end <= projection_length


def resolve_offsets(anchor: Anchor, projection: str) -> Optional[Tuple[int, int]]:
    """
    Effective [start, end) for an anchor against the canonical projection.

    Stored offsets win when they are consistent. Otherwise the quote is
    searched for and the first occurrence is used. Returns None when the
    quote no longer occurs; the caller drops the anchor from the render.
    """
    if stored_offsets_usable(anchor, len(projection)):
        return anchor.global_start, anchor.global_end

    quote = (anchor.quote or "").strip()
    if not quote:
        return None
    index = projection.find(quote)
    if index < 0:
        logger.debug("Anchor %s quote not found in projection; skipping", anchor.id)
        return None
    logger.debug("Recovered anchor %s offsets from quote at %s", anchor.id, index)
    return index, index + len(quote)
