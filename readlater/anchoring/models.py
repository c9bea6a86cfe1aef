from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class HighlightColor(str, Enum):
    YELLOW = "yellow"
    GREEN = "green"
    BLUE = "blue"
    PINK = "pink"
    PURPLE = "purple"


COLOR_MAP = {
    HighlightColor.YELLOW: "#fef08a",
    HighlightColor.GREEN: "#bbf7d0",
    HighlightColor.BLUE: "#bfdbfe",
    HighlightColor.PINK: "#fbcfe8",
    HighlightColor.PURPLE: "#e9d5ff",
}


class AnchorState(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


TEMP_ID_PREFIX = "temp-"


def new_temp_id() -> str:
    return f"{TEMP_ID_PREFIX}{uuid.uuid4().hex}"


def is_temp_id(anchor_id: str) -> bool:
    return anchor_id.startswith(TEMP_ID_PREFIX)


@dataclass
class BBox:
    x: float
    y: float
    w: float
    h: float


@dataclass
class Annotation:
    id: str
    anchor_id: str
    document_id: str
    content: str
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class Anchor:
    id: str
    document_id: str
    quote: str
    global_start: Optional[int]
    global_end: Optional[int]
    color: HighlightColor = HighlightColor.YELLOW
    created_at: datetime = field(default_factory=datetime.utcnow)
    annotation: Optional[Annotation] = None


@dataclass
class AnchorDraft:
    """
    Output of a successful selection conversion: everything an anchor needs
    except identity, colour and ownership.
    """

    quote: str
    global_start: int
    global_end: int


@dataclass(eq=False)
class TrackedAnchor:
    anchor: Anchor
    state: AnchorState = AnchorState.PENDING
    temp_id: Optional[str] = None
    generation: int = 0


@dataclass
class DocumentRecord:
    id: str
    title: str
    source_url: Optional[str]
    markup_path: str
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)
