from datetime import datetime

import pytest

from readlater.anchoring import (
    Anchor,
    AnchorActivated,
    AnchorCreated,
    AnchorFocusRequested,
    AnchorsRefreshRequested,
    BBox,
    EventBus,
    HighlightColor,
    InteractionDispatcher,
    find_marker,
    parse_markup,
    render_highlights,
)


def _anchor(anchor_id, quote, start, end, color=HighlightColor.YELLOW):
    return Anchor(
        id=anchor_id,
        document_id="doc-1",
        quote=quote,
        global_start=start,
        global_end=end,
        color=color,
        created_at=datetime(2024, 1, 1),
    )


def _recording_bus():
    bus = EventBus()
    received = []
    for event_type in (AnchorActivated, AnchorFocusRequested):
        bus.subscribe(event_type, received.append)
    return bus, received


def test_activation_publishes_activation_and_focus():
    anchors = [_anchor("a1", "quick brown", 4, 15, HighlightColor.BLUE)]
    root = parse_markup(render_highlights("<p>The quick brown fox</p>", anchors))
    bus, received = _recording_bus()
    region = BBox(10, 20, 80, 16)

    event = InteractionDispatcher(bus).activate(find_marker(root, "a1"), anchors, region)

    assert event == AnchorActivated(anchor_id="a1", bounding_region=region, color=HighlightColor.BLUE, quote="quick brown")
    assert received == [event, AnchorFocusRequested(anchor_id="a1")]


def test_activation_resolves_innermost_marker():
    anchors = [_anchor("a", "abcdef", 0, 6), _anchor("b", "defghi", 3, 9)]
    root = parse_markup(render_highlights("<p>abcdefghij</p>", anchors))
    inner = find_marker(root, "b")
    assert inner.getparent() is find_marker(root, "a")

    bus, _ = _recording_bus()
    event = InteractionDispatcher(bus).activate(inner, anchors, BBox(0, 0, 1, 1))
    assert event.anchor_id == "b"


def test_activation_ignores_non_markers_and_unknown_anchors():
    anchors = [_anchor("a1", "fox", 16, 19)]
    root = parse_markup(render_highlights("<p>The quick brown fox</p>", anchors))
    bus, received = _recording_bus()
    dispatcher = InteractionDispatcher(bus)

    assert dispatcher.activate(root[0], anchors, BBox(0, 0, 1, 1)) is None
    assert dispatcher.activate(find_marker(root, "a1"), [], BBox(0, 0, 1, 1)) is None
    assert received == []


def test_find_marker_returns_first_segment():
    anchors = [_anchor("a1", "phabe", 2, 7)]
    root = parse_markup(render_highlights("<p>alpha<br>beta</p>", anchors))
    assert find_marker(root, "a1").text == "pha"
    assert find_marker(root, "missing") is None


def test_event_bus_isolates_failing_handlers():
    bus = EventBus()
    seen = []

    def broken(event):
        raise RuntimeError("handler bug")

    bus.subscribe(AnchorsRefreshRequested, broken)
    unsubscribe = bus.subscribe(AnchorsRefreshRequested, seen.append)
    bus.publish(AnchorsRefreshRequested(document_id="doc-1"))
    assert seen == [AnchorsRefreshRequested(document_id="doc-1")]

    unsubscribe()
    bus.publish(AnchorsRefreshRequested())
    assert len(seen) == 1


def test_event_bus_routes_by_type_and_rejects_unknown_events():
    bus = EventBus()
    created = []
    bus.subscribe(AnchorCreated, created.append)
    bus.publish(AnchorFocusRequested(anchor_id="a1"))
    assert created == []

    with pytest.raises(TypeError):
        bus.subscribe(dict, created.append)
    with pytest.raises(TypeError):
        bus.publish({"kind": "anchor-created"})
