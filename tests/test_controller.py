import pytest

from readlater.anchoring import (
    AnchorCreated,
    AnchorFocusRequested,
    AnchorsRefreshRequested,
    AnchorState,
    DocumentAnchorController,
    DocumentRecord,
    EventBus,
    HighlightColor,
    InMemoryAnchorRepository,
    LocalDocumentStorage,
    PersistenceError,
    SelectionSpan,
    StoragePaths,
    TextRun,
)

FOX = "<p>The quick brown fox</p>"


class FlakyRepository(InMemoryAnchorRepository):
    def __init__(self):
        super().__init__()
        self.fail_with = None
        self.create_calls = 0

    def create_anchor(self, *args, **kwargs):
        self.create_calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        return super().create_anchor(*args, **kwargs)

    def update_anchor_color(self, anchor_id, color):
        if self.fail_with is not None:
            raise self.fail_with
        return super().update_anchor_color(anchor_id, color)

    def delete_anchor(self, anchor_id):
        if self.fail_with is not None:
            raise self.fail_with
        return super().delete_anchor(anchor_id)


def _add_document(repo, storage, document_id, markup):
    path = storage.write_markup(document_id, markup)
    repo.save_document(DocumentRecord(id=document_id, title=document_id, source_url=None, markup_path=str(path)))


def _setup(tmp_path):
    storage = LocalDocumentStorage(StoragePaths(tmp_path / "data"))
    repo = FlakyRepository()
    _add_document(repo, storage, "doc-1", FOX)
    _add_document(repo, storage, "doc-2", "<p>Another article</p>")
    bus = EventBus()
    events = []
    for event_type in (AnchorCreated, AnchorFocusRequested, AnchorsRefreshRequested):
        bus.subscribe(event_type, events.append)
    controller = DocumentAnchorController(repo, bus)
    controller.open_document("doc-1")
    return controller, repo, events


def _select(controller, start, end):
    root = controller.content_tree()
    run = TextRun(root[0], "text")
    return root, SelectionSpan(run, start, run, end)


def test_create_from_selection_persists_and_renders(tmp_path):
    controller, repo, events = _setup(tmp_path)
    root, selection = _select(controller, 4, 15)

    anchor = controller.create_from_selection(root, selection, HighlightColor.PINK)

    assert anchor is not None and not anchor.id.startswith("temp-")
    assert (anchor.quote, anchor.global_start, anchor.global_end) == ("quick brown", 4, 15)
    assert [a.id for a in repo.load_anchors("doc-1")] == [anchor.id]
    assert isinstance(events[0], AnchorCreated)
    assert events[0].anchor.id.startswith("temp-")
    assert isinstance(events[-1], AnchorsRefreshRequested)
    assert f'id="highlight-{anchor.id}"' in controller.render()


def test_pending_anchor_renders_then_swaps_id_in_place(tmp_path):
    controller, repo, _ = _setup(tmp_path)
    root, selection = _select(controller, 16, 19)
    first = controller.create_from_selection(root, selection)

    root, selection = _select(controller, 4, 9)
    tracked = controller.begin_create(root, selection)
    temp_id = tracked.anchor.id
    assert tracked.state == AnchorState.PENDING
    assert [a.id for a in controller.snapshot()] == [temp_id, first.id]
    assert f'id="highlight-{temp_id}"' in controller.render()

    confirmed = controller.finish_create(tracked)

    assert tracked.state == AnchorState.CONFIRMED
    assert tracked.temp_id == temp_id
    assert [a.id for a in controller.snapshot()] == [confirmed.id, first.id]
    assert f'id="highlight-{confirmed.id}"' in controller.render()
    assert temp_id not in controller.render()


def test_failed_persistence_rolls_back_without_retry(tmp_path):
    controller, repo, _ = _setup(tmp_path)
    repo.fail_with = PersistenceError("network down")
    root, selection = _select(controller, 4, 15)

    with pytest.raises(PersistenceError):
        controller.create_from_selection(root, selection)

    assert controller.snapshot() == []
    assert repo.create_calls == 1
    assert "<mark" not in controller.render()


def test_unexpected_errors_are_reported_as_persistence_errors(tmp_path):
    controller, repo, _ = _setup(tmp_path)
    repo.fail_with = RuntimeError("timeout")
    root, selection = _select(controller, 4, 15)
    tracked = controller.begin_create(root, selection)

    with pytest.raises(PersistenceError):
        controller.finish_create(tracked)
    assert tracked.state == AnchorState.ROLLED_BACK
    assert controller.tracked() == []


def test_unresolvable_selection_is_a_no_op(tmp_path):
    controller, repo, events = _setup(tmp_path)
    root, selection = _select(controller, 7, 7)

    assert controller.create_from_selection(root, selection) is None
    assert events == []
    assert repo.create_calls == 0


def test_result_for_previous_document_is_discarded(tmp_path):
    controller, repo, _ = _setup(tmp_path)
    root, selection = _select(controller, 4, 15)
    tracked = controller.begin_create(root, selection)

    controller.open_document("doc-2")
    assert controller.finish_create(tracked) is None

    assert tracked.state == AnchorState.ROLLED_BACK
    assert controller.document_id == "doc-2"
    assert controller.snapshot() == []
    assert len(repo.load_anchors("doc-1")) == 1


def test_recolor_updates_and_reverts_on_failure(tmp_path):
    controller, repo, _ = _setup(tmp_path)
    root, selection = _select(controller, 4, 15)
    anchor = controller.create_from_selection(root, selection)

    controller.recolor(anchor.id, HighlightColor.GREEN)
    assert repo.get_anchor(anchor.id).color == HighlightColor.GREEN
    assert controller.snapshot()[0].color == HighlightColor.GREEN

    repo.fail_with = PersistenceError("read only")
    with pytest.raises(PersistenceError):
        controller.recolor(anchor.id, HighlightColor.PURPLE)
    assert controller.snapshot()[0].color == HighlightColor.GREEN


def test_delete_restores_position_on_failure(tmp_path):
    controller, repo, _ = _setup(tmp_path)
    first = controller.create_from_selection(*_select(controller, 16, 19))
    second = controller.create_from_selection(*_select(controller, 0, 3))
    order = [a.id for a in controller.snapshot()]

    repo.fail_with = PersistenceError("read only")
    with pytest.raises(PersistenceError):
        controller.delete(first.id)
    assert [a.id for a in controller.snapshot()] == order

    repo.fail_with = None
    controller.delete(first.id)
    assert [a.id for a in controller.snapshot()] == [second.id]
    assert repo.get_anchor(first.id) is None


def test_annotate_attaches_note_and_requests_focus(tmp_path):
    controller, repo, events = _setup(tmp_path)
    anchor = controller.create_from_selection(*_select(controller, 4, 15))
    events.clear()

    annotation = controller.annotate(anchor.id, "  remember this  ")

    assert annotation.content == "remember this"
    assert controller.snapshot()[0].annotation.content == "remember this"
    assert AnchorFocusRequested(anchor_id=anchor.id) in events


def test_refresh_event_reloads_external_changes(tmp_path):
    controller, repo, _ = _setup(tmp_path)
    external = repo.create_anchor("doc-1", "fox", 16, 19, HighlightColor.BLUE)
    assert controller.snapshot() == []

    controller.bus.publish(AnchorsRefreshRequested(document_id="doc-1"))

    assert [a.id for a in controller.snapshot()] == [external.id]


def test_recolor_while_pending_refreshes_and_persists_new_color(tmp_path):
    controller, repo, events = _setup(tmp_path)
    root, selection = _select(controller, 4, 15)
    tracked = controller.begin_create(root, selection)
    events.clear()

    controller.recolor(tracked.anchor.id, HighlightColor.GREEN)

    assert [type(e) for e in events] == [AnchorsRefreshRequested]
    assert controller.snapshot()[0].color == HighlightColor.GREEN
    assert tracked.state == AnchorState.PENDING

    confirmed = controller.finish_create(tracked)
    assert confirmed.color == HighlightColor.GREEN
    assert repo.get_anchor(confirmed.id).color == HighlightColor.GREEN


def test_closed_controller_ignores_refresh_requests(tmp_path):
    controller, repo, _ = _setup(tmp_path)
    controller.close()
    repo.create_anchor("doc-1", "fox", 16, 19, HighlightColor.BLUE)

    controller.bus.publish(AnchorsRefreshRequested(document_id="doc-1"))

    assert controller.snapshot() == []
    controller.close()
