import pytest

from readlater.anchoring import (
    SelectionSpan,
    TextRun,
    UnresolvableSelectionError,
    canonical_text,
    convert_selection,
    parse_markup,
    range_from_global_offsets,
)
from readlater.anchoring.selection import normalize_end, normalize_start


def test_convert_text_run_selection():
    root = parse_markup("<p>The quick brown fox</p>")
    run = TextRun(root[0], "text")
    draft = convert_selection(root, SelectionSpan(run, 4, run, 15))
    assert (draft.global_start, draft.global_end) == (4, 15)
    assert draft.quote == "quick brown"


def test_convert_keeps_caller_quote():
    root = parse_markup("<p>The quick brown fox</p>")
    run = TextRun(root[0], "text")
    draft = convert_selection(root, SelectionSpan(run, 4, run, 15), quote="quick brown")
    assert draft.quote == "quick brown"


def test_selection_round_trip_across_runs():
    root = parse_markup("<p>Hello <b>bold</b> world</p>")
    p, b = root[0], root[0][0]
    start_run, end_run = TextRun(p, "text"), TextRun(b, "tail")
    draft = convert_selection(root, SelectionSpan(start_run, 2, end_run, 3))

    text_range = range_from_global_offsets(root, draft.global_start, draft.global_end)
    assert text_range.start_run == start_run
    assert text_range.start_offset == 2
    assert text_range.end_run == end_run
    assert text_range.end_offset == 3
    assert canonical_text(root)[draft.global_start : draft.global_end] == draft.quote == "llo bold wo"


def test_element_start_with_direct_text_child():
    root = parse_markup("<p>The quick</p>")
    p = root[0]
    assert normalize_start(p, 0) == (TextRun(p, "text"), 0)


def test_element_endpoints_search_descendants():
    root = parse_markup("<p><b>quick</b> brown</p>")
    p, b = root[0], root[0][0]
    # child_nodes(p) == [<b>, tail of <b>]
    assert normalize_start(p, 0) == (TextRun(b, "text"), 0)
    assert normalize_end(p, 2) == (TextRun(b, "tail"), len(" brown"))

    draft = convert_selection(root, SelectionSpan(p, 0, p, 2))
    assert draft.quote == "quick brown"
    assert (draft.global_start, draft.global_end) == (0, 11)


def test_element_end_searches_backwards_into_last_descendant():
    root = parse_markup("<p>one <i>two</i></p><p>three</p>")
    first_p = root[0]
    end = normalize_end(root, 1)
    assert end == (TextRun(first_p[0], "text"), 3)

    draft = convert_selection(root, SelectionSpan(root, 0, root, 1))
    assert draft.quote == "one two"


def test_collapsed_selection_is_unresolvable():
    root = parse_markup("<p>The quick brown fox</p>")
    run = TextRun(root[0], "text")
    with pytest.raises(UnresolvableSelectionError):
        convert_selection(root, SelectionSpan(run, 5, run, 5))


def test_selection_without_text_is_unresolvable():
    root = parse_markup("<p></p><p>x</p>")
    empty_p = root[0]
    with pytest.raises(UnresolvableSelectionError):
        convert_selection(root, SelectionSpan(empty_p, 0, empty_p, 0))


def test_selection_outside_root_is_unresolvable():
    root = parse_markup("<p>The quick brown fox</p>")
    other = parse_markup("<p>The quick brown fox</p>")
    run = TextRun(other[0], "text")
    with pytest.raises(UnresolvableSelectionError):
        convert_selection(root, SelectionSpan(run, 0, run, 3))


def test_whitespace_only_selection_is_unresolvable():
    root = parse_markup("<p>a   b</p>")
    run = TextRun(root[0], "text")
    with pytest.raises(UnresolvableSelectionError):
        convert_selection(root, SelectionSpan(run, 1, run, 4))
