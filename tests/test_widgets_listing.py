"""Focused tests for list rendering helpers/widgets."""

from __future__ import annotations

from unittest.mock import patch

from records_browser.models import MODE_SNAPSHOT, ListQuery, ListWindowState
from records_browser.widgets.chrome import ContextFooter, StatusBar, UnreadBadge
from records_browser.widgets.listing import (
    CELL_MAX_LEN,
    discover_columns,
    format_cell,
    format_pagination_line,
    record_id,
    recording_source,
    render_cell,
    render_playback_cell,
    render_status_line,
)


def test_record_id_prefers_id_then_conversation_id():
    assert record_id({"id": 5, "conversation_id": "c"}) == "5"
    assert record_id({"id": "", "conversation_id": "c"}) == "c"
    assert record_id({"caller_name": "x"}) is None


def test_recording_source_first_non_empty_string():
    assert recording_source({"recording_url": "", "audio_url": "https://a/b.mp3"}) == (
        "https://a/b.mp3"
    )
    assert recording_source({"recording": 3}) is None


def test_discover_columns_first_seen_scalar_only(make_record):
    records = [
        make_record(recording_url="https://a/1.mp3", transcript=[{"t": "hi"}], _meta="x"),
        make_record(store_location="North", details={"a": 1}),
    ]
    assert discover_columns(records) == [
        "caller_name",
        "caller_number",
        "Duration",
        "status",
        "store_location",
    ]


def test_format_cell_variants():
    assert format_cell(None) == "-"
    assert format_cell("") == "-"
    assert format_cell(True) == "yes"
    assert format_cell(2.50) == "2.5"
    assert format_cell("two\n  lines") == "two lines"
    assert format_cell("x" * 100).endswith("...")
    assert len(format_cell("x" * 100)) == CELL_MAX_LEN + 3


def test_render_cell_escapes_markup():
    assert render_cell("[bold]hi") == "\\[bold]hi"
    assert "-" in render_cell(None)


def test_render_playback_cell_states():
    assert render_playback_cell(False, False, 0.0) == ""
    assert "▶" in render_playback_cell(True, False, 0.0)
    playing = render_playback_cell(True, True, 0.5)
    assert "■" in playing
    assert "████░░░░" in playing


def test_pagination_line_inexact():
    state = ListWindowState(
        items=tuple({"i": i} for i in range(10)),
        displayed_total=11,
        has_more_hint=True,
        query=ListQuery(search_text="ada"),
    )
    assert format_pagination_line(state) == 'Page 1 of 2+ | 1-10 of 11+ | search "ada"'


def test_pagination_line_snapshot_truncated_and_loading():
    state = ListWindowState(
        mode=MODE_SNAPSHOT,
        items=tuple({"i": i} for i in range(4)),
        displayed_total=24,
        total_is_exact=True,
        query=ListQuery(page_index=3, sort_column="Duration", sort_direction="desc"),
        truncated=True,
        loading=True,
    )
    assert format_pagination_line(state) == (
        "Page 3 of 3 | 21-24 of 24 | sorted by Duration desc | first records only | loading..."
    )


def test_status_line_shows_first_error_line():
    state = ListWindowState(error="Could not load records.\nWhy: boom.")
    line = render_status_line(state)
    assert "Could not load records." in line
    assert "Why" not in line
    assert "r to retry" in line


def test_status_bar_error_class():
    bar = StatusBar()
    with patch.object(bar, "update") as update:
        bar.show_state(ListWindowState(error="Could not load records."))
        assert bar.has_class("error")
        assert "r to retry" in update.call_args.args[0]
        bar.show_state(ListWindowState())
    assert not bar.has_class("error")


def test_unread_badge_text():
    badge = UnreadBadge()
    with patch.object(badge, "update") as update:
        badge.show_count(0)
        assert "no unread" in update.call_args.args[0]
        badge.show_count(3)
        assert "3 unread" in update.call_args.args[0]


def test_context_footer_renders_bindings():
    footer = ContextFooter()
    with patch.object(footer, "update") as update:
        footer.render_bindings([("n", "next"), ("[b]", "prev")])
    text = update.call_args.args[0]
    assert "next" in text
    assert "\\[b]" in text
