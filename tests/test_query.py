"""Tests for list queries, wire params, sorting, and window labels."""

from __future__ import annotations

import pytest

from records_browser.models import (
    MODE_SNAPSHOT,
    ListQuery,
    ListWindowState,
    PageRequest,
    normalize_filters,
)
from records_browser.query import (
    build_list_params,
    build_page_request,
    escape_rich_text,
    format_page_range,
    format_total_label,
    last_page_index,
    parse_duration_minutes,
    render_progress_bar,
    slice_page,
    sort_records,
    truncate_text,
)


class TestListQuery:
    def test_defaults(self):
        query = ListQuery()
        assert query.page_index == 1
        assert query.page_size == 10
        assert query.skip == 0
        assert query.sort_column is None

    @pytest.mark.parametrize(
        "kwargs",
        [{"page_index": 0}, {"page_size": 0}, {"sort_direction": "up"}],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            ListQuery(**kwargs)

    def test_skip_follows_page(self):
        assert ListQuery(page_index=3, page_size=25).skip == 50

    def test_field_changes_reset_page(self):
        query = ListQuery(page_index=4)
        assert query.with_search(" alice ").page_index == 1
        assert query.with_search(" alice ").search_text == "alice"
        assert query.with_filters({"status": "open"}).page_index == 1
        assert query.with_page_size(25).page_index == 1
        assert query.with_server_sort("newest").page_index == 1
        assert query.toggle_sort("Duration").page_index == 1

    def test_with_page_keeps_other_fields(self):
        query = ListQuery(search_text="x", sort_column="status").with_page(3)
        assert query.page_index == 3
        assert query.search_text == "x"
        assert query.sort_column == "status"

    def test_with_page_clamps_to_first(self):
        assert ListQuery(page_index=2).with_page(-5).page_index == 1

    def test_toggle_sort_flips_active_column(self):
        query = ListQuery().toggle_sort("Duration")
        assert (query.sort_column, query.sort_direction) == ("Duration", "asc")
        query = query.toggle_sort("Duration")
        assert query.sort_direction == "desc"
        query = query.toggle_sort("caller_name")
        assert (query.sort_column, query.sort_direction) == ("caller_name", "asc")

    def test_clear_sort(self):
        query = ListQuery(sort_column="status", sort_direction="desc", page_index=2).clear_sort()
        assert query.sort_column is None
        assert query.sort_direction == "asc"
        assert query.page_index == 1

    def test_shape_ignores_page_index(self):
        assert ListQuery(page_index=1).shape == ListQuery(page_index=7).shape
        assert ListQuery(search_text="a").shape != ListQuery(search_text="b").shape

    def test_filter_map_groups_values(self):
        query = ListQuery().with_filters({"status": ["open", "closed"], "store": "north"})
        assert query.filter_map == {"status": ["open", "closed"], "store": ["north"]}


def test_normalize_filters_sorted_and_expanded():
    pairs = normalize_filters({"b": "2", "a": ["x", "", "y"], "": "ignored", "c": []})
    assert pairs == (("a", "x"), ("a", "y"), ("b", "2"))


def test_normalize_filters_empty():
    assert normalize_filters(None) == ()
    assert normalize_filters({}) == ()


class TestWireParams:
    def test_page_request_carries_query_fields(self):
        query = ListQuery(search_text="bob", server_sort="newest").with_filters({"s": "1"})
        request = build_page_request(query, skip=20, limit=10)
        assert request == PageRequest(
            skip=20, limit=10, search="bob", filters=(("s", "1"),), sort="newest"
        )

    def test_negative_skip_clamped(self):
        assert build_page_request(ListQuery(), skip=-3, limit=5).skip == 0

    def test_list_params_repeat_multi_valued_filters(self):
        request = PageRequest(
            skip=0,
            limit=10,
            search="ann",
            filters=(("status", "open"), ("status", "closed")),
            sort="oldest",
        )
        assert build_list_params(request) == [
            ("skip", "0"),
            ("limit", "10"),
            ("search", "ann"),
            ("status", "open"),
            ("status", "closed"),
            ("sort", "oldest"),
        ]

    def test_list_params_omit_empty_optionals(self):
        assert build_list_params(PageRequest(skip=10, limit=10)) == [
            ("skip", "10"),
            ("limit", "10"),
        ]


class TestDurationParsing:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("2 minutes", 2.0),
            ("10 Minutes", 10.0),
            ("1 minute", 1.0),
            ("2.5minutes", 2.5),
            ("about 3 minutes long", 3.0),
            ("", 0.0),
            (None, 0.0),
            ("n/a", 0.0),
            ("45 seconds", 0.0),
        ],
    )
    def test_parse(self, value, expected):
        assert parse_duration_minutes(value) == expected


class TestSortRecords:
    def test_duration_descending(self):
        records = [
            {"id": "a", "Duration": "2 minutes"},
            {"id": "b", "Duration": "10 minutes"},
            {"id": "c", "Duration": ""},
        ]
        ordered = sort_records(records, "Duration", "desc")
        assert [r["id"] for r in ordered] == ["b", "a", "c"]

    def test_duration_ascending_is_numeric_not_lexical(self):
        records = [{"Duration": "10 minutes"}, {"Duration": "9 minutes"}]
        ordered = sort_records(records, "Duration", "asc")
        assert [r["Duration"] for r in ordered] == ["9 minutes", "10 minutes"]

    def test_custom_duration_columns(self):
        records = [{"len": "10 minutes"}, {"len": "9 minutes"}]
        lexical = sort_records(records, "len", "asc")
        numeric = sort_records(records, "len", "asc", duration_columns=("len",))
        assert lexical[0]["len"] == "10 minutes"
        assert numeric[0]["len"] == "9 minutes"

    def test_missing_and_null_sort_as_empty(self):
        records = [{"id": 1, "name": "bob"}, {"id": 2}, {"id": 3, "name": None}]
        ordered = sort_records(records, "name", "asc")
        assert [r["id"] for r in ordered] == [2, 3, 1]

    def test_booleans_false_before_true(self):
        records = [{"id": 1, "read": True}, {"id": 2, "read": False}]
        assert [r["id"] for r in sort_records(records, "read", "asc")] == [2, 1]
        assert [r["id"] for r in sort_records(records, "read", "desc")] == [1, 2]

    def test_case_insensitive_text(self):
        records = [{"name": "bob"}, {"name": "Alice"}, {"name": "carol"}]
        assert [r["name"] for r in sort_records(records, "name")] == ["Alice", "bob", "carol"]

    def test_ties_keep_input_order_both_directions(self):
        records = [
            {"id": 1, "status": "open"},
            {"id": 2, "status": "closed"},
            {"id": 3, "status": "open"},
            {"id": 4, "status": "closed"},
        ]
        assert [r["id"] for r in sort_records(records, "status", "asc")] == [2, 4, 1, 3]
        assert [r["id"] for r in sort_records(records, "status", "desc")] == [1, 3, 2, 4]

    def test_does_not_mutate_input(self):
        records = [{"n": "b"}, {"n": "a"}]
        sort_records(records, "n")
        assert records == [{"n": "b"}, {"n": "a"}]


class TestPaging:
    def test_slice_page(self):
        records = [{"i": i} for i in range(25)]
        assert [r["i"] for r in slice_page(records, 3, 10)] == [20, 21, 22, 23, 24]
        assert slice_page(records, 4, 10) == []

    @pytest.mark.parametrize(
        ("total", "size", "expected"),
        [(0, 10, 1), (1, 10, 1), (10, 10, 1), (11, 10, 2), (24, 10, 3)],
    )
    def test_last_page_index(self, total, size, expected):
        assert last_page_index(total, size) == expected


class TestLabels:
    def test_total_label_plus_while_inexact(self):
        state = ListWindowState(displayed_total=11, total_is_exact=False, has_more_hint=True)
        assert format_total_label(state) == "11+"

    def test_total_label_exact(self):
        state = ListWindowState(displayed_total=24, total_is_exact=True)
        assert format_total_label(state) == "24"

    def test_page_range(self):
        items = tuple({"i": i} for i in range(4))
        state = ListWindowState(
            mode=MODE_SNAPSHOT,
            items=items,
            displayed_total=24,
            total_is_exact=True,
            query=ListQuery(page_index=3),
        )
        assert format_page_range(state) == "21-24 of 24"

    def test_page_range_empty(self):
        assert format_page_range(ListWindowState()) == "0-0 of 0"


def test_truncate_text():
    assert truncate_text("short", 10) == "short"
    assert truncate_text("abcdefghij", 4) == "abcd..."


def test_escape_rich_text():
    assert escape_rich_text("[bold]x") == "\\[bold]x"
    assert escape_rich_text("") == ""


def test_render_progress_bar():
    assert render_progress_bar(0.5, 1.0, 4) == "██░░"
    assert render_progress_bar(2.0, 1.0, 4) == "████"
    assert render_progress_bar(1.0, 0.0, 3) == "░░░"
