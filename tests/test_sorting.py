"""Tests for multi-key sorting."""

import pytest

from ghp_cli.models import ProjectItem
from ghp_cli.sorting import SortKey, parse_sort_spec, sort_items


def _make_item(title, **kwargs):
    return ProjectItem(id=f"PVTI_{title}", title=title, **kwargs)


def _status_items(*indexes):
    return [_make_item(f"s{i}", status_index=i) for i in indexes]


def test_parse_sort_spec():
    assert parse_sort_spec("status, -title,,") == [
        SortKey("status", ascending=False),
        SortKey("title", ascending=True),
    ]
    assert parse_sort_spec("") == []
    assert parse_sort_spec("-") == []


def test_no_prefix_sorts_descending():
    result = sort_items(_status_items(2, 0, 1), "status")
    assert [i.status_index for i in result] == [2, 1, 0]


def test_dash_prefix_sorts_ascending():
    result = sort_items(_status_items(2, 0, 1), "-status")
    assert [i.status_index for i in result] == [0, 1, 2]


@pytest.mark.parametrize("spec", ["Priority", "-Priority"])
def test_missing_values_sort_last_in_both_directions(spec):
    items = [
        _make_item("none-1"),
        _make_item("b", field_values={"Priority": "P2"}),
        _make_item("none-2"),
        _make_item("a", field_values={"Priority": "P1"}),
    ]
    result = sort_items(items, spec)
    assert [i.title for i in result[2:]] == ["none-1", "none-2"]
    assert {i.title for i in result[:2]} == {"a", "b"}


def test_later_keys_break_ties():
    items = [
        _make_item("beta", status_index=1),
        _make_item("alpha", status_index=1),
        _make_item("gamma", status_index=0),
    ]
    result = sort_items(items, "-status,-title")
    assert [i.title for i in result] == ["gamma", "alpha", "beta"]


def test_both_missing_falls_through_to_next_key():
    items = [_make_item("b"), _make_item("a")]
    result = sort_items(items, "Priority,-title")
    assert [i.title for i in result] == ["a", "b"]


def test_equal_items_keep_input_order():
    items = [_make_item(t, status_index=0) for t in ("x", "y", "z")]
    assert [i.title for i in sort_items(items, "status")] == ["x", "y", "z"]


def test_strings_compare_case_insensitively():
    items = [_make_item("banana"), _make_item("Apple"), _make_item("cherry")]
    result = sort_items(items, "-title")
    assert [i.title for i in result] == ["Apple", "banana", "cherry"]


def test_sort_does_not_mutate_input():
    items = _status_items(2, 0, 1)
    sort_items(items, "status")
    assert [i.status_index for i in items] == [2, 0, 1]
