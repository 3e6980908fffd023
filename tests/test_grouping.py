"""Tests for grouping, shared column widths and table rendering."""

from ghp_cli.grouping import (
    TITLE_MAX_WIDTH,
    TITLE_MIN_WIDTH,
    calculate_column_widths,
    columns_without,
    group_items,
    parse_columns,
)
from ghp_cli.models import ProjectItem, StatusField, StatusOption
from ghp_cli.table import render_board, render_grouped, render_simple_list


def _make_item(title, **kwargs):
    return ProjectItem(id=f"PVTI_{title}", title=title, **kwargs)


def _labels(groups):
    return [g.label for g in groups]


class TestGroupItems:
    def test_missing_priority_forms_one_trailing_group(self):
        items = [
            _make_item("A"),
            _make_item("B", field_values={"Priority": "High"}),
            _make_item("C"),
        ]
        groups = group_items(items, "priority")
        assert _labels(groups) == ["High", "No Priority"]
        assert [i.title for i in groups[-1].items] == ["A", "C"]

    def test_status_groups_follow_board_order(self):
        items = [
            _make_item("A", status="Done", status_index=2),
            _make_item("B"),
            _make_item("C", status="Todo", status_index=0),
            _make_item("D", status="In Progress", status_index=1),
        ]
        groups = group_items(items, "status")
        assert _labels(groups) == ["Todo", "In Progress", "Done", "No Status"]

    def test_other_groups_are_alphabetical_with_unassigned_last(self):
        items = [
            _make_item("A", assignees=("zed",)),
            _make_item("B"),
            _make_item("C", assignees=("amy",)),
        ]
        assert _labels(group_items(items, "assignee")) == ["amy", "zed", "Unassigned"]

    def test_items_keep_input_order_within_group(self):
        items = [_make_item(t, labels=("bug",)) for t in ("x", "y", "z")]
        (group,) = group_items(items, "labels")
        assert [i.title for i in group.items] == ["x", "y", "z"]


class TestColumnWidths:
    def test_widths_from_all_items_cover_every_group(self):
        items = [
            _make_item("A", number=1, assignees=("a",), field_values={"Priority": "P1"}),
            _make_item("B", number=12345, assignees=("someone-long",)),
            _make_item("C", number=7, labels=("documentation", "good first issue")),
        ]
        columns = ["number", "title", "assignees", "priority", "labels"]
        overall = calculate_column_widths(items, columns, width=120)
        for group in group_items(items, "priority"):
            per_group = calculate_column_widths(group.items, columns, width=120)
            for name in columns:
                if name == "title":
                    continue
                assert overall[name] >= per_group[name]

    def test_title_width_is_clamped(self):
        items = [_make_item("x" * 200)]
        wide = calculate_column_widths(items, ["number", "title"], width=500)
        narrow = calculate_column_widths(items, ["number", "title"], width=10)
        assert wide["title"] == TITLE_MAX_WIDTH
        assert narrow["title"] == TITLE_MIN_WIDTH

    def test_header_sets_minimum(self):
        widths = calculate_column_widths([_make_item("A")], ["priority"], width=120)
        assert widths["priority"] == len("Priority")


def test_parse_columns_drops_unknown():
    assert parse_columns("number, Title,bogus,labels") == ["number", "title", "labels"]


def test_columns_without_group_field():
    assert columns_without(["number", "status", "title"], "status") == ["number", "title"]
    assert columns_without(["number", "title"], "Team") == ["number", "title"]


def test_grouped_rows_align_across_groups():
    items = [
        _make_item("short", number=1, status="Todo", status_index=0, assignees=("a",)),
        _make_item("other", number=2, status="Done", status_index=1,
                   assignees=("a-very-long-login",)),
    ]
    lines = render_grouped(group_items(items, "status"), ["number", "assignees", "title"],
                           "status", width=100)
    headers = [line for line in lines if line.strip().startswith("#  ")]
    assert len(headers) == 2
    assert headers[0] == headers[1]
    assert lines[0] == "■ Todo (1)"


def test_simple_list():
    items = [_make_item("Fix", number=3, status="Todo"), _make_item("Idea", type="draft")]
    assert render_simple_list(items) == ["#3 Fix [Todo]", "Idea"]


def test_board_marks_my_items_and_caps_rows():
    status_field = StatusField(
        field_id="F",
        options=[StatusOption("o1", "Todo"), StatusOption("o2", "Done")],
    )
    items = [
        _make_item(f"t{n}", number=n, status="Todo", assignees=("me",) if n == 0 else ())
        for n in range(20)
    ]
    lines = render_board(items, status_field, width=80, username="me")
    assert lines[0].startswith("Todo (20)")
    assert "*#0 t0" in lines[2]
    assert lines[-1] == "... and 5 more items"
    assert len(lines) == 2 + 15 + 1
