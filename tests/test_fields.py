"""Tests for field resolution (sort, filter and display variants)."""

from datetime import date

from ghp_cli.fields import (
    custom_field,
    is_placeholder,
    resolve_display_value,
    resolve_filter_values,
    resolve_sort_value,
)
from ghp_cli.models import FieldValue, Label, ProjectItem


def _make_item(item_id="PVTI_1", **kwargs):
    kwargs.setdefault("title", "Fix login bug")
    return ProjectItem(id=item_id, **kwargs)


def test_custom_field_exact_then_case_insensitive():
    item = _make_item(field_values={"Priority": "High", "estimate": "3"})
    assert custom_field(item, "Priority") == "High"
    assert custom_field(item, "priority") == "High"
    assert custom_field(item, "ESTIMATE") == "3"
    assert custom_field(item, "Size") is None


def test_number_field_values_render_without_trailing_zero():
    item = _make_item(field_values={"Points": FieldValue("number", 5.0)})
    assert item.fields["Points"] == "5"
    half = _make_item(field_values={"Points": FieldValue("number", 0.5)})
    assert half.fields["Points"] == "0.5"


def test_date_field_values_render_iso():
    item = _make_item(field_values={"Due": FieldValue("date", date(2024, 3, 1))})
    assert resolve_display_value(item, "Due") == "2024-03-01"


class TestSortValue:
    def test_builtin_fields(self):
        item = _make_item(
            number=7, status="Todo", status_index=2, state="OPEN",
            type="pull_request", issue_type="Bug",
        )
        assert resolve_sort_value(item, "number") == 7
        assert resolve_sort_value(item, "Status") == 2
        assert resolve_sort_value(item, "state") == "OPEN"
        assert resolve_sort_value(item, "type") == "pull_request"
        assert resolve_sort_value(item, "issueType") == "Bug"

    def test_multi_valued_fields_use_first_value(self):
        item = _make_item(assignees=("bob", "alice"), labels=(Label("ux"), Label("bug")))
        assert resolve_sort_value(item, "assignee") == "bob"
        assert resolve_sort_value(item, "labels") == "ux"

    def test_unknown_field_is_none(self):
        assert resolve_sort_value(_make_item(), "Priority") is None

    def test_custom_field(self):
        item = _make_item(field_values={"Priority": "P1"})
        assert resolve_sort_value(item, "priority") == "P1"


class TestFilterValues:
    def test_absent_field_is_empty(self):
        assert resolve_filter_values(_make_item(), "Priority") == []
        assert resolve_filter_values(_make_item(), "status") == []

    def test_labels_and_assignees_expand(self):
        item = _make_item(assignees=("a", "b"), labels=("bug", "feature"))
        assert resolve_filter_values(item, "assignee") == ["a", "b"]
        assert resolve_filter_values(item, "label") == ["bug", "feature"]

    def test_type_means_issue_type(self):
        item = _make_item(type="issue", issue_type="Feature")
        assert resolve_filter_values(item, "type") == ["Feature"]


class TestDisplayValue:
    def test_placeholders(self):
        item = _make_item()
        assert resolve_display_value(item, "status") == "No Status"
        assert resolve_display_value(item, "assignees") == "Unassigned"
        assert resolve_display_value(item, "priority") == "No Priority"
        assert resolve_display_value(item, "size") == "No Size"
        assert resolve_display_value(item, "labels") == "No Labels"
        assert resolve_display_value(item, "Team") == "No Team"

    def test_size_falls_back_to_estimate(self):
        item = _make_item(field_values={"Estimate": "M"})
        assert resolve_display_value(item, "size") == "M"

    def test_number_display(self):
        assert resolve_display_value(_make_item(number=12), "number") == "#12"
        assert resolve_display_value(_make_item(type="draft"), "number") == "draft"

    def test_is_placeholder(self):
        assert is_placeholder("No Priority")
        assert is_placeholder("Unassigned")
        assert not is_placeholder("High")
        assert not is_placeholder("Notes")
