"""Resolve logical field names to values on a project item.

Three variants exist because the consumers disagree about absence:

* sort values are scalars and absence is ``None``;
* filter values are a list of candidate strings and absence is ``[]``;
* display values are always strings and absence becomes a placeholder
  such as ``"No Priority"`` or ``"Unassigned"``.

Field names are matched case-insensitively. Built-in aliases are checked
before custom project fields.
"""

from __future__ import annotations

from .models import ProjectItem

NUMBER = "number"
TITLE = "title"
STATUS = "status"
STATE = "state"
ITEM_TYPE_ALIASES = frozenset({"type"})
ISSUE_TYPE_ALIASES = frozenset({"issuetype", "issue-type"})
ASSIGNEE_ALIASES = frozenset({"assignee", "assignees", "user"})
LABEL_ALIASES = frozenset({"label", "labels"})
REPO_ALIASES = frozenset({"repo", "repository"})
PROJECT = "project"

UNASSIGNED = "Unassigned"

# Custom fields tried in order for the priority/size display columns
PRIORITY_FIELDS = ("Priority",)
SIZE_FIELDS = ("Size", "Estimate")


def custom_field(item: ProjectItem, name: str) -> str | None:
    """Look up a custom field by exact name, then case-insensitively."""
    values = item.field_values
    if name in values:
        return values[name].as_text()
    lowered = name.lower()
    for key, value in values.items():
        if key.lower() == lowered:
            return value.as_text()
    return None


def _first_custom(item: ProjectItem, names: tuple[str, ...]) -> str | None:
    for name in names:
        value = custom_field(item, name)
        if value:
            return value
    return None


def resolve_sort_value(item: ProjectItem, name: str) -> str | int | None:
    """Return the scalar used to order items by ``name``."""
    lower = name.lower()
    if lower == NUMBER:
        return item.number
    if lower == TITLE:
        return item.title
    if lower == STATUS:
        return item.status_index
    if lower == STATE:
        return item.state
    if lower in ITEM_TYPE_ALIASES:
        return item.type
    if lower in ISSUE_TYPE_ALIASES:
        return item.issue_type
    if lower in ASSIGNEE_ALIASES:
        return item.assignees[0] if item.assignees else ""
    if lower in LABEL_ALIASES:
        return item.labels[0].name if item.labels else ""
    if lower in REPO_ALIASES:
        return item.repository
    if lower == PROJECT:
        return item.project_title
    return custom_field(item, name)


def resolve_filter_values(item: ProjectItem, name: str) -> list[str]:
    """Return every string a filter on ``name`` may match against.

    Multi-valued fields (assignees, labels) yield one entry per value.
    An absent field yields an empty list.
    """
    lower = name.lower()
    if lower == NUMBER:
        return [str(item.number)] if item.number is not None else []
    if lower == TITLE:
        return [item.title] if item.title else []
    if lower == STATUS:
        return [item.status] if item.status else []
    if lower == STATE:
        return [item.state] if item.state else []
    if lower in ITEM_TYPE_ALIASES or lower in ISSUE_TYPE_ALIASES:
        # "type" means the organization issue type in filters; the item
        # variant is reachable through "is:issue" / "is:pr" / "is:draft".
        return [item.issue_type] if item.issue_type else []
    if lower in ASSIGNEE_ALIASES:
        return list(item.assignees)
    if lower in LABEL_ALIASES:
        return item.label_names
    if lower in REPO_ALIASES:
        return [item.repository] if item.repository else []
    if lower == PROJECT:
        return [item.project_title] if item.project_title else []
    value = custom_field(item, name)
    return [value] if value else []


def resolve_display_value(item: ProjectItem, name: str) -> str:
    """Return a human-readable value, substituting a placeholder when absent."""
    lower = name.lower()
    if lower == NUMBER:
        return f"#{item.number}" if item.number is not None else "draft"
    if lower == TITLE:
        return item.title
    if lower == STATUS:
        return item.status or "No Status"
    if lower == STATE:
        return item.state or "No State"
    if lower in ITEM_TYPE_ALIASES or lower in ISSUE_TYPE_ALIASES:
        return item.issue_type or "No Type"
    if lower in ASSIGNEE_ALIASES:
        return ", ".join(item.assignees) if item.assignees else UNASSIGNED
    if lower == "priority":
        return _first_custom(item, PRIORITY_FIELDS) or "No Priority"
    if lower == "size":
        return _first_custom(item, SIZE_FIELDS) or "No Size"
    if lower in LABEL_ALIASES:
        return ", ".join(item.label_names) if item.labels else "No Labels"
    if lower in REPO_ALIASES:
        return item.repository or "Unknown"
    if lower == PROJECT:
        return item.project_title
    return custom_field(item, name) or f"No {name}"


def is_placeholder(display_value: str) -> bool:
    """True for display values that stand in for a missing field."""
    return display_value.startswith("No ") or display_value == UNASSIGNED
