"""Grouping of items by field and shared column-width computation."""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from functools import cmp_to_key
from typing import Callable

from .fields import custom_field, is_placeholder, resolve_display_value
from .models import ProjectItem
from .sorting import compare_values

DEFAULT_TERMINAL_WIDTH = 120
TITLE_MIN_WIDTH = 20
TITLE_MAX_WIDTH = 60
COLUMN_GAP = 2
TABLE_MARGIN = 4


@dataclass
class ItemGroup:
    label: str
    items: list[ProjectItem] = field(default_factory=list)


@dataclass(frozen=True)
class Column:
    name: str
    header: str
    value: Callable[[ProjectItem], str]
    min_width: int = 0
    max_width: int = 999


def _size(item: ProjectItem) -> str:
    for name in ("Size", "Estimate"):
        value = custom_field(item, name)
        if value:
            return value
    return ""


COLUMNS: dict[str, Column] = {
    c.name: c
    for c in (
        Column(
            "number",
            "#",
            lambda i: f"#{i.number}" if i.number is not None else "draft",
            min_width=5,
        ),
        Column("type", "Type", lambda i: i.issue_type or ""),
        Column(
            "title",
            "Title",
            lambda i: i.title,
            min_width=TITLE_MIN_WIDTH,
            max_width=TITLE_MAX_WIDTH,
        ),
        Column("assignees", "Assignee", lambda i: " ".join("@" + a for a in i.assignees)),
        Column("status", "Status", lambda i: i.status or ""),
        Column("priority", "Priority", lambda i: custom_field(i, "Priority") or ""),
        Column("size", "Size", _size),
        Column("labels", "Labels", lambda i: ", ".join(i.label_names)),
        Column("project", "Project", lambda i: i.project_title),
        Column("repository", "Repo", lambda i: i.repository or ""),
    )
}

DEFAULT_COLUMNS = ["number", "type", "title", "assignees", "priority", "size", "labels"]
DEFAULT_FLAT_COLUMNS = [
    "number", "type", "title", "status", "assignees", "priority", "size", "labels",
]

# Group field name -> the column that would repeat the group label
GROUP_FIELD_COLUMNS = {
    "status": "status",
    "type": "type",
    "issuetype": "type",
    "issue-type": "type",
    "assignee": "assignees",
    "assignees": "assignees",
    "user": "assignees",
    "priority": "priority",
    "size": "size",
    "label": "labels",
    "labels": "labels",
    "project": "project",
    "repo": "repository",
    "repository": "repository",
}


def terminal_width(default: int = DEFAULT_TERMINAL_WIDTH) -> int:
    """Current terminal width, or ``default`` when not attached to one."""
    return shutil.get_terminal_size(fallback=(default, 24)).columns or default


def parse_columns(spec: str) -> list[str]:
    """Parse a comma-separated column list, dropping unknown names."""
    names = [c.strip().lower() for c in (spec or "").split(",")]
    return [n for n in names if n in COLUMNS]


def columns_without(columns: list[str], group_field: str) -> list[str]:
    """Drop the column that would just repeat the group label."""
    dropped = GROUP_FIELD_COLUMNS.get(group_field.lower())
    return [c for c in columns if c != dropped]


def group_items(items: list[ProjectItem], group_field: str) -> list[ItemGroup]:
    """Partition items by the display value of ``group_field``.

    Status groups follow the project's status option order. Other groups
    are alphabetical, with placeholder groups ("No Priority", "Unassigned")
    last. Items keep their input order within a group.
    """
    groups: dict[str, ItemGroup] = {}
    for item in items:
        label = resolve_display_value(item, group_field)
        groups.setdefault(label, ItemGroup(label)).items.append(item)

    ordered = list(groups.values())
    if group_field.lower() == "status":
        def status_key(group: ItemGroup) -> tuple[int, int]:
            index = group.items[0].status_index
            return (1, 0) if index is None else (0, index)

        ordered.sort(key=status_key)
    else:
        def compare_groups(a: ItemGroup, b: ItemGroup) -> int:
            a_empty, b_empty = is_placeholder(a.label), is_placeholder(b.label)
            if a_empty != b_empty:
                return 1 if a_empty else -1
            return compare_values(a.label, b.label)

        ordered.sort(key=cmp_to_key(compare_groups))
    return ordered


def calculate_column_widths(
    items: list[ProjectItem],
    columns: list[str],
    width: int | None = None,
) -> dict[str, int]:
    """Compute widths from every item so grouped tables line up.

    Call this once with the full item set, never per group. The title
    column takes whatever space the other columns leave.
    """
    available = width if width is not None else terminal_width()
    widths: dict[str, int] = {}
    fixed = 0
    for name in columns:
        if name == "title":
            continue
        col = COLUMNS[name]
        longest = max([len(col.header)] + [len(col.value(item)) for item in items])
        widths[name] = max(col.min_width, min(col.max_width, longest))
        fixed += widths[name] + COLUMN_GAP

    title = COLUMNS["title"]
    widths["title"] = max(
        title.min_width, min(title.max_width, available - fixed - TABLE_MARGIN)
    )
    return widths
