"""Plain-text rendering of item tables, grouped views and the board."""

from __future__ import annotations

from .grouping import (
    COLUMN_GAP,
    COLUMNS,
    TABLE_MARGIN,
    ItemGroup,
    calculate_column_widths,
    columns_without,
)
from .models import ProjectField, ProjectItem, StatusField

BOARD_MAX_ROWS = 15
BOARD_MAX_COLUMNS = 4


def _fit(value: str, width: int) -> str:
    if len(value) > width:
        value = value[: max(width - 1, 0)] + "…"
    return value.ljust(width)


def render_table(
    items: list[ProjectItem],
    columns: list[str],
    widths: dict[str, int],
    width: int,
) -> list[str]:
    """Render rows with the given widths (shared across groups)."""
    if not items:
        return ["  No items found."]
    gap = " " * COLUMN_GAP
    lines = ["  " + gap.join(COLUMNS[c].header.ljust(widths[c]) for c in columns)]
    rule = sum(widths[c] for c in columns) + (len(columns) - 1) * COLUMN_GAP
    lines.append("  " + "─" * min(width - TABLE_MARGIN, rule))
    for item in items:
        cells = []
        for c in columns:
            value = COLUMNS[c].value(item)
            if c == "title":
                cells.append(_fit(value, widths[c]))
            else:
                cells.append(value.ljust(widths[c]))
        lines.append(("  " + gap.join(cells)).rstrip())
    return lines


def render_flat(items: list[ProjectItem], columns: list[str], width: int) -> list[str]:
    widths = calculate_column_widths(items, columns, width)
    return render_table(items, columns, widths, width)


def render_grouped(
    groups: list[ItemGroup],
    columns: list[str],
    group_field: str,
    width: int,
) -> list[str]:
    """Render each group under a header, aligned to one set of widths."""
    if not groups:
        return ["No items found."]
    columns = columns_without(columns, group_field)
    all_items = [item for group in groups for item in group.items]
    widths = calculate_column_widths(all_items, columns, width)
    lines: list[str] = []
    for group in groups:
        lines.append(f"■ {group.label} ({len(group.items)})")
        lines.append("")
        lines.extend(render_table(group.items, columns, widths, width))
        lines.append("")
    return lines


def render_simple_list(items: list[ProjectItem]) -> list[str]:
    """One item per line, for pickers and scripts."""
    lines = []
    for item in items:
        num = f"#{item.number}" if item.number is not None else ""
        status = f"[{item.status}]" if item.status else ""
        lines.append(f"{num} {item.title} {status}".strip())
    return lines


def render_status_list(items: list[ProjectItem], heading: str) -> list[str]:
    lines = [f"{heading} ({len(items)} items)", ""]
    if not items:
        lines.append("No items found.")
        return lines
    for item in items:
        parts = [f"#{item.number}" if item.number is not None else "draft"]
        if item.issue_type:
            parts.append(item.issue_type)
        parts.append(item.title)
        if item.assignees:
            parts.append(" ".join("@" + a for a in item.assignees))
        for value in (COLUMNS["priority"].value(item), COLUMNS["size"].value(item)):
            if value:
                parts.append(value)
        if item.labels:
            parts.append(" ".join(f"[{name}]" for name in item.label_names))
        lines.append("  " + " ".join(parts))
    lines.append("")
    return lines


def render_board(
    items: list[ProjectItem],
    status_field: StatusField,
    width: int,
    username: str | None = None,
) -> list[str]:
    """Render status columns side by side, in board order.

    Items assigned to ``username`` are marked with ``*``.
    """
    statuses = [option.name for option in status_field.options]
    by_status: dict[str, list[ProjectItem]] = {name: [] for name in statuses}
    for item in items:
        by_status.setdefault(item.status or "No Status", []).append(item)

    col_width = (width - TABLE_MARGIN) // max(min(len(statuses), BOARD_MAX_COLUMNS), 1)
    col_width = max(col_width - COLUMN_GAP, 10)
    gap = " " * COLUMN_GAP

    lines = [
        gap.join(_fit(f"{name} ({len(by_status[name])})", col_width) for name in statuses),
        "─" * (width - TABLE_MARGIN),
    ]
    deepest = max([len(by_status[name]) for name in statuses] + [1])
    for row in range(min(deepest, BOARD_MAX_ROWS)):
        cells = []
        for name in statuses:
            column = by_status[name]
            if row < len(column):
                item = column[row]
                mark = "*" if username and username in item.assignees else ""
                num = f"#{item.number}" if item.number is not None else ""
                cells.append(_fit(f"{mark}{num} {item.title}".strip(), col_width))
            else:
                cells.append(" " * col_width)
        lines.append(gap.join(cells).rstrip())
    if deepest > BOARD_MAX_ROWS:
        lines.append(f"... and {deepest - BOARD_MAX_ROWS} more items")
    return lines


def render_field_list(fields: dict[str, ProjectField]) -> list[str]:
    """One line per field: its options when it has them, else its type."""
    lines = []
    for f in fields.values():
        if f.options:
            lines.append(f"  {f.name}: {', '.join(f.options)}")
        else:
            lines.append(f"  {f.name} ({(f.data_type or 'text').lower()})")
    return lines
