"""Multi-key sorting of project items.

Sort specs are comma-separated field names. A key WITHOUT a prefix sorts
descending; a ``-`` prefix sorts ascending. Note this is the reverse of
the usual convention.

Missing values always sort last, whichever direction a key uses.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cmp_to_key

from .fields import resolve_sort_value
from .models import ProjectItem


@dataclass(frozen=True)
class SortKey:
    field: str
    ascending: bool = False


def parse_sort_spec(spec: str) -> list[SortKey]:
    """Parse ``"status,-title"`` into sort keys; blank entries are ignored."""
    keys: list[SortKey] = []
    for raw in (spec or "").split(","):
        name = raw.strip()
        if not name:
            continue
        if name.startswith("-"):
            name = name[1:].strip()
            if name:
                keys.append(SortKey(name, ascending=True))
        else:
            keys.append(SortKey(name, ascending=False))
    return keys


def compare_values(a: str | int | float, b: str | int | float) -> int:
    """Compare two non-null values, strings case-folded first."""
    if isinstance(a, str) and isinstance(b, str):
        ka, kb = (a.casefold(), a), (b.casefold(), b)
    elif isinstance(a, str) or isinstance(b, str):
        ka, kb = str(a), str(b)
    else:
        ka, kb = a, b
    if ka < kb:
        return -1
    if ka > kb:
        return 1
    return 0


def compare_items(a: ProjectItem, b: ProjectItem, keys: list[SortKey]) -> int:
    for key in keys:
        av = resolve_sort_value(a, key.field)
        bv = resolve_sort_value(b, key.field)
        if av is None and bv is None:
            continue
        if av is None:
            return 1
        if bv is None:
            return -1
        cmp = compare_values(av, bv)
        if cmp == 0:
            continue
        return cmp if key.ascending else -cmp
    return 0


def sort_items(items: list[ProjectItem], spec: str | list[SortKey]) -> list[ProjectItem]:
    """Return a new list ordered by ``spec``; ties keep their input order."""
    keys = parse_sort_spec(spec) if isinstance(spec, str) else list(spec)
    if not keys:
        return list(items)
    return sorted(items, key=cmp_to_key(lambda a, b: compare_items(a, b, keys)))
