"""Filter engine: slices, view-filter expressions and built-in predicates.

Every function here is pure and order-preserving: it returns a new list
holding a subsequence of the input.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable

from .fields import resolve_filter_values
from .models import ProjectItem

logger = logging.getLogger(__name__)

DEFAULT_DONE_STATUSES = ("Done", "Closed", "Completed")

# Fields compared by equality in slices; everything else is substring.
ENUM_FIELDS = frozenset({"status", "state", "number", "type", "issuetype", "issue-type"})

ME = "@me"

# [-][field:]value where value may mix quoted runs and bare characters,
# e.g.  -label:"in review",bug   status:Todo   login
RE_VIEW_TOKEN = re.compile(
    r'(?P<neg>-)?(?:(?P<field>[A-Za-z][\w.-]*):)?(?P<value>(?:"[^"]*"|[^\s"])+)'
)
RE_VIEW_VALUE = re.compile(r'"([^"]*)"|([^,"]+)')


@dataclass(frozen=True)
class Slice:
    """A parsed ``field=value`` filter term."""

    field: str
    value: str


@dataclass(frozen=True)
class ViewFilterToken:
    """One token of a view filter expression.

    ``field`` is None for a bare word, which searches titles.
    """

    field: str | None
    values: tuple[str, ...]
    negated: bool = False


@dataclass
class FilterSet:
    """All predicates a view command may combine (logical AND)."""

    view_filter: str | None = None
    mine: bool = False
    unassigned: bool = False
    hide_done: bool = False
    done_statuses: tuple[str, ...] = DEFAULT_DONE_STATUSES
    status: str | list[str] | None = None
    slices: list[str] = field(default_factory=list)


# ----------------------------------------------------------------------
# Slices
# ----------------------------------------------------------------------


def parse_slice(raw: str) -> Slice | None:
    """Parse ``field=value``. Returns None when either side is missing."""
    name, sep, value = raw.partition("=")
    name = name.strip()
    value = value.strip()
    if not sep or not name or not value:
        return None
    return Slice(field=name, value=value)


def slice_matches(item: ProjectItem, sl: Slice) -> bool:
    candidates = resolve_filter_values(item, sl.field)
    wanted = sl.value.lower()
    if sl.field.lower() in ENUM_FIELDS:
        return any(c.lower() == wanted for c in candidates)
    return any(wanted in c.lower() for c in candidates)


def apply_slices(items: list[ProjectItem], slices: Iterable[str]) -> list[ProjectItem]:
    """Filter by each ``field=value`` slice in turn.

    Malformed slices are logged and skipped rather than failing the view.
    """
    result = list(items)
    for raw in slices:
        sl = parse_slice(raw)
        if sl is None:
            logger.warning("Invalid slice format: %r (use field=value)", raw)
            continue
        result = [item for item in result if slice_matches(item, sl)]
    return result


# ----------------------------------------------------------------------
# View filter expressions
# ----------------------------------------------------------------------


def parse_view_filter(expression: str) -> list[ViewFilterToken]:
    """Tokenize a project view filter such as ``label:bug -status:Done``."""
    tokens: list[ViewFilterToken] = []
    for m in RE_VIEW_TOKEN.finditer(expression or ""):
        raw_value = m.group("value")
        name = m.group("field")
        if name is None:
            values = (raw_value.strip('"'),)
        else:
            values = tuple(
                quoted or bare.strip()
                for quoted, bare in RE_VIEW_VALUE.findall(raw_value)
                if quoted or bare.strip()
            )
        if not values:
            continue
        tokens.append(
            ViewFilterToken(field=name, values=values, negated=m.group("neg") is not None)
        )
    return tokens


def _expand_me(value: str, username: str | None) -> str:
    if value.lower() == ME and username:
        return username
    return value


def _is_qualifier_matches(item: ProjectItem, value: str) -> bool:
    v = value.lower()
    if v in ("open", "closed", "merged"):
        return (item.state or "").lower() == v
    if v == "issue":
        return item.type == "issue"
    if v in ("pr", "pull_request", "pullrequest"):
        return item.type == "pull_request"
    if v == "draft":
        return item.type == "draft"
    return False


def token_matches(
    item: ProjectItem, token: ViewFilterToken, username: str | None = None
) -> bool:
    """Evaluate one token, applying its negation.

    Values within a token are OR'd. An item without the field never
    satisfies a positive token and always satisfies a negated one.
    """
    values = [_expand_me(v, username) for v in token.values]
    name = token.field.lower() if token.field else None

    if name is None:
        title = item.title.lower()
        matched = any(v.lower() in title for v in values)
    elif name == "is":
        matched = any(_is_qualifier_matches(item, v) for v in values)
    elif name == "no":
        matched = any(not resolve_filter_values(item, v) for v in values)
    else:
        candidates = {c.lower() for c in resolve_filter_values(item, token.field)}
        matched = any(v.lower() in candidates for v in values)

    return not matched if token.negated else matched


def apply_view_filter(
    items: list[ProjectItem], expression: str, username: str | None = None
) -> list[ProjectItem]:
    """Keep items matching every token of the expression."""
    tokens = parse_view_filter(expression)
    if not tokens:
        return list(items)
    return [
        item for item in items if all(token_matches(item, t, username) for t in tokens)
    ]


# ----------------------------------------------------------------------
# Built-in predicates
# ----------------------------------------------------------------------


def filter_mine(items: list[ProjectItem], username: str | None) -> list[ProjectItem]:
    return [item for item in items if username and username in item.assignees]


def filter_unassigned(items: list[ProjectItem]) -> list[ProjectItem]:
    return [item for item in items if not item.assignees]


def filter_hide_done(
    items: list[ProjectItem], done_statuses: Iterable[str] = DEFAULT_DONE_STATUSES
) -> list[ProjectItem]:
    done = set(done_statuses)
    return [item for item in items if (item.status or "") not in done]


def filter_status(
    items: list[ProjectItem], status: str | list[str]
) -> list[ProjectItem]:
    """Keep items whose status equals any given name, case-insensitively."""
    names = [status] if isinstance(status, str) else list(status)
    wanted = {n.lower() for n in names}
    return [item for item in items if item.status and item.status.lower() in wanted]


def apply_filters(
    items: list[ProjectItem], filters: FilterSet, username: str | None = None
) -> list[ProjectItem]:
    """Apply every active predicate of ``filters``.

    The view filter runs first since it may also be scoped to one project.
    """
    result = list(items)
    if filters.view_filter:
        result = apply_view_filter(result, filters.view_filter, username)
    if filters.mine:
        result = filter_mine(result, username)
    if filters.unassigned:
        result = filter_unassigned(result)
    if filters.status:
        result = filter_status(result, filters.status)
    if filters.hide_done:
        result = filter_hide_done(result, filters.done_statuses)
    if filters.slices:
        result = apply_slices(result, filters.slices)
    return result
