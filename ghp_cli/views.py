"""The ``plan`` and ``work`` views: fetch, filter, sort, group, render."""

from __future__ import annotations

import logging

from .config import ViewOptions, merge_options
from .filters import DEFAULT_DONE_STATUSES, FilterSet, apply_filters, apply_slices
from .grouping import (
    DEFAULT_COLUMNS,
    DEFAULT_FLAT_COLUMNS,
    group_items,
    parse_columns,
)
from .models import Project, ProjectItem, RepoInfo
from .session import CommandError, Session
from .sorting import sort_items
from .table import (
    render_board,
    render_field_list,
    render_flat,
    render_grouped,
    render_simple_list,
    render_status_list,
)

logger = logging.getLogger(__name__)


def _emit(lines: list[str]) -> None:
    for line in lines:
        print(line)


def resolve_plan_options(
    session: Session, shortcut: str | None, cli: ViewOptions
) -> ViewOptions:
    """Merge defaults < shortcut < command-line options."""
    layers = [session.config.plan_defaults]
    if shortcut:
        layer = session.config.shortcut(shortcut)
        if layer is None:
            known = session.config.shortcuts
            if known:
                logger.error("Unknown shortcut: %s. Available shortcuts:", shortcut)
                for name in sorted(known):
                    logger.error("  %s: %s", name, session.config.shortcut(name).describe())
            else:
                logger.error(
                    "Unknown shortcut: %s. No shortcuts configured; add them to %s",
                    shortcut,
                    session.config_store.user_path,
                )
            raise CommandError(f"Unknown shortcut: {shortcut}")
        layers.append(layer)
    layers.append(cli)
    return merge_options(*layers)


def select_projects(projects: list[Project], name: str | None) -> list[Project]:
    if not name:
        return list(projects)
    wanted = name.lower()
    return [p for p in projects if wanted in p.title.lower()]


def resolve_view_filter(
    session: Session, projects: list[Project], view_name: str
) -> tuple[Project, str]:
    """Find a saved view by name. Its filter applies to its own project only."""
    wanted = view_name.lower()
    for project in projects:
        for view in session.client.get_project_views(project.id):
            if view.name.lower() == wanted:
                return project, view.filter
    raise CommandError(f'View "{view_name}" not found')


def filter_set_for(
    options: ViewOptions,
    *,
    mine: bool,
    view_filter: str | None = None,
    done_status: str | None = None,
) -> FilterSet:
    done = DEFAULT_DONE_STATUSES
    if done_status and done_status not in done:
        done = (*done, done_status)
    return FilterSet(
        view_filter=view_filter,
        mine=mine,
        unassigned=bool(options.unassigned),
        hide_done=bool(options.hide_done),
        done_statuses=done,
        status=options.status,
        slices=list(options.slice or []),
    )


def table_columns(session: Session, default: list[str]) -> list[str]:
    if session.config.columns:
        columns = parse_columns(session.config.columns)
        if columns:
            return columns
        logger.warning("No valid columns in config %r; using defaults", session.config.columns)
    return list(default)


def prepare_items(
    items: list[ProjectItem], filters: FilterSet, sort: str | None, username: str | None
) -> list[ProjectItem]:
    """Filter then sort; the pipeline shared by both views."""
    result = apply_filters(items, filters, username)
    if sort:
        result = sort_items(result, sort)
    return result


def plan_command(
    session: Session, repo: RepoInfo, shortcut: str | None, cli: ViewOptions
) -> int:
    options = resolve_plan_options(session, shortcut, cli)

    projects = session.client.get_projects(repo)
    if not projects:
        logger.warning("No GitHub Projects found for %s.", repo.full_name)
        return 0

    targets = select_projects(projects, options.project)
    if not targets:
        logger.warning('No project matching "%s" found.', options.project)
        return 0

    view_filter = None
    if options.view:
        view_project, view_filter = resolve_view_filter(session, targets, options.view)
        targets = [view_project]

    items = session.client.fetch_items_for_projects(targets)
    items = prepare_items(
        items,
        filter_set_for(
            options,
            mine=bool(options.mine),
            view_filter=view_filter,
            done_status=session.config.done_status,
        ),
        options.sort,
        session.username,
    )

    if options.list:
        _emit(render_simple_list(items))
    elif options.group:
        groups = group_items(items, options.group)
        columns = table_columns(session, DEFAULT_COLUMNS)
        _emit(render_grouped(groups, columns, options.group, session.width))
    elif options.all:
        _emit(render_flat(items, table_columns(session, DEFAULT_FLAT_COLUMNS), session.width))
    elif options.status:
        statuses = [options.status] if isinstance(options.status, str) else options.status
        heading = ", ".join(statuses)
        if options.mine:
            heading = f"My {heading}"
        elif options.unassigned:
            heading = f"Unassigned {heading}"
        _emit(render_status_list(items, heading))
    else:
        _print_boards(session, items, targets, options)
    return 0


def _print_boards(
    session: Session, items: list[ProjectItem], projects: list[Project], options: ViewOptions
) -> None:
    for project in projects:
        print(project.title)
        if options.mine:
            print("Filtered to: my items")
        print()
        status_field = session.client.get_status_field(project.id)
        if status_field is None:
            logger.warning("No Status field found in project %s.", project.title)
            continue
        project_items = [i for i in items if i.project_id == project.id]
        _emit(render_board(project_items, status_field, session.width, session.username))
        print()


def work_command(session: Session, repo: RepoInfo, cli: ViewOptions) -> int:
    options = merge_options(session.config.work_defaults, cli)

    print(f"My Work ({repo.full_name})")
    print()

    projects = session.client.get_projects(repo)
    if not projects:
        logger.warning("No GitHub Projects found for %s.", repo.full_name)
        return 0

    items = session.client.fetch_items_for_projects(select_projects(projects, options.project))
    items = prepare_items(
        items,
        filter_set_for(options, mine=not options.all, done_status=session.config.done_status),
        options.sort,
        session.username,
    )

    if not items:
        if options.all:
            logger.info("No items found.")
        else:
            logger.info("No items assigned to you. Use --all to see all items.")
        return 0

    if options.list:
        _emit(render_simple_list(items))
    elif options.flat:
        _emit(render_flat(items, table_columns(session, DEFAULT_FLAT_COLUMNS), session.width))
    else:
        group_field = options.group or "status"
        groups = group_items(items, group_field)
        columns = table_columns(session, DEFAULT_COLUMNS)
        _emit(render_grouped(groups, columns, group_field, session.width))
    return 0


def slice_command(
    session: Session,
    repo: RepoInfo,
    field: str | None,
    value: str | None,
    *,
    list_fields: bool = False,
) -> int:
    """List items matching one ``field=value`` slice, or the fields to slice by."""
    projects = session.client.get_projects(repo)
    if not projects:
        logger.warning("No GitHub Projects found for %s.", repo.full_name)
        return 0

    if list_fields:
        print("Available Fields:")
        print()
        for project in projects:
            print(project.title)
            _emit(render_field_list(session.client.get_fields(project.id)))
            print()
        return 0

    if not field or not value:
        raise CommandError("Usage: ghp slice -f FIELD -v VALUE (see --list-fields)")

    print(f"Filtered Items ({field} = {value})")
    print()
    items = apply_slices(session.client.fetch_items_for_projects(projects), [f"{field}={value}"])
    if not items:
        logger.info("No items match the filter.")
        return 0
    _emit([f"  {line}" for line in render_simple_list(items)])
    print()
    print(f"{len(items)} item(s) found")
    return 0
