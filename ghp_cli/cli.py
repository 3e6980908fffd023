"""CLI entry point for ghp."""

from __future__ import annotations

import argparse
import logging
import sys
from importlib.metadata import PackageNotFoundError, version

import httpx

from .config import CONFIG_KEYS, SCOPE_USER, SCOPE_WORKSPACE, ConfigStore, ViewOptions
from .git import Git, GitError
from .github_projects import GitHubAPIError, GitHubProjectClient
from .models import RepoInfo
from .session import CommandError, Session, resolve_token
from .views import plan_command, slice_command, work_command
from .workflow import (
    add_issue,
    assign,
    link_branch,
    mark_done,
    move_item,
    set_field,
    start_work,
    switch_issue,
    sync_active_label,
    unlink_branch,
)

logger = logging.getLogger(__name__)

try:
    __version__ = version("ghp-cli")
except PackageNotFoundError:
    __version__ = "0.0.0"


def _add_repo_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--repo", "-r",
        default=None,
        help="Target repository as owner/name (default: detected from origin)",
    )


def _add_view_options(parser: argparse.ArgumentParser) -> None:
    """Options shared by ``plan`` and ``work``. Unset flags stay None."""
    parser.add_argument("--status", "-s", action="append", default=None,
                        help="Only show items in this status (repeatable)")
    parser.add_argument("--slice", action="append", default=None, metavar="FIELD=VALUE",
                        help="Only show items whose FIELD equals VALUE (repeatable)")
    parser.add_argument("--sort", default=None,
                        help="Comma-separated sort fields; prefix a field with - "
                        "for ascending order (default is descending)")
    parser.add_argument("--group", "-g", default=None, metavar="FIELD",
                        help="Group rows by FIELD")
    parser.add_argument("--list", "-l", action="store_true", default=None,
                        help="Simple list output")
    parser.add_argument("--project", "-p", default=None,
                        help="Only projects whose title contains PROJECT")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ghp",
        description="Work with GitHub Projects v2 boards from the terminal.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--token",
        type=str,
        default=None,
        help="GitHub token (or set GITHUB_TOKEN / GH_TOKEN, or log in with gh)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    p = sub.add_parser("auth", help="Check authentication")
    p.add_argument("--status", action="store_true", help="Only report the current login")

    p = sub.add_parser("config", help="Show or change configuration")
    p.add_argument("key", nargs="?", help=f"One of: {', '.join(CONFIG_KEYS)}")
    p.add_argument("value", nargs="?", help="New value")
    p.add_argument("--workspace", "-w", action="store_true",
                   help="Write to the repository's .ghp/config.json")

    p = sub.add_parser("work", help="Items assigned to you")
    _add_view_options(p)
    p.add_argument("--all", "-a", action="store_true", default=None,
                   help="Include items assigned to anyone")
    p.add_argument("--hide-done", action="store_true", default=None,
                   help="Hide items in a done status")
    p.add_argument("--flat", "-f", action="store_true", default=None,
                   help="One table instead of status groups")
    p.add_argument("--filter", "-F", dest="slice", action="append",
                   metavar="FIELD=VALUE", help="Alias for --slice")

    p = sub.add_parser("plan", help="Project board overview")
    p.add_argument("shortcut", nargs="?", help="Named option set from config")
    _add_view_options(p)
    p.add_argument("--mine", "-m", action="store_true", default=None,
                   help="Only items assigned to you")
    p.add_argument("--unassigned", "-u", action="store_true", default=None,
                   help="Only unassigned items")
    p.add_argument("--all", "-a", action="store_true", default=None,
                   help="One table of every item")
    p.add_argument("--view", default=None, help="Apply the filter of a saved project view")

    p = sub.add_parser("slice", help="Items matching one field value")
    p.add_argument("--field", "-f", help="Field name, e.g. status or Priority")
    p.add_argument("--value", "-v", help="Value to match")
    p.add_argument("--list-fields", action="store_true",
                   help="List each project's fields and their options")

    p = sub.add_parser("start", help="Start working on an issue")
    p.add_argument("issue", type=int)
    p.add_argument("--no-branch", dest="branch", action="store_false",
                   help="Do not create or link a branch")
    p.add_argument("--no-status", dest="status", action="store_false",
                   help="Do not change the issue status")
    _add_repo_option(p)

    p = sub.add_parser("switch", help="Check out the branch linked to an issue")
    p.add_argument("issue", type=int)

    p = sub.add_parser("link-branch", help="Link a branch to an issue")
    p.add_argument("issue", type=int)
    p.add_argument("branch", nargs="?", help="Branch name (default: current branch)")

    p = sub.add_parser("unlink-branch", help="Remove an issue's branch link")
    p.add_argument("issue", type=int)

    sub.add_parser("sync", help="Reconcile the active label with the current branch")

    p = sub.add_parser("move", help="Change an issue's status")
    p.add_argument("issue", type=int)
    p.add_argument("status")
    _add_repo_option(p)

    p = sub.add_parser("done", help="Move an issue to the done status")
    p.add_argument("issue", type=int)
    _add_repo_option(p)

    p = sub.add_parser("set-field", help="Set a project field on an issue")
    p.add_argument("issue", type=int)
    p.add_argument("field")
    p.add_argument("value")
    _add_repo_option(p)

    p = sub.add_parser("assign", help="Assign users (default: you) to an issue")
    p.add_argument("issue", type=int)
    p.add_argument("users", nargs="*")
    p.add_argument("--remove", action="store_true", help="Unassign instead")
    _add_repo_option(p)

    p = sub.add_parser("add-issue", help="Create an issue and add it to a project")
    p.add_argument("title")
    p.add_argument("--body", "-b", default="")
    p.add_argument("--project", "-p", default=None)
    p.add_argument("--status", "-s", default=None)
    p.add_argument("--labels", "-l", default=None, help="Comma-separated labels")
    _add_repo_option(p)

    return parser


def view_options_from_args(args: argparse.Namespace) -> ViewOptions:
    return ViewOptions(
        project=args.project,
        status=args.status,
        mine=getattr(args, "mine", None),
        unassigned=getattr(args, "unassigned", None),
        hide_done=getattr(args, "hide_done", None),
        slice=args.slice,
        sort=args.sort,
        group=args.group,
        list=args.list,
        all=args.all,
        flat=getattr(args, "flat", None),
        view=getattr(args, "view", None),
    )


def resolve_repo(git: Git, explicit: str | None) -> RepoInfo:
    if explicit:
        repo = RepoInfo.parse(explicit)
        if repo is None:
            raise CommandError(f"Invalid repo format: {explicit} (expected owner/name)")
        return repo
    repo = git.detect_repository()
    if repo is None:
        raise CommandError("Not in a git repository with a GitHub remote; use --repo owner/name")
    return repo


def run_config(args: argparse.Namespace, store: ConfigStore) -> int:
    if args.key is None:
        for key, (value, source) in store.sources().items():
            print(f"{key} = {value if value is not None else ''}  ({source})")
        return 0
    if args.key not in CONFIG_KEYS:
        raise CommandError(f"Unknown config key: {args.key} (known: {', '.join(CONFIG_KEYS)})")
    if args.value is None:
        value = store.get(args.key)
        print(value if value is not None else "")
        return 0
    scope = SCOPE_WORKSPACE if args.workspace else SCOPE_USER
    try:
        path = store.set(args.key, args.value, scope)
    except ValueError as e:
        raise CommandError(str(e)) from e
    logger.info("Set %s = %s in %s", args.key, args.value, path)
    return 0


def run_auth(token: str | None) -> int:
    if not token:
        logger.error(
            "No GitHub token found. Use --token, set GITHUB_TOKEN / GH_TOKEN, "
            "or run `gh auth login`"
        )
        return 1
    with GitHubProjectClient(token=token) as client:
        login = client.get_viewer_login()
    logger.info("Authenticated as %s", login)
    return 0


def dispatch(args: argparse.Namespace, session: Session) -> int:
    command = args.command
    git = session.git

    if command == "work":
        return work_command(session, resolve_repo(git, None), view_options_from_args(args))
    if command == "plan":
        return plan_command(
            session, resolve_repo(git, None), args.shortcut, view_options_from_args(args)
        )
    if command == "slice":
        return slice_command(
            session, resolve_repo(git, None), args.field, args.value,
            list_fields=args.list_fields,
        )
    if command == "start":
        return start_work(
            session,
            resolve_repo(git, args.repo),
            args.issue,
            create_branch=args.branch,
            update_status=args.status,
        )
    if command == "switch":
        return switch_issue(session, resolve_repo(git, None), args.issue)
    if command == "link-branch":
        return link_branch(session, resolve_repo(git, None), args.issue, args.branch)
    if command == "unlink-branch":
        return unlink_branch(session, resolve_repo(git, None), args.issue)
    if command == "sync":
        return sync_active_label(session, resolve_repo(git, None))
    if command == "move":
        return move_item(session, resolve_repo(git, args.repo), args.issue, args.status)
    if command == "done":
        return mark_done(session, resolve_repo(git, args.repo), args.issue)
    if command == "set-field":
        return set_field(
            session, resolve_repo(git, args.repo), args.issue, args.field, args.value
        )
    if command == "assign":
        return assign(
            session, resolve_repo(git, args.repo), args.issue, args.users, remove=args.remove
        )
    if command == "add-issue":
        labels = [s.strip() for s in args.labels.split(",") if s.strip()] if args.labels else None
        return add_issue(
            session,
            resolve_repo(git, args.repo),
            args.title,
            body=args.body,
            project=args.project,
            status=args.status,
            labels=labels,
        )
    raise CommandError(f"Unknown command: {command}")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(message)s",
    )

    try:
        if args.command == "config":
            return run_config(args, ConfigStore(repo_root=Git().repo_root()))

        token = resolve_token(args.token)
        if args.command == "auth":
            return run_auth(token)
        if not token:
            logger.error("Not authenticated. Run `ghp auth` for details.")
            return 1

        session = Session.create(token)
        try:
            return dispatch(args, session)
        finally:
            session.close()
    except (CommandError, GitError, GitHubAPIError) as e:
        logger.error("%s", e)
        return 1
    except httpx.HTTPError as e:
        logger.error("GitHub request failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
