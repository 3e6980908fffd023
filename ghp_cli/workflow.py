"""Commands that act on a single issue: start, switch, link, sync, move, edit."""

from __future__ import annotations

import logging
from datetime import date

from .active_label import (
    SCOPE_PROJECT,
    Holder,
    TransferResult,
    apply_label_plan,
    current_holders,
    plan_label_sync,
    transfer_active_label,
)
from .branch_linker import rank_branches
from .git import GitError, generate_branch_name
from .models import ProjectItem, RepoInfo
from .session import CommandError, Session

logger = logging.getLogger(__name__)


class Prompter:
    """Interactive questions on the terminal. End of input picks the default."""

    def confirm(self, question: str, default: bool = False) -> bool:
        hint = "Y/n" if default else "y/N"
        try:
            answer = input(f"{question} ({hint}) ").strip().lower()
        except EOFError:
            return default
        if not answer:
            return default
        return answer in ("y", "yes")

    def choose(self, question: str, options: list[str]) -> int:
        """Return the index of the chosen option (the first one by default)."""
        print(question)
        for i, option in enumerate(options, 1):
            print(f"  [{i}] {option}")
        while True:
            try:
                answer = input(f"Enter choice (1-{len(options)}): ").strip()
            except EOFError:
                return 0
            if not answer:
                return 0
            if answer.isdigit() and 1 <= int(answer) <= len(options):
                return int(answer) - 1
            print("Invalid choice. Please try again.")


# ----------------------------------------------------------------------
# Shared helpers
# ----------------------------------------------------------------------


def find_item(session: Session, repo: RepoInfo, issue_number: int) -> ProjectItem:
    item = session.client.find_item_by_number(repo, issue_number)
    if item is None:
        raise CommandError(f"Issue #{issue_number} not found in any project")
    return item


def apply_active_label(
    session: Session, repo: RepoInfo, issue_number: int, project_id: str | None
) -> TransferResult:
    """Move the user's active label to ``repo#issue_number`` and report."""
    label = session.active_label
    scope = session.config.active_label_scope
    result = transfer_active_label(
        session.client, repo, issue_number, scope, label, project_id=project_id
    )
    for holder_repo, number in result.removed_from:
        if scope == SCOPE_PROJECT:
            logger.info("Removed %s from %s#%d", label, holder_repo, number)
        else:
            logger.info("Removed %s from #%d", label, number)
    for holder_repo, number in result.failed_removals:
        logger.warning("Could not remove %s from %s#%d", label, holder_repo, number)
    if result.added:
        logger.info('Applied "%s" label to #%d', label, issue_number)
    elif result.add_failed:
        logger.warning('Could not apply "%s" label to #%d', label, issue_number)
    return result


def _project_id_if_needed(session: Session, repo: RepoInfo, issue_number: int) -> str | None:
    """Project scope needs the issue's project; repo scope does not."""
    if session.config.active_label_scope != SCOPE_PROJECT:
        return None
    return find_item(session, repo, issue_number).project_id


def _set_status(session: Session, item: ProjectItem, status: str, exact: bool = False) -> str:
    """Move ``item`` to ``status``. Returns the option name actually used."""
    status_field = session.client.get_status_field(item.project_id)
    if status_field is None:
        raise CommandError("Could not find Status field in project")
    if exact:
        option = next((o for o in status_field.options if o.name == status), None)
    else:
        option = status_field.find_option(status)
    if option is None:
        names = ", ".join(o.name for o in status_field.options)
        raise CommandError(f'Status "{status}" not found in project (available: {names})')
    session.client.update_item_status(
        item.project_id, item.id, status_field.field_id, option.id
    )
    return option.name


def _proceed_despite_changes(session: Session, prompter: Prompter) -> bool:
    if not session.git.has_uncommitted_changes():
        return True
    logger.warning("You have uncommitted changes.")
    return prompter.confirm("Continue anyway?", default=False)


# ----------------------------------------------------------------------
# start
# ----------------------------------------------------------------------


def _offer_assignment(
    session: Session, repo: RepoInfo, item: ProjectItem, prompter: Prompter
) -> None:
    me = session.username.lower()
    if any(a.lower() == me for a in item.assignees):
        return
    logger.info("You are not assigned to this issue.")
    choice = prompter.choose(
        "What would you like to do?", ["Reassign to me", "Add me", "Leave as is"]
    )
    if choice == 0:
        session.client.update_assignees(repo, item.number, [session.username])
        logger.info("Reassigned to %s", session.username)
    elif choice == 1:
        session.client.update_assignees(
            repo, item.number, [*item.assignees, session.username]
        )
        logger.info("Added %s as assignee", session.username)


def _checkout_linked(session: Session, branch: str, prompter: Prompter) -> bool:
    """Check out an already linked branch, locally or from origin."""
    git = session.git
    if git.current_branch() == branch:
        logger.info("Already on branch: %s", branch)
        return True
    if not _proceed_despite_changes(session, prompter):
        logger.info("Aborted.")
        return False
    if git.branch_exists(branch):
        git.checkout(branch)
        logger.info("Switched to branch: %s", branch)
        return True
    try:
        git.checkout_remote(branch)
    except GitError as e:
        raise CommandError(
            f'Branch "{branch}" no longer exists locally or remotely; '
            "unlink it and create a new branch"
        ) from e
    logger.info("Checked out branch from remote: %s", branch)
    return True


def _pull_if_behind(session: Session, branch: str, prompter: Prompter) -> None:
    behind = session.git.commits_behind(branch)
    if behind <= 0:
        return
    logger.warning("%s is %d commit(s) behind origin.", branch, behind)
    if prompter.confirm("Pull latest?", default=True):
        session.git.pull()
        logger.info("Pulled latest changes")


def _create_and_link(
    session: Session, repo: RepoInfo, item: ProjectItem, prompter: Prompter
) -> str:
    git = session.git
    branch = generate_branch_name(
        session.config.branch_pattern, session.username, item.number, item.title, repo.name
    )
    if git.branch_exists(branch):
        logger.warning("Branch already exists: %s", branch)
        if prompter.confirm("Checkout existing branch?", default=True):
            git.checkout(branch)
            logger.info("Switched to %s", branch)
    else:
        git.create_branch(branch)
        logger.info("Created branch: %s", branch)
        git.commit_empty(f"Start work on #{item.number}\n\n{item.title}")
        git.push_upstream(branch)
        logger.info("Pushed %s to origin", branch)

    session.linker.link(repo.full_name, item.number, branch, item.title, item.id)
    logger.info("Linked branch to #%d", item.number)
    return branch


def _link_existing(
    session: Session, repo: RepoInfo, item: ProjectItem, prompter: Prompter
) -> str:
    main = session.config.main_branch
    candidates = [b for b in session.git.list_branches() if b != main]
    if not candidates:
        raise CommandError("No other branches to link.")
    ranked = rank_branches(candidates, item.number, item.title)
    branch = ranked[prompter.choose("Select branch to link (sorted by relevance):", ranked)]

    session.linker.link(repo.full_name, item.number, branch, item.title, item.id)
    logger.info('Linked "%s" to #%d', branch, item.number)
    if session.git.current_branch() != branch:
        session.git.checkout(branch)
        logger.info("Switched to branch: %s", branch)
    return branch


def _choose_branch(
    session: Session, repo: RepoInfo, item: ProjectItem, prompter: Prompter
) -> bool:
    main = session.config.main_branch
    current = session.git.current_branch()

    logger.info("No branch linked to this issue.")
    if not _proceed_despite_changes(session, prompter):
        logger.info("Aborted.")
        return False

    if current == main:
        choice = prompter.choose(
            "What would you like to do?",
            ["Create new branch (default)", "Link existing branch"],
        )
        if choice == 1:
            _link_existing(session, repo, item, prompter)
        else:
            _pull_if_behind(session, main, prompter)
            _create_and_link(session, repo, item, prompter)
        return True

    choice = prompter.choose(
        "What would you like to do?",
        [
            f"Switch to {main} & create branch (default)",
            f"Create branch from current ({current})",
            "Link existing branch",
        ],
    )
    if choice == 2:
        _link_existing(session, repo, item, prompter)
    elif choice == 1:
        _create_and_link(session, repo, item, prompter)
    else:
        session.git.checkout(main)
        logger.info("Switched to %s", main)
        _pull_if_behind(session, main, prompter)
        _create_and_link(session, repo, item, prompter)
    return True


def start_work(
    session: Session,
    repo: RepoInfo,
    issue_number: int,
    *,
    create_branch: bool = True,
    update_status: bool = True,
    prompter: Prompter | None = None,
) -> int:
    """Begin work on an issue: branch, status and active label.

    A linked branch is checked out. Otherwise the user creates a branch
    from the configured pattern or links an existing one, offered most
    relevant first.
    """
    prompter = prompter or Prompter()

    logger.info("Looking for issue #%d...", issue_number)
    item = find_item(session, repo, issue_number)
    logger.info("Found: %s", item.title)
    logger.info("Project: %s | Status: %s", item.project_title, item.status or "None")

    _offer_assignment(session, repo, item, prompter)

    linked = session.linker.branch_for(repo.full_name, issue_number)
    if linked:
        if not _checkout_linked(session, linked, prompter):
            return 0
    elif create_branch:
        if not _choose_branch(session, repo, item, prompter):
            return 0

    target_status = session.config.start_working_status
    if update_status and target_status and item.status != target_status:
        try:
            name = _set_status(session, item, target_status, exact=True)
        except CommandError as e:
            logger.warning("%s", e)
        else:
            logger.info('Moved to "%s"', name)

    apply_active_label(session, repo, issue_number, item.project_id)
    logger.info("Ready to work on: %s", item.title)
    return 0


# ----------------------------------------------------------------------
# switch / link-branch / unlink-branch / sync
# ----------------------------------------------------------------------


def switch_issue(session: Session, repo: RepoInfo, issue_number: int) -> int:
    branch = session.linker.branch_for(repo.full_name, issue_number)
    if not branch:
        raise CommandError(
            f"No branch linked to issue #{issue_number}. "
            f"Use `ghp link-branch {issue_number}` to link one."
        )
    if not session.git.branch_exists(branch):
        raise CommandError(f'Branch "{branch}" no longer exists')
    if session.git.current_branch() == branch:
        logger.info("Already on branch: %s", branch)
        return 0

    session.git.checkout(branch)
    logger.info("Switched to branch: %s", branch)
    apply_active_label(
        session, repo, issue_number, _project_id_if_needed(session, repo, issue_number)
    )
    return 0


def link_branch(
    session: Session, repo: RepoInfo, issue_number: int, branch: str | None = None
) -> int:
    branch = branch or session.git.current_branch()
    if not branch:
        raise CommandError("Could not determine branch. Specify a branch name.")

    item = find_item(session, repo, issue_number)
    existing = session.linker.branch_for(repo.full_name, issue_number)
    if existing and existing != branch:
        logger.info('Issue #%d was linked to "%s"', issue_number, existing)

    session.linker.link(repo.full_name, issue_number, branch, item.title, item.id)
    logger.info('Linked "%s" to #%d: %s', branch, issue_number, item.title)

    if session.git.current_branch() == branch:
        apply_active_label(session, repo, issue_number, item.project_id)
    return 0


def unlink_branch(session: Session, repo: RepoInfo, issue_number: int) -> int:
    branch = session.linker.branch_for(repo.full_name, issue_number)
    if not session.linker.unlink(repo.full_name, issue_number):
        logger.info("Issue #%d has no linked branch", issue_number)
        return 0
    logger.info('Unlinked "%s" from #%d', branch, issue_number)
    return 0


def _sync_holders(
    session: Session, repo: RepoInfo, label: str, project_id: str | None
) -> list[Holder]:
    scope = session.config.active_label_scope
    if scope != SCOPE_PROJECT or project_id:
        return current_holders(session.client, repo, scope, label, project_id)
    # Project scope without a linked issue: every project of the repository.
    holders: list[Holder] = []
    for project in session.client.get_projects(repo):
        for holder in session.client.project_items_with_label(project.id, label):
            if holder not in holders:
                holders.append(holder)
    return holders


def sync_active_label(session: Session, repo: RepoInfo) -> int:
    """Make the active label match the issue linked to the current branch."""
    label = session.active_label
    branch = session.git.current_branch()
    logger.info("Syncing active label: %s", label)
    logger.info("Current branch: %s", branch or "(detached)")

    link = session.linker.issue_for(repo.full_name, branch) if branch else None
    project_id = (
        _project_id_if_needed(session, repo, link.issue_number) if link else None
    )
    target: Holder | None = (repo.full_name, link.issue_number) if link else None

    holders = _sync_holders(session, repo, label, project_id)
    to_remove, needs_add = plan_label_sync(target, holders)

    if not to_remove and not needs_add:
        if link:
            logger.info("Active label is correctly on #%d", link.issue_number)
        else:
            logger.info("No issue linked to current branch.")
            logger.info("No issues have the active label.")
        return 0

    logger.info("Changes needed:")
    for holder_repo, number in to_remove:
        logger.info("  - Remove %s from %s#%d", label, holder_repo, number)
    if needs_add:
        logger.info("  + Add %s to #%d (%s)", label, link.issue_number, link.issue_title)

    result = apply_label_plan(
        session.client, repo, label, to_remove, link.issue_number if needs_add else None
    )
    for holder_repo, number in result.removed_from:
        logger.info("Removed from %s#%d", holder_repo, number)
    for holder_repo, number in result.failed_removals:
        logger.warning("Could not remove from %s#%d", holder_repo, number)
    if result.added:
        logger.info("Added to #%d", link.issue_number)
    elif result.add_failed:
        logger.warning("Could not add to #%d", link.issue_number)
    return 0 if result.ok else 1


# ----------------------------------------------------------------------
# Item edits
# ----------------------------------------------------------------------


def move_item(session: Session, repo: RepoInfo, issue_number: int, status: str) -> int:
    item = find_item(session, repo, issue_number)
    if item.status == status:
        logger.info("Already in status: %s", status)
        return 0
    name = _set_status(session, item, status)
    logger.info('Moved #%d to "%s"', issue_number, name)
    return 0


def mark_done(session: Session, repo: RepoInfo, issue_number: int) -> int:
    item = find_item(session, repo, issue_number)
    target = session.config.done_status
    if item.status == target:
        logger.info("Already done: %s", item.title)
        return 0
    _set_status(session, item, target, exact=True)
    logger.info("Marked as done: %s", item.title)
    return 0


def field_value_payload(data_type: str, options: dict[str, str], value: str) -> dict:
    """Build the mutation value for a field of ``data_type`` from user text."""
    if data_type == "SINGLE_SELECT":
        wanted = value.lower()
        option_id = next((oid for name, oid in options.items() if name.lower() == wanted), None)
        if option_id is None:
            raise CommandError(
                f'Invalid value "{value}" (available: {", ".join(options)})'
            )
        return {"singleSelectOptionId": option_id}
    if data_type == "NUMBER":
        try:
            return {"number": float(value)}
        except ValueError:
            raise CommandError("Value must be a number for this field") from None
    if data_type == "DATE":
        try:
            return {"date": date.fromisoformat(value).isoformat()}
        except ValueError:
            raise CommandError("Value must be a date (YYYY-MM-DD) for this field") from None
    if data_type in ("TEXT", ""):
        return {"text": value}
    raise CommandError(f"Unsupported field type: {data_type}")


def set_field(
    session: Session, repo: RepoInfo, issue_number: int, field: str, value: str
) -> int:
    item = find_item(session, repo, issue_number)
    fields = session.client.get_fields(item.project_id)
    target = next((f for f in fields.values() if f.name.lower() == field.lower()), None)
    if target is None:
        raise CommandError(
            f'Field "{field}" not found (available: {", ".join(fields)})'
        )
    payload = field_value_payload(target.data_type, target.options, value)
    session.client.update_item_field_value(item.project_id, item.id, target.id, payload)
    logger.info("Updated: #%d %s = %s", issue_number, target.name, value)
    return 0


def assign(
    session: Session,
    repo: RepoInfo,
    issue_number: int,
    users: list[str],
    remove: bool = False,
) -> int:
    users = users or [session.username]
    if remove:
        session.client.remove_assignees(repo, issue_number, users)
        logger.info("Removed %s from #%d", ", ".join(users), issue_number)
    else:
        session.client.add_assignees(repo, issue_number, users)
        logger.info("Assigned %s to #%d", ", ".join(users), issue_number)
    return 0


def add_issue(
    session: Session,
    repo: RepoInfo,
    title: str,
    body: str = "",
    project: str | None = None,
    status: str | None = None,
    labels: list[str] | None = None,
) -> int:
    """Create an issue, add it to a project and optionally set its status."""
    projects = session.client.get_projects(repo)
    if not projects:
        raise CommandError("No GitHub Projects found for this repository")
    target = projects[0]
    if project:
        wanted = project.lower()
        target = next((p for p in projects if wanted in p.title.lower()), None)
        if target is None:
            raise CommandError(
                f'Project "{project}" not found '
                f'(available: {", ".join(p.title for p in projects)})'
            )

    node_id, number = session.client.create_issue(repo, title, body, labels=labels)
    logger.info("Created issue #%d: %s", number, title)
    item_id = session.client.add_to_project(target.id, node_id)
    logger.info("Added to project: %s", target.title)

    if status:
        status_field = session.client.get_status_field(target.id)
        option = status_field.find_option(status) if status_field else None
        if option is None:
            logger.warning('Status "%s" not found in project %s', status, target.title)
        else:
            session.client.update_item_status(target.id, item_id, status_field.field_id, option.id)
            logger.info('Set status to "%s"', option.name)
    return 0
