"""Keep the per-user "active" label on exactly one issue within a scope.

The scope is ``repo`` (one active issue per repository) or ``project``
(one active issue across every repository feeding a project). The current
label holders, as reported by GitHub, are the source of truth.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .models import RepoInfo

if TYPE_CHECKING:
    from .github_projects import GitHubProjectClient

logger = logging.getLogger(__name__)

SCOPE_REPO = "repo"
SCOPE_PROJECT = "project"
SCOPES = (SCOPE_REPO, SCOPE_PROJECT)

ACTIVE_LABEL_COLOR = "1d76db"
ACTIVE_LABEL_DESCRIPTION = "Currently being worked on"

Holder = tuple[str, int]  # (owner/name, issue number)


def active_label_name(username: str) -> str:
    return f"@{username}:active"


@dataclass
class TransferResult:
    """What a transfer changed, for reporting."""

    removed_from: list[Holder] = field(default_factory=list)
    failed_removals: list[Holder] = field(default_factory=list)
    added: bool = False
    add_failed: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed_removals and not self.add_failed


def _holder_key(holder: Holder) -> Holder:
    # GitHub owner/name is case-insensitive
    return holder[0].lower(), holder[1]


def plan_label_sync(target: Holder | None, holders: list[Holder]) -> tuple[list[Holder], bool]:
    """Return ``(to_remove, needs_add)`` that makes ``target`` the only holder.

    With no target every holder is removed.
    """
    wanted = _holder_key(target) if target is not None else None
    to_remove = [h for h in holders if _holder_key(h) != wanted]
    needs_add = target is not None and len(to_remove) == len(holders)
    return to_remove, needs_add


def current_holders(
    labels: GitHubProjectClient,
    repo: RepoInfo,
    scope: str,
    label_name: str,
    project_id: str | None = None,
) -> list[Holder]:
    """Query the issues that carry ``label_name`` within ``scope``."""
    if scope == SCOPE_PROJECT:
        if not project_id:
            raise ValueError("project scope requires a project id")
        return list(labels.project_items_with_label(project_id, label_name))
    if scope != SCOPE_REPO:
        raise ValueError(f"Unknown active label scope: {scope!r}")
    return [(repo.full_name, n) for n in labels.issues_with_label(repo, label_name)]


def transfer_active_label(
    labels: GitHubProjectClient,
    repo: RepoInfo,
    issue_number: int,
    scope: str,
    label_name: str,
    project_id: str | None = None,
) -> TransferResult:
    """Move ``label_name`` onto ``repo#issue_number`` and off everything else.

    Removals are best effort; the target is labelled even when some
    removals fail.
    """
    target: Holder = (repo.full_name, issue_number)
    holders = current_holders(labels, repo, scope, label_name, project_id)
    to_remove, needs_add = plan_label_sync(target, holders)
    return apply_label_plan(labels, repo, label_name, to_remove, issue_number if needs_add else None)


def _ensure_active_label(labels: GitHubProjectClient, repo: RepoInfo, label_name: str) -> None:
    if not labels.ensure_label(
        repo, label_name, ACTIVE_LABEL_COLOR, ACTIVE_LABEL_DESCRIPTION
    ):
        logger.warning("Could not ensure label %r exists in %s", label_name, repo.full_name)


def apply_label_plan(
    labels: GitHubProjectClient,
    repo: RepoInfo,
    label_name: str,
    to_remove: list[Holder],
    add_to: int | None = None,
) -> TransferResult:
    """Remove ``label_name`` from ``to_remove``, then add it to ``repo#add_to``."""
    result = TransferResult()
    if add_to is not None:
        _ensure_active_label(labels, repo, label_name)

    for holder in to_remove:
        holder_repo = RepoInfo.parse(holder[0]) or repo
        try:
            removed = labels.remove_label(holder_repo, holder[1], label_name)
        except Exception as e:
            logger.error("Failed to remove %s from %s#%d: %s", label_name, holder[0], holder[1], e)
            removed = False
        if removed:
            result.removed_from.append(holder)
        else:
            result.failed_removals.append(holder)

    if add_to is not None:
        try:
            result.added = labels.add_label(repo, add_to, label_name)
        except Exception as e:
            logger.error("Failed to add %s to %s#%d: %s", label_name, repo.full_name, add_to, e)
            result.added = False
        result.add_failed = not result.added

    return result
