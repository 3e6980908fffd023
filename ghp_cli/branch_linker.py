"""Persisted links between local branches and issues, scoped per repository.

Links live in a JSON array file that is read and rewritten on every call.
There is no locking: two concurrent invocations can lose an update.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from .models import BranchLink

logger = logging.getLogger(__name__)

DEFAULT_LINKS_PATH = Path.home() / ".config" / "ghp-cli" / "branch-links.json"

RE_NON_WORD = re.compile(r"[^a-z0-9\s]")


def _same_repo(a: str, b: str) -> bool:
    return a.lower() == b.lower()


class BranchLinker:
    """File-backed store of :class:`BranchLink` records.

    Within one repository a branch maps to at most one issue and an issue
    to at most one branch; linking either key replaces the older link.
    """

    def __init__(self, path: str | Path = DEFAULT_LINKS_PATH) -> None:
        self.path = Path(path)

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def load(self) -> list[BranchLink]:
        """Read all links. A missing or unreadable store yields no links."""
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as e:
            logger.debug("Ignoring unreadable branch link store %s: %s", self.path, e)
            return []
        if not isinstance(raw, list):
            logger.debug("Ignoring branch link store %s: not a list", self.path)
            return []

        links: list[BranchLink] = []
        for entry in raw:
            try:
                links.append(BranchLink.from_dict(entry))
            except (KeyError, TypeError, ValueError, AttributeError):
                logger.debug("Skipping malformed branch link entry: %r", entry)
        return links

    def save(self, links: list[BranchLink]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps([link.to_dict() for link in links], indent=2)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".branch-links-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def link(
        self,
        repo: str,
        issue_number: int,
        branch: str,
        issue_title: str = "",
        item_id: str = "",
    ) -> BranchLink:
        """Link ``branch`` to ``issue_number``, superseding conflicting links."""
        links = [
            existing
            for existing in self.load()
            if not (
                _same_repo(existing.repo, repo)
                and (existing.branch == branch or existing.issue_number == issue_number)
            )
        ]
        new_link = BranchLink(
            branch=branch,
            issue_number=issue_number,
            issue_title=issue_title,
            item_id=item_id,
            repo=repo,
            linked_at=datetime.now(timezone.utc).isoformat(),
        )
        links.append(new_link)
        self.save(links)
        logger.debug("Linked %s#%d to branch %s", repo, issue_number, branch)
        return new_link

    def unlink(self, repo: str, issue_number: int) -> bool:
        """Remove the link for an issue. Returns True if one was removed."""
        links = self.load()
        kept = [
            link
            for link in links
            if not (_same_repo(link.repo, repo) and link.issue_number == issue_number)
        ]
        if len(kept) == len(links):
            return False
        self.save(kept)
        return True

    def branch_for(self, repo: str, issue_number: int) -> str | None:
        for link in self.load():
            if _same_repo(link.repo, repo) and link.issue_number == issue_number:
                return link.branch
        return None

    def issue_for(self, repo: str, branch: str) -> BranchLink | None:
        for link in self.load():
            if _same_repo(link.repo, repo) and link.branch == branch:
                return link
        return None

    def all_for(self, repo: str) -> list[BranchLink]:
        return [link for link in self.load() if _same_repo(link.repo, repo)]


def branch_relevance(branch: str, issue_number: int | None, title_words: list[str]) -> int:
    """Score a branch name against an issue number and title words."""
    lowered = branch.lower()
    score = 0
    if issue_number is not None and str(issue_number) in branch:
        score += 100
    for word in title_words:
        if word in lowered:
            score += 10
    return score


def title_words(title: str) -> list[str]:
    """Lowercased title words longer than two characters."""
    cleaned = RE_NON_WORD.sub("", title.lower())
    return [w for w in cleaned.split() if len(w) > 2]


def rank_branches(branches: list[str], issue_number: int | None, title: str) -> list[str]:
    """Order branches most relevant first; equal scores keep input order."""
    words = title_words(title)
    return sorted(branches, key=lambda b: -branch_relevance(b, issue_number, words))
