"""Thin wrapper around the local ``git`` executable."""

from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path

from .models import RepoInfo

logger = logging.getLogger(__name__)

RE_GITHUB_REMOTE = re.compile(
    r"github\.com[:/](?P<owner>[^/\s]+)/(?P<name>[^/\s]+?)(?:\.git)?/?$"
)
RE_BRANCH_UNSAFE = re.compile(r"[^a-z0-9]+")
MAX_TITLE_SLUG = 50


class GitError(RuntimeError):
    """A git command exited with a non-zero status."""

    def __init__(self, args: list[str], returncode: int, stderr: str) -> None:
        self.command = args
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"git {' '.join(args)} failed ({returncode}): {stderr.strip()}")


def parse_github_remote(url: str) -> RepoInfo | None:
    """Extract owner/name from an SSH or HTTPS GitHub remote URL."""
    m = RE_GITHUB_REMOTE.search(url.strip())
    if not m:
        return None
    return RepoInfo(owner=m.group("owner"), name=m.group("name"))


def sanitize_for_branch(text: str, limit: int = MAX_TITLE_SLUG) -> str:
    slug = RE_BRANCH_UNSAFE.sub("-", text.lower()).strip("-")
    return slug[:limit].rstrip("-")


def generate_branch_name(
    pattern: str, user: str, number: int | None, title: str, repo: str = ""
) -> str:
    """Fill ``{user}``, ``{number}``, ``{title}`` and ``{repo}`` in a branch pattern."""
    name = (
        pattern.replace("{user}", user)
        .replace("{number}", str(number) if number is not None else "")
        .replace("{title}", sanitize_for_branch(title))
        .replace("{repo}", repo)
    )
    # An empty placeholder can leave "-" or "/" runs behind.
    name = re.sub(r"-{2,}", "-", name)
    name = re.sub(r"/-|-/", "/", name)
    return name.strip("-/")


class Git:
    """Runs git in ``cwd`` (the current directory by default)."""

    def __init__(self, cwd: str | Path | None = None) -> None:
        self.cwd = Path(cwd) if cwd else None

    def run(self, *args: str, check: bool = True) -> str:
        logger.debug("git %s", " ".join(args))
        proc = subprocess.run(
            ["git", *args],
            cwd=str(self.cwd) if self.cwd else None,
            capture_output=True,
            text=True,
        )
        if check and proc.returncode != 0:
            raise GitError(list(args), proc.returncode, proc.stderr)
        return proc.stdout.strip()

    def repo_root(self) -> Path | None:
        try:
            return Path(self.run("rev-parse", "--show-toplevel"))
        except (GitError, OSError):
            return None

    def detect_repository(self) -> RepoInfo | None:
        """The GitHub repository behind the ``origin`` remote, if any."""
        try:
            url = self.run("remote", "get-url", "origin")
        except (GitError, OSError):
            return None
        return parse_github_remote(url)

    def current_branch(self) -> str | None:
        try:
            branch = self.run("rev-parse", "--abbrev-ref", "HEAD")
        except GitError:
            return None
        return None if branch == "HEAD" else branch

    def has_uncommitted_changes(self) -> bool:
        return bool(self.run("status", "--porcelain"))

    def branch_exists(self, branch: str) -> bool:
        try:
            self.run("show-ref", "--verify", "--quiet", f"refs/heads/{branch}")
        except GitError:
            return False
        return True

    def list_branches(self) -> list[str]:
        out = self.run("branch", "--format=%(refname:short)")
        return [line.strip() for line in out.splitlines() if line.strip()]

    def create_branch(self, branch: str) -> None:
        self.run("checkout", "-b", branch)

    def checkout(self, branch: str) -> None:
        self.run("checkout", branch)

    def checkout_remote(self, branch: str, remote: str = "origin") -> None:
        self.run("fetch", remote, branch)
        self.run("checkout", "-b", branch, f"{remote}/{branch}")

    def commits_behind(self, branch: str, remote: str = "origin") -> int:
        try:
            self.run("fetch", remote, branch)
            out = self.run("rev-list", "--count", f"{branch}..{remote}/{branch}")
        except GitError:
            return 0
        return int(out or 0)

    def pull(self) -> None:
        self.run("pull")

    def commit_empty(self, message: str) -> None:
        self.run("commit", "--allow-empty", "-m", message)

    def push_upstream(self, branch: str, remote: str = "origin") -> None:
        self.run("push", "-u", remote, branch)
