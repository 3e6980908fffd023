"""Per-invocation context: authenticated client, identity, config and stores."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass, field

from .active_label import active_label_name
from .branch_linker import BranchLinker
from .config import Config, ConfigStore
from .git import Git
from .github_projects import GitHubProjectClient
from .grouping import terminal_width

logger = logging.getLogger(__name__)

TOKEN_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")


class CommandError(Exception):
    """A fatal, user-facing command failure (exit status 1)."""


def resolve_token(explicit: str | None = None) -> str | None:
    """Token from the flag, then the environment, then ``gh auth token``."""
    if explicit:
        return explicit
    for var in TOKEN_ENV_VARS:
        token = os.environ.get(var)
        if token:
            return token
    try:
        proc = subprocess.run(
            ["gh", "auth", "token"], capture_output=True, text=True, check=True
        )
    except (OSError, subprocess.CalledProcessError) as e:
        logger.debug("gh auth token unavailable: %s", e)
        return None
    return proc.stdout.strip() or None


@dataclass
class Session:
    """Everything a command needs, built once per invocation and passed down."""

    client: GitHubProjectClient
    username: str
    config: Config
    config_store: ConfigStore
    linker: BranchLinker
    git: Git
    width: int = field(default_factory=terminal_width)

    @classmethod
    def create(
        cls,
        token: str,
        git: Git | None = None,
        linker: BranchLinker | None = None,
        config_store: ConfigStore | None = None,
    ) -> Session:
        git = git or Git()
        store = config_store or ConfigStore(repo_root=git.repo_root())
        client = GitHubProjectClient(token=token)
        try:
            username = client.get_viewer_login()
        except Exception:
            client.close()
            raise
        return cls(
            client=client,
            username=username,
            config=store.load(),
            config_store=store,
            linker=linker or BranchLinker(),
            git=git,
        )

    @property
    def active_label(self) -> str:
        return active_label_name(self.username)

    def close(self) -> None:
        self.client.close()
