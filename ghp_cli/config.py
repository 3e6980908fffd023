"""Layered JSON configuration and view option merging.

Precedence, lowest first: built-in defaults, workspace
(``<repo>/.ghp/config.json``), user (``~/.config/ghp-cli/config.json``).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path

logger = logging.getLogger(__name__)

USER_CONFIG_PATH = Path.home() / ".config" / "ghp-cli" / "config.json"
WORKSPACE_CONFIG_DIR = ".ghp"
WORKSPACE_CONFIG_FILE = "config.json"

SCOPE_USER = "user"
SCOPE_WORKSPACE = "workspace"

DEFAULT_CONFIG: dict = {
    "mainBranch": "main",
    "branchPattern": "{user}/{number}-{title}",
    "startWorkingStatus": "In Progress",
    "doneStatus": "Done",
    "activeLabelScope": "repo",
    "defaults": {},
    "shortcuts": {},
}

# Simple string settings editable through `ghp config KEY VALUE`
CONFIG_KEYS = (
    "mainBranch",
    "branchPattern",
    "startWorkingStatus",
    "doneStatus",
    "columns",
    "activeLabelScope",
)


@dataclass
class ViewOptions:
    """One layer of options for the ``plan`` and ``work`` views.

    ``None`` means "not set by this layer".
    """

    project: str | None = None
    status: str | list[str] | None = None
    mine: bool | None = None
    unassigned: bool | None = None
    hide_done: bool | None = None
    slice: list[str] | None = None
    sort: str | None = None
    group: str | None = None
    list: bool | None = None
    all: bool | None = None
    flat: bool | None = None
    view: str | None = None

    # JSON config uses camelCase
    _ALIASES = {"hideDone": "hide_done"}

    @classmethod
    def from_dict(cls, data: dict | None) -> ViewOptions:
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = cls._ALIASES.get(key, key)
            if name in known:
                kwargs[name] = value
            else:
                logger.debug("Ignoring unknown view option %r", key)
        if isinstance(kwargs.get("slice"), str):
            kwargs["slice"] = [kwargs["slice"]]
        return cls(**kwargs)

    def describe(self) -> str:
        """Render as the equivalent command-line flags."""
        parts: list[str] = []
        if self.project:
            parts.append(f"--project {self.project}")
        if self.status:
            statuses = [self.status] if isinstance(self.status, str) else self.status
            parts.extend(f"--status {s}" for s in statuses)
        if self.mine:
            parts.append("--mine")
        if self.unassigned:
            parts.append("--unassigned")
        parts.extend(f"--slice {s}" for s in self.slice or [])
        if self.sort:
            parts.append(f"--sort {self.sort}")
        if self.group:
            parts.append(f"--group {self.group}")
        return " ".join(parts)


def merge_options(*layers: ViewOptions) -> ViewOptions:
    """Merge option layers left to right.

    A later layer's value wins for scalars. Slices concatenate across
    layers and are de-duplicated, keeping the first occurrence.
    """
    merged = ViewOptions()
    slices: list[str] = []
    for layer in layers:
        for f in fields(ViewOptions):
            value = getattr(layer, f.name)
            if value is None:
                continue
            if f.name == "slice":
                slices.extend(value)
            else:
                setattr(merged, f.name, value)
    if slices:
        merged.slice = list(dict.fromkeys(slices))
    return merged


@dataclass
class Config:
    """The merged configuration."""

    main_branch: str = "main"
    branch_pattern: str = "{user}/{number}-{title}"
    start_working_status: str = "In Progress"
    done_status: str = "Done"
    columns: str | None = None
    active_label_scope: str = "repo"
    defaults: dict = field(default_factory=dict)
    shortcuts: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> Config:
        return cls(
            main_branch=data.get("mainBranch") or "main",
            branch_pattern=data.get("branchPattern") or "{user}/{number}-{title}",
            start_working_status=data.get("startWorkingStatus") or "In Progress",
            done_status=data.get("doneStatus") or "Done",
            columns=data.get("columns"),
            active_label_scope=data.get("activeLabelScope") or "repo",
            defaults=data.get("defaults") or {},
            shortcuts=data.get("shortcuts") or {},
        )

    @property
    def plan_defaults(self) -> ViewOptions:
        return ViewOptions.from_dict(self.defaults.get("plan"))

    @property
    def work_defaults(self) -> ViewOptions:
        return ViewOptions.from_dict(self.defaults.get("work"))

    def shortcut(self, name: str) -> ViewOptions | None:
        data = self.shortcuts.get(name)
        if data is None:
            return None
        return ViewOptions.from_dict(data)


def deep_merge(base: dict, override: dict) -> dict:
    """Right wins; nested dicts (``defaults``, ``shortcuts``) merge one level."""
    result = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        current = result.get(key)
        if isinstance(value, dict) and isinstance(current, dict):
            result[key] = {**current, **value}
        else:
            result[key] = value
    return result


def _read_json(path: Path | None) -> dict:
    if path is None:
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable config %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config %s: expected a JSON object", path)
        return {}
    return data


class ConfigStore:
    """Reads and writes the user and workspace config files."""

    def __init__(
        self,
        user_path: str | Path = USER_CONFIG_PATH,
        repo_root: str | Path | None = None,
    ) -> None:
        self.user_path = Path(user_path)
        self.workspace_path = (
            Path(repo_root) / WORKSPACE_CONFIG_DIR / WORKSPACE_CONFIG_FILE
            if repo_root
            else None
        )

    def load_user(self) -> dict:
        return _read_json(self.user_path)

    def load_workspace(self) -> dict:
        return _read_json(self.workspace_path)

    def load_raw(self) -> dict:
        return deep_merge(deep_merge(DEFAULT_CONFIG, self.load_workspace()), self.load_user())

    def load(self) -> Config:
        return Config.from_dict(self.load_raw())

    def path_for(self, scope: str) -> Path:
        if scope == SCOPE_WORKSPACE:
            if self.workspace_path is None:
                raise ValueError("Not in a git repository")
            return self.workspace_path
        return self.user_path

    def save(self, updates: dict, scope: str = SCOPE_USER) -> Path:
        """Merge ``updates`` into the file for ``scope`` and write it."""
        path = self.path_for(scope)
        merged = deep_merge(_read_json(path), updates)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(merged, indent=2) + "\n", encoding="utf-8")
        return path

    def get(self, key: str):
        return self.load_raw().get(key)

    def set(self, key: str, value: str, scope: str = SCOPE_USER) -> Path:
        return self.save({key: value}, scope)

    def sources(self) -> dict[str, tuple[str | None, str]]:
        """Each simple key's effective value and where it came from."""
        user, workspace = self.load_user(), self.load_workspace()
        result: dict[str, tuple[str | None, str]] = {}
        for key in CONFIG_KEYS:
            if key in user:
                result[key] = (user[key], SCOPE_USER)
            elif key in workspace:
                result[key] = (workspace[key], SCOPE_WORKSPACE)
            else:
                result[key] = (DEFAULT_CONFIG.get(key), "default")
        return result
