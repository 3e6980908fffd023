"""Data models for GitHub Projects items, branch links and repositories."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date


@dataclass(frozen=True)
class RepoInfo:
    """A GitHub repository identified by owner and name."""

    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @classmethod
    def parse(cls, value: str) -> RepoInfo | None:
        """Parse ``owner/name``. Returns None for anything else."""
        parts = value.strip().split("/")
        if len(parts) != 2 or not all(parts):
            return None
        return cls(owner=parts[0], name=parts[1])


@dataclass(frozen=True)
class Label:
    name: str
    color: str = "ededed"  # 6 hex digits, display only


@dataclass(frozen=True)
class FieldValue:
    """A project custom field value, kept typed until it is displayed or filtered.

    ``kind`` is one of ``text``, ``number``, ``date``, ``iteration`` or
    ``single_select``. Single-select values hold the option name and
    iteration values hold the iteration title.
    """

    kind: str
    value: str | float | date

    @classmethod
    def text(cls, value: str) -> FieldValue:
        return cls("text", value)

    def as_text(self) -> str:
        if self.kind == "number" and isinstance(self.value, float):
            # GitHub returns numbers as floats; 3.0 renders as "3"
            if self.value.is_integer():
                return str(int(self.value))
            return str(self.value)
        if self.kind == "date" and isinstance(self.value, date):
            return self.value.isoformat()
        return str(self.value)


@dataclass(frozen=True)
class ProjectItem:
    """An issue, pull request or draft card on a project board."""

    id: str  # ProjectV2Item ID (PVTI_...)
    title: str = ""
    number: int | None = None  # None for draft items
    type: str = "issue"  # "issue", "pull_request" or "draft"
    issue_type: str | None = None  # organization-level type, e.g. "Bug"
    status: str | None = None
    status_index: int | None = None  # position in the Status field options
    state: str | None = None  # "OPEN", "CLOSED", "MERGED"
    assignees: tuple[str, ...] = ()
    labels: tuple[Label, ...] = ()
    field_values: dict[str, FieldValue] = field(default_factory=dict)
    project_id: str = ""
    project_title: str = ""
    repository: str | None = None
    repository_full_name: str | None = None
    url: str | None = None

    def __post_init__(self) -> None:
        # Accept plain strings for convenience; store typed values.
        coerced = {
            name: value if isinstance(value, FieldValue) else FieldValue.text(str(value))
            for name, value in self.field_values.items()
        }
        object.__setattr__(self, "field_values", coerced)
        object.__setattr__(self, "assignees", tuple(self.assignees))
        object.__setattr__(
            self,
            "labels",
            tuple(lb if isinstance(lb, Label) else Label(str(lb)) for lb in self.labels),
        )

    @property
    def fields(self) -> dict[str, str]:
        """Custom field values as display strings, keyed by field name."""
        return {name: value.as_text() for name, value in self.field_values.items()}

    @property
    def label_names(self) -> list[str]:
        return [lb.name for lb in self.labels]

    @property
    def is_draft(self) -> bool:
        return self.type == "draft"


@dataclass
class BranchLink:
    """A persisted association between a local branch and an issue."""

    branch: str
    issue_number: int
    issue_title: str
    item_id: str
    repo: str  # owner/name
    linked_at: str = ""  # ISO-8601 UTC

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> BranchLink:
        return cls(
            branch=str(data["branch"]),
            issue_number=int(data["issue_number"]),
            issue_title=str(data.get("issue_title", "")),
            item_id=str(data.get("item_id", "")),
            repo=str(data["repo"]),
            linked_at=str(data.get("linked_at", "")),
        )


@dataclass
class Project:
    id: str
    title: str
    number: int | None = None
    url: str = ""


@dataclass
class StatusOption:
    id: str
    name: str


@dataclass
class StatusField:
    """The Status single-select field with options in board order."""

    field_id: str
    options: list[StatusOption] = field(default_factory=list)

    def index_of(self, name: str | None) -> int | None:
        if name is None:
            return None
        for i, option in enumerate(self.options):
            if option.name == name:
                return i
        return None

    def find_option(self, name: str) -> StatusOption | None:
        """Match an option name exactly, then case-insensitively."""
        for option in self.options:
            if option.name == name:
                return option
        lowered = name.lower()
        for option in self.options:
            if option.name.lower() == lowered:
                return option
        return None


@dataclass
class ProjectField:
    """A custom field on a GitHub Project board."""

    id: str
    name: str
    data_type: str  # e.g. "SINGLE_SELECT", "TEXT", "NUMBER", "DATE", "ITERATION"
    options: dict[str, str] = field(default_factory=dict)  # name -> option_id


@dataclass
class ProjectView:
    """A saved project view and its filter expression."""

    name: str
    number: int | None = None
    filter: str = ""
