"""Tests for issue workflow commands with a mocked client and git."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from ghp_cli.branch_linker import BranchLinker
from ghp_cli.config import Config, ConfigStore
from ghp_cli.git import Git, GitError
from ghp_cli.github_projects import GitHubProjectClient
from ghp_cli.models import Project, ProjectField, ProjectItem, RepoInfo, StatusField, StatusOption
from ghp_cli.session import CommandError, Session
from ghp_cli.workflow import (
    Prompter,
    add_issue,
    assign,
    field_value_payload,
    link_branch,
    mark_done,
    move_item,
    set_field,
    start_work,
    switch_issue,
    sync_active_label,
    unlink_branch,
)

REPO = RepoInfo("acme", "widgets")

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_item(number=42, title="Fix login bug", status="Todo", **kwargs):
    return ProjectItem(
        id=f"PVTI_{number}",
        title=title,
        number=number,
        status=status,
        project_id="PVT_1",
        project_title="Roadmap",
        repository="widgets",
        repository_full_name="acme/widgets",
        **kwargs,
    )


def _status_field():
    return StatusField(
        field_id="F_status",
        options=[
            StatusOption("O_todo", "Todo"),
            StatusOption("O_ip", "In Progress"),
            StatusOption("O_done", "Done"),
        ],
    )


def _mock_client(item: ProjectItem | None = None, holders: list[int] | None = None) -> MagicMock:
    client = MagicMock(spec=GitHubProjectClient)
    client.find_item_by_number.return_value = item
    client.get_status_field.return_value = _status_field()
    client.ensure_label.return_value = True
    client.issues_with_label.return_value = list(holders or [])
    client.add_label.return_value = True
    client.remove_label.return_value = True
    return client


def _mock_git(current="main", branches=("main",), dirty=False) -> MagicMock:
    git = MagicMock(spec=Git)
    git.current_branch.return_value = current
    git.list_branches.return_value = list(branches)
    git.branch_exists.side_effect = lambda b: b in branches
    git.has_uncommitted_changes.return_value = dirty
    git.commits_behind.return_value = 0
    return git


def _session(tmp_path, client=None, git=None, config=None) -> Session:
    return Session(
        client=client or _mock_client(_make_item()),
        username="alice",
        config=config or Config(),
        config_store=MagicMock(spec=ConfigStore),
        linker=BranchLinker(tmp_path / "links.json"),
        git=git or _mock_git(),
        width=100,
    )


def _prompter(choices=(), confirm=True) -> MagicMock:
    prompter = MagicMock(spec=Prompter)
    prompter.choose.side_effect = list(choices)
    prompter.confirm.return_value = confirm
    return prompter


# ===================================================================
# start
# ===================================================================


class TestStart:
    def test_creates_branch_links_moves_and_labels(self, tmp_path):
        item = _make_item(assignees=("alice",))
        client = _mock_client(item, holders=[7])
        git = _mock_git()
        session = _session(tmp_path, client, git)

        assert start_work(session, REPO, 42, prompter=_prompter(choices=[0])) == 0

        git.create_branch.assert_called_once_with("alice/42-fix-login-bug")
        git.push_upstream.assert_called_once_with("alice/42-fix-login-bug")
        assert session.linker.branch_for("acme/widgets", 42) == "alice/42-fix-login-bug"
        client.update_item_status.assert_called_once_with("PVT_1", "PVTI_42", "F_status", "O_ip")
        client.remove_label.assert_called_once_with(REPO, 7, "@alice:active")
        client.add_label.assert_called_once_with(REPO, 42, "@alice:active")

    def test_linked_branch_is_checked_out(self, tmp_path):
        git = _mock_git(branches=("main", "alice/42-x"))
        session = _session(tmp_path, _mock_client(_make_item(assignees=("alice",))), git)
        session.linker.link("acme/widgets", 42, "alice/42-x")

        start_work(session, REPO, 42, prompter=_prompter())

        git.checkout.assert_called_once_with("alice/42-x")
        git.create_branch.assert_not_called()

    def test_linked_branch_falls_back_to_remote(self, tmp_path):
        git = _mock_git()
        session = _session(tmp_path, _mock_client(_make_item(assignees=("alice",))), git)
        session.linker.link("acme/widgets", 42, "gone")
        git.checkout_remote.side_effect = GitError(["fetch"], 1, "no such ref")

        with pytest.raises(CommandError, match="no longer exists"):
            start_work(session, REPO, 42, prompter=_prompter())

    def test_link_existing_offers_most_relevant_first(self, tmp_path):
        git = _mock_git(branches=("main", "unrelated", "bugfix/login-flow", "feature/42-login"))
        session = _session(tmp_path, _mock_client(_make_item(assignees=("alice",))), git)
        prompter = _prompter(choices=[1, 0])

        start_work(session, REPO, 42, prompter=prompter)

        offered = prompter.choose.call_args_list[1].args[1]
        assert offered == ["feature/42-login", "bugfix/login-flow", "unrelated"]
        assert session.linker.branch_for("acme/widgets", 42) == "feature/42-login"
        git.checkout.assert_called_once_with("feature/42-login")

    def test_unassigned_user_is_offered_assignment(self, tmp_path):
        client = _mock_client(_make_item(assignees=("bob",)))
        session = _session(tmp_path, client)

        start_work(session, REPO, 42, create_branch=False, prompter=_prompter(choices=[1]))

        client.update_assignees.assert_called_once_with(REPO, 42, ["bob", "alice"])

    def test_no_branch_no_status_only_labels(self, tmp_path):
        client = _mock_client(_make_item(assignees=("alice",)))
        git = _mock_git()
        session = _session(tmp_path, client, git)

        start_work(session, REPO, 42, create_branch=False, update_status=False,
                   prompter=_prompter())

        git.create_branch.assert_not_called()
        client.update_item_status.assert_not_called()
        client.add_label.assert_called_once()

    def test_abort_on_uncommitted_changes(self, tmp_path):
        client = _mock_client(_make_item(assignees=("alice",)))
        git = _mock_git(dirty=True)
        session = _session(tmp_path, client, git)

        start_work(session, REPO, 42, prompter=_prompter(confirm=False))

        git.create_branch.assert_not_called()
        client.add_label.assert_not_called()

    def test_missing_issue(self, tmp_path):
        session = _session(tmp_path, _mock_client(None))
        with pytest.raises(CommandError, match="not found"):
            start_work(session, REPO, 1, prompter=_prompter())


# ===================================================================
# switch / link-branch / unlink-branch
# ===================================================================


def test_switch_checks_out_and_transfers_label(tmp_path):
    client = _mock_client(_make_item(), holders=[3])
    git = _mock_git(branches=("main", "b42"))
    session = _session(tmp_path, client, git)
    session.linker.link("acme/widgets", 42, "b42")

    switch_issue(session, REPO, 42)

    git.checkout.assert_called_once_with("b42")
    client.remove_label.assert_called_once_with(REPO, 3, "@alice:active")
    client.add_label.assert_called_once_with(REPO, 42, "@alice:active")


def test_switch_without_link(tmp_path):
    with pytest.raises(CommandError, match="No branch linked"):
        switch_issue(_session(tmp_path), REPO, 42)


def test_link_branch_applies_label_when_checked_out(tmp_path):
    client = _mock_client(_make_item())
    session = _session(tmp_path, client, _mock_git(current="feature"))

    link_branch(session, REPO, 42)

    assert session.linker.branch_for("acme/widgets", 42) == "feature"
    client.add_label.assert_called_once_with(REPO, 42, "@alice:active")


def test_link_branch_other_branch_leaves_labels(tmp_path):
    client = _mock_client(_make_item())
    session = _session(tmp_path, client, _mock_git(current="main"))

    link_branch(session, REPO, 42, "elsewhere")

    assert session.linker.issue_for("acme/widgets", "elsewhere").issue_number == 42
    client.add_label.assert_not_called()


def test_unlink_branch(tmp_path):
    session = _session(tmp_path)
    session.linker.link("acme/widgets", 42, "b42")
    unlink_branch(session, REPO, 42)
    assert session.linker.branch_for("acme/widgets", 42) is None


# ===================================================================
# sync
# ===================================================================


class TestSync:
    def test_moves_label_to_linked_issue(self, tmp_path):
        client = _mock_client(_make_item(), holders=[5, 42])
        session = _session(tmp_path, client, _mock_git(current="b42"))
        session.linker.link("acme/widgets", 42, "b42", "Fix login bug")

        assert sync_active_label(session, REPO) == 0

        client.remove_label.assert_called_once_with(REPO, 5, "@alice:active")
        client.add_label.assert_not_called()

    def test_no_linked_issue_removes_all(self, tmp_path):
        client = _mock_client(holders=[5, 6])
        session = _session(tmp_path, client, _mock_git(current="main"))

        sync_active_label(session, REPO)

        assert client.remove_label.call_count == 2
        client.add_label.assert_not_called()

    def test_already_in_sync_changes_nothing(self, tmp_path):
        client = _mock_client(holders=[42])
        session = _session(tmp_path, client, _mock_git(current="b42"))
        session.linker.link("acme/widgets", 42, "b42")

        sync_active_label(session, REPO)

        client.remove_label.assert_not_called()
        client.add_label.assert_not_called()

    def test_partial_failure_returns_error(self, tmp_path):
        client = _mock_client(holders=[5])
        client.remove_label.return_value = False
        session = _session(tmp_path, client, _mock_git(current="b42"))
        session.linker.link("acme/widgets", 42, "b42")

        assert sync_active_label(session, REPO) == 1
        client.add_label.assert_called_once_with(REPO, 42, "@alice:active")

    def test_project_scope_without_link_checks_every_project(self, tmp_path):
        client = _mock_client()
        client.get_projects.return_value = [Project("PVT_1", "A"), Project("PVT_2", "B")]
        client.project_items_with_label.side_effect = [
            [("acme/widgets", 1)],
            [("acme/api", 2), ("acme/widgets", 1)],
        ]
        session = _session(tmp_path, client, _mock_git(current="main"),
                           Config(active_label_scope="project"))

        sync_active_label(session, REPO)

        assert client.remove_label.call_count == 2


# ===================================================================
# Item edits
# ===================================================================


def test_move_is_case_insensitive(tmp_path):
    client = _mock_client(_make_item())
    move_item(_session(tmp_path, client), REPO, 42, "in progress")
    client.update_item_status.assert_called_once_with("PVT_1", "PVTI_42", "F_status", "O_ip")


def test_move_unknown_status(tmp_path):
    with pytest.raises(CommandError, match="Blocked"):
        move_item(_session(tmp_path), REPO, 42, "Blocked")


def test_move_same_status_is_noop(tmp_path):
    client = _mock_client(_make_item(status="Todo"))
    move_item(_session(tmp_path, client), REPO, 42, "Todo")
    client.update_item_status.assert_not_called()


def test_done_uses_configured_status(tmp_path):
    client = _mock_client(_make_item())
    mark_done(_session(tmp_path, client), REPO, 42)
    client.update_item_status.assert_called_once_with("PVT_1", "PVTI_42", "F_status", "O_done")


class TestSetField:
    def test_payloads(self):
        options = {"High": "O_h", "Low": "O_l"}
        assert field_value_payload("SINGLE_SELECT", options, "high") == {
            "singleSelectOptionId": "O_h"
        }
        assert field_value_payload("NUMBER", {}, "2.5") == {"number": 2.5}
        assert field_value_payload("DATE", {}, "2024-02-03") == {"date": "2024-02-03"}
        assert field_value_payload("TEXT", {}, "note") == {"text": "note"}

    @pytest.mark.parametrize(
        "data_type,value",
        [("SINGLE_SELECT", "Medium"), ("NUMBER", "lots"), ("DATE", "soon"), ("ITERATION", "x")],
    )
    def test_invalid_values(self, data_type, value):
        with pytest.raises(CommandError):
            field_value_payload(data_type, {"High": "O_h"}, value)

    def test_set_field_updates_item(self, tmp_path):
        client = _mock_client(_make_item())
        client.get_fields.return_value = {
            "Priority": ProjectField("F_p", "Priority", "SINGLE_SELECT", {"High": "O_h"}),
        }
        set_field(_session(tmp_path, client), REPO, 42, "priority", "High")
        client.update_item_field_value.assert_called_once_with(
            "PVT_1", "PVTI_42", "F_p", {"singleSelectOptionId": "O_h"}
        )

    def test_unknown_field(self, tmp_path):
        client = _mock_client(_make_item())
        client.get_fields.return_value = {}
        with pytest.raises(CommandError, match="not found"):
            set_field(_session(tmp_path, client), REPO, 42, "Team", "x")


def test_assign_defaults_to_self(tmp_path):
    client = _mock_client()
    assign(_session(tmp_path, client), REPO, 42, [])
    client.add_assignees.assert_called_once_with(REPO, 42, ["alice"])


def test_unassign(tmp_path):
    client = _mock_client()
    assign(_session(tmp_path, client), REPO, 42, ["bob"], remove=True)
    client.remove_assignees.assert_called_once_with(REPO, 42, ["bob"])


class TestAddIssue:
    def test_creates_and_adds_to_matching_project(self, tmp_path):
        client = _mock_client()
        client.get_projects.return_value = [Project("PVT_1", "Roadmap"), Project("PVT_2", "Bugs")]
        client.create_issue.return_value = ("I_new", 99)
        client.add_to_project.return_value = "PVTI_new"

        add_issue(_session(tmp_path, client), REPO, "Crash", project="bug",
                  status="todo", labels=["bug"])

        client.create_issue.assert_called_once_with(REPO, "Crash", "", labels=["bug"])
        client.add_to_project.assert_called_once_with("PVT_2", "I_new")
        client.update_item_status.assert_called_once_with("PVT_2", "PVTI_new", "F_status", "O_todo")

    def test_unknown_project(self, tmp_path):
        client = _mock_client()
        client.get_projects.return_value = [Project("PVT_1", "Roadmap")]
        with pytest.raises(CommandError, match="not found"):
            add_issue(_session(tmp_path, client), REPO, "Crash", project="nope")
        client.create_issue.assert_not_called()


class TestPrompter:
    def test_confirm_default_on_empty(self, monkeypatch):
        monkeypatch.setattr("builtins.input", lambda prompt: "")
        assert Prompter().confirm("Go?", default=True) is True

    def test_choose_retries_until_valid(self, monkeypatch, capsys):
        answers = iter(["9", "x", "2"])
        monkeypatch.setattr("builtins.input", lambda prompt: next(answers))
        assert Prompter().choose("Pick", ["a", "b"]) == 1
        assert "Invalid choice" in capsys.readouterr().out

    def test_end_of_input_uses_default(self, monkeypatch):
        def raise_eof(prompt):
            raise EOFError

        monkeypatch.setattr("builtins.input", raise_eof)
        assert Prompter().choose("Pick", ["a", "b"]) == 0
        assert Prompter().confirm("Go?") is False
