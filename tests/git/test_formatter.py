"""Tests for display formatting functions."""

from datetime import UTC, datetime

from gitpanic.core.journal import (
    ActionStatus,
    ActionType,
    HeadSnapshot,
    RecordedAction,
    UndoDirective,
)
from gitpanic.core.safety.checks import Blocked, Clear, Warned
from gitpanic.core.state import Issue, IssueCode, IssueSeverity, RepositoryState
from gitpanic.git import formatter
from gitpanic.git.models import (
    CommitRef,
    DeletedBranch,
    DeletedFile,
    DivergedCommits,
    DroppedStash,
    RepoStatus,
    StashEntry,
)


def _action(**overrides):
    params = {
        "type": ActionType.UNDO_COMMIT,
        "description": "Undo 1 commit(s) with soft reset",
        "repo_path": "/repo",
        "timestamp": datetime(2024, 5, 1, 12, 0, tzinfo=UTC),
        "before_state": HeadSnapshot(head_hash="a" * 40, branch="main"),
    }
    params.update(overrides)
    return RecordedAction(**params)


class TestFormatState:
    def test_healthy_repo(self):
        state = RepositoryState(
            is_repo=True,
            current_branch="main",
            status=RepoStatus(current="main", tracking="origin/main", ahead=1),
            last_commit=CommitRef(
                hash="abcdef1234", message="feat: x\n\nbody", author="A", date="d"
            ),
        )
        result = formatter.format_state(state)
        assert "Branch: main (tracking origin/main, 1 ahead)" in result
        assert "abcdef1 feat: x" in result
        assert "body" not in result
        assert "Repository looks healthy" in result

    def test_detached_with_issues(self):
        issue = Issue(
            severity=IssueSeverity.WARNING,
            code=IssueCode.DETACHED_HEAD,
            message="You are in detached HEAD state",
            suggestion="Create a branch",
        )
        state = RepositoryState(is_repo=True, is_detached_head=True, issues=[issue])
        result = formatter.format_state(state)
        assert "(detached HEAD)" in result
        assert "⚠️ You are in detached HEAD state" in result
        assert "→ Create a branch" in result
        assert "healthy" not in result

    def test_lists_conflicted_files(self):
        state = RepositoryState(
            is_repo=True, current_branch="main", conflicted_files=["a.py", "b.py"]
        )
        assert "⚔️ Conflicts: a.py, b.py" in formatter.format_state(state)
        clean = RepositoryState(is_repo=True, current_branch="main")
        assert "Conflicts" not in formatter.format_state(clean)

    def test_not_a_repo_shows_only_issue(self):
        issue = Issue(
            severity=IssueSeverity.ERROR,
            code=IssueCode.NOT_GIT_REPO,
            message="Current directory is not a Git repository",
        )
        result = formatter.format_state(RepositoryState(is_repo=False, issues=[issue]))
        assert result == "❌ Current directory is not a Git repository"


class TestFormatSafety:
    def test_clear_is_empty(self):
        assert formatter.format_safety(Clear()) == ""

    def test_warned(self):
        result = formatter.format_safety(Warned(warnings=["pushed"]))
        assert "Warnings:" in result
        assert "• pushed" in result

    def test_blocked_lists_blockers_and_warnings(self):
        result = formatter.format_safety(Blocked(blockers=["no"], warnings=["hmm"]))
        assert result.index("Cannot proceed") < result.index("Warnings")
        assert "✗ no" in result


class TestLists:
    def test_commits(self):
        commits = [CommitRef(hash="1234567890", message="m", author="Ada", date="d")]
        assert "1234567 m" in formatter.format_commits(commits)
        assert formatter.format_commits([]) == "\U0001f4dc No commits found."

    def test_diverged(self):
        commit = CommitRef(hash="1234567890", message="remote fix", author="A", date="d")
        result = formatter.format_diverged(DivergedCommits(remote=[commit]), "origin/main")
        assert "Only on remote (1)" in result
        assert "↓ 1234567 remote fix" in result
        assert "Up to date" in formatter.format_diverged(DivergedCommits(), "origin/main")
        assert "no upstream" in formatter.format_diverged(DivergedCommits(), None)

    def test_stashes(self):
        result = formatter.format_stashes(
            [StashEntry(index=1, hash="abcdef123", message="WIP")]
        )
        assert "stash@{1} abcdef1 WIP" in result

    def test_dropped_stashes(self):
        result = formatter.format_dropped_stashes(
            [DroppedStash(hash="abcdef123", message="On main: x")]
        )
        assert "abcdef1 On main: x" in result
        assert "stash recover" in result

    def test_deleted_branches(self):
        result = formatter.format_deleted_branches(
            [DeletedBranch(name="feature", hash="abcdef123")]
        )
        assert "feature (abcdef1)" in result
        assert "No recently deleted" in formatter.format_deleted_branches([])

    def test_deleted_files_truncated(self):
        files = [
            DeletedFile(path=f"f{i}.txt", hash="c" * 40, message="rm") for i in range(25)
        ]
        result = formatter.format_deleted_files(files)
        assert "f19.txt" in result
        assert "f20.txt" not in result
        assert "and 5 more" in result


class TestHistory:
    def test_empty(self):
        assert "No gitpanic actions" in formatter.format_history([])

    def test_marks_undoable_and_consumed(self):
        undoable = _action(
            id="111111111111",
            status=ActionStatus.COMPLETED,
            after_state=HeadSnapshot(head_hash="b" * 40),
            undo=UndoDirective(target="a" * 40),
        )
        consumed = _action(
            id="222222222222",
            status=ActionStatus.CONSUMED,
            can_undo=False,
            undo=UndoDirective(target="a" * 40),
        )
        lines = formatter.format_history([undoable, consumed]).splitlines()
        assert "[undoable]" in lines[1]
        assert "aaaaaaa → bbbbbbb" in lines[2]
        assert "[consumed]" in lines[3]

    def test_undo_preview(self):
        action = _action(undo=UndoDirective(target="a" * 40))
        result = formatter.format_undo_preview(action)
        assert "This will reset to aaaaaaa on main" in result
        assert f"$ git reset --hard {'a' * 40}" in result


def test_success_and_error_prefixes():
    assert formatter.format_success("done") == "✅ done"
    assert formatter.format_error("bad") == "❌ bad"


def test_help_lists_every_command():
    result = formatter.format_help()
    for command in (
        "status", "undo ", "fix-message", "amend", "squash", "branches",
        "recover-branch", "files", "restore-file", "stash", "abort", "continue",
        "clean", "discard", "unstage", "add", "history", "undo-last",
    ):
        assert f"gitpanic {command}" in result
