"""Repository state snapshots and issue classification."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, ConfigDict

from gitpanic.git.models import CommitRef, OngoingOperation, RepoStatus

if TYPE_CHECKING:
    from gitpanic.git.service import GitAccessor

logger = structlog.get_logger()


class IssueSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class IssueCode(str, Enum):
    NOT_GIT_REPO = "NOT_GIT_REPO"
    DETECTION_FAILED = "DETECTION_FAILED"
    DETACHED_HEAD = "DETACHED_HEAD"
    ONGOING_OPERATION = "ONGOING_OPERATION"
    HAS_CONFLICTS = "HAS_CONFLICTS"
    NO_COMMITS = "NO_COMMITS"
    UNPUSHED_COMMITS = "UNPUSHED_COMMITS"
    BEHIND_REMOTE = "BEHIND_REMOTE"
    UNSTAGED_CHANGES = "UNSTAGED_CHANGES"
    STAGED_CHANGES = "STAGED_CHANGES"


class Issue(BaseModel):
    model_config = ConfigDict(frozen=True)

    severity: IssueSeverity
    code: IssueCode
    message: str
    suggestion: str | None = None


class RepositoryState(BaseModel):
    """Point-in-time view of a repository. ``issues`` is derived from the rest."""

    model_config = ConfigDict(frozen=True)

    is_repo: bool
    current_branch: str | None = None
    has_uncommitted_changes: bool = False
    has_staged_changes: bool = False
    has_remote: bool = False
    last_commit: CommitRef | None = None
    status: RepoStatus | None = None
    is_detached_head: bool = False
    ongoing_operation: OngoingOperation | None = None
    conflicted_files: list[str] = []
    stash_count: int = 0
    issues: list[Issue] = []

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicted_files)

    @property
    def has_stashes(self) -> bool:
        return self.stash_count > 0

    def has_issue(self, code: IssueCode) -> bool:
        return any(issue.code == code for issue in self.issues)


_OPERATION_NAMES = {
    "merge": "Merge",
    "rebase": "Rebase",
    "cherry-pick": "Cherry-pick",
    "bisect": "Bisect",
}


def detect_issues(
    *,
    is_detached_head: bool,
    ongoing_operation: OngoingOperation | None,
    conflicted_files: list[str],
    last_commit: CommitRef | None,
    status: RepoStatus | None,
    has_uncommitted_changes: bool,
    has_staged_changes: bool,
) -> list[Issue]:
    """Apply the issue rule table. Every matching rule contributes, in table order."""
    issues: list[Issue] = []

    if is_detached_head:
        issues.append(
            Issue(
                severity=IssueSeverity.WARNING,
                code=IssueCode.DETACHED_HEAD,
                message="You are in detached HEAD state",
                suggestion="Create a branch to save your work, or checkout an existing branch",
            )
        )

    if ongoing_operation:
        suggestion = (
            f"Resolve {len(conflicted_files)} conflict(s) or abort"
            if conflicted_files
            else "Continue or abort the operation"
        )
        issues.append(
            Issue(
                severity=IssueSeverity.WARNING,
                code=IssueCode.ONGOING_OPERATION,
                message=f"{_OPERATION_NAMES[ongoing_operation]} in progress",
                suggestion=suggestion,
            )
        )

    if conflicted_files and not ongoing_operation:
        issues.append(
            Issue(
                severity=IssueSeverity.ERROR,
                code=IssueCode.HAS_CONFLICTS,
                message=f"{len(conflicted_files)} file(s) have merge conflicts",
                suggestion="Resolve conflicts before continuing",
            )
        )

    if last_commit is None:
        issues.append(
            Issue(
                severity=IssueSeverity.INFO,
                code=IssueCode.NO_COMMITS,
                message="Repository has no commits yet",
                suggestion="Create your first commit",
            )
        )

    if status is not None and status.ahead > 0:
        issues.append(
            Issue(
                severity=IssueSeverity.INFO,
                code=IssueCode.UNPUSHED_COMMITS,
                message=f"You have {status.ahead} unpushed commit(s)",
                suggestion="These commits are safe to modify",
            )
        )

    if status is not None and status.behind > 0:
        issues.append(
            Issue(
                severity=IssueSeverity.WARNING,
                code=IssueCode.BEHIND_REMOTE,
                message=f"Your branch is {status.behind} commit(s) behind remote",
                suggestion="Consider pulling changes before making modifications",
            )
        )

    if has_uncommitted_changes and not has_staged_changes:
        issues.append(
            Issue(
                severity=IssueSeverity.INFO,
                code=IssueCode.UNSTAGED_CHANGES,
                message="You have unstaged changes",
            )
        )

    if has_staged_changes:
        issues.append(
            Issue(
                severity=IssueSeverity.INFO,
                code=IssueCode.STAGED_CHANGES,
                message="You have staged changes ready to commit",
            )
        )

    return issues


def _not_a_repo_state() -> RepositoryState:
    return RepositoryState(
        is_repo=False,
        issues=[
            Issue(
                severity=IssueSeverity.ERROR,
                code=IssueCode.NOT_GIT_REPO,
                message="Current directory is not a Git repository",
                suggestion='Initialize a Git repository with "git init"',
            )
        ],
    )


def _detection_failed_state() -> RepositoryState:
    return RepositoryState(
        is_repo=False,
        issues=[
            Issue(
                severity=IssueSeverity.ERROR,
                code=IssueCode.DETECTION_FAILED,
                message="Failed to detect repository state",
                suggestion="Check if Git is installed and accessible",
            )
        ],
    )


class StateDetector:
    def __init__(self, accessor: GitAccessor) -> None:
        self._git = accessor

    async def detect_state(self) -> RepositoryState:
        """Take a snapshot of the repository. Never raises."""
        try:
            if not await self._git.is_repo():
                return _not_a_repo_state()

            # Independent read-only queries; the only place they run concurrently.
            (
                current_branch,
                has_uncommitted,
                has_staged,
                has_remote,
                last_commit,
                status,
                is_detached,
                ongoing,
                conflicted,
                stashes,
            ) = await asyncio.gather(
                self._git.current_branch(),
                self._git.has_uncommitted_changes(),
                self._git.has_staged_changes(),
                self._git.has_remote(),
                self._git.last_commit(),
                self._git.status(),
                self._git.is_detached_head(),
                self._git.ongoing_operation(),
                self._git.conflicted_files(),
                self._git.stash_list(),
            )

            issues = detect_issues(
                is_detached_head=is_detached,
                ongoing_operation=ongoing,
                conflicted_files=conflicted,
                last_commit=last_commit,
                status=status,
                has_uncommitted_changes=has_uncommitted,
                has_staged_changes=has_staged,
            )

            return RepositoryState(
                is_repo=True,
                current_branch=current_branch,
                has_uncommitted_changes=has_uncommitted,
                has_staged_changes=has_staged,
                has_remote=has_remote,
                last_commit=last_commit,
                status=status,
                is_detached_head=is_detached,
                ongoing_operation=ongoing,
                conflicted_files=conflicted,
                stash_count=len(stashes),
                issues=issues,
            )
        except Exception:
            logger.exception("state_detection_failed", repo=str(self._git.repo_path))
            return _detection_failed_state()
