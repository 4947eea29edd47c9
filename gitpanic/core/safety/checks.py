"""Pre-flight safety evaluation for recovery operations.

Each evaluation yields one of three variants:

- ``Clear``: nothing to disclose, proceed.
- ``Warned``: risks the operator must explicitly accept before proceeding.
- ``Blocked``: conditions that prevent the operation regardless of
  confirmation. Warnings found alongside blockers are still reported.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import TYPE_CHECKING, Annotated, Any, Literal

import structlog
from pydantic import BaseModel, ConfigDict, Field

from gitpanic.git.models import ResetMode

if TYPE_CHECKING:
    from gitpanic.core.state import RepositoryState
    from gitpanic.git.service import GitAccessor

logger = structlog.get_logger()

_BRANCH_NAME_RE = re.compile(r"^[a-zA-Z0-9/_-]+$")
_MESSAGE_PREVIEW = 50


class Clear(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["clear"] = "clear"

    @property
    def safe(self) -> bool:
        return True

    @property
    def warnings(self) -> list[str]:
        return []

    @property
    def blockers(self) -> list[str]:
        return []

    @property
    def requires_override(self) -> bool:
        return False


class Warned(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["warned"] = "warned"
    warnings: list[str] = Field(min_length=1)

    @property
    def safe(self) -> bool:
        return True

    @property
    def blockers(self) -> list[str]:
        return []

    @property
    def requires_override(self) -> bool:
        return True


class Blocked(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["blocked"] = "blocked"
    blockers: list[str] = Field(min_length=1)
    warnings: list[str] = []

    @property
    def safe(self) -> bool:
        return False

    @property
    def requires_override(self) -> bool:
        return False


SafetyCheckResult = Annotated[Clear | Warned | Blocked, Field(discriminator="kind")]


def build_result(warnings: list[str], blockers: list[str]) -> SafetyCheckResult:
    if blockers:
        return Blocked(blockers=blockers, warnings=warnings)
    if warnings:
        return Warned(warnings=warnings)
    return Clear()


class SafetyOperation(str, Enum):
    RESET = "reset"
    AMEND = "amend"
    BRANCH_CREATE = "branch_create"
    SQUASH = "squash"
    ABORT = "abort"
    STASH = "stash"
    UNSTAGE = "unstage"
    DISCARD = "discard"
    CLEAN = "clean"
    RECOVER_BRANCH = "recover_branch"
    FIX_DETACHED_HEAD = "fix_detached_head"
    UNDO_LAST = "undo_last"


class SafetyEvaluator:
    """Classifies a requested operation into blockers and warnings.

    Checks that can reuse a ``RepositoryState`` snapshot accept one through
    ``state``; otherwise they query the accessor directly.
    """

    def __init__(self, accessor: GitAccessor) -> None:
        self._git = accessor

    async def evaluate(
        self, operation: SafetyOperation | str, **params: Any
    ) -> SafetyCheckResult:
        operation = SafetyOperation(operation)
        match operation:
            case SafetyOperation.RESET:
                result = await self.check_reset(
                    params.get("mode", "soft"), params.get("count", 1)
                )
            case SafetyOperation.AMEND:
                result = await self.check_amend()
            case SafetyOperation.BRANCH_CREATE:
                result = await self.check_branch_create(params["name"])
            case SafetyOperation.SQUASH:
                result = await self.check_squash(params.get("count", 2))
            case SafetyOperation.ABORT:
                result = await self.check_abort(params.get("state"))
            case SafetyOperation.STASH:
                result = await self.check_stash(params.get("state"))
            case SafetyOperation.UNSTAGE:
                result = await self.check_unstage(params.get("state"))
            case SafetyOperation.DISCARD:
                result = await self.check_discard(params.get("state"))
            case SafetyOperation.CLEAN:
                result = await self.check_clean()
            case SafetyOperation.RECOVER_BRANCH:
                result = await self.check_recover_branch()
            case SafetyOperation.FIX_DETACHED_HEAD:
                result = await self.check_fix_detached_head(params.get("state"))
            case SafetyOperation.UNDO_LAST:
                result = await self.check_undo_last()

        logger.debug(
            "safety_evaluated",
            operation=operation.value,
            kind=result.kind,
            warnings=len(result.warnings),
            blockers=len(result.blockers),
        )
        return result

    async def check_reset(self, mode: ResetMode, count: int = 1) -> SafetyCheckResult:
        warnings: list[str] = []
        blockers: list[str] = []

        commits = await self._git.recent_commits(count)
        if len(commits) < count:
            blockers.append(
                f"Only {len(commits)} commit(s) available, cannot undo {count}"
            )

        if mode == "hard" and await self._git.has_uncommitted_changes():
            warnings.append("Hard reset will discard all uncommitted changes")

        for commit in commits:
            if await self._git.is_pushed(commit.hash):
                warnings.append(
                    f'Commit "{commit.subject[:_MESSAGE_PREVIEW]}" has been pushed. '
                    "Undoing will require force push."
                )

        return build_result(warnings, blockers)

    async def check_amend(self) -> SafetyCheckResult:
        last = await self._git.last_commit()
        if last is None:
            return build_result([], ["No commits to amend"])

        warnings: list[str] = []
        if await self._git.is_pushed(last.hash):
            warnings.append(
                "This commit has been pushed. Amending will require a force push."
            )
        return build_result(warnings, [])

    async def check_branch_create(self, name: str) -> SafetyCheckResult:
        blockers: list[str] = []
        if name in await self._git.branches():
            blockers.append(f'Branch "{name}" already exists')
        if not _BRANCH_NAME_RE.match(name):
            blockers.append("Branch name contains invalid characters")
        return build_result([], blockers)

    async def check_squash(self, count: int) -> SafetyCheckResult:
        if count < 2:
            return build_result([], ["Need at least 2 commits to squash"])
        return await self.check_reset("soft", count)

    async def check_abort(self, state: RepositoryState | None = None) -> SafetyCheckResult:
        operation = (
            state.ongoing_operation if state else await self._git.ongoing_operation()
        )
        if operation is None:
            return build_result([], ["No ongoing Git operation to abort"])
        return build_result(
            [f"Aborting will discard any {operation} work done so far"], []
        )

    async def check_stash(self, state: RepositoryState | None = None) -> SafetyCheckResult:
        if state is not None:
            has_changes = state.has_uncommitted_changes
            stash_count = state.stash_count
        else:
            has_changes = await self._git.has_uncommitted_changes()
            stash_count = len(await self._git.stash_list())
        if not has_changes and stash_count == 0:
            return build_result([], ["No changes to stash and no existing stashes"])
        return build_result([], [])

    async def check_unstage(self, state: RepositoryState | None = None) -> SafetyCheckResult:
        staged = (
            state.has_staged_changes if state else await self._git.has_staged_changes()
        )
        if not staged:
            return build_result([], ["No staged files"])
        return build_result([], [])

    async def check_discard(self, state: RepositoryState | None = None) -> SafetyCheckResult:
        status = state.status if state and state.status else await self._git.status()
        files = set(status.staged) | set(status.modified)
        if not files:
            return build_result([], ["No changes to discard"])
        return build_result(
            [f"Changes in {len(files)} file(s) will be permanently discarded"], []
        )

    async def check_clean(self) -> SafetyCheckResult:
        untracked = await self._git.untracked_files()
        if not untracked:
            return build_result([], ["No untracked files"])
        return build_result(
            [f"{len(untracked)} untracked file(s) will be permanently deleted"], []
        )

    async def check_recover_branch(self) -> SafetyCheckResult:
        if not await self._git.deleted_branches():
            return build_result([], ["No recently deleted branches found in reflog"])
        return build_result([], [])

    async def check_fix_detached_head(
        self, state: RepositoryState | None = None
    ) -> SafetyCheckResult:
        detached = (
            state.is_detached_head if state else await self._git.is_detached_head()
        )
        if not detached:
            return build_result([], ["Not in detached HEAD state"])
        return build_result([], [])

    async def check_undo_last(self) -> SafetyCheckResult:
        """Journal undo is a hard reset to the recorded before state."""
        warnings: list[str] = []
        if await self._git.has_uncommitted_changes():
            warnings.append("Hard reset will discard all uncommitted changes")
        return build_result(warnings, [])
