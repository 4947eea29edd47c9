"""Action journal: before/after snapshots around mutations with single-slot undo.

The journal is a JSON array of ``RecordedAction`` entries in one per-user
file shared by all repositories. Every public call is one read-modify-write
transaction over the whole file. There is no cross-process locking; two
processes writing at once resolve as last writer wins.
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from gitpanic.exceptions import GitCommandError

if TYPE_CHECKING:
    from gitpanic.git.service import GitAccessor

logger = structlog.get_logger()

DEFAULT_MAX_ENTRIES = 50


class ActionType(str, Enum):
    UNDO_COMMIT = "undo_commit"
    AMEND_MESSAGE = "amend_message"
    AMEND_COMMIT = "amend_commit"
    SQUASH_COMMITS = "squash_commits"
    RECOVER_BRANCH = "recover_branch"
    CREATE_BRANCH = "create_branch"
    UNSTAGE_FILES = "unstage_files"
    STAGE_FILES = "stage_files"
    DISCARD_CHANGES = "discard_changes"
    CLEAN_UNTRACKED = "clean_untracked"
    ABORT_OPERATION = "abort_operation"
    CONTINUE_OPERATION = "continue_operation"
    STASH_CREATE = "stash_create"
    STASH_APPLY = "stash_apply"
    STASH_POP = "stash_pop"
    STASH_DROP = "stash_drop"
    STASH_RECOVER = "stash_recover"
    RESTORE_FILE = "restore_file"
    UNDO_LAST_ACTION = "undo_last_action"


class ActionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CONSUMED = "consumed"


class HeadSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    head_hash: str
    branch: str | None = None


class UndoDirective(BaseModel):
    """Force the repository back to ``target``."""

    model_config = ConfigDict(frozen=True)

    target: str

    @property
    def command(self) -> str:
        return f"git reset --hard {self.target}"


class RecordedAction(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    type: ActionType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    description: str
    repo_path: str
    before_state: HeadSnapshot
    after_state: HeadSnapshot | None = None
    undo: UndoDirective | None = None
    can_undo: bool = True
    status: ActionStatus = ActionStatus.PENDING

    @property
    def is_undoable(self) -> bool:
        return self.can_undo and self.undo is not None


class UndoOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    message: str


_ActionList = TypeAdapter(list[RecordedAction])


class ActionJournal:
    def __init__(
        self,
        accessor: GitAccessor,
        history_file: Path | str,
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ) -> None:
        self._git = accessor
        self._path = Path(history_file)
        self._max_entries = max_entries

    @property
    def repo_path(self) -> str:
        return str(self._git.repo_path)

    # ── Persistence ──────────────────────────────────────────────────

    def _load(self) -> list[RecordedAction]:
        try:
            data = self._path.read_bytes()
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.error("journal_load_failed", path=str(self._path), error=str(e))
            return []
        try:
            return _ActionList.validate_json(data)
        except ValidationError as e:
            logger.error(
                "journal_load_failed",
                path=str(self._path),
                error=f"{e.error_count()} validation error(s)",
            )
            return []

    def _save(self, actions: list[RecordedAction]) -> None:
        trimmed = actions[-self._max_entries :]
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_bytes(_ActionList.dump_json(trimmed, indent=2))
        except OSError as e:
            logger.error("journal_save_failed", path=str(self._path), error=str(e))

    @contextmanager
    def _transaction(self) -> Iterator[list[RecordedAction]]:
        """Load the log, let the caller modify it, then write it back."""
        actions = self._load()
        yield actions
        self._save(actions)

    async def _snapshot(self) -> HeadSnapshot:
        return HeadSnapshot(
            head_hash=await self._git.head_hash(),
            branch=await self._git.current_branch(),
        )

    # ── Lifecycle ────────────────────────────────────────────────────

    async def record_action(
        self, action_type: ActionType, description: str, can_undo: bool = True
    ) -> RecordedAction:
        """Capture the pre-mutation state and append a pending entry."""
        action = RecordedAction(
            type=action_type,
            description=description,
            repo_path=self.repo_path,
            before_state=await self._snapshot(),
            can_undo=can_undo,
        )
        with self._transaction() as actions:
            actions.append(action)

        logger.debug(
            "journal_action_recorded",
            action_id=action.id,
            type=action_type.value,
            description=description,
        )
        return action

    async def complete_action(self, action: RecordedAction) -> None:
        """Capture the post-mutation state and derive the undo directive."""
        if action.status is not ActionStatus.PENDING:
            logger.warning(
                "journal_complete_skipped", action_id=action.id, status=action.status
            )
            return

        action.after_state = await self._snapshot()
        before = action.before_state.head_hash
        if action.can_undo and before and before != action.after_state.head_hash:
            action.undo = UndoDirective(target=before)
        action.status = ActionStatus.COMPLETED

        with self._transaction() as actions:
            for idx, stored in enumerate(actions):
                if stored.id == action.id:
                    actions[idx] = action
                    break

        logger.debug(
            "journal_action_completed", action_id=action.id, undoable=action.is_undoable
        )

    # ── Queries ──────────────────────────────────────────────────────

    def get_last_action(self) -> RecordedAction | None:
        actions = self._load()
        return actions[-1] if actions else None

    def get_last_undoable_action(self) -> RecordedAction | None:
        """Newest undoable entry for this repository; one slot, not a stack."""
        repo_path = self.repo_path
        for action in reversed(self._load()):
            if action.is_undoable and action.repo_path == repo_path:
                return action
        return None

    def get_recent_actions(self, count: int = 10) -> list[RecordedAction]:
        """Newest first, current repository only."""
        repo_path = self.repo_path
        scoped = [a for a in self._load() if a.repo_path == repo_path]
        return list(reversed(scoped[-count:])) if count > 0 else []

    def get_all_actions(self, count: int = 50) -> list[RecordedAction]:
        actions = self._load()
        return list(reversed(actions[-count:])) if count > 0 else []

    def clear_history(self) -> None:
        self._save([])
        logger.debug("journal_cleared", path=str(self._path))

    # ── Undo ─────────────────────────────────────────────────────────

    async def undo_last_action(self) -> UndoOutcome:
        """Reset to the before state of the last undoable entry and consume it."""
        last = self.get_last_undoable_action()
        if last is None or last.undo is None:
            return UndoOutcome(
                success=False,
                message="No undoable actions in history for this repository",
            )

        try:
            await self._git.hard_reset(last.undo.target)
        except GitCommandError as e:
            logger.error("journal_undo_failed", action_id=last.id, error=str(e))
            return UndoOutcome(success=False, message=f"Failed to undo: {e}")

        with self._transaction() as actions:
            for stored in actions:
                if stored.id == last.id:
                    stored.can_undo = False
                    stored.status = ActionStatus.CONSUMED
                    break

        logger.info("journal_action_undone", action_id=last.id)
        return UndoOutcome(success=True, message=f'Undid "{last.description}"')


def dump_actions(actions: list[RecordedAction]) -> str:
    """Render actions as JSON for machine-readable history output."""
    return json.dumps(
        [a.model_dump(mode="json") for a in actions], indent=2, ensure_ascii=False
    )
