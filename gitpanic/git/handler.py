"""Recovery command handler: sequences detection, safety, confirmation and journaling."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import structlog

from gitpanic.core.journal import ActionType, dump_actions
from gitpanic.core.safety.checks import Clear, SafetyOperation
from gitpanic.exceptions import GitCommandError, NotARepositoryError
from gitpanic.git import formatter

if TYPE_CHECKING:
    from gitpanic.core.journal import ActionJournal
    from gitpanic.core.safety.checks import SafetyCheckResult, SafetyEvaluator
    from gitpanic.core.state import StateDetector
    from gitpanic.git.models import ResetMode
    from gitpanic.git.service import GitAccessor

logger = structlog.get_logger()

_CANCELLED = "Operation cancelled."
_RESET_FLAGS: dict[str, ResetMode] = {
    "--soft": "soft",
    "--mixed": "mixed",
    "--hard": "hard",
}
_RESET_HINTS = {
    "soft": "Your changes are staged and ready to commit.",
    "mixed": "Your changes are preserved but unstaged.",
    "hard": "All changes from those commits have been discarded.",
}
_MAX_LISTED_FILES = 5


@runtime_checkable
class Confirmer(Protocol):
    async def confirm(
        self, title: str, details: str = "", warnings: list[str] | None = None
    ) -> bool: ...


class RecoveryCommandHandler:
    def __init__(
        self,
        accessor: GitAccessor,
        detector: StateDetector,
        evaluator: SafetyEvaluator,
        journal: ActionJournal,
        confirmer: Confirmer,
        *,
        confirm_dangerous_actions: bool = True,
    ) -> None:
        self._git = accessor
        self._detector = detector
        self._evaluator = evaluator
        self._journal = journal
        self._confirmer = confirmer
        self._confirm_dangerous = confirm_dangerous_actions

    async def handle_command(self, args: str) -> str:
        """Route subcommands to the matching recovery flow."""
        parts = args.strip().split(None, 1)
        subcommand = parts[0] if parts else ""
        sub_args = parts[1].strip() if len(parts) > 1 else ""

        if subcommand == "help":
            return formatter.format_help()

        try:
            await self._git.ensure_repo()
        except NotARepositoryError:
            return formatter.format_error("Not a git repository.")

        logger.info(
            "recovery_command",
            subcommand=subcommand or "status",
            repo=str(self._git.repo_path),
        )

        match subcommand:
            case "" | "status":
                return await self._status()
            case "log":
                return await self._log(sub_args)
            case "file-history":
                if not sub_args:
                    return "Usage: gitpanic file-history <path>"
                commits = await self._git.file_history(sub_args)
                return formatter.format_commits(commits, max_entries=20)
            case "diverged":
                status = await self._git.status()
                diverged = await self._git.diverged_commits()
                return formatter.format_diverged(diverged, status.tracking)
            case "undo":
                return await self._undo(sub_args)
            case "fix-message":
                return await self._fix_message(sub_args)
            case "amend":
                return await self._amend(sub_args)
            case "squash":
                return await self._squash(sub_args)
            case "branches":
                branches = await self._git.deleted_branches()
                return formatter.format_deleted_branches(branches)
            case "recover-branch":
                return await self._recover_branch(sub_args)
            case "fix-detached":
                return await self._fix_detached(sub_args)
            case "files":
                files = await self._git.deleted_files()
                return formatter.format_deleted_files(files)
            case "restore-file":
                return await self._restore_file(sub_args)
            case "stash":
                return await self._stash(sub_args)
            case "abort":
                return await self._abort()
            case "continue":
                return await self._continue()
            case "clean":
                return await self._clean(sub_args.split())
            case "discard":
                return await self._discard(sub_args.split())
            case "unstage":
                return await self._unstage(sub_args.split())
            case "add":
                return await self._add(sub_args)
            case "history":
                return self._history(sub_args)
            case "undo-last":
                return await self._undo_last()
            case _:
                return f"Unknown command: {subcommand}\n\n{formatter.format_help()}"

    # ── Shared steps ─────────────────────────────────────────────────

    async def _gate(
        self,
        result: SafetyCheckResult,
        title: str,
        details: str = "",
        *,
        dangerous: bool = False,
    ) -> str | None:
        """Return the text to stop with, or None when the operation may proceed."""
        if not result.safe:
            return formatter.format_safety(result)
        if result.requires_override or (dangerous and self._confirm_dangerous):
            confirmed = await self._confirmer.confirm(title, details, result.warnings)
            logger.debug("recovery_confirmation", title=title, confirmed=confirmed)
            if not confirmed:
                return _CANCELLED
        return None

    async def _journaled(
        self,
        action_type: ActionType,
        description: str,
        mutation: Callable[[], Awaitable[None]],
        *,
        can_undo: bool = True,
    ) -> str | None:
        """Run a mutation between record and complete. Return error text on failure."""
        action = await self._journal.record_action(action_type, description, can_undo)
        try:
            await mutation()
        except GitCommandError as e:
            # The entry stays pending so undo never targets it.
            logger.error(
                "recovery_mutation_failed",
                action_id=action.id,
                type=action_type.value,
                error=str(e),
            )
            return formatter.format_error(f"{description} failed: {e}")
        await self._journal.complete_action(action)
        return None

    # ── Subcommand handlers ──────────────────────────────────────────

    async def _status(self) -> str:
        state = await self._detector.detect_state()
        return formatter.format_state(state)

    async def _log(self, args: str) -> str:
        if args and not args.isdigit():
            return "Usage: gitpanic log [N]"
        count = int(args) if args else 10
        commits = await self._git.recent_commits(count)
        return formatter.format_commits(commits, max_entries=count)

    async def _undo(self, args: str) -> str:
        count = 1
        mode: ResetMode = "soft"
        for token in args.split():
            if token in _RESET_FLAGS:
                mode = _RESET_FLAGS[token]
            elif token.isdigit() and int(token) > 0:
                count = int(token)
            else:
                return "Usage: gitpanic undo [N] [--soft|--mixed|--hard]"

        result = await self._evaluator.evaluate(
            SafetyOperation.RESET, mode=mode, count=count
        )
        details = (
            f"Undoing {count} commit(s) with {mode} reset\n"
            f"  $ git reset --{mode} HEAD~{count}"
        )
        stop = await self._gate(
            result, "Undo commits", details, dangerous=mode == "hard"
        )
        if stop:
            return stop

        description = f"Undo {count} commit(s) with {mode} reset"
        error = await self._journaled(
            ActionType.UNDO_COMMIT,
            description,
            lambda: self._git.undo_commits(mode, count),
        )
        if error:
            return error

        lines = [formatter.format_success(f"Undid {count} commit(s)")]
        new_head = await self._git.last_commit()
        if new_head:
            lines.append(f"New HEAD: {new_head.short_hash} {new_head.subject}")
        lines.append(_RESET_HINTS[mode])
        return "\n".join(lines)

    async def _fix_message(self, message: str) -> str:
        if not message:
            return "Usage: gitpanic fix-message <new message>"

        result = await self._evaluator.evaluate(SafetyOperation.AMEND)
        last = await self._git.last_commit()
        if last and last.subject == message:
            return "Message unchanged."

        stop = await self._gate(result, "Fix commit message", f'New message: "{message}"')
        if stop:
            return stop

        error = await self._journaled(
            ActionType.AMEND_MESSAGE,
            f'Fix commit message: "{message[:30]}"',
            lambda: self._git.amend_message(message),
        )
        return error or formatter.format_success("Commit message amended")

    async def _amend(self, message: str) -> str:
        if not message and not await self._git.has_staged_changes():
            return formatter.format_error("No staged changes to add to the last commit.")

        result = await self._evaluator.evaluate(SafetyOperation.AMEND)
        stop = await self._gate(result, "Amend last commit", "Staged changes will be added")
        if stop:
            return stop

        error = await self._journaled(
            ActionType.AMEND_COMMIT,
            "Amend last commit",
            lambda: self._git.amend_commit(message or None),
        )
        return error or formatter.format_success("Last commit amended")

    async def _squash(self, args: str) -> str:
        parts = args.split(None, 1)
        if len(parts) != 2 or not parts[0].isdigit():
            return "Usage: gitpanic squash <N> <message>"
        count, message = int(parts[0]), parts[1].strip()

        result = await self._evaluator.evaluate(SafetyOperation.SQUASH, count=count)
        commits = await self._git.recent_commits(count)
        details = "\n".join(f"  {c.short_hash} {c.subject}" for c in commits)
        stop = await self._gate(result, f"Squash {count} commits", details)
        if stop:
            return stop

        error = await self._journaled(
            ActionType.SQUASH_COMMITS,
            f'Squash {count} commits into: "{message[:30]}"',
            lambda: self._git.squash_commits(count, message),
        )
        return error or formatter.format_success(f"Squashed {count} commits")

    async def _recover_branch(self, args: str) -> str:
        tokens = args.split()
        if not tokens or len(tokens) > 2:
            return "Usage: gitpanic recover-branch <name> [new-name]"
        name = tokens[0]
        new_name = tokens[1] if len(tokens) == 2 else name

        available = await self._evaluator.evaluate(SafetyOperation.RECOVER_BRANCH)
        if not available.safe:
            return formatter.format_safety(available)

        deleted = {b.name: b for b in await self._git.deleted_branches()}
        branch = deleted.get(name)
        if branch is None:
            return formatter.format_error(f'No deleted branch "{name}" found in reflog.')

        result = await self._evaluator.evaluate(
            SafetyOperation.BRANCH_CREATE, name=new_name
        )
        stop = await self._gate(
            result, "Recover branch", f"  $ git checkout -b {new_name} {branch.hash[:7]}"
        )
        if stop:
            return stop

        error = await self._journaled(
            ActionType.RECOVER_BRANCH,
            f"Recover branch: {new_name}",
            lambda: self._git.recover_branch(new_name, branch.hash),
            can_undo=False,
        )
        return error or formatter.format_success(f'Recovered branch "{new_name}"')

    async def _fix_detached(self, name: str) -> str:
        if not name or len(name.split()) != 1:
            return "Usage: gitpanic fix-detached <branch>"

        result = await self._evaluator.evaluate(SafetyOperation.FIX_DETACHED_HEAD)
        if result.safe:
            result = await self._evaluator.evaluate(
                SafetyOperation.BRANCH_CREATE, name=name
            )
        info = await self._git.detached_head_info()
        details = f"HEAD is at {info.hash} {info.message}" if info else ""
        stop = await self._gate(result, "Create branch from detached HEAD", details)
        if stop:
            return stop

        error = await self._journaled(
            ActionType.CREATE_BRANCH,
            f"Create branch {name} from detached HEAD",
            lambda: self._git.create_branch(name),
            can_undo=False,
        )
        return error or formatter.format_success(f'Now on new branch "{name}"')

    async def _restore_file(self, args: str) -> str:
        tokens = args.split()
        if not tokens or len(tokens) > 2:
            return "Usage: gitpanic restore-file <path> [commit]"
        path = tokens[0]

        if len(tokens) == 2:
            source = tokens[1]
        else:
            deleted = [d for d in await self._git.deleted_files() if d.path == path]
            if not deleted:
                return formatter.format_error(
                    f"No recent deletion of {path} found; specify a commit."
                )
            # The deleting commit no longer has the file; restore from its parent.
            source = f"{deleted[0].hash}^"

        error = await self._journaled(
            ActionType.RESTORE_FILE,
            f"Restore {path} from {source}",
            lambda: self._git.restore_file(path, source),
            can_undo=False,
        )
        return error or formatter.format_success(f"Restored {path}")

    async def _stash(self, args: str) -> str:
        parts = args.split(None, 1)
        action = parts[0] if parts else "list"
        rest = parts[1].strip() if len(parts) > 1 else ""

        match action:
            case "list":
                return formatter.format_stashes(await self._git.stash_list())
            case "dropped":
                stashes = await self._git.dropped_stashes()
                return formatter.format_dropped_stashes(stashes)
            case "push":
                result = await self._evaluator.evaluate(SafetyOperation.STASH)
                if not result.safe:
                    return formatter.format_safety(result)
                if not await self._git.has_uncommitted_changes():
                    return formatter.format_error("No changes to stash.")
                error = await self._journaled(
                    ActionType.STASH_CREATE,
                    f"Create stash: {rest}" if rest else "Create stash",
                    lambda: self._git.create_stash(rest or None),
                    can_undo=False,
                )
                return error or formatter.format_success("Stash created")
            case "pop" | "apply" | "drop":
                return await self._stash_entry(action, rest)
            case "recover":
                if not rest:
                    return "Usage: gitpanic stash recover <hash>"
                error = await self._journaled(
                    ActionType.STASH_RECOVER,
                    f"Recover stash {rest[:7]}",
                    lambda: self._git.recover_stash(rest),
                    can_undo=False,
                )
                return error or formatter.format_success("Stash recovered")
            case _:
                return "Usage: gitpanic stash [list|push [msg]|pop [i]|apply [i]|drop [i]|dropped|recover <hash>]"

    async def _stash_entry(self, action: str, index_arg: str) -> str:
        if index_arg and not index_arg.isdigit():
            return f"Usage: gitpanic stash {action} [index]"
        index = int(index_arg) if index_arg else 0

        stashes = {s.index: s for s in await self._git.stash_list()}
        stash = stashes.get(index)
        if stash is None:
            return formatter.format_error(f"No stash@{{{index}}}.")

        if action == "drop":
            stop = await self._gate(
                Clear(),
                "Drop stash",
                f"stash@{{{index}}}: {stash.message}",
                dangerous=True,
            )
            if stop:
                return stop
            error = await self._journaled(
                ActionType.STASH_DROP,
                f"Drop stash@{{{index}}}: {stash.message}",
                lambda: self._git.drop_stash(index),
                can_undo=False,
            )
        elif action == "pop":
            error = await self._journaled(
                ActionType.STASH_POP,
                f"Pop stash@{{{index}}}: {stash.message}",
                lambda: self._git.pop_stash(index),
                can_undo=False,
            )
        else:
            error = await self._journaled(
                ActionType.STASH_APPLY,
                f"Apply stash@{{{index}}}: {stash.message}",
                lambda: self._git.apply_stash(index),
                can_undo=False,
            )
        return error or formatter.format_success(f"Stash {action} succeeded")

    async def _abort(self) -> str:
        state = await self._detector.detect_state()
        result = await self._evaluator.evaluate(SafetyOperation.ABORT, state=state)
        operation = state.ongoing_operation

        details_lines = [f"{(operation or 'operation').upper()} in progress"]
        if state.conflicted_files:
            details_lines.append(f"{len(state.conflicted_files)} file(s) have conflicts:")
            details_lines.extend(
                f"  ! {path}" for path in state.conflicted_files[:_MAX_LISTED_FILES]
            )
            if len(state.conflicted_files) > _MAX_LISTED_FILES:
                details_lines.append(
                    f"  ... and {len(state.conflicted_files) - _MAX_LISTED_FILES} more"
                )
        stop = await self._gate(
            result, f"Abort {operation}", "\n".join(details_lines), dangerous=True
        )
        if stop or operation is None:
            return stop or _CANCELLED

        error = await self._journaled(
            ActionType.ABORT_OPERATION,
            f"Abort {operation}",
            lambda: self._git.abort_operation(operation),
        )
        if error:
            return error
        return formatter.format_success(
            f"{operation} aborted. Repository is back to its original state."
        )

    async def _continue(self) -> str:
        operation = await self._git.ongoing_operation()
        if operation is None:
            return formatter.format_error("No ongoing Git operation to continue.")
        if operation == "bisect":
            return formatter.format_error("A bisect cannot be continued; abort it instead.")
        if await self._git.conflicted_files():
            return formatter.format_error("Cannot continue with unresolved conflicts.")

        error = await self._journaled(
            ActionType.CONTINUE_OPERATION,
            f"Continue {operation}",
            lambda: self._git.continue_operation(operation),
            can_undo=False,
        )
        return error or formatter.format_success(f"{operation} continued")

    async def _clean(self, paths: list[str]) -> str:
        result = await self._evaluator.evaluate(SafetyOperation.CLEAN)
        targets = paths or await self._git.clean_dry_run()
        details = "\n".join(f"  - {p}" for p in targets[:_MAX_LISTED_FILES])
        if len(targets) > _MAX_LISTED_FILES:
            details += f"\n  ... and {len(targets) - _MAX_LISTED_FILES} more"
        stop = await self._gate(result, "Clean untracked files", details, dangerous=True)
        if stop:
            return stop

        error = await self._journaled(
            ActionType.CLEAN_UNTRACKED,
            f"Clean {len(targets)} untracked file(s)",
            lambda: self._git.clean_untracked(paths or None),
            can_undo=False,
        )
        return error or formatter.format_success("Untracked files removed")

    async def _discard(self, paths: list[str]) -> str:
        result = await self._evaluator.evaluate(SafetyOperation.DISCARD)
        target = ", ".join(paths) if paths else "all files"
        stop = await self._gate(
            result, "Discard changes", f"Discarding changes in {target}", dangerous=True
        )
        if stop:
            return stop

        async def mutation() -> None:
            if not paths:
                await self._git.discard_all_changes()
                return
            for path in paths:
                await self._git.discard_file_changes(path)

        error = await self._journaled(
            ActionType.DISCARD_CHANGES,
            f"Discard changes in {target}",
            mutation,
            can_undo=False,
        )
        return error or formatter.format_success(f"Discarded changes in {target}")

    async def _unstage(self, paths: list[str]) -> str:
        result = await self._evaluator.evaluate(SafetyOperation.UNSTAGE)
        stop = await self._gate(result, "Unstage files")
        if stop:
            return stop

        async def mutation() -> None:
            if not paths:
                await self._git.unstage_all()
                return
            for path in paths:
                await self._git.unstage_file(path)

        target = ", ".join(paths) if paths else "all files"
        error = await self._journaled(
            ActionType.UNSTAGE_FILES,
            f"Unstage {target}",
            mutation,
            can_undo=False,
        )
        return error or formatter.format_success(f"Unstaged {target}")

    async def _add(self, args: str) -> str:
        if not args:
            return "Usage: gitpanic add <path>... | gitpanic add ."
        paths = args.split()
        if paths == ["."]:
            description = "Stage all changes"
        else:
            description = f"Stage {len(paths)} file(s)"

        async def mutation() -> None:
            if paths == ["."]:
                await self._git.stage_all()
            else:
                await self._git.stage_files(paths)

        error = await self._journaled(
            ActionType.STAGE_FILES, description, mutation, can_undo=False
        )
        return error or formatter.format_success(description)

    def _history(self, args: str) -> str:
        match args:
            case "--clear":
                self._journal.clear_history()
                return formatter.format_success("Action history cleared")
            case "--all":
                return formatter.format_history(self._journal.get_all_actions())
            case "--json":
                return dump_actions(self._journal.get_recent_actions(20))
            case "":
                return formatter.format_history(self._journal.get_recent_actions(20))
            case _:
                return "Usage: gitpanic history [--all|--json|--clear]"

    async def _undo_last(self) -> str:
        last = self._journal.get_last_undoable_action()
        if last is None:
            return formatter.format_error(
                "No undoable actions in history for this repository."
            )

        result = await self._evaluator.evaluate(SafetyOperation.UNDO_LAST)
        stop = await self._gate(
            result, "Undo last gitpanic action", formatter.format_undo_preview(last),
            dangerous=True,
        )
        if stop:
            return stop

        action = await self._journal.record_action(
            ActionType.UNDO_LAST_ACTION, f"Undo: {last.description}", can_undo=False
        )
        outcome = await self._journal.undo_last_action()
        if not outcome.success:
            return formatter.format_error(outcome.message)
        await self._journal.complete_action(action)
        return formatter.format_success(outcome.message)
