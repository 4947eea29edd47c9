"""Async accessor for git CLI queries and mutations, bound to one repository."""

import asyncio
import contextlib
import re
from pathlib import Path

import structlog

from gitpanic.exceptions import (
    GitCommandError,
    NotARepositoryError,
    UnsupportedOperationError,
)
from gitpanic.git.models import (
    CommitRef,
    DeletedBranch,
    DeletedFile,
    DetachedHeadInfo,
    DivergedCommits,
    DroppedStash,
    OngoingOperation,
    ReflogEntry,
    RepoStatus,
    ResetMode,
    StashEntry,
)

logger = structlog.get_logger()

_DEFAULT_TIMEOUT = 30
_LOG_DELIMITER = "||"
_COMMIT_FORMAT = _LOG_DELIMITER.join(("%H", "%an", "%aI", "%s"))

_CHECKOUT_FROM_RE = re.compile(r"checkout: moving from (\S+) to")
_STASH_REF_RE = re.compile(r"stash@\{(\d+)\}")
_REFLOG_ACTION_RE = re.compile(r"^([\w-]+)")
_SHA_RE = re.compile(r"^[0-9a-f]{7,40}$")

# Checked in order; the first marker present wins.
_OPERATION_MARKERS: tuple[tuple[OngoingOperation, tuple[str, ...]], ...] = (
    ("merge", ("MERGE_HEAD",)),
    ("rebase", ("rebase-merge", "rebase-apply")),
    ("cherry-pick", ("CHERRY_PICK_HEAD",)),
    ("bisect", ("BISECT_LOG",)),
)

_ABORT_ARGS: dict[str, tuple[str, ...]] = {
    "merge": ("merge", "--abort"),
    "rebase": ("rebase", "--abort"),
    "cherry-pick": ("cherry-pick", "--abort"),
    "bisect": ("bisect", "reset"),
}

_CONTINUE_ARGS: dict[str, tuple[str, ...]] = {
    "merge": ("-c", "core.editor=true", "merge", "--continue"),
    "rebase": ("-c", "core.editor=true", "rebase", "--continue"),
    "cherry-pick": ("-c", "core.editor=true", "cherry-pick", "--continue"),
}


class GitAccessor:
    """Async wrapper for git CLI operations.

    Read queries are best-effort and return an empty or default value when git
    fails. ``is_repo`` is the only precondition check. Mutations raise
    ``GitCommandError`` carrying git's own error output.
    """

    def __init__(
        self, repo_path: Path | str, *, timeout: int = _DEFAULT_TIMEOUT
    ) -> None:
        self.repo_path = Path(repo_path).expanduser().resolve()
        self._timeout = timeout

    # ── Queries ──────────────────────────────────────────────────────

    async def is_repo(self) -> bool:
        """Check if the bound path is inside a git repository."""
        code, _, _ = await self._run("rev-parse", "--git-dir")
        return code == 0

    async def ensure_repo(self) -> None:
        if not await self.is_repo():
            raise NotARepositoryError(str(self.repo_path))

    async def status(self) -> RepoStatus:
        """Parse git status --porcelain=v2 --branch into RepoStatus."""
        code, stdout, _ = await self._run("status", "--porcelain=v2", "--branch")
        if code != 0:
            return RepoStatus()

        current: str | None = None
        tracking = None
        ahead = 0
        behind = 0
        staged: list[str] = []
        modified: list[str] = []
        untracked: list[str] = []
        conflicted: list[str] = []

        for line in stdout.splitlines():
            if line.startswith("# branch.head "):
                head = line.split(" ", 2)[2]
                current = None if head == "(detached)" else head
            elif line.startswith("# branch.upstream "):
                tracking = line.split(" ", 2)[2]
            elif line.startswith("# branch.ab "):
                for part in line.split(" ")[2:]:
                    if part.startswith("+"):
                        ahead = int(part[1:])
                    elif part.startswith("-"):
                        behind = int(part[1:])
            elif line.startswith("1 ") or line.startswith("2 "):
                # Type 1: "1 XY sub mH mI mW hH hI path"
                # Type 2: "2 XY sub mH mI mW hH hI Xscore path\torigPath"
                max_split = 9 if line.startswith("2 ") else 8
                parts = line.split(" ", max_split)
                if len(parts) < max_split + 1:
                    continue
                xy = parts[1]
                path = parts[max_split].split("\t")[0]
                if xy[:1] not in ("", "."):
                    staged.append(path)
                if xy[1:2] not in ("", "."):
                    modified.append(path)
            elif line.startswith("u "):
                parts = line.split(" ", 10)
                if len(parts) >= 11:
                    conflicted.append(parts[10])
            elif line.startswith("? "):
                untracked.append(line[2:])

        return RepoStatus(
            current=current,
            tracking=tracking,
            staged=staged,
            modified=modified,
            untracked=untracked,
            conflicted=conflicted,
            ahead=ahead,
            behind=behind,
        )

    async def recent_commits(self, count: int = 10) -> list[CommitRef]:
        code, stdout, _ = await self._run(
            "log", f"-n{count}", f"--format={_COMMIT_FORMAT}"
        )
        if code != 0:
            return []
        return _parse_commits(stdout)

    async def last_commit(self) -> CommitRef | None:
        commits = await self.recent_commits(1)
        return commits[0] if commits else None

    async def current_branch(self) -> str | None:
        """Name of the checked-out branch, or None when detached or unborn."""
        code, stdout, _ = await self._run("rev-parse", "--abbrev-ref", "HEAD")
        if code != 0:
            return None
        name = stdout.strip()
        return None if not name or name == "HEAD" else name

    async def branches(self) -> list[str]:
        """Local branch names."""
        code, stdout, _ = await self._run("branch", "--format=%(refname:short)")
        if code != 0:
            return []
        return [line.strip() for line in stdout.splitlines() if line.strip()]

    async def head_hash(self) -> str:
        code, stdout, _ = await self._run("rev-parse", "HEAD")
        return stdout.strip() if code == 0 else ""

    async def reflog(self, count: int = 50) -> list[ReflogEntry]:
        """Newest-first reflog entries for HEAD."""
        code, stdout, _ = await self._run(
            "reflog", f"--format=%H{_LOG_DELIMITER}%gs", f"-n{count}"
        )
        if code != 0:
            return []

        entries: list[ReflogEntry] = []
        for line in stdout.splitlines():
            if not line.strip():
                continue
            commit_hash, _, message = line.partition(_LOG_DELIMITER)
            match = _REFLOG_ACTION_RE.match(message)
            entries.append(
                ReflogEntry(
                    hash=commit_hash,
                    action=match.group(1) if match else "unknown",
                    message=message,
                )
            )
        return entries

    async def has_uncommitted_changes(self) -> bool:
        status = await self.status()
        return bool(status.staged or status.modified or status.conflicted)

    async def has_staged_changes(self) -> bool:
        status = await self.status()
        return bool(status.staged)

    async def has_remote(self) -> bool:
        code, stdout, _ = await self._run("remote")
        return code == 0 and bool(stdout.strip())

    async def is_pushed(self, commit_hash: str) -> bool:
        """True iff the commit is reachable from a remote-tracking ref."""
        code, stdout, _ = await self._run("branch", "-r", "--contains", commit_hash)
        return code == 0 and bool(stdout.strip())

    async def is_detached_head(self) -> bool:
        code, stdout, _ = await self._run("rev-parse", "--abbrev-ref", "HEAD")
        return code == 0 and stdout.strip() == "HEAD"

    async def detached_head_info(self) -> DetachedHeadInfo | None:
        if not await self.is_detached_head():
            return None
        head = await self.head_hash()
        last = await self.last_commit()
        return DetachedHeadInfo(
            hash=head[:7], message=last.subject if last else "Unknown commit"
        )

    async def ongoing_operation(self) -> OngoingOperation | None:
        """Detect merge/rebase/cherry-pick/bisect from markers in the git dir."""
        code, stdout, _ = await self._run("rev-parse", "--git-dir")
        if code != 0:
            return None
        git_dir = self.repo_path / stdout.strip()
        for operation, markers in _OPERATION_MARKERS:
            if any((git_dir / marker).exists() for marker in markers):
                return operation
        return None

    async def conflicted_files(self) -> list[str]:
        code, stdout, _ = await self._run("diff", "--name-only", "--diff-filter=U")
        if code != 0:
            return []
        return [line for line in stdout.splitlines() if line.strip()]

    async def stash_list(self) -> list[StashEntry]:
        code, stdout, _ = await self._run(
            "stash", "list", f"--format=%gd{_LOG_DELIMITER}%H{_LOG_DELIMITER}%s"
        )
        if code != 0:
            return []

        stashes: list[StashEntry] = []
        for line in stdout.splitlines():
            parts = line.split(_LOG_DELIMITER, 2)
            if len(parts) != 3:
                continue
            ref, commit_hash, message = parts
            match = _STASH_REF_RE.search(ref)
            stashes.append(
                StashEntry(
                    index=int(match.group(1)) if match else 0,
                    hash=commit_hash,
                    message=message or "No message",
                )
            )
        return stashes

    async def dropped_stashes(self, max_entries: int = 100) -> list[DroppedStash]:
        """Dropped stashes found in the reflog, newest first, one per description."""
        dropped: list[DroppedStash] = []
        seen: set[str] = set()
        for entry in await self.reflog(max_entries):
            if "stash" not in entry.message or "drop" not in entry.message:
                continue
            match = re.search(r": (.+)$", entry.message)
            description = match.group(1) if match else "Unknown stash"
            if description in seen:
                continue
            seen.add(description)
            dropped.append(DroppedStash(hash=entry.hash, message=description))
        return dropped

    async def deleted_branches(self, max_entries: int = 100) -> list[DeletedBranch]:
        """Branches that were checked out recently but no longer exist.

        The reflog is scanned newest-first; each name is reported once, at its
        most recent checkout. The tip is the HEAD value before that checkout,
        which is the next older reflog entry.
        """
        entries = await self.reflog(max_entries)
        existing = set(await self.branches())
        seen: set[str] = set()
        deleted: list[DeletedBranch] = []

        for idx, entry in enumerate(entries):
            match = _CHECKOUT_FROM_RE.search(entry.message)
            if not match:
                continue
            name = match.group(1)
            if name in seen:
                continue
            seen.add(name)
            # Detached checkouts record a commit hash, not a branch name
            if name in existing or _SHA_RE.match(name):
                continue
            if idx + 1 >= len(entries):
                continue
            deleted.append(DeletedBranch(name=name, hash=entries[idx + 1].hash))
        return deleted

    async def commits_between(
        self, base_ref: str, head_ref: str = "HEAD"
    ) -> list[CommitRef]:
        code, stdout, _ = await self._run(
            "log", f"--format={_COMMIT_FORMAT}", f"{base_ref}..{head_ref}"
        )
        if code != 0:
            return []
        return _parse_commits(stdout)

    async def file_history(self, path: str, count: int = 20) -> list[CommitRef]:
        code, stdout, _ = await self._run(
            "log", f"-n{count}", f"--format={_COMMIT_FORMAT}", "--", path
        )
        if code != 0:
            return []
        return _parse_commits(stdout)

    async def deleted_files(self, count: int = 50) -> list[DeletedFile]:
        """Files removed by recent commits, paired with the deleting commit."""
        code, stdout, _ = await self._run(
            "log",
            "--diff-filter=D",
            "--name-only",
            f"--format=%H{_LOG_DELIMITER}%s",
            f"-n{count}",
        )
        if code != 0:
            return []

        deleted: list[DeletedFile] = []
        current_hash = ""
        current_message = ""
        for line in stdout.splitlines():
            if not line.strip():
                continue
            if _LOG_DELIMITER in line:
                current_hash, _, current_message = line.partition(_LOG_DELIMITER)
            elif current_hash:
                deleted.append(
                    DeletedFile(path=line, hash=current_hash, message=current_message)
                )
        return deleted

    async def untracked_files(self) -> list[str]:
        status = await self.status()
        return status.untracked

    async def clean_dry_run(self) -> list[str]:
        code, stdout, _ = await self._run("clean", "-n", "-d")
        if code != 0:
            return []
        return [
            line.removeprefix("Would remove ")
            for line in stdout.splitlines()
            if line.strip()
        ]

    async def diverged_commits(self) -> DivergedCommits:
        status = await self.status()
        if not status.tracking:
            return DivergedCommits()
        local = (
            await self.commits_between(status.tracking, "HEAD") if status.ahead else []
        )
        remote = (
            await self.commits_between("HEAD", status.tracking)
            if status.behind
            else []
        )
        return DivergedCommits(local=local, remote=remote)

    # ── Mutations ────────────────────────────────────────────────────

    async def reset(self, mode: ResetMode, ref: str = "HEAD~1") -> None:
        await self._mutate("reset", f"--{mode}", ref)

    async def hard_reset(self, ref: str = "HEAD~1") -> None:
        await self.reset("hard", ref)

    async def undo_commits(self, mode: ResetMode, count: int = 1) -> None:
        """Reset HEAD back by count commits.

        Undoing the whole history of a branch leaves it unborn, which a plain
        `reset HEAD~N` cannot express since that revision does not exist.
        """
        code, _, _ = await self._run("rev-parse", "--verify", "-q", f"HEAD~{count}")
        if code == 0 or not await self._is_whole_history(count):
            await self.reset(mode, f"HEAD~{count}")
            return

        if await self.current_branch() is None:
            raise GitCommandError(
                ("git", "update-ref", "-d", "HEAD"),
                1,
                "Cannot undo the root commit in detached HEAD state",
            )
        if mode == "hard":
            await self._mutate("rm", "-r", "-f", "-q", "--ignore-unmatch", "--", ":/")
        await self._mutate("update-ref", "-d", "HEAD")
        if mode == "mixed":
            await self._mutate("read-tree", "--empty")

    async def _is_whole_history(self, count: int) -> bool:
        code, stdout, _ = await self._run("rev-list", "--count", "HEAD")
        return code == 0 and stdout.strip() == str(count)

    async def amend_message(self, message: str) -> None:
        await self._mutate("commit", "--amend", "-m", message)

    async def amend_commit(self, message: str | None = None) -> None:
        """Fold staged changes into the last commit."""
        if message:
            await self._mutate("commit", "--amend", "-m", message)
        else:
            await self._mutate("commit", "--amend", "--no-edit")

    async def stage_files(self, paths: list[str]) -> None:
        await self._mutate("add", "--", *paths)

    async def stage_all(self) -> None:
        await self._mutate("add", "-A")

    async def create_branch(self, name: str) -> None:
        await self._mutate("checkout", "-b", name)

    async def recover_branch(self, name: str, commit_hash: str) -> None:
        await self._mutate("checkout", "-b", name, commit_hash)

    async def abort_operation(self, operation: OngoingOperation) -> None:
        await self._mutate(*_ABORT_ARGS[operation])

    async def continue_operation(self, operation: OngoingOperation) -> None:
        args = _CONTINUE_ARGS.get(operation)
        if args is None:
            raise UnsupportedOperationError(f"Cannot continue a {operation}")
        await self._mutate(*args)

    async def create_stash(self, message: str | None = None) -> None:
        if message:
            await self._mutate("stash", "push", "-m", message)
        else:
            await self._mutate("stash", "push")

    async def apply_stash(self, index: int = 0) -> None:
        await self._mutate("stash", "apply", f"stash@{{{index}}}")

    async def pop_stash(self, index: int = 0) -> None:
        await self._mutate("stash", "pop", f"stash@{{{index}}}")

    async def drop_stash(self, index: int) -> None:
        await self._mutate("stash", "drop", f"stash@{{{index}}}")

    async def recover_stash(
        self, commit_hash: str, message: str = "Recovered stash"
    ) -> None:
        await self._mutate("stash", "store", "-m", message, commit_hash)

    async def restore_file(self, path: str, commit_hash: str) -> None:
        await self._mutate("checkout", commit_hash, "--", path)

    async def unstage_file(self, path: str) -> None:
        await self._mutate("reset", "HEAD", "--", path)

    async def unstage_all(self) -> None:
        await self._mutate("reset", "HEAD")

    async def discard_file_changes(self, path: str) -> None:
        await self._mutate("checkout", "--", path)

    async def discard_all_changes(self) -> None:
        await self._mutate("checkout", "--", ".")

    async def clean_untracked(self, files: list[str] | None = None) -> None:
        if files:
            await self._mutate("clean", "-f", "--", *files)
        else:
            await self._mutate("clean", "-f", "-d")

    async def squash_commits(self, count: int, message: str) -> None:
        await self.undo_commits("soft", count)
        await self._mutate("commit", "-m", message)

    # ── Process plumbing ─────────────────────────────────────────────

    async def _mutate(self, *args: str) -> str:
        """Run a mutating command; raise GitCommandError on failure."""
        code, stdout, stderr = await self._run(*args)
        if code != 0:
            logger.warning(
                "git_mutation_failed", command=args, code=code, stderr=stderr.strip()
            )
            raise GitCommandError(("git", *args), code, stderr or stdout)
        logger.info("git_mutation", command=args, cwd=str(self.repo_path))
        return stdout

    async def _run(self, *args: str) -> tuple[int, str, str]:
        """Execute a git command via asyncio.create_subprocess_exec."""
        cwd = self.repo_path
        if not cwd.is_dir():
            return 1, "", f"Directory does not exist: {cwd}"

        cmd = ("git", *args)
        logger.debug("git_exec", command=cmd, cwd=str(cwd))

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                proc.communicate(), timeout=self._timeout
            )
            stdout = stdout_bytes.decode("utf-8", errors="replace")
            stderr = stderr_bytes.decode("utf-8", errors="replace")
            return proc.returncode or 0, stdout, stderr
        except TimeoutError:
            logger.warning("git_exec_timeout", command=cmd, timeout=self._timeout)
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            return 1, "", f"Command timed out after {self._timeout}s"
        except FileNotFoundError:
            return 1, "", "git is not installed or not in PATH"
        except OSError as e:
            logger.error("git_exec_error", command=cmd, error=str(e))
            return 1, "", str(e)


def _parse_commits(stdout: str) -> list[CommitRef]:
    commits: list[CommitRef] = []
    for line in stdout.splitlines():
        parts = line.split(_LOG_DELIMITER, 3)
        if len(parts) != 4:
            continue
        commits.append(
            CommitRef(hash=parts[0], author=parts[1], date=parts[2], message=parts[3])
        )
    return commits
