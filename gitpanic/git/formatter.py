"""Pure functions to format repository data for terminal display."""

from gitpanic.core.journal import RecordedAction
from gitpanic.core.safety.checks import SafetyCheckResult
from gitpanic.core.state import Issue, IssueSeverity, RepositoryState
from gitpanic.git.models import (
    CommitRef,
    DeletedBranch,
    DeletedFile,
    DivergedCommits,
    DroppedStash,
    StashEntry,
)

_SEVERITY_ICON = {
    IssueSeverity.ERROR: "❌",
    IssueSeverity.WARNING: "⚠️",
    IssueSeverity.INFO: "ℹ️",
}


def format_issue(issue: Issue) -> str:
    text = f"{_SEVERITY_ICON[issue.severity]} {issue.message}"
    if issue.suggestion:
        text += f"\n   → {issue.suggestion}"
    return text


def format_state(state: RepositoryState) -> str:
    """Format a RepositoryState snapshot for display."""
    if not state.is_repo:
        return "\n".join(format_issue(issue) for issue in state.issues)

    lines: list[str] = []
    branch = state.current_branch or "(detached HEAD)"
    branch_line = f"\U0001f4cb Branch: {branch}"
    status = state.status
    if status and status.tracking:
        parts = [f"tracking {status.tracking}"]
        if status.ahead:
            parts.append(f"{status.ahead} ahead")
        if status.behind:
            parts.append(f"{status.behind} behind")
        branch_line += f" ({', '.join(parts)})"
    lines.append(branch_line)

    if state.last_commit:
        commit = state.last_commit
        lines.append(f"\U0001f4cc Last commit: {commit.short_hash} {commit.subject}")

    if status:
        counts = [
            f"{len(status.staged)} staged",
            f"{len(status.modified)} modified",
            f"{len(status.untracked)} untracked",
        ]
        lines.append(f"\U0001f4c2 Files: {', '.join(counts)}")

    if state.has_stashes:
        lines.append(f"\U0001f4e6 Stashes: {state.stash_count}")

    if state.has_conflicts:
        lines.append(f"⚔️ Conflicts: {', '.join(state.conflicted_files)}")

    if state.issues:
        lines.append("")
        lines.extend(format_issue(issue) for issue in state.issues)
    else:
        lines.append("")
        lines.append("✨ Repository looks healthy")

    return "\n".join(lines)


def format_safety(result: SafetyCheckResult) -> str:
    """Describe blockers and warnings; empty when there is nothing to disclose."""
    lines: list[str] = []
    if result.blockers:
        lines.append("⛔ Cannot proceed:")
        lines.extend(f"  ✗ {blocker}" for blocker in result.blockers)
    if result.warnings:
        if lines:
            lines.append("")
        lines.append("⚠️ Warnings:")
        lines.extend(f"  • {warning}" for warning in result.warnings)
    return "\n".join(lines)


def format_commits(commits: list[CommitRef], max_entries: int = 10) -> str:
    if not commits:
        return "\U0001f4dc No commits found."
    lines = ["\U0001f4dc Recent commits:"]
    for commit in commits[:max_entries]:
        lines.append(f"  {commit.short_hash} {commit.subject}")
        lines.append(f"    {commit.author}, {commit.date}")
    return "\n".join(lines)


def format_diverged(diverged: DivergedCommits, tracking: str | None) -> str:
    if tracking is None:
        return "\U0001f310 Branch has no upstream to compare against."
    if not diverged.local and not diverged.remote:
        return f"\U0001f310 Up to date with {tracking}."
    lines = [f"\U0001f310 Compared with {tracking}:"]
    if diverged.local:
        lines.append(f"Only local ({len(diverged.local)}):")
        lines.extend(f"  ↑ {c.short_hash} {c.subject}" for c in diverged.local)
    if diverged.remote:
        lines.append(f"Only on remote ({len(diverged.remote)}):")
        lines.extend(f"  ↓ {c.short_hash} {c.subject}" for c in diverged.remote)
    return "\n".join(lines)


def format_stashes(stashes: list[StashEntry]) -> str:
    if not stashes:
        return "\U0001f4e6 No stashes."
    lines = ["\U0001f4e6 Stashes:"]
    for stash in stashes:
        lines.append(f"  stash@{{{stash.index}}} {stash.hash[:7]} {stash.message}")
    return "\n".join(lines)


def format_dropped_stashes(stashes: list[DroppedStash]) -> str:
    if not stashes:
        return "\U0001f50d No dropped stashes found in reflog."
    lines = ["\U0001f50d Dropped stashes:"]
    for stash in stashes:
        lines.append(f"  {stash.hash[:7]} {stash.message}")
    lines.append("")
    lines.append("Recover with: gitpanic stash recover <hash>")
    return "\n".join(lines)


def format_deleted_branches(branches: list[DeletedBranch]) -> str:
    if not branches:
        return "\U0001f33f No recently deleted branches found in reflog."
    lines = ["\U0001f33f Recently deleted branches:"]
    for branch in branches:
        lines.append(f"  {branch.name} ({branch.hash[:7]})")
    lines.append("")
    lines.append("Recover with: gitpanic recover-branch <name> [new-name]")
    return "\n".join(lines)


def format_deleted_files(files: list[DeletedFile], max_entries: int = 20) -> str:
    if not files:
        return "\U0001f5d1 No deleted files found in recent history."
    lines = ["\U0001f5d1 Deleted files:"]
    for deleted in files[:max_entries]:
        lines.append(f"  {deleted.path}  ({deleted.hash[:7]} {deleted.message})")
    if len(files) > max_entries:
        lines.append(f"\n... and {len(files) - max_entries} more")
    lines.append("")
    lines.append("Restore with: gitpanic restore-file <path>")
    return "\n".join(lines)


def format_history(actions: list[RecordedAction]) -> str:
    if not actions:
        return "No gitpanic actions recorded for this repository."

    lines = ["\U0001f4dc gitpanic action history:"]
    for action in actions:
        timestamp = action.timestamp.astimezone().strftime("%Y-%m-%d %H:%M:%S")
        line = f"  {action.id[:8]} {action.description}  {timestamp}"
        if action.is_undoable:
            line += "  [undoable]"
        elif action.status.value != "completed":
            line += f"  [{action.status.value}]"
        lines.append(line)
        if action.after_state:
            lines.append(
                f"    {action.before_state.head_hash[:7]} → "
                f"{action.after_state.head_hash[:7]}"
            )
    return "\n".join(lines)


def format_undo_preview(action: RecordedAction) -> str:
    branch = action.before_state.branch or "detached HEAD"
    lines = [
        f"Last action: {action.description}",
        f"Recorded: {action.timestamp.astimezone().strftime('%Y-%m-%d %H:%M:%S')}",
    ]
    if action.undo:
        lines.append(
            f"This will reset to {action.before_state.head_hash[:7]} on {branch}"
        )
        lines.append(f"  $ {action.undo.command}")
    return "\n".join(lines)


def format_success(message: str) -> str:
    return f"✅ {message}"


def format_error(message: str) -> str:
    return f"❌ {message}"


def format_help() -> str:
    """Return help text listing all subcommands."""
    return (
        "\U0001f6e0 gitpanic commands:\n"
        "\n"
        "gitpanic status — Show repository state and issues\n"
        "gitpanic log [N] — Show the last N commits\n"
        "gitpanic file-history <path> — Commits that touched a file\n"
        "gitpanic diverged — Commits only local or only on the upstream\n"
        "gitpanic undo [N] [--soft|--mixed|--hard] — Undo the last N commits\n"
        "gitpanic fix-message <msg> — Reword the last commit\n"
        "gitpanic amend [msg] — Add staged changes to the last commit\n"
        "gitpanic squash <N> <msg> — Squash the last N commits\n"
        "gitpanic branches — List recently deleted branches\n"
        "gitpanic recover-branch <name> [new-name] — Recover a deleted branch\n"
        "gitpanic fix-detached <branch> — Save a detached HEAD on a new branch\n"
        "gitpanic files — List recently deleted files\n"
        "gitpanic restore-file <path> [commit] — Restore a file\n"
        "gitpanic stash [list|push|pop|apply|drop|dropped|recover] — Stash tools\n"
        "gitpanic abort — Abort an in-progress merge/rebase/cherry-pick/bisect\n"
        "gitpanic continue — Continue an in-progress merge/rebase/cherry-pick\n"
        "gitpanic clean [paths] — Delete untracked files\n"
        "gitpanic discard [paths] — Discard working tree changes\n"
        "gitpanic unstage [paths] — Unstage files\n"
        "gitpanic add [paths|.] — Stage files\n"
        "gitpanic history [--all|--json|--clear] — Show recorded gitpanic actions\n"
        "gitpanic undo-last — Undo the last gitpanic action\n"
        "gitpanic help — This message"
    )
