"""Shared exception types for gitpanic."""


class GitPanicError(Exception):
    """Base exception for all gitpanic errors."""


class ConfigError(GitPanicError):
    """Configuration is invalid or missing."""


class NotARepositoryError(GitPanicError):
    """The bound path is not inside a git repository."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Not a git repository: {path}")
        self.path = path


class GitCommandError(GitPanicError):
    """A mutating git command exited with a non-zero status."""

    def __init__(self, command: tuple[str, ...], returncode: int, stderr: str) -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr.strip()
        super().__init__(self.stderr or f"{' '.join(command)} exited with {returncode}")


class UnsupportedOperationError(GitPanicError):
    """The requested operation cannot be applied in the current repository state."""
