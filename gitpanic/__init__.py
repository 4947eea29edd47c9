"""gitpanic: guarded recovery operations for git repositories."""

__version__ = "0.1.0"
