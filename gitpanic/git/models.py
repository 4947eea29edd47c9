"""Data models for git query results."""

from typing import Literal

from pydantic import BaseModel, ConfigDict

OngoingOperation = Literal["merge", "rebase", "cherry-pick", "bisect"]
ResetMode = Literal["soft", "mixed", "hard"]


class CommitRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    hash: str
    message: str
    author: str
    date: str

    @property
    def short_hash(self) -> str:
        return self.hash[:7]

    @property
    def subject(self) -> str:
        return self.message.split("\n", 1)[0]


class RepoStatus(BaseModel):
    """Parsed output of git status. Only valid at the instant it was captured."""

    model_config = ConfigDict(frozen=True)

    current: str | None = None
    tracking: str | None = None
    staged: list[str] = []
    modified: list[str] = []
    untracked: list[str] = []
    conflicted: list[str] = []
    ahead: int = 0
    behind: int = 0


class ReflogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    hash: str
    action: str
    message: str


class StashEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int
    hash: str
    message: str


class DroppedStash(BaseModel):
    model_config = ConfigDict(frozen=True)

    hash: str
    message: str


class DeletedBranch(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    hash: str


class DeletedFile(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    hash: str
    message: str


class DetachedHeadInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    hash: str
    message: str


class DivergedCommits(BaseModel):
    """Commits only on the local branch vs. only on its upstream."""

    model_config = ConfigDict(frozen=True)

    local: list[CommitRef] = []
    remote: list[CommitRef] = []
