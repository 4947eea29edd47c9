"""Shared fixtures for testing."""

from __future__ import annotations

import os
from unittest.mock import AsyncMock

import pytest

from gitpanic.core.config import GitPanicConfig
from gitpanic.git.models import DivergedCommits, RepoStatus
from gitpanic.git.service import GitAccessor


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Prevent .env file and shell env from leaking into tests."""
    monkeypatch.setitem(GitPanicConfig.model_config, "env_file", None)
    for key in list(os.environ):
        if key.startswith("GITPANIC_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def accessor(tmp_path):
    """GitAccessor double with benign defaults for every query."""
    git = AsyncMock(spec=GitAccessor)
    git.repo_path = tmp_path
    git.is_repo.return_value = True
    git.head_hash.return_value = "a" * 40
    git.current_branch.return_value = "main"
    git.status.return_value = RepoStatus(current="main")
    git.recent_commits.return_value = []
    git.last_commit.return_value = None
    git.branches.return_value = ["main"]
    git.reflog.return_value = []
    git.has_uncommitted_changes.return_value = False
    git.has_staged_changes.return_value = False
    git.has_remote.return_value = False
    git.is_pushed.return_value = False
    git.is_detached_head.return_value = False
    git.ongoing_operation.return_value = None
    git.conflicted_files.return_value = []
    git.stash_list.return_value = []
    git.dropped_stashes.return_value = []
    git.deleted_branches.return_value = []
    git.deleted_files.return_value = []
    git.untracked_files.return_value = []
    git.clean_dry_run.return_value = []
    git.file_history.return_value = []
    git.detached_head_info.return_value = None
    git.diverged_commits.return_value = DivergedCommits()
    return git


@pytest.fixture
def config(tmp_path):
    return GitPanicConfig(config_dir=tmp_path / ".gitpanic")
