"""Tests for the bootstrap functions."""

from __future__ import annotations

import logging

import pytest
import structlog

from gitpanic.app import build_handler, configure_logging
from gitpanic.core.config import GitPanicConfig
from gitpanic.git.handler import RecoveryCommandHandler


class _NoConfirm:
    async def confirm(self, title, details="", warnings=None):
        return False


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    level, handlers = root.level, root.handlers[:]
    yield
    root.setLevel(level)
    root.handlers[:] = handlers
    structlog.reset_defaults()


class TestBuildHandler:
    def test_returns_wired_handler(self, config, tmp_path):
        handler = build_handler(_NoConfirm(), config, tmp_path)
        assert isinstance(handler, RecoveryCommandHandler)
        assert handler._git.repo_path == tmp_path.resolve()
        assert handler._journal._path == config.history_file

    def test_journal_uses_configured_limit(self, tmp_path):
        config = GitPanicConfig(config_dir=tmp_path, max_action_history=3)
        handler = build_handler(_NoConfirm(), config, tmp_path)
        assert handler._journal._max_entries == 3

    def test_confirmation_setting_passed_through(self, tmp_path):
        config = GitPanicConfig(config_dir=tmp_path, confirm_dangerous_actions=False)
        handler = build_handler(_NoConfirm(), config, tmp_path)
        assert handler._confirm_dangerous is False


class TestConfigureLogging:
    def test_default_level(self, restore_logging):
        configure_logging(GitPanicConfig())
        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1

    def test_verbose_enables_debug(self, restore_logging):
        configure_logging(GitPanicConfig(verbose=True))
        assert logging.getLogger().level == logging.DEBUG
