"""Tests for GitPanicConfig."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from gitpanic.core.config import GitPanicConfig, ensure_config_dir
from gitpanic.exceptions import ConfigError


class TestGitPanicConfig:
    def test_default_values(self):
        config = GitPanicConfig()
        assert config.confirm_dangerous_actions is True
        assert config.max_action_history == 50
        assert config.verbose is False
        assert config.log_level == "WARNING"
        assert config.config_dir == Path("~/.gitpanic").expanduser()

    def test_derived_paths(self, tmp_path):
        config = GitPanicConfig(config_dir=tmp_path)
        assert config.history_file == tmp_path / "history.json"
        assert config.config_file == tmp_path / "config.json"

    def test_verbose_forces_debug(self):
        assert GitPanicConfig(verbose=True).effective_log_level == "DEBUG"
        assert GitPanicConfig().effective_log_level == "WARNING"

    def test_history_must_be_positive(self):
        with pytest.raises(ValueError, match="at least 1"):
            GitPanicConfig(max_action_history=0)

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("GITPANIC_MAX_ACTION_HISTORY", "7")
        monkeypatch.setenv("GITPANIC_CONFIRM_DANGEROUS_ACTIONS", "false")
        config = GitPanicConfig()
        assert config.max_action_history == 7
        assert config.confirm_dangerous_actions is False


class TestLoad:
    def test_missing_file_uses_defaults(self, tmp_path):
        config = GitPanicConfig.load(tmp_path)
        assert config.config_dir == tmp_path
        assert config.max_action_history == 50

    def test_file_keys_are_camel_case(self, tmp_path):
        (tmp_path / "config.json").write_text(
            json.dumps(
                {
                    "confirmDangerousActions": False,
                    "maxActionHistory": 10,
                    "verbose": True,
                    "somethingElse": 1,
                }
            )
        )
        config = GitPanicConfig.load(tmp_path)
        assert config.confirm_dangerous_actions is False
        assert config.max_action_history == 10
        assert config.verbose is True

    def test_invalid_env_raises_config_error(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GITPANIC_MAX_ACTION_HISTORY", "zero")
        with pytest.raises(ConfigError):
            GitPanicConfig.load(tmp_path)

    def test_corrupt_file_ignored(self, tmp_path):
        (tmp_path / "config.json").write_text("{oops")
        assert GitPanicConfig.load(tmp_path).max_action_history == 50

    def test_invalid_values_ignored(self, tmp_path):
        (tmp_path / "config.json").write_text(json.dumps({"maxActionHistory": 0}))
        assert GitPanicConfig.load(tmp_path).max_action_history == 50

    def test_invalid_key_keeps_valid_keys(self, tmp_path):
        (tmp_path / "config.json").write_text(
            json.dumps(
                {
                    "maxActionHistory": 0,
                    "verbose": True,
                    "confirmDangerousActions": False,
                }
            )
        )
        config = GitPanicConfig.load(tmp_path)
        assert config.max_action_history == 50
        assert config.verbose is True
        assert config.confirm_dangerous_actions is False

    def test_save_round_trips_through_load(self, tmp_path):
        target = tmp_path / "nested"
        GitPanicConfig(config_dir=target, max_action_history=5).save()
        stored = json.loads((target / "config.json").read_text())
        assert stored == {
            "confirmDangerousActions": True,
            "maxActionHistory": 5,
            "verbose": False,
        }
        assert GitPanicConfig.load(target).max_action_history == 5


def test_ensure_config_dir_creates_parents(tmp_path):
    target = tmp_path / "a" / "b"
    assert ensure_config_dir(target) == target
    assert target.is_dir()
