"""Unified configuration via pydantic-settings plus the per-user config file."""

import json
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gitpanic.exceptions import ConfigError

logger = structlog.get_logger()

DEFAULT_CONFIG_DIR = Path("~/.gitpanic")
CONFIG_FILE_NAME = "config.json"
HISTORY_FILE_NAME = "history.json"

# Keys accepted in config.json, mapped to settings fields.
_FILE_KEYS = {
    "confirmDangerousActions": "confirm_dangerous_actions",
    "maxActionHistory": "max_action_history",
    "verbose": "verbose",
}


class GitPanicConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="GITPANIC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    confirm_dangerous_actions: bool = True
    max_action_history: int = 50
    verbose: bool = False

    # Logging
    log_level: str = "WARNING"

    # Storage
    config_dir: Path = DEFAULT_CONFIG_DIR

    @field_validator("config_dir")
    @classmethod
    def expand_config_dir(cls, v: Path) -> Path:
        return v.expanduser()

    @field_validator("max_action_history")
    @classmethod
    def positive_history(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_action_history must be at least 1")
        return v

    @property
    def history_file(self) -> Path:
        return self.config_dir / HISTORY_FILE_NAME

    @property
    def config_file(self) -> Path:
        return self.config_dir / CONFIG_FILE_NAME

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.verbose else self.log_level

    @classmethod
    def load(cls, config_dir: Path | None = None) -> "GitPanicConfig":
        """Build settings from env, then overlay known keys from config.json.

        A missing or unreadable config file is ignored and the built-in
        defaults apply. Keys with invalid values are dropped and the
        remaining keys still apply. Invalid environment settings raise
        ConfigError.
        """
        try:
            base = cls() if config_dir is None else cls(config_dir=config_dir)
        except ValidationError as e:
            raise ConfigError(str(e)) from e
        overrides = _read_config_file(base.config_file)
        if not overrides:
            return base
        try:
            return cls(config_dir=base.config_dir, **overrides)
        except ValidationError as e:
            invalid = {str(err["loc"][0]) for err in e.errors() if err["loc"]}
            logger.debug(
                "config_file_invalid",
                path=str(base.config_file),
                fields=sorted(invalid),
                error=str(e),
            )
        valid = {k: v for k, v in overrides.items() if k not in invalid}
        try:
            return cls(config_dir=base.config_dir, **valid)
        except ValidationError:
            return base

    def save(self) -> None:
        """Persist the user-facing fields to config.json."""
        ensure_config_dir(self.config_dir)
        data = {key: getattr(self, field) for key, field in _FILE_KEYS.items()}
        try:
            self.config_file.write_text(json.dumps(data, indent=2))
        except OSError as e:
            logger.error("config_save_failed", path=str(self.config_file), error=str(e))


def ensure_config_dir(config_dir: Path) -> Path:
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as e:
        logger.debug("config_file_unreadable", path=str(path), error=str(e))
        return {}
    if not isinstance(data, dict):
        return {}
    return {field: data[key] for key, field in _FILE_KEYS.items() if key in data}
