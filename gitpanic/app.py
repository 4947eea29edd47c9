"""Bootstrap: wires all components together."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from gitpanic.core.config import GitPanicConfig
from gitpanic.core.journal import ActionJournal
from gitpanic.core.safety.checks import SafetyEvaluator
from gitpanic.core.state import StateDetector
from gitpanic.git.handler import RecoveryCommandHandler
from gitpanic.git.service import GitAccessor

if TYPE_CHECKING:
    from gitpanic.git.handler import Confirmer

logger = structlog.get_logger()


def configure_logging(config: GitPanicConfig) -> None:
    """Set up structlog with console output on stderr."""
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    root_logger = logging.getLogger()
    root_logger.setLevel(config.effective_log_level)
    root_logger.handlers.clear()

    # stdout carries command output only
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(),
        )
    )
    root_logger.addHandler(console_handler)

    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def build_handler(
    confirmer: Confirmer,
    config: GitPanicConfig | None = None,
    repo_path: Path | str = ".",
) -> RecoveryCommandHandler:
    if config is None:
        config = GitPanicConfig.load()

    accessor = GitAccessor(repo_path)
    journal = ActionJournal(
        accessor, config.history_file, max_entries=config.max_action_history
    )

    logger.debug(
        "handler_building",
        repo=str(accessor.repo_path),
        history_file=str(config.history_file),
        confirm_dangerous_actions=config.confirm_dangerous_actions,
    )

    return RecoveryCommandHandler(
        accessor,
        StateDetector(accessor),
        SafetyEvaluator(accessor),
        journal,
        confirmer,
        confirm_dangerous_actions=config.confirm_dangerous_actions,
    )
