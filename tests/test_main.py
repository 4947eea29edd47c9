"""Tests for gitpanic.main: CLI entry point logic."""

from unittest.mock import AsyncMock, patch

import pytest

from gitpanic.exceptions import ConfigError
from gitpanic.main import TerminalConfirmer, main


@pytest.fixture
def mock_handler():
    handler = AsyncMock()
    handler.handle_command = AsyncMock(return_value="✅ done")
    return handler


def _patched_main(config, handler):
    return (
        patch("gitpanic.main.GitPanicConfig.load", return_value=config),
        patch("gitpanic.main.configure_logging"),
        patch("gitpanic.main.build_handler", return_value=handler),
    )


class TestMain:
    async def test_config_error_exits(self, capsys):
        with (
            patch("gitpanic.main.GitPanicConfig.load", side_effect=ConfigError("bad")),
            pytest.raises(SystemExit) as exc_info,
        ):
            await main([])
        assert exc_info.value.code == 1
        assert "Configuration error: bad" in capsys.readouterr().err

    async def test_joins_arguments(self, config, mock_handler, capsys):
        load, logging_patch, build = _patched_main(config, mock_handler)
        with load, logging_patch, build:
            await main(["fix-message", "new", "words"])
        mock_handler.handle_command.assert_awaited_once_with("fix-message new words")
        assert capsys.readouterr().out.strip() == "✅ done"

    async def test_error_response_exits_nonzero(self, config, mock_handler):
        mock_handler.handle_command.return_value = "❌ Not a git repository."
        load, logging_patch, build = _patched_main(config, mock_handler)
        with load, logging_patch, build, pytest.raises(SystemExit) as exc_info:
            await main(["status"])
        assert exc_info.value.code == 1


class TestTerminalConfirmer:
    async def test_yes(self, capsys):
        with patch("builtins.input", return_value="y"):
            assert await TerminalConfirmer().confirm("Drop", "stash@{0}", ["gone"])
        out = capsys.readouterr().out
        assert "Drop" in out
        assert "• gone" in out

    async def test_default_is_no(self):
        with patch("builtins.input", return_value=""):
            assert await TerminalConfirmer().confirm("Drop") is False

    async def test_eof_declines(self):
        with patch("builtins.input", side_effect=EOFError):
            assert await TerminalConfirmer().confirm("Drop") is False
