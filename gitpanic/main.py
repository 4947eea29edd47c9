"""CLI entry point for gitpanic."""

import asyncio
import sys

import structlog

from gitpanic.app import build_handler, configure_logging
from gitpanic.core.config import GitPanicConfig
from gitpanic.exceptions import ConfigError

logger = structlog.get_logger()


class TerminalConfirmer:
    """Ask on the terminal; anything but an explicit yes declines."""

    async def confirm(
        self, title: str, details: str = "", warnings: list[str] | None = None
    ) -> bool:
        print(f"\n⚠️  {title}")
        if details:
            print(details)
        for warning in warnings or []:
            print(f"  • {warning}")
        try:
            answer = await asyncio.to_thread(input, "Proceed? [y/N] ")
        except (EOFError, KeyboardInterrupt):
            print()
            return False
        return answer.strip().lower() in ("y", "yes")


async def main(argv: list[str] | None = None) -> None:
    try:
        config = GitPanicConfig.load()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        print("Check GITPANIC_* environment variables.", file=sys.stderr)
        sys.exit(1)

    configure_logging(config)
    args = " ".join(sys.argv[1:] if argv is None else argv)

    handler = build_handler(TerminalConfirmer(), config)
    try:
        response = await handler.handle_command(args)
    except KeyboardInterrupt:
        logger.info("cli_interrupted")
        print("\nOperation cancelled.")
        sys.exit(130)
    print(response)
    if response.startswith(("❌", "⛔")):
        sys.exit(1)


def run() -> None:
    asyncio.run(main())
