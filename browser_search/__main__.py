"""Command line entry point: python -m browser_search --variant enhanced"""

from __future__ import annotations

import argparse
import asyncio
import sys

import structlog

from . import __version__
from .config import ConfigError, ServerConfig
from .logging_config import configure_logging
from .servers import VARIANTS, create_server, run_until_stopped

logger = structlog.stdlib.get_logger(component=__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="mcp-browser-search",
        description="MCP server for web search and content extraction (stdio transport)",
    )
    parser.add_argument(
        "--variant",
        choices=sorted(VARIANTS),
        default="browser",
        help="Server variant to run (default: browser)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override MCP_LOG_LEVEL (e.g. DEBUG, INFO, WARNING)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None, *, variant: str | None = None) -> int:
    args = parse_args(argv)
    try:
        config = ServerConfig.from_env()
    except ConfigError as e:
        configure_logging()
        logger.error("invalid_configuration", error=str(e))
        return 2

    configure_logging(args.log_level or config.log_level, config.log_format)
    server = create_server(variant or args.variant, config)
    try:
        asyncio.run(run_until_stopped(server))
    except KeyboardInterrupt:
        pass
    except Exception:
        logger.exception("server_crashed", server=server.name)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
