"""Main entry point for Dualmem MCP server."""

from __future__ import annotations

import argparse
import atexit
import logging
import sys

from .config import get_config
from .container import get_container
from .server import mcp


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the application."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Dualmem MCP Server - fast and deliberate memory for coding assistants"
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse", "streamable-http"],
        default="stdio",
        help="Transport mode (default: stdio)",
    )
    return parser.parse_args()


def main() -> None:
    """Run the Dualmem MCP server."""
    args = parse_args()
    config = get_config()

    setup_logging(config.log_level)
    logger = logging.getLogger(__name__)

    logger.info("Starting Dualmem MCP")
    logger.info(f"Data directory: {config.data_dir}")
    logger.info(f"Snapshots: {'on' if config.persist_snapshots else 'off'}")
    logger.info(f"Transport: {args.transport}")

    container = get_container()
    container.start()
    atexit.register(container.close)

    mcp.run(transport=args.transport)


if __name__ == "__main__":
    main()
