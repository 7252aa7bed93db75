"""
Tunecellar Server - Entry Point

Run with: python -m tunecellar
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from tunecellar.config import load_settings
from tunecellar.server import TunecellarServer


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from third-party libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="tunecellar",
        description="Tunecellar - personal media library server",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="Path to a TOML config file (default: bundled tunecellar.toml)",
    )

    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Directory for databases, staging and user storage",
    )

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host address to bind to (default from config)",
    )

    parser.add_argument(
        "-p",
        "--port",
        type=int,
        default=None,
        help="Web port (default from config)",
    )

    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 0.1.0",
    )

    return parser.parse_args()


def main() -> int:
    """Main entry point for the application."""
    args = parse_args()
    setup_logging(verbose=args.verbose)

    logger = logging.getLogger(__name__)

    try:
        settings = load_settings(args.config).with_overrides(
            data_dir=args.data_dir, host=args.host, port=args.port
        )
    except (OSError, ValueError) as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    logger.info("Starting Tunecellar server...")

    try:
        asyncio.run(TunecellarServer(settings).run())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user")
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1

    logger.info("Server stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
