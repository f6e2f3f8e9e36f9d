"""
PlayerHUD - Entry Point

Run with: python -m playerhud
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from playerhud import __version__
from playerhud.config import ConfigError, HudConfig, load_config
from playerhud.core import BusConnectionError, PlayerHudError
from playerhud.server import HudService


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from third-party libraries
    for name in ("asyncio", "httpx", "httpcore", "uvicorn"):
        logging.getLogger(name).setLevel(logging.WARNING)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="playerhud",
        description="PlayerHUD - follow what the active MPRIS player is playing",
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
        help="TOML file overriding the default settings",
    )

    parser.add_argument(
        "-i",
        "--interval",
        type=float,
        default=None,
        help="Seconds between sync cycles (default: 1.0)",
    )

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Status server bind address (default: 127.0.0.1)",
    )

    parser.add_argument(
        "--web-port",
        type=int,
        default=None,
        help="Status server port (default: 9550)",
    )

    parser.add_argument(
        "--no-web",
        action="store_true",
        help="Do not start the status server",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> HudConfig:
    """Load the config file and apply command line overrides."""
    config = load_config(args.config)

    if args.interval is not None:
        config.poll_interval = args.interval
    if args.host is not None:
        config.web_host = args.host
    if args.web_port is not None:
        config.web_port = args.web_port
    if args.no_web:
        config.web_enabled = False

    config.validate()
    return config


async def run_service(config: HudConfig) -> None:
    """Start and run the PlayerHUD service."""
    service = HudService(config)
    await service.run()


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the application."""
    args = parse_args(argv)
    setup_logging(verbose=args.verbose)

    logger = logging.getLogger(__name__)

    try:
        config = build_config(args)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1

    logger.info("Starting PlayerHUD %s...", __version__)

    try:
        asyncio.run(run_service(config))
    except BusConnectionError as e:
        logger.error("Failed to get session bus: %s", e)
        return 1
    except PlayerHudError as e:
        logger.error("PlayerHUD stopped: %s", e)
        return 1
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user")
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1

    logger.info("PlayerHUD stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
