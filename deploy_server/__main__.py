"""Deployment server entry point.

Usage:
    python -m deploy_server [--config config.json]
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import uvicorn

from .config import ConfigError, ensure_deployment_root, load_settings
from .main import create_app

LOG_FORMAT: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

LOG_FILENAME: str = "deployment_server.log"

_LOG = logging.getLogger("deploy_server")


def setup_logging(log_dir: str | Path) -> None:
    """Log to stdout and append to <log_dir>/deployment_server.log."""
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_path / LOG_FILENAME),
        ],
    )


def main(argv: list[str] | None = None) -> int:
    """Load configuration and serve until interrupted."""
    parser = argparse.ArgumentParser(description="Token-protected deployment upload server")
    parser.add_argument("--config", help="Path to the JSON config file (default: config.json)")
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.config)
    except ConfigError as e:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
        _LOG.error("%s", e)
        return 1

    setup_logging(settings.log_path)

    try:
        root = ensure_deployment_root(settings)
    except ConfigError as e:
        _LOG.error("%s", e)
        return 1

    _LOG.info("Deployment API server running on port %s...", settings.port)
    _LOG.info("Deployment path: %s", root)

    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
