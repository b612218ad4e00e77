"""Run the statshub server: ``python -m statshub``."""

from __future__ import annotations

import argparse
import logging
import sys

import uvicorn

from statshub.config import HubConfig
from statshub.exceptions import HubConfigError
from statshub.server import create_app

_logger = logging.getLogger("statshub")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="statshub",
        description="Aggregate bot telemetry snapshots and stream them to dashboards.",
    )
    parser.add_argument("--host", help="Bind address (default: $HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Bind port (default: $PORT or 10000)")
    parser.add_argument("--data-file", help="Checkpoint file (default: $STATSHUB_DATA_FILE)")
    parser.add_argument("--static-dir", help="Dashboard directory (default: $STATSHUB_STATIC_DIR)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    overrides = {
        "host": args.host,
        "port": args.port,
        "data_file": args.data_file,
        "static_dir": args.static_dir,
    }
    try:
        config = HubConfig.from_env(**{key: value for key, value in overrides.items() if value is not None})
    except HubConfigError as exc:
        _logger.error("Invalid configuration: %s", exc)
        return 2

    _logger.info("Analytics server running on port %d", config.port)
    uvicorn.run(create_app(config), host=config.host, port=config.port, log_config=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
