"""Run the auth service with uvicorn: ``python -m koro_i18n``."""

from __future__ import annotations

import argparse
import logging
import sys

import uvicorn

from koro_i18n.auth.errors import ConfigurationError
from koro_i18n.servers.main import create_app
from koro_i18n.utils.environment import load_config
from koro_i18n.utils.logging import setup_logging

logger = logging.getLogger("koro-i18n.cli")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="koro i18n auth service")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--log-level", default="info")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)
    try:
        config = load_config()
    except ConfigurationError as exc:
        logger.error("Refusing to start: %s", exc)
        return 2
    app = create_app(config)
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
