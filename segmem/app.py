"""Command-line entry point of the memory module."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import time

from .communication import CommunicationError
from .config import ConfigError, read_config
from .console import run_menu_once
from .memory import Memory
from .server import MemoryServer

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = "./config/memoria.config"
_POLL_SECONDS = 0.5


def _parse_args(argv):
    parser = argparse.ArgumentParser(prog="segmem", description="Segmented memory server.")
    parser.add_argument("config", nargs="?", default=DEFAULT_CONFIG, help="configuration file")
    parser.add_argument("--log-file", default=None, help="also write the log to this file")
    return parser.parse_args(argv)


def _setup_logging(log_file: str | None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        handlers=handlers,
    )


def main(argv=None) -> int:
    """Run the memory module; return the process exit status."""
    args = _parse_args(argv)
    _setup_logging(args.log_file)
    try:
        config = read_config(args.config)
    except ConfigError as exc:
        logger.error("%s", exc)
        return 1
    memory = Memory(config)
    server = MemoryServer(config.port, memory)
    try:
        server.start()
    except CommunicationError as exc:
        logger.error("%s", exc)
        return 1
    status = 0
    try:
        while not (server.all_connected() or server.end_requested):
            time.sleep(_POLL_SECONDS)
        while not server.end_requested:
            if run_menu_once(memory, config, server, sys.stdin, sys.stdout):
                break
    except KeyboardInterrupt:
        print(f"\nIniciando fin del modulo por signal: {int(signal.SIGINT)}")
        status = int(signal.SIGINT)
    finally:
        server.stop()
    return status


if __name__ == "__main__":
    sys.exit(main())