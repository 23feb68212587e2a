#!/usr/bin/env python3
"""Mod Shelf - Entry Point"""

import argparse
import atexit
import faulthandler
import logging
import sys
import traceback
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TextIO

from path_policy import default_data_root

LOG_FILENAME = "modshelf.log"
CRASH_FILENAME = "crash.log"
LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s: %(message)s"
LOG_MAX_BYTES = 1 * 1024 * 1024
LOG_BACKUPS = 2


def setup_logging(log_dir: Path | None = None) -> tuple[logging.Logger, Path]:
    log_dir = log_dir or default_data_root() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / LOG_FILENAME,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    # Module loggers (registry_store, lifecycle, ...) reach the file through root.
    root = logging.getLogger()
    root.setLevel(logging.INFO)
    root.addHandler(handler)

    logger = logging.getLogger("modshelf")
    logger.setLevel(logging.DEBUG)
    return logger, log_dir


def install_crash_handler(logger: logging.Logger, log_dir: Path) -> TextIO:
    # Python-level unhandled exceptions
    def handle_exception(exc_type, exc_value, exc_tb):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_tb)
            return
        logger.critical(
            "Unhandled exception:\n%s",
            "".join(traceback.format_exception(exc_type, exc_value, exc_tb)),
        )

    sys.excepthook = handle_exception

    # C-level crashes (segfault, abort): faulthandler writes to a separate
    # file because it can't use Python logging machinery after a crash
    crash_stream = (log_dir / CRASH_FILENAME).open("w", encoding="utf-8")
    faulthandler.enable(crash_stream, all_threads=True)
    atexit.register(close_crash_log, crash_stream)
    return crash_stream


def close_crash_log(stream: TextIO):
    faulthandler.disable()
    stream.close()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Mod Shelf")
    parser.add_argument("--data-root")
    parser.add_argument("--settings-org", default="ModShelf")
    parser.add_argument("--settings-app", default="ModShelf")
    parser.add_argument("--no-persist-settings", action="store_true")
    parser.add_argument(
        "--release-registry-name",
        action="store_true",
        help="store enabled mods in data/enabled.mods instead of data/enabled.json",
    )
    return parser.parse_args(argv)


def run(argv: list[str] | None = None):
    args = parse_args(argv)

    log_dir = Path(args.data_root) / "logs" if args.data_root else None
    logger, log_dir = setup_logging(log_dir)
    install_crash_handler(logger, log_dir)
    logger.info("Starting Mod Shelf")

    from gui import main
    main(
        logger,
        data_root_override=args.data_root,
        settings_org=args.settings_org,
        settings_app=args.settings_app,
        persist_settings=not args.no_persist_settings,
        release_registry_name=args.release_registry_name,
    )


if __name__ == "__main__":
    run()
