"""
Tests for the entry point helpers: argument parsing, log file setup and the
crash handler.
"""

import logging
import sys
from unittest.mock import MagicMock

import pytest

import main


@pytest.fixture
def root_handlers():
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    yield root
    for handler in root.handlers[:]:
        if handler not in before:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def test_parse_args_defaults():
    args = main.parse_args([])

    assert args.data_root is None
    assert args.settings_org == "ModShelf"
    assert not args.no_persist_settings
    assert not args.release_registry_name


def test_parse_args_overrides(tmp_path):
    args = main.parse_args(["--data-root", str(tmp_path), "--release-registry-name"])

    assert args.data_root == str(tmp_path)
    assert args.release_registry_name


def test_setup_logging_writes_module_records(tmp_path, root_handlers):
    logger, log_dir = main.setup_logging(tmp_path / "logs")

    logging.getLogger("lifecycle").info("installed mod-a")
    for handler in root_handlers.handlers:
        handler.flush()

    assert log_dir == tmp_path / "logs"
    assert logger.level == logging.DEBUG
    assert "lifecycle: installed mod-a" in (log_dir / main.LOG_FILENAME).read_text(encoding="utf-8")


def test_crash_handler_logs_and_closes_stream(tmp_path, monkeypatch):
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    monkeypatch.setattr(main.faulthandler, "enable", MagicMock())
    monkeypatch.setattr(main.faulthandler, "disable", MagicMock())
    registered = []
    monkeypatch.setattr(main.atexit, "register", lambda fn, *a: registered.append((fn, a)))
    logger = MagicMock()

    stream = main.install_crash_handler(logger, tmp_path)
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        sys.excepthook(*sys.exc_info())

    assert "boom" in logger.critical.call_args.args[1]
    main.faulthandler.enable.assert_called_once_with(stream, all_threads=True)
    assert registered == [(main.close_crash_log, (stream,))]

    main.close_crash_log(stream)

    assert stream.closed
    main.faulthandler.disable.assert_called_once_with()
