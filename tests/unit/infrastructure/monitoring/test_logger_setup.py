import logging
import logging.handlers

import pytest

from chatbridge.infrastructure.monitoring.logger_setup import resolve_log_level, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in saved_handlers:
        root.addHandler(handler)
    root.setLevel(saved_level)


def test_resolve_log_level():
    assert resolve_log_level("debug") == logging.DEBUG
    assert resolve_log_level(logging.WARNING) == logging.WARNING
    assert resolve_log_level("chatty") == logging.INFO
    assert resolve_log_level(None) == logging.INFO


def test_setup_logging_console_only():
    setup_logging(log_level="warning")
    root = logging.getLogger()
    assert root.level == logging.WARNING
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0], logging.StreamHandler)


def test_setup_logging_with_rotating_file(tmp_path):
    log_file = tmp_path / "logs" / "chatbridge.log"
    setup_logging(log_level=logging.INFO, log_file=str(log_file))

    root = logging.getLogger()
    file_handlers = [h for h in root.handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
    assert len(file_handlers) == 1
    logging.getLogger("chatbridge.test").info("written to file")
    file_handlers[0].flush()
    assert "written to file" in log_file.read_text(encoding="utf-8")
