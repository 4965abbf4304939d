import logging

import pytest

from triage_engine import logging_utils


@pytest.fixture
def temp_dirs(tmp_path, monkeypatch):
    log_dir = tmp_path / "logs"
    monkeypatch.setattr("triage_engine.config_loader.LOG_DIR", log_dir)
    monkeypatch.setattr("triage_engine.config_loader.DATA_DIR", tmp_path / "data")
    monkeypatch.setattr("triage_engine.config_loader.REPORT_DIR", tmp_path / "reports")
    monkeypatch.setattr("triage_engine.logging_utils.LOG_DIR", log_dir)
    return log_dir


def _close(logger):
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def test_configure_logger_uses_rotation(temp_dirs):
    logger = logging_utils.configure_logger(
        "test.triage.rotation",
        "test.log",
        max_bytes=1024,
        backup_count=2,
        console=False,
    )

    try:
        rotating_handlers = [h for h in logger.handlers if h.__class__.__name__ == "RotatingFileHandler"]
        assert rotating_handlers, "Expected RotatingFileHandler in logger handlers"
        assert (temp_dirs / "test.log").exists()
        assert logging_utils.configure_logger("test.triage.rotation", "test.log") is logger
        assert len(logger.handlers) == 1
    finally:
        _close(logger)


def test_update_log_level(temp_dirs):
    logger = logging_utils.configure_logger("test.triage.level", "level.log", console=True, max_bytes=None)
    try:
        logging_utils.update_log_level(logger, logging.DEBUG)
        assert logger.level == logging.DEBUG
        assert all(handler.level == logging.DEBUG for handler in logger.handlers)
    finally:
        _close(logger)


def test_parse_level():
    assert logging_utils.parse_level("debug") == logging.DEBUG
    with pytest.raises(ValueError):
        logging_utils.parse_level("loud")
