from __future__ import annotations

import logging
from pathlib import Path

import pytest

from patcher import logging_config


def _flush_managed_handlers() -> None:
    for handler in logging.getLogger().handlers:
        if getattr(handler, logging_config._HANDLER_TAG, False):  # type: ignore[attr-defined]
            handler.flush()


@pytest.fixture(autouse=True)
def reset_logging():
    logging_config._reset_for_tests()
    try:
        yield
    finally:
        logging_config._reset_for_tests()


def test_logging_creates_file_at_info_by_default(tmp_path, monkeypatch):
    monkeypatch.setenv("PATCHER_LOG_DIR", str(tmp_path))

    log_path = logging_config.ensure_app_logging()
    assert log_path == tmp_path / "patcher.log"
    assert logging_config.get_file_log_verbosity() == logging_config.LogVerbosity.INFO
    logging.getLogger("patcher.update.engine").debug("debug message")
    logging.getLogger("patcher.update.engine").info("info message")
    _flush_managed_handlers()

    contents = log_path.read_text(encoding="utf-8")
    assert "debug message" not in contents
    assert "info message" in contents


def test_log_file_env_takes_precedence_over_directory(tmp_path, monkeypatch):
    monkeypatch.setenv("PATCHER_LOG_DIR", str(tmp_path / "ignored"))
    monkeypatch.setenv("PATCHER_LOG_FILE", str(tmp_path / "custom" / "run.log"))

    log_path = logging_config.ensure_app_logging()

    assert log_path == tmp_path / "custom" / "run.log"
    assert log_path.exists()


def test_logging_configuration_is_idempotent(tmp_path, monkeypatch):
    monkeypatch.setenv("PATCHER_LOG_DIR", str(tmp_path))

    first_path = logging_config.ensure_app_logging()
    second_path = logging_config.ensure_app_logging()

    assert first_path == second_path
    managed_handlers = [
        handler
        for handler in logging.getLogger().handlers
        if getattr(handler, logging_config._HANDLER_TAG, False)  # type: ignore[attr-defined]
    ]

    # Only the file handler should be installed during tests (stderr is not a tty).
    assert len(managed_handlers) == 1
    assert isinstance(managed_handlers[0], logging.FileHandler)
    assert Path(managed_handlers[0].baseFilename) == first_path


def test_can_adjust_file_log_verbosity(tmp_path, monkeypatch):
    monkeypatch.setenv("PATCHER_LOG_DIR", str(tmp_path))

    log_path = logging_config.ensure_app_logging()
    logging_config.set_file_log_verbosity("verbose")
    logging.getLogger("tests.logging").debug("debug message")
    _flush_managed_handlers()

    assert "debug message" in log_path.read_text(encoding="utf-8")
    assert logging_config.get_file_log_verbosity() == logging_config.LogVerbosity.VERBOSE


def test_unknown_verbosity_is_rejected():
    with pytest.raises(ValueError):
        logging_config.set_file_log_verbosity("chatty")


def test_disabling_file_logging_suppresses_output(tmp_path, monkeypatch):
    monkeypatch.setenv("PATCHER_LOG_DIR", str(tmp_path))

    log_path = logging_config.ensure_app_logging()
    logging_config.set_file_log_verbosity(logging_config.LogVerbosity.DISABLED)
    _flush_managed_handlers()
    initial_size = log_path.stat().st_size

    logging.getLogger("tests.logging").critical("critical message")
    _flush_managed_handlers()

    assert log_path.stat().st_size == initial_size


def test_home_directory_is_redacted(tmp_path, monkeypatch):
    if not logging_config._REDACTION_PATTERNS:  # type: ignore[attr-defined]
        pytest.skip("home directory is the filesystem root")
    monkeypatch.setenv("PATCHER_LOG_DIR", str(tmp_path))

    log_path = logging_config.ensure_app_logging()
    logging.getLogger("tests.logging").warning("Client at %s", Path.home() / "Games" / "client")
    _flush_managed_handlers()

    contents = log_path.read_text(encoding="utf-8")
    assert f"{logging_config.USER_HOME_PLACEHOLDER}/Games/client" in contents.replace("\\", "/")
    assert str(Path.home() / "Games") not in contents
