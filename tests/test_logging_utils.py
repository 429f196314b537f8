from __future__ import annotations

import logging
import warnings
from pathlib import Path

import pytest

from cessation.logging_utils import close_logging, configure_logging


def test_run_log_records_debug_with_run_id(workspace_tmp_dir: Path) -> None:
    run_log = configure_logging(log_dir=workspace_tmp_dir / "logs", run_id="abc123", console_level="WARNING")
    try:
        console, run_file = run_log.handlers
        assert console.level == logging.WARNING
        assert run_file.level == logging.DEBUG

        logging.getLogger("cessation.models").debug("lambda path built")
        with warnings.catch_warnings():
            warnings.simplefilter("always")
            warnings.warn("solver did not converge", UserWarning)
    finally:
        close_logging(run_log)

    text = run_log.log_path.read_text(encoding="utf-8")
    assert run_log.log_path.name == "cessation_abc123.log"
    assert "| abc123 | DEBUG | cessation.models | lambda path built" in text
    assert "solver did not converge" in text
    assert not logging.getLogger("cessation").handlers


def test_reconfigure_replaces_handlers(workspace_tmp_dir: Path) -> None:
    first = configure_logging(log_dir=workspace_tmp_dir, run_id="one")
    second = configure_logging(log_dir=workspace_tmp_dir, run_id="two")
    try:
        assert len(logging.getLogger("cessation").handlers) == 2
        assert set(logging.getLogger("cessation").handlers) == set(second.handlers)
    finally:
        close_logging(first)
        close_logging(second)


def test_unknown_console_level(workspace_tmp_dir: Path) -> None:
    with pytest.raises(ValueError, match="log level"):
        configure_logging(log_dir=workspace_tmp_dir, run_id="x", console_level="LOUD")
