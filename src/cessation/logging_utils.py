"""Run logging for the analysis runbooks.

Each run gets its own log file under ``<output_dir>/logs`` that records
everything at DEBUG, every line stamped with the run id. The console shows
short messages at the runbook's ``--log-level``. Python warnings raised
during the run (sklearn, statsmodels) are routed into the run log rather
than printed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]

FILE_FORMAT = "%(asctime)s.%(msecs)03d | %(run_id)s | %(levelname)s | %(name)s | %(message)s"
CONSOLE_FORMAT = "%(levelname)-7s %(message)s"


@dataclass(frozen=True)
class RunLog:
    logger: logging.Logger
    run_id: str
    log_path: Path
    handlers: tuple[logging.Handler, ...]


class _RunIdFilter(logging.Filter):
    def __init__(self, run_id: str) -> None:
        super().__init__()
        self.run_id = run_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = self.run_id
        return True


def configure_logging(
    *, log_dir: Path, run_id: str, console_level: str = "INFO", name: str = "cessation"
) -> RunLog:
    if console_level not in LOG_LEVELS:
        raise ValueError(f"Unknown log level {console_level!r}; expected one of {LOG_LEVELS}")
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / f"{name}_{run_id}.log"

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    warnings_logger = logging.getLogger("py.warnings")
    for h in list(logger.handlers):
        logger.removeHandler(h)
        warnings_logger.removeHandler(h)
        h.close()

    console = logging.StreamHandler()
    console.setLevel(getattr(logging, console_level))
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))

    run_file = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    run_file.setLevel(logging.DEBUG)
    run_file.addFilter(_RunIdFilter(run_id))
    run_file.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    logger.addHandler(console)
    logger.addHandler(run_file)

    logging.captureWarnings(True)
    warnings_logger.addHandler(run_file)

    logger.debug("Logging configured. log_path=%s console_level=%s", log_path, console_level)
    return RunLog(logger=logger, run_id=run_id, log_path=log_path, handlers=(console, run_file))


def close_logging(run_log: RunLog) -> None:
    """Detach and close the run's handlers and stop capturing warnings."""
    warnings_logger = logging.getLogger("py.warnings")
    for h in run_log.handlers:
        run_log.logger.removeHandler(h)
        warnings_logger.removeHandler(h)
        h.close()
    logging.captureWarnings(False)
