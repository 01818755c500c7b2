# unit_sorter/config/logging_config.py

"""Per-run timestamped logging configuration for unit_sorter.

Each launch creates a dedicated log file inside ``logs/``, named with
the launch timestamp (e.g. ``logs/run_20261019_153045.log``).  All
``unit_sorter.*`` loggers route through this file handler so that every
module's output lands in the same per-run log.

The console handler only shows warnings unless the debug flag
(``UNIT_SORTER_DEBUG``) is set, in which case it mirrors the file.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from unit_sorter.config.settings import Settings

# Reusable format strings --------------------------------------------------

_DETAILED_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(module)s:%(funcName)s:%(lineno)d | "
    "%(message)s"
)

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _console_level(debug: bool | None) -> int:
    console_debug = Settings.DEBUG if debug is None else debug
    return logging.DEBUG if console_debug else logging.WARNING


def setup_logging(debug: bool | None = None) -> Path:
    """Initialise the root ``unit_sorter`` logger for the current run.

    Args:
        debug: Force the console handler to DEBUG.  ``None`` defers to
            :attr:`Settings.DEBUG`.

    Returns:
        The :class:`~pathlib.Path` to this run's log file.  Repeat calls
        return the file already in use and only adjust the console level.
    """
    console_level = _console_level(debug)
    root_logger = logging.getLogger("unit_sorter")
    root_logger.setLevel(logging.DEBUG)

    # Already configured: keep the run's log file, honour a new debug flag
    existing = next(
        (
            Path(h.baseFilename)
            for h in root_logger.handlers
            if isinstance(h, logging.FileHandler)
        ),
        None,
    )
    if existing is not None:
        for handler in root_logger.handlers:
            if not isinstance(handler, logging.FileHandler) and isinstance(
                handler, logging.StreamHandler
            ):
                handler.setLevel(console_level)
        return existing

    logs_dir: Path = Settings.LOGS_DIR
    logs_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = logs_dir / f"run_{timestamp}.log"

    # --- File handler (DEBUG+) captures everything -----------------------
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_DETAILED_FORMAT, datefmt=_DATE_FORMAT)
    )

    # --- Console handler (WARNING+, DEBUG when the debug flag is on) -------
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    root_logger.info(
        "Logging initialised, log file: %s", log_file
    )

    return log_file
