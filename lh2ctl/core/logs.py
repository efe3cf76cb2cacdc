"""Console and file log sinks for the CLI."""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def log_dir() -> Path:
    xdg_data = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return xdg_data / "lh2ctl" / "logs"


def default_log_file() -> Path:
    return log_dir() / f"lh2ctl.{datetime.now():%Y-%m-%d_%H-%M-%S}.log"


def configure_logging(verbose: bool = False, log_file: Path | None = None) -> Path | None:
    """Install stderr and file handlers on the ``lh2ctl`` logger.

    Returns the log file in use, or None when the file could not be opened
    (console logging still works in that case).
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger("lh2ctl")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    logger.addHandler(console)

    log_file = log_file or default_log_file()
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
    except OSError as exc:
        logger.warning("Could not open log file %s: %s", log_file, exc)
        return None
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)
    return log_file
