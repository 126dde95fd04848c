"""
Logging setup for the command-line runners.

Configures dual logging: stdout + a timestamped log file per run.
Library modules only ever call logging.getLogger(__name__).
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

PACKAGE_LOGGER = "company_research"


def setup_logging(log_dir: Path, name: str, level: int = logging.INFO) -> logging.Logger:
    """
    Configure a runner logger and the package logger.

    Each invocation creates a new log file (<name>_<timestamp>.log) so
    runs can be debugged individually.

    Args:
        log_dir: Folder for log files (created if missing).
        name: Runner name, used for the logger and the file name.
        level: Level for both handlers.

    Returns:
        The runner logger.
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"{name}_{timestamp}.log"

    # File handler: everything, for post-mortem debugging
    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setLevel(level)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    # Console handler: concise progress output
    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(level)
    ch.setFormatter(logging.Formatter("%(message)s"))

    for logger_name in (name, PACKAGE_LOGGER):
        target = logging.getLogger(logger_name)
        target.setLevel(level)
        target.handlers.clear()
        target.addHandler(fh)
        target.addHandler(ch)
        target.propagate = False

    logger = logging.getLogger(name)
    logger.info(f"Log file: {log_file}")
    return logger
