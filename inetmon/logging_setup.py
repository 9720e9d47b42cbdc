"""
Daily logs via TimedRotatingFileHandler (midnight) plus console.
Log: connectivity transitions (UP->DOWN, DOWN->UP), cycle results, probe defects, start/stop.
"""
import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from inetmon.config import get_config_dir

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
LOG_BACKUP_DAYS = 30


def _file_handler(log_path: str | None, fmt: logging.Formatter) -> logging.Handler | None:
    log_dir = Path(log_path) if log_path else get_config_dir() / "logs"
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = TimedRotatingFileHandler(
            log_dir / "inetmon.log", when="midnight", backupCount=LOG_BACKUP_DAYS, encoding="utf-8"
        )
    except OSError as e:
        print(f"Cannot write logs to {log_dir}: {e}", file=sys.stderr)
        return None
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(fmt)
    return fh


def setup_logging(log_path: str | None = None, console_level: int = logging.INFO) -> logging.Logger:
    """
    Configure root logger with a daily rotating file and stdout.
    An unwritable log directory degrades to console-only logging.
    Returns the app logger ('inetmon').
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    fh = _file_handler(log_path, fmt)
    if fh is not None:
        root.addHandler(fh)

    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    root.addHandler(ch)

    # aiohttp is chatty at DEBUG
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logger = logging.getLogger("inetmon")
    logger.setLevel(logging.DEBUG)
    return logger
