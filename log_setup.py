"""Logging configuration: stdout plus a monthly app log file."""
import logging
import sys
from datetime import datetime
from pathlib import Path

LOG_FORMAT = "%(asctime)s, [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(__name__)


def log_file_path(log_dir: Path, name: str = "app") -> Path:
    """Return the log file for the current month, e.g. 26.10_app.log."""
    return log_dir / f"{datetime.now().strftime('%y.%m')}_{name}.log"


def init_logging(log_dir: Path, level: int = logging.INFO) -> None:
    """Send root logging to stdout and to the monthly file under log_dir.

    Falls back to stdout only when the directory or file cannot be opened.
    """
    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        if getattr(handler, "_webp_vault", False):
            root.removeHandler(handler)
            handler.close()

    stream = logging.StreamHandler(sys.stdout)
    stream.setFormatter(formatter)
    stream._webp_vault = True
    root.addHandler(stream)

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file_path(log_dir), encoding="utf-8")
    except OSError as e:
        logger.warning("Failed to init log file in %s: %s", log_dir, e)
        return
    file_handler.setFormatter(formatter)
    file_handler._webp_vault = True
    root.addHandler(file_handler)
