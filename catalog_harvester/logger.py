"""Logging setup: console lines that stay clear of progress bars, plus a rotating debug log."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

from tqdm import tqdm

LOGGER_NAME = "catalog_harvester"
LOG_FILE = "harvester.log"

CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class TqdmLoggingHandler(logging.Handler):
    """Write records through ``tqdm.write`` so active bars are redrawn below them."""

    def __init__(self, level=logging.NOTSET, stream=None):
        super().__init__(level)
        self.stream = stream

    def emit(self, record):
        try:
            tqdm.write(self.format(record), file=self.stream or sys.stderr)
        except RecursionError:
            raise
        except Exception:
            self.handleError(record)


def setup_logger(log_dir: str = "logs", level: int = logging.INFO) -> logging.Logger:
    """Configure the package logger once.

    The console shows ``level`` and above. The file under ``log_dir`` always
    records DEBUG, with the worker thread name, so a failed run can be
    reconstructed after the fact.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    if logger.handlers:
        for handler in logger.handlers:
            if isinstance(handler, TqdmLoggingHandler):
                handler.setLevel(level)
        return logger

    console = TqdmLoggingHandler(level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console)

    os.makedirs(log_dir, exist_ok=True)
    # 10MB per file, keep 5
    fh = RotatingFileHandler(
        os.path.join(log_dir, LOG_FILE),
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(fh)

    return logger
