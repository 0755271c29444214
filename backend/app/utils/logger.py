"""
Focus Structured Logger
Logging setup for the recorder backend. The live monitor configures its own
handlers in focus_model.live_monitor with the same format and namespace.
"""

import logging
import sys
from typing import Iterable, Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-25s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NOISY_LOGGERS = ("ultralytics", "httpx", "urllib3", "mediapipe")


def setup_logging(level: str = "INFO", log_file: Optional[str] = None,
                  quiet: Iterable[str] = NOISY_LOGGERS) -> logging.Logger:
    """Attach stdout (and optionally file) handlers to the "focus" logger once"""
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    logger = logging.getLogger("focus")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not logger.handlers:
        stream = logging.StreamHandler(sys.stdout)
        stream.setFormatter(formatter)
        logger.addHandler(stream)

        if log_file:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger
