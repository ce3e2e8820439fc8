# ticketflow/log.py
import logging
import sys
from typing import Union

LOG_FORMAT = "%(asctime)s %(levelname)-5s [%(threadName)s] %(name)s: %(message)s"
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """Send all ticketflow logging to stderr. Safe to call more than once."""
    if isinstance(level, str):
        name = level.upper()
        if name not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {level!r}")
        level = logging.getLevelName(name)

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_ticketflow", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._ticketflow = True
    root.addHandler(handler)
    root.setLevel(level)
    # Request logs from the HTTP client are noise at INFO.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
