import logging
import sys
from typing import Optional


_LOGGING_CONFIGURED = False

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# uvicorn installs its own handlers; route them through ours instead
_PROPAGATING_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def configure_logging(level: str = "INFO") -> None:
    """
    Configure process-wide logging once.
    Later calls are no-ops, so every app module may call it at import time.
    """
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    resolved = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=resolved, format=LOG_FORMAT, stream=sys.stdout)

    for name in _PROPAGATING_LOGGERS:
        lg = logging.getLogger(name)
        lg.handlers.clear()
        lg.propagate = True

    _LOGGING_CONFIGURED = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a named logger.
    If name is None, returns root logger.
    """
    return logging.getLogger(name)
