import logging
import os
import sys

_FORMAT = "[%(levelname)s] %(message)s"


def _level_from_env(default: int) -> int:
    name = (os.environ.get("NEWSDIGEST_LOG_LEVEL") or "").strip().upper()
    level = logging.getLevelName(name) if name else default
    return level if isinstance(level, int) else default


def configure_logging(level=None):
    """
    Send all log records to stderr, keeping stdout for JSON output.
    NEWSDIGEST_LOG_LEVEL overrides the default INFO level.
    """
    if level is None:
        level = _level_from_env(logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    # a single handler even if called more than once
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(max(level, logging.WARNING))
