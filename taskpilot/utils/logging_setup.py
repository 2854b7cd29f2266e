"""Logging setup."""
import logging
from typing import Optional

from rich.logging import RichHandler

_configured = False


def configure_logging(level: Optional[str] = None) -> None:
    """
    Route the taskpilot loggers through a rich console handler.

    Safe to call on every Streamlit rerun; only the first call installs
    the handler, later calls just adjust the level.

    Args:
        level: Log level name (default: Config.LOG_LEVEL)
    """
    global _configured
    from taskpilot.utils.config import Config

    level_name = str(level or Config.LOG_LEVEL or "INFO").upper()
    unknown_level = None
    if not isinstance(logging.getLevelName(level_name), int):
        unknown_level, level_name = level_name, "INFO"

    logger = logging.getLogger("taskpilot")
    logger.setLevel(level_name)

    if not _configured:
        handler = RichHandler(rich_tracebacks=True, show_path=False, markup=False)
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s", datefmt="[%X]"))
        logger.addHandler(handler)
        logger.propagate = False
        _configured = True

    if unknown_level:
        logger.warning("Unknown log level %r, using INFO", unknown_level)
