"""
Logging for the checkout API: one stdout handler, level from LOG_LEVEL.
Payment events go to "playoga.*" loggers; unhandled errors are also persisted to error_logs (playoga/main.py).
"""
import logging
import sys

from playoga.core.config import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: int | str | None = None, format_string: str = LOG_FORMAT) -> int:
    """Configures the root handler and returns the effective level."""
    if level is None:
        level = settings.log_level
    if isinstance(level, str):
        level = logging.getLevelName(level.strip().upper())
    if not isinstance(level, int):
        # getLevelName answers "Level X" for unknown names
        level = logging.INFO
    logging.basicConfig(level=level, format=format_string, stream=sys.stdout, force=True)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "playoga"):
        logging.getLogger(name).setLevel(level)
    # SQL statements only on request; they carry payment ids and signatures
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.sql_echo else logging.WARNING)
    return level
