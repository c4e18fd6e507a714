"""Process logging for taskpool (stdout, one format for every module)."""

import logging
import sys

from taskpool.core.config import get_settings

# Driver and exporter loggers that are noisy at INFO.
_QUIET_LOGGERS = ("aiosqlite", "asyncpg", "opentelemetry.exporter")


def _resolve_level(name: str | None, debug: bool) -> int:
    if name:
        level = logging.getLevelName(name.upper())
        if isinstance(level, int):
            return level
    return logging.DEBUG if debug else logging.INFO


def setup_logging() -> None:
    """Configure process-wide logging.

    settings.log_level wins when it names a level; otherwise DEBUG with
    settings.debug and INFO without. SQL statement logs are left to
    settings.database_echo, so the engine logger is held at WARNING unless
    echo is on.
    """
    settings = get_settings()
    logging.basicConfig(
        level=_resolve_level(settings.log_level, settings.debug),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    if not settings.database_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module (pass __name__)."""
    return logging.getLogger(name)
