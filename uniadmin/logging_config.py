from __future__ import annotations

import logging

# Loggers that get noisy at INFO; they only follow our level when DEBUG is asked for.
_QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool")


def configure_app_logging(level: str = "INFO") -> None:
    """
    Set log levels for the uniadmin package.

    Uvicorn installs the handlers; this only adjusts levels. Set
    `UNIADMIN_LOG_LEVEL=DEBUG` to also see SQL statements. Bearer tokens,
    refresh tokens and passwords are never logged.
    """

    normalized = level.upper()
    root = logging.getLogger("uniadmin")
    root.setLevel(normalized)
    root.propagate = True

    quiet_level = logging.DEBUG if normalized == "DEBUG" else logging.WARNING
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)
