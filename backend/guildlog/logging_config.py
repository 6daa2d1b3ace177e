"""Logging setup for the guild log service and CLI.

Records reach the single root stream handler while ``guildlog`` sets its own
level. The telemetry logger and the noisier third-party loggers (SQLAlchemy's
engine, the httpx client behind the icon catalog, alembic) get separate
levels so each can be turned up alone.
"""

import os
from logging.config import dictConfig
from typing import Any, Dict, Mapping, Optional

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _flag(environ: Mapping[str, str], name: str) -> bool:
    return environ.get(name, "0") == "1"


def build_logging_config(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    environ = os.environ if environ is None else environ
    level = environ.get("GUILDLOG_LOG_LEVEL", "INFO").upper()
    telemetry_level = environ.get("GUILDLOG_TELEMETRY_LOG_LEVEL", level).upper()

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": DEFAULT_LOG_FORMAT,
            },
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
        },
        "loggers": {
            "guildlog": {
                "level": level,
            },
            "guildlog.telemetry": {
                "level": telemetry_level,
            },
            "sqlalchemy.engine": {
                "level": "INFO" if _flag(environ, "GUILDLOG_DEBUG_SQL") else "WARNING",
            },
            # icon catalog fetches
            "httpx": {
                "level": "DEBUG" if _flag(environ, "GUILDLOG_DEBUG_HTTP") else "WARNING",
            },
            "alembic": {
                "level": "INFO",
            },
        },
        "root": {
            "handlers": ["default"],
            "level": "WARNING",
        },
    }


def configure_logging() -> None:
    """Configure logging from the ``GUILDLOG_*`` environment flags."""
    dictConfig(build_logging_config())
