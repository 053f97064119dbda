"""
Logging configuration
"""

import logging
import logging.config
import json
from datetime import datetime, timezone
from typing import Dict, Any

from autoreg.config import settings

# Attributes every LogRecord carries; anything else came in through ``extra=``
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """
    Custom JSON formatter for structured logging
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields if present
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_data[key] = value

        return json.dumps(log_data, default=str, ensure_ascii=False)


def build_log_config() -> Dict[str, Any]:
    """
    Build the dictConfig for the current settings
    """
    formatter = "json" if settings.LOG_FORMAT == "json" else "default"
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            },
            "json": {
                "()": JSONFormatter
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": settings.LOG_LEVEL,
                "formatter": formatter,
                "stream": "ext://sys.stdout"
            }
        },
        "loggers": {
            "autoreg": {
                "level": settings.LOG_LEVEL,
                "handlers": ["console"],
                "propagate": settings.is_testing
            },
            "uvicorn": {
                "level": "INFO",
                "handlers": ["console"],
                "propagate": False
            },
            "sqlalchemy": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False
            },
            "httpx": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False
            }
        },
        "root": {
            "level": settings.LOG_LEVEL,
            "handlers": ["console"]
        }
    }


def setup_logging():
    """
    Configure application logging
    """
    logging.config.dictConfig(build_log_config())


def mask_session(user_session: str) -> str:
    """
    Shorten a session key for log lines and public result records
    """
    if not user_session:
        return ""
    return user_session[:8] + "..."
