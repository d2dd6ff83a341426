"""Application-wide logging configuration"""
import logging
from logging.config import dictConfig
from typing import Optional

_is_configured = False


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once; later calls are no-ops."""
    global _is_configured

    if _is_configured:
        return

    log_level = (level or "INFO").upper()

    dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "level": log_level,
            }
        },
        "root": {
            "handlers": ["console"],
            "level": log_level,
        },
    })

    logging.getLogger("src.crm_tool").setLevel(log_level)

    _is_configured = True
