"""Logging setup."""

from __future__ import annotations

import logging
import logging.config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(enabled: bool = True, *, level: str = "INFO") -> None:
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"plain": {"format": LOG_FORMAT}},
            "handlers": {
                "console": {"class": "logging.StreamHandler", "formatter": "plain", "level": level},
            },
            "loggers": {
                "couponsync": {"handlers": ["console"], "level": level, "propagate": False},
            },
        }
    )
    if not enabled:
        logging.getLogger("couponsync").setLevel(logging.CRITICAL + 1)
