"""
Centralised logging configuration.

Everything logs through children of the ``feastfrenzy`` logger:
    logger = logging.getLogger("feastfrenzy.auth")

or import the root application logger:
    from backend.app.core.logger import logger
"""

import logging
import logging.config

LOGGER_NAME = "feastfrenzy"

logger = logging.getLogger(LOGGER_NAME)


def configure_logging(level: str = "INFO") -> None:
    """Apply the console logging setup. Safe to call more than once."""
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
        },
        "loggers": {
            LOGGER_NAME: {
                "handlers": ["console"],
                "level": level.upper(),
                "propagate": False,
            },
        },
    })
