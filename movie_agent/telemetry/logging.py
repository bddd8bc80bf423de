from __future__ import annotations

import logging
import logging.config

LOG_FORMAT = "%(asctime)s %(levelname)5s %(name)-32s %(message)s"


def setup_logging(level: str = "INFO") -> None:
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": {"format": LOG_FORMAT}},
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "stream": "ext://sys.stderr",
                },
            },
            "loggers": {
                "movie_agent": {"level": level.upper(), "handlers": ["default"], "propagate": False},
                "httpx": {"level": "WARNING"},
            },
            "root": {"level": "WARNING", "handlers": ["default"]},
        }
    )
