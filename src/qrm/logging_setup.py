"""Central logging configuration.

Applies a root stdout handler so all ``qrm.*`` module loggers emit without
per-module setup. Avoids duplicate handlers when called repeatedly.
"""
from __future__ import annotations
import copy
import logging
from logging.config import dictConfig

_DICT_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s %(levelname)s:%(name)s:%(message)s",
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": "DEBUG",
            "formatter": "default",
            "stream": "ext://sys.stdout",
        }
    },
    "root": {"level": "WARNING", "handlers": ["console"]},
    "loggers": {
        "qrm": {"level": "INFO", "propagate": True},
    },
}


def configure_logging(level: str = "INFO") -> None:
    """Configure logging once.

    If the root logger already has handlers, only the ``qrm`` level is
    adjusted so repeated calls never stack handlers.
    """
    root = logging.getLogger()
    if root.handlers:
        logging.getLogger("qrm").setLevel(level)
        return
    config = copy.deepcopy(_DICT_CONFIG)
    config["loggers"]["qrm"]["level"] = level
    dictConfig(config)
