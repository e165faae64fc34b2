import logging
import logging.config
import os
import sys

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("XRPSYNC_LOG_FILE")  # unset: console only


def build_logging_config(level: str = LOG_LEVEL, log_file: str | None = LOG_FILE) -> dict:
    handlers = ["console"] + (["file"] if log_file else [])
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)-6s %(name)8s:%(lineno)d %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": sys.stdout,
            },
        },
        "loggers": {
            "xrpsync": {
                "level": level,
                "handlers": handlers,
                "propagate": False,
            },
            # Cache hits and misses are chatty at DEBUG
            "xrpsync.cache": {"level": "INFO" if level == "DEBUG" else level},
            "uvicorn.access": {
                "level": "WARNING",
                "handlers": handlers,
                "propagate": False,
            },
            "xrpl": {
                "level": "WARNING",
                "handlers": handlers,
                "propagate": False,
            },
            "websockets": {"level": "WARNING"},
        },
        "root": {
            "level": "WARNING",
            "handlers": handlers,
        },
    }
    if log_file:
        config["handlers"]["file"] = {
            "class": "logging.FileHandler",
            "formatter": "default",
            "filename": log_file,
            "mode": "a",
        }
    return config


def setup_logging(level: str | None = None):
    """ Apply the logging configuration. """
    logging.config.dictConfig(build_logging_config(level=(level or LOG_LEVEL).upper()))
    os.environ.setdefault("PYTHONUNBUFFERED", "1")
