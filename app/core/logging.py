import os
import logging.config
from app.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
MAX_LOG_BYTES = 10 * 1024 * 1024

def _rotating_file(filename: str, level: str) -> dict:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": "default",
        "filename": os.path.join(settings.LOG_DIR, filename),
        "maxBytes": MAX_LOG_BYTES,
        "backupCount": 5,
    }

def build_logging_config() -> dict:
    app_handlers = ["console", "file", "error_file"]
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": {"format": LOG_FORMAT}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": "INFO",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
            "file": _rotating_file("app.log", "INFO"),
            "error_file": _rotating_file("error.log", "ERROR"),
            # proctoring violations and terminations, kept apart for review
            "proctoring_file": _rotating_file("proctoring.log", "INFO"),
        },
        "root": {"level": "INFO", "handlers": app_handlers},
        "loggers": {
            "app": {"level": "INFO", "handlers": app_handlers, "propagate": False},
            "app.services.proctoring": {
                "level": "INFO",
                "handlers": app_handlers + ["proctoring_file"],
                "propagate": False,
            },
            "app.core.decorators": {"level": "DEBUG", "handlers": ["console", "file"], "propagate": False},
            "apscheduler": {"level": "WARNING", "handlers": ["console"], "propagate": False},
            "uvicorn.access": {"level": "WARNING", "handlers": ["console"], "propagate": False},
        },
    }

def configure_logging():
    os.makedirs(settings.LOG_DIR, exist_ok=True)
    logging.config.dictConfig(build_logging_config())
