from logging.config import dictConfig

from .config import LOG_LEVEL


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Route app and uvicorn logs through one console handler."""
    dictConfig({
        "version": 1,
        "disable_existing_loggers": False,  # keep uvicorn's loggers
        "formatters": {
            "plain": {"format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s"},
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "formatter": "plain"},
        },
        "loggers": {
            "": {"handlers": ["console"], "level": level},
            "uvicorn": {"handlers": ["console"], "level": level, "propagate": False},
            "uvicorn.error": {"handlers": ["console"], "level": level, "propagate": False},
            "uvicorn.access": {"handlers": ["console"], "level": level, "propagate": False},
        },
    })
