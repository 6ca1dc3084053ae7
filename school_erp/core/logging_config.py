import logging.config


def configure_logging(level: str = "INFO") -> None:
    """Console logging for the API process and the reminder scheduler."""
    logging.config.dictConfig(
        {
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
            "root": {"handlers": ["console"], "level": level.upper()},
            "loggers": {
                # APScheduler logs every job execution at INFO
                "apscheduler": {"level": "WARNING"},
            },
        }
    )
