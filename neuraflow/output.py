import logging
import logging.config

# Logging configuration dict, shared with uvicorn when the admin API runs
log_config = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "[%(asctime)s] %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S"
        },
        "access": {
            "format": "[%(asctime)s] %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S"
        }
    },
    "handlers": {
        "default": {
            "formatter": "default",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout"
        },
        "access": {
            "formatter": "access",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout"
        }
    },
    "loggers": {
        "neuraflow": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False
        },
        "uvicorn": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False
        },
        "uvicorn.error": {
            "level": "INFO"
        },
        "uvicorn.access": {
            "handlers": ["access"],
            "level": "INFO",
            "propagate": False
        }
    }
}


class Output:
    """
    Logger facade shared by every NeuraFlow component.

    Messages are prefixed by the caller (``[Broker]``, ``[IPC]``, ``[<service>]``);
    timestamps come from log_config.
    """

    def __init__(self, logger_name="neuraflow"):
        self.logger = logging.getLogger(logger_name)

    def setup(self, debug: bool = False):
        """Apply log_config, switching this logger to DEBUG when asked"""
        logging.config.dictConfig(log_config)
        if debug:
            self.logger.setLevel(logging.DEBUG)

    def log(self, level: int, message):
        self.logger.log(level, message)

    def debug(self, message):
        self.log(logging.DEBUG, message)

    def info(self, message):
        self.log(logging.INFO, message)

    def warning(self, message):
        self.log(logging.WARNING, message)

    def error(self, message):
        self.log(logging.ERROR, message)

    def critical(self, message):
        self.log(logging.CRITICAL, message)


# Standard output for application logging
output = Output("neuraflow")


def setup_logging(debug: bool = False):
    """Configure process logging for the CLI entry points"""
    output.setup(debug)
