import logging
import sys

RESET = "\033[0m"
COLORS = {
    "DEBUG": "\033[94m",  # Blue
    "INFO": "\033[92m",  # Green
    "WARNING": "\033[93m",  # Yellow
    "ERROR": "\033[91m",  # Red
    "CRITICAL": "\033[95m",  # Magenta
}

LOGGER_NAME = "logkg"


class ColoredFormatter(logging.Formatter):
    def format(self, record):
        log_color = COLORS.get(record.levelname, RESET)
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{log_color}{record.levelname}{RESET}"
        return super().format(record)


def get_logger():
    return logging.getLogger(LOGGER_NAME)


def setup_logger(level=logging.INFO, stream=None):
    """Attach a single colored stream handler to the package logger."""
    logger = get_logger()
    logger.setLevel(level)

    # Re-running the CLI in one process must not stack handlers
    for handler in list(logger.handlers):
        if getattr(handler, "_logkg_handler", False):
            logger.removeHandler(handler)

    stream_handler = logging.StreamHandler(stream or sys.stderr)
    stream_handler.setLevel(level)
    stream_handler.setFormatter(ColoredFormatter("%(levelname)s - %(message)s"))
    stream_handler._logkg_handler = True

    logger.addHandler(stream_handler)
    return logger
