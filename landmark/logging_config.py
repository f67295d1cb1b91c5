import os
import logging

LOG_FORMAT = "%(asctime)s | %(filename)s:%(lineno)d  | %(levelname)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(name=None, level=logging.INFO):
    """
    Set up a fingerprinting logger with file and line number information.

    The LANDMARK_LOG_LEVEL environment variable, when set, overrides the
    level passed in (e.g. LANDMARK_LOG_LEVEL=DEBUG to trace every write).

    Args:
        name: Logger name (use __name__ to get module name)
        level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        logger: Configured logger instance
    """
    level = os.environ.get("LANDMARK_LOG_LEVEL", level)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Prevent duplicate handlers when modules are re-imported
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console_handler)

    return logger
