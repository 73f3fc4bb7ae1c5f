import logging
import os
from typing import Optional

LOGGER_NAME = "gravsim"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO", fmt: str = DEFAULT_FORMAT,
                  log_file: Optional[str] = None) -> logging.Logger:
    """
    Sets up logging for the application.

    Configures a dedicated application logger (not the root logger) to output
    to the console and, optionally, a log file. This keeps verbose logs from
    third-party libraries like Numba and Matplotlib out of the simulation log.

    Args:
        level: Logging level name, e.g. "INFO" or "DEBUG"
        fmt: logging.Formatter format string
        log_file: Optional path of a log file; parent directories are created

    Returns:
        The configured "gravsim" logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper() if isinstance(level, str) else level)

    # --- Prevent logs from propagating to the root logger ---
    logger.propagate = False

    formatter = logging.Formatter(fmt)

    # Clear existing handlers to avoid duplication if this function is called again
    if logger.hasHandlers():
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.info(f"Logging initialized at level {logging.getLevelName(logger.level)}"
                + (f". Log file: {log_file}" if log_file else ""))
    return logger
