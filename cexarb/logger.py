# cexarb/logger.py
import logging
import os
import sys
from typing import Optional

LOG_FORMAT = '%(asctime)s | %(levelname)s | %(module)s | %(message)s'


def setup_console_logger(name: str, level: str, log_file: Optional[str] = None) -> logging.Logger:
    """
    Sets up the standard Python logger for console output.
    When `log_file` is given the same records are appended to that file.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level.upper())

    if not logger.handlers:
        formatter = logging.Formatter(LOG_FORMAT)
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

        if log_file:
            directory = os.path.dirname(log_file)
            if directory and not os.path.exists(directory):
                os.makedirs(directory, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger
