"""
logging_config.py — Centralized Logging Configuration for the Order Service

This module configures unified logging behavior for the entire application.
It ensures that all modules log messages consistently to the console and,
optionally, to a file.

Features:
    • Console output plus optional file output (LOG_FILE)
    • Process ID tagging for multi-worker visibility
    • Standardized log format for all modules
    • Reduced verbosity for external dependencies (e.g., httpx, SQLAlchemy)
"""

import logging
import sys

from .config import LOG_FILE, LOG_LEVEL

LOG_FORMAT = '%(asctime)s - %(levelname)s - [PID:%(process)d] - %(message)s'


def setup_logging(log_file=LOG_FILE, level=LOG_LEVEL):
    """
    Configures the global logging system for the application.

    The configuration includes:
        - Log level: LOG_LEVEL (default INFO)
        - Log format: timestamp, log level, process ID, and message
        - Output destinations:
            1. Console (stdout): real-time logs, Docker/Kubernetes compatible
            2. File: only if LOG_FILE is set
        - Reduced verbosity for third-party libraries such as httpx and SQLAlchemy

    Args:
        log_file (str | None): Path of the log file, or None for console only.
        level (str): Name of the root log level.
    """
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers
    )

    # Reduce verbosity from external libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name):
    """
    Returns a configured logger instance for a given module or component name.

    Args:
        name (str): The logger name, typically the module’s __name__.

    Returns:
        logging.Logger: A preconfigured logger that follows the global format and handlers.
    """
    return logging.getLogger(name)
