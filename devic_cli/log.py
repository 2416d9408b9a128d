import os
import sys

from loguru import logger

LOG_FORMAT = "<level>{level: <8}</level> | <cyan>{name}</cyan> - {message}"


def configure_logging(verbose: bool = False) -> None:
    """Route loguru to stderr so stdout stays reserved for command output."""
    level = "DEBUG" if verbose else os.environ.get("DEVIC_LOG_LEVEL", "WARNING").upper()
    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)
