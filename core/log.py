import sys

from loguru import logger


LOG_FORMAT = "<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {name} | {message}"


def configure_logging(level: str = "WARNING") -> None:
    """Replace loguru's default sink with a compact stderr sink."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=LOG_FORMAT)
