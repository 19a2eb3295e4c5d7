import sys
from loguru import logger
from .config import settings


def setup_logging():
    """Configure the loguru sink once for the whole process and return the logger."""
    logger.remove()
    if settings.log_json:
        logger.add(sys.stderr, level=settings.log_level.upper(), serialize=True)
    else:
        logger.add(
            sys.stderr,
            level=settings.log_level.upper(),
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
                "<level>{message}</level> | {extra}"
            ),
        )
    return logger
