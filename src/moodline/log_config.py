"""Logging setup for moodline.

All modules log through loguru's shared ``logger``; this module only decides
where records go.
"""

import sys
from pathlib import Path

from loguru import logger

LOG_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def setup_logging(level: str = "WARNING", log_file: str | Path | None = None) -> None:
    """Route log records to stderr and, optionally, a rotating file.

    Args:
        level: Minimum level for the stderr sink
        log_file: Optional path of a file sink that always records DEBUG
    """
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=LOG_FORMAT)
    if log_file:
        logger.add(
            Path(log_file),
            level="DEBUG",
            rotation="5 MB",
            retention=3,
            enqueue=True,
        )
