import sys

from loguru import logger


def setup_logging(level: str = "INFO"):
    logger.remove()
    logger.add(
        sink=sys.stderr,
        level=level.upper(),
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level}</level> | {name}:{line} | {message}",
    )
