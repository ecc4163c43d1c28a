import sys
from loguru import logger

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {module}:{function}:{line} | {message} | {extra}"


def setup_logging(level: str, log_path: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)
    logger.add(
        log_path,
        level="DEBUG",
        format=LOG_FORMAT,
        rotation="1 MB",
        retention=5,
        compression="zip",
    )
    logger.bind(log_path=log_path).debug("Logging configured at {level}", level=level)
