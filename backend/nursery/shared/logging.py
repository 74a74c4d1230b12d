import sys
from loguru import logger
from .config import settings

FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> - <level>{message}</level>"
)


def setup_logging(level: str | None = None) -> None:
    logger.remove()
    logger.configure(extra={"component": "app"})
    logger.add(sys.stderr, level=(level or settings.LOG_LEVEL).upper(), format=FORMAT)


def get_logger(component: str):
    return logger.bind(component=component)
