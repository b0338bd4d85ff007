import sys
from loguru import logger
from ..config import Settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logging(settings: Settings) -> None:
    """
    Route loguru to stderr and, when LOG_FILE is set, to a rotating file.

    Tracebacks are rendered without local variable values (diagnose=False):
    locals of the pipeline hold transcript text and SOAP content, which must
    not end up in log files.
    """
    level = settings.LOG_LEVEL.upper()
    logger.remove()

    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, diagnose=False)

    if settings.LOG_FILE:
        logger.add(
            settings.LOG_FILE,
            rotation=settings.LOG_ROTATION,
            level=level,
            format=FILE_FORMAT,
            diagnose=False,
            encoding="utf-8",
        )

    logger.debug(f"Logging configured (level={level}, file={settings.LOG_FILE or 'disabled'})")
