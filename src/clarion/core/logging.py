import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from clarion.config import settings

# 2025-03-02 10:00:00 | INFO     | clarion.data_fetcher:fetch_all_metrics:170 - Fetching 30 metrics...
CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def _add_file_sink(path: Path, level: str) -> Optional[int]:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return logger.add(
            str(path),
            rotation="10 MB",
            retention="30 days",
            level=level,
            format=FILE_FORMAT,
        )
    except OSError as e:
        logger.warning(f"File logging disabled, cannot write to {path}: {e}")
        return None


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None):
    """
    Replace loguru's default handler with the project sinks.

    - colored stdout sink
    - rotating file sink (10 MB, kept 30 days); an empty LOG_FILE_PATH disables it

    Args:
        level: Minimum level (default: settings.LOG_LEVEL)
        log_file: Log file path (default: settings.LOG_FILE_PATH)
    """
    level = (level or settings.LOG_LEVEL).upper()
    log_file = settings.LOG_FILE_PATH if log_file is None else log_file

    logger.remove()
    logger.add(sys.stdout, level=level, format=CONSOLE_FORMAT)

    if log_file:
        _add_file_sink(Path(log_file), level)

    return logger


# Configure logging on import
setup_logging()
