"""
Logging setup

Entry points call configure_logging() once; library modules only use loguru's logger.
"""
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from app.config import get_core_settings


def configure_logging(level: Optional[str] = None, log_dir: Optional[str] = None, to_file: bool = True) -> None:
    """Console sink plus a daily rotating file sink"""
    settings = get_core_settings()
    level = level or settings.log_level
    log_dir = log_dir or settings.log_dir

    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=level,
    )
    if to_file:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        logger.add(
            str(Path(log_dir) / "court_core_{time:YYYY-MM-DD}.log"),
            rotation="1 day",
            retention="30 days",
            level="DEBUG",
        )
