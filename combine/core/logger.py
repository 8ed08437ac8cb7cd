"""Loguru setup for the combine engine and CLI.

Bound context (``logger.bind(athlete_id=...)``) is rendered as ``key=value``
pairs after the message so rebuild, history and snapshot lines can be
grepped by athlete or snapshot id.
"""

import sys
from pathlib import Path

from loguru import logger

from combine.config.settings import settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"


def format_context(extra: dict) -> str:
    """``key=value`` pairs for bound context, sorted by key."""
    return " ".join(f"{key}={value}" for key, value in sorted(extra.items()))


def _with_context(base: str):
    def formatter(record) -> str:
        context = format_context(record["extra"])
        if not context:
            return base + "\n{exception}"
        # Literal text in a loguru template
        escaped = context.replace("{", "{{").replace("}", "}}").replace("<", r"\<")
        return f"{base} | {escaped}\n{{exception}}"

    return formatter


def setup_logger(
    level: str = "INFO",
    log_file: str | None = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """Replace every sink with stderr plus an optional rotating file.

    Args:
        level: minimum level for both sinks
        log_file: path of the file sink; parent directories are created
        rotation: loguru rotation rule for the file sink
        retention: loguru retention rule for the file sink
    """
    logger.remove()
    logger.add(sys.stderr, format=_with_context(CONSOLE_FORMAT), level=level, colorize=True)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            format=_with_context(FILE_FORMAT),
            level=level,
            rotation=rotation,
            retention=retention,
            compression="zip",
            backtrace=True,
            diagnose=False,
        )

    logger.debug(f"Logger ready: level={level} file={log_file or '-'}")


setup_logger(level=settings.log_level, log_file=settings.log_file)
