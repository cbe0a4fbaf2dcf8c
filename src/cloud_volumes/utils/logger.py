"""
cloud-volumes logging utilities

Logging setup for one command-line run of a volume action.
"""

import logging
from typing import Iterable, Optional, Union

# Default logging format
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that are only interesting when debugging
NOISY_LOGGERS = ("aiohttp", "asyncio")


def parse_level(level: Union[int, str]) -> int:
    """
    Convert a level name ("info", "DEBUG", ...) or number to a logging level.

    Raises:
        ValueError: If the name is not a known logging level
    """
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def configure_logging(
    level: Union[int, str] = logging.INFO,
    format: str = DEFAULT_FORMAT,
    file_path: Optional[str] = None,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> None:
    """
    Route all cloud-volumes logging to stderr (and optionally a file).

    Args:
        level: Log level (number or name, e.g. "debug")
        format: Log format string
        file_path: Optional file to append the same records to
        quiet: Loggers held at WARNING unless running at DEBUG
    """
    numeric_level = parse_level(level)
    formatter = logging.Formatter(format)

    handlers = [logging.StreamHandler()]
    if file_path:
        handlers.append(logging.FileHandler(file_path))

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    # HTTP session chatter drowns out the action log at INFO
    for name in quiet:
        logging.getLogger(name).setLevel(
            logging.NOTSET if numeric_level <= logging.DEBUG else logging.WARNING
        )
