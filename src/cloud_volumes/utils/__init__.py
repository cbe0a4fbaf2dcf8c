"""
cloud-volumes utilities

Logging helpers.
"""

from cloud_volumes.utils.logger import (
    configure_logging,
    parse_level,
    DEFAULT_FORMAT,
)

__all__ = [
    "configure_logging",
    "parse_level",
    "DEFAULT_FORMAT",
]
