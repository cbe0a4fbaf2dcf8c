"""
Volume type selection for clouds that require one.
"""

import logging
from typing import Any, Dict, List, Optional

from .errors import InvalidRequestError
from .providers import ProviderPolicy
from .types import VolumeType

logger = logging.getLogger(__name__)


def select_volume_type(
    policy: ProviderPolicy,
    volume_types: List[VolumeType],
    size: int,
    options: Optional[Dict[str, Any]] = None,
) -> Optional[VolumeType]:
    """
    Choose the volume type for a new volume.

    Args:
        policy: Provider policy (decides the selection strategy)
        volume_types: Types offered by the cloud
        size: Requested size in GB
        options: Caller options (``volume_type`` names the type by name)

    Returns:
        The chosen type, or None when the provider takes no volume type

    Raises:
        InvalidRequestError: If no offered type fits the request
    """
    options = options or {}

    if policy.volume_type_selection == "by_name":
        wanted = options.get("volume_type")
        for volume_type in volume_types:
            if volume_type.name == wanted:
                return volume_type
        available = ", ".join(t.name for t in volume_types)
        raise InvalidRequestError(
            "options.volume_type", wanted, f"unknown volume type (available: {available})"
        )

    if policy.volume_type_selection == "closest_size":
        return _closest_size(volume_types, size)

    return None


def _closest_size(volume_types: List[VolumeType], size: int) -> VolumeType:
    """
    Pick a custom-size type if the cloud has one, otherwise the smallest
    fixed size that still fits ``size``.
    """
    candidates = [t for t in volume_types if t.size == 0]

    if not candidates:
        large_enough = [t for t in volume_types if t.size >= size]
        if large_enough:
            minimum_size = min(t.size for t in large_enough)
            candidates = [t for t in large_enough if t.size == minimum_size]

    if not candidates:
        raise InvalidRequestError(
            "size", size, f"could not find a volume type that is large enough for {size} GB"
        )

    if len(candidates) == 1:
        volume_type = candidates[0]
    elif candidates[0].resource_uid.isdigit():
        logger.info("Found multiple valid volume types, using the greatest numeric resource_uid")
        volume_type = max(candidates, key=lambda t: int(t.resource_uid) if t.resource_uid.isdigit() else -1)
    else:
        logger.info("Found multiple valid volume types, using the first returned")
        volume_type = candidates[0]

    if volume_type.size == 0:
        logger.info(
            f"Found volume type that supports custom sizes: "
            f"{volume_type.name} ({volume_type.resource_uid})"
        )
    else:
        logger.info(
            f"Using closest volume type: {volume_type.name} "
            f"({volume_type.resource_uid}) which is {volume_type.size} GB"
        )
    return volume_type


__all__ = ["select_volume_type"]
