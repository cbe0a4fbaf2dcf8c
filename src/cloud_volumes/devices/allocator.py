"""
Device path allocation.

Computes the next unused device paths given the devices currently
visible to the OS. Two naming families are supported:

- letter-suffixed: /dev/sdf, /dev/xvdg, ... /dev/xvdaa
- number-suffixed: /dev/xvd1, /dev/xvd2, ...

Provider quirks (EC2 boot range, HVM prefix remapping, CloudStack's
CD-ROM hole) come from the ProviderPolicy.
"""

import logging
import re
from typing import Iterable, List, Optional, Sequence, Set

from ..errors import InvalidRequestError, UnknownDeviceSchemeError
from ..providers import GENERIC_PROVIDER, ProviderPolicy

logger = logging.getLogger(__name__)

LETTER_DEVICE = re.compile(r"^/dev/([a-z]+?d)([a-z]+)$")
NUMBER_DEVICE = re.compile(r"^/dev/([a-z]+?d[a-z]*?)(\d+)$")
BOOT_RANGE_DEVICE = re.compile(r"^/dev/(s|xv)d[a-d][0-9]*$")

# Letter suffixes run a..z, aa..zz, aaa..zzz
MAX_SUFFIX_LENGTH = 3


def next_suffix(suffix: str) -> str:
    """
    Return the letter suffix following ``suffix``.

    Example:
        >>> next_suffix("f"), next_suffix("z"), next_suffix("az")
        ('g', 'aa', 'ba')
    """
    chars = list(suffix)
    index = len(chars) - 1
    while index >= 0:
        if chars[index] != "z":
            chars[index] = chr(ord(chars[index]) + 1)
            return "".join(chars)
        chars[index] = "a"
        index -= 1
    return "a" + "".join(chars)


def suffix_key(suffix: str):
    return (len(suffix), suffix)


def lowest_free_lun(attached_devices: Iterable[str]) -> int:
    """
    Return the lowest LUN not used by the given attachment devices.

    Devices that do not start with a number count as LUN 0.
    """
    luns = set()
    for device in attached_devices:
        match = re.match(r"\s*(\d+)", str(device))
        luns.add(int(match.group(1)) if match else 0)

    lun = 0
    while lun in luns:
        lun += 1
    return lun


class DeviceAllocator:
    """
    Picks device paths for new attachments.

    Allocation is deterministic for a given device list: the same input
    always yields the same paths, and returned paths are neither present
    in the input nor excluded.
    """

    def __init__(self, policy: Optional[ProviderPolicy] = None):
        self.policy = policy or GENERIC_PROVIDER

    def next_devices(
        self,
        devices: Sequence[str],
        count: int = 1,
        exclusions: Optional[Iterable[str]] = None,
    ) -> List[str]:
        """
        Compute the next ``count`` unused device paths.

        Args:
            devices: Currently present devices, sorted
            count: Number of paths to return
            exclusions: Suffixes never to return (defaults to the provider's holes)

        Returns:
            Device paths in allocation order

        Raises:
            UnknownDeviceSchemeError: If the devices follow no known naming scheme
        """
        if count < 1:
            return []
        if not devices:
            raise UnknownDeviceSchemeError(None)

        excluded = set(self.policy.device_exclusions if exclusions is None else exclusions)
        partitions = list(devices)

        if self.policy.seed_past_boot_range:
            match = BOOT_RANGE_DEVICE.match(partitions[-1])
            if match:
                seed = f"/dev/{match.group(1)}de"
                logger.debug(f"Only boot devices in use, seeding allocation with {seed}")
                partitions.append(seed)

        first = partitions[0]

        match = LETTER_DEVICE.match(first)
        if match:
            return self._next_lettered(match.group(1), partitions, count, excluded)

        match = NUMBER_DEVICE.match(first)
        if match:
            return self._next_numbered(match.group(1), partitions, count)

        raise UnknownDeviceSchemeError(first)

    def _next_lettered(
        self,
        prefix: str,
        partitions: List[str],
        count: int,
        excluded: Set[str],
    ) -> List[str]:
        hvm = False
        if self.policy.hvm_legacy_prefix and prefix == self.policy.hvm_legacy_prefix:
            # HVM root shows up as hd*, attached volumes as xvd*
            prefix = self.policy.hvm_prefix
            hvm = True

        pattern = re.compile(rf"^/dev/{re.escape(prefix)}([a-z]+)$")
        used = set()
        for partition in partitions:
            match = pattern.match(partition)
            if match:
                used.add(match.group(1))

        start = max(used, key=suffix_key) if used else None
        if hvm:
            floor = self.policy.hvm_min_letter
            if start is None or suffix_key(start) < suffix_key(floor):
                start = floor

        letters = []
        letter = start
        while len(letters) < count:
            letter = next_suffix(letter)
            if len(letter) > MAX_SUFFIX_LENGTH:
                raise InvalidRequestError(
                    "count", count, f"no free device names left after /dev/{prefix}{start}"
                )
            if letter in excluded or letter in used:
                continue
            letters.append(letter)

        return [f"/dev/{prefix}{letter}" for letter in letters]

    def _next_numbered(self, prefix: str, partitions: List[str], count: int) -> List[str]:
        pattern = re.compile(rf"^/dev/{re.escape(prefix)}(\d+)$")
        numbers = [
            int(match.group(1))
            for match in (pattern.match(partition) for partition in partitions)
            if match
        ]
        highest = max(numbers)
        return [f"/dev/{prefix}{number}" for number in range(highest + 1, highest + count + 1)]


__all__ = [
    "DeviceAllocator",
    "lowest_free_lun",
    "next_suffix",
]
