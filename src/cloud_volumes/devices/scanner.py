"""
Block device enumeration from the OS partition table.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import List, Tuple

logger = logging.getLogger(__name__)

# device-mapper pseudo devices
_DEVICE_MAPPER = re.compile(r"^dm-\d")
_SUFFIXED = re.compile(r"^(/dev/[a-z]+?d[a-z]*?)([a-z]+|\d+)$")


def device_sort_key(device: str) -> Tuple[str, int, str]:
    """
    Sort key ordering devices by family, then suffix.

    Suffixes compare by length first so that /dev/sdz < /dev/sdaa and
    /dev/xvd9 < /dev/xvd10.
    """
    match = _SUFFIXED.match(device)
    if not match:
        return (device, 0, "")
    family, suffix = match.groups()
    return (family, len(suffix), suffix)


class DeviceScanner:
    """
    Lists the block devices currently visible to the OS.

    Whole disks with letter suffixes (/dev/sdf) are preferred; when there
    are none, number-suffixed devices (/dev/xvd1) are returned instead.
    """

    def __init__(
        self,
        partitions_file: str = "/proc/partitions",
        scsi_scan_file: str = "/sys/class/scsi_host/host0/scan",
        settle_sec: float = 5.0,
    ):
        self.partitions_file = Path(partitions_file)
        self.scsi_scan_file = Path(scsi_scan_file)
        self.settle_sec = settle_sec

    def list_partitions(self) -> List[str]:
        """Return partition names from the partition table, minus device-mapper entries."""
        lines = self.partitions_file.read_text().splitlines()[2:]
        partitions = [line.split()[-1] for line in lines if line.strip()]
        return [p for p in partitions if not _DEVICE_MAPPER.match(p)]

    def current_devices(self) -> List[str]:
        """Return the visible devices as sorted /dev paths."""
        partitions = self.list_partitions()

        devices = [p for p in partitions if p[-1].isalpha()]
        if not devices:
            devices = [p for p in partitions if p[-1].isdigit()]

        return sorted((f"/dev/{d}" for d in devices), key=device_sort_key)

    async def rescan(self) -> bool:
        """
        Ask the SCSI host to rescan its bus (needed on VMware/ESX).

        Returns:
            True if a rescan was triggered
        """
        if not self.scsi_scan_file.exists():
            return False

        try:
            self.scsi_scan_file.write_text("- - -")
        except OSError as e:
            logger.warning(f"SCSI rescan via {self.scsi_scan_file} failed: {e}")
            return False

        logger.info(f"Triggered SCSI rescan, waiting {self.settle_sec}s for devices to settle")
        await asyncio.sleep(self.settle_sec)
        return True
