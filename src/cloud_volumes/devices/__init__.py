"""
Local block device handling for cloud-volumes

Enumerates the devices visible to the OS and allocates device paths
for new attachments.
"""

from .allocator import DeviceAllocator, lowest_free_lun, next_suffix
from .scanner import DeviceScanner, device_sort_key

__all__ = [
    "DeviceAllocator",
    "DeviceScanner",
    "device_sort_key",
    "lowest_free_lun",
    "next_suffix",
]
