"""
Cloud API clients for cloud-volumes

Provides the CloudVolumeClient contract, the RightScale implementation
and the deadline-bounded polling helpers used by the lifecycle actions.
"""

from .base import CloudVolumeClient
from .rightscale import RightScaleClient
from .waiter import Deadline, poll_until, retry_on_gateway_timeout, wait_for_status

__all__ = [
    "CloudVolumeClient",
    "RightScaleClient",
    "Deadline",
    "poll_until",
    "retry_on_gateway_timeout",
    "wait_for_status",
]
