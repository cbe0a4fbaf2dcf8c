"""
cloud-volumes: Cloud block-storage volume lifecycle management

Creates, attaches, detaches, snapshots and deletes cloud volumes for the
instance it runs on, and prunes old snapshots. Invoked once per declared
volume and action; the caller persists the returned state.
"""

__version__ = "1.0.0"

from cloud_volumes.config import VolumeConfig
from cloud_volumes.controller import ACTIONS, VolumeLifecycleController
from cloud_volumes.types import (
    ActionResult,
    AttachmentState,
    Instance,
    RemoteAttachment,
    RemoteSnapshot,
    RemoteVolume,
    SnapshotState,
    VolumeSpec,
    VolumeState,
    VolumeStatus,
    VolumeType,
)
from cloud_volumes.client import CloudVolumeClient, Deadline, RightScaleClient
from cloud_volumes.devices import DeviceAllocator, DeviceScanner
from cloud_volumes.filters import build_filters
from cloud_volumes.retention import SnapshotRetentionPolicy
from cloud_volumes.state import StateStore

from cloud_volumes.errors import (
    VolumeError,
    InvalidRequestError,
    NotFoundError,
    UnknownDeviceSchemeError,
    OperationFailedError,
    DeadlineExceededError,
    RemoteAPIError,
)

# Re-export core classes
__all__ = [
    "VolumeConfig",
    "VolumeLifecycleController",
    "ACTIONS",
    # Types
    "ActionResult",
    "AttachmentState",
    "Instance",
    "RemoteAttachment",
    "RemoteSnapshot",
    "RemoteVolume",
    "SnapshotState",
    "VolumeSpec",
    "VolumeState",
    "VolumeStatus",
    "VolumeType",
    # Collaborators
    "CloudVolumeClient",
    "Deadline",
    "RightScaleClient",
    "DeviceAllocator",
    "DeviceScanner",
    "build_filters",
    "SnapshotRetentionPolicy",
    "StateStore",
    # Exception classes
    "VolumeError",
    "InvalidRequestError",
    "NotFoundError",
    "UnknownDeviceSchemeError",
    "OperationFailedError",
    "DeadlineExceededError",
    "RemoteAPIError",
]
