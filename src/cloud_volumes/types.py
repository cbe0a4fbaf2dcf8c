"""
cloud-volumes type definitions

Volume, attachment and snapshot models shared across the project,
plus the request/state shapes exchanged with the caller.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

__all__ = [
    "VolumeStatus",
    "AttachmentState",
    "SnapshotState",
    "Instance",
    "RemoteVolume",
    "RemoteAttachment",
    "RemoteSnapshot",
    "VolumeType",
    "VolumeSpec",
    "VolumeState",
    "ActionResult",
]


class VolumeStatus(str, Enum):
    """Volume lifecycle status"""
    ABSENT = "absent"
    CREATING = "creating"
    AVAILABLE = "available"
    PROVISIONED = "provisioned"
    IN_USE = "in-use"
    FAILED = "failed"


class AttachmentState(str, Enum):
    """Volume attachment state"""
    ATTACHING = "attaching"
    ATTACHED = "attached"
    DETACHING = "detaching"
    DETACHED = "detached"


class SnapshotState(str, Enum):
    """Volume snapshot state"""
    PENDING = "pending"
    AVAILABLE = "available"
    FAILED = "failed"


# =============================================================================
# Remote resources
# =============================================================================

class Instance(BaseModel):
    """The compute instance this process runs on"""

    href: str = Field(..., description="Instance href")
    cloud_href: Optional[str] = Field(None, description="Href of the instance's cloud")
    datacenter_href: Optional[str] = Field(None, description="Href of the instance's datacenter")


class RemoteVolume(BaseModel):
    """Volume as reported by the cloud provider"""

    href: str = Field(..., description="Volume href")
    resource_uid: str = Field(..., description="Provider-assigned volume ID")
    name: str = Field(default="", description="Volume name")
    size: Optional[int] = Field(None, description="Volume size in GB")
    description: Optional[str] = Field(None, description="Volume description")
    status: str = Field(default=VolumeStatus.CREATING.value, description="Provider status")


class RemoteAttachment(BaseModel):
    """Attachment of a volume to an instance"""

    href: str = Field(..., description="Attachment href")
    device: str = Field(default="", description="Device reported by the provider")
    state: str = Field(default=AttachmentState.ATTACHING.value, description="Attachment state")
    volume_href: Optional[str] = Field(None, description="Attached volume href")
    instance_href: Optional[str] = Field(None, description="Instance href")


class RemoteSnapshot(BaseModel):
    """Snapshot of a volume"""

    href: str = Field(..., description="Snapshot href")
    resource_uid: str = Field(..., description="Provider-assigned snapshot ID")
    name: str = Field(default="", description="Snapshot name")
    description: Optional[str] = Field(None, description="Snapshot description")
    state: str = Field(default=SnapshotState.PENDING.value, description="Snapshot state")
    parent_volume_href: Optional[str] = Field(None, description="Href of the source volume")
    updated_at: datetime = Field(..., description="Last update timestamp")

    @property
    def is_pending(self) -> bool:
        return self.state == SnapshotState.PENDING.value


class VolumeType(BaseModel):
    """Provider volume type (disk offering)"""

    href: str = Field(..., description="Volume type href")
    resource_uid: str = Field(default="", description="Provider-assigned type ID")
    name: str = Field(default="", description="Volume type name")
    size: int = Field(default=0, description="Fixed size in GB (0 for custom sizes)")


# =============================================================================
# Caller boundary
# =============================================================================

class VolumeSpec(BaseModel):
    """Declared volume, as supplied by the caller for one action"""

    name: str = Field(..., min_length=1, description="Volume name")

    size: int = Field(default=1, ge=1, description="Volume size in GB")

    description: Optional[str] = Field(None, description="Volume description")

    volume_id: Optional[str] = Field(
        None,
        description="Volume ID (provider-assigned, must not be set on create)"
    )

    snapshot_id: Optional[str] = Field(
        None,
        description="Snapshot ID to restore the volume from"
    )

    snapshot_name: Optional[str] = Field(
        None,
        description="Name for a new snapshot (defaults to the volume name)"
    )

    max_snapshots: Optional[int] = Field(
        None,
        ge=0,
        description="Maximum number of snapshots to keep"
    )

    timeout_minutes: float = Field(
        default=15,
        gt=0,
        description="Deadline for asynchronous cloud operations"
    )

    options: Dict[str, Any] = Field(
        default_factory=dict,
        description="Provider-specific options (e.g. volume_type)"
    )


class VolumeState(BaseModel):
    """Last known volume facts, persisted by the caller"""

    size: Optional[int] = None
    device: Optional[str] = None
    description: Optional[str] = None
    volume_id: Optional[str] = None
    state: Optional[str] = None
    max_snapshots: Optional[int] = None

    @property
    def exists(self) -> bool:
        return self.state not in (None, VolumeStatus.ABSENT.value)

    @property
    def is_attached(self) -> bool:
        return self.state == VolumeStatus.IN_USE.value

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted dictionary shape"""
        return {
            "size": self.size,
            "device": self.device,
            "description": self.description,
            "volume_id": self.volume_id,
            "state": self.state,
            "max_snapshots": self.max_snapshots,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "VolumeState":
        if not data:
            return cls()
        return cls(**{key: data.get(key) for key in cls.model_fields})


class ActionResult(BaseModel):
    """Outcome of one lifecycle action"""

    action: str = Field(..., description="Action name")
    name: str = Field(..., description="Volume name")
    changed: bool = Field(default=False, description="Whether remote state was changed")
    state: Optional[VolumeState] = Field(
        None,
        description="State to persist (None when the volume was deleted)"
    )
    message: str = Field(default="", description="Human readable outcome")
    details: Dict[str, Any] = Field(default_factory=dict, description="Action specific details")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "name": self.name,
            "changed": self.changed,
            "state": self.state.to_dict() if self.state is not None else None,
            "message": self.message,
            "details": self.details,
        }
