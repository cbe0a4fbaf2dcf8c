"""
Cloud volume client contract

All cloud backends must implement this interface. State-changing calls
return as soon as the provider accepts the request; callers poll the
returned resource with the ``show_*`` methods.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..types import (
    Instance,
    RemoteAttachment,
    RemoteSnapshot,
    RemoteVolume,
    VolumeType,
)


class CloudVolumeClient(ABC):
    """
    Abstract base class for cloud volume APIs.

    Filters are expression lists as produced by ``build_filters``.
    Remote failures raise ``RemoteAPIError``.
    """

    @abstractmethod
    async def get_instance(self) -> Instance:
        """Return the instance this process runs on."""
        pass

    # Volumes

    @abstractmethod
    async def create_volume(self, params: Dict[str, Any]) -> RemoteVolume:
        """
        Request a new volume.

        Args:
            params: Volume parameters (name, size, description,
                datacenter_href, volume_type_href, parent_volume_snapshot_href)

        Returns:
            The volume as first reported by the provider
        """
        pass

    @abstractmethod
    async def find_volumes(self, filters: Optional[List[str]] = None) -> List[RemoteVolume]:
        """List volumes matching all filters."""
        pass

    @abstractmethod
    async def show_volume(self, href: str) -> RemoteVolume:
        """Fetch the current view of a volume."""
        pass

    @abstractmethod
    async def destroy_volume(self, href: str) -> None:
        """Delete a volume."""
        pass

    @abstractmethod
    async def list_volume_types(self) -> List[VolumeType]:
        """List the volume types offered by the cloud."""
        pass

    # Attachments

    @abstractmethod
    async def create_attachment(
        self,
        volume_href: str,
        instance_href: str,
        device: str,
    ) -> RemoteAttachment:
        """Request attachment of a volume to an instance at ``device``."""
        pass

    @abstractmethod
    async def list_attachments(self, filters: Optional[List[str]] = None) -> List[RemoteAttachment]:
        """List volume attachments matching all filters."""
        pass

    @abstractmethod
    async def show_attachment(self, href: str) -> RemoteAttachment:
        """Fetch the current view of an attachment."""
        pass

    @abstractmethod
    async def destroy_attachment(self, href: str) -> None:
        """Detach a volume by deleting its attachment."""
        pass

    # Snapshots

    @abstractmethod
    async def create_snapshot(
        self,
        name: str,
        parent_volume_href: str,
        description: Optional[str] = None,
    ) -> RemoteSnapshot:
        """Request a snapshot of a volume."""
        pass

    @abstractmethod
    async def list_snapshots(self, filters: Optional[List[str]] = None) -> List[RemoteSnapshot]:
        """List snapshots matching all filters."""
        pass

    @abstractmethod
    async def show_snapshot(self, href: str) -> RemoteSnapshot:
        """Fetch the current view of a snapshot."""
        pass

    @abstractmethod
    async def destroy_snapshot(self, href: str) -> None:
        """Delete a snapshot."""
        pass

    async def close(self) -> None:
        """
        Release transport resources.

        Default implementation does nothing.
        """
        return None
