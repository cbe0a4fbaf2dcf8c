"""
Pytest configuration and fixtures for cloud-volumes tests.

This module provides shared fixtures and configuration for all tests,
including an in-memory cloud client with scripted status sequences.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cloud_volumes.client.base import CloudVolumeClient  # noqa: E402
from cloud_volumes.config import VolumeConfig  # noqa: E402
from cloud_volumes.types import (  # noqa: E402
    Instance,
    RemoteAttachment,
    RemoteSnapshot,
    RemoteVolume,
    VolumeType,
)


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, isolated)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (require a real cloud API)"
    )


# =============================================================================
# Fake cloud
# =============================================================================

CLOUD_HREF = "/api/clouds/1"
INSTANCE_HREF = f"{CLOUD_HREF}/instances/INST1"
DATACENTER_HREF = f"{CLOUD_HREF}/datacenters/DC1"

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _matches(resource: Any, expressions: Optional[List[str]]) -> bool:
    for expression in expressions or []:
        if "<>" in expression:
            field, value = expression.split("<>", 1)
            if str(getattr(resource, field)) == value:
                return False
        else:
            field, value = expression.split("==", 1)
            if str(getattr(resource, field)) != value:
                return False
    return True


def _advance(resource: Any, attribute: str, script: List[str]) -> None:
    """Apply the next scripted value; the last one sticks."""
    if script:
        value = script.pop(0) if len(script) > 1 else script[0]
        setattr(resource, attribute, value)


class FakeCloudClient(CloudVolumeClient):
    """
    In-memory cloud.

    ``*_scripts`` map an href to the values its status/state field takes on
    successive ``show_*`` calls. ``fail(method, error)`` queues an error
    for the next call of ``method``. Every call is recorded in ``calls``.
    """

    def __init__(self):
        self.instance = Instance(
            href=INSTANCE_HREF,
            cloud_href=CLOUD_HREF,
            datacenter_href=DATACENTER_HREF,
        )
        self.volumes: Dict[str, RemoteVolume] = {}
        self.attachments: Dict[str, RemoteAttachment] = {}
        self.snapshots: Dict[str, RemoteSnapshot] = {}
        self.volume_types: List[VolumeType] = []

        self.volume_scripts: Dict[str, List[str]] = {}
        self.attachment_scripts: Dict[str, List[str]] = {}
        self.snapshot_scripts: Dict[str, List[str]] = {}

        # Statuses a newly created resource goes through when shown
        self.new_volume_statuses = ["available"]
        self.new_attachment_states = ["attached"]
        self.new_snapshot_states = ["available"]

        self.calls: List[tuple] = []
        self.closed = False
        self._errors: Dict[str, List[Exception]] = {}
        self._counter = 0

    # Test helpers

    def fail(self, method: str, error: Exception, times: int = 1) -> None:
        self._errors.setdefault(method, []).extend([error] * times)

    def add_volume(self, resource_uid: str = "vol-1", status: str = "available", **kwargs) -> RemoteVolume:
        volume = RemoteVolume(
            href=f"{CLOUD_HREF}/volumes/{resource_uid}",
            resource_uid=resource_uid,
            status=status,
            **kwargs,
        )
        self.volumes[volume.href] = volume
        return volume

    def add_attachment(self, volume_href: str, device: str, instance_href: str = INSTANCE_HREF) -> RemoteAttachment:
        self._counter += 1
        attachment = RemoteAttachment(
            href=f"{CLOUD_HREF}/volume_attachments/att-{self._counter}",
            device=device,
            state="attached",
            volume_href=volume_href,
            instance_href=instance_href,
        )
        self.attachments[attachment.href] = attachment
        return attachment

    def add_snapshot(
        self,
        resource_uid: str,
        parent_volume_href: Optional[str] = None,
        state: str = "available",
        age_days: int = 0,
        **kwargs,
    ) -> RemoteSnapshot:
        snapshot = RemoteSnapshot(
            href=f"{CLOUD_HREF}/volume_snapshots/{resource_uid}",
            resource_uid=resource_uid,
            name=kwargs.pop("name", resource_uid),
            state=state,
            parent_volume_href=parent_volume_href,
            updated_at=BASE_TIME - timedelta(days=age_days),
            **kwargs,
        )
        self.snapshots[snapshot.href] = snapshot
        return snapshot

    def called(self, method: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == method]

    def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method,) + args)
        errors = self._errors.get(method)
        if errors:
            raise errors.pop(0)

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}-{self._counter}"

    # CloudVolumeClient

    async def get_instance(self) -> Instance:
        self._record("get_instance")
        return self.instance

    async def create_volume(self, params: Dict[str, Any]) -> RemoteVolume:
        self._record("create_volume", dict(params))
        volume = self.add_volume(
            self._next_id("vol"),
            status="creating",
            name=params["name"],
            size=int(params["size"]),
            description=params.get("description"),
        )
        self.volume_scripts[volume.href] = list(self.new_volume_statuses)
        return volume.model_copy()

    async def find_volumes(self, filters: Optional[List[str]] = None) -> List[RemoteVolume]:
        self._record("find_volumes", filters)
        return [v.model_copy() for v in self.volumes.values() if _matches(v, filters)]

    async def show_volume(self, href: str) -> RemoteVolume:
        self._record("show_volume", href)
        volume = self.volumes[href]
        _advance(volume, "status", self.volume_scripts.get(href, []))
        return volume.model_copy()

    async def destroy_volume(self, href: str) -> None:
        self._record("destroy_volume", href)
        del self.volumes[href]

    async def list_volume_types(self) -> List[VolumeType]:
        self._record("list_volume_types")
        return list(self.volume_types)

    async def create_attachment(self, volume_href: str, instance_href: str, device: str) -> RemoteAttachment:
        self._record("create_attachment", volume_href, instance_href, device)
        attachment = self.add_attachment(volume_href, device, instance_href)
        attachment.state = "attaching"
        self.attachment_scripts[attachment.href] = list(self.new_attachment_states)
        return attachment.model_copy()

    async def list_attachments(self, filters: Optional[List[str]] = None) -> List[RemoteAttachment]:
        self._record("list_attachments", filters)
        return [a.model_copy() for a in self.attachments.values() if _matches(a, filters)]

    async def show_attachment(self, href: str) -> RemoteAttachment:
        self._record("show_attachment", href)
        attachment = self.attachments[href]
        _advance(attachment, "state", self.attachment_scripts.get(href, []))
        return attachment.model_copy()

    async def destroy_attachment(self, href: str) -> None:
        self._record("destroy_attachment", href)
        attachment = self.attachments.pop(href)
        volume = self.volumes.get(attachment.volume_href)
        if volume is not None and attachment.volume_href not in self.volume_scripts:
            volume.status = "available"

    async def create_snapshot(
        self,
        name: str,
        parent_volume_href: str,
        description: Optional[str] = None,
    ) -> RemoteSnapshot:
        self._record("create_snapshot", name, parent_volume_href, description)
        snapshot = self.add_snapshot(
            self._next_id("snap"),
            parent_volume_href=parent_volume_href,
            state="pending",
            name=name,
            description=description,
        )
        self.snapshot_scripts[snapshot.href] = list(self.new_snapshot_states)
        return snapshot.model_copy()

    async def list_snapshots(self, filters: Optional[List[str]] = None) -> List[RemoteSnapshot]:
        self._record("list_snapshots", filters)
        return [s.model_copy() for s in self.snapshots.values() if _matches(s, filters)]

    async def show_snapshot(self, href: str) -> RemoteSnapshot:
        self._record("show_snapshot", href)
        snapshot = self.snapshots[href]
        _advance(snapshot, "state", self.snapshot_scripts.get(href, []))
        return snapshot.model_copy()

    async def destroy_snapshot(self, href: str) -> None:
        self._record("destroy_snapshot", href)
        del self.snapshots[href]

    async def close(self) -> None:
        self.closed = True


class FakeScanner:
    """
    Device scanner returning scripted device lists.

    Each ``current_devices`` call returns the next list; the last one sticks.
    """

    def __init__(self, *device_lists: List[str]):
        self.device_lists = [list(devices) for devices in device_lists] or [["/dev/sda"]]
        self.rescans = 0

    def current_devices(self) -> List[str]:
        if len(self.device_lists) > 1:
            return self.device_lists.pop(0)
        return list(self.device_lists[0])

    async def rescan(self) -> bool:
        self.rescans += 1
        return False


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fake_client() -> FakeCloudClient:
    """Create an empty in-memory cloud."""
    return FakeCloudClient()


@pytest.fixture
def volume_config(tmp_path) -> VolumeConfig:
    """Create a config that never sleeps."""
    return VolumeConfig(
        api_endpoint="https://api.example.test",
        poll_interval_sec=0,
        gateway_retry_delay_sec=0,
        scsi_scan_file=str(tmp_path / "no-scsi-scan"),
        scsi_settle_sec=0,
        state_file=str(tmp_path / "state.json"),
    )


@pytest.fixture
def partitions_file(tmp_path) -> Path:
    """Create a /proc/partitions lookalike."""
    path = tmp_path / "partitions"
    path.write_text(
        "major minor  #blocks  name\n"
        "\n"
        " 202        0   8388608 xvda\n"
        " 202        1   8387584 xvda1\n"
        " 202       16  10485760 xvdb\n"
        " 253        0   1048576 dm-0\n"
    )
    return path
