"""
Volume lifecycle controller

Runs one lifecycle action (create, delete, attach, detach, snapshot,
cleanup) for a declared volume. Each action checks the last known state
first; actions that would not change anything are logged and reported
as no-ops without touching the cloud API.

Volume lifecycle: absent → available → in-use → available → absent
"""

import asyncio
import logging
import re
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from .client.base import CloudVolumeClient
from .client.waiter import Deadline, poll_until, retry_on_gateway_timeout, wait_for_status
from .config import VolumeConfig
from .devices import DeviceAllocator, DeviceScanner, device_sort_key, lowest_free_lun
from .errors import (
    InvalidRequestError,
    NotFoundError,
    OperationFailedError,
    RemoteAPIError,
    VolumeError,
)
from .filters import build_filters
from .providers import get_hypervisor_policy, get_provider_policy
from .retention import SnapshotRetentionPolicy
from .types import (
    ActionResult,
    AttachmentState,
    Instance,
    RemoteAttachment,
    RemoteVolume,
    SnapshotState,
    VolumeSpec,
    VolumeState,
    VolumeStatus,
)
from .volume_types import select_volume_type

logger = logging.getLogger(__name__)

ACTIONS = ("create", "delete", "attach", "detach", "snapshot", "cleanup")

# Rackspace refuses to delete volumes that still have snapshots
DEPENDENT_SNAPSHOTS = re.compile(r"Volume still has \d+ dependent snapshots")


@contextmanager
def partial_state_on_error(state: VolumeState, progress: Optional[Dict[str, Any]] = None) -> Iterator[None]:
    """Attach the state observed so far to any VolumeError raised inside the block."""
    try:
        yield
    except VolumeError as e:
        if e.partial_state is None:
            e.partial_state = state.model_copy()
        if progress:
            e.details.update(progress)
        raise


class VolumeLifecycleController:
    """
    Applies lifecycle actions to one volume at a time.

    The controller holds no per-volume state: every action receives the
    declared ``VolumeSpec`` and the last known ``VolumeState`` and returns
    an ``ActionResult`` carrying the state to persist.

    Callers must serialize actions per volume name.
    """

    def __init__(
        self,
        client: CloudVolumeClient,
        config: Optional[VolumeConfig] = None,
        scanner: Optional[DeviceScanner] = None,
    ):
        """
        Initialize the controller.

        Args:
            client: Cloud API client
            config: Runtime configuration (default: VolumeConfig())
            scanner: Device scanner (default: built from config)
        """
        self.client = client
        self.config = config or VolumeConfig()
        self.scanner = scanner or DeviceScanner(
            partitions_file=self.config.partitions_file,
            scsi_scan_file=self.config.scsi_scan_file,
            settle_sec=self.config.scsi_settle_sec,
        )
        self.provider = get_provider_policy(self.config.cloud_provider)
        self.hypervisor = get_hypervisor_policy(self.config.hypervisor)
        self.allocator = DeviceAllocator(self.provider)

    async def run(self, action: str, spec: VolumeSpec, current: Optional[VolumeState] = None) -> ActionResult:
        """
        Run one lifecycle action.

        Args:
            action: One of ACTIONS
            spec: Declared volume
            current: Last known state (absent when None)

        Returns:
            ActionResult with the state to persist

        Raises:
            InvalidRequestError: If the action is unknown
        """
        if action not in ACTIONS:
            raise InvalidRequestError("action", action, f"must be one of {', '.join(ACTIONS)}")
        handler = getattr(self, action)
        return await handler(spec, current or VolumeState())

    def run_sync(self, action: str, spec: VolumeSpec, current: Optional[VolumeState] = None) -> ActionResult:
        """
        Synchronous wrapper for run.

        Note: This method creates a new event loop.
        """
        return asyncio.run(self.run(action, spec, current))

    # =========================================================================
    # Actions
    # =========================================================================

    async def create(self, spec: VolumeSpec, current: VolumeState) -> ActionResult:
        """Create the volume, optionally from a snapshot, and wait until it is ready."""
        if current.exists:
            message = f"Volume '{spec.name}' already exists."
            if current.volume_id:
                message += f" Volume ID: '{current.volume_id}'"
            if current.device:
                message += f" Attached to: '{current.device}'"
            logger.info(message)
            return ActionResult(action="create", name=spec.name, state=current, message=message)

        if spec.volume_id:
            raise InvalidRequestError("volume_id", spec.volume_id, "cannot create a volume with a specific ID")
        if spec.size < self.provider.min_volume_size_gb:
            raise InvalidRequestError(
                "size",
                spec.size,
                f"minimum volume size supported by this cloud is {self.provider.min_volume_size_gb} GB",
            )

        deadline = Deadline.from_minutes(spec.timeout_minutes)
        state = VolumeState(size=spec.size, description=spec.description, max_snapshots=spec.max_snapshots)

        with partial_state_on_error(state):
            params = await self._volume_params(spec, deadline)

            if spec.snapshot_id:
                logger.info(f"Creating a new volume from snapshot '{spec.snapshot_id}'...")
                snapshots = await deadline.run(
                    self.client.list_snapshots(build_filters({"resource_uid": spec.snapshot_id})),
                    "snapshot lookup",
                )
                if not snapshots:
                    raise NotFoundError("snapshot", spec.snapshot_id)
                snapshot = snapshots[0]
                logger.info(
                    f"Snapshot found with snapshot ID '{spec.snapshot_id}'. "
                    f"Snapshot name - '{snapshot.name}' Snapshot state - '{snapshot.state}'"
                )
                params["parent_volume_snapshot_href"] = snapshot.href
            else:
                logger.info(f"Creating a new volume '{spec.name}'...")

            logger.info(f"Requesting volume creation with params = {params}")
            volume = await deadline.run(self.client.create_volume(params), "volume creation")
            state.volume_id = volume.resource_uid
            state.state = volume.status

            async def fetch() -> RemoteVolume:
                latest = await self.client.show_volume(volume.href)
                state.state = latest.status
                return latest

            volume = await wait_for_status(
                fetch,
                attribute="status",
                until=lambda status: status in self.provider.created_statuses,
                deadline=deadline,
                operation=f"creation of volume '{spec.name}'",
                interval=self.config.poll_interval_sec,
            )

        state.volume_id = volume.resource_uid
        state.size = volume.size if volume.size is not None else spec.size
        state.description = volume.description
        state.state = volume.status

        message = f"Volume '{spec.name}' successfully created"
        logger.info(message)
        return ActionResult(
            action="create",
            name=spec.name,
            changed=True,
            state=state,
            message=message,
            details={"volume_id": state.volume_id},
        )

    async def delete(self, spec: VolumeSpec, current: VolumeState) -> ActionResult:
        """Delete the volume unless it is still attached."""
        if not current.exists:
            return self._does_not_exist("delete", spec, current)

        if current.is_attached:
            message = f"Volume is not available for deletion. Volume status: '{current.state}'."
            if current.device:
                message += f" Volume still attached to '{current.device}'."
            message += " Detach the volume using 'detach' action before attempting to delete."
            logger.info(message)
            return ActionResult(action="delete", name=spec.name, state=current, message=message)

        logger.info(f"Deleting volume '{spec.name}'...")
        deadline = Deadline.from_minutes(spec.timeout_minutes)
        deleted = False

        with partial_state_on_error(current):
            volume = await self._find_volume(current.volume_id, deadline)
            if volume is None:
                logger.warning(f"Volume '{current.volume_id}' no longer exists in the cloud")
            else:
                try:
                    logger.info("Performing volume destroy...")
                    await deadline.run(self.client.destroy_volume(volume.href), "volume deletion")
                    deleted = True
                except RemoteAPIError as e:
                    if e.status_code != 422 or not DEPENDENT_SNAPSHOTS.search(e.remote_message):
                        raise
                    logger.warning(f"{e.remote_message}. Cannot destroy volume {volume.name}")

        if deleted:
            message = f"Successfully deleted volume '{spec.name}'"
        else:
            message = f"Volume '{spec.name}' was not deleted."
        logger.info(message)
        return ActionResult(
            action="delete",
            name=spec.name,
            changed=True,
            state=None,
            message=message,
            details={"deleted": deleted},
        )

    async def attach(self, spec: VolumeSpec, current: VolumeState) -> ActionResult:
        """Attach the volume to this instance at the next free device."""
        if not current.exists:
            return self._does_not_exist("attach", spec, current)

        if current.is_attached:
            message = f"Volume '{spec.name}' is already attached"
            if current.device:
                message += f" to '{current.device}'"
            logger.info(message)
            return ActionResult(
                action="attach",
                name=spec.name,
                state=current,
                message=message,
                details={"device": current.device},
            )

        logger.info(f"Attaching volume '{spec.name}'...")
        deadline = Deadline.from_minutes(spec.timeout_minutes)
        state = current.model_copy()
        progress: Dict[str, Any] = {}

        with partial_state_on_error(state, progress):
            volume = await self._require_volume(current.volume_id, deadline)
            instance = await deadline.run(self.client.get_instance(), "instance lookup")

            devices_before = self.scanner.current_devices()
            device = await self._requested_device(instance, devices_before, deadline)
            progress["requested_device"] = device

            logger.info(
                f"Request volume attachment. volume={volume.href} "
                f"instance={instance.href} device={device}"
            )
            attachment = await retry_on_gateway_timeout(
                lambda: self.client.create_attachment(volume.href, instance.href, device),
                deadline=deadline,
                operation="volume attachment",
                delay=self.config.gateway_retry_delay_sec,
                max_retries=self.config.max_gateway_retries,
            )

            await self._wait_for_attachment(spec.name, volume, attachment, state, deadline)

            await self.scanner.rescan()
            devices_after = self.scanner.current_devices()

        # Racy if something else attaches a disk at the same time
        new_devices = sorted(set(devices_after) - set(devices_before), key=device_sort_key)
        if new_devices:
            actual_device = new_devices[0]
            if actual_device != device:
                logger.info(f"Device = {device}, Actual_device = {actual_device}")
        else:
            actual_device = device
            logger.warning(f"No new device appeared after attaching; recording requested device {device}")

        state.device = actual_device
        state.state = VolumeStatus.IN_USE.value

        message = f"Volume '{spec.name}' successfully attached to '{actual_device}'"
        logger.info(message)
        return ActionResult(
            action="attach",
            name=spec.name,
            changed=True,
            state=state,
            message=message,
            details={"device": actual_device, "requested_device": device},
        )

    async def detach(self, spec: VolumeSpec, current: VolumeState) -> ActionResult:
        """Detach the volume and wait for it to leave the in-use state."""
        if not current.exists:
            return self._does_not_exist("detach", spec, current)

        if not current.is_attached:
            message = f"Volume '{spec.name}' is not attached. Volume status: '{current.state}'."
            logger.info(message)
            return ActionResult(action="detach", name=spec.name, state=current, message=message)

        logger.info(f"Detaching volume '{spec.name}'...")
        deadline = Deadline.from_minutes(spec.timeout_minutes)
        state = current.model_copy()

        with partial_state_on_error(state):
            volume = await self._require_volume(current.volume_id, deadline)
            instance = await deadline.run(self.client.get_instance(), "instance lookup")
            attachments = await self._instance_attachments(instance, {"volume_href": volume.href}, deadline)
            if not attachments:
                logger.warning(f"No attachments of volume '{spec.name}' found on {instance.href}")

            for attachment in attachments:
                logger.info(
                    f"Volume status: '{volume.status}', Attachment state: '{attachment.state}'. "
                    f"Performing volume detach..."
                )
                await deadline.run(self.client.destroy_attachment(attachment.href), "volume detach")
                volume = await wait_for_status(
                    lambda: self.client.show_volume(volume.href),
                    attribute="status",
                    until=lambda status: status != VolumeStatus.IN_USE.value,
                    deadline=deadline,
                    operation=f"detach of volume '{spec.name}'",
                    interval=self.config.poll_interval_sec,
                )
                state.state = volume.status

            volume = await deadline.run(self.client.show_volume(volume.href), "volume lookup")

        if not attachments and volume.status == VolumeStatus.IN_USE.value:
            message = (
                f"Volume '{spec.name}' was not detached: no attachment on this instance "
                f"could be found. Volume status: '{volume.status}'."
            )
            logger.warning(message)
            return ActionResult(action="detach", name=spec.name, state=current, message=message)

        state.device = None
        state.state = volume.status

        if attachments:
            message = f"Volume '{spec.name}' successfully detached."
        else:
            message = f"Volume '{spec.name}' was already detached. Volume status: '{volume.status}'."
        logger.info(message)
        return ActionResult(action="detach", name=spec.name, changed=True, state=state, message=message)

    async def snapshot(self, spec: VolumeSpec, current: VolumeState) -> ActionResult:
        """Snapshot the volume and wait until the snapshot is no longer pending."""
        if not current.exists:
            return self._does_not_exist("snapshot", spec, current)

        logger.info(f"Creating snapshot of volume '{spec.name}'...")
        snapshot_name = spec.snapshot_name or spec.name
        deadline = Deadline.from_minutes(spec.timeout_minutes)
        progress: Dict[str, Any] = {}

        with partial_state_on_error(current, progress):
            volume = await self._require_volume(current.volume_id, deadline)

            logger.info("Performing volume snapshot...")
            snapshot = await deadline.run(
                self.client.create_snapshot(snapshot_name, volume.href, volume.description),
                "snapshot creation",
            )
            progress["snapshot_id"] = snapshot.resource_uid
            progress["snapshot_name"] = snapshot.name

            snapshot = await wait_for_status(
                lambda: self.client.show_snapshot(snapshot.href),
                attribute="state",
                until=lambda value: value != SnapshotState.PENDING.value,
                deadline=deadline,
                operation=f"snapshot '{snapshot_name}'",
                interval=self.config.poll_interval_sec,
            )

        message = (
            f"Snapshot of volume '{spec.name}' successfully created. "
            f"Snapshot name: '{snapshot.name}', ID: '{snapshot.resource_uid}'"
        )
        logger.info(message)
        return ActionResult(
            action="snapshot",
            name=spec.name,
            changed=True,
            state=current,
            message=message,
            details={
                "snapshot_id": snapshot.resource_uid,
                "snapshot_name": snapshot.name,
                "snapshot_state": snapshot.state,
            },
        )

    async def cleanup(self, spec: VolumeSpec, current: VolumeState) -> ActionResult:
        """Delete the oldest snapshots beyond the retention count."""
        if not current.exists:
            return self._does_not_exist("cleanup", spec, current)

        max_snapshots = spec.max_snapshots if spec.max_snapshots is not None else current.max_snapshots
        if max_snapshots is None:
            raise InvalidRequestError("max_snapshots", None, "no retention count given or persisted")

        deadline = Deadline.from_minutes(spec.timeout_minutes)

        with partial_state_on_error(current):
            volume = await self._require_volume(current.volume_id, deadline)
            snapshots = await deadline.run(
                self.client.list_snapshots(build_filters({"parent_volume_href": volume.href})),
                "snapshot listing",
            )
            snapshots = sorted(snapshots, key=lambda snapshot: snapshot.updated_at)
            deleted = await SnapshotRetentionPolicy(max_snapshots).apply(self.client, snapshots, deadline)

        if deleted > 0:
            message = f"A total of {deleted} snapshots were deleted."
        else:
            message = "No snapshots were deleted."
        logger.info(message)
        return ActionResult(
            action="cleanup",
            name=spec.name,
            changed=deleted > 0,
            state=current,
            message=message,
            details={"deleted_count": deleted, "max_snapshots": max_snapshots},
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _does_not_exist(self, action: str, spec: VolumeSpec, current: VolumeState) -> ActionResult:
        message = (
            f"Device '{spec.name}' does not exist. "
            f"This device may have been deleted or never been created."
        )
        logger.info(message)
        return ActionResult(action=action, name=spec.name, state=current, message=message)

    async def _volume_params(self, spec: VolumeSpec, deadline: Deadline) -> Dict[str, Any]:
        params: Dict[str, Any] = {"name": spec.name, "size": str(spec.size)}

        instance = await deadline.run(self.client.get_instance(), "instance lookup")
        if instance.datacenter_href:
            params["datacenter_href"] = instance.datacenter_href

        if self.provider.volume_type_selection:
            volume_types = await deadline.run(self.client.list_volume_types(), "volume type lookup")
            volume_type = select_volume_type(self.provider, volume_types, spec.size, spec.options)
            if volume_type is not None:
                params["volume_type_href"] = volume_type.href

        if spec.description:
            params["description"] = spec.description
        return params

    async def _find_volume(self, volume_id: Optional[str], deadline: Deadline) -> Optional[RemoteVolume]:
        if not volume_id:
            return None
        volumes = await deadline.run(
            self.client.find_volumes(build_filters({"resource_uid": volume_id})),
            "volume lookup",
        )
        return volumes[0] if volumes else None

    async def _require_volume(self, volume_id: Optional[str], deadline: Deadline) -> RemoteVolume:
        volume = await self._find_volume(volume_id, deadline)
        if volume is None:
            raise NotFoundError("volume", str(volume_id))
        return volume

    async def _instance_attachments(
        self,
        instance: Instance,
        filters: Dict[str, Any],
        deadline: Deadline,
    ) -> List[RemoteAttachment]:
        """List this instance's attachments, ignoring ones with an unknown device"""
        expressions = build_filters({"instance_href": instance.href, **filters})
        attachments = await deadline.run(self.client.list_attachments(expressions), "attachment listing")
        return [a for a in attachments if "unknown" not in a.device]

    async def _requested_device(self, instance: Instance, devices: List[str], deadline: Deadline) -> str:
        if self.hypervisor.uses_lun_numbers:
            attachments = await self._instance_attachments(instance, {}, deadline)
            return str(lowest_free_lun(a.device for a in attachments))
        return self.allocator.next_devices(devices, 1)[0]

    async def _wait_for_attachment(
        self,
        name: str,
        volume: RemoteVolume,
        attachment: RemoteAttachment,
        state: VolumeState,
        deadline: Deadline,
    ) -> None:
        """Wait until the volume is in-use or the attachment is attached."""
        operation = f"attachment of volume '{name}'"

        def retried(call):
            return retry_on_gateway_timeout(
                call,
                deadline=deadline,
                operation=operation,
                delay=self.config.gateway_retry_delay_sec,
                max_retries=self.config.max_gateway_retries,
            )

        async def attached() -> bool:
            latest_volume = await retried(lambda: self.client.show_volume(volume.href))
            latest_attachment = await retried(lambda: self.client.show_attachment(attachment.href))
            state.state = latest_volume.status
            if latest_volume.status == VolumeStatus.FAILED.value:
                raise OperationFailedError(operation, f"volume status is '{latest_volume.status}'")
            if (
                latest_volume.status == VolumeStatus.IN_USE.value
                or latest_attachment.state == AttachmentState.ATTACHED.value
            ):
                return True
            logger.info(
                f"Waiting for volume '{name}' to attach... Volume Status: {latest_volume.status}, "
                f"Attachment State: {latest_attachment.state}"
            )
            return False

        await poll_until(attached, deadline=deadline, operation=operation, interval=self.config.poll_interval_sec)


__all__ = ["VolumeLifecycleController", "ACTIONS", "partial_state_on_error"]
