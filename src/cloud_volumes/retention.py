"""
Snapshot retention.

Keeps the newest ``max_snapshots_to_keep`` snapshots of a volume and
deletes the oldest ones beyond that. Snapshots still being taken
(``pending``) are never deleted and do not count toward the deletions.
"""

import logging
from typing import List

from .client.base import CloudVolumeClient
from .client.waiter import Deadline
from .types import RemoteSnapshot

logger = logging.getLogger(__name__)


class SnapshotRetentionPolicy:
    """
    Decides which snapshots of a volume to delete.

    Args:
        max_snapshots_to_keep: Number of snapshots to keep
    """

    def __init__(self, max_snapshots_to_keep: int):
        if max_snapshots_to_keep < 0:
            raise ValueError("max_snapshots_to_keep must be >= 0")
        self.max_snapshots_to_keep = max_snapshots_to_keep

    def select(self, snapshots: List[RemoteSnapshot]) -> List[RemoteSnapshot]:
        """
        Return the snapshots to delete.

        Args:
            snapshots: All snapshots of the volume, oldest first

        Returns:
            Snapshots to delete, oldest first
        """
        total = len(snapshots)
        if total <= self.max_snapshots_to_keep:
            logger.info(
                f"Number of snapshots ({total}) is less than or equal to maximum "
                f"number of snapshots to keep ({self.max_snapshots_to_keep})"
            )
            return []

        to_delete = total - self.max_snapshots_to_keep
        selected = []
        for snapshot in snapshots:
            if len(selected) == to_delete:
                break
            if snapshot.is_pending:
                logger.info(
                    f"Snapshot {snapshot.name} (ID: {snapshot.resource_uid}) is not available "
                    f"for deletion. Snapshot state is '{snapshot.state}'"
                )
                continue
            selected.append(snapshot)
        return selected

    async def apply(
        self,
        client: CloudVolumeClient,
        snapshots: List[RemoteSnapshot],
        deadline: Deadline,
    ) -> int:
        """
        Delete the snapshots chosen by ``select``.

        Returns:
            Number of snapshots actually deleted

        Raises:
            DeadlineExceededError: If a deletion does not finish in time
        """
        deleted = 0
        for snapshot in self.select(snapshots):
            logger.info(f"Deleting snapshot '{snapshot.name}' (ID: {snapshot.resource_uid})...")
            await deadline.run(
                client.destroy_snapshot(snapshot.href),
                f"deletion of snapshot '{snapshot.resource_uid}'",
            )
            deleted += 1
        return deleted


__all__ = ["SnapshotRetentionPolicy"]
