"""
Unit tests for SnapshotRetentionPolicy.
"""

from datetime import datetime, timedelta, timezone

import pytest

from cloud_volumes.client.waiter import Deadline
from cloud_volumes.retention import SnapshotRetentionPolicy
from cloud_volumes.types import RemoteSnapshot

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_snapshots(*states):
    """Snapshots oldest first, one per given state."""
    return [
        RemoteSnapshot(
            href=f"/api/clouds/1/volume_snapshots/s{i}",
            resource_uid=f"s{i}",
            name=f"snap {i}",
            state=state,
            updated_at=BASE_TIME + timedelta(hours=i),
        )
        for i, state in enumerate(states)
    ]


class TestSelect:
    """Tests for choosing snapshots to delete."""

    def test_deletes_oldest(self):
        snapshots = make_snapshots(*["available"] * 5)

        selected = SnapshotRetentionPolicy(3).select(snapshots)

        assert [s.resource_uid for s in selected] == ["s0", "s1"]

    def test_pending_skipped(self):
        snapshots = make_snapshots("pending", "available", "pending", "available", "available")

        selected = SnapshotRetentionPolicy(3).select(snapshots)

        assert [s.resource_uid for s in selected] == ["s1", "s3"]

    def test_at_limit(self):
        snapshots = make_snapshots(*["available"] * 3)

        assert SnapshotRetentionPolicy(3).select(snapshots) == []

    def test_keep_none(self):
        snapshots = make_snapshots("available", "available")

        assert len(SnapshotRetentionPolicy(0).select(snapshots)) == 2

    def test_all_pending(self):
        snapshots = make_snapshots("pending", "pending")

        assert SnapshotRetentionPolicy(0).select(snapshots) == []

    def test_negative_limit(self):
        with pytest.raises(ValueError):
            SnapshotRetentionPolicy(-1)


class TestApply:
    """Tests for deleting the selected snapshots."""

    @pytest.mark.asyncio
    async def test_apply(self, fake_client):
        snapshots = make_snapshots(*["available"] * 5)
        for snapshot in snapshots:
            fake_client.snapshots[snapshot.href] = snapshot

        deleted = await SnapshotRetentionPolicy(3).apply(fake_client, snapshots, Deadline(60))

        assert deleted == 2
        assert [call[1] for call in fake_client.called("destroy_snapshot")] == [
            snapshots[0].href,
            snapshots[1].href,
        ]

    @pytest.mark.asyncio
    async def test_apply_nothing(self, fake_client):
        snapshots = make_snapshots("available")

        deleted = await SnapshotRetentionPolicy(1).apply(fake_client, snapshots, Deadline(60))

        assert deleted == 0
        assert fake_client.calls == []
