"""
Unit tests for StateStore.
"""

import json

import pytest

from cloud_volumes.errors import InvalidRequestError
from cloud_volumes.state import StateStore
from cloud_volumes.types import VolumeState


class TestStateStore:
    """Tests for persisted volume state."""

    def test_unknown_volume_is_absent(self, tmp_path):
        store = StateStore(str(tmp_path / "state.json"))

        state = store.load("data")

        assert not state.exists
        assert state.volume_id is None

    def test_save_and_load(self, tmp_path):
        store = StateStore(str(tmp_path / "nested" / "state.json"))
        state = VolumeState(size=10, device="/dev/sdf", volume_id="vol-1", state="in-use", max_snapshots=3)

        store.save("data", state)

        assert store.load("data") == state
        assert store.load("data").is_attached

    def test_entries_are_independent(self, tmp_path):
        path = tmp_path / "state.json"
        store = StateStore(str(path))

        store.save("data", VolumeState(volume_id="vol-1", state="available"))
        store.save("logs", VolumeState(volume_id="vol-2", state="available"))
        store.delete("data")

        assert sorted(json.loads(path.read_text())) == ["logs"]
        assert store.load("logs").volume_id == "vol-2"

    def test_no_temp_files_left(self, tmp_path):
        store = StateStore(str(tmp_path / "state.json"))

        store.save("data", VolumeState(volume_id="vol-1", state="available"))

        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text('{"data": {"volume_id": "vol-1", "sta')
        store = StateStore(str(path))

        with pytest.raises(InvalidRequestError) as exc_info:
            store.load("data")

        assert exc_info.value.field == "state_file"

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text('["vol-1"]')

        with pytest.raises(InvalidRequestError):
            StateStore(str(path)).load("data")

    def test_invalid_entry(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"data": {"size": "large", "state": "available"}}))

        with pytest.raises(InvalidRequestError):
            StateStore(str(path)).load("data")

    def test_absent_status_does_not_exist(self, tmp_path):
        store = StateStore(str(tmp_path / "state.json"))

        store.save("data", VolumeState(state="absent"))

        assert not store.load("data").exists
