"""
Persisted volume state.

Stores the last known state of each volume as JSON, keyed by volume
name, so that consecutive command-line runs see each other's results.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import InvalidRequestError
from .types import VolumeState

logger = logging.getLogger(__name__)


class StateStore:
    """JSON file of ``{name: state}`` entries."""

    def __init__(self, path: str):
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except ValueError as e:
            raise InvalidRequestError("state_file", str(self.path), f"corrupt state file: {e}") from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise InvalidRequestError("state_file", str(self.path), "expected a JSON object of volume states")
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".state-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise

    def load(self, name: str) -> VolumeState:
        """Return the stored state for ``name`` (empty when unknown)."""
        entry = self._read().get(name)
        try:
            return VolumeState.from_dict(entry)
        except ValueError as e:
            raise InvalidRequestError("state_file", str(self.path), f"invalid entry for '{name}': {e}") from e

    def save(self, name: str, state: Optional[VolumeState]) -> None:
        """Store ``state`` for ``name``; None removes the entry."""
        data = self._read()
        if state is None:
            data.pop(name, None)
        else:
            data[name] = state.to_dict()
        self._write(data)
        logger.debug(f"Saved state for volume '{name}' to {self.path}")

    def delete(self, name: str) -> None:
        """Remove the entry for ``name``."""
        self.save(name, None)


__all__ = ["StateStore"]
