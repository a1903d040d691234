"""Pool snapshot providers.

A provider hands the service the current pool state. Fetching from a
subgraph or a node is left to callers; the providers here serve a fixed
snapshot or read one from a JSON file.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Protocol

import structlog

from sor.models.snapshot import PoolSnapshot

logger = structlog.get_logger()


class PoolSnapshotProvider(Protocol):
    """Source of pool snapshots."""

    def get_snapshot(self) -> PoolSnapshot:
        """Return the current pool state.

        Raises:
            OSError: If the source cannot be read
            pydantic.ValidationError: If the data is not a valid snapshot
        """
        ...


class StaticSnapshotProvider:
    """Serves a snapshot given up front (tests, offline use)."""

    def __init__(self, snapshot: PoolSnapshot) -> None:
        self._snapshot = snapshot

    def get_snapshot(self) -> PoolSnapshot:
        return self._snapshot

    def update(self, snapshot: PoolSnapshot) -> None:
        """Replace the served snapshot."""
        self._snapshot = snapshot


class JsonFileSnapshotProvider:
    """Reads a snapshot from a JSON file on every fetch.

    The file holds either ``{"pools": [...]}`` or a bare list of pools.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    @staticmethod
    def parse(data: Any) -> PoolSnapshot:
        """Validate decoded JSON as a snapshot."""
        if isinstance(data, list):
            data = {"pools": data}
        return PoolSnapshot.model_validate(data)

    def get_snapshot(self) -> PoolSnapshot:
        with open(self.path) as f:
            snapshot = self.parse(json.load(f))
        logger.debug("snapshot_loaded", path=str(self.path), pools=snapshot.pool_count)
        return snapshot


__all__ = ["JsonFileSnapshotProvider", "PoolSnapshotProvider", "StaticSnapshotProvider"]
