"""Storage module."""

from .snapshot_store import ISnapshotStore, SnapshotStore

__all__ = ["ISnapshotStore", "SnapshotStore"]
