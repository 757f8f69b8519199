"""
Storage package - Checkpoint stores keyed by session id.
"""

from typing import Optional

from pausegraph.storage.base import CheckpointStore
from pausegraph.storage.memory import MemoryCheckpointStore
from pausegraph.storage.sqlite import SQLiteCheckpointStore


def create_checkpoint_store(backend: str = "memory", db_path: Optional[str] = None) -> CheckpointStore:
    """
    Create a checkpoint store by backend name.

    Args:
        backend: "memory" or "sqlite"
        db_path: Database file for the sqlite backend

    Returns:
        A CheckpointStore instance
    """
    if backend == "memory":
        return MemoryCheckpointStore()
    if backend == "sqlite":
        return SQLiteCheckpointStore(db_path or "checkpoints.db")
    raise ValueError(f"Unknown checkpoint backend '{backend}'. Use 'memory' or 'sqlite'.")


__all__ = [
    "CheckpointStore",
    "MemoryCheckpointStore",
    "SQLiteCheckpointStore",
    "create_checkpoint_store",
]
