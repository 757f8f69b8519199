"""
In-Memory Checkpoint Storage.

Keeps checkpoints for the lifetime of the process. Can be swapped for the
SQLite store when checkpoints must survive a restart.
"""

from typing import Dict, List, Optional

from pausegraph.engine.checkpoint import Checkpoint
from pausegraph.storage.base import CheckpointStore


class MemoryCheckpointStore(CheckpointStore):
    """
    In-memory checkpoint storage keyed by session id.

    Checkpoints are deep-copied on the way in and out, so neither the
    executor nor a caller can change a stored snapshot by mutating the
    object it holds.
    """

    def __init__(self):
        super().__init__()
        self._checkpoints: Dict[str, Checkpoint] = {}

    async def _write(self, checkpoint: Checkpoint) -> None:
        self._checkpoints[checkpoint.session_id] = checkpoint.model_copy(deep=True)

    async def _read(self, session_id: str) -> Optional[Checkpoint]:
        stored = self._checkpoints.get(session_id)
        return stored.model_copy(deep=True) if stored is not None else None

    async def _remove(self, session_id: str) -> bool:
        if session_id in self._checkpoints:
            del self._checkpoints[session_id]
            return True
        return False

    async def list_sessions(self) -> List[str]:
        return list(self._checkpoints.keys())

    def __len__(self) -> int:
        return len(self._checkpoints)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._checkpoints
