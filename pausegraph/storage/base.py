"""
Checkpoint store interface.

A store maps a session id to exactly one checkpoint. Saving replaces the
previous checkpoint of the session; a save is visible to the very next load.
Calls for the same session id are serialized, calls for different session
ids never wait on each other.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Dict, List, Optional
import asyncio

from pausegraph.engine.checkpoint import Checkpoint


class CheckpointStore(ABC):
    """Base class for checkpoint storage backends."""

    def __init__(self):
        # session id -> [lock, callers holding or waiting for it]
        self._locks: Dict[str, list] = {}

    @asynccontextmanager
    async def _session_lock(self, session_id: str):
        """Hold the session's lock; it is dropped once nobody uses it."""
        entry = self._locks.get(session_id)
        if entry is None:
            entry = self._locks[session_id] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[session_id]

    async def save(self, checkpoint: Checkpoint) -> Checkpoint:
        """
        Save (replace) the checkpoint of ``checkpoint.session_id``.

        Returns:
            The stored checkpoint
        """
        async with self._session_lock(checkpoint.session_id):
            await self._write(checkpoint)
            return checkpoint

    async def load(self, session_id: str) -> Optional[Checkpoint]:
        """Load the checkpoint of a session, or None if there is none."""
        async with self._session_lock(session_id):
            return await self._read(session_id)

    async def delete(self, session_id: str) -> bool:
        """Delete a session's checkpoint. Returns False if it didn't exist."""
        async with self._session_lock(session_id):
            return await self._remove(session_id)

    @abstractmethod
    async def list_sessions(self) -> List[str]:
        """List the session ids that have a checkpoint."""

    async def close(self) -> None:
        """Release backend resources."""

    @abstractmethod
    async def _write(self, checkpoint: Checkpoint) -> None:
        ...

    @abstractmethod
    async def _read(self, session_id: str) -> Optional[Checkpoint]:
        ...

    @abstractmethod
    async def _remove(self, session_id: str) -> bool:
        ...
