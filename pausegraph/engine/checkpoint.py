"""
Checkpoint record for the Workflow Engine.

A checkpoint is everything needed to continue a session: the merged state,
the cursor (name of the next node to run) and the pending interrupt, if any.
"""

from typing import Any, Dict, Optional
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from pausegraph.engine.graph import END
from pausegraph.engine.interrupt import PendingInterrupt
from pausegraph.engine.state import json_problem


class CheckpointStatus(str, Enum):
    """Derived status of a stored session."""
    RUNNING = "running"
    SUSPENDED = "suspended"
    COMPLETED = "completed"


class Checkpoint(BaseModel):
    """
    Last stable execution point of a session.

    Attributes:
        session_id: Key of the session in the store
        state: Snapshot of the merged workflow state
        cursor: Node to execute next (or the interrupted node)
        interrupt: Pending interrupt, or None
        graph: Name of the graph that wrote the checkpoint
        step: Supersteps completed over the session's life
        updated_at: When the checkpoint was written
    """

    session_id: str
    state: Dict[str, Any] = Field(default_factory=dict)
    cursor: str
    interrupt: Optional[PendingInterrupt] = None
    graph: Optional[str] = None
    step: int = 0
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator("state")
    @classmethod
    def state_is_json(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        for key, item in value.items():
            problem = json_problem(item, key)
            if problem:
                raise ValueError(problem)
        return value

    @property
    def status(self) -> CheckpointStatus:
        if self.interrupt is not None:
            return CheckpointStatus.SUSPENDED
        if self.cursor == END:
            return CheckpointStatus.COMPLETED
        return CheckpointStatus.RUNNING

    @property
    def is_suspended(self) -> bool:
        return self.status == CheckpointStatus.SUSPENDED

    @property
    def is_completed(self) -> bool:
        return self.status == CheckpointStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-friendly dictionary."""
        data = self.model_dump(mode="json")
        data["status"] = self.status.value
        return data
