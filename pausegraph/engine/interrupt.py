"""
Interrupt / Resume primitives.

A node pauses the workflow by calling ``interrupt(payload)``. The executor
catches the signal, persists the session with the interrupt pending and
returns a suspended result. A later ``Command`` carrying the same session id
delivers the value that the interrupted node is treated as having returned.
"""

from typing import Any, Dict, Optional
import uuid

from pydantic import BaseModel, Field, field_validator

from pausegraph.engine.state import json_problem


class GraphInterrupt(Exception):
    """
    Raised inside a node handler to suspend the workflow.

    Attributes:
        payload: Data for the external party (e.g. a question to ask)
        resume_key: Channel that receives the resume value. When ``None``
            the resume value itself must be a partial state update (dict).
    """

    def __init__(self, payload: Any = None, resume_key: Optional[str] = None):
        self.payload = payload
        self.resume_key = resume_key
        super().__init__(f"Workflow interrupted: {payload!r}")


def interrupt(payload: Any = None, key: Optional[str] = None):
    """
    Suspend the current workflow and wait for external input.

    Usage:
        def ask_user(state):
            interrupt({"question": "Which flight?"}, key="user_choice")

    Once resumed, the node counts as having returned
    ``{key: <resume value>}``; its code after this call never runs.
    """
    raise GraphInterrupt(payload, resume_key=key)


class PendingInterrupt(BaseModel):
    """An interrupt stored in a checkpoint, waiting for a Command."""
    id: str = Field(
        default_factory=lambda: uuid.uuid4().hex,
        description="Identifies this interrupt; changes every time the session pauses"
    )
    node: str = Field(..., description="Node that raised the interrupt")
    payload: Any = Field(None, description="Payload for the external party")
    resume_key: Optional[str] = Field(None, description="Channel that receives the resume value")

    @field_validator("payload")
    @classmethod
    def payload_is_json(cls, value: Any) -> Any:
        problem = json_problem(value, "payload")
        if problem:
            raise ValueError(problem)
        return value

    def as_update(self, value: Any) -> Dict[str, Any]:
        """Turn a resume value into the node's partial state update."""
        if self.resume_key is not None:
            return {self.resume_key: value}
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise TypeError(
                f"Node '{self.node}' has no resume key, so the resume value "
                f"must be a dict, got {type(value).__name__}"
            )
        return value


class Command(BaseModel):
    """A caller-supplied resume value targeted at one session."""
    session_id: str = Field(..., description="Session to resume")
    value: Any = Field(None, description="Value returned by the interrupted node")
    interrupt_id: Optional[str] = Field(
        None, description="Pending interrupt this value answers; checked when set"
    )
