"""
Error taxonomy for the Workflow Engine.

Graph definition errors are raised while building a graph. Session errors
signal caller misuse of invoke/resume and never touch stored state. Node
errors abort the current call and leave the last checkpoint intact.
"""

from typing import List, Optional


class WorkflowError(Exception):
    """Base class for all engine errors."""


class GraphDefinitionError(WorkflowError, ValueError):
    """The graph is malformed. Raised at build/compile time only."""

    def __init__(self, message: str, problems: Optional[List[str]] = None):
        self.problems = problems or [message]
        super().__init__(message)


class SessionStateError(WorkflowError):
    """A call does not match the session's checkpoint."""

    def __init__(self, session_id: str, message: str):
        self.session_id = session_id
        super().__init__(message)


class NoPendingInterruptError(SessionStateError):
    """resume() was called but the session is not waiting for that input."""

    def __init__(self, session_id: str, interrupt_id: Optional[str] = None):
        self.interrupt_id = interrupt_id
        if interrupt_id is None:
            message = f"Session '{session_id}' has no pending interrupt to resume"
        else:
            message = (
                f"Session '{session_id}' is not waiting on interrupt "
                f"'{interrupt_id}'; it was answered already or never existed"
            )
        super().__init__(session_id, message)


class ResumeRequiredError(SessionStateError):
    """invoke() was called on a session that is waiting for input."""

    def __init__(self, session_id: str, node: Optional[str] = None):
        self.node = node
        super().__init__(
            session_id,
            f"Session '{session_id}' is suspended at node '{node}'; "
            f"use resume() to continue it",
        )


class NodeExecutionError(WorkflowError):
    """A node handler (or its routing) failed."""

    def __init__(self, session_id: str, node: str, message: str):
        self.session_id = session_id
        self.node = node
        super().__init__(f"Error in node '{node}' (session '{session_id}'): {message}")


class InvalidResumeValueError(NodeExecutionError):
    """The resume value does not fit the interrupted node's update."""


class StepLimitExceededError(WorkflowError):
    """A single call ran more supersteps than the configured maximum."""

    def __init__(self, session_id: str, node: str, max_steps: int):
        self.session_id = session_id
        self.node = node
        self.max_steps = max_steps
        super().__init__(
            f"Max supersteps ({max_steps}) exceeded in session '{session_id}' "
            f"before node '{node}'"
        )


class InvalidSelectionError(WorkflowError):
    """The interpretation collaborator produced no usable selection."""

    def __init__(self, indices: List[int], count: int):
        self.indices = list(indices)
        self.count = count
        super().__init__(
            f"No valid selection in {self.indices} for {count} candidate(s)"
        )
