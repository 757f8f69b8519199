"""
Pydantic Schemas for API Request/Response Models.

These schemas define the structure of data flowing through the API,
providing automatic validation and documentation.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from pausegraph.engine.checkpoint import CheckpointStatus
from pausegraph.engine.executor import ExecutionStatus


# ============================================================
# Session Requests
# ============================================================

class InvokeRequest(BaseModel):
    """Request to start (or continue) a workflow session."""
    initial_state: Dict[str, Any] = Field(
        default_factory=dict,
        description="Initial values for the workflow's state channels"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "initial_state": {"input": "Flights to Japan"}
            }
        }


class ResumeRequest(BaseModel):
    """Request to resume a suspended session."""
    value: Any = Field(None, description="Answer to the pending interrupt")
    interrupt_id: Optional[str] = Field(
        None, description="interrupt_id from the suspended outcome; a stale id is rejected"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "value": "The one to Haneda",
                "interrupt_id": "3f2b9c0d1e6a4f5b8c7d9e0a1b2c3d4e"
            }
        }


# ============================================================
# Session Responses
# ============================================================

class ExecutionLogEntry(BaseModel):
    """A single entry in the execution log."""
    step: int
    node: str
    started_at: str
    completed_at: Optional[str] = None
    duration_ms: Optional[float] = None
    result: str
    route_taken: Optional[str] = None


class OutcomeResponse(BaseModel):
    """Outcome of an invoke or resume call."""
    workflow: str = Field(..., description="Workflow name")
    session_id: str = Field(..., description="Session identifier")
    status: ExecutionStatus = Field(..., description="completed or suspended")
    state: Dict[str, Any] = Field(..., description="Current workflow state")
    cursor: str = Field(..., description="Next node, the interrupted node, or __END__")
    interrupt: Optional[Any] = Field(None, description="Interrupt payload when suspended")
    interrupt_id: Optional[str] = Field(None, description="Id to send back when resuming")
    execution_log: List[ExecutionLogEntry] = Field(default_factory=list)
    steps: int = Field(0, description="Supersteps run by this call")
    total_duration_ms: Optional[float] = None

    class Config:
        json_schema_extra = {
            "example": {
                "workflow": "flight-selection",
                "session_id": "user-42",
                "status": "suspended",
                "state": {"input": "Flights to Japan", "options": ["1. ...", "2. ..."]},
                "cursor": "request_user_choice",
                "interrupt": {
                    "question": "Which flight do you prefer?",
                    "options": ["1. ...", "2. ..."]
                },
                "interrupt_id": "3f2b9c0d1e6a4f5b8c7d9e0a1b2c3d4e",
                "execution_log": [
                    {
                        "step": 1,
                        "node": "retrieve_flights",
                        "started_at": "2024-01-01T10:00:00",
                        "completed_at": "2024-01-01T10:00:00.010",
                        "duration_ms": 10.0,
                        "result": "success",
                        "route_taken": None
                    }
                ],
                "steps": 4,
                "total_duration_ms": 25.0
            }
        }


class CheckpointResponse(BaseModel):
    """Stored checkpoint of a session."""
    workflow: str
    session_id: str
    status: CheckpointStatus
    state: Dict[str, Any]
    cursor: str
    interrupt: Optional[Dict[str, Any]] = Field(
        None, description="Pending interrupt (id, node, payload, resume_key)"
    )
    step: int = Field(0, description="Supersteps completed over the session's life")
    updated_at: str


# ============================================================
# Workflow Schemas
# ============================================================

class WorkflowInfo(BaseModel):
    """Information about a registered workflow."""
    name: str
    description: Optional[str] = None
    entry_point: Optional[str] = None
    nodes: List[str] = Field(default_factory=list)


class WorkflowListResponse(BaseModel):
    """List of registered workflows."""
    workflows: List[WorkflowInfo]
    total: int


# ============================================================
# Error Schemas
# ============================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Error type")
    detail: Optional[str] = Field(None, description="Detailed error message")
    session_id: Optional[str] = Field(None, description="Session involved")
    node: Optional[str] = Field(None, description="Node involved")

    class Config:
        json_schema_extra = {
            "example": {
                "error": "NodeExecutionError",
                "detail": "Error in node 'retrieve_flights' (session 'user-42'): timeout",
                "session_id": "user-42",
                "node": "retrieve_flights"
            }
        }
