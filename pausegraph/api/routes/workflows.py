"""
Workflow API Routes.

Endpoints for listing workflows and driving their sessions: invoke, resume,
inspect and delete.
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Request, status
import logging

from pausegraph.api.schemas import (
    CheckpointResponse,
    ErrorResponse,
    ExecutionLogEntry,
    InvokeRequest,
    OutcomeResponse,
    ResumeRequest,
    WorkflowInfo,
    WorkflowListResponse,
)
from pausegraph.engine.errors import (
    InvalidResumeValueError,
    NodeExecutionError,
    SessionStateError,
    StepLimitExceededError,
    WorkflowError,
)
from pausegraph.engine.executor import ExecutionResult
from pausegraph.engine.interrupt import Command
from pausegraph.workflows.registry import RegisteredWorkflow, WorkflowRegistry


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workflows", tags=["Workflows"])


# ============================================================
# Helpers
# ============================================================

def get_registry(request: Request) -> WorkflowRegistry:
    """The application's workflow registry."""
    return request.app.state.registry


def _get_workflow(registry: WorkflowRegistry, name: str) -> RegisteredWorkflow:
    workflow = registry.get(name)
    if workflow is None:
        raise HTTPException(
            status_code=404,
            detail=f"Workflow '{name}' not found. Available: "
                   f"{[w.name for w in registry.list_workflows()]}"
        )
    return workflow


def _error(
    status_code: int,
    exc: WorkflowError,
    session_id: str,
    node: Optional[str] = None
) -> HTTPException:
    body = ErrorResponse(
        error=type(exc).__name__,
        detail=str(exc),
        session_id=session_id,
        node=node,
    )
    return HTTPException(status_code=status_code, detail=body.model_dump())


async def _run_session_call(call, session_id: str) -> ExecutionResult:
    """Await an invoke/resume call, mapping engine errors to HTTP errors."""
    try:
        return await call
    except SessionStateError as e:
        raise _error(status.HTTP_409_CONFLICT, e, session_id, getattr(e, "node", None))
    except InvalidResumeValueError as e:
        raise _error(status.HTTP_422_UNPROCESSABLE_ENTITY, e, session_id, e.node)
    except (NodeExecutionError, StepLimitExceededError) as e:
        logger.error(f"Session '{session_id}' failed: {e}")
        raise _error(status.HTTP_500_INTERNAL_SERVER_ERROR, e, session_id, e.node)


def _result_to_response(workflow: str, session_id: str, result: ExecutionResult) -> OutcomeResponse:
    return OutcomeResponse(
        workflow=workflow,
        session_id=session_id,
        status=result.status,
        state=result.state,
        cursor=result.cursor,
        interrupt=result.interrupt,
        interrupt_id=result.interrupt_id,
        execution_log=[ExecutionLogEntry(**step.to_dict()) for step in result.execution_log],
        steps=result.steps,
        total_duration_ms=result.total_duration_ms,
    )


# ============================================================
# Workflow Endpoints
# ============================================================

@router.get(
    "",
    response_model=WorkflowListResponse,
)
async def list_workflows(
    registry: WorkflowRegistry = Depends(get_registry),
) -> WorkflowListResponse:
    """List the registered workflows."""
    workflows = [WorkflowInfo(**w.to_dict()) for w in registry.list_workflows()]
    return WorkflowListResponse(workflows=workflows, total=len(workflows))


@router.get(
    "/{name}",
    response_model=WorkflowInfo,
    responses={404: {"model": ErrorResponse}},
)
async def get_workflow(
    name: str,
    registry: WorkflowRegistry = Depends(get_registry),
) -> WorkflowInfo:
    """Get information about a specific workflow."""
    return WorkflowInfo(**_get_workflow(registry, name).to_dict())


# ============================================================
# Session Endpoints
# ============================================================

@router.post(
    "/{name}/sessions/{session_id}/invoke",
    response_model=OutcomeResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse, "description": "Session is waiting for resume"},
        500: {"model": ErrorResponse, "description": "Execution failed"},
    }
)
async def invoke_session(
    name: str,
    session_id: str,
    request: InvokeRequest,
    registry: WorkflowRegistry = Depends(get_registry),
) -> OutcomeResponse:
    """
    Start a session of the workflow with the given initial state.

    The call returns when the workflow completes or pauses for input. A
    paused session is continued with the resume endpoint.
    """
    workflow = _get_workflow(registry, name)
    key = registry.session_key(name, session_id)

    result = await _run_session_call(
        workflow.executor.invoke(request.initial_state, key), session_id
    )
    logger.info(f"Invoked {name}/{session_id}: {result.status.value}")
    return _result_to_response(name, session_id, result)


@router.post(
    "/{name}/sessions/{session_id}/resume",
    response_model=OutcomeResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse, "description": "Nothing to resume"},
        422: {"model": ErrorResponse, "description": "Answer does not fit the interrupt"},
        500: {"model": ErrorResponse, "description": "Execution failed"},
    }
)
async def resume_session(
    name: str,
    session_id: str,
    request: ResumeRequest,
    registry: WorkflowRegistry = Depends(get_registry),
) -> OutcomeResponse:
    """
    Answer the pending interrupt of a suspended session.

    Send the interrupt_id of the suspended outcome to make a retried request
    fail with 409 instead of answering the next question.
    """
    workflow = _get_workflow(registry, name)
    key = registry.session_key(name, session_id)

    result = await _run_session_call(
        workflow.executor.resume(Command(
            session_id=key, value=request.value, interrupt_id=request.interrupt_id
        )),
        session_id,
    )
    logger.info(f"Resumed {name}/{session_id}: {result.status.value}")
    return _result_to_response(name, session_id, result)


@router.get(
    "/{name}/sessions/{session_id}",
    response_model=CheckpointResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_session(
    name: str,
    session_id: str,
    registry: WorkflowRegistry = Depends(get_registry),
) -> CheckpointResponse:
    """Get the stored checkpoint of a session."""
    workflow = _get_workflow(registry, name)
    checkpoint = await workflow.executor.get_checkpoint(registry.session_key(name, session_id))
    if checkpoint is None:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")

    data = checkpoint.to_dict()
    return CheckpointResponse(
        workflow=name,
        session_id=session_id,
        status=data["status"],
        state=data["state"],
        cursor=data["cursor"],
        interrupt=data["interrupt"],
        step=data["step"],
        updated_at=data["updated_at"],
    )


@router.delete(
    "/{name}/sessions/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_session(
    name: str,
    session_id: str,
    registry: WorkflowRegistry = Depends(get_registry),
):
    """Delete a session's checkpoint."""
    _get_workflow(registry, name)
    deleted = await registry.store.delete(registry.session_key(name, session_id))
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    logger.info(f"Deleted session: {name}/{session_id}")
