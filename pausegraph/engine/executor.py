"""
Async Workflow Executor.

The executor walks a compiled graph one superstep at a time: run the node at
the cursor, merge its partial update, pick the next node, persist the
checkpoint. It keeps nothing between calls - every continuation round-trips
through the checkpoint store, keyed by session id.
"""

from typing import TYPE_CHECKING, Any, Dict, List, Optional
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
import time
import uuid
import logging

from pausegraph.engine.checkpoint import Checkpoint
from pausegraph.engine.errors import (
    InvalidResumeValueError,
    NodeExecutionError,
    NoPendingInterruptError,
    ResumeRequiredError,
    StepLimitExceededError,
)
from pausegraph.engine.graph import Graph, END
from pausegraph.engine.interrupt import Command, GraphInterrupt, PendingInterrupt
from pausegraph.engine.node import Node
from pausegraph.engine.state import json_problem

if TYPE_CHECKING:
    from pausegraph.storage.base import CheckpointStore


logger = logging.getLogger(__name__)


class ExecutionStatus(str, Enum):
    """Outcome of an invoke/resume call."""
    COMPLETED = "completed"
    SUSPENDED = "suspended"


@dataclass
class ExecutionStep:
    """A single step in the execution log."""
    step: int
    node: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_ms: Optional[float] = None
    result: str = "running"
    route_taken: Optional[str] = None

    def finish(self, result: str, route_taken: Optional[str] = None) -> None:
        self.completed_at = datetime.now()
        self.duration_ms = (self.completed_at - self.started_at).total_seconds() * 1000
        self.result = result
        self.route_taken = route_taken

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "node": self.node,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "result": self.result,
            "route_taken": self.route_taken,
        }


@dataclass
class ExecutionResult:
    """
    Result of an invoke/resume call.

    ``status`` is COMPLETED with the final ``state``, or SUSPENDED with the
    ``interrupt`` payload and the node waiting for input in ``cursor``. Pass
    ``interrupt_id`` back in the resuming Command to make the answer apply to
    this pause only.
    """
    session_id: str
    graph_name: str
    status: ExecutionStatus
    state: Dict[str, Any]
    cursor: str
    interrupt: Any = None
    interrupt_id: Optional[str] = None
    execution_log: List[ExecutionStep] = field(default_factory=list)
    steps: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    total_duration_ms: Optional[float] = None

    @property
    def completed(self) -> bool:
        return self.status == ExecutionStatus.COMPLETED

    @property
    def suspended(self) -> bool:
        return self.status == ExecutionStatus.SUSPENDED

    @property
    def visited_nodes(self) -> List[str]:
        return [step.node for step in self.execution_log]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "graph_name": self.graph_name,
            "status": self.status.value,
            "state": self.state,
            "cursor": self.cursor,
            "interrupt": self.interrupt,
            "interrupt_id": self.interrupt_id,
            "execution_log": [step.to_dict() for step in self.execution_log],
            "steps": self.steps,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "total_duration_ms": self.total_duration_ms,
        }


class _CallTracker:
    """Execution log and timing for one invoke/resume call."""

    def __init__(self, session_id: str, graph_name: str):
        self.session_id = session_id
        self.graph_name = graph_name
        self.log: List[ExecutionStep] = []
        self.started_at = datetime.now()
        self._start_time = time.time()

    @property
    def steps(self) -> int:
        return len(self.log)

    def begin(self, node_name: str) -> ExecutionStep:
        step = ExecutionStep(
            step=len(self.log) + 1,
            node=node_name,
            started_at=datetime.now(),
        )
        self.log.append(step)
        logger.info(
            f"Executing node: {node_name} "
            f"(session {self.session_id}, step {step.step})"
        )
        return step

    def result(self, checkpoint: Checkpoint, status: ExecutionStatus) -> ExecutionResult:
        return ExecutionResult(
            session_id=self.session_id,
            graph_name=self.graph_name,
            status=status,
            state=checkpoint.state,
            cursor=checkpoint.cursor,
            interrupt=checkpoint.interrupt.payload if checkpoint.interrupt else None,
            interrupt_id=checkpoint.interrupt.id if checkpoint.interrupt else None,
            execution_log=self.log,
            steps=self.steps,
            started_at=self.started_at,
            completed_at=datetime.now(),
            total_duration_ms=(time.time() - self._start_time) * 1000,
        )


class Executor:
    """
    Async workflow executor with checkpointed suspend/resume.

    Handles:
    - Sequential node execution with partial state updates
    - Conditional branching and router nodes
    - Cycles, bounded by a per-call superstep limit
    - Interrupts: persist and return SUSPENDED, continue on resume()
    - Checkpoint after every completed node

    Usage:
        executor = Executor(graph, MemoryCheckpointStore())
        result = await executor.invoke({"input": "data"}, "session-1")
        if result.suspended:
            result = await executor.resume(Command(session_id="session-1", value="3"))
    """

    def __init__(
        self,
        graph: Graph,
        store: "CheckpointStore",
        max_steps: int = 100
    ):
        """
        Initialize the executor.

        Args:
            graph: The workflow graph (compiled here if it isn't yet)
            store: Checkpoint store holding every session's continuation
            max_steps: Maximum supersteps a single call may run
        """
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        self.graph = graph.compile()
        self.store = store
        self.max_steps = max_steps

    async def invoke(
        self,
        initial_input: Optional[Dict[str, Any]],
        session_id: str
    ) -> ExecutionResult:
        """
        Start a session, or continue one that stopped between nodes.

        A completed session is started again from scratch. A session that
        stopped after a node failure continues from its checkpoint; the
        stored state wins over ``initial_input`` then.

        Raises:
            ResumeRequiredError: the session is waiting for resume()
            NodeExecutionError: a node failed (last checkpoint kept)
            StepLimitExceededError: the call ran too many supersteps
        """
        tracker = _CallTracker(session_id, self.graph.name)
        checkpoint = await self.store.load(session_id)

        if checkpoint is not None and checkpoint.is_suspended:
            raise ResumeRequiredError(session_id, checkpoint.interrupt.node)

        if checkpoint is None or checkpoint.is_completed:
            if checkpoint is not None:
                logger.info(f"Session '{session_id}' had completed, starting over")
            checkpoint = Checkpoint(
                session_id=session_id,
                state=self.graph.state_schema.initial_state(initial_input),
                cursor=self.graph.entry_point,
                graph=self.graph.name,
            )
            await self.store.save(checkpoint)
        else:
            logger.info(
                f"Continuing session '{session_id}' at node '{checkpoint.cursor}'"
            )

        return await self._run(checkpoint, tracker)

    async def resume(self, command: Command) -> ExecutionResult:
        """
        Continue a suspended session.

        The command's value is treated as the return value of the node that
        raised the interrupt; that node is not executed again.

        Raises:
            NoPendingInterruptError: the session is not waiting for input,
                or not for the interrupt named by ``command.interrupt_id``
            InvalidResumeValueError: the value does not fit the node's
                update (checkpoint kept)
            NodeExecutionError: a later node failed
        """
        session_id = command.session_id
        checkpoint = await self.store.load(session_id)
        if checkpoint is None or not checkpoint.is_suspended:
            raise NoPendingInterruptError(session_id, command.interrupt_id)

        pending = checkpoint.interrupt
        if command.interrupt_id is not None and command.interrupt_id != pending.id:
            raise NoPendingInterruptError(session_id, command.interrupt_id)

        node = self._node_at(checkpoint)
        if pending.node != node.name:
            raise NodeExecutionError(
                session_id, node.name,
                f"interrupt belongs to node '{pending.node}', cursor is at '{node.name}'"
            )

        try:
            update = pending.as_update(command.value)
        except TypeError as e:
            raise InvalidResumeValueError(session_id, node.name, str(e)) from e
        problems = self.graph.state_schema.check_update(update)
        if problems:
            raise InvalidResumeValueError(session_id, node.name, "; ".join(problems))

        tracker = _CallTracker(session_id, self.graph.name)
        step = tracker.begin(node.name)
        try:
            state = self.graph.state_schema.merge(checkpoint.state, update)
            target, label = self.graph.get_next_node(node.name, state)
        except Exception as e:
            logger.error(f"Resuming node {node.name} failed: {e}")
            raise NodeExecutionError(session_id, node.name, str(e)) from e
        step.finish("resumed", label)

        checkpoint = await self._advance(checkpoint, state, target)
        return await self._run(checkpoint, tracker)

    async def get_checkpoint(self, session_id: str) -> Optional[Checkpoint]:
        """Get the stored checkpoint of a session."""
        return await self.store.load(session_id)

    async def _run(self, checkpoint: Checkpoint, tracker: _CallTracker) -> ExecutionResult:
        """Step from the checkpoint's cursor until END or an interrupt."""
        session_id = checkpoint.session_id

        while checkpoint.cursor != END:
            node = self._node_at(checkpoint)

            if tracker.steps >= self.max_steps:
                raise StepLimitExceededError(session_id, node.name, self.max_steps)

            step = tracker.begin(node.name)
            try:
                if node.is_router:
                    label = await node.call(checkpoint.state)
                    target = self.graph.conditional_edges[node.name].resolve(label)
                    state = checkpoint.state
                    outcome = "routed"
                else:
                    update = await node.execute(checkpoint.state)
                    state = self._apply(node, checkpoint.state, update)
                    target, label = self.graph.get_next_node(node.name, state)
                    outcome = "success"
            except GraphInterrupt as signal:
                step.finish("interrupted")
                problem = json_problem(signal.payload, "payload")
                if problem:
                    raise NodeExecutionError(session_id, node.name, f"interrupt {problem}")
                logger.info(f"Session '{session_id}' suspended at node '{node.name}'")
                suspended = checkpoint.model_copy(update={
                    "interrupt": PendingInterrupt(
                        node=node.name,
                        payload=signal.payload,
                        resume_key=signal.resume_key,
                    ),
                    "updated_at": datetime.now(),
                })
                await self.store.save(suspended)
                return tracker.result(suspended, ExecutionStatus.SUSPENDED)
            except Exception as e:
                logger.error(f"Node {node.name} failed: {e}")
                raise NodeExecutionError(session_id, node.name, str(e)) from e

            step.finish(outcome, label)
            if label is not None:
                logger.debug(f"Conditional route: {label} -> {target}")
            checkpoint = await self._advance(checkpoint, state, target)

        logger.info(f"Session '{session_id}' completed in {tracker.steps} step(s)")
        return tracker.result(checkpoint, ExecutionStatus.COMPLETED)

    def _node_at(self, checkpoint: Checkpoint) -> Node:
        node = self.graph.nodes.get(checkpoint.cursor)
        if node is None:
            raise NodeExecutionError(
                checkpoint.session_id, checkpoint.cursor,
                f"node not found in graph '{self.graph.name}'"
            )
        return node

    def _apply(self, node: Node, state: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
        """Type-check a node's partial update and merge it into the state."""
        problems = self.graph.state_schema.check_update(update)
        if problems:
            raise TypeError(
                f"Node '{node.name}' returned an invalid update: {'; '.join(problems)}"
            )
        return self.graph.state_schema.merge(state, update)

    async def _advance(
        self,
        checkpoint: Checkpoint,
        state: Dict[str, Any],
        cursor: str
    ) -> Checkpoint:
        """Persist a completed superstep and return the new checkpoint."""
        advanced = Checkpoint(
            session_id=checkpoint.session_id,
            state=state,
            cursor=cursor,
            graph=self.graph.name,
            step=checkpoint.step + 1,
        )
        await self.store.save(advanced)
        return advanced


async def execute_graph(
    graph: Graph,
    initial_state: Dict[str, Any],
    session_id: Optional[str] = None,
    store: Optional["CheckpointStore"] = None,
    max_steps: int = 100
) -> ExecutionResult:
    """
    Convenience function to run a graph in a fresh session.

    Args:
        graph: The workflow graph
        initial_state: Initial state data
        session_id: Optional session ID (generated if not provided)
        store: Checkpoint store (a new in-memory store if not provided)
        max_steps: Maximum supersteps

    Returns:
        ExecutionResult
    """
    from pausegraph.storage.memory import MemoryCheckpointStore

    executor = Executor(graph, store or MemoryCheckpointStore(), max_steps)
    return await executor.invoke(initial_state, session_id or str(uuid.uuid4()))
