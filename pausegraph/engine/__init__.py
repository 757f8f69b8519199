"""
Engine package - Core workflow orchestration components.
"""

from pausegraph.engine.errors import (
    WorkflowError,
    GraphDefinitionError,
    NoPendingInterruptError,
    ResumeRequiredError,
    NodeExecutionError,
    InvalidResumeValueError,
    StepLimitExceededError,
    InvalidSelectionError,
)
from pausegraph.engine.state import Channel, Reducer, StateSchema
from pausegraph.engine.node import Node, NodeType
from pausegraph.engine.graph import Graph, Edge, ConditionalEdge, build_graph, START, END
from pausegraph.engine.interrupt import Command, GraphInterrupt, interrupt
from pausegraph.engine.checkpoint import Checkpoint, CheckpointStatus
from pausegraph.engine.executor import Executor, ExecutionResult, ExecutionStatus, execute_graph

__all__ = [
    "WorkflowError",
    "GraphDefinitionError",
    "NoPendingInterruptError",
    "ResumeRequiredError",
    "NodeExecutionError",
    "InvalidResumeValueError",
    "StepLimitExceededError",
    "InvalidSelectionError",
    "Channel",
    "Reducer",
    "StateSchema",
    "Node",
    "NodeType",
    "Graph",
    "Edge",
    "ConditionalEdge",
    "build_graph",
    "START",
    "END",
    "Command",
    "GraphInterrupt",
    "interrupt",
    "Checkpoint",
    "CheckpointStatus",
    "Executor",
    "ExecutionResult",
    "ExecutionStatus",
    "execute_graph",
]
