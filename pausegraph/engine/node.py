"""
Node Definition for Workflow Engine.

Nodes are the building blocks of a workflow. A standard node receives a
copy of the current state and returns a partial update (only the channels it
touches). A router node only inspects the state and returns a routing label.
"""

from typing import Any, Callable, Dict, Optional, Union
from dataclasses import dataclass, field
from enum import Enum
from copy import deepcopy
import asyncio
import functools


class NodeType(str, Enum):
    """Types of nodes in the workflow."""
    STANDARD = "standard"  # Returns a partial state update
    ROUTER = "router"      # Returns a routing label, never mutates state


@dataclass
class Node:
    """
    A node in the workflow graph.

    Attributes:
        name: Unique identifier for the node
        handler: Function that processes state (sync or async)
        node_type: Standard or router
        description: Human-readable description
        metadata: Additional node metadata
    """

    name: str
    handler: Callable[[Dict[str, Any]], Union[Dict[str, Any], str, None]]
    node_type: NodeType = NodeType.STANDARD
    description: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Validate the node after initialization."""
        if not self.name:
            raise ValueError("Node name cannot be empty")
        if self.name.startswith("__") and self.name.endswith("__"):
            raise ValueError(f"Node name '{self.name}' is reserved")
        if not callable(self.handler):
            raise ValueError(f"Handler for node '{self.name}' must be callable")

    @property
    def is_async(self) -> bool:
        """Check if the handler is an async function."""
        return asyncio.iscoroutinefunction(self.handler)

    @property
    def is_router(self) -> bool:
        return self.node_type == NodeType.ROUTER

    async def call(self, state_data: Dict[str, Any]) -> Any:
        """
        Call the handler with a private copy of the state.

        Sync handlers run in the default executor so they don't block the
        event loop. Exceptions (including interrupts) propagate unchanged.
        """
        state_copy = deepcopy(state_data)
        if self.is_async:
            return await self.handler(state_copy)
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(
            None,
            functools.partial(self.handler, state_copy)
        )

    async def execute(self, state_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Execute a standard node and return its partial state update.

        Args:
            state_data: The current state data dictionary

        Returns:
            Partial update dictionary (empty if the handler returned None)
        """
        result = await self.call(state_data)

        if result is None:
            return {}

        if isinstance(result, dict):
            return result

        raise TypeError(
            f"Node '{self.name}' handler must return a dict or None, "
            f"got {type(result).__name__}"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the node to a dictionary."""
        return {
            "name": self.name,
            "type": self.node_type.value,
            "description": self.description,
            "handler": getattr(self.handler, "__name__", str(self.handler)),
            "metadata": self.metadata,
        }


def create_node_from_function(
    func: Callable,
    name: Optional[str] = None,
    node_type: NodeType = NodeType.STANDARD,
    description: str = ""
) -> Node:
    """
    Create a Node instance from a function.

    Args:
        func: The handler function
        name: Node name (defaults to function name)
        node_type: Type of node
        description: Human-readable description (defaults to the docstring)

    Returns:
        A Node instance
    """
    return Node(
        name=name or func.__name__,
        handler=func,
        node_type=node_type,
        description=description or (func.__doc__ or "").strip(),
    )
