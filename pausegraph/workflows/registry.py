"""
Workflow Registry.

Holds one executor per named workflow. All executors share a single
checkpoint store, so session ids are namespaced by workflow name before
they reach the store.
"""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass
import logging

from pausegraph.collaborators import FlightIndex, KeywordInterpreter
from pausegraph.config import Settings
from pausegraph.engine.executor import Executor
from pausegraph.engine.graph import Graph
from pausegraph.storage import CheckpointStore, create_checkpoint_store
from pausegraph.workflows.flight_search import (
    create_flight_refinement_workflow,
    create_flight_selection_workflow,
)


logger = logging.getLogger(__name__)


@dataclass
class RegisteredWorkflow:
    """A workflow graph together with the executor that runs it."""
    name: str
    graph: Graph
    executor: Executor

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.graph.description,
            "entry_point": self.graph.entry_point,
            "nodes": list(self.graph.nodes.keys()),
        }


class WorkflowRegistry:
    """
    Registry of runnable workflows, scoped to one application.

    Usage:
        registry = WorkflowRegistry(MemoryCheckpointStore())
        registry.register(graph)
        executor = registry.get("flight-selection").executor
        await executor.invoke({"input": "..."}, registry.session_key("flight-selection", "s1"))
    """

    def __init__(self, store: CheckpointStore, max_steps: int = 100):
        self.store = store
        self.max_steps = max_steps
        self._workflows: Dict[str, RegisteredWorkflow] = {}

    def register(self, graph: Graph, name: Optional[str] = None) -> RegisteredWorkflow:
        """
        Register a graph under ``name`` (defaults to the graph's name).

        Raises:
            ValueError: if the name is already taken
        """
        workflow_name = name or graph.name
        if workflow_name in self._workflows:
            raise ValueError(f"Workflow '{workflow_name}' is already registered")

        workflow = RegisteredWorkflow(
            name=workflow_name,
            graph=graph,
            executor=Executor(graph, self.store, self.max_steps),
        )
        self._workflows[workflow_name] = workflow
        logger.info(f"Registered workflow: {workflow_name}")
        return workflow

    def get(self, name: str) -> Optional[RegisteredWorkflow]:
        return self._workflows.get(name)

    def list_workflows(self) -> List[RegisteredWorkflow]:
        return list(self._workflows.values())

    @staticmethod
    def session_key(workflow: str, session_id: str) -> str:
        """Store key of a session of ``workflow``."""
        return f"{workflow}/{session_id}"

    async def close(self) -> None:
        await self.store.close()

    def __contains__(self, name: str) -> bool:
        return name in self._workflows

    def __len__(self) -> int:
        return len(self._workflows)


def create_default_registry(
    settings: Settings,
    store: Optional[CheckpointStore] = None
) -> WorkflowRegistry:
    """
    Build the registry with both flight workflows from settings.

    Args:
        settings: Application settings
        store: Checkpoint store (created from settings when not provided)
    """
    if store is None:
        store = create_checkpoint_store(
            settings.CHECKPOINT_BACKEND, settings.CHECKPOINT_DB_PATH
        )

    index = FlightIndex.from_json(settings.FLIGHT_DATASET_PATH)
    interpreter = KeywordInterpreter()

    registry = WorkflowRegistry(store, settings.MAX_SUPERSTEPS)
    registry.register(
        create_flight_selection_workflow(index, interpreter, settings.SELECTION_LIMIT)
    )
    registry.register(
        create_flight_refinement_workflow(index, interpreter, settings.SEARCH_LIMIT)
    )
    return registry
