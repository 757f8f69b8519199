"""
Workflows package - Flight search workflows and the workflow registry.
"""

from pausegraph.workflows.flight_search import (
    create_flight_selection_workflow,
    create_flight_refinement_workflow,
    format_flight_details,
    run_flight_search_demo,
)
from pausegraph.workflows.registry import (
    RegisteredWorkflow,
    WorkflowRegistry,
    create_default_registry,
)

__all__ = [
    "create_flight_selection_workflow",
    "create_flight_refinement_workflow",
    "format_flight_details",
    "run_flight_search_demo",
    "RegisteredWorkflow",
    "WorkflowRegistry",
    "create_default_registry",
]
