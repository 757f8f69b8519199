"""
Collaborators package - Retrieval and interpretation used by workflow nodes.
"""

from pausegraph.collaborators.search import SearchClient, FlightIndex, load_dataset
from pausegraph.collaborators.interpret import (
    Interpreter,
    KeywordInterpreter,
    validate_selection,
)

__all__ = [
    "SearchClient",
    "FlightIndex",
    "load_dataset",
    "Interpreter",
    "KeywordInterpreter",
    "validate_selection",
]
