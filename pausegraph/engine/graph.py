"""
Graph Definition for Workflow Engine.

The Graph is the core structure that defines the workflow - nodes, edges,
conditional routing, and execution flow. Nodes and edges are kept in
adjacency dicts keyed by node name, so a cursor is simply a name.

Local mistakes (duplicate names, unknown targets) fail as soon as they are
made; whole-graph checks run once in ``compile()``.
"""

from typing import (
    Any, Callable, Dict, FrozenSet, Iterable, List, Literal, Optional, Set,
    Tuple, Union, get_args, get_origin, get_type_hints,
)
from dataclasses import dataclass, field
from enum import Enum
import logging
import uuid

from pausegraph.engine.errors import GraphDefinitionError
from pausegraph.engine.node import Node, NodeType, create_node_from_function
from pausegraph.engine.state import StateSchema


logger = logging.getLogger(__name__)


# Special node names
END = "__END__"
START = "__START__"


class EdgeType(str, Enum):
    """Types of edges between nodes."""
    DIRECT = "direct"           # Always follow this edge
    CONDITIONAL = "conditional"  # Choose based on condition


@dataclass
class Edge:
    """An edge connecting two nodes."""
    source: str
    target: str
    edge_type: EdgeType = EdgeType.DIRECT

    def to_dict(self) -> Dict[str, str]:
        return {
            "source": self.source,
            "target": self.target,
            "type": self.edge_type.value
        }


def infer_labels(condition: Callable) -> Optional[FrozenSet[str]]:
    """
    Read the label range from a ``Literal[...]`` return annotation.

    Returns None when the condition carries no such annotation.
    """
    try:
        hints = get_type_hints(condition)
    except (NameError, TypeError):
        return None
    hint = hints.get("return")
    if hint is not None and get_origin(hint) is Literal:
        return frozenset(get_args(hint))
    return None


@dataclass
class ConditionalEdge:
    """
    A conditional edge that routes to different nodes based on a condition.

    The condition function receives the current state and returns a route
    label. The routes dict maps labels to target node names. ``labels`` is
    the set of labels the condition can produce; every one of them needs a
    route.
    """
    source: str
    condition: Callable[[Dict[str, Any]], str]
    routes: Dict[str, str]  # label -> target_node_name
    labels: Optional[FrozenSet[str]] = None

    def __post_init__(self):
        if self.labels is None:
            self.labels = infer_labels(self.condition)
        else:
            self.labels = frozenset(self.labels)

    @property
    def declared_labels(self) -> FrozenSet[str]:
        if self.labels is None:
            return frozenset(self.routes)
        return self.labels

    def missing_labels(self) -> Set[str]:
        """Labels the condition can produce that have no route."""
        return set(self.declared_labels) - set(self.routes)

    def resolve(self, label: Any) -> str:
        """Map a label to its target node name."""
        if label not in self.routes:
            raise ValueError(
                f"Condition returned unknown route '{label}'. "
                f"Available routes: {list(self.routes.keys())}"
            )
        return self.routes[label]

    def evaluate(self, state_data: Dict[str, Any]) -> Tuple[str, str]:
        """Evaluate the condition and return ``(label, target)``."""
        label = self.condition(state_data)
        return label, self.resolve(label)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "condition": getattr(self.condition, "__name__", str(self.condition)),
            "routes": self.routes,
            "labels": sorted(self.declared_labels),
        }


@dataclass
class Graph:
    """
    A workflow graph consisting of nodes and edges.

    The graph defines the structure of a workflow:
    - Nodes: Processing units that return partial state updates
    - Routers: Nodes that only pick the next node
    - Edges: Connections between nodes
    - Conditional Edges: Branching logic based on state

    Attributes:
        graph_id: Unique identifier for this graph
        name: Human-readable name
        state_schema: Channels and reducers of the workflow state
        nodes: Dict of node_name -> Node
        edges: Dict of source -> target for direct edges
        conditional_edges: Dict of source_node -> ConditionalEdge
        entry_point: Name of the first node to execute
    """

    graph_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = "Unnamed Workflow"
    description: str = ""
    state_schema: StateSchema = field(default_factory=StateSchema)
    nodes: Dict[str, Node] = field(default_factory=dict)
    edges: Dict[str, str] = field(default_factory=dict)
    conditional_edges: Dict[str, ConditionalEdge] = field(default_factory=dict)
    entry_point: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    _compiled: bool = field(default=False, init=False, repr=False)

    @property
    def is_compiled(self) -> bool:
        return self._compiled

    def _check_mutable(self) -> None:
        if self._compiled:
            raise GraphDefinitionError(
                f"Graph '{self.name}' is compiled and can no longer be modified"
            )

    def _check_target(self, target: str, context: str) -> None:
        if target != END and target not in self.nodes:
            raise GraphDefinitionError(
                f"Target node '{target}' for {context} not found in graph"
            )

    def _check_source(self, source: str) -> None:
        if source not in self.nodes:
            raise GraphDefinitionError(f"Source node '{source}' not found in graph")
        if source in self.edges or source in self.conditional_edges:
            raise GraphDefinitionError(
                f"Node '{source}' already has an outgoing edge"
            )

    def add_node(
        self,
        name: str,
        handler: Callable,
        description: str = ""
    ) -> "Graph":
        """
        Add a standard node to the graph.

        Args:
            name: Unique name for the node
            handler: Function returning a partial state update
            description: Human-readable description

        Returns:
            Self for chaining
        """
        self._check_mutable()
        if name in self.nodes:
            raise GraphDefinitionError(f"Node '{name}' already exists in the graph")
        try:
            node = create_node_from_function(handler, name, NodeType.STANDARD, description)
        except ValueError as e:
            raise GraphDefinitionError(str(e)) from e
        self.nodes[name] = node
        return self

    def add_router(
        self,
        name: str,
        handler: Callable[[Dict[str, Any]], str],
        routes: Dict[str, str],
        labels: Optional[Iterable[str]] = None,
        description: str = ""
    ) -> "Graph":
        """
        Add a router node: its handler returns a label that picks the next node.

        Args:
            name: Unique name for the node
            handler: Function that inspects state and returns a label
            routes: Dict mapping labels to target nodes
            labels: Labels the handler can return (inferred from a
                ``Literal`` return annotation when omitted)
            description: Human-readable description

        Returns:
            Self for chaining
        """
        self._check_mutable()
        if name in self.nodes:
            raise GraphDefinitionError(f"Node '{name}' already exists in the graph")
        try:
            node = create_node_from_function(handler, name, NodeType.ROUTER, description)
        except ValueError as e:
            raise GraphDefinitionError(str(e)) from e
        for label, target in routes.items():
            self._check_target(target, f"route '{label}'")
        self.nodes[name] = node
        self.conditional_edges[name] = ConditionalEdge(
            source=name,
            condition=handler,
            routes=dict(routes),
            labels=frozenset(labels) if labels is not None else None,
        )
        return self

    def add_edge(self, source: str, target: str) -> "Graph":
        """
        Add a direct edge from source to target.

        An edge from START sets the entry point.

        Args:
            source: Source node name (or START)
            target: Target node name (or END)

        Returns:
            Self for chaining
        """
        self._check_mutable()
        if source == START:
            return self.set_entry_point(target)
        self._check_source(source)
        self._check_target(target, f"edge from '{source}'")
        self.edges[source] = target
        return self

    def add_conditional_edge(
        self,
        source: str,
        condition: Callable[[Dict[str, Any]], str],
        routes: Dict[str, str],
        labels: Optional[Iterable[str]] = None
    ) -> "Graph":
        """
        Add a conditional edge from source node.

        The condition runs on the state after the source node's update has
        been merged, and returns a route label.

        Args:
            source: Source node name
            condition: Function that returns a label
            routes: Dict mapping labels to target nodes
            labels: Labels the condition can return (inferred from a
                ``Literal`` return annotation when omitted)

        Returns:
            Self for chaining
        """
        self._check_mutable()
        self._check_source(source)
        for label, target in routes.items():
            self._check_target(target, f"route '{label}'")

        self.conditional_edges[source] = ConditionalEdge(
            source=source,
            condition=condition,
            routes=dict(routes),
            labels=frozenset(labels) if labels is not None else None,
        )
        return self

    def set_entry_point(self, node_name: str) -> "Graph":
        """Set the entry point of the graph."""
        self._check_mutable()
        if node_name not in self.nodes:
            raise GraphDefinitionError(f"Node '{node_name}' not found in graph")
        self.entry_point = node_name
        return self

    def get_next_node(
        self,
        current_node: str,
        state_data: Dict[str, Any]
    ) -> Tuple[str, Optional[str]]:
        """
        Get the next node after ``current_node`` and the label that chose it.

        A node without an outgoing edge routes to END.
        """
        if current_node in self.conditional_edges:
            label, target = self.conditional_edges[current_node].evaluate(state_data)
            return target, label

        return self.edges.get(current_node, END), None

    def validate(self) -> List[str]:
        """
        Validate the graph structure.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if not self.nodes:
            errors.append("Graph must have at least one node")
            return errors

        if not self.entry_point:
            errors.append("Graph must have an entry point (an edge from START)")
        elif self.entry_point not in self.nodes:
            errors.append(f"Entry point '{self.entry_point}' not found in nodes")

        for source, cond in self.conditional_edges.items():
            missing = cond.missing_labels()
            if missing:
                errors.append(
                    f"Conditional edge from '{source}' has no route for "
                    f"label(s) {sorted(missing)}"
                )

        if self.entry_point in self.nodes:
            reachable = self._get_reachable_nodes()
            orphans = set(self.nodes.keys()) - reachable
            if orphans:
                errors.append(f"Orphan nodes (not reachable): {sorted(orphans)}")
            if END not in reachable:
                errors.append("END is not reachable from the entry point")

        return errors

    def compile(self) -> "Graph":
        """
        Validate the whole graph once and freeze it.

        Raises:
            GraphDefinitionError: listing every problem found
        """
        if self._compiled:
            return self
        errors = self.validate()
        if errors:
            raise GraphDefinitionError(
                f"Graph '{self.name}' is invalid: {'; '.join(errors)}",
                problems=errors,
            )
        self._compiled = True
        logger.debug(f"Compiled graph '{self.name}' with {len(self.nodes)} nodes")
        return self

    def _successors(self, node: str) -> List[str]:
        if node in self.conditional_edges:
            return list(self.conditional_edges[node].routes.values())
        return [self.edges.get(node, END)]

    def _get_reachable_nodes(self) -> Set[str]:
        """Get all names (END included) reachable from the entry point."""
        if not self.entry_point:
            return set()

        reachable = set()
        to_visit = [self.entry_point]

        while to_visit:
            node = to_visit.pop()
            if node in reachable:
                continue
            reachable.add(node)
            if node != END:
                to_visit.extend(self._successors(node))

        return reachable

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the graph to a dictionary."""
        return {
            "graph_id": self.graph_id,
            "name": self.name,
            "description": self.description,
            "nodes": {name: node.to_dict() for name, node in self.nodes.items()},
            "edges": self.edges,
            "conditional_edges": {
                name: edge.to_dict()
                for name, edge in self.conditional_edges.items()
            },
            "entry_point": self.entry_point,
            "state_schema": self.state_schema.to_dict(),
            "metadata": self.metadata,
        }

    def __repr__(self) -> str:
        return (
            f"Graph(name='{self.name}', nodes={list(self.nodes.keys())}, "
            f"entry='{self.entry_point}')"
        )


def build_graph(
    nodes: Iterable[Node],
    edges: Iterable[Union[Edge, ConditionalEdge, Tuple[str, str]]],
    start: str = START,
    end: str = END,
    **graph_kwargs: Any
) -> Graph:
    """
    Build and compile a graph in one call.

    Args:
        nodes: Node instances (router nodes need a ConditionalEdge from them)
        edges: Direct edges as ``Edge`` or ``(source, target)`` tuples, and
            ``ConditionalEdge`` instances
        start: Start pseudo-node name; edges from it set the entry point.
            A real node name here makes that node the entry point.
        end: End pseudo-node name; edge targets equal to it mean END
        **graph_kwargs: Passed to ``Graph`` (name, description, state_schema...)

    Returns:
        A compiled Graph

    Raises:
        GraphDefinitionError: if the graph is malformed
    """
    graph = Graph(**graph_kwargs)

    for node in nodes:
        if node.name in graph.nodes:
            raise GraphDefinitionError(f"Node '{node.name}' already exists in the graph")
        graph.nodes[node.name] = node

    def normalize(target: str) -> str:
        return END if target == end else target

    for edge in edges:
        if isinstance(edge, ConditionalEdge):
            routes = {label: normalize(t) for label, t in edge.routes.items()}
            graph.add_conditional_edge(edge.source, edge.condition, routes, edge.labels)
            continue
        source, target = (edge.source, edge.target) if isinstance(edge, Edge) else edge
        if source == start and start not in graph.nodes:
            graph.set_entry_point(normalize(target))
        else:
            graph.add_edge(source, normalize(target))

    if start in graph.nodes:
        graph.set_entry_point(start)
    elif start != START and graph.entry_point is None:
        raise GraphDefinitionError(f"Start node '{start}' not found in graph")

    for name, node in graph.nodes.items():
        if node.is_router and name not in graph.conditional_edges:
            raise GraphDefinitionError(f"Router node '{name}' has no conditional edge")

    return graph.compile()
