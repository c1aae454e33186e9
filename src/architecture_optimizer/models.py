"""Core data models for the Architecture Optimizer."""

from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import networkx as nx


class ArchitectureError(ValueError):
    """Raised when an architecture snapshot is malformed."""


class NodeType(str, Enum):
    """Node types of the architecture ontology."""
    SYS = "SYS"
    UC = "UC"
    ACTOR = "ACTOR"
    FCHAIN = "FCHAIN"
    FUNC = "FUNC"
    FLOW = "FLOW"
    REQ = "REQ"
    TEST = "TEST"
    MOD = "MOD"
    SCHEMA = "SCHEMA"


class EdgeType(str, Enum):
    """Edge types of the architecture ontology."""
    COMPOSE = "compose"
    IO = "io"
    SATISFY = "satisfy"
    VERIFY = "verify"
    ALLOCATE = "allocate"
    RELATION = "relation"


class Severity(str, Enum):
    HARD = "hard"
    SOFT = "soft"


class OperatorKind(str, Enum):
    """Move operators known to the registry."""
    SPLIT = "SPLIT"
    MERGE = "MERGE"
    LINK = "LINK"
    REALLOC = "REALLOC"
    CREATE = "CREATE"
    DELETE = "DELETE"
    FUNC_SPLIT = "FUNC_SPLIT"
    MOD_SPLIT = "MOD_SPLIT"
    FUNC_MERGE = "FUNC_MERGE"
    FUNC_MERGE_SIMILAR = "FUNC_MERGE_SIMILAR"
    FLOW_REDIRECT = "FLOW_REDIRECT"
    FLOW_CONSOLIDATE = "FLOW_CONSOLIDATE"
    ALLOC_SHIFT = "ALLOC_SHIFT"
    ALLOC_REBALANCE = "ALLOC_REBALANCE"
    REQ_LINK = "REQ_LINK"
    TEST_LINK = "TEST_LINK"


def _freeze(value: Any) -> Any:
    """Turn nested dicts/lists into read-only mappings and tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    if isinstance(value, set):
        return tuple(sorted(_freeze(v) for v in value))
    return value


def to_plain(value: Any) -> Any:
    """Inverse of _freeze: JSON-compatible dicts and lists."""
    if isinstance(value, Mapping):
        return {k: to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass(frozen=True)
class Node:
    """A typed node of the architecture graph."""
    id: str
    type: NodeType
    label: str = ""
    properties: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        try:
            object.__setattr__(self, "type", NodeType(self.type))
        except ValueError as e:
            raise ArchitectureError(f"Node {self.id!r} has unknown type {self.type!r}") from e
        if not self.label:
            object.__setattr__(self, "label", self.id)
        object.__setattr__(self, "properties", _freeze(dict(self.properties)))

    @property
    def description(self) -> str:
        """Description text, stored as ``descr`` or ``description``."""
        return str(self.properties.get("descr") or self.properties.get("description") or "")

    def with_properties(self, **updates) -> "Node":
        """Copy of the node with some properties replaced."""
        return Node(self.id, self.type, self.label, {**to_plain(self.properties), **updates})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "label": self.label,
            "properties": to_plain(self.properties),
        }


@dataclass(frozen=True)
class Edge:
    """A typed, directed edge between two node ids."""
    source: str
    target: str
    type: EdgeType
    properties: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        try:
            object.__setattr__(self, "type", EdgeType(self.type))
        except ValueError as e:
            raise ArchitectureError(
                f"Edge {self.source!r}->{self.target!r} has unknown type {self.type!r}"
            ) from e
        object.__setattr__(self, "properties", _freeze(dict(self.properties)))

    @property
    def key(self) -> Tuple[str, str, str]:
        """Identity used for parallel-edge de-duplication."""
        return (self.source, self.target, self.type.value)

    def touches(self, node_id: str) -> bool:
        return self.source == node_id or self.target == node_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "type": self.type.value,
            "properties": to_plain(self.properties),
        }


@dataclass(frozen=True)
class Architecture:
    """
    Immutable snapshot of the typed node/edge graph under optimization.

    Every transformation builds a new snapshot through ``replace``; nothing
    mutates an existing one. Construction checks that node ids are unique and
    that every edge references existing nodes.
    """
    nodes: Tuple[Node, ...] = ()
    edges: Tuple[Edge, ...] = ()
    id: str = "architecture"
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "nodes", tuple(self.nodes))
        object.__setattr__(self, "edges", tuple(self.edges))
        object.__setattr__(self, "metadata", _freeze(dict(self.metadata)))

        seen = set()
        for node in self.nodes:
            if node.id in seen:
                raise ArchitectureError(f"Duplicate node id {node.id!r}")
            seen.add(node.id)
        for edge in self.edges:
            if edge.source not in seen or edge.target not in seen:
                raise ArchitectureError(
                    f"Edge {edge.source!r} -{edge.type.value}-> {edge.target!r} references an unknown node"
                )

    @cached_property
    def _index(self) -> Dict[str, Node]:
        return {node.id: node for node in self.nodes}

    def node(self, node_id: str) -> Optional[Node]:
        return self._index.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._index

    def node_ids(self) -> List[str]:
        return [node.id for node in self.nodes]

    def nodes_of_type(self, node_type: NodeType) -> List[Node]:
        """Nodes of one type, in snapshot order."""
        node_type = NodeType(node_type)
        return [node for node in self.nodes if node.type == node_type]

    def edges_of_type(self, edge_type: EdgeType) -> List[Edge]:
        """Edges of one type, in snapshot order."""
        edge_type = EdgeType(edge_type)
        return [edge for edge in self.edges if edge.type == edge_type]

    def edges_from(self, node_id: str) -> List[Edge]:
        return [edge for edge in self.edges if edge.source == node_id]

    def edges_to(self, node_id: str) -> List[Edge]:
        return [edge for edge in self.edges if edge.target == node_id]

    def has_edge(self, source: str, target: str, edge_type: EdgeType) -> bool:
        key = (source, target, EdgeType(edge_type).value)
        return any(edge.key == key for edge in self.edges)

    def to_graph(self) -> nx.MultiDiGraph:
        """
        Frozen networkx view of the snapshot.

        Nodes carry ``type``, ``label`` and ``data`` (the Node); edges are
        keyed by edge type and carry ``type`` and ``data`` (the Edge).
        """
        return self._graph

    @cached_property
    def _graph(self) -> nx.MultiDiGraph:
        graph = nx.MultiDiGraph()
        for node in self.nodes:
            graph.add_node(node.id, type=node.type.value, label=node.label, data=node)
        for edge in self.edges:
            graph.add_edge(edge.source, edge.target, key=edge.type.value, type=edge.type.value, data=edge)
        return nx.freeze(graph)

    def replace(self, nodes: Optional[Iterable[Node]] = None,
                edges: Optional[Iterable[Edge]] = None) -> "Architecture":
        """Build a new snapshot sharing everything not replaced."""
        return Architecture(
            nodes=self.nodes if nodes is None else tuple(nodes),
            edges=self.edges if edges is None else tuple(edges),
            id=self.id,
            metadata=self.metadata,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Architecture":
        """
        Build a snapshot from the host's JSON interchange format.

        Args:
            data: Mapping with ``nodes`` and ``edges`` lists (and optional ``id``, ``metadata``)

        Returns:
            Architecture snapshot

        Raises:
            ArchitectureError: if the data or one of its nodes or edges is malformed
        """
        if not isinstance(data, Mapping):
            raise ArchitectureError(f"Architecture data must be a JSON object, got {type(data).__name__}")
        for key in ("nodes", "edges"):
            entries = data.get(key, [])
            if not isinstance(entries, (list, tuple)) or not all(isinstance(entry, Mapping) for entry in entries):
                raise ArchitectureError(f"Architecture {key} must be a list of JSON objects")
        try:
            nodes = [
                Node(
                    id=str(n["id"]),
                    type=n["type"],
                    label=n.get("label") or n.get("name") or "",
                    properties=n.get("properties") or {},
                )
                for n in data.get("nodes", [])
            ]
            edges = [
                Edge(
                    source=str(e["source"]),
                    target=str(e["target"]),
                    type=e["type"],
                    properties=e.get("properties") or {},
                )
                for e in data.get("edges", [])
            ]
        except KeyError as e:
            raise ArchitectureError(f"Missing required field {e.args[0]!r} in architecture data") from e
        return cls(
            nodes=nodes,
            edges=edges,
            id=str(data.get("id", "architecture")),
            metadata=data.get("metadata") or {},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
            "metadata": to_plain(self.metadata),
        }


@dataclass(frozen=True)
class Violation:
    """A detected rule breach."""
    rule_id: str
    severity: Severity
    affected_nodes: Tuple[str, ...]
    message: str
    suggested_operator: Optional[OperatorKind] = None

    def __post_init__(self):
        object.__setattr__(self, "severity", Severity(self.severity))
        object.__setattr__(self, "affected_nodes", tuple(self.affected_nodes))
        if self.suggested_operator is not None:
            object.__setattr__(self, "suggested_operator", OperatorKind(self.suggested_operator))

    @property
    def is_hard(self) -> bool:
        return self.severity == Severity.HARD

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "severity": self.severity.value,
            "affected_nodes": list(self.affected_nodes),
            "message": self.message,
            "suggested_operator": self.suggested_operator.value if self.suggested_operator else None,
        }


@dataclass(frozen=True)
class ScoreResult:
    """Per-objective scores plus the single weighted scalar."""
    per_objective: Mapping[str, float]
    weighted: float
    hard_violations: int = 0
    soft_violations: int = 0

    def __post_init__(self):
        object.__setattr__(self, "per_objective", MappingProxyType(dict(self.per_objective)))

    def objective(self, name: str) -> float:
        return self.per_objective.get(name, 0.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "per_objective": dict(self.per_objective),
            "weighted": self.weighted,
            "hard_violations": self.hard_violations,
            "soft_violations": self.soft_violations,
        }


@dataclass(frozen=True)
class Variant:
    """One candidate architecture plus its score and lineage metadata."""
    id: str
    architecture: Architecture
    score: ScoreResult
    parent_id: Optional[str] = None
    applied_operator: Optional[OperatorKind] = None
    generation: int = 0
    violations: Tuple[Violation, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "violations", tuple(self.violations))

    @property
    def has_hard_violation(self) -> bool:
        return any(v.is_hard for v in self.violations)

    def to_dict(self, include_architecture: bool = True) -> Dict[str, Any]:
        result = {
            "id": self.id,
            "parent_id": self.parent_id,
            "applied_operator": self.applied_operator.value if self.applied_operator else None,
            "generation": self.generation,
            "score": self.score.to_dict(),
            "violations": [v.to_dict() for v in self.violations],
        }
        if include_architecture:
            result["architecture"] = self.architecture.to_dict()
        return result


@dataclass(frozen=True)
class MoveResult:
    """Outcome of applying one move operator."""
    operator: OperatorKind
    success: bool
    architecture: Optional[Architecture] = None
    affected_nodes: Tuple[str, ...] = ()
    description: str = ""
