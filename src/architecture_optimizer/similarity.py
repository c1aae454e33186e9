"""Structural similarity scoring for FUNC and SCHEMA nodes."""

import json
import re
from dataclasses import dataclass
from itertools import combinations
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Set

from .models import Architecture, EdgeType, Node, NodeType


# Canonical verb -> synonyms that collapse onto it
CANONICAL_VERBS: Dict[str, List[str]] = {
    "Validate": ["Check", "Verify", "Ensure", "Assert", "Validate"],
    "Get": ["Fetch", "Load", "Read", "Retrieve", "Query", "Get"],
    "Create": ["Add", "Make", "Build", "Generate", "Create"],
    "Update": ["Modify", "Change", "Edit", "Set", "Update"],
    "Delete": ["Remove", "Destroy", "Drop", "Purge", "Delete"],
    "Compute": ["Calculate", "Evaluate", "Estimate", "Compute"],
    "Send": ["Emit", "Publish", "Notify", "Dispatch", "Send"],
    "Process": ["Handle", "Manage", "Execute", "Run", "Process"],
    "Transform": ["Convert", "Map", "Parse", "Format", "Transform"],
    "Store": ["Save", "Persist", "Write", "Record", "Store"],
}

_VERB_LOOKUP: Dict[str, str] = {
    synonym: canonical
    for canonical, synonyms in CANONICAL_VERBS.items()
    for synonym in synonyms
}

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_TOKEN = re.compile(r"[a-z0-9]+")
_LEADING_WORD = re.compile(r"^([A-Z][a-z]*)")


def tokenize(text: str) -> Set[str]:
    """Lower-case word tokens, splitting camelCase and snake_case."""
    if not text:
        return set()
    return set(_TOKEN.findall(_CAMEL_BOUNDARY.sub(" ", str(text)).lower()))


def jaccard(a: Iterable, b: Iterable) -> float:
    """Jaccard index; two empty sets score 0."""
    a, b = set(a), set(b)
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def token_jaccard(text_a: str, text_b: str) -> float:
    return jaccard(tokenize(text_a), tokenize(text_b))


def canonical_verb(name: str) -> Optional[str]:
    """
    Leading capitalized word of a name, mapped through the synonym table.

    ``CheckInput`` and ``ValidateOrder`` both yield ``Validate``. Names with
    no leading capitalized word yield None.
    """
    if not name:
        return None
    match = _LEADING_WORD.match(name.strip())
    if not match:
        return None
    word = match.group(1)
    # Third-person forms ("Validates") map onto the base verb
    if word not in _VERB_LOOKUP and word.endswith("s") and word[:-1] in _VERB_LOOKUP:
        word = word[:-1]
    return _VERB_LOOKUP.get(word, word)


def parse_struct_fields(struct) -> Optional[FrozenSet[str]]:
    """
    Field names of a SCHEMA struct definition.

    Accepts a mapping, a JSON object string, or a JSON list of field
    descriptors (``{"name": ...}``). Returns None when unparseable.
    """
    if struct is None:
        return None
    if isinstance(struct, str):
        try:
            struct = json.loads(struct)
        except (json.JSONDecodeError, ValueError):
            return None
    if isinstance(struct, Mapping):
        return frozenset(str(k) for k in struct.keys())
    if isinstance(struct, (list, tuple)):
        names = set()
        for item in struct:
            if isinstance(item, Mapping) and "name" in item:
                names.add(str(item["name"]))
            elif isinstance(item, str):
                names.add(item)
            else:
                return None
        return frozenset(names)
    return None


@dataclass(frozen=True)
class SimilarityMatch:
    """A scored pair of same-typed nodes."""
    node_a: str
    node_b: str
    node_type: NodeType
    score: float


@dataclass(frozen=True)
class _FuncFeatures:
    tokens: FrozenSet[str]
    verb: Optional[str]
    io_in: int
    io_out: int
    satisfied: FrozenSet[str]
    parents: FrozenSet[str]


@dataclass(frozen=True)
class _SchemaFeatures:
    fields: Optional[FrozenSet[str]]
    struct_text: str
    name_tokens: FrozenSet[str]
    flows: FrozenSet[str]


class SimilarityScorer:
    """
    Scores pairwise similarity of FUNC and SCHEMA nodes in one snapshot.

    Features are extracted once per node from the snapshot's graph view, so
    the O(n²) pair loop only combines precomputed sets.
    """

    # FUNC component weights
    DESCRIPTION_WEIGHT = 0.35
    VERB_WEIGHT = 0.25
    IO_EXACT_WEIGHT = 0.25
    IO_PARTIAL_WEIGHT = 0.15
    REQUIREMENT_WEIGHT = 0.10
    PARENT_WEIGHT = 0.05

    # SCHEMA component weights
    STRUCT_WEIGHT = 0.50
    NAME_WEIGHT = 0.25
    USAGE_WEIGHT = 0.25

    def __init__(self, architecture: Architecture):
        self.architecture = architecture
        self._graph = architecture.to_graph()
        self._func_features: Dict[str, _FuncFeatures] = {}
        self._schema_features: Dict[str, _SchemaFeatures] = {}

    def func_similarity(self, a: Node, b: Node) -> float:
        fa, fb = self._func(a), self._func(b)

        score = self.DESCRIPTION_WEIGHT * jaccard(fa.tokens, fb.tokens)

        if fa.verb is not None and fa.verb == fb.verb:
            score += self.VERB_WEIGHT

        if fa.io_in == fb.io_in and fa.io_out == fb.io_out and (fa.io_in or fa.io_out):
            score += self.IO_EXACT_WEIGHT
        elif (fa.io_in and fb.io_in) or (fa.io_out and fb.io_out):
            score += self.IO_PARTIAL_WEIGHT

        score += self.REQUIREMENT_WEIGHT * jaccard(fa.satisfied, fb.satisfied)

        if fa.parents & fb.parents:
            score += self.PARENT_WEIGHT

        return min(1.0, score)

    def schema_similarity(self, a: Node, b: Node) -> float:
        sa, sb = self._schema(a), self._schema(b)

        if sa.fields is not None and sb.fields is not None:
            struct_score = jaccard(sa.fields, sb.fields)
        else:
            struct_score = token_jaccard(sa.struct_text, sb.struct_text)

        score = (
            self.STRUCT_WEIGHT * struct_score
            + self.NAME_WEIGHT * jaccard(sa.name_tokens, sb.name_tokens)
            + self.USAGE_WEIGHT * jaccard(sa.flows, sb.flows)
        )
        return min(1.0, score)

    def similarity(self, a: Node, b: Node) -> float:
        """Similarity of two same-typed nodes; 0 for other type combinations."""
        if a.type != b.type:
            return 0.0
        if a.type == NodeType.FUNC:
            return self.func_similarity(a, b)
        if a.type == NodeType.SCHEMA:
            return self.schema_similarity(a, b)
        return 0.0

    def find_pairs(self, node_type: NodeType, threshold: float = 0.0) -> List[SimilarityMatch]:
        """
        Score every unordered pair of nodes of one type.

        Args:
            node_type: FUNC or SCHEMA
            threshold: Minimum score to report

        Returns:
            Matches in snapshot order of the pair's first node
        """
        matches = []
        for a, b in combinations(self.architecture.nodes_of_type(node_type), 2):
            score = self.similarity(a, b)
            if score >= threshold:
                matches.append(SimilarityMatch(a.id, b.id, NodeType(node_type), score))
        return matches

    def _func(self, node: Node) -> _FuncFeatures:
        features = self._func_features.get(node.id)
        if features is None:
            features = self._extract_func(node)
            self._func_features[node.id] = features
        return features

    def _schema(self, node: Node) -> _SchemaFeatures:
        features = self._schema_features.get(node.id)
        if features is None:
            features = self._extract_schema(node)
            self._schema_features[node.id] = features
        return features

    def _extract_func(self, node: Node) -> _FuncFeatures:
        io = EdgeType.IO.value
        io_in = sum(1 for _, _, key in self._graph.in_edges(node.id, keys=True) if key == io)
        io_out = sum(1 for _, _, key in self._graph.out_edges(node.id, keys=True) if key == io)
        satisfied = frozenset(
            target for _, target, key in self._graph.out_edges(node.id, keys=True)
            if key == EdgeType.SATISFY.value
        )
        parents = frozenset(
            source for source, _, key in self._graph.in_edges(node.id, keys=True)
            if key == EdgeType.COMPOSE.value
        )
        return _FuncFeatures(
            tokens=frozenset(tokenize(node.description)),
            verb=canonical_verb(node.label),
            io_in=io_in,
            io_out=io_out,
            satisfied=satisfied,
            parents=parents,
        )

    def _extract_schema(self, node: Node) -> _SchemaFeatures:
        struct = node.properties.get("struct")
        flows = {
            neighbor
            for neighbor in set(self._graph.predecessors(node.id)) | set(self._graph.successors(node.id))
            if self._graph.nodes[neighbor]["type"] == NodeType.FLOW.value
        }
        return _SchemaFeatures(
            fields=parse_struct_fields(struct),
            struct_text="" if struct is None else str(struct),
            name_tokens=frozenset(tokenize(node.label)),
            flows=frozenset(flows),
        )
