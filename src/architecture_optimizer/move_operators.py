"""
Move operators: precondition-guarded, side-effect-free graph rewrites.

Every operator takes an Architecture and a Violation and returns a
MoveResult. The input snapshot is never modified; a failed precondition or an
impossible rewrite yields ``success=False`` instead of an exception.
"""

from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import networkx as nx

from .config import ScoringConfig
from .models import (
    Architecture,
    Edge,
    EdgeType,
    MoveResult,
    Node,
    NodeType,
    OperatorKind,
    Violation,
    to_plain,
)
from .similarity import tokenize
from .violation_detector import (
    ALLOCATION_COHESION,
    FUNCTION_REQUIREMENTS,
    ISOLATION,
    MILLERS_LAW,
    REQUIREMENTS_VERIFICATION,
    SCHEMA_MERGE_CANDIDATE,
    SCHEMA_NEAR_DUPLICATE,
    SIMILARITY_RULES,
    VOLATILITY_ISOLATION,
    allocation_map,
    module_members,
    volatility_of,
)


# Parent type -> child type -> containment edge type
CONTAINMENT_EDGES: Dict[NodeType, Dict[NodeType, EdgeType]] = {
    NodeType.SYS: {NodeType.UC: EdgeType.COMPOSE, NodeType.MOD: EdgeType.COMPOSE},
    NodeType.UC: {NodeType.FUNC: EdgeType.COMPOSE, NodeType.FCHAIN: EdgeType.COMPOSE},
    NodeType.FCHAIN: {NodeType.FUNC: EdgeType.COMPOSE},
    NodeType.FUNC: {NodeType.FUNC: EdgeType.COMPOSE},
    NodeType.MOD: {NodeType.FUNC: EdgeType.ALLOCATE},
}


# ============================================================================
# Graph helpers
# ============================================================================

def unique_id(base: str, existing: Iterable[str]) -> str:
    """``base`` if free, else ``base_2``, ``base_3``, ..."""
    taken = set(existing)
    if base not in taken:
        return base
    suffix = 2
    while f"{base}_{suffix}" in taken:
        suffix += 1
    return f"{base}_{suffix}"


def dedupe_edges(edges: Iterable[Edge]) -> List[Edge]:
    """Drop parallel edges with the same (source, target, type), keeping the first."""
    seen = set()
    result = []
    for edge in edges:
        if edge.key in seen:
            continue
        seen.add(edge.key)
        result.append(edge)
    return result


def retarget(edge: Edge, old_id: str, new_id: str) -> Edge:
    """Copy of ``edge`` with every endpoint equal to ``old_id`` replaced."""
    return Edge(
        source=new_id if edge.source == old_id else edge.source,
        target=new_id if edge.target == old_id else edge.target,
        type=edge.type,
        properties=to_plain(edge.properties),
    )


def containment_edges(architecture: Architecture, parent_id: str,
                      child_type: Optional[NodeType] = None) -> List[Tuple[Edge, str]]:
    """
    Containment edges of a parent with the child id each one reaches.

    Compose edges point parent -> child. Allocate edges may point either way.
    """
    parent = architecture.node(parent_id)
    if parent is None:
        return []
    edge_types = CONTAINMENT_EDGES.get(parent.type, {})
    result = []
    for edge in architecture.edges:
        if edge.source == parent_id:
            child_id = edge.target
        elif edge.target == parent_id and edge.type == EdgeType.ALLOCATE:
            child_id = edge.source
        else:
            continue
        child = architecture.node(child_id)
        if child is None or child_id == parent_id:
            continue
        if child_type is not None and child.type != child_type:
            continue
        if edge_types.get(child.type) == edge.type:
            result.append((edge, child_id))
    return result


def children_of(architecture: Architecture, parent_id: str,
                child_type: Optional[NodeType] = None) -> List[str]:
    """Distinct contained children in edge order."""
    seen: List[str] = []
    for _, child_id in containment_edges(architecture, parent_id, child_type):
        if child_id not in seen:
            seen.append(child_id)
    return seen


def _incoming_compose(architecture: Architecture, node_id: str) -> List[Edge]:
    return [e for e in architecture.edges_to(node_id) if e.type == EdgeType.COMPOSE]


def move_children(architecture: Architecture, parent_id: str, new_parent_id: str,
                  child_ids: Sequence[str], extra_nodes: Sequence[Node] = ()) -> Architecture:
    """
    Re-point the containment edges of ``child_ids`` from one parent to another.

    Edge direction is preserved. ``extra_nodes`` are appended first (used when
    the new parent is created by the same move).
    """
    moving = set(child_ids)
    moved_edges = {
        id(edge): retarget(edge, parent_id, new_parent_id)
        for edge, child_id in containment_edges(architecture, parent_id)
        if child_id in moving
    }
    edges = [moved_edges.get(id(edge), edge) for edge in architecture.edges]
    return architecture.replace(
        nodes=(*architecture.nodes, *extra_nodes),
        edges=dedupe_edges(edges),
    )


# Bookkeeping written by merges and splits; describes one node, never inherited
LINEAGE_KEYS = ("merged_from", "merged_properties", "split_from")

# Markers that only hold for the node that was created with them
MARKER_KEYS = ("high_volatility",)


def own_properties(node: Node) -> Dict[str, object]:
    """Plain properties of ``node`` without merge/split bookkeeping."""
    return {k: v for k, v in to_plain(node.properties).items() if k not in LINEAGE_KEYS}


def original_properties(node: Node) -> Dict[str, Dict[str, object]]:
    """Properties of every original node folded into ``node``, keyed by id."""
    merged = node.properties.get("merged_properties")
    if merged is not None:
        return to_plain(merged)
    return {node.id: own_properties(node)}


def _rejoined(first: Node, second: Node) -> Optional[Node]:
    """The parent when one node was split off the other, else None."""
    if second.properties.get("split_from") == first.id:
        return first
    if first.properties.get("split_from") == second.id:
        return second
    return None


def merge_nodes(architecture: Architecture, first_id: str, second_id: str) -> Optional[Architecture]:
    """
    Combine two same-typed nodes into ``first+second``.

    Every edge of either original is re-pointed to the merged node, edges
    between the two originals are dropped, and parallel edges are
    de-duplicated. Properties of the first node win; keys only the second
    carries are added. ``merged_from`` and ``merged_properties`` keep both
    originals recoverable.

    Merging a node back into the one it was split from restores the
    parent's id and label instead of concatenating them.
    """
    first = architecture.node(first_id)
    second = architecture.node(second_id)
    if first is None or second is None or first_id == second_id or first.type != second.type:
        return None

    parent = _rejoined(first, second)
    if parent is not None:
        merged_id, label = parent.id, parent.label
    else:
        others = [nid for nid in architecture.node_ids() if nid not in (first_id, second_id)]
        merged_id = unique_id(f"{first_id}+{second_id}", others)
        label = f"{first.label}+{second.label}"

    properties = own_properties(first)
    for key, value in own_properties(second).items():
        properties.setdefault(key, value)
    for key in MARKER_KEYS:
        properties.pop(key, None)
    properties["merged_from"] = [first_id, second_id]
    properties["merged_properties"] = {**original_properties(first), **original_properties(second)}

    merged = Node(
        id=merged_id,
        type=first.type,
        label=label,
        properties=properties,
    )

    pair = {first_id, second_id}
    edges = []
    for edge in architecture.edges:
        if edge.source in pair and edge.target in pair:
            continue
        if edge.touches(first_id) or edge.touches(second_id):
            edge = retarget(retarget(edge, first_id, merged_id), second_id, merged_id)
        edges.append(edge)

    nodes = []
    for node in architecture.nodes:
        if node.id == first_id:
            nodes.append(merged)
        elif node.id != second_id:
            nodes.append(node)

    return architecture.replace(nodes=nodes, edges=dedupe_edges(edges))


# ============================================================================
# Operator base
# ============================================================================

class MoveOperator:
    """
    Base class of all move operators.

    Subclasses set ``applicable_to`` and implement ``_check`` (extra
    precondition) and ``_transform`` (the rewrite itself, returning None when
    the rewrite turns out to be impossible).
    """

    applicable_to: Tuple[str, ...] = ()

    def __init__(self, kind: OperatorKind, min_children: int = 5, max_children: int = 9):
        self.kind = kind
        self.min_children = min_children
        self.max_children = max_children

    def precondition(self, violation: Violation, architecture: Architecture) -> bool:
        if violation.rule_id not in self.applicable_to:
            return False
        if not violation.affected_nodes or not architecture.has_node(violation.affected_nodes[0]):
            return False
        return self._check(violation, architecture)

    def apply(self, architecture: Architecture, violation: Violation) -> MoveResult:
        """
        Apply the operator.

        Args:
            architecture: Snapshot to rewrite (left untouched)
            violation: Violation the move addresses

        Returns:
            MoveResult; ``architecture`` is set only on success
        """
        after = None
        if self.precondition(violation, architecture):
            after = self._transform(architecture, violation)
        success = after is not None
        return MoveResult(
            operator=self.kind,
            success=success,
            architecture=after,
            affected_nodes=violation.affected_nodes,
            description=(
                f"Applied {self.kind.value} to fix {violation.rule_id}" if success
                else f"{self.kind.value} not applicable to {violation.rule_id}"
            ),
        )

    def _check(self, violation: Violation, architecture: Architecture) -> bool:
        return True

    def _transform(self, architecture: Architecture, violation: Violation) -> Optional[Architecture]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.kind.value})"


# ============================================================================
# SPLIT / FUNC_SPLIT / MOD_SPLIT
# ============================================================================

class SplitOperator(MoveOperator):
    """Partition an oversized container into two by requirement clusters."""

    applicable_to = (MILLERS_LAW,)

    def _check(self, violation, architecture):
        return len(children_of(architecture, violation.affected_nodes[0])) >= 2

    def partition(self, architecture: Architecture, children: List[str]) -> Tuple[List[str], List[str]]:
        """
        Split children into two groups.

        Children satisfying a common REQ form one cluster (connected
        components of the child/REQ graph); clusters are packed largest-first
        into the smaller group. Falls back to halving in order when one group
        would stay empty.
        """
        graph = nx.Graph()
        graph.add_nodes_from(children)
        child_set = set(children)
        for edge in architecture.edges_of_type(EdgeType.SATISFY):
            if edge.source in child_set:
                graph.add_edge(edge.source, ("REQ", edge.target))

        order = {child: i for i, child in enumerate(children)}
        clusters = []
        for component in nx.connected_components(graph):
            members = sorted((n for n in component if n in child_set), key=order.__getitem__)
            if members:
                clusters.append(members)
        clusters.sort(key=lambda c: (-len(c), order[c[0]]))

        keep: List[str] = []
        move: List[str] = []
        for cluster in clusters:
            (keep if len(keep) <= len(move) else move).extend(cluster)

        if not keep or not move:
            half = (len(children) + 1) // 2
            return children[:half], children[half:]
        return sorted(keep, key=order.__getitem__), sorted(move, key=order.__getitem__)

    def _transform(self, architecture, violation):
        parent = architecture.node(violation.affected_nodes[0])
        children = children_of(architecture, parent.id)
        _, move = self.partition(architecture, children)

        new_id = unique_id(f"{parent.id}_B", architecture.node_ids())
        sibling = Node(
            id=new_id,
            type=parent.type,
            label=f"{parent.label}_B",
            properties={**own_properties(parent), "split_from": parent.id},
        )
        result = move_children(architecture, parent.id, new_id, move, extra_nodes=[sibling])

        # The new container hangs under the same composition parents
        grand_edges = [retarget(e, parent.id, new_id) for e in _incoming_compose(architecture, parent.id)]
        if grand_edges:
            result = result.replace(edges=dedupe_edges([*result.edges, *grand_edges]))
        return result


# ============================================================================
# MERGE / FUNC_MERGE / FUNC_MERGE_SIMILAR
# ============================================================================

class MergeOperator(MoveOperator):
    """
    Combine two nodes into one.

    When the first two affected nodes share a type they are merged directly
    (similarity violations). Otherwise the first node is an undersized
    container and is merged with the first other undersized container of the
    same type.
    """

    applicable_to = (MILLERS_LAW, *SIMILARITY_RULES)

    def _pair(self, violation: Violation, architecture: Architecture) -> Optional[Tuple[str, str]]:
        nodes = [architecture.node(n) for n in violation.affected_nodes[:2]]
        if len(nodes) == 2 and all(nodes) and nodes[0].type == nodes[1].type:
            return nodes[0].id, nodes[1].id

        container = nodes[0]
        if len(children_of(architecture, container.id)) >= self.min_children:
            return None
        for other in architecture.nodes_of_type(container.type):
            if other.id == container.id:
                continue
            if len(children_of(architecture, other.id)) < self.min_children:
                return container.id, other.id
        return None

    def _check(self, violation, architecture):
        return self._pair(violation, architecture) is not None

    def _transform(self, architecture, violation):
        first, second = self._pair(violation, architecture)
        return merge_nodes(architecture, first, second)


class SimilarMergeOperator(MergeOperator):
    """Merge two near-duplicate or merge-candidate nodes only."""

    applicable_to = SIMILARITY_RULES

    def _pair(self, violation, architecture):
        if len(violation.affected_nodes) < 2:
            return None
        a, b = (architecture.node(n) for n in violation.affected_nodes[:2])
        if a is None or b is None or a.type != b.type:
            return None
        return a.id, b.id


# ============================================================================
# LINK / FLOW_REDIRECT / REQ_LINK / TEST_LINK
# ============================================================================

class FlowRedirectOperator(MoveOperator):
    """
    Attach an io edge to an isolated FUNC.

    Preference: consume a FLOW produced by a sibling in the same MOD, else
    feed a sibling FUNC directly, else feed any other FUNC.
    """

    applicable_to = (ISOLATION,)

    def _check(self, violation, architecture):
        func = architecture.node(violation.affected_nodes[0])
        if func.type != NodeType.FUNC:
            return False
        return not any(e.type == EdgeType.IO and e.touches(func.id) for e in architecture.edges)

    def _transform(self, architecture, violation):
        func_id = violation.affected_nodes[0]
        mods = allocation_map(architecture).get(func_id, [])
        members = module_members(architecture)
        siblings = [f for mod in mods for f in members.get(mod, []) if f != func_id]

        for sibling in siblings:
            for edge in architecture.edges_from(sibling):
                target = architecture.node(edge.target)
                if edge.type == EdgeType.IO and target.type == NodeType.FLOW:
                    return self._link(architecture, edge.target, func_id)

        if siblings:
            return self._link(architecture, func_id, siblings[0])

        for other in architecture.nodes_of_type(NodeType.FUNC):
            if other.id != func_id:
                return self._link(architecture, func_id, other.id)
        return None

    @staticmethod
    def _link(architecture: Architecture, source: str, target: str) -> Architecture:
        return architecture.replace(edges=[*architecture.edges, Edge(source, target, EdgeType.IO)])


class RequirementLinkOperator(MoveOperator):
    """Add a satisfy edge FUNC -> REQ, choosing the FUNC closest in wording."""

    applicable_to = (FUNCTION_REQUIREMENTS,)

    def _check(self, violation, architecture):
        req = architecture.node(violation.affected_nodes[0])
        if req.type != NodeType.REQ:
            return False
        if any(e.type == EdgeType.SATISFY for e in architecture.edges_to(req.id)):
            return False
        return bool(architecture.nodes_of_type(NodeType.FUNC))

    def _transform(self, architecture, violation):
        req = architecture.node(violation.affected_nodes[0])
        req_tokens = tokenize(f"{req.label} {req.description}")

        best, best_overlap = None, -1
        for func in architecture.nodes_of_type(NodeType.FUNC):
            overlap = len(req_tokens & tokenize(f"{func.label} {func.description}"))
            if overlap > best_overlap:
                best, best_overlap = func, overlap

        edge = Edge(best.id, req.id, EdgeType.SATISFY)
        return architecture.replace(edges=[*architecture.edges, edge])


class TestLinkOperator(MoveOperator):
    """Add a verify edge REQ -> TEST, creating a synthetic TEST when none is free."""

    applicable_to = (REQUIREMENTS_VERIFICATION,)

    # Create a fresh TEST even when a free one exists
    always_create = False

    def _check(self, violation, architecture):
        req = architecture.node(violation.affected_nodes[0])
        if req.type != NodeType.REQ:
            return False
        return not any(e.type == EdgeType.VERIFY for e in architecture.edges_from(req.id))

    def _transform(self, architecture, violation):
        req = architecture.node(violation.affected_nodes[0])
        verified_tests = {e.target for e in architecture.edges_of_type(EdgeType.VERIFY)}

        test = None
        if not self.always_create:
            test = next(
                (t for t in architecture.nodes_of_type(NodeType.TEST) if t.id not in verified_tests),
                None,
            )

        nodes = list(architecture.nodes)
        if test is None:
            test = Node(
                id=unique_id(f"TEST_{req.id}", architecture.node_ids()),
                type=NodeType.TEST,
                label=f"Test_{req.label}",
                properties={"synthetic": True},
            )
            nodes.append(test)

        edges = [*architecture.edges, Edge(req.id, test.id, EdgeType.VERIFY)]
        return architecture.replace(nodes=nodes, edges=edges)


class LinkOperator(MoveOperator):
    """Generic link: dispatches on the violated rule."""

    applicable_to = (ISOLATION, FUNCTION_REQUIREMENTS, REQUIREMENTS_VERIFICATION)

    def __init__(self, kind: OperatorKind, **bounds):
        super().__init__(kind, **bounds)
        self._delegates: Dict[str, MoveOperator] = {
            ISOLATION: FlowRedirectOperator(kind),
            FUNCTION_REQUIREMENTS: RequirementLinkOperator(kind),
            REQUIREMENTS_VERIFICATION: TestLinkOperator(kind),
        }

    def _check(self, violation, architecture):
        return self._delegates[violation.rule_id]._check(violation, architecture)

    def _transform(self, architecture, violation):
        return self._delegates[violation.rule_id]._transform(architecture, violation)


# ============================================================================
# FLOW_CONSOLIDATE
# ============================================================================

class FlowConsolidateOperator(MoveOperator):
    """Merge two FLOWs that carry the same SCHEMA."""

    applicable_to = (SCHEMA_MERGE_CANDIDATE, SCHEMA_NEAR_DUPLICATE)

    def _flow_pair(self, violation: Violation, architecture: Architecture) -> Optional[Tuple[str, str]]:
        graph = architecture.to_graph()
        for schema_id in violation.affected_nodes:
            if not architecture.has_node(schema_id):
                continue
            neighbours = set(graph.predecessors(schema_id)) | set(graph.successors(schema_id))
            flows = [
                n.id for n in architecture.nodes_of_type(NodeType.FLOW)
                if n.id in neighbours
            ]
            if len(flows) >= 2:
                return flows[0], flows[1]
        return None

    def _check(self, violation, architecture):
        return self._flow_pair(violation, architecture) is not None

    def _transform(self, architecture, violation):
        first, second = self._flow_pair(violation, architecture)
        return merge_nodes(architecture, first, second)


# ============================================================================
# ALLOC_SHIFT / ALLOC_REBALANCE / REALLOC
# ============================================================================

class AllocShiftOperator(MoveOperator):
    """Move the high-volatility FUNCs of a mixed MOD into a dedicated MOD."""

    applicable_to = (VOLATILITY_ISOLATION,)

    volatility_threshold = 0.7

    def _movers(self, violation: Violation, architecture: Architecture) -> List[str]:
        mod_id = violation.affected_nodes[0]
        members = module_members(architecture).get(mod_id, [])
        return [
            f for f in violation.affected_nodes[1:]
            if f in members and volatility_of(architecture.node(f)) >= self.volatility_threshold
        ]

    def _check(self, violation, architecture):
        mod = architecture.node(violation.affected_nodes[0])
        return mod.type == NodeType.MOD and bool(self._movers(violation, architecture))

    def _transform(self, architecture, violation):
        mod = architecture.node(violation.affected_nodes[0])
        movers = self._movers(violation, architecture)

        target = next(
            (m for m in architecture.nodes_of_type(NodeType.MOD)
             if m.id != mod.id and m.properties.get("high_volatility") is True),
            None,
        )
        extra_nodes = []
        new_edges = []
        if target is None:
            target = Node(
                id=unique_id(f"{mod.id}_HighVol", architecture.node_ids()),
                type=NodeType.MOD,
                label=f"{mod.label}_HighVol",
                properties={"high_volatility": True, "split_from": mod.id},
            )
            extra_nodes.append(target)
            new_edges = [retarget(e, mod.id, target.id) for e in _incoming_compose(architecture, mod.id)]

        result = move_children(architecture, mod.id, target.id, movers, extra_nodes=extra_nodes)
        if new_edges:
            result = result.replace(edges=dedupe_edges([*result.edges, *new_edges]))
        return result


class AllocRebalanceOperator(MoveOperator):
    """Move FUNCs from an oversized MOD to the least-loaded MODs with spare room."""

    applicable_to = (MILLERS_LAW,)

    def _check(self, violation, architecture):
        mod = architecture.node(violation.affected_nodes[0])
        if mod.type != NodeType.MOD:
            return False
        members = module_members(architecture)
        if len(members.get(mod.id, [])) <= self.max_children:
            return False
        return any(
            len(funcs) < self.max_children
            for other, funcs in members.items() if other != mod.id
        )

    def _transform(self, architecture, violation):
        mod_id = violation.affected_nodes[0]
        members = module_members(architecture)
        source = list(members[mod_id])
        loads = {m: len(f) for m, f in members.items() if m != mod_id}
        order = {m: i for i, m in enumerate(loads)}

        result = architecture
        moved = 0
        while len(source) > self.max_children:
            open_targets = [m for m, load in loads.items() if load < self.max_children]
            if not open_targets:
                break
            target = min(open_targets, key=lambda m: (loads[m], order[m]))
            func_id = source.pop()
            result = move_children(result, mod_id, target, [func_id])
            loads[target] += 1
            moved += 1

        return result if moved else None


class ReallocOperator(MoveOperator):
    """Collapse a multi-module allocation to the first allocate edge."""

    applicable_to = (ALLOCATION_COHESION,)

    def _allocations(self, architecture: Architecture, func_id: str) -> List[Edge]:
        mods = {m.id for m in architecture.nodes_of_type(NodeType.MOD)}
        return [
            e for e in architecture.edges
            if e.type == EdgeType.ALLOCATE and e.touches(func_id)
            and (e.source in mods or e.target in mods)
        ]

    def _check(self, violation, architecture):
        func = architecture.node(violation.affected_nodes[0])
        return func.type == NodeType.FUNC and len(self._allocations(architecture, func.id)) >= 2

    def _keep(self, architecture: Architecture, allocations: List[Edge]) -> Edge:
        return allocations[0]

    def _transform(self, architecture, violation):
        allocations = self._allocations(architecture, violation.affected_nodes[0])
        keep = self._keep(architecture, allocations)
        drop = {id(e) for e in allocations if e is not keep}
        return architecture.replace(edges=[e for e in architecture.edges if id(e) not in drop])


# ============================================================================
# CREATE / DELETE
# ============================================================================

class CreateOperator(MoveOperator):
    """
    Create a missing node.

    An isolated FUNC gets a new output FLOW; an unverified REQ gets a new
    TEST.
    """

    applicable_to = (ISOLATION, REQUIREMENTS_VERIFICATION)

    def __init__(self, kind: OperatorKind, **bounds):
        super().__init__(kind, **bounds)
        self._test_link = TestLinkOperator(kind)
        self._test_link.always_create = True

    def _check(self, violation, architecture):
        node = architecture.node(violation.affected_nodes[0])
        if violation.rule_id == ISOLATION:
            return node.type == NodeType.FUNC
        return self._test_link._check(violation, architecture)

    def _transform(self, architecture, violation):
        if violation.rule_id == REQUIREMENTS_VERIFICATION:
            return self._test_link._transform(architecture, violation)

        func = architecture.node(violation.affected_nodes[0])
        flow = Node(
            id=unique_id(f"{func.id}_OUT", architecture.node_ids()),
            type=NodeType.FLOW,
            label=f"{func.label}Output",
            properties={"synthetic": True},
        )
        return architecture.replace(
            nodes=[*architecture.nodes, flow],
            edges=[*architecture.edges, Edge(func.id, flow.id, EdgeType.IO)],
        )


class DeleteOperator(ReallocOperator):
    """
    Remove structure.

    For an undersized container: dissolve it, handing its children to the
    smallest sibling of the same type. For a multi-module FUNC: drop every
    allocation except the one to the largest MOD.
    """

    applicable_to = (MILLERS_LAW, ALLOCATION_COHESION)

    def _heir(self, architecture: Architecture, container: Node) -> Optional[str]:
        siblings = [
            (len(children_of(architecture, n.id)), i, n.id)
            for i, n in enumerate(architecture.nodes_of_type(container.type))
            if n.id != container.id
        ]
        return min(siblings)[2] if siblings else None

    def _check(self, violation, architecture):
        if violation.rule_id == ALLOCATION_COHESION:
            return super()._check(violation, architecture)
        container = architecture.node(violation.affected_nodes[0])
        children = children_of(architecture, container.id)
        if not 0 < len(children) < self.min_children:
            return False
        return self._heir(architecture, container) is not None

    def _keep(self, architecture, allocations):
        members = module_members(architecture)

        def load(edge: Edge) -> int:
            mod_id = edge.target if edge.target in members else edge.source
            return len(members.get(mod_id, []))

        return max(allocations, key=load)

    def _transform(self, architecture, violation):
        if violation.rule_id == ALLOCATION_COHESION:
            return super()._transform(architecture, violation)

        container = architecture.node(violation.affected_nodes[0])
        heir = self._heir(architecture, container)
        children = children_of(architecture, container.id)
        result = move_children(architecture, container.id, heir, children)
        return result.replace(
            nodes=[n for n in result.nodes if n.id != container.id],
            edges=[e for e in result.edges if not e.touches(container.id)],
        )


# ============================================================================
# Registry
# ============================================================================

_OPERATOR_CLASSES: Mapping[OperatorKind, type] = {
    OperatorKind.SPLIT: SplitOperator,
    OperatorKind.MERGE: MergeOperator,
    OperatorKind.LINK: LinkOperator,
    OperatorKind.REALLOC: ReallocOperator,
    OperatorKind.CREATE: CreateOperator,
    OperatorKind.DELETE: DeleteOperator,
    OperatorKind.FUNC_SPLIT: SplitOperator,
    OperatorKind.MOD_SPLIT: SplitOperator,
    OperatorKind.FUNC_MERGE: MergeOperator,
    OperatorKind.FUNC_MERGE_SIMILAR: SimilarMergeOperator,
    OperatorKind.FLOW_REDIRECT: FlowRedirectOperator,
    OperatorKind.FLOW_CONSOLIDATE: FlowConsolidateOperator,
    OperatorKind.ALLOC_SHIFT: AllocShiftOperator,
    OperatorKind.ALLOC_REBALANCE: AllocRebalanceOperator,
    OperatorKind.REQ_LINK: RequirementLinkOperator,
    OperatorKind.TEST_LINK: TestLinkOperator,
}

_missing = set(OperatorKind) - set(_OPERATOR_CLASSES)
if _missing:
    raise RuntimeError(f"Operator kinds without implementation: {sorted(k.value for k in _missing)}")


def build_operator_table(config: Optional[ScoringConfig] = None) -> Dict[OperatorKind, MoveOperator]:
    """One operator instance per kind, in OperatorKind order."""
    config = config or ScoringConfig()
    table = {}
    for kind in OperatorKind:
        operator = _OPERATOR_CLASSES[kind](
            kind,
            min_children=config.min_funcs_per_mod,
            max_children=config.max_funcs_per_mod,
        )
        if isinstance(operator, AllocShiftOperator):
            operator.volatility_threshold = config.high_volatility_threshold
        table[kind] = operator
    return table


OPERATOR_TABLE: Mapping[OperatorKind, MoveOperator] = build_operator_table()


def operators_for(violation: Violation,
                  table: Optional[Mapping[OperatorKind, MoveOperator]] = None) -> List[OperatorKind]:
    """Kinds whose ``applicable_to`` covers the violation, in table order."""
    table = table or OPERATOR_TABLE
    return [kind for kind, op in table.items() if violation.rule_id in op.applicable_to]


def get_applicable_operators(violations: Iterable[Violation],
                             table: Optional[Mapping[OperatorKind, MoveOperator]] = None) -> List[OperatorKind]:
    """Kinds applicable to at least one violation, in table order."""
    table = table or OPERATOR_TABLE
    rule_ids = {v.rule_id for v in violations}
    return [kind for kind, op in table.items() if rule_ids & set(op.applicable_to)]


def apply_operator(architecture: Architecture, kind: OperatorKind, violation: Violation,
                   table: Optional[Mapping[OperatorKind, MoveOperator]] = None) -> MoveResult:
    """Apply one operator by kind."""
    table = table or OPERATOR_TABLE
    return table[OperatorKind(kind)].apply(architecture, violation)


def try_all_operators(architecture: Architecture, violations: Iterable[Violation],
                      table: Optional[Mapping[OperatorKind, MoveOperator]] = None) -> List[MoveResult]:
    """Every successful (violation, operator) application."""
    table = table or OPERATOR_TABLE
    results = []
    for violation in violations:
        for kind in operators_for(violation, table):
            result = table[kind].apply(architecture, violation)
            if result.success:
                results.append(result)
    return results
